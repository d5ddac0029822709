from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from compass.errors import PersistenceError, TransportError

from .base import ChatTransport, ItemClient

USER_AGENT = "csf-compass-core/0.1.0"


class HttpChatTransport(ChatTransport):
    provider_name: str = "http"

    def __init__(self, base_url: str, connect_timeout: float = 30.0):
        self._url = base_url.rstrip("/") + "/api/ai/chat"
        # No read timeout: a session runs until done, error or cancellation
        self._timeout = httpx.Timeout(connect_timeout, read=None)

    async def stream_chat(
        self,
        messages: List[Dict[str, str]],
        page_context: str = "",
        request_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        headers = {
            "Accept": "text/event-stream",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if request_id:
            headers["X-Request-Id"] = request_id
        payload = {"messages": messages, "page_context": page_context}

        # Short-lived client per session; leaving the context closes the stream on cancel
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            async with client.stream("POST", self._url, headers=headers, json=payload) as resp:
                if not 200 <= resp.status_code < 300:
                    text = await resp.aread()
                    raise TransportError(f"chat stream error {resp.status_code}: {text!r}")
                async for chunk in resp.aiter_text():
                    if chunk:
                        yield chunk


class HttpItemClient(ItemClient):
    """PATCH /api/assessments/{assessment_id}/items/{item_id}."""

    provider_name: str = "http"

    def __init__(self, base_url: str, timeout: float = 30.0):
        self._base = base_url.rstrip("/")
        self._timeout = timeout

    def _url(self, assessment_id: str, item_id: str) -> str:
        return f"{self._base}/api/assessments/{assessment_id}/items/{item_id}"

    async def update_item(self, assessment_id: str, item_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.patch(self._url(assessment_id, item_id), headers=headers, json=changes)
            if not 200 <= resp.status_code < 300:
                raise PersistenceError(f"item update error {resp.status_code}: {resp.text}", resp.status_code)
            return resp.json()


class VendorItemClient(HttpItemClient):
    """PATCH /api/vendor-invitations/{token}/items/{item_id} for vendor self-assessments."""

    def __init__(self, base_url: str, token: str, timeout: float = 30.0):
        super().__init__(base_url, timeout=timeout)
        if not token:
            raise RuntimeError("COMPASS_VENDOR_TOKEN is required for vendor item updates")
        self._token = token

    def _url(self, assessment_id: str, item_id: str) -> str:
        return f"{self._base}/api/vendor-invitations/{self._token}/items/{item_id}"
