import asyncio
import json
import time
from typing import Any, AsyncIterator, Dict, List, Optional

from compass.errors import PersistenceError

from .base import ChatTransport, ItemClient


def _frame_token(token: str) -> str:
    return "data: " + json.dumps({"token": token}) + "\n\n"


def _chunk_text(s: str, size: int = 6):
    for i in range(0, len(s), size):
        yield s[i : i + size]


class MockChatTransport(ChatTransport):
    """Echoes the last user turn back as a framed stream, split at arbitrary offsets."""

    provider_name: str = "mock"

    def __init__(self, delay: float = 0.05):
        self._delay = delay

    async def stream_chat(
        self,
        messages: List[Dict[str, str]],
        page_context: str = "",
        request_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        last = next((m["content"] for m in reversed(messages) if m.get("role") == "user"), "")
        reply = f"You asked: {last}" if last else "Hello, world!"
        words = reply.split(" ")
        tokens = [w + " " for w in words[:-1]] + words[-1:]
        wire = "".join(_frame_token(t) for t in tokens) + "data: [DONE]\n\n"
        # Deliberately misaligned with record boundaries
        for chunk in _chunk_text(wire, size=7):
            yield chunk
            await asyncio.sleep(self._delay)


class MockItemClient(ItemClient):
    """In-memory item endpoint. Set `fail` to make every write raise."""

    provider_name: str = "mock"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []
        self._items: Dict[str, Dict[str, Any]] = {}

    async def update_item(self, assessment_id: str, item_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append({"assessment_id": assessment_id, "item_id": item_id, "changes": dict(changes)})
        await asyncio.sleep(0)
        if self.fail:
            raise PersistenceError("mock item endpoint unavailable", 503)
        row = self._items.setdefault(item_id, {"status": "not_assessed", "notes": ""})
        for key in ("status", "notes"):
            if key in changes:
                row[key] = changes[key]
        row["updated_at"] = int(time.time() * 1000)
        return {"id": item_id, **row}
