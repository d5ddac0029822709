import json
import types

import httpx
import pytest

import compass.providers.http as http_mod
from compass.errors import PersistenceError, TransportError
from compass.providers.http import HttpChatTransport, HttpItemClient, VendorItemClient


@pytest.mark.asyncio
async def test_chat_stream_yields_raw_chunks_and_sends_context(monkeypatch: pytest.MonkeyPatch):
    captured = {}

    class FakeStreamResp:
        def __init__(self):
            self.status_code = 200

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            captured["closed"] = True
            return False

        async def aiter_text(self):
            # Chunk boundaries fall mid-record on purpose
            yield 'data: {"tok'
            yield ""
            yield 'en": "Hi"}\n\ndata: [DO'
            yield "NE]\n\n"

    class FakeAsyncClient:
        def __init__(self, *args, **kwargs):
            captured["timeout"] = kwargs.get("timeout")

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        def stream(self, method, url, headers=None, json=None):
            captured.update(method=method, url=url, headers=headers, json=json)
            return FakeStreamResp()

    monkeypatch.setattr(http_mod, "httpx", types.SimpleNamespace(AsyncClient=FakeAsyncClient, Timeout=httpx.Timeout))

    transport = HttpChatTransport("http://api.test/", connect_timeout=5)
    history = [{"role": "user", "content": "What is ID.AM?"}]
    chunks = [c async for c in transport.stream_chat(history, page_context="Checklist", request_id="rid-1")]

    assert chunks == ['data: {"tok', 'en": "Hi"}\n\ndata: [DO', "NE]\n\n"]
    assert captured["method"] == "POST"
    assert captured["url"] == "http://api.test/api/ai/chat"
    assert captured["json"] == {"messages": history, "page_context": "Checklist"}
    assert captured["headers"]["X-Request-Id"] == "rid-1"
    assert captured["timeout"].read is None
    assert captured["closed"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [503, 302])
async def test_chat_stream_non_2xx_raises_transport_error(status_code, monkeypatch: pytest.MonkeyPatch):
    class FakeStreamResp:
        def __init__(self):
            self.status_code = status_code

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def aread(self):
            return b"worker unavailable"

    class FakeAsyncClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        def stream(self, method, url, headers=None, json=None):
            return FakeStreamResp()

    monkeypatch.setattr(http_mod, "httpx", types.SimpleNamespace(AsyncClient=FakeAsyncClient, Timeout=httpx.Timeout))

    transport = HttpChatTransport("http://api.test")
    with pytest.raises(TransportError) as ei:
        async for _ in transport.stream_chat([]):
            pass
    assert f"chat stream error {status_code}" in str(ei.value)


def _fake_patch_client(captured, status_code=200, body=None):
    class FakeResponse:
        def __init__(self):
            self.status_code = status_code
            self.text = json.dumps(body or {})

        def json(self):
            return body or {}

    class FakeAsyncClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def patch(self, url, headers=None, json=None):
            captured.update(url=url, json=json)
            return FakeResponse()

    return FakeAsyncClient


@pytest.mark.asyncio
async def test_item_client_patches_assessment_item(monkeypatch: pytest.MonkeyPatch):
    captured = {}
    body = {"id": "i1", "status": "compliant", "notes": "", "updated_at": 7}
    monkeypatch.setattr(http_mod, "httpx", types.SimpleNamespace(AsyncClient=_fake_patch_client(captured, body=body)))

    out = await HttpItemClient("http://api.test").update_item("a1", "i1", {"status": "compliant"})

    assert out == body
    assert captured["url"] == "http://api.test/api/assessments/a1/items/i1"
    assert captured["json"] == {"status": "compliant"}


@pytest.mark.asyncio
async def test_vendor_client_uses_invitation_endpoint(monkeypatch: pytest.MonkeyPatch):
    captured = {}
    monkeypatch.setattr(http_mod, "httpx", types.SimpleNamespace(AsyncClient=_fake_patch_client(captured, body={"id": "i1"})))

    await VendorItemClient("http://api.test", "tok-9").update_item("a1", "i1", {"status": "partial", "notes": "n"})

    assert captured["url"] == "http://api.test/api/vendor-invitations/tok-9/items/i1"
    assert captured["json"] == {"status": "partial", "notes": "n"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [409, 301])
async def test_item_client_non_2xx_raises_persistence_error(status_code, monkeypatch: pytest.MonkeyPatch):
    captured = {}
    monkeypatch.setattr(
        http_mod, "httpx", types.SimpleNamespace(AsyncClient=_fake_patch_client(captured, status_code=status_code, body={"error": "conflict"}))
    )

    with pytest.raises(PersistenceError) as ei:
        await HttpItemClient("http://api.test").update_item("a1", "i1", {"notes": "x"})
    assert ei.value.status_code == status_code


def test_vendor_client_requires_token():
    with pytest.raises(RuntimeError):
        VendorItemClient("http://api.test", "")
