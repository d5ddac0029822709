from typing import Optional

from compass.config import Settings

from .base import ChatTransport, ItemClient
from .mock import MockChatTransport, MockItemClient


def get_chat_transport(settings: Settings, provider: Optional[str] = None) -> ChatTransport:
    """Return a chat stream transport.

    Provider precedence: explicit argument, then settings.chat_provider
    (AI_PROVIDER_CHAT / AI_PROVIDER). Unknown providers fall back to mock.
    """
    prov = (provider or settings.chat_provider or "mock").lower()

    if prov in ("mock", "test"):
        return MockChatTransport()

    if prov in ("http", "worker"):
        from .http import HttpChatTransport
        return HttpChatTransport(settings.api_base_url, connect_timeout=settings.http_timeout_seconds)

    return MockChatTransport()


def get_item_client(settings: Settings, provider: Optional[str] = None) -> ItemClient:
    """Return an item mutation client; vendor configuration targets the invitation endpoint."""
    prov = (provider or settings.items_provider or "mock").lower()

    if prov in ("mock", "test"):
        return MockItemClient()

    if prov in ("http", "worker"):
        from .http import HttpItemClient, VendorItemClient
        if settings.status_options == "vendor":
            return VendorItemClient(settings.api_base_url, settings.vendor_token or "", timeout=settings.http_timeout_seconds)
        return HttpItemClient(settings.api_base_url, timeout=settings.http_timeout_seconds)

    return MockItemClient()
