import pytest

from compass.config import Settings
from compass.providers.factory import get_chat_transport, get_item_client
from compass.providers.http import HttpChatTransport, HttpItemClient, VendorItemClient
from compass.providers.mock import MockChatTransport, MockItemClient


@pytest.mark.parametrize("prov, expect_type", [
    ("mock", MockChatTransport),
    ("test", MockChatTransport),
    ("http", HttpChatTransport),
    ("worker", HttpChatTransport),
    ("unknown", MockChatTransport),
])
def test_get_chat_transport(prov, expect_type):
    assert isinstance(get_chat_transport(Settings(), provider=prov), expect_type)


@pytest.mark.parametrize("prov, expect_type", [
    ("mock", MockItemClient),
    ("http", HttpItemClient),
    ("unknown", MockItemClient),
])
def test_get_item_client(prov, expect_type):
    cli = get_item_client(Settings(), provider=prov)
    assert isinstance(cli, expect_type)
    assert not isinstance(cli, VendorItemClient)


def test_vendor_configuration_selects_invitation_client():
    settings = Settings(status_options="vendor", vendor_token="tok")
    assert isinstance(get_item_client(settings, provider="http"), VendorItemClient)


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("AI_PROVIDER_CHAT", "MOCK")
    monkeypatch.setenv("COMPASS_ITEMS_PROVIDER", "http")
    monkeypatch.setenv("COMPASS_API_URL", "http://worker.test/")
    monkeypatch.setenv("CHAT_CONTEXT_LIMIT", "999")
    monkeypatch.setenv("NOTES_DEBOUNCE_MS", "250")
    monkeypatch.setenv("COMPASS_STATUS_OPTIONS", "bogus")

    s = Settings.from_env()

    assert s.chat_provider == "mock"
    assert s.items_provider == "http"
    assert s.api_base_url == "http://worker.test"
    assert s.chat_context_limit == 200
    assert s.notes_debounce_seconds == 0.25
    assert s.status_options == "full"
    assert isinstance(get_chat_transport(s), MockChatTransport)


@pytest.mark.parametrize("raw, expected", [("0", 1), ("-5", 1), ("abc", 10), ("", 10), ("25", 25)])
def test_chat_context_limit_clamped(raw, expected, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CHAT_CONTEXT_LIMIT", raw)
    assert Settings.from_env().chat_context_limit == expected
