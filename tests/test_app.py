from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from chat_proxy.app import create_app
from chat_proxy.core import access_log, http_client
from chat_proxy.core.exceptions import StartupConfigurationError
from chat_proxy.core.settings import get_settings
from chat_proxy.providers.llm import get_provider
from chat_proxy.schemas import StreamDelta
from chat_proxy.usage.models import UsageSummary

from conftest import FakeProvider

pytestmark = pytest.mark.anyio


async def test_lifespan_refuses_to_start_without_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    get_settings.cache_clear()
    app = create_app()
    with pytest.raises(StartupConfigurationError):
        async with app.router.lifespan_context(app):
            pass
    with pytest.raises(RuntimeError):
        http_client.get_http_client()


async def test_lifespan_opens_and_closes_http_client():
    app = create_app()
    async with app.router.lifespan_context(app):
        assert http_client.get_http_client() is not None
    with pytest.raises(RuntimeError):
        http_client.get_http_client()


def _client_with_usage() -> TestClient:
    app = create_app()
    provider = FakeProvider(
        [StreamDelta(text="Hi"), StreamDelta(usage=UsageSummary(prompt_tokens=5, completion_tokens=3, total_tokens=8))]
    )
    app.dependency_overrides[get_provider] = lambda: provider
    return TestClient(app)


def _access_calls(fake_logger: Mock):
    return [c for c in fake_logger.info.call_args_list if c.kwargs.get("extra", {}).get("event") == "access"]


def test_access_log_records_token_usage_after_stream(monkeypatch):
    fake_logger = Mock()
    monkeypatch.setattr(access_log, "logger", fake_logger)
    client = _client_with_usage()

    client.post("/api/chat", json={"message": "hello"})

    calls = _access_calls(fake_logger)
    assert len(calls) == 1
    extra = calls[0].kwargs["extra"]
    assert extra["method"] == "POST"
    assert extra["path"] == "/api/chat"
    assert extra["status"] == 200
    assert extra["prompt_tokens"] == 5
    assert extra["completion_tokens"] == 3
    assert extra["total_tokens"] == 8
    assert extra["duration_ms"] >= 0


def test_access_log_omits_tokens_when_disabled(monkeypatch):
    monkeypatch.setenv("LOG_TOKEN_USAGE", "0")
    fake_logger = Mock()
    monkeypatch.setattr(access_log, "logger", fake_logger)
    client = _client_with_usage()

    client.post("/api/chat", json={"message": "hello"})

    extra = _access_calls(fake_logger)[0].kwargs["extra"]
    assert "total_tokens" not in extra


def test_access_log_covers_rejected_requests(monkeypatch):
    fake_logger = Mock()
    monkeypatch.setattr(access_log, "logger", fake_logger)
    client = _client_with_usage()

    client.post("/api/chat", json={"message": " "})
    client.get("/health", headers={"Origin": "https://evil.example.com"})

    statuses = [c.kwargs["extra"]["status"] for c in _access_calls(fake_logger)]
    assert statuses == [400, 403]
