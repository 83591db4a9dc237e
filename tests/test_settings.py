import pytest

from chat_proxy.core.exceptions import StartupConfigurationError
from chat_proxy.core.settings import get_settings


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    for key in [
        "OPENAI_BASE_URL",
        "OPENAI_MODEL",
        "PORT",
        "APP_ENV",
        "LLM_LOG_MODE",
        "LOG_TOKEN_USAGE",
    ]:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    settings = get_settings()
    assert settings.OPENAI_MODEL == "gpt-4o-mini"
    assert settings.PORT == 3000
    assert settings.RATE_LIMIT_MAX == 100
    assert settings.RATE_LIMIT_WINDOW_SECONDS == 900
    assert settings.MAX_BODY_BYTES == 10240
    assert settings.LOG_TOKEN_USAGE is True
    assert settings.chat_completions_url() == "https://api.openai.com/v1/chat/completions"


def test_allowed_origins_split_and_trimmed(monkeypatch):
    monkeypatch.setenv("FRONTEND_URL", " https://a.dev , https://b.dev,,https://a.dev ")
    assert get_settings().allowed_origins() == ["https://a.dev", "https://b.dev"]


def test_port_and_toggles_cast(monkeypatch):
    monkeypatch.setenv("PORT", "8081")
    monkeypatch.setenv("LOG_TOKEN_USAGE", "false")
    settings = get_settings()
    assert settings.PORT == 8081
    assert settings.LOG_TOKEN_USAGE is False


def test_validate_startup_requires_api_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "  ")
    with pytest.raises(StartupConfigurationError) as exc:
        get_settings().validate_startup()
    assert "OPENAI_API_KEY" in str(exc.value)


def test_validate_startup_requires_origins(monkeypatch):
    monkeypatch.setenv("FRONTEND_URL", " , ")
    with pytest.raises(StartupConfigurationError) as exc:
        get_settings().validate_startup()
    assert "FRONTEND_URL" in str(exc.value)


def test_validate_startup_passes_with_required_values():
    get_settings().validate_startup()


def test_production_flag(monkeypatch):
    assert get_settings().is_production() is False
    monkeypatch.setenv("APP_ENV", "Production")
    get_settings.cache_clear()
    assert get_settings().is_production() is True


@pytest.mark.parametrize(
    "mode, direction, expected",
    [
        ("off", "input", False),
        ("input", "input", True),
        ("input", "output", False),
        ("both", "output", True),
        ("OUTPUT", "output", True),
    ],
)
def test_llm_log_mode(monkeypatch, mode, direction, expected):
    monkeypatch.setenv("LLM_LOG_MODE", mode)
    assert get_settings().llm_log_enabled(direction) is expected
