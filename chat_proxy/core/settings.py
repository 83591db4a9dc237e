from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_proxy.core.exceptions import StartupConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    # Upstream provider
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Generation configuration
    LLM_MAX_TOKENS: int = 512
    LLM_TEMPERATURE: float = 0.7
    SYSTEM_PROMPT_FILE: Optional[str] = None

    # Serving
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    APP_ENV: str = "development"
    FRONTEND_URL: Optional[str] = Field(default=None, description="Comma separated allow-list of origins")

    # Abuse controls
    RATE_LIMIT_MAX: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    TRUSTED_PROXY_HOPS: int = 1
    MAX_BODY_BYTES: int = 10 * 1024

    # Debug / logging
    LOG_LEVEL: str = "INFO"
    LOG_PRETTY: bool = False
    LLM_LOG_MODE: str = "off"  # off | input | output | both
    LOG_TOKEN_USAGE: bool = True

    def allowed_origins(self) -> List[str]:
        raw = (self.FRONTEND_URL or "").strip()
        origins: List[str] = []
        for token in raw.split(","):
            candidate = token.strip()
            if candidate and candidate not in origins:
                origins.append(candidate)
        return origins

    def chat_completions_url(self) -> str:
        return f"{self.OPENAI_BASE_URL.rstrip('/')}/chat/completions"

    def is_production(self) -> bool:
        return (self.APP_ENV or "").strip().lower() == "production"

    def llm_log_enabled(self, direction: str) -> bool:
        mode = (self.LLM_LOG_MODE or "off").strip().lower()
        return mode in (direction, "both")

    def validate_startup(self) -> None:
        if not (self.OPENAI_API_KEY or "").strip():
            raise StartupConfigurationError("OPENAI_API_KEY is not set. Check your .env file.")
        if not self.allowed_origins():
            raise StartupConfigurationError("FRONTEND_URL must list at least one allowed origin.")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # reads from env by default
