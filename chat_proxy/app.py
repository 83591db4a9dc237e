from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from chat_proxy.core.access_log import AccessLogMiddleware
from chat_proxy.core.cors import install_cors
from chat_proxy.core.errors import install_error_handlers
from chat_proxy.core.exceptions import StartupConfigurationError
from chat_proxy.core.http_client import close_http_client, init_http_client
from chat_proxy.core.logging import logger
from chat_proxy.core.settings import get_settings
from chat_proxy.routers.chat import router as chat_router
from chat_proxy.routers.sys import router as sys_router
from chat_proxy.usage.router import router as usage_router


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            settings.validate_startup()
        except StartupConfigurationError as exc:
            logger.critical("startup_configuration_error", extra={"error": str(exc)})
            raise
        await init_http_client()
        logger.info(
            "server_started",
            extra={
                "port": settings.PORT,
                "model": settings.OPENAI_MODEL,
                "allowed_origins": settings.allowed_origins(),
            },
        )
        try:
            yield
        finally:
            await close_http_client()

    app = FastAPI(title="Portfolio Chat Proxy", version="1.0.0", lifespan=lifespan)

    install_error_handlers(app)

    app.include_router(sys_router)
    app.include_router(chat_router)
    app.include_router(usage_router)

    install_cors(app, settings.allowed_origins())
    app.add_middleware(AccessLogMiddleware)
    return app
