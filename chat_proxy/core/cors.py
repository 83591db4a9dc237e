from __future__ import annotations

from typing import Sequence

from fastapi import FastAPI
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from chat_proxy.core.errors import error_response
from chat_proxy.core.exceptions import OriginNotAllowed
from chat_proxy.core.logging import logger

ALLOWED_METHODS = ["POST", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type"]


class OriginGuardMiddleware:
    """Reject requests carrying an Origin outside the allow-list.

    Requests without an Origin header (curl, server-to-server) pass through.
    """

    def __init__(self, app: ASGIApp, allowed_origins: Sequence[str]) -> None:
        self.app = app
        self.allowed_origins = frozenset(allowed_origins)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            origin = Headers(scope=scope).get("origin")
            if origin and origin not in self.allowed_origins:
                exc = OriginNotAllowed(origin)
                logger.warning(
                    "cors_origin_rejected",
                    extra={"origin": origin, "method": scope.get("method"), "path": scope.get("path")},
                )
                response = error_response(exc)
                await response(scope, receive, send)
                return
        await self.app(scope, receive, send)


def install_cors(app: FastAPI, allowed_origins: Sequence[str]) -> None:
    origins = list(allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )
    # added last so it wraps CORSMiddleware and runs first
    app.add_middleware(OriginGuardMiddleware, allowed_origins=origins)
