from __future__ import annotations

import time
from typing import Any, Dict

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from chat_proxy.core.logging import logger
from chat_proxy.core.settings import get_settings


class AccessLogMiddleware:
    """Log one line per request once the response has fully finished.

    For event streams that is after the stream closed, so the line can carry
    the token usage the chat route leaves in ``request.state.token_usage``.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope.setdefault("state", {})
        started = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            self._log(scope, status_code, (time.perf_counter() - started) * 1000.0)

    def _log(self, scope: Scope, status_code: int, duration_ms: float) -> None:
        extra: Dict[str, Any] = {
            "event": "access",
            "method": scope.get("method"),
            "path": scope.get("path"),
            "status": status_code,
            "duration_ms": round(duration_ms, 1),
        }
        usage = scope.get("state", {}).get("token_usage")
        if usage is not None and get_settings().LOG_TOKEN_USAGE:
            extra["prompt_tokens"] = usage.prompt_tokens
            extra["completion_tokens"] = usage.completion_tokens
            extra["total_tokens"] = usage.total_tokens
        logger.info(f"{scope.get('method')} {scope.get('path')} {status_code}", extra=extra)
