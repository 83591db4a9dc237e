from __future__ import annotations

import json
from functools import partial
from typing import Any, Awaitable, Callable, Mapping, Optional

import anyio
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from chat_proxy.core.logging import logger
from chat_proxy.core.settings import get_settings
from chat_proxy.schemas import error_event

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # nginx
}

STREAM_ERROR_MESSAGE = "Stream error occurred."


def encode_event(payload: Mapping[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False, separators=(',', ':'))}\n\n".encode("utf-8")


class ChannelClosed(Exception):
    """Raised when writing to an event stream that is closed or whose client left."""


class EventStreamResponse(Response):
    """Text/event-stream response driven by a producer coroutine.

    Headers are sent before the producer starts, so the client is connected
    before any upstream output exists. The producer writes frames through
    ``send_event``. Once ``headers_committed`` is set, a failing producer can
    no longer be turned into a JSON error: a single ``{"error": ...}`` frame is
    written instead and the stream is closed. A client disconnect cancels the
    producer.
    """

    media_type = "text/event-stream"

    def __init__(
        self,
        producer: Callable[["EventStreamResponse"], Awaitable[Any]],
        *,
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        merged = dict(SSE_HEADERS)
        merged.update(headers or {})
        self.producer = producer
        self.status_code = status_code
        self.background = None
        self.init_headers(merged)
        self.headers_committed = False
        self.closed = False
        self.client_gone = False
        self._send: Optional[Send] = None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self._send = send
        await send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers,
            }
        )
        self.headers_committed = True

        async with anyio.create_task_group() as task_group:

            async def run_and_cancel(func: Callable[[], Awaitable[None]]) -> None:
                await func()
                task_group.cancel_scope.cancel()

            task_group.start_soon(run_and_cancel, partial(self._listen_for_disconnect, receive))
            await run_and_cancel(self._run_producer)

    async def send_event(self, payload: Mapping[str, Any]) -> None:
        if self.closed or self._send is None:
            raise ChannelClosed("event stream is closed")
        try:
            await self._send({"type": "http.response.body", "body": encode_event(payload), "more_body": True})
        except OSError as exc:
            self.client_gone = True
            self.closed = True
            raise ChannelClosed("client disconnected") from exc

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.client_gone or self._send is None:
            return
        try:
            await self._send({"type": "http.response.body", "body": b"", "more_body": False})
        except OSError:
            self.client_gone = True

    async def _listen_for_disconnect(self, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                if not self.closed:
                    self.client_gone = True
                    logger.info("event_stream_client_disconnected")
                break

    async def _run_producer(self) -> None:
        try:
            await self.producer(self)
        except ChannelClosed:
            logger.info("event_stream_abandoned", extra={"client_gone": self.client_gone})
        except Exception as exc:
            if not self.headers_committed:
                raise
            await self._fail_in_band(exc)
        finally:
            await self.close()

    async def _fail_in_band(self, exc: Exception) -> None:
        production = get_settings().is_production()
        logger.error(
            "event_stream_failed",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=None if production else exc,
        )
        try:
            await self.send_event(error_event(STREAM_ERROR_MESSAGE))
        except ChannelClosed:
            pass
