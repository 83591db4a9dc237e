from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from chat_proxy.core.exceptions import PayloadTooLarge
from chat_proxy.core.logging import logger
from chat_proxy.core.rate_limit import RateLimitDecision, enforce_rate_limit
from chat_proxy.core.settings import get_settings
from chat_proxy.core.sse import EventStreamResponse
from chat_proxy.llm import load_system_prompt
from chat_proxy.providers.llm import LLMProvider, get_provider
from chat_proxy.schemas import ChatRequest, ErrorResponse
from chat_proxy.services.relay import relay_chat
from chat_proxy.services.validator import parse_body, validate_chat_payload
from chat_proxy.usage.recorder import UsageAccumulator, get_accumulator

router = APIRouter(prefix="/api", tags=["chat"])


async def _read_body(request: Request, limit: int) -> bytes:
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge(f"Request body exceeds {limit} bytes.")
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLarge(f"Request body exceeds {limit} bytes.")
    return bytes(body)


@router.post(
    "/chat",
    response_class=EventStreamResponse,
    openapi_extra={"requestBody": {"content": {"application/json": {"schema": ChatRequest.model_json_schema()}}}},
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
async def chat(
    request: Request,
    rate_limit: RateLimitDecision = Depends(enforce_rate_limit),
    provider: LLMProvider = Depends(get_provider),
    accumulator: UsageAccumulator = Depends(get_accumulator),
) -> EventStreamResponse:
    """Stream the assistant reply as Server-Sent Events.

    Frames: ``{"chunk": "..."}`` per fragment, then ``{"done": true, "usage": ...}``.
    """
    raw = await _read_body(request, get_settings().MAX_BODY_BYTES)
    message = validate_chat_payload(parse_body(raw))
    # loaded before headers go out so a bad prompt file is still a JSON error
    system_prompt = load_system_prompt()

    async def produce(channel: EventStreamResponse) -> None:
        usage = await relay_chat(
            message,
            channel,
            provider=provider,
            system_prompt=system_prompt,
            accumulator=accumulator,
        )
        request.state.token_usage = usage

    logger.debug("chat_stream_opened", extra={"message_chars": len(message)})
    return EventStreamResponse(produce, headers=rate_limit.headers())
