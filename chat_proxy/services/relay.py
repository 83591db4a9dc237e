from __future__ import annotations

from contextlib import aclosing
from typing import Any, Mapping, Optional, Protocol

from chat_proxy.providers.llm import LLMProvider
from chat_proxy.schemas import chunk_event, done_event
from chat_proxy.usage.models import UsageSummary
from chat_proxy.usage.recorder import UsageAccumulator


class EventChannel(Protocol):
    async def send_event(self, payload: Mapping[str, Any]) -> None: ...

    async def close(self) -> None: ...


async def relay_chat(
    message: str,
    channel: EventChannel,
    *,
    provider: LLMProvider,
    system_prompt: str,
    accumulator: UsageAccumulator,
) -> Optional[UsageSummary]:
    """Forward one upstream completion to ``channel`` as chunk frames plus a done frame.

    Each non-empty fragment becomes its own frame in arrival order. Usage is
    recorded only once the upstream stream has completed; an exception or a
    cancellation before that leaves the accumulator untouched.
    """
    usage: Optional[UsageSummary] = None
    async with aclosing(provider.stream_chat(system_prompt, message)) as stream:
        async for delta in stream:
            if delta.text:
                await channel.send_event(chunk_event(delta.text))
            if delta.usage is not None:
                usage = delta.usage

    try:
        await channel.send_event(done_event(usage))
        await channel.close()
    finally:
        accumulator.record(usage)
    return usage
