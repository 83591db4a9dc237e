from __future__ import annotations

from typing import AsyncIterator, Optional, Protocol

from chat_proxy.llm import stream_chat_completion
from chat_proxy.schemas import StreamDelta


class LLMProvider(Protocol):
    def stream_chat(
        self,
        system_prompt: str,
        user_content: str,
        *,
        model: Optional[str] = None,
    ) -> AsyncIterator[StreamDelta]: ...


class OpenAIProvider:
    """OpenAI-compatible chat completions; the base URL decides the actual vendor."""

    def stream_chat(
        self,
        system_prompt: str,
        user_content: str,
        *,
        model: Optional[str] = None,
    ) -> AsyncIterator[StreamDelta]:
        return stream_chat_completion(system_prompt, user_content, model=model)


def get_provider() -> LLMProvider:
    return OpenAIProvider()
