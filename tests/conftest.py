import os

os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("FRONTEND_URL", "http://localhost:5173, https://portfolio.example.com")

import json
from typing import Iterable, List, Optional

import pytest

from chat_proxy import llm
from chat_proxy.core.exceptions import UpstreamFailure
from chat_proxy.core.rate_limit import reset_rate_limiter
from chat_proxy.core.settings import get_settings
from chat_proxy.schemas import StreamDelta
from chat_proxy.usage import reset_usage


@pytest.fixture(autouse=True)
def reset_process_state():
    get_settings.cache_clear()
    reset_usage()
    reset_rate_limiter()
    llm.reload_prompts()
    yield
    get_settings.cache_clear()
    reset_usage()
    reset_rate_limiter()
    llm.reload_prompts()


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeProvider:
    """Replays canned deltas, optionally failing once ``fail_at`` deltas were sent."""

    def __init__(self, deltas: Iterable[StreamDelta] = (), *, fail_at: Optional[int] = None) -> None:
        self.deltas = list(deltas)
        self.fail_at = fail_at
        self.calls: List[tuple] = []
        self.closed = False

    async def stream_chat(self, system_prompt, user_content, *, model=None):
        self.calls.append((system_prompt, user_content))
        try:
            for index, delta in enumerate(self.deltas):
                if self.fail_at == index:
                    raise UpstreamFailure("upstream_error status=500 body=boom")
                yield delta
            if self.fail_at is not None and self.fail_at >= len(self.deltas):
                raise UpstreamFailure("upstream_error status=500 body=boom")
        finally:
            self.closed = True


def parse_frames(body: str) -> List[dict]:
    frames = []
    for block in body.split("\n\n"):
        if not block.strip():
            continue
        assert block.startswith("data: "), block
        frames.append(json.loads(block[len("data: "):]))
    return frames
