from __future__ import annotations

from threading import Lock
from typing import Optional

from .models import UsageStats, UsageSummary


class UsageAccumulator:
    """Process-wide token counters.

    Counters live for the lifetime of the process and start from zero on every
    restart; nothing is persisted.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._requests = 0
        self._prompt_tokens = 0
        self._completion_tokens = 0
        self._total_tokens = 0

    def record(self, summary: Optional[UsageSummary]) -> None:
        if summary is None:
            return
        with self._lock:
            self._requests += 1
            self._prompt_tokens += summary.prompt_tokens
            self._completion_tokens += summary.completion_tokens
            self._total_tokens += summary.total_tokens

    def snapshot(self) -> UsageStats:
        with self._lock:
            return UsageStats(
                totalRequests=self._requests,
                promptTokens=self._prompt_tokens,
                completionTokens=self._completion_tokens,
                totalTokens=self._total_tokens,
            )

    def reset(self) -> None:
        with self._lock:
            self._requests = 0
            self._prompt_tokens = 0
            self._completion_tokens = 0
            self._total_tokens = 0


_ACCUMULATOR = UsageAccumulator()


def get_accumulator() -> UsageAccumulator:
    return _ACCUMULATOR


def record_usage(summary: Optional[UsageSummary]) -> None:
    _ACCUMULATOR.record(summary)


def get_usage_stats() -> UsageStats:
    return _ACCUMULATOR.snapshot()


def reset_usage() -> None:
    _ACCUMULATOR.reset()
