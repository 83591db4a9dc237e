from __future__ import annotations

import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import Request

from chat_proxy.core.exceptions import RateLimited
from chat_proxy.core.logging import logger
from chat_proxy.core.settings import get_settings

RATE_LIMIT_MESSAGE = "Too many requests — please try again in a few minutes."

_PRUNE_THRESHOLD = 10000


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> Dict[str, str]:
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(max(0, math.ceil(self.reset_after))),
        }
        if not self.allowed:
            headers["Retry-After"] = headers["RateLimit-Reset"]
        return headers


class FixedWindowRateLimiter:
    """Counts hits per key in fixed windows that start at the key's first hit."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_requests = int(max_requests)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = Lock()

    def hit(self, key: str) -> RateLimitDecision:
        with self._lock:
            now = self._clock()
            count, reset_at = self._windows.get(key, (0, now + self.window_seconds))
            if now >= reset_at:
                count, reset_at = 0, now + self.window_seconds
            count += 1
            self._windows[key] = (count, reset_at)
            if len(self._windows) > _PRUNE_THRESHOLD:
                self._prune(now)

        return RateLimitDecision(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_after=reset_at - now,
        )

    def _prune(self, now: float) -> None:
        expired: List[str] = [k for k, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()


_LIMITER: Optional[FixedWindowRateLimiter] = None


def get_rate_limiter() -> FixedWindowRateLimiter:
    global _LIMITER
    if _LIMITER is None:
        settings = get_settings()
        _LIMITER = FixedWindowRateLimiter(settings.RATE_LIMIT_MAX, settings.RATE_LIMIT_WINDOW_SECONDS)
    return _LIMITER


def reset_rate_limiter() -> None:
    global _LIMITER
    _LIMITER = None


def client_ip(request: Request, trusted_hops: int) -> str:
    """Resolve the caller address, trusting ``trusted_hops`` reverse proxies.

    With one trusted hop the right-most X-Forwarded-For entry wins; with zero
    the socket peer is used.
    """
    peer = request.client.host if request.client else "unknown"
    forwarded = [a.strip() for a in request.headers.get("x-forwarded-for", "").split(",") if a.strip()]
    chain = [peer] + list(reversed(forwarded))
    index = min(max(int(trusted_hops), 0), len(chain) - 1)
    return chain[index]


def enforce_rate_limit(request: Request) -> RateLimitDecision:
    settings = get_settings()
    ip = client_ip(request, settings.TRUSTED_PROXY_HOPS)
    decision = get_rate_limiter().hit(ip)
    if not decision.allowed:
        logger.warning("rate_limited", extra={"client_ip": ip, "path": request.url.path})
        raise RateLimited(RATE_LIMIT_MESSAGE, headers=decision.headers())
    return decision
