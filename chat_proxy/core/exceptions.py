from __future__ import annotations

from typing import Dict, Optional


class ProxyError(Exception):
    """Base for errors reported to the client as ``{"error": message}``."""

    status_code = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.headers = dict(headers or {})


class InvalidInput(ProxyError):
    status_code = 400


class OriginNotAllowed(ProxyError):
    status_code = 403

    def __init__(self, origin: str):
        super().__init__(f"CORS: origin '{origin}' is not allowed")
        self.origin = origin


class NotFound(ProxyError):
    status_code = 404

    def __init__(self, message: str = "Route not found"):
        super().__init__(message)


class PayloadTooLarge(ProxyError):
    status_code = 413


class RateLimited(ProxyError):
    status_code = 429


class UpstreamFailure(ProxyError):
    """The model provider call failed or broke off mid-stream."""

    status_code = 502


class StartupConfigurationError(RuntimeError):
    """Required configuration is missing; the process must not serve requests."""
