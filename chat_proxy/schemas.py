from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from chat_proxy.usage.models import UsageSummary


# ----- Chat endpoint DTOs -----

class ChatRequest(BaseModel):
    message: str = Field(..., description="Visitor message, 1-1000 characters after trimming")


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"


# ----- Stream events -----

@dataclass(frozen=True)
class StreamDelta:
    """One parsed upstream chunk: a text fragment, a usage summary, or both."""

    text: str = ""
    usage: Optional[UsageSummary] = None


def chunk_event(text: str) -> Dict[str, Any]:
    return {"chunk": text}


def done_event(usage: Optional[UsageSummary]) -> Dict[str, Any]:
    return {"done": True, "usage": usage.model_dump() if usage is not None else None}


def error_event(message: str) -> Dict[str, Any]:
    return {"error": message}
