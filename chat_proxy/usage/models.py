from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field


class UsageSummary(BaseModel):
    """Token accounting for one completed upstream call."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    @classmethod
    def from_upstream(cls, raw: Optional[Mapping[str, Any]]) -> Optional["UsageSummary"]:
        if not isinstance(raw, Mapping):
            return None
        return cls(
            prompt_tokens=int(raw.get("prompt_tokens") or 0),
            completion_tokens=int(raw.get("completion_tokens") or 0),
            total_tokens=int(raw.get("total_tokens") or 0),
        )


class UsageStats(BaseModel):
    totalRequests: int = 0
    promptTokens: int = 0
    completionTokens: int = 0
    totalTokens: int = 0
