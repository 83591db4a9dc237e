from __future__ import annotations

from fastapi import APIRouter, Depends

from .models import UsageStats
from .recorder import UsageAccumulator, get_accumulator

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/stats", response_model=UsageStats)
def get_stats(accumulator: UsageAccumulator = Depends(get_accumulator)) -> UsageStats:
    # in-memory snapshot, resets on restart
    return accumulator.snapshot()
