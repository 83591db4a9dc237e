from __future__ import annotations

from fastapi import APIRouter

from chat_proxy.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    # uptime probe, no side effects
    return HealthResponse()
