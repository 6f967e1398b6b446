"""
Service discovery endpoints — liveness probe and API banner.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from acquisitions.core.config import settings

health_router = APIRouter(tags=["health"])

_STARTED_AT = time.monotonic()


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime: float


class ApiInfoResponse(BaseModel):
    message: str
    version: str


@health_router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe; never rate limited."""
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc),
        uptime=round(time.monotonic() - _STARTED_AT, 3),
    )


async def api_info() -> ApiInfoResponse:
    """Banner for GET /api; registered on the admitted API router."""
    return ApiInfoResponse(message="Welcome to the Acquisitions API", version=settings.VERSION)
