"""Health check endpoint for infrastructure verification."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from intake.api.deps import get_redis
from intake.core.logging import get_logger
from intake.core.redis import check_redis_health

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    redis: str


@router.get("/health", response_model=HealthResponse)
async def health_check(redis_pool: Annotated[object, Depends(get_redis)]) -> HealthResponse:
    """Check Redis connectivity.

    Returns ``ok`` when Redis answers, or when the app runs on the
    in-memory store without Redis.
    """
    if redis_pool is None:
        return HealthResponse(status="ok", redis="not_configured")

    healthy = await check_redis_health(redis_pool)
    return HealthResponse(
        status="ok" if healthy else "degraded",
        redis="connected" if healthy else "disconnected",
    )
