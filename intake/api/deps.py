"""FastAPI dependency injection for the store, dispatcher and cron auth."""

import hmac
from typing import TYPE_CHECKING

from fastapi import Header, HTTPException, Request, status

from intake.core.config import settings
from intake.documents.lifecycle import DocumentLifecycle
from intake.orchestration.dispatcher import EventDispatcher
from intake.store.base import EngagementStore

if TYPE_CHECKING:
    import redis.asyncio as redis


async def get_redis(request: Request) -> "redis.Redis | None":
    """Redis connection pool from app state, if one was created."""
    return getattr(request.app.state, "redis", None)


async def get_store(request: Request) -> EngagementStore:
    return request.app.state.store


async def get_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.dispatcher


async def get_lifecycle(request: Request) -> DocumentLifecycle:
    return request.app.state.lifecycle


async def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``.

    Raises:
        HTTPException: 503 when no secret is configured, 401 on mismatch.
    """
    if not settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="CRON_SECRET is not configured",
        )
    expected = f"Bearer {settings.cron_secret}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
