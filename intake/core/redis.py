"""Redis connection pool shared by the engagement store and idempotency keys."""

import redis.asyncio as redis

from intake.core.config import settings
from intake.core.logging import get_logger

logger = get_logger(__name__)

KEY_NAMESPACE = "intake"


def redis_key(*parts: str) -> str:
    """Build a namespaced Redis key, e.g. ``intake:engagement:<id>``."""
    return ":".join((KEY_NAMESPACE, *parts))


async def create_redis_pool(url: str | None = None) -> redis.Redis:
    """Create Redis connection pool.

    Usage in lifespan:
        app.state.redis = await create_redis_pool()
        yield
        await app.state.redis.aclose()

    Args:
        url: Connection URL override. Defaults to ``settings.redis_url``.

    Returns:
        Redis connection pool returning ``str`` values.
    """
    return redis.Redis.from_url(
        url or settings.redis_url,
        decode_responses=True,
        max_connections=20,
    )


async def check_redis_health(pool: redis.Redis) -> bool:
    """Return True if Redis answers a ping; failures are logged, not raised."""
    try:
        await pool.ping()
        return True
    except Exception as e:
        logger.exception("redis_health_check_failed", error=str(e))
        return False
