"""Redis-backed engagement store.

Each engagement is one JSON value (camelCase, orjson-encoded) at
``intake:engagement:<id>``. A set per status, ``intake:engagements:<STATUS>``,
indexes engagements for the polling driver.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import orjson
import redis.asyncio as redis
import structlog

from intake.core.redis import redis_key
from intake.models.engagement import Engagement, EngagementStatus
from intake.store.base import EngagementNotFoundError, apply_fields

logger = structlog.get_logger()


def _record_key(engagement_id: str) -> str:
    return redis_key("engagement", engagement_id)


def _status_key(status: EngagementStatus) -> str:
    return redis_key("engagements", status.value)


class RedisEngagementStore:
    """Engagement store over a ``redis.asyncio`` client.

    Updates are read-modify-write without WATCH; two concurrent writers to
    the same engagement can lose an update.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    async def find_by_id(self, engagement_id: str) -> Engagement:
        raw = await self._redis.get(_record_key(engagement_id))
        if raw is None:
            raise EngagementNotFoundError(engagement_id)
        return Engagement.model_validate(orjson.loads(raw))

    async def update(self, engagement_id: str, **fields: Any) -> Engagement:
        current = await self.find_by_id(engagement_id)
        updated = apply_fields(current, fields)
        await self._write(updated, previous_status=current.status)
        return updated

    async def find_by_status(self, statuses: Iterable[EngagementStatus]) -> list[Engagement]:
        ids: set[str] = set()
        for status in statuses:
            ids.update(await self._redis.smembers(_status_key(status)))
        if not ids:
            return []

        ordered = sorted(ids)
        values = await self._redis.mget([_record_key(i) for i in ordered])
        engagements = []
        for engagement_id, raw in zip(ordered, values):
            if raw is None:
                logger.warning("engagement_index_stale", engagement_id=engagement_id)
                continue
            engagements.append(Engagement.model_validate(orjson.loads(raw)))
        return engagements

    async def save(self, engagement: Engagement) -> Engagement:
        raw = await self._redis.get(_record_key(engagement.id))
        previous = Engagement.model_validate(orjson.loads(raw)).status if raw else None
        await self._write(engagement, previous_status=previous)
        return engagement

    async def _write(
        self, engagement: Engagement, previous_status: EngagementStatus | None
    ) -> None:
        payload = orjson.dumps(engagement.to_json_dict())
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(_record_key(engagement.id), payload)
            if previous_status is not None and previous_status != engagement.status:
                pipe.srem(_status_key(previous_status), engagement.id)
            pipe.sadd(_status_key(engagement.status), engagement.id)
            await pipe.execute()
