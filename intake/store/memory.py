"""Process-local engagement store for tests and single-process runs."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from intake.models.engagement import Engagement, EngagementStatus
from intake.store.base import EngagementNotFoundError, apply_fields


class InMemoryEngagementStore:
    """Dict-backed store. Every read and write copies the record."""

    def __init__(self, engagements: Iterable[Engagement] = ()) -> None:
        self._records: dict[str, Engagement] = {}
        for engagement in engagements:
            self._records[engagement.id] = engagement.model_copy(deep=True)

    async def find_by_id(self, engagement_id: str) -> Engagement:
        try:
            return self._records[engagement_id].model_copy(deep=True)
        except KeyError:
            raise EngagementNotFoundError(engagement_id) from None

    async def update(self, engagement_id: str, **fields: Any) -> Engagement:
        current = self._records.get(engagement_id)
        if current is None:
            raise EngagementNotFoundError(engagement_id)
        updated = apply_fields(current, fields)
        self._records[engagement_id] = updated
        return updated.model_copy(deep=True)

    async def find_by_status(self, statuses: Iterable[EngagementStatus]) -> list[Engagement]:
        wanted = set(statuses)
        return [e.model_copy(deep=True) for e in self._records.values() if e.status in wanted]

    async def save(self, engagement: Engagement) -> Engagement:
        self._records[engagement.id] = engagement.model_copy(deep=True)
        return engagement

    def __len__(self) -> int:
        return len(self._records)
