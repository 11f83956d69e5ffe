"""Engagement persistence contract."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from intake.models.engagement import Engagement, EngagementStatus


class EngagementNotFoundError(LookupError):
    """No engagement with the requested id."""

    def __init__(self, engagement_id: str):
        self.engagement_id = engagement_id
        super().__init__(f"Engagement {engagement_id} not found")


@runtime_checkable
class EngagementStore(Protocol):
    """Read/write engagements by id.

    Writes are partial and field-level: ``update`` replaces only the named
    top-level fields. There is no locking and no cross-engagement
    transaction; callers re-fetch before every read-modify-write.
    """

    async def find_by_id(self, engagement_id: str) -> Engagement:
        """Return a detached copy of the engagement.

        Raises:
            EngagementNotFoundError: If the id is unknown.
        """
        ...

    async def update(self, engagement_id: str, **fields: Any) -> Engagement:
        """Overwrite the given top-level fields and return the new record."""
        ...

    async def find_by_status(self, statuses: Iterable[EngagementStatus]) -> list[Engagement]:
        ...

    async def save(self, engagement: Engagement) -> Engagement:
        """Insert or replace a whole engagement."""
        ...


def apply_fields(engagement: Engagement, fields: dict[str, Any]) -> Engagement:
    """Return a validated copy of ``engagement`` with ``fields`` replaced.

    Raises:
        ValueError: If a field name is not an engagement attribute.
    """
    unknown = set(fields) - set(Engagement.model_fields)
    if unknown:
        raise ValueError(f"Unknown engagement fields: {', '.join(sorted(unknown))}")
    data = engagement.model_dump()
    for name, value in fields.items():
        if isinstance(value, list):
            value = [v.model_dump() if hasattr(v, "model_dump") else v for v in value]
        elif hasattr(value, "model_dump"):
            value = value.model_dump()
        data[name] = value
    return Engagement.model_validate(data)
