"""Agent audit trail helpers."""

from __future__ import annotations

from typing import Any

from intake.models.engagement import AgentLogEntry, Engagement, utcnow
from intake.store.base import EngagementStore


async def record_activity(
    store: EngagementStore,
    engagement_id: str,
    *,
    agent: str,
    trigger: str,
    outcome: str,
    document_id: str | None = None,
    touch: bool = True,
    **fields: Any,
) -> Engagement:
    """Append an agent log entry and write any extra fields in one update.

    ``touch`` bumps ``last_activity_at``, which resets the reminder clock.
    """
    engagement = await store.find_by_id(engagement_id)
    entry = AgentLogEntry(agent=agent, trigger=trigger, document_id=document_id, outcome=outcome)
    updates: dict[str, Any] = {"agent_log": [*engagement.agent_log, entry], **fields}
    if touch:
        updates["last_activity_at"] = utcnow()
    return await store.update(engagement_id, **updates)
