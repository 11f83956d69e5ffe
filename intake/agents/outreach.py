"""Outreach agent: client and accountant notifications.

Maps each outreach trigger to a notification template and hands it to a
:class:`Notifier`. Message bodies are the notifier's concern.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Final, Protocol

import structlog

from intake.agents.activity import record_activity
from intake.core.logging import log_context
from intake.models.engagement import Engagement, ItemStatus
from intake.orchestration.dispatcher import OutreachRequest
from intake.store.base import EngagementStore

logger = structlog.get_logger()

TEMPLATES: Final[dict[str, tuple[str, ...]]] = {
    "engagement_created": ("welcome",),
    "intake_complete": ("storage_instructions",),
    "document_issues": ("document_issue",),
    "stale_engagement": ("reminder",),
    "engagement_complete": ("complete", "accountant_notification"),
}


@dataclass(frozen=True)
class Notification:
    template: str
    engagement_id: str
    recipient: str | None
    context: dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    async def send(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Records notifications as structured log events instead of sending them."""

    async def send(self, notification: Notification) -> None:
        logger.info(
            "notification_sent",
            template=notification.template,
            engagement_id=notification.engagement_id,
            has_recipient=notification.recipient is not None,
        )


def _missing_items(engagement: Engagement) -> list[dict[str, str]]:
    return [
        {"id": item.id, "title": item.title}
        for item in engagement.checklist
        if item.status is not ItemStatus.COMPLETE
    ]


class OutreachAgent:
    """Sends the notifications for an outreach trigger and records the activity."""

    name = "outreach"

    def __init__(self, store: EngagementStore, notifier: Notifier | None = None) -> None:
        self.store = store
        self.notifier = notifier or LoggingNotifier()

    async def run(self, request: OutreachRequest) -> None:
        with log_context(agent=self.name):
            await self._run(request)

    async def _run(self, request: OutreachRequest) -> None:
        engagement = await self.store.find_by_id(request.engagement_id)
        templates = TEMPLATES.get(request.trigger)
        if templates is None:
            logger.warning("outreach_unknown_trigger", trigger=request.trigger)
            return

        context = {
            "client_name": engagement.client_name,
            "tax_year": engagement.tax_year,
            **request.additional_context,
        }
        if request.trigger in ("stale_engagement", "engagement_complete"):
            context["missing_items"] = _missing_items(engagement)
        if request.trigger == "document_issues":
            document = engagement.find_document(str(request.additional_context.get("document_id")))
            if document is not None:
                context["file_name"] = document.file_name
                context["issues"] = list(document.issues)

        for template in templates:
            await self.notifier.send(
                Notification(
                    template=template,
                    engagement_id=engagement.id,
                    recipient=engagement.client_email,
                    context=context,
                )
            )

        fields: dict[str, Any] = {}
        if request.trigger == "stale_engagement":
            fields["reminder_count"] = engagement.reminder_count + 1

        await record_activity(
            self.store,
            engagement.id,
            agent=self.name,
            trigger=request.trigger,
            document_id=request.additional_context.get("document_id"),
            outcome="sent:" + ",".join(templates),
            **fields,
        )
