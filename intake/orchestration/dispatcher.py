"""Event dispatcher chaining the assessment, reconciliation and outreach agents.

Routes each domain event to exactly one agent and, depending on the agent's
result, dispatches the follow-up step in the same call:

    document_uploaded -> assessment -> document_assessed
    document_assessed (issues)    -> outreach(document_issues)
    document_assessed (no issues) -> reconciliation -> outreach(engagement_complete) if ready
    check_completion              -> reconciliation -> outreach(engagement_complete) if ready
    engagement_created / intake_complete / stale_engagement -> outreach

There is no queue and no persistence here. Agent exceptions propagate to the
caller; writes an agent already committed are not rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import structlog

from intake.core.logging import log_context
from intake.models.events import (
    BaseEvent,
    CheckCompletion,
    DocumentAssessed,
    DocumentUploaded,
    EngagementCreated,
    IntakeComplete,
    StaleEngagement,
    parse_event,
)
from intake.orchestration.idempotency import IdempotencyStore

logger = structlog.get_logger()

OutreachTrigger = Literal[
    "engagement_created",
    "intake_complete",
    "document_issues",
    "stale_engagement",
    "engagement_complete",
]
AssessmentTrigger = Literal["document_uploaded", "reupload_after_issue"]
ReconciliationTrigger = Literal["document_assessed", "check_completion", "manual_reconciliation"]


@dataclass(frozen=True)
class OutreachRequest:
    trigger: OutreachTrigger
    engagement_id: str
    additional_context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AssessmentRequest:
    trigger: AssessmentTrigger
    engagement_id: str
    document_id: str
    storage_item_id: str
    file_name: str


@dataclass(frozen=True)
class AssessmentResult:
    has_issues: bool
    document_type: str


@dataclass(frozen=True)
class ReconciliationRequest:
    trigger: ReconciliationTrigger
    engagement_id: str
    document_id: str | None = None
    document_type: str | None = None


@dataclass(frozen=True)
class ReconciliationResult:
    is_ready: bool
    completion_percentage: int = 0


class OutreachRunner(Protocol):
    async def run(self, request: OutreachRequest) -> None: ...


class AssessmentRunner(Protocol):
    async def run(self, request: AssessmentRequest) -> AssessmentResult: ...


class ReconciliationRunner(Protocol):
    async def run(self, request: ReconciliationRequest) -> ReconciliationResult: ...


class EventDispatcher:
    """Routes events to agents and chains follow-up steps.

    Usage:
        dispatcher = EventDispatcher(outreach, assessment, reconciliation)
        await dispatcher.dispatch(DocumentUploaded(...))

    Args:
        outreach: Client-facing communication agent.
        assessment: Extracts and classifies one document.
        reconciliation: Matches documents to the checklist.
        idempotency: Optional durable store; events with an
            ``idempotency_key`` already claimed are skipped.
    """

    def __init__(
        self,
        outreach: OutreachRunner,
        assessment: AssessmentRunner,
        reconciliation: ReconciliationRunner,
        idempotency: IdempotencyStore | None = None,
    ) -> None:
        self.outreach = outreach
        self.assessment = assessment
        self.reconciliation = reconciliation
        self.idempotency = idempotency

    async def dispatch(self, event: BaseEvent | dict[str, Any]) -> None:
        """Handle one event and everything it chains to.

        Raw dict payloads are validated first. Unrecognized event types are
        logged and dropped.
        """
        if isinstance(event, dict):
            event = parse_event(event)

        with log_context(engagement_id=event.engagement_id):
            if event.idempotency_key and self.idempotency is not None:
                if not await self.idempotency.claim(event.idempotency_key):
                    logger.info(
                        "event_duplicate_skipped",
                        event_type=event.type,
                        idempotency_key=event.idempotency_key,
                    )
                    return

            logger.info("event_received", event_type=event.type, engagement_id=event.engagement_id)
            await self._route(event)

    async def _route(self, event: BaseEvent) -> None:
        if isinstance(event, (EngagementCreated, IntakeComplete, StaleEngagement)):
            await self.outreach.run(OutreachRequest(trigger=event.type, engagement_id=event.engagement_id))
        elif isinstance(event, DocumentUploaded):
            await self._on_document_uploaded(event)
        elif isinstance(event, DocumentAssessed):
            await self._on_document_assessed(event)
        elif isinstance(event, CheckCompletion):
            result = await self.reconciliation.run(
                ReconciliationRequest(trigger="check_completion", engagement_id=event.engagement_id)
            )
            await self._notify_if_ready(event.engagement_id, result)
        else:
            logger.warning("event_unknown_type", event_type=event.type, engagement_id=event.engagement_id)

    async def _on_document_uploaded(self, event: DocumentUploaded) -> None:
        result = await self.assessment.run(
            AssessmentRequest(
                trigger="document_uploaded",
                engagement_id=event.engagement_id,
                document_id=event.document_id,
                storage_item_id=event.storage_item_id,
                file_name=event.file_name,
            )
        )
        await self.dispatch(
            DocumentAssessed(
                engagement_id=event.engagement_id,
                document_id=event.document_id,
                document_type=result.document_type,
                has_issues=result.has_issues,
            )
        )

    async def _on_document_assessed(self, event: DocumentAssessed) -> None:
        if event.has_issues:
            await self.outreach.run(
                OutreachRequest(
                    trigger="document_issues",
                    engagement_id=event.engagement_id,
                    additional_context={
                        "document_id": event.document_id,
                        "document_type": event.document_type,
                    },
                )
            )
            return

        result = await self.reconciliation.run(
            ReconciliationRequest(
                trigger="document_assessed",
                engagement_id=event.engagement_id,
                document_id=event.document_id,
                document_type=event.document_type,
            )
        )
        await self._notify_if_ready(event.engagement_id, result)

    async def _notify_if_ready(self, engagement_id: str, result: ReconciliationResult) -> None:
        if not result.is_ready:
            return
        logger.info("engagement_ready", engagement_id=engagement_id, completion=result.completion_percentage)
        await self.outreach.run(OutreachRequest(trigger="engagement_complete", engagement_id=engagement_id))


__all__ = [
    "AssessmentRequest",
    "AssessmentResult",
    "AssessmentRunner",
    "EventDispatcher",
    "OutreachRequest",
    "OutreachRunner",
    "ReconciliationRequest",
    "ReconciliationResult",
    "ReconciliationRunner",
]
