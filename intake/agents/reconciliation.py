"""Reconciliation agent: match documents to the checklist and detect readiness."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import structlog

from intake.agents.activity import record_activity
from intake.core.logging import log_context
from intake.models.engagement import ChecklistItem, Document, EngagementStatus, ProcessingStatus
from intake.orchestration.dispatcher import ReconciliationRequest, ReconciliationResult
from intake.orchestration.reconciliation import is_ready, reconcile
from intake.store.base import EngagementStore

logger = structlog.get_logger()

Matcher = Callable[[Sequence[ChecklistItem], Sequence[Document]], dict[str, list[str]]]


def match_by_expected_type(
    checklist: Sequence[ChecklistItem], documents: Sequence[Document]
) -> dict[str, list[str]]:
    """Match classified documents to items whose expected type equals theirs.

    Documents already linked to an item stay linked.
    """
    matches: dict[str, list[str]] = {}
    for item in checklist:
        ids = list(item.document_ids)
        if item.expected_document_type:
            for doc in documents:
                if (
                    doc.processing_status is ProcessingStatus.CLASSIFIED
                    and doc.document_type == item.expected_document_type
                    and doc.id not in ids
                ):
                    ids.append(doc.id)
        matches[item.id] = ids
    return matches


class ReconciliationAgent:
    """Recomputes checklist statuses and completion for one engagement.

    Moves the engagement to ``READY`` the first time it becomes ready; an
    engagement already ``READY`` reports ready without another transition.
    """

    name = "reconciliation"

    def __init__(self, store: EngagementStore, matcher: Matcher = match_by_expected_type) -> None:
        self.store = store
        self.matcher = matcher

    async def run(self, request: ReconciliationRequest) -> ReconciliationResult:
        with log_context(agent=self.name):
            return await self._reconcile(request)

    async def _reconcile(self, request: ReconciliationRequest) -> ReconciliationResult:
        engagement = await self.store.find_by_id(request.engagement_id)
        outcome = reconcile(
            engagement.checklist,
            engagement.documents,
            self.matcher(engagement.checklist, engagement.documents),
        )
        ready = is_ready(outcome.checklist, engagement.documents, outcome.reconciliation)

        fields: dict[str, object] = {
            "checklist": outcome.checklist,
            "reconciliation": outcome.reconciliation,
        }
        already_ready = engagement.status in (EngagementStatus.READY, EngagementStatus.COMPLETE)
        if ready and not already_ready:
            fields["status"] = EngagementStatus.READY

        await record_activity(
            self.store,
            request.engagement_id,
            agent=self.name,
            trigger=request.trigger,
            document_id=request.document_id,
            outcome="ready" if ready else f"completion_{outcome.completion_percentage}",
            **fields,
        )
        logger.info(
            "reconciliation_completed",
            engagement_id=request.engagement_id,
            completion=outcome.completion_percentage,
            is_ready=ready,
            transitioned=ready and not already_ready,
        )
        return ReconciliationResult(
            is_ready=ready,
            completion_percentage=outcome.completion_percentage,
        )
