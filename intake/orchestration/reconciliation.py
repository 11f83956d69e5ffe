"""Checklist reconciliation: item statuses and weighted completion.

Pure functions, no I/O. Matching documents to checklist items is done by the
caller; this module only turns matches into statuses and a percentage.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from intake.documents.issues import has_errors
from intake.models.engagement import (
    ChecklistItem,
    Document,
    ItemStatus,
    ItemStatusEntry,
    Priority,
    Reconciliation,
    utcnow,
)

PRIORITY_WEIGHTS: Final[dict[Priority, float]] = {
    Priority.HIGH: 0.50,
    Priority.MEDIUM: 0.35,
    Priority.LOW: 0.15,
}

RECEIVED_CREDIT: Final[float] = 0.5


@dataclass
class ReconciliationOutcome:
    """Updated checklist plus the snapshot to persist."""

    checklist: list[ChecklistItem]
    reconciliation: Reconciliation

    @property
    def completion_percentage(self) -> int:
        return self.reconciliation.completion_percentage


def _is_good(document: Document) -> bool:
    """Counts toward completion: approved, or free of error-severity issues."""
    return document.approved is True or not has_errors(document.issues)


def item_status(documents: Sequence[Document]) -> ItemStatus:
    if not documents:
        return ItemStatus.PENDING
    if any(_is_good(d) for d in documents):
        return ItemStatus.COMPLETE
    return ItemStatus.RECEIVED


def compute_completion(checklist: Sequence[ChecklistItem]) -> int:
    """Priority-weighted completion, normalized so all-complete is exactly 100.

    ``received`` items earn half their weight. An empty checklist is 0.
    """
    total = 0.0
    earned = 0.0
    for item in checklist:
        weight = PRIORITY_WEIGHTS[Priority(item.priority)]
        total += weight
        if item.status is ItemStatus.COMPLETE:
            earned += weight
        elif item.status is ItemStatus.RECEIVED:
            earned += weight * RECEIVED_CREDIT
    if total == 0:
        return 0
    return round(earned / total * 100)


def reconcile(
    checklist: Sequence[ChecklistItem],
    documents: Sequence[Document],
    matches: Mapping[str, Sequence[str]] | None = None,
    now: datetime | None = None,
) -> ReconciliationOutcome:
    """Recompute every item status and the completion snapshot.

    Args:
        checklist: Current checklist items. Not mutated.
        documents: All engagement documents. Archived ones never count.
        matches: Item id to matched document ids. Defaults to each item's
            own ``document_ids``.
        now: Timestamp for the snapshot.
    """
    active = {d.id: d for d in documents if not d.archived}
    matches = matches if matches is not None else {i.id: i.document_ids for i in checklist}

    updated: list[ChecklistItem] = []
    issues: list[str] = []
    seen_issue_docs: set[str] = set()

    for item in checklist:
        matched_ids = [doc_id for doc_id in matches.get(item.id, ()) if doc_id in active]
        matched = [active[doc_id] for doc_id in matched_ids]
        updated.append(
            item.model_copy(
                update={"status": item_status(matched), "document_ids": matched_ids},
                deep=True,
            )
        )
        for doc in matched:
            if doc.id in seen_issue_docs:
                continue
            seen_issue_docs.add(doc.id)
            issues.extend(f"{doc.file_name}: {issue}" for issue in doc.issues)

    reconciliation = Reconciliation(
        completion_percentage=compute_completion(updated),
        item_statuses=[
            ItemStatusEntry(item_id=i.id, status=i.status, document_ids=list(i.document_ids))
            for i in updated
        ],
        issues=issues,
        ran_at=now or utcnow(),
    )
    return ReconciliationOutcome(checklist=updated, reconciliation=reconciliation)


def is_ready(
    checklist: Sequence[ChecklistItem],
    documents: Sequence[Document],
    reconciliation: Reconciliation | None = None,
) -> bool:
    """Ready for the accountant: fully complete and no unresolved document issues."""
    completion = (
        reconciliation.completion_percentage
        if reconciliation is not None
        else compute_completion(checklist)
    )
    if completion != 100:
        return False
    return not any(d.issues and d.approved is not True for d in documents if not d.archived)


__all__ = [
    "PRIORITY_WEIGHTS",
    "ReconciliationOutcome",
    "compute_completion",
    "is_ready",
    "item_status",
    "reconcile",
]
