"""Document lifecycle: processing state machine and sync-time bookkeeping.

Provides declarative per-document state transitions with callbacks that
mutate the bound :class:`Document`, plus the controller that applies them
against the engagement store (re-fetching before every write).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

import structlog
from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from intake.documents.issues import to_friendly_issues
from intake.integrations.storage import StorageClient, StorageFile, SyncOptions
from intake.models.engagement import (
    PENDING_DOCUMENT_TYPE,
    Document,
    DocumentOverride,
    Engagement,
    EngagementStatus,
    ProcessingStatus,
    utcnow,
)

if TYPE_CHECKING:
    from intake.store.base import EngagementStore

logger = structlog.get_logger()

DEFAULT_STUCK_AFTER = timedelta(minutes=5)


class DocumentNotFoundError(LookupError):
    """Document id not present in the engagement."""

    def __init__(self, engagement_id: str, document_id: str):
        self.engagement_id = engagement_id
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found in engagement {engagement_id}")


@dataclass
class ClassificationOutcome:
    """Fields written to a document when classification finishes."""

    document_type: str
    confidence: float
    tax_year: int | None = None
    issues: list[str] = field(default_factory=list)


class DocumentStateMachine(StateMachine):
    """State machine for document processing.

    States match the ProcessingStatus enum:
    - pending: placeholder created, awaiting assessment
    - downloading / extracting / classifying: working states
    - classified: assessment finished (retry-eligible)
    - error: a step failed (retry-eligible, not permanently terminal)

    Transitions:
    - start_download: pending -> downloading
    - start_extraction: downloading -> extracting
    - start_classification: extracting -> classifying
    - finish: classifying -> classified
    - fail: any non-error state -> error
    - retry: error/classified/working -> pending
    """

    pending = State(initial=True, value=ProcessingStatus.PENDING)
    downloading = State(value=ProcessingStatus.DOWNLOADING)
    extracting = State(value=ProcessingStatus.EXTRACTING)
    classifying = State(value=ProcessingStatus.CLASSIFYING)
    classified = State(value=ProcessingStatus.CLASSIFIED)
    error = State(value=ProcessingStatus.ERROR)

    start_download = pending.to(downloading)
    start_extraction = downloading.to(extracting)
    start_classification = extracting.to(classifying)
    finish = classifying.to(classified)
    fail = (
        pending.to(error)
        | downloading.to(error)
        | extracting.to(error)
        | classifying.to(error)
        | classified.to(error)
    )
    retry = (
        error.to(pending)
        | classified.to(pending)
        | downloading.to(pending)
        | extracting.to(pending)
        | classifying.to(pending)
    )

    def __init__(self, document: Document) -> None:
        """Bind the machine to a document, starting from its current status."""
        self.document = document
        super().__init__(start_value=document.processing_status)

    @property
    def status(self) -> ProcessingStatus:
        return ProcessingStatus(self.current_state.value)

    def on_start_download(self) -> None:
        self.document.processing_status = ProcessingStatus.DOWNLOADING
        self.document.processing_started_at = utcnow()
        logger.info("document_download_started", document_id=self.document.id)

    def on_start_extraction(self) -> None:
        self.document.processing_status = ProcessingStatus.EXTRACTING
        logger.info("document_extraction_started", document_id=self.document.id)

    def on_start_classification(self) -> None:
        self.document.processing_status = ProcessingStatus.CLASSIFYING
        logger.info("document_classification_started", document_id=self.document.id)

    def on_finish(self, outcome: ClassificationOutcome) -> None:
        """Record classification results.

        Args:
            outcome: Type, confidence, tax year and issues to store
        """
        doc = self.document
        doc.processing_status = ProcessingStatus.CLASSIFIED
        doc.document_type = outcome.document_type
        doc.confidence = outcome.confidence
        doc.tax_year = outcome.tax_year
        doc.issues = list(outcome.issues)
        doc.issue_details = to_friendly_issues(doc.issues) if doc.issues else None
        doc.classified_at = utcnow()
        doc.processing_started_at = None
        logger.info(
            "document_classified",
            document_id=doc.id,
            document_type=doc.document_type,
            confidence=doc.confidence,
            issue_count=len(doc.issues),
        )

    def on_fail(self, reason: str = "") -> None:
        self.document.processing_status = ProcessingStatus.ERROR
        self.document.processing_started_at = None
        logger.warning("document_failed", document_id=self.document.id, reason=reason)

    def on_retry(self, reason: str = "manual") -> None:
        """Reset classification state. Approval, override and archive fields are kept."""
        doc = self.document
        doc.processing_status = ProcessingStatus.PENDING
        doc.document_type = PENDING_DOCUMENT_TYPE
        doc.confidence = None
        doc.issues = []
        doc.issue_details = None
        doc.classified_at = None
        doc.processing_started_at = None
        logger.info("document_retry", document_id=doc.id, reason=reason)


_STEP_EVENTS: dict[ProcessingStatus, str] = {
    ProcessingStatus.DOWNLOADING: "start_download",
    ProcessingStatus.EXTRACTING: "start_extraction",
    ProcessingStatus.CLASSIFYING: "start_classification",
}


def merge_new_files(documents: Sequence[Document], files: Iterable[StorageFile]) -> list[Document]:
    """Create placeholders for listed files not yet tracked.

    Deleted entries, files whose id is already a ``storage_item_id`` in
    ``documents``, and repeats within ``files`` itself are skipped.
    """
    seen = {d.storage_item_id for d in documents}
    placeholders: list[Document] = []
    for file in files:
        if file.deleted or file.id in seen:
            continue
        seen.add(file.id)
        placeholders.append(Document.placeholder(file.name, file.id))
    return placeholders


def find_retry_candidates(
    documents: Iterable[Document],
    now: datetime | None = None,
    stuck_after: timedelta = DEFAULT_STUCK_AFTER,
) -> list[Document]:
    """Documents in ``error``, or stuck in a working state past ``stuck_after``."""
    now = now or utcnow()
    cutoff = now - stuck_after
    candidates = []
    for doc in documents:
        if doc.archived:
            continue
        if doc.processing_status is ProcessingStatus.ERROR:
            candidates.append(doc)
        elif (
            doc.is_working
            and doc.processing_started_at is not None
            and doc.processing_started_at < cutoff
        ):
            candidates.append(doc)
    return candidates


def sync_options_for(engagement: Engagement, file_name: str | None = None) -> SyncOptions:
    return SyncOptions(
        drive_id=engagement.storage_drive_id,
        shared_link_url=engagement.storage_folder_url,
        file_name=file_name,
    )


class DocumentLifecycle:
    """Applies document transitions against the engagement store.

    Every operation re-fetches the engagement, mutates one document through
    :class:`DocumentStateMachine`, and writes the document list back.
    """

    def __init__(self, store: EngagementStore) -> None:
        self.store = store

    async def sync_engagement(self, engagement: Engagement, client: StorageClient) -> list[Document]:
        """Sync the engagement's folder and persist placeholders for new files.

        Returns:
            The placeholders created, in listing order.
        """
        result = await client.sync_folder(
            engagement.storage_folder_id or "",
            engagement.storage_page_token,
            sync_options_for(engagement),
        )

        current = await self.store.find_by_id(engagement.id)
        new_documents = merge_new_files(current.documents, result.files)

        fields: dict[str, object] = {}
        if result.next_checkpoint is not None:
            fields["storage_page_token"] = result.next_checkpoint
        if new_documents:
            fields["documents"] = [*current.documents, *new_documents]
            fields["status"] = EngagementStatus.COLLECTING
        if fields:
            await self.store.update(engagement.id, **fields)

        logger.info(
            "engagement_synced",
            engagement_id=engagement.id,
            listed=len(result.files),
            new_documents=len(new_documents),
        )
        return new_documents

    async def _apply(
        self,
        engagement_id: str,
        document_id: str,
        action: Callable[[DocumentStateMachine], None],
    ) -> Document:
        engagement = await self.store.find_by_id(engagement_id)
        document = engagement.find_document(document_id)
        if document is None:
            raise DocumentNotFoundError(engagement_id, document_id)
        action(DocumentStateMachine(document))
        await self.store.update(engagement_id, documents=engagement.documents)
        return document

    async def _edit(
        self,
        engagement_id: str,
        document_id: str,
        action: Callable[[Document], None],
    ) -> Document:
        engagement = await self.store.find_by_id(engagement_id)
        document = engagement.find_document(document_id)
        if document is None:
            raise DocumentNotFoundError(engagement_id, document_id)
        action(document)
        await self.store.update(engagement_id, documents=engagement.documents)
        return document

    async def begin(self, engagement_id: str, document_id: str, step: ProcessingStatus) -> Document:
        """Enter a working step (downloading, extracting or classifying).

        Raises:
            ValueError: If ``step`` is not a working status.
            TransitionNotAllowed: If the document is not in the preceding step.
        """
        event = _STEP_EVENTS.get(ProcessingStatus(step))
        if event is None:
            raise ValueError(f"{step} is not a working step")
        return await self._apply(engagement_id, document_id, lambda sm: sm.send(event))

    async def classify(
        self, engagement_id: str, document_id: str, outcome: ClassificationOutcome
    ) -> Document:
        return await self._apply(engagement_id, document_id, lambda sm: sm.finish(outcome=outcome))

    async def mark_error(self, engagement_id: str, document_id: str, reason: str = "") -> Document:
        """Move a document to ``error``. A document already in error is left as is."""

        def fail(sm: DocumentStateMachine) -> None:
            if sm.status is not ProcessingStatus.ERROR:
                sm.fail(reason=reason)

        return await self._apply(engagement_id, document_id, fail)

    async def fail_if_pending(self, engagement_id: str, document_id: str, reason: str = "") -> Document:
        """Move a document that never started processing to ``error``. Other states are left as is."""

        def fail(sm: DocumentStateMachine) -> None:
            if sm.status is ProcessingStatus.PENDING:
                sm.fail(reason=reason)

        return await self._apply(engagement_id, document_id, fail)

    async def retry(self, engagement_id: str, document_id: str, reason: str = "manual") -> Document:
        """Reset a document to ``pending`` for another assessment."""
        return await self._apply(engagement_id, document_id, lambda sm: sm.retry(reason=reason))

    async def approve(self, engagement_id: str, document_id: str) -> Document:
        def approve(doc: Document) -> None:
            doc.approved = True
            doc.approved_at = utcnow()

        document = await self._edit(engagement_id, document_id, approve)
        logger.info("document_approved", engagement_id=engagement_id, document_id=document_id)
        return document

    async def reclassify(
        self, engagement_id: str, document_id: str, new_type: str, reason: str = ""
    ) -> Document:
        """Accountant override of the document type. Implies approval."""

        def override(doc: Document) -> None:
            original = doc.override.original_type if doc.override else doc.document_type
            doc.override = DocumentOverride(original_type=original, reason=reason)
            doc.document_type = new_type
            doc.approved = True
            doc.approved_at = utcnow()

        document = await self._edit(engagement_id, document_id, override)
        logger.info(
            "document_reclassified",
            engagement_id=engagement_id,
            document_id=document_id,
            document_type=new_type,
        )
        return document

    async def archive(self, engagement_id: str, document_id: str, reason: str) -> Document:
        """Mark a document superseded. Documents are never deleted."""

        def archive(doc: Document) -> None:
            doc.archived = True
            doc.archived_at = utcnow()
            doc.archived_reason = reason

        document = await self._edit(engagement_id, document_id, archive)
        logger.info("document_archived", engagement_id=engagement_id, document_id=document_id, reason=reason)
        return document


__all__ = [
    "ClassificationOutcome",
    "DEFAULT_STUCK_AFTER",
    "DocumentLifecycle",
    "DocumentNotFoundError",
    "DocumentStateMachine",
    "TransitionNotAllowed",
    "find_retry_candidates",
    "merge_new_files",
    "sync_options_for",
]
