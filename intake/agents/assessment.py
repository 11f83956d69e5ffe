"""Assessment agent: download, extract and classify one document."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog

from intake.agents.activity import record_activity
from intake.core.logging import log_context
from intake.documents.classifier import Classifier
from intake.documents.extraction import ExtractionResult, extract_document
from intake.documents.lifecycle import (
    ClassificationOutcome,
    DocumentLifecycle,
    DocumentNotFoundError,
    TransitionNotAllowed,
    sync_options_for,
)
from intake.integrations.storage import StorageClient, get_storage_client
from intake.models.engagement import ProcessingStatus, StorageProvider
from intake.orchestration.dispatcher import AssessmentRequest, AssessmentResult
from intake.store.base import EngagementStore

logger = structlog.get_logger()

Extractor = Callable[[bytes, str], Awaitable[ExtractionResult]]


class AssessmentAgent:
    """Drives a document from ``pending`` to ``classified``.

    Any failure moves the document to ``error`` and is re-raised, so the
    dispatcher does not chain a ``document_assessed`` event for it. A step
    the document is not ready for (already classified, or reset by a retry
    while this chain was running) is re-raised without touching its state.
    """

    name = "assessment"

    def __init__(
        self,
        store: EngagementStore,
        lifecycle: DocumentLifecycle,
        classifier: Classifier,
        storage_factory: Callable[[StorageProvider], StorageClient] = get_storage_client,
        extractor: Extractor = extract_document,
    ) -> None:
        self.store = store
        self.lifecycle = lifecycle
        self.classifier = classifier
        self.storage_factory = storage_factory
        self.extractor = extractor

    async def run(self, request: AssessmentRequest) -> AssessmentResult:
        with log_context(agent=self.name, document_id=request.document_id):
            return await self._assess(request)

    async def _assess(self, request: AssessmentRequest) -> AssessmentResult:
        engagement = await self.store.find_by_id(request.engagement_id)
        if engagement.find_document(request.document_id) is None:
            raise DocumentNotFoundError(request.engagement_id, request.document_id)

        try:
            await self.lifecycle.begin(engagement.id, request.document_id, ProcessingStatus.DOWNLOADING)
            client = self.storage_factory(engagement.storage_provider)
            download = await client.download_file(
                request.storage_item_id, sync_options_for(engagement, request.file_name)
            )

            await self.lifecycle.begin(engagement.id, request.document_id, ProcessingStatus.EXTRACTING)
            extraction = await self.extractor(download.content, download.mime_type)

            await self.lifecycle.begin(engagement.id, request.document_id, ProcessingStatus.CLASSIFYING)
            classification = await self.classifier.classify(
                extraction,
                file_name=download.file_name,
                expected_tax_year=engagement.tax_year,
            )
            document = await self.lifecycle.classify(
                engagement.id,
                request.document_id,
                ClassificationOutcome(
                    document_type=classification.document_type,
                    confidence=classification.confidence,
                    tax_year=classification.tax_year,
                    issues=classification.issues,
                ),
            )
        except TransitionNotAllowed as exc:
            # Another chain owns the document; its state is left untouched.
            logger.warning(
                "assessment_superseded",
                engagement_id=request.engagement_id,
                document_id=request.document_id,
                error=str(exc),
            )
            raise
        except Exception as exc:
            logger.error(
                "assessment_failed",
                engagement_id=request.engagement_id,
                document_id=request.document_id,
                error=str(exc),
                exc_info=True,
            )
            try:
                await self.lifecycle.mark_error(request.engagement_id, request.document_id, reason=str(exc))
            except Exception:
                logger.error("assessment_mark_error_failed", document_id=request.document_id, exc_info=True)
            raise

        has_issues = bool(document.issues)
        await record_activity(
            self.store,
            request.engagement_id,
            agent=self.name,
            trigger=request.trigger,
            document_id=request.document_id,
            outcome="issues_found" if has_issues else "success",
        )
        logger.info(
            "assessment_completed",
            engagement_id=request.engagement_id,
            document_id=request.document_id,
            document_type=document.document_type,
            has_issues=has_issues,
        )
        return AssessmentResult(has_issues=has_issues, document_type=document.document_type)
