"""Scheduled polling: storage sync, stuck-document retry and reminders.

Entry points for the cron routes. Each engagement is processed in its own
detached task; one engagement failing never stops the others, and callers
get a summary without waiting for event chains to finish.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from intake.core.config import settings
from intake.core.logging import log_context
from intake.documents.lifecycle import DocumentLifecycle, TransitionNotAllowed, find_retry_candidates
from intake.integrations.storage import StorageClient, get_storage_client
from intake.models.engagement import (
    Engagement,
    EngagementStatus,
    ProcessingStatus,
    StorageProvider,
    utcnow,
)
from intake.models.events import DocumentUploaded, StaleEngagement
from intake.orchestration.background import run_all_in_background, run_in_background
from intake.orchestration.dispatcher import EventDispatcher
from intake.store.base import EngagementStore

logger = structlog.get_logger()

POLLABLE_STATUSES: frozenset[EngagementStatus] = frozenset(
    {EngagementStatus.INTAKE_DONE, EngagementStatus.COLLECTING}
)

StorageFactory = Callable[[StorageProvider], StorageClient]


@dataclass
class PollSummary:
    queued: int = 0
    retried_stuck: int = 0
    engagement_ids: list[str] = field(default_factory=list)


def can_sync(engagement: Engagement) -> bool:
    """Dropbox can sync from the shared URL alone; other providers need a folder id."""
    if engagement.storage_provider is StorageProvider.DROPBOX:
        return bool(engagement.storage_folder_id or engagement.storage_folder_url)
    return bool(engagement.storage_folder_id)


async def _park_for_retry(
    lifecycle: DocumentLifecycle, engagement_id: str, document_id: str, reason: str
) -> None:
    try:
        await lifecycle.fail_if_pending(engagement_id, document_id, reason=reason)
    except Exception:
        logger.error("poll_document_park_failed", document_id=document_id, exc_info=True)


async def poll_engagement(
    engagement: Engagement,
    lifecycle: DocumentLifecycle,
    dispatcher: EventDispatcher,
    storage_factory: StorageFactory = get_storage_client,
) -> int:
    """Sync one engagement and dispatch ``document_uploaded`` per new file.

    Errors are logged, not raised. A document whose chain fails does not
    stop the rest of the batch.

    Returns:
        Number of new documents whose chain completed.
    """
    if not can_sync(engagement):
        logger.debug("poll_skipped_unconfigured", engagement_id=engagement.id)
        return 0

    with log_context(engagement_id=engagement.id):
        try:
            client = storage_factory(engagement.storage_provider)
            new_documents = await lifecycle.sync_engagement(engagement, client)
        except Exception as exc:
            logger.error(
                "poll_engagement_failed", engagement_id=engagement.id, error=str(exc), exc_info=True
            )
            return 0

        dispatched = 0
        for document in new_documents:
            try:
                await dispatcher.dispatch(
                    DocumentUploaded(
                        engagement_id=engagement.id,
                        document_id=document.id,
                        storage_item_id=document.storage_item_id,
                        file_name=document.file_name,
                    )
                )
            except TransitionNotAllowed:
                logger.warning(
                    "poll_document_superseded", engagement_id=engagement.id, document_id=document.id
                )
                continue
            except Exception as exc:
                logger.error(
                    "poll_document_dispatch_failed",
                    engagement_id=engagement.id,
                    document_id=document.id,
                    error=str(exc),
                    exc_info=True,
                )
                # Park in error so retry_stuck_documents picks it up.
                await _park_for_retry(lifecycle, engagement.id, document.id, str(exc))
                continue
            dispatched += 1

        if new_documents:
            logger.info(
                "poll_documents_dispatched",
                engagement_id=engagement.id,
                count=dispatched,
                failed=len(new_documents) - dispatched,
                provider=engagement.storage_provider.value,
            )
        return dispatched


async def retry_stuck_documents(
    engagements: list[Engagement],
    lifecycle: DocumentLifecycle,
    dispatcher: EventDispatcher,
    now: datetime | None = None,
    stuck_after: timedelta | None = None,
) -> int:
    """Reset errored or stuck documents to pending and re-dispatch them detached.

    Returns:
        Number of documents reset.
    """
    stuck_after = stuck_after or timedelta(minutes=settings.stuck_document_minutes)
    retried = 0
    for engagement in engagements:
        for document in find_retry_candidates(engagement.documents, now, stuck_after):
            reason = "error" if document.processing_status is ProcessingStatus.ERROR else "stuck"
            try:
                await lifecycle.retry(engagement.id, document.id, reason=reason)
            except Exception as exc:
                logger.error(
                    "document_retry_failed",
                    engagement_id=engagement.id,
                    document_id=document.id,
                    error=str(exc),
                    exc_info=True,
                )
                continue
            retried += 1
            event = DocumentUploaded(
                engagement_id=engagement.id,
                document_id=document.id,
                storage_item_id=document.storage_item_id,
                file_name=document.file_name,
            )
            run_in_background(lambda event=event: dispatcher.dispatch(event), name="retry_document")
            logger.info(
                "document_retry_dispatched",
                engagement_id=engagement.id,
                document_id=document.id,
                reason=reason,
            )
    return retried


async def poll_all(
    store: EngagementStore,
    lifecycle: DocumentLifecycle,
    dispatcher: EventDispatcher,
    storage_factory: StorageFactory = get_storage_client,
    now: datetime | None = None,
) -> PollSummary:
    """Queue a detached poll for every collecting engagement, then retry stuck documents."""
    engagements = await store.find_by_status(POLLABLE_STATUSES)

    run_all_in_background(
        [
            (lambda e=e: poll_engagement(e, lifecycle, dispatcher, storage_factory))
            for e in engagements
        ],
        name="poll_engagement",
    )
    retried = await retry_stuck_documents(engagements, lifecycle, dispatcher, now)

    logger.info("poll_cycle_queued", queued=len(engagements), retried_stuck=retried)
    return PollSummary(
        queued=len(engagements),
        retried_stuck=retried,
        engagement_ids=[e.id for e in engagements],
    )


async def check_reminders(
    store: EngagementStore,
    dispatcher: EventDispatcher,
    now: datetime | None = None,
) -> list[str]:
    """Dispatch ``stale_engagement`` for inactive engagements still under the reminder cap.

    Returns:
        Ids of the engagements reminded.
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=settings.reminder_after_days)
    engagements = await store.find_by_status(POLLABLE_STATUSES)

    stale = [
        e
        for e in engagements
        if e.last_activity_at < cutoff and e.reminder_count < settings.max_reminders
    ]
    for engagement in stale:
        event = StaleEngagement(engagement_id=engagement.id)
        run_in_background(lambda event=event: dispatcher.dispatch(event), name="stale_engagement")

    logger.info("reminders_dispatched", count=len(stale))
    return [e.id for e in stale]


__all__ = [
    "POLLABLE_STATUSES",
    "PollSummary",
    "can_sync",
    "check_reminders",
    "poll_all",
    "poll_engagement",
    "retry_stuck_documents",
]
