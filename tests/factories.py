"""Record factories shared across test modules."""

from datetime import datetime, timedelta, timezone

from intake.models.engagement import (
    ChecklistItem,
    Document,
    Engagement,
    EngagementStatus,
    Priority,
    ProcessingStatus,
    StorageProvider,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_document(
    storage_item_id: str = "file-1",
    file_name: str = "w2.pdf",
    **fields,
) -> Document:
    """Build a document with sensible defaults."""
    return Document(storage_item_id=storage_item_id, file_name=file_name, **fields)


def make_classified(
    storage_item_id: str,
    document_type: str,
    issues: list[str] | None = None,
    **fields,
) -> Document:
    """Build a document that has finished classification."""
    return make_document(
        storage_item_id=storage_item_id,
        file_name=f"{storage_item_id}.pdf",
        document_type=document_type,
        confidence=0.9,
        processing_status=ProcessingStatus.CLASSIFIED,
        issues=issues or [],
        **fields,
    )


def make_item(
    item_id: str,
    priority: Priority = Priority.HIGH,
    expected_document_type: str | None = None,
    **fields,
) -> ChecklistItem:
    """Build a checklist item."""
    return ChecklistItem(
        id=item_id,
        title=item_id.upper(),
        priority=priority,
        expected_document_type=expected_document_type,
        **fields,
    )


def make_engagement(engagement_id: str = "eng-1", **fields) -> Engagement:
    """Build a collecting Dropbox engagement."""
    defaults = {
        "status": EngagementStatus.COLLECTING,
        "client_name": "Jane Client",
        "client_email": "jane@example.com",
        "tax_year": 2025,
        "storage_provider": StorageProvider.DROPBOX,
        "storage_folder_url": "https://www.dropbox.com/scl/fo/abc123/folder",
        "last_activity_at": NOW - timedelta(hours=1),
    }
    defaults.update(fields)
    return Engagement(id=engagement_id, **defaults)


