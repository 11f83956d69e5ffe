"""Engagement, document and checklist records.

Engagements are persisted as JSON documents. These models are the single
typed schema for that JSON: fields are snake_case in Python and camelCase on
the wire, so records written by earlier versions load unchanged. Missing or
legacy field shapes are defaulted explicitly in validators rather than
guessed at call sites.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION: Final[int] = 2
"""Version 1 records predate ``processingStatus`` and archive fields."""

PENDING_DOCUMENT_TYPE: Final[str] = "PENDING"

DOCUMENT_TYPES: Final[tuple[str, ...]] = (
    "W-2",
    "1099-NEC",
    "1099-MISC",
    "1099-INT",
    "K-1",
    "RECEIPT",
    "STATEMENT",
    "OTHER",
    PENDING_DOCUMENT_TYPE,
)


def utcnow() -> datetime:
    """Timezone-aware current time, used for every persisted timestamp."""
    return datetime.now(timezone.utc)


class EngagementStatus(str, Enum):
    """Lifecycle of one client's collection case."""

    PENDING = "PENDING"
    INTAKE_DONE = "INTAKE_DONE"
    COLLECTING = "COLLECTING"
    READY = "READY"
    COMPLETE = "COMPLETE"


class StorageProvider(str, Enum):
    """Remote folder providers."""

    DROPBOX = "dropbox"
    GOOGLE_DRIVE = "google-drive"
    SHAREPOINT = "sharepoint"


class ProcessingStatus(str, Enum):
    """Per-document processing state."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    CLASSIFYING = "classifying"
    CLASSIFIED = "classified"
    ERROR = "error"


WORKING_STATUSES: Final[frozenset[ProcessingStatus]] = frozenset(
    {
        ProcessingStatus.DOWNLOADING,
        ProcessingStatus.EXTRACTING,
        ProcessingStatus.CLASSIFYING,
    }
)


class Priority(str, Enum):
    """Checklist item priority tier."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ItemStatus(str, Enum):
    """Checklist item collection status."""

    PENDING = "pending"
    RECEIVED = "received"
    COMPLETE = "complete"


class RecordModel(BaseModel):
    """Base for persisted records: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    def to_json_dict(self) -> dict:
        """Serialize to the persisted camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


class FriendlyIssue(RecordModel):
    """Cached client-facing rendering of one encoded issue string."""

    original: str
    friendly_message: str
    suggested_action: str
    severity: str = "warning"


class DocumentOverride(RecordModel):
    """Accountant override of the classified document type."""

    original_type: str
    reason: str


class Document(RecordModel):
    """One file discovered in the engagement's remote folder.

    ``storage_item_id`` is the dedup key against remote listings and must be
    unique within an engagement. Documents are never deleted, only archived.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    file_name: str
    storage_item_id: str
    document_type: str = PENDING_DOCUMENT_TYPE
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    tax_year: int | None = None
    issues: list[str] = Field(default_factory=list)
    issue_details: list[FriendlyIssue] | None = None
    classified_at: datetime | None = None
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    processing_started_at: datetime | None = None
    approved: bool | None = None
    approved_at: datetime | None = None
    override: DocumentOverride | None = None
    archived: bool = False
    archived_at: datetime | None = None
    archived_reason: str | None = None

    @field_validator("processing_status", mode="before")
    @classmethod
    def default_processing_status(cls, value: object) -> object:
        """Default records written before processing status existed."""
        if value is None:
            return ProcessingStatus.PENDING
        if value == "in_progress":
            # Older writers used a single working state for every step.
            return ProcessingStatus.EXTRACTING
        return value

    @field_validator("issues", mode="before")
    @classmethod
    def default_issues(cls, value: object) -> object:
        return [] if value is None else value

    @classmethod
    def placeholder(cls, file_name: str, storage_item_id: str) -> Document:
        """Create the record written the moment a remote file is observed."""
        return cls(file_name=file_name, storage_item_id=storage_item_id)

    @property
    def is_working(self) -> bool:
        return self.processing_status in WORKING_STATUSES


class ChecklistItem(RecordModel):
    """One expected document category."""

    id: str
    title: str
    why: str = ""
    priority: Priority = Priority.MEDIUM
    status: ItemStatus = ItemStatus.PENDING
    document_ids: list[str] = Field(default_factory=list)
    expected_document_type: str | None = None


class ItemStatusEntry(RecordModel):
    """Snapshot of one checklist item inside a reconciliation pass."""

    item_id: str
    status: ItemStatus
    document_ids: list[str] = Field(default_factory=list)


class Reconciliation(RecordModel):
    """Result of one wholesale reconciliation pass."""

    completion_percentage: int = Field(ge=0, le=100)
    item_statuses: list[ItemStatusEntry] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    ran_at: datetime = Field(default_factory=utcnow)


class AgentLogEntry(RecordModel):
    """Audit trail line appended by each agent run."""

    timestamp: datetime = Field(default_factory=utcnow)
    agent: str
    trigger: str
    document_id: str | None = None
    outcome: str


class Engagement(RecordModel):
    """One client's tax-document collection case."""

    id: str
    status: EngagementStatus = EngagementStatus.PENDING
    client_name: str = ""
    client_email: str | None = None
    tax_year: int | None = None
    storage_provider: StorageProvider = StorageProvider.DROPBOX
    storage_folder_url: str | None = None
    storage_folder_id: str | None = None
    storage_drive_id: str | None = None
    storage_page_token: str | None = None
    documents: list[Document] = Field(default_factory=list)
    checklist: list[ChecklistItem] = Field(default_factory=list)
    reconciliation: Reconciliation | None = None
    reminder_count: int = 0
    last_activity_at: datetime = Field(default_factory=utcnow)
    agent_log: list[AgentLogEntry] = Field(default_factory=list)
    schema_version: int = SCHEMA_VERSION

    @field_validator("storage_provider", mode="before")
    @classmethod
    def default_storage_provider(cls, value: object) -> object:
        return StorageProvider.DROPBOX if value in (None, "") else value

    @field_validator("documents", "checklist", "agent_log", mode="before")
    @classmethod
    def default_lists(cls, value: object) -> object:
        return [] if value is None else value

    def find_document(self, document_id: str) -> Document | None:
        """Return the document with ``document_id``, if present."""
        return next((d for d in self.documents if d.id == document_id), None)

    @property
    def storage_item_ids(self) -> set[str]:
        return {d.storage_item_id for d in self.documents}
