"""Typed records for engagements, documents, checklists and events."""

from intake.models.engagement import (
    DOCUMENT_TYPES,
    PENDING_DOCUMENT_TYPE,
    SCHEMA_VERSION,
    AgentLogEntry,
    ChecklistItem,
    Document,
    DocumentOverride,
    Engagement,
    EngagementStatus,
    FriendlyIssue,
    ItemStatus,
    ItemStatusEntry,
    Priority,
    ProcessingStatus,
    Reconciliation,
    StorageProvider,
    utcnow,
)
from intake.models.events import (
    AgentEvent,
    BaseEvent,
    CheckCompletion,
    DocumentAssessed,
    DocumentUploaded,
    EngagementCreated,
    IntakeComplete,
    StaleEngagement,
    UnknownEvent,
    parse_event,
)

__all__ = [
    # Records
    "AgentLogEntry",
    "ChecklistItem",
    "DOCUMENT_TYPES",
    "Document",
    "DocumentOverride",
    "Engagement",
    "EngagementStatus",
    "FriendlyIssue",
    "ItemStatus",
    "ItemStatusEntry",
    "PENDING_DOCUMENT_TYPE",
    "Priority",
    "ProcessingStatus",
    "Reconciliation",
    "SCHEMA_VERSION",
    "StorageProvider",
    "utcnow",
    # Events
    "AgentEvent",
    "BaseEvent",
    "CheckCompletion",
    "DocumentAssessed",
    "DocumentUploaded",
    "EngagementCreated",
    "IntakeComplete",
    "StaleEngagement",
    "UnknownEvent",
    "parse_event",
]
