"""Domain events routed by the event dispatcher."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import ConfigDict, Field, TypeAdapter

from intake.models.engagement import RecordModel


class BaseEvent(RecordModel):
    """Fields shared by every event."""

    model_config = ConfigDict(frozen=True)

    type: str
    engagement_id: str
    idempotency_key: str | None = None


class EngagementCreated(BaseEvent):
    type: Literal["engagement_created"] = "engagement_created"


class IntakeComplete(BaseEvent):
    type: Literal["intake_complete"] = "intake_complete"


class DocumentUploaded(BaseEvent):
    type: Literal["document_uploaded"] = "document_uploaded"
    document_id: str
    storage_item_id: str
    file_name: str


class DocumentAssessed(BaseEvent):
    type: Literal["document_assessed"] = "document_assessed"
    document_id: str
    document_type: str
    has_issues: bool


class StaleEngagement(BaseEvent):
    type: Literal["stale_engagement"] = "stale_engagement"


class CheckCompletion(BaseEvent):
    type: Literal["check_completion"] = "check_completion"


class UnknownEvent(BaseEvent):
    """An event whose type is not part of the vocabulary.

    Kept as a value so the dispatcher can log and drop it.
    """

    model_config = ConfigDict(frozen=True, extra="allow")


AgentEvent = Annotated[
    Union[
        EngagementCreated,
        IntakeComplete,
        DocumentUploaded,
        DocumentAssessed,
        StaleEngagement,
        CheckCompletion,
    ],
    Field(discriminator="type"),
]

EVENT_TYPES: frozenset[str] = frozenset(
    {
        "engagement_created",
        "intake_complete",
        "document_uploaded",
        "document_assessed",
        "stale_engagement",
        "check_completion",
    }
)

_event_adapter: TypeAdapter[Any] = TypeAdapter(AgentEvent)


def parse_event(payload: dict[str, Any]) -> BaseEvent:
    """Validate a raw event payload (camelCase or snake_case keys).

    Unrecognized ``type`` values produce an :class:`UnknownEvent` rather than
    an error. Recognized types with missing fields raise ``ValidationError``.
    """
    if payload.get("type") not in EVENT_TYPES:
        engagement_id = payload.get("engagementId", payload.get("engagement_id", ""))
        return UnknownEvent(type=str(payload.get("type")), engagement_id=str(engagement_id))
    return _event_adapter.validate_python(payload)


__all__ = [
    "AgentEvent",
    "BaseEvent",
    "CheckCompletion",
    "DocumentAssessed",
    "DocumentUploaded",
    "EVENT_TYPES",
    "EngagementCreated",
    "IntakeComplete",
    "StaleEngagement",
    "UnknownEvent",
    "parse_event",
]
