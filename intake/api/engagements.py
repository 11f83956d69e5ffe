"""Engagement and document actions that feed the event dispatcher."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from intake.api.deps import get_dispatcher, get_lifecycle, get_store
from intake.core.logging import get_logger
from intake.documents.issues import get_suggested_action, parse_issue
from intake.documents.lifecycle import DocumentLifecycle, DocumentNotFoundError, TransitionNotAllowed
from intake.models.engagement import DOCUMENT_TYPES, PENDING_DOCUMENT_TYPE, Document
from intake.models.events import CheckCompletion, DocumentUploaded
from intake.orchestration.background import run_in_background
from intake.orchestration.dispatcher import EventDispatcher
from intake.store.base import EngagementNotFoundError, EngagementStore

logger = get_logger(__name__)

router = APIRouter(prefix="/api/engagements", tags=["engagements"])


class QueuedResponse(BaseModel):
    queued: bool = True


class DocumentResponse(BaseModel):
    id: str
    file_name: str
    document_type: str
    processing_status: str
    approved: bool | None
    archived: bool

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        return cls(
            id=document.id,
            file_name=document.file_name,
            document_type=document.document_type,
            processing_status=document.processing_status.value,
            approved=document.approved,
            archived=document.archived,
        )


class ReclassifyRequest(BaseModel):
    document_type: str
    reason: str = ""


class ArchiveRequest(BaseModel):
    reason: str = Field(min_length=1)


class IssueResponse(BaseModel):
    severity: str
    type: str
    expected: str | None
    detected: str | None
    description: str
    suggested_action: str


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/{engagement_id}/check-completion", response_model=QueuedResponse, status_code=202)
async def check_completion(
    engagement_id: str,
    store: Annotated[EngagementStore, Depends(get_store)],
    dispatcher: Annotated[EventDispatcher, Depends(get_dispatcher)],
) -> QueuedResponse:
    """Queue a reconciliation pass for the engagement."""
    try:
        await store.find_by_id(engagement_id)
    except EngagementNotFoundError as exc:
        raise _not_found(exc) from exc

    event = CheckCompletion(engagement_id=engagement_id)
    run_in_background(lambda: dispatcher.dispatch(event), name="check_completion")
    return QueuedResponse()


@router.post(
    "/{engagement_id}/documents/{document_id}/retry",
    response_model=DocumentResponse,
    status_code=202,
)
async def retry_document(
    engagement_id: str,
    document_id: str,
    lifecycle: Annotated[DocumentLifecycle, Depends(get_lifecycle)],
    dispatcher: Annotated[EventDispatcher, Depends(get_dispatcher)],
) -> DocumentResponse:
    """Reset a failed or classified document and assess it again."""
    try:
        document = await lifecycle.retry(engagement_id, document_id, reason="manual")
    except (EngagementNotFoundError, DocumentNotFoundError) as exc:
        raise _not_found(exc) from exc
    except TransitionNotAllowed as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Document {document_id} is already pending",
        ) from exc

    event = DocumentUploaded(
        engagement_id=engagement_id,
        document_id=document.id,
        storage_item_id=document.storage_item_id,
        file_name=document.file_name,
    )
    run_in_background(lambda: dispatcher.dispatch(event), name="retry_document")
    return DocumentResponse.from_document(document)


@router.post("/{engagement_id}/documents/{document_id}/approve", response_model=DocumentResponse)
async def approve_document(
    engagement_id: str,
    document_id: str,
    lifecycle: Annotated[DocumentLifecycle, Depends(get_lifecycle)],
) -> DocumentResponse:
    try:
        document = await lifecycle.approve(engagement_id, document_id)
    except (EngagementNotFoundError, DocumentNotFoundError) as exc:
        raise _not_found(exc) from exc
    return DocumentResponse.from_document(document)


@router.post("/{engagement_id}/documents/{document_id}/reclassify", response_model=DocumentResponse)
async def reclassify_document(
    engagement_id: str,
    document_id: str,
    body: ReclassifyRequest,
    lifecycle: Annotated[DocumentLifecycle, Depends(get_lifecycle)],
) -> DocumentResponse:
    """Override the classified type. The original type is kept on the override record."""
    if body.document_type not in DOCUMENT_TYPES or body.document_type == PENDING_DOCUMENT_TYPE:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown document type: {body.document_type}",
        )
    try:
        document = await lifecycle.reclassify(engagement_id, document_id, body.document_type, body.reason)
    except (EngagementNotFoundError, DocumentNotFoundError) as exc:
        raise _not_found(exc) from exc
    return DocumentResponse.from_document(document)


@router.post("/{engagement_id}/documents/{document_id}/archive", response_model=DocumentResponse)
async def archive_document(
    engagement_id: str,
    document_id: str,
    body: ArchiveRequest,
    lifecycle: Annotated[DocumentLifecycle, Depends(get_lifecycle)],
) -> DocumentResponse:
    try:
        document = await lifecycle.archive(engagement_id, document_id, body.reason)
    except (EngagementNotFoundError, DocumentNotFoundError) as exc:
        raise _not_found(exc) from exc
    return DocumentResponse.from_document(document)


@router.get(
    "/{engagement_id}/documents/{document_id}/issues",
    response_model=list[IssueResponse],
)
async def document_issues(
    engagement_id: str,
    document_id: str,
    store: Annotated[EngagementStore, Depends(get_store)],
) -> list[IssueResponse]:
    """Parsed issues with a suggested action for each."""
    try:
        engagement = await store.find_by_id(engagement_id)
    except EngagementNotFoundError as exc:
        raise _not_found(exc) from exc
    document = engagement.find_document(document_id)
    if document is None:
        raise _not_found(DocumentNotFoundError(engagement_id, document_id))

    responses = []
    for raw in document.issues:
        parsed = parse_issue(raw)
        responses.append(
            IssueResponse(
                severity=parsed.severity,
                type=parsed.type,
                expected=parsed.expected,
                detected=parsed.detected,
                description=parsed.description,
                suggested_action=get_suggested_action(parsed),
            )
        )
    return responses
