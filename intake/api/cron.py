"""Scheduled polling endpoints, called by an external scheduler."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from intake.api.deps import get_dispatcher, get_lifecycle, get_store, verify_cron_secret
from intake.core.logging import get_logger
from intake.documents.lifecycle import DocumentLifecycle
from intake.orchestration.dispatcher import EventDispatcher
from intake.orchestration.poller import check_reminders, poll_all
from intake.store.base import EngagementStore

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["cron"],
    dependencies=[Depends(verify_cron_secret)],
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PollStorageResponse(CamelModel):
    queued: int
    retried_stuck: int


class CheckRemindersResponse(CamelModel):
    checked: int
    engagement_ids: list[str]


@router.get("/poll-storage", response_model=PollStorageResponse, response_model_by_alias=True)
async def poll_storage(
    store: Annotated[EngagementStore, Depends(get_store)],
    lifecycle: Annotated[DocumentLifecycle, Depends(get_lifecycle)],
    dispatcher: Annotated[EventDispatcher, Depends(get_dispatcher)],
) -> PollStorageResponse:
    """Queue a storage sync for every collecting engagement.

    Returns immediately; the resulting event chains run in the background.
    """
    summary = await poll_all(store, lifecycle, dispatcher)
    return PollStorageResponse(queued=summary.queued, retried_stuck=summary.retried_stuck)


@router.get("/check-reminders", response_model=CheckRemindersResponse, response_model_by_alias=True)
async def check_reminders_route(
    store: Annotated[EngagementStore, Depends(get_store)],
    dispatcher: Annotated[EventDispatcher, Depends(get_dispatcher)],
) -> CheckRemindersResponse:
    """Dispatch reminders for inactive engagements."""
    engagement_ids = await check_reminders(store, dispatcher)
    return CheckRemindersResponse(checked=len(engagement_ids), engagement_ids=engagement_ids)
