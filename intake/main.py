"""FastAPI application entry point with lifespan management."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from intake.agents import AssessmentAgent, OutreachAgent, ReconciliationAgent
from intake.api.cron import router as cron_router
from intake.api.engagements import router as engagements_router
from intake.api.health import router as health_router
from intake.api.middleware import RequestContextMiddleware
from intake.core.config import settings
from intake.core.logging import configure_logging, get_logger
from intake.core.redis import create_redis_pool
from intake.core.sentry import init_sentry
from intake.documents.classifier import LLMClassifier
from intake.documents.lifecycle import DocumentLifecycle
from intake.orchestration.background import drain
from intake.orchestration.dispatcher import EventDispatcher
from intake.orchestration.idempotency import RedisIdempotencyStore
from intake.store.base import EngagementStore
from intake.store.redis import RedisEngagementStore

logger = get_logger(__name__)

SHUTDOWN_DRAIN_SECONDS = 30.0


def build_dispatcher(
    store: EngagementStore,
    lifecycle: DocumentLifecycle,
    idempotency: RedisIdempotencyStore | None = None,
) -> EventDispatcher:
    """Wire the default agents into a dispatcher."""
    return EventDispatcher(
        outreach=OutreachAgent(store),
        assessment=AssessmentAgent(store, lifecycle, LLMClassifier()),
        reconciliation=ReconciliationAgent(store),
        idempotency=idempotency,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle resources.

    Startup:
        - Configure structured logging
        - Initialize Sentry error tracking
        - Establish Redis connection pool
        - Build the engagement store and event dispatcher

    Shutdown:
        - Wait briefly for detached event chains
        - Close Redis connections
    """
    configure_logging()
    logger.info("application_starting", environment=settings.environment)

    init_sentry()

    app.state.redis = await create_redis_pool()
    logger.info("redis_pool_created")

    app.state.store = RedisEngagementStore(app.state.redis)
    app.state.lifecycle = DocumentLifecycle(app.state.store)
    app.state.dispatcher = build_dispatcher(
        app.state.store,
        app.state.lifecycle,
        RedisIdempotencyStore(app.state.redis),
    )

    yield

    logger.info("application_shutting_down")
    await drain(timeout=SHUTDOWN_DRAIN_SECONDS)
    await app.state.redis.aclose()
    logger.info("redis_pool_closed")


app = FastAPI(
    title="Intake",
    description="Tax document intake orchestration",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)

app.include_router(health_router)
app.include_router(cron_router)
app.include_router(engagements_router)
