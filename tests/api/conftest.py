"""Fixtures for API tests against the ASGI app."""

from collections.abc import AsyncIterator, Iterator
from unittest.mock import AsyncMock

import httpx
import pytest

from intake.core.config import settings
from intake.documents.lifecycle import DocumentLifecycle
from intake.main import app
from intake.store.memory import InMemoryEngagementStore


@pytest.fixture
def app_state(store: InMemoryEngagementStore, mock_dispatcher: AsyncMock) -> Iterator[None]:
    """Install the in-memory store and a mock dispatcher on app state.

    The lifespan is not run by ASGITransport, so state is set directly.
    """
    app.state.redis = None
    app.state.store = store
    app.state.lifecycle = DocumentLifecycle(store)
    app.state.dispatcher = mock_dispatcher
    yield
    for name in ("redis", "store", "lifecycle", "dispatcher"):
        delattr(app.state, name)


@pytest.fixture
async def client(app_state) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client bound to the app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def cron_secret(monkeypatch) -> str:
    """Configure the cron bearer secret."""
    monkeypatch.setattr(settings, "cron_secret", "s3cret")
    return "s3cret"
