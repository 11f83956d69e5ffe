"""Pytest configuration and shared fixtures for tests."""

from unittest.mock import AsyncMock

import pytest
from factories import make_engagement

from intake.documents.lifecycle import DocumentLifecycle
from intake.models.engagement import Engagement
from intake.store.memory import InMemoryEngagementStore


@pytest.fixture
def engagement() -> Engagement:
    """Default engagement with no documents."""
    return make_engagement()


@pytest.fixture
def store(engagement: Engagement) -> InMemoryEngagementStore:
    """In-memory store seeded with the default engagement."""
    return InMemoryEngagementStore([engagement])


@pytest.fixture
def lifecycle(store: InMemoryEngagementStore) -> DocumentLifecycle:
    """Document lifecycle bound to the in-memory store."""
    return DocumentLifecycle(store)


@pytest.fixture
def mock_dispatcher() -> AsyncMock:
    """Dispatcher stand-in recording dispatched events."""
    return AsyncMock()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis connection that succeeds.

    Returns:
        AsyncMock configured to simulate healthy Redis.
    """
    redis_mock = AsyncMock()
    redis_mock.ping.return_value = True
    return redis_mock


@pytest.fixture
def mock_redis_failing() -> AsyncMock:
    """Create a mock Redis connection that fails.

    Returns:
        AsyncMock configured to raise exception on ping.
    """
    redis_mock = AsyncMock()
    redis_mock.ping.side_effect = Exception("Redis connection refused")
    return redis_mock
