"""Engagement persistence."""

from intake.store.base import EngagementNotFoundError, EngagementStore
from intake.store.memory import InMemoryEngagementStore
from intake.store.redis import RedisEngagementStore

__all__ = [
    "EngagementNotFoundError",
    "EngagementStore",
    "InMemoryEngagementStore",
    "RedisEngagementStore",
]
