"""Tests for the in-memory engagement store."""

import pytest
from factories import make_document, make_engagement

from intake.models.engagement import EngagementStatus
from intake.store import EngagementNotFoundError, InMemoryEngagementStore


class TestInMemoryEngagementStore:
    """Tests for InMemoryEngagementStore."""

    @pytest.mark.asyncio
    async def test_reads_are_detached_copies(self, store) -> None:
        """Mutating a read record does not change the store."""
        engagement = await store.find_by_id("eng-1")
        engagement.documents.append(make_document())

        assert (await store.find_by_id("eng-1")).documents == []

    @pytest.mark.asyncio
    async def test_update_replaces_named_fields(self, store) -> None:
        """Only the given fields change."""
        updated = await store.update("eng-1", reminder_count=2, status=EngagementStatus.READY)

        assert updated.reminder_count == 2
        assert updated.status is EngagementStatus.READY
        assert updated.client_name == "Jane Client"

    @pytest.mark.asyncio
    async def test_update_accepts_model_lists(self, store) -> None:
        """Lists of records are validated back into models."""
        doc = make_document()
        updated = await store.update("eng-1", documents=[doc])

        assert updated.documents[0].id == doc.id

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, store) -> None:
        """Field names outside the engagement schema raise ValueError."""
        with pytest.raises(ValueError, match="Unknown engagement fields"):
            await store.update("eng-1", colour="blue")

    @pytest.mark.asyncio
    async def test_missing_engagement(self, store) -> None:
        """Unknown ids raise EngagementNotFoundError."""
        with pytest.raises(EngagementNotFoundError):
            await store.find_by_id("nope")
        with pytest.raises(EngagementNotFoundError):
            await store.update("nope", reminder_count=1)

    @pytest.mark.asyncio
    async def test_find_by_status(self) -> None:
        """Only engagements in the requested statuses are returned."""
        store = InMemoryEngagementStore(
            [
                make_engagement("a", status=EngagementStatus.COLLECTING),
                make_engagement("b", status=EngagementStatus.INTAKE_DONE),
                make_engagement("c", status=EngagementStatus.COMPLETE),
            ]
        )

        found = await store.find_by_status({EngagementStatus.COLLECTING, EngagementStatus.INTAKE_DONE})

        assert sorted(e.id for e in found) == ["a", "b"]
        assert len(store) == 3
