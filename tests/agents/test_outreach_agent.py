"""Tests for the outreach agent."""

from unittest.mock import AsyncMock

import pytest
from factories import NOW, make_classified, make_engagement, make_item

from intake.agents import OutreachAgent
from intake.models.engagement import ItemStatus
from intake.orchestration.dispatcher import OutreachRequest
from intake.store.memory import InMemoryEngagementStore

WRONG_YEAR = "[ERROR:wrong_year:2025:2024] Document is from 2024"


class TestOutreachAgent:
    """Tests for OutreachAgent.run."""

    @pytest.mark.asyncio
    async def test_completion_notifies_client_and_accountant(self, store) -> None:
        """engagement_complete sends two notifications."""
        notifier = AsyncMock()

        await OutreachAgent(store, notifier).run(
            OutreachRequest(trigger="engagement_complete", engagement_id="eng-1")
        )

        templates = [c.args[0].template for c in notifier.send.call_args_list]
        assert templates == ["complete", "accountant_notification"]
        engagement = await store.find_by_id("eng-1")
        assert engagement.agent_log[-1].outcome == "sent:complete,accountant_notification"

    @pytest.mark.asyncio
    async def test_reminder_increments_count_and_lists_missing(self) -> None:
        """stale_engagement bumps reminder_count and resets the activity clock."""
        store = InMemoryEngagementStore(
            [
                make_engagement(
                    reminder_count=1,
                    last_activity_at=NOW,
                    checklist=[
                        make_item("w2", status=ItemStatus.COMPLETE),
                        make_item("k1", status=ItemStatus.PENDING),
                    ],
                )
            ]
        )
        notifier = AsyncMock()

        await OutreachAgent(store, notifier).run(
            OutreachRequest(trigger="stale_engagement", engagement_id="eng-1")
        )

        notification = notifier.send.call_args.args[0]
        assert notification.template == "reminder"
        assert notification.recipient == "jane@example.com"
        assert notification.context["missing_items"] == [{"id": "k1", "title": "K1"}]
        engagement = await store.find_by_id("eng-1")
        assert engagement.reminder_count == 2
        assert engagement.last_activity_at > NOW

    @pytest.mark.asyncio
    async def test_document_issues_include_file_details(self) -> None:
        """document_issues carries the document's name and issues."""
        doc = make_classified("w2", "W-2", [WRONG_YEAR])
        store = InMemoryEngagementStore([make_engagement(documents=[doc])])
        notifier = AsyncMock()

        await OutreachAgent(store, notifier).run(
            OutreachRequest(
                trigger="document_issues",
                engagement_id="eng-1",
                additional_context={"document_id": doc.id, "document_type": "W-2"},
            )
        )

        context = notifier.send.call_args.args[0].context
        assert context["file_name"] == "w2.pdf"
        assert context["issues"] == [WRONG_YEAR]
        assert (await store.find_by_id("eng-1")).agent_log[-1].document_id == doc.id

    @pytest.mark.asyncio
    async def test_default_notifier_logs(self, store) -> None:
        """Without a notifier the agent still records its activity."""
        await OutreachAgent(store).run(OutreachRequest(trigger="engagement_created", engagement_id="eng-1"))

        assert (await store.find_by_id("eng-1")).agent_log[-1].outcome == "sent:welcome"
