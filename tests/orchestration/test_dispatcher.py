"""Tests for the event dispatcher."""

from unittest.mock import AsyncMock

import pytest

from intake.models.events import (
    CheckCompletion,
    DocumentAssessed,
    DocumentUploaded,
    EngagementCreated,
    StaleEngagement,
)
from intake.orchestration.dispatcher import (
    AssessmentResult,
    EventDispatcher,
    OutreachRequest,
    ReconciliationResult,
)
from intake.orchestration.idempotency import InMemoryIdempotencyStore


class TestEventDispatcher:
    """Tests for EventDispatcher routing and chaining."""

    def _agents(
        self,
        has_issues: bool = False,
        ready: bool = False,
    ) -> tuple[AsyncMock, AsyncMock, AsyncMock, list[str]]:
        """Create agents that record the order they run in."""
        order: list[str] = []

        async def outreach_run(request):
            order.append(f"outreach:{request.trigger}")

        async def assessment_run(request):
            order.append("assessment")
            return AssessmentResult(has_issues=has_issues, document_type="W-2")

        async def reconciliation_run(request):
            order.append("reconciliation")
            return ReconciliationResult(is_ready=ready, completion_percentage=100 if ready else 50)

        outreach = AsyncMock()
        outreach.run.side_effect = outreach_run
        assessment = AsyncMock()
        assessment.run.side_effect = assessment_run
        reconciliation = AsyncMock()
        reconciliation.run.side_effect = reconciliation_run
        return outreach, assessment, reconciliation, order

    def _uploaded(self, **fields) -> DocumentUploaded:
        return DocumentUploaded(
            engagement_id="eng-1",
            document_id="doc-1",
            storage_item_id="file-1",
            file_name="w2.pdf",
            **fields,
        )

    @pytest.mark.asyncio
    async def test_upload_chains_to_completion_outreach(self) -> None:
        """A clean upload that completes the checklist runs all three agents in order."""
        outreach, assessment, reconciliation, order = self._agents(ready=True)
        dispatcher = EventDispatcher(outreach, assessment, reconciliation)

        await dispatcher.dispatch(self._uploaded())

        assert order == ["assessment", "reconciliation", "outreach:engagement_complete"]
        reconciliation_request = reconciliation.run.call_args.args[0]
        assert reconciliation_request.trigger == "document_assessed"
        assert reconciliation_request.document_type == "W-2"

    @pytest.mark.asyncio
    async def test_upload_with_issues_requests_client_fix(self) -> None:
        """Issues route to outreach and skip reconciliation."""
        outreach, assessment, reconciliation, order = self._agents(has_issues=True)
        dispatcher = EventDispatcher(outreach, assessment, reconciliation)

        await dispatcher.dispatch(self._uploaded())

        assert order == ["assessment", "outreach:document_issues"]
        reconciliation.run.assert_not_called()
        request = outreach.run.call_args.args[0]
        assert request.additional_context == {"document_id": "doc-1", "document_type": "W-2"}

    @pytest.mark.asyncio
    async def test_not_ready_sends_nothing(self) -> None:
        """Reconciliation below 100 ends the chain."""
        outreach, assessment, reconciliation, order = self._agents(ready=False)
        dispatcher = EventDispatcher(outreach, assessment, reconciliation)

        await dispatcher.dispatch(
            DocumentAssessed(engagement_id="eng-1", document_id="doc-1", document_type="W-2", has_issues=False)
        )

        assert order == ["reconciliation"]
        outreach.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_check_completion_runs_reconciliation(self) -> None:
        """check_completion reconciles and notifies when ready."""
        outreach, assessment, reconciliation, order = self._agents(ready=True)
        dispatcher = EventDispatcher(outreach, assessment, reconciliation)

        await dispatcher.dispatch(CheckCompletion(engagement_id="eng-1"))

        assert order == ["reconciliation", "outreach:engagement_complete"]
        assert reconciliation.run.call_args.args[0].trigger == "check_completion"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event",
        [EngagementCreated(engagement_id="eng-1"), StaleEngagement(engagement_id="eng-1")],
    )
    async def test_outreach_events_go_straight_to_outreach(self, event) -> None:
        """Client-communication events call only outreach."""
        outreach, assessment, reconciliation, _ = self._agents()
        dispatcher = EventDispatcher(outreach, assessment, reconciliation)

        await dispatcher.dispatch(event)

        outreach.run.assert_awaited_once_with(OutreachRequest(trigger=event.type, engagement_id="eng-1"))
        assessment.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_event_type_is_dropped(self) -> None:
        """Unknown event types call no agent and do not raise."""
        outreach, assessment, reconciliation, order = self._agents()
        dispatcher = EventDispatcher(outreach, assessment, reconciliation)

        await dispatcher.dispatch({"type": "document_deleted", "engagementId": "eng-1"})

        assert order == []

    @pytest.mark.asyncio
    async def test_raw_payload_is_validated(self) -> None:
        """camelCase dict payloads are parsed into events."""
        outreach, assessment, reconciliation, order = self._agents(has_issues=True)
        dispatcher = EventDispatcher(outreach, assessment, reconciliation)

        await dispatcher.dispatch(
            {
                "type": "document_uploaded",
                "engagementId": "eng-1",
                "documentId": "doc-1",
                "storageItemId": "file-1",
                "fileName": "w2.pdf",
            }
        )

        assert assessment.run.call_args.args[0].storage_item_id == "file-1"

    @pytest.mark.asyncio
    async def test_agent_errors_propagate(self) -> None:
        """A failing agent stops the chain and raises to the caller."""
        outreach, assessment, reconciliation, _ = self._agents()
        assessment.run.side_effect = RuntimeError("OCR down")
        dispatcher = EventDispatcher(outreach, assessment, reconciliation)

        with pytest.raises(RuntimeError, match="OCR down"):
            await dispatcher.dispatch(self._uploaded())

        reconciliation.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_idempotency_key_is_skipped(self) -> None:
        """An event whose key was already claimed is not handled again."""
        outreach, assessment, reconciliation, order = self._agents(has_issues=True)
        dispatcher = EventDispatcher(outreach, assessment, reconciliation, InMemoryIdempotencyStore())

        await dispatcher.dispatch(self._uploaded(idempotency_key="upload-1"))
        await dispatcher.dispatch(self._uploaded(idempotency_key="upload-1"))

        assert assessment.run.await_count == 1
