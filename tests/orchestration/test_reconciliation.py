"""Tests for checklist reconciliation math."""

from factories import NOW, make_classified, make_item

from intake.models.engagement import ItemStatus, Priority
from intake.orchestration.reconciliation import (
    compute_completion,
    is_ready,
    item_status,
    reconcile,
)

WRONG_YEAR = "[ERROR:wrong_year:2025:2024] Document is from 2024"
LOW_CONFIDENCE = "[WARNING:low_confidence::] Unclear scan"


class TestComputeCompletion:
    """Tests for compute_completion."""

    def test_empty_checklist_is_zero(self) -> None:
        """No items means nothing to complete."""
        assert compute_completion([]) == 0

    def test_half_of_two_high_items(self) -> None:
        """Two high items with one complete is 50."""
        checklist = [
            make_item("w2", status=ItemStatus.COMPLETE),
            make_item("1099", status=ItemStatus.PENDING),
        ]
        assert compute_completion(checklist) == 50

    def test_all_complete_is_exactly_100(self) -> None:
        """Mixed priorities all complete normalize to 100."""
        checklist = [
            make_item("a", Priority.HIGH, status=ItemStatus.COMPLETE),
            make_item("b", Priority.MEDIUM, status=ItemStatus.COMPLETE),
            make_item("c", Priority.LOW, status=ItemStatus.COMPLETE),
        ]
        assert compute_completion(checklist) == 100

    def test_received_earns_half_credit(self) -> None:
        """A received item counts half its weight."""
        checklist = [make_item("w2", status=ItemStatus.RECEIVED)]
        assert compute_completion(checklist) == 50

    def test_weights_by_priority(self) -> None:
        """High outweighs low: 0.5 / (0.5 + 0.15) rounds to 77."""
        checklist = [
            make_item("a", Priority.HIGH, status=ItemStatus.COMPLETE),
            make_item("b", Priority.LOW, status=ItemStatus.PENDING),
        ]
        assert compute_completion(checklist) == 77


class TestItemStatus:
    """Tests for item_status."""

    def test_no_documents_is_pending(self) -> None:
        assert item_status([]) is ItemStatus.PENDING

    def test_error_issue_is_received(self) -> None:
        """A document with an error issue only counts as received."""
        assert item_status([make_classified("a", "W-2", [WRONG_YEAR])]) is ItemStatus.RECEIVED

    def test_warning_only_is_complete(self) -> None:
        """Warnings do not block completion."""
        assert item_status([make_classified("a", "W-2", [LOW_CONFIDENCE])]) is ItemStatus.COMPLETE

    def test_approved_overrides_errors(self) -> None:
        """Accountant approval completes the item despite errors."""
        doc = make_classified("a", "W-2", [WRONG_YEAR], approved=True)
        assert item_status([doc]) is ItemStatus.COMPLETE


class TestReconcile:
    """Tests for reconcile."""

    def test_matches_drive_statuses_and_snapshot(self) -> None:
        """Matched documents set statuses; the snapshot lists each item."""
        w2 = make_classified("w2", "W-2")
        nec = make_classified("nec", "1099-NEC", [WRONG_YEAR])
        checklist = [make_item("w2-item"), make_item("nec-item"), make_item("k1-item")]

        outcome = reconcile(
            checklist,
            [w2, nec],
            {"w2-item": [w2.id], "nec-item": [nec.id]},
            now=NOW,
        )

        statuses = {i.id: i.status for i in outcome.checklist}
        assert statuses == {
            "w2-item": ItemStatus.COMPLETE,
            "nec-item": ItemStatus.RECEIVED,
            "k1-item": ItemStatus.PENDING,
        }
        assert outcome.completion_percentage == 50
        assert outcome.reconciliation.ran_at == NOW
        assert [e.item_id for e in outcome.reconciliation.item_statuses] == ["w2-item", "nec-item", "k1-item"]
        assert outcome.reconciliation.issues == [f"nec.pdf: {WRONG_YEAR}"]
        assert checklist[0].status is ItemStatus.PENDING

    def test_archived_documents_never_count(self) -> None:
        """Archived documents are dropped from matches."""
        doc = make_classified("w2", "W-2", archived=True)

        outcome = reconcile([make_item("w2-item")], [doc], {"w2-item": [doc.id]})

        assert outcome.checklist[0].status is ItemStatus.PENDING
        assert outcome.checklist[0].document_ids == []

    def test_defaults_to_linked_documents(self) -> None:
        """Without explicit matches each item's linked documents are used."""
        doc = make_classified("w2", "W-2")

        outcome = reconcile([make_item("w2-item", document_ids=[doc.id])], [doc])

        assert outcome.completion_percentage == 100


class TestIsReady:
    """Tests for is_ready."""

    def test_ready_when_complete_and_clean(self) -> None:
        doc = make_classified("w2", "W-2")
        checklist = [make_item("w2-item", status=ItemStatus.COMPLETE, document_ids=[doc.id])]
        assert is_ready(checklist, [doc])

    def test_not_ready_below_100(self) -> None:
        checklist = [make_item("a", status=ItemStatus.COMPLETE), make_item("b")]
        assert not is_ready(checklist, [])

    def test_unapproved_issues_block_readiness(self) -> None:
        """Any unapproved document with issues blocks, even warnings."""
        doc = make_classified("w2", "W-2", [LOW_CONFIDENCE])
        checklist = [make_item("w2-item", status=ItemStatus.COMPLETE)]

        assert not is_ready(checklist, [doc])
        assert is_ready(checklist, [doc.model_copy(update={"approved": True})])
        assert is_ready(checklist, [doc.model_copy(update={"archived": True})])
