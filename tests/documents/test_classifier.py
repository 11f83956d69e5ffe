"""Tests for document classification."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from intake.documents.classifier import (
    ClassificationResult,
    LLMClassifier,
    add_local_checks,
)
from intake.documents.extraction import ExtractionResult
from intake.documents.issues import parse_issue


def _extraction(text: str) -> ExtractionResult:
    return ExtractionResult(markdown=text, confidence=0.85)


class TestClassificationResult:
    """Tests for the structured output model."""

    def test_unknown_type_becomes_other(self) -> None:
        """Types outside the vocabulary normalize to OTHER."""
        result = ClassificationResult(document_type="1098", confidence=0.8)
        assert result.document_type == "OTHER"

    def test_pending_is_not_a_classification(self) -> None:
        """PENDING is reserved for unprocessed documents."""
        result = ClassificationResult(document_type="PENDING", confidence=0.8)
        assert result.document_type == "OTHER"


class TestLocalChecks:
    """Tests for add_local_checks."""

    def test_adds_wrong_year_error(self) -> None:
        """A tax year mismatch becomes an error issue."""
        result = add_local_checks(
            ClassificationResult(document_type="W-2", confidence=0.9, tax_year=2024), 2025
        )

        assert len(result.issues) == 1
        issue = parse_issue(result.issues[0])
        assert issue.type == "wrong_year"
        assert issue.is_error
        assert issue.expected == "2025"
        assert issue.detected == "2024"

    def test_does_not_duplicate_reported_wrong_year(self) -> None:
        """A wrong_year issue from the model is kept as the only one."""
        reported = "[ERROR:wrong_year:2025:2024] Prior year form"
        result = add_local_checks(
            ClassificationResult(
                document_type="W-2", confidence=0.9, tax_year=2024, issues=[reported]
            ),
            2025,
        )
        assert result.issues == [reported]

    def test_adds_low_confidence_warning(self) -> None:
        """Confidence below 0.7 adds a warning."""
        result = add_local_checks(ClassificationResult(document_type="OTHER", confidence=0.5), None)

        assert len(result.issues) == 1
        issue = parse_issue(result.issues[0])
        assert issue.type == "low_confidence"
        assert not issue.is_error

    def test_matching_year_adds_nothing(self) -> None:
        """A confident, correct-year document has no issues."""
        result = add_local_checks(
            ClassificationResult(document_type="W-2", confidence=0.95, tax_year=2025), 2025
        )
        assert result.issues == []


class TestLLMClassifier:
    """Tests for LLMClassifier."""

    @pytest.mark.asyncio
    async def test_mock_mode_uses_keywords(self, monkeypatch) -> None:
        """MOCK_LLM=true classifies by keyword without any client."""
        monkeypatch.setenv("MOCK_LLM", "true")
        classifier = LLMClassifier()

        result = await classifier.classify(
            _extraction("Form W-2 Wage and Tax Statement 2025"),
            file_name="w2.pdf",
            expected_tax_year=2025,
        )

        assert result.document_type == "W-2"
        assert result.confidence == 0.9
        assert result.tax_year == 2025
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_mock_mode_unknown_text_is_low_confidence_other(self, monkeypatch) -> None:
        """Unrecognized text is OTHER with a low-confidence warning."""
        monkeypatch.setenv("MOCK_LLM", "true")

        result = await LLMClassifier().classify(_extraction("grocery list"), file_name="notes.pdf")

        assert result.document_type == "OTHER"
        assert parse_issue(result.issues[0]).type == "low_confidence"

    @pytest.mark.asyncio
    async def test_calls_instructor_with_response_model(self, monkeypatch) -> None:
        """The model is asked for a ClassificationResult over the extracted text."""
        monkeypatch.delenv("MOCK_LLM", raising=False)
        structured = MagicMock()
        structured.messages.create = AsyncMock(
            return_value=ClassificationResult(document_type="1099-NEC", confidence=0.88, tax_year=2025)
        )
        anthropic_client = MagicMock()

        with patch("instructor.from_anthropic", return_value=structured) as from_anthropic:
            result = await LLMClassifier(client=anthropic_client, model="test-model").classify(
                _extraction("Nonemployee compensation"),
                file_name="1099.pdf",
                expected_tax_year=2025,
            )

        from_anthropic.assert_called_once_with(anthropic_client)
        kwargs = structured.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["response_model"] is ClassificationResult
        assert "Nonemployee compensation" in kwargs["messages"][0]["content"]
        assert "1099.pdf" in kwargs["messages"][0]["content"]
        assert result.document_type == "1099-NEC"
        assert result.issues == []
