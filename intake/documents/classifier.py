"""Document classifier over extracted text using Claude.

Identifies the document type, tax year and any issues from OCR markdown,
with a confidence score. The model returns issues already encoded as
``[SEVERITY:type:expected:detected] description`` strings; a tax-year
mismatch against the engagement is added locally if the model missed it.

Example:
    >>> classifier = LLMClassifier()
    >>> result = await classifier.classify(extraction, file_name="w2.pdf", expected_tax_year=2025)
    >>> print(result.document_type, result.confidence)
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Protocol

import structlog
from pydantic import BaseModel, Field, field_validator

from intake.core.config import settings
from intake.documents.extraction import ExtractionResult
from intake.documents.issues import encode_issue, parse_issue
from intake.models.engagement import DOCUMENT_TYPES, PENDING_DOCUMENT_TYPE

if TYPE_CHECKING:
    from anthropic import AsyncAnthropic

logger = structlog.get_logger()

LOW_CONFIDENCE_THRESHOLD = 0.7

MAX_PROMPT_CHARS = 40_000


class ClassificationResult(BaseModel):
    """Document classification result.

    Attributes:
        document_type: One of the document type vocabulary.
        confidence: Confidence score between 0.0 and 1.0.
        tax_year: Tax year printed on the document, if visible.
        issues: Encoded issue strings.
    """

    document_type: str = Field(description="Document type: W-2, 1099-NEC, 1099-MISC, 1099-INT, K-1, RECEIPT, STATEMENT or OTHER")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score for classification")
    tax_year: int | None = Field(default=None, description="Tax year shown on the document, null if not visible")
    issues: list[str] = Field(default_factory=list, description="Issues as [SEVERITY:type:expected:detected] description")

    @field_validator("document_type")
    @classmethod
    def known_type(cls, value: str) -> str:
        if value not in DOCUMENT_TYPES or value == PENDING_DOCUMENT_TYPE:
            return "OTHER"
        return value


class Classifier(Protocol):
    async def classify(
        self,
        extraction: ExtractionResult,
        *,
        file_name: str,
        expected_tax_year: int | None = None,
    ) -> ClassificationResult: ...


CLASSIFICATION_PROMPT = """You are a tax document classifier. Classify the document below.

Return:
1. document_type: W-2, 1099-NEC, 1099-MISC, 1099-INT, K-1, RECEIPT, STATEMENT or OTHER
2. confidence: 0.0 to 1.0. Use < 0.7 if the document is unclear or partial.
3. tax_year: the tax year on the document, or null
4. issues: problems that affect tax preparation, formatted as
   "[SEVERITY:type:expected:detected] Description" where SEVERITY is ERROR or
   WARNING and type is wrong_year, missing_field, illegible, incomplete,
   low_confidence or other.

Expected tax year: {expected_tax_year}
File name: {file_name}

Document:
{markdown}"""


def add_local_checks(
    result: ClassificationResult, expected_tax_year: int | None
) -> ClassificationResult:
    """Add wrong-year and low-confidence issues the model did not report."""
    issues = list(result.issues)
    reported = {parse_issue(i).type for i in issues}

    if (
        expected_tax_year is not None
        and result.tax_year is not None
        and result.tax_year != expected_tax_year
        and "wrong_year" not in reported
    ):
        issues.append(
            encode_issue(
                "error",
                "wrong_year",
                f"Document is from {result.tax_year}, expected {expected_tax_year}",
                expected=expected_tax_year,
                detected=result.tax_year,
            )
        )

    if result.confidence < LOW_CONFIDENCE_THRESHOLD and "low_confidence" not in reported:
        issues.append(
            encode_issue(
                "warning",
                "low_confidence",
                f"Classification confidence below {int(LOW_CONFIDENCE_THRESHOLD * 100)}%",
            )
        )

    return result.model_copy(update={"issues": issues})


class LLMClassifier:
    """Classifies extracted document text with Claude via instructor.

    Args:
        client: Optional Anthropic client for dependency injection in tests.
        model: Model name. Defaults to settings.
    """

    def __init__(self, client: AsyncAnthropic | None = None, model: str | None = None) -> None:
        self._client = client
        self.model = model or settings.classifier_model

    async def classify(
        self,
        extraction: ExtractionResult,
        *,
        file_name: str,
        expected_tax_year: int | None = None,
    ) -> ClassificationResult:
        # Check for mock mode (for testing without API key)
        if os.environ.get("MOCK_LLM", "").lower() == "true":
            result = _mock_classify(extraction, expected_tax_year)
        else:
            result = await self._classify_text(extraction, file_name, expected_tax_year)

        result = add_local_checks(result, expected_tax_year)
        logger.info(
            "document_type_classified",
            file_name=file_name,
            document_type=result.document_type,
            confidence=result.confidence,
            issue_count=len(result.issues),
        )
        return result

    async def _classify_text(
        self, extraction: ExtractionResult, file_name: str, expected_tax_year: int | None
    ) -> ClassificationResult:
        # Import instructor and anthropic here so mock mode needs no client
        import instructor
        from anthropic import AsyncAnthropic as AnthropicClient

        client = self._client or AnthropicClient(api_key=settings.anthropic_api_key)
        instructor_client = instructor.from_anthropic(client)

        prompt = CLASSIFICATION_PROMPT.format(
            expected_tax_year=expected_tax_year or "unknown",
            file_name=file_name,
            markdown=extraction.markdown[:MAX_PROMPT_CHARS],
        )
        return await instructor_client.messages.create(
            model=self.model,
            max_tokens=1024,
            messages=[{"role": "user", "content": prompt}],
            response_model=ClassificationResult,
        )


_MOCK_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("wage and tax statement", "W-2"),
    ("w-2", "W-2"),
    ("nonemployee compensation", "1099-NEC"),
    ("1099-nec", "1099-NEC"),
    ("1099-misc", "1099-MISC"),
    ("interest income", "1099-INT"),
    ("1099-int", "1099-INT"),
    ("schedule k-1", "K-1"),
    ("receipt", "RECEIPT"),
    ("statement", "STATEMENT"),
)


def _mock_classify(
    extraction: ExtractionResult, expected_tax_year: int | None
) -> ClassificationResult:
    """Deterministic keyword classification for runs without API calls."""
    text = extraction.markdown.lower()
    document_type = next((t for keyword, t in _MOCK_KEYWORDS if keyword in text), "OTHER")
    confidence = 0.5 if document_type == "OTHER" else 0.9
    return ClassificationResult(
        document_type=document_type,
        confidence=confidence,
        tax_year=expected_tax_year,
        issues=[],
    )


__all__ = [
    "ClassificationResult",
    "Classifier",
    "LLMClassifier",
    "add_local_checks",
]
