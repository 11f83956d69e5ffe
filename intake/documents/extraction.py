"""Document content extraction with retry and an opt-in text fallback."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Final, Literal

import structlog

from intake.documents.ocr import (
    ExtractionConfigError,
    ExtractionError,
    OCRClient,
    OCRResult,
    OCRTable,
)
from intake.documents.retry import FatalError, RetryPolicy, with_retry

logger = structlog.get_logger()

PDF_MIME_TYPE: Final[str] = "application/pdf"

SUPPORTED_MIME_TYPES: Final[frozenset[str]] = frozenset(
    {
        PDF_MIME_TYPE,
        "image/jpeg",
        "image/png",
        "image/heic",
        "image/heif",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)


class UnsupportedFileTypeError(ExtractionError, FatalError):
    """MIME type outside the supported set. Rejected before any attempt."""

    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        super().__init__(
            f"File type {mime_type} is not supported. "
            "Supported types: PDF, JPG, PNG, HEIC, DOCX, XLSX"
        )


@dataclass(frozen=True)
class ExtractedPage:
    index: int
    markdown: str


@dataclass
class ExtractionResult:
    """Normalized extraction output.

    ``confidence`` is ``None`` only on the degraded text path, where the
    content did not come from OCR.
    """

    markdown: str
    tables: list[OCRTable] = field(default_factory=list)
    pages: list[ExtractedPage] = field(default_factory=list)
    confidence: float | None = None
    method: Literal["ocr", "text"] = "ocr"


def is_supported_file_type(mime_type: str) -> bool:
    return mime_type in SUPPORTED_MIME_TYPES


def compute_confidence(result: OCRResult) -> float:
    """Heuristic confidence from extracted volume and table structure."""
    total_chars = sum(len(page.markdown) for page in result.pages)
    has_content = total_chars > 100
    has_structure = any(page.tables for page in result.pages)

    if has_content and has_structure:
        return 0.95
    if has_content:
        return 0.85
    return 0.60


def _normalize(result: OCRResult) -> ExtractionResult:
    return ExtractionResult(
        markdown=result.markdown,
        tables=list(result.tables),
        pages=[ExtractedPage(index=p.index, markdown=p.markdown) for p in result.pages],
        confidence=compute_confidence(result),
        method="ocr",
    )


def _data_uri(content: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


async def extract_document(
    content: bytes,
    mime_type: str,
    document_url: str | None = None,
    *,
    ocr: OCRClient | None = None,
    policy: RetryPolicy | None = None,
    **retry_kwargs: Any,
) -> ExtractionResult:
    """Extract text and tables from a downloaded document.

    PDFs are submitted by ``document_url`` when one is given, with tables
    rendered as HTML. Images and office documents are submitted inline as
    a ``data:`` URI.

    Args:
        content: Raw file bytes.
        mime_type: MIME type reported by the storage provider.
        document_url: Resolvable URL for the same bytes (PDF only).
        ocr: OCR client. Defaults to one built from settings.
        policy: Retry policy. Defaults to settings.
        **retry_kwargs: Passed through to :func:`with_retry` (``sleep``,
            ``rand``).

    Raises:
        UnsupportedFileTypeError: Before any attempt, for unsupported types.
        ExtractionConfigError: When OCR has no API key.
        Exception: The last transient error once attempts are exhausted.
    """
    if not is_supported_file_type(mime_type):
        raise UnsupportedFileTypeError(mime_type)

    ocr = ocr or OCRClient()

    if mime_type == PDF_MIME_TYPE:
        source = document_url or _data_uri(content, mime_type)
    else:
        # HEIC is sent as-is; the OCR service accepts it directly.
        source = _data_uri(content, mime_type)

    result = await with_retry(
        lambda: ocr.process(source, table_format="html"),
        policy,
        operation="extraction",
        **retry_kwargs,
    )
    extraction = _normalize(result)
    logger.info(
        "document_extracted",
        mime_type=mime_type,
        pages=len(extraction.pages),
        tables=len(extraction.tables),
        confidence=extraction.confidence,
    )
    return extraction


async def extract_with_fallback(
    content: bytes,
    mime_type: str,
    fallback_text: str,
    document_url: str | None = None,
    **kwargs: Any,
) -> ExtractionResult:
    """Like :func:`extract_document`, degrading to ``fallback_text`` on failure.

    Unsupported types and missing configuration still raise.
    """
    try:
        return await extract_document(content, mime_type, document_url, **kwargs)
    except (UnsupportedFileTypeError, ExtractionConfigError):
        raise
    except Exception:
        logger.warning("extraction_fallback_to_text", mime_type=mime_type, exc_info=True)
        return ExtractionResult(
            markdown=fallback_text,
            tables=[],
            pages=[ExtractedPage(index=0, markdown=fallback_text)],
            confidence=None,
            method="text",
        )


__all__ = [
    "ExtractedPage",
    "ExtractionConfigError",
    "ExtractionError",
    "ExtractionResult",
    "SUPPORTED_MIME_TYPES",
    "UnsupportedFileTypeError",
    "compute_confidence",
    "extract_document",
    "extract_with_fallback",
    "is_supported_file_type",
]
