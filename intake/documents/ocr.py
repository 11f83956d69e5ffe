"""Mistral OCR client.

Thin httpx wrapper around the OCR endpoint. One call per document; retries
are the caller's concern (see :mod:`intake.documents.retry`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import httpx
import structlog

from intake.core.config import settings

logger = structlog.get_logger()

TableFormat = Literal["markdown", "html"]


class ExtractionError(Exception):
    """Base error for document extraction failures."""


class ExtractionConfigError(ExtractionError):
    """OCR called without an API key. Never retried."""

    status_code = 401


@dataclass(frozen=True)
class OCRTable:
    id: str
    content: str
    format: str = "html"


@dataclass
class OCRPage:
    index: int
    markdown: str
    tables: list[OCRTable] = field(default_factory=list)


@dataclass
class OCRResult:
    """Per-page markdown and tables, plus the joined document markdown."""

    markdown: str
    pages: list[OCRPage] = field(default_factory=list)
    tables: list[OCRTable] = field(default_factory=list)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> OCRResult:
        pages = [
            OCRPage(
                index=index,
                markdown=page.get("markdown") or "",
                tables=[
                    OCRTable(
                        id=str(table.get("id", "")),
                        content=table.get("content") or "",
                        format=table.get("format") or "html",
                    )
                    for table in page.get("tables") or []
                ],
            )
            for index, page in enumerate(data.get("pages") or [])
        ]
        return cls(
            markdown="\n\n".join(p.markdown for p in pages),
            pages=pages,
            tables=[t for p in pages for t in p.tables],
        )


class OCRClient:
    """Client for the Mistral OCR API.

    Args:
        api_key: Mistral API key. Defaults to settings.
        http_client: Shared client, or a mock transport in tests.
    """

    def __init__(
        self,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        api_url: str | None = None,
        model: str | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.mistral_api_key
        self.api_url = api_url or settings.mistral_ocr_url
        self.model = model or settings.mistral_ocr_model
        self._http_client = http_client

    async def process(self, document_url: str, table_format: TableFormat = "html") -> OCRResult:
        """Run OCR on a resolvable URL or a ``data:`` URI.

        Raises:
            ExtractionConfigError: If no API key is configured.
            httpx.HTTPStatusError: On a non-2xx response.
        """
        if not self.api_key:
            logger.error("ocr_api_key_missing")
            raise ExtractionConfigError("MISTRAL_API_KEY is not configured")

        payload = {
            "model": self.model,
            "document": {"type": "document_url", "document_url": document_url},
            "include_image_base64": False,
            "table_format": table_format,
        }
        client = self._http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        try:
            response = await client.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        finally:
            if client is not self._http_client:
                await client.aclose()

        result = OCRResult.from_response(data)
        logger.debug(
            "ocr_completed",
            pages=len(result.pages),
            tables=len(result.tables),
            chars=len(result.markdown),
        )
        return result
