"""Provider-agnostic storage sync contract.

Every remote folder provider implements :class:`StorageClient`. Checkpoints
returned by ``sync_folder`` are provider-private strings: callers persist
them and pass them back verbatim, and never parse them. Consumers dedup
listed files by ``StorageFile.id``, never by checkpoint, so a stale
checkpoint is always safe to replay.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Final

import httpx

from intake.core.config import settings

MAX_FILE_SIZE: Final[int] = 25 * 1024 * 1024
"""Downloads larger than this are rejected before any bytes are transferred."""

DEFAULT_MIME_TYPE: Final[str] = "application/octet-stream"

_MIME_TYPES: Final[dict[str, str]] = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".csv": "text/csv",
    ".txt": "text/plain",
}


class StorageError(Exception):
    """Base error for storage provider failures."""


class StorageConfigError(StorageError):
    """Provider called without the identifiers or credentials it needs."""


class DocumentTooLargeError(StorageError):
    """Remote file exceeds :data:`MAX_FILE_SIZE`. Never retried."""

    def __init__(self, file_name: str, size: int, limit: int = MAX_FILE_SIZE):
        self.file_name = file_name
        self.size = size
        self.limit = limit
        super().__init__(
            f"File {file_name} is {size / 1024 / 1024:.1f}MB, "
            f"exceeds {limit // (1024 * 1024)}MB limit. Please compress and re-upload."
        )


class _NoMatch(Enum):
    NO_MATCH = "no_match"

    def __repr__(self) -> str:
        return "NO_MATCH"


NO_MATCH: Final = _NoMatch.NO_MATCH
"""Returned by ``resolve_url`` when the URL syntax is not recognized.

Distinct from ``None``, which means the URL was recognized but access to the
folder could not be verified.
"""


@dataclass(frozen=True)
class StorageFile:
    """One entry from a folder listing or change feed."""

    id: str
    name: str
    mime_type: str = DEFAULT_MIME_TYPE
    deleted: bool = False


@dataclass
class SyncResult:
    """Files observed since the previous checkpoint plus the next checkpoint."""

    files: list[StorageFile] = field(default_factory=list)
    next_checkpoint: str | None = None


@dataclass
class DownloadResult:
    content: bytes
    mime_type: str
    file_name: str
    size: int


@dataclass(frozen=True)
class FolderInfo:
    """Provider-specific folder locator."""

    folder_id: str
    drive_id: str | None = None


@dataclass(frozen=True)
class SyncOptions:
    """Provider-specific extras for sync and download calls.

    Attributes:
        drive_id: Drive scope (enterprise-content provider only).
        shared_link_url: Shared folder link (shared-link provider only).
        file_name: Known file name, used for logging and MIME fallback.
    """

    drive_id: str | None = None
    shared_link_url: str | None = None
    file_name: str | None = None


ResolveResult = FolderInfo | None | _NoMatch


def guess_mime_type(file_name: str) -> str:
    """Map a file extension to a MIME type (case-insensitive)."""
    _, ext = os.path.splitext(file_name)
    return _MIME_TYPES.get(ext.lower(), DEFAULT_MIME_TYPE)


def ensure_size_allowed(file_name: str, size: int, limit: int = MAX_FILE_SIZE) -> None:
    """Raise :class:`DocumentTooLargeError` when ``size`` exceeds ``limit``."""
    if size > limit:
        raise DocumentTooLargeError(file_name, size, limit)


class StorageClient(ABC):
    """Uniform sync/download/resolve interface over remote folder providers.

    Subclasses talk to the provider REST API through an ``httpx.AsyncClient``.
    Pass ``http_client`` to share a connection pool or to inject a mock
    transport in tests; otherwise a client is created per call.
    """

    provider: str = ""

    def __init__(
        self,
        access_token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> None:
        self._access_token = access_token
        self._http_client = http_client
        self.max_file_size = max_file_size

    @abstractmethod
    async def sync_folder(
        self,
        folder_id: str,
        checkpoint: str | None,
        options: SyncOptions | None = None,
    ) -> SyncResult:
        """Return files new or changed since ``checkpoint`` and the next checkpoint."""

    @abstractmethod
    async def download_file(
        self, file_id: str, options: SyncOptions | None = None
    ) -> DownloadResult:
        """Download a file, rejecting it up front when it is too large."""

    @abstractmethod
    async def resolve_url(self, url: str) -> ResolveResult:
        """Resolve a shared folder URL to a :class:`FolderInfo`."""

    def _headers(self) -> dict[str, str]:
        if not self._access_token:
            raise StorageConfigError(f"{self.provider} access token is not configured")
        return {"Authorization": f"Bearer {self._access_token}"}

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    async def _request(self, method: str, url: str, **kwargs: object) -> httpx.Response:
        """Send an authenticated request and raise on HTTP error status."""
        headers = {**self._headers(), **kwargs.pop("headers", {})}  # type: ignore[dict-item]
        client = self._client()
        try:
            response = await client.request(method, url, headers=headers, **kwargs)  # type: ignore[arg-type]
            response.raise_for_status()
            # Read before closing an owned client so the body stays available.
            await response.aread()
            return response
        finally:
            if client is not self._http_client:
                await client.aclose()
