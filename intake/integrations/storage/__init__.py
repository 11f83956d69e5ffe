"""Storage providers behind a single sync/download/resolve interface."""

from __future__ import annotations

import httpx

from intake.core.config import settings
from intake.integrations.storage.dropbox import DropboxClient
from intake.integrations.storage.google_drive import GoogleDriveClient
from intake.integrations.storage.sharepoint import SharePointClient
from intake.integrations.storage.types import (
    MAX_FILE_SIZE,
    NO_MATCH,
    DocumentTooLargeError,
    DownloadResult,
    FolderInfo,
    ResolveResult,
    StorageClient,
    StorageConfigError,
    StorageError,
    StorageFile,
    SyncOptions,
    SyncResult,
    ensure_size_allowed,
    guess_mime_type,
)
from intake.models.engagement import StorageProvider


def get_storage_client(
    provider: StorageProvider | str,
    http_client: httpx.AsyncClient | None = None,
) -> StorageClient:
    """Build the storage client for a provider using configured credentials.

    Raises:
        ValueError: If the provider is unknown.
    """
    try:
        provider = StorageProvider(provider)
    except ValueError:
        raise ValueError(f"Unknown storage provider: {provider}") from None

    if provider is StorageProvider.DROPBOX:
        return DropboxClient(settings.dropbox_access_token, http_client)
    if provider is StorageProvider.GOOGLE_DRIVE:
        return GoogleDriveClient(settings.google_access_token, http_client)
    return SharePointClient(settings.graph_access_token, http_client)


def detect_provider(url: str) -> StorageProvider | None:
    """Detect the storage provider from a folder URL."""
    lowered = url.lower()
    if "sharepoint.com" in lowered or "onedrive" in lowered or "1drv.ms" in lowered:
        return StorageProvider.SHAREPOINT
    if "drive.google.com" in lowered:
        return StorageProvider.GOOGLE_DRIVE
    if "dropbox.com" in lowered:
        return StorageProvider.DROPBOX
    return None


__all__ = [
    "MAX_FILE_SIZE",
    "NO_MATCH",
    "DocumentTooLargeError",
    "DownloadResult",
    "DropboxClient",
    "FolderInfo",
    "GoogleDriveClient",
    "ResolveResult",
    "SharePointClient",
    "StorageClient",
    "StorageConfigError",
    "StorageError",
    "StorageFile",
    "SyncOptions",
    "SyncResult",
    "detect_provider",
    "ensure_size_allowed",
    "get_storage_client",
    "guess_mime_type",
]
