"""SharePoint / OneDrive storage client over Microsoft Graph.

Enterprise-content provider: every call is scoped by a drive id as well as
a folder id. The first sync walks the folder's delta feed from the start;
the returned ``@odata.deltaLink`` is the checkpoint for the next sync.
"""

from __future__ import annotations

import base64
import re
from typing import Any

import httpx
import structlog

from intake.integrations.storage.types import (
    DEFAULT_MIME_TYPE,
    NO_MATCH,
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
)

logger = structlog.get_logger()

GRAPH_URL = "https://graph.microsoft.com/v1.0"

SHARE_URL_PATTERN = re.compile(
    r"https?://([\w-]+\.sharepoint\.com|onedrive\.live\.com|1drv\.ms|[\w.-]*onedrive\.com)/",
    re.IGNORECASE,
)


def encode_sharing_url(url: str) -> str:
    """Encode a sharing URL for the Graph ``/shares/{id}`` endpoint."""
    encoded = base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")
    return f"u!{encoded}"


def _require_drive_id(options: SyncOptions | None) -> str:
    if options is None or not options.drive_id:
        raise StorageConfigError("SharePoint requires driveId")
    return options.drive_id


class SharePointClient(StorageClient):
    """Microsoft Graph drive client."""

    provider = "sharepoint"

    async def sync_folder(
        self,
        folder_id: str,
        checkpoint: str | None,
        options: SyncOptions | None = None,
    ) -> SyncResult:
        drive_id = _require_drive_id(options)
        url: str | None = checkpoint or f"{GRAPH_URL}/drives/{drive_id}/items/{folder_id}/delta"

        files: list[StorageFile] = []
        delta_link: str | None = None
        while url:
            data = await self._get_json(url)
            for item in data.get("value", []):
                entry = self._item_to_file(item)
                if entry is not None:
                    files.append(entry)
            delta_link = data.get("@odata.deltaLink")
            url = None if delta_link else data.get("@odata.nextLink")

        return SyncResult(files=files, next_checkpoint=delta_link)

    @staticmethod
    def _item_to_file(item: dict[str, Any]) -> StorageFile | None:
        deleted = "deleted" in item
        if "folder" in item or ("file" not in item and not deleted):
            return None
        return StorageFile(
            id=item.get("id", ""),
            name=item.get("name") or "unknown",
            mime_type=(item.get("file") or {}).get("mimeType", DEFAULT_MIME_TYPE),
            deleted=deleted,
        )

    async def download_file(
        self, file_id: str, options: SyncOptions | None = None
    ) -> DownloadResult:
        drive_id = _require_drive_id(options)
        item = await self._get_json(
            f"{GRAPH_URL}/drives/{drive_id}/items/{file_id}",
            params={"$select": "name,size,file,@microsoft.graph.downloadUrl"},
        )

        file_name = item.get("name") or "unknown"
        size = int(item.get("size") or 0)
        mime_type = (item.get("file") or {}).get("mimeType", DEFAULT_MIME_TYPE)
        ensure_size_allowed(file_name, size, self.max_file_size)

        download_url = item.get("@microsoft.graph.downloadUrl")
        if not download_url:
            raise StorageError(f"No download URL returned for {file_name}")

        # Pre-authenticated URL: must not carry the Graph bearer token.
        client = self._client()
        try:
            response = await client.get(download_url)
            response.raise_for_status()
            content = response.content
        finally:
            if client is not self._http_client:
                await client.aclose()

        logger.info(
            "sharepoint_file_downloaded",
            file_id=file_id,
            file_name=file_name,
            size=len(content),
        )
        return DownloadResult(
            content=content,
            mime_type=mime_type,
            file_name=file_name,
            size=size or len(content),
        )

    async def resolve_url(self, url: str) -> ResolveResult:
        if not SHARE_URL_PATTERN.search(url):
            return NO_MATCH
        try:
            item = await self._get_json(f"{GRAPH_URL}/shares/{encode_sharing_url(url)}/driveItem")
        except (httpx.HTTPError, StorageError):
            logger.warning("sharepoint_resolve_failed", url=url, exc_info=True)
            return None
        return FolderInfo(
            folder_id=item.get("id", ""),
            drive_id=(item.get("parentReference") or {}).get("driveId"),
        )

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._request("GET", url, params=params)
        return response.json()
