"""Google Drive storage client (change-feed provider).

First sync lists every file under the folder and records a start token for
the Drive changes feed. Later syncs read only the changes since that token.
"""

from __future__ import annotations

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
    StorageError,
    StorageFile,
    SyncOptions,
    SyncResult,
    ensure_size_allowed,
)

logger = structlog.get_logger()

API_URL = "https://www.googleapis.com/drive/v3"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

FOLDER_URL_PATTERNS = (
    re.compile(r"drive\.google\.com/drive/(?:u/\d+/)?folders/([a-zA-Z0-9_-]+)"),
    re.compile(r"drive\.google\.com/folderview\?id=([a-zA-Z0-9_-]+)"),
)


class GoogleDriveClient(StorageClient):
    """Google Drive API v3 client."""

    provider = "google-drive"

    async def sync_folder(
        self,
        folder_id: str,
        checkpoint: str | None,
        options: SyncOptions | None = None,
    ) -> SyncResult:
        if checkpoint:
            return await self._sync_changes(folder_id, checkpoint)
        return await self._list_folder(folder_id)

    async def _list_folder(self, folder_id: str) -> SyncResult:
        files: list[StorageFile] = []
        params: dict[str, Any] = {
            "q": (
                f"'{folder_id}' in parents and trashed = false "
                f"and mimeType != '{FOLDER_MIME_TYPE}'"
            ),
            "fields": "nextPageToken, files(id, name, mimeType)",
            "pageSize": 100,
        }
        while True:
            data = await self._get_json("files", params)
            for item in data.get("files", []):
                files.append(
                    StorageFile(
                        id=item["id"],
                        name=item.get("name") or "unknown",
                        mime_type=item.get("mimeType") or DEFAULT_MIME_TYPE,
                    )
                )
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params = {**params, "pageToken": page_token}

        # Token for future change tracking
        start = await self._get_json("changes/startPageToken", {})
        return SyncResult(files=files, next_checkpoint=start.get("startPageToken"))

    async def _sync_changes(self, folder_id: str, checkpoint: str) -> SyncResult:
        files: list[StorageFile] = []
        page_token: str | None = checkpoint
        next_checkpoint: str | None = None

        while page_token:
            data = await self._get_json(
                "changes",
                {
                    "pageToken": page_token,
                    "spaces": "drive",
                    "fields": (
                        "nextPageToken, newStartPageToken, "
                        "changes(fileId, removed, file(id, name, mimeType, trashed, parents))"
                    ),
                },
            )
            for change in data.get("changes", []):
                entry = self._change_to_file(change, folder_id)
                if entry is not None:
                    files.append(entry)

            next_checkpoint = data.get("newStartPageToken") or data.get("nextPageToken")
            if data.get("newStartPageToken"):
                break
            page_token = data.get("nextPageToken")

        return SyncResult(files=files, next_checkpoint=next_checkpoint)

    @staticmethod
    def _change_to_file(change: dict[str, Any], folder_id: str) -> StorageFile | None:
        file = change.get("file")
        if file is None:
            if change.get("removed") and change.get("fileId"):
                return StorageFile(id=change["fileId"], name="unknown", deleted=True)
            return None

        mime_type = file.get("mimeType") or DEFAULT_MIME_TYPE
        if "folder" in mime_type:
            return None
        # The feed spans the whole drive; drop files known to live elsewhere.
        parents = file.get("parents")
        if parents is not None and folder_id and folder_id not in parents:
            return None

        return StorageFile(
            id=change.get("fileId") or file.get("id", ""),
            name=file.get("name") or "unknown",
            mime_type=mime_type,
            deleted=bool(change.get("removed") or file.get("trashed")),
        )

    async def download_file(
        self, file_id: str, options: SyncOptions | None = None
    ) -> DownloadResult:
        metadata = await self._get_json(f"files/{file_id}", {"fields": "name, size, mimeType"})

        file_name = metadata.get("name") or "unknown"
        size = int(metadata.get("size") or 0)
        mime_type = metadata.get("mimeType") or DEFAULT_MIME_TYPE
        ensure_size_allowed(file_name, size, self.max_file_size)

        response = await self._request("GET", f"{API_URL}/files/{file_id}", params={"alt": "media"})
        logger.info(
            "google_drive_file_downloaded",
            file_id=file_id,
            file_name=file_name,
            size=len(response.content),
        )
        return DownloadResult(
            content=response.content,
            mime_type=mime_type,
            file_name=file_name,
            size=size or len(response.content),
        )

    async def resolve_url(self, url: str) -> ResolveResult:
        for pattern in FOLDER_URL_PATTERNS:
            match = pattern.search(url)
            if not match:
                continue
            folder_id = match.group(1)
            try:
                await self._get_json(f"files/{folder_id}", {"fields": "id"})
            except (httpx.HTTPError, StorageError):
                logger.warning("google_drive_resolve_failed", url=url, exc_info=True)
                return None
            return FolderInfo(folder_id=folder_id)
        return NO_MATCH

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("GET", f"{API_URL}/{path}", params=params)
        return response.json()
