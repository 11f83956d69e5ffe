"""Dropbox storage client (shared-link provider).

A folder can be synced from a shared link alone, before any folder id is
known: the first sync lists the link root and establishes a cursor, later
syncs continue from that cursor. Files listed through a shared link are
keyed by their path, since the shared-link download endpoint is path based.
"""

from __future__ import annotations

import json
import re
from typing import Any
from urllib.parse import unquote

import httpx
import structlog

from intake.integrations.storage.types import (
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
    guess_mime_type,
)

logger = structlog.get_logger()

API_URL = "https://api.dropboxapi.com/2"
CONTENT_URL = "https://content.dropboxapi.com/2"

SHARED_LINK_PATTERN = re.compile(r"dropbox\.com/(?:sh|scl/fo)/([^/?]+)")
HOME_PATH_PATTERN = re.compile(r"dropbox\.com/home(/[^?]+)")


def _is_cursor_reset(exc: httpx.HTTPStatusError) -> bool:
    """Dropbox answers 409 with a ``reset`` error when a cursor expires."""
    if exc.response.status_code != 409:
        return False
    try:
        body = exc.response.json()
    except ValueError:
        return True
    summary = str(body.get("error_summary", ""))
    tag = (body.get("error") or {}).get(".tag")
    return "reset" in summary or tag == "reset" or not summary


class DropboxClient(StorageClient):
    """Dropbox API v2 client."""

    provider = "dropbox"

    async def sync_folder(
        self,
        folder_id: str,
        checkpoint: str | None,
        options: SyncOptions | None = None,
    ) -> SyncResult:
        options = options or SyncOptions()
        shared_link = options.shared_link_url

        if checkpoint:
            try:
                data = await self._rpc("files/list_folder/continue", {"cursor": checkpoint})
                return await self._collect(data, shared_link)
            except httpx.HTTPStatusError as exc:
                if not _is_cursor_reset(exc):
                    raise
                logger.warning(
                    "dropbox_cursor_reset",
                    folder_id=folder_id,
                    message="Cursor expired or invalid, restarting sync from scratch",
                )

        if shared_link:
            payload: dict[str, Any] = {
                "path": "",
                "shared_link": {"url": shared_link},
                "recursive": False,
            }
        else:
            payload = {
                "path": "" if folder_id in ("", "root") else folder_id,
                "recursive": False,
            }

        data = await self._rpc("files/list_folder", payload)
        return await self._collect(data, shared_link)

    async def _collect(self, data: dict[str, Any], shared_link: str | None) -> SyncResult:
        """Convert a listing page and follow ``has_more`` continuation pages."""
        files = self._entries_to_files(data.get("entries", []), shared_link)
        cursor = data.get("cursor")
        while data.get("has_more") and cursor:
            data = await self._rpc("files/list_folder/continue", {"cursor": cursor})
            files.extend(self._entries_to_files(data.get("entries", []), shared_link))
            cursor = data.get("cursor", cursor)
        return SyncResult(files=files, next_checkpoint=cursor)

    @staticmethod
    def _entries_to_files(
        entries: list[dict[str, Any]], shared_link: str | None
    ) -> list[StorageFile]:
        files: list[StorageFile] = []
        for entry in entries:
            tag = entry.get(".tag")
            name = entry.get("name", "unknown")
            path = entry.get("path_display") or f"/{name}"
            if tag == "file":
                file_id = path if shared_link else entry.get("id", path)
                files.append(
                    StorageFile(id=file_id, name=name, mime_type=guess_mime_type(name))
                )
            elif tag == "deleted":
                # Deleted entries carry no id, only the path.
                files.append(StorageFile(id=path if shared_link else name, name=name, deleted=True))
        return files

    async def download_file(
        self, file_id: str, options: SyncOptions | None = None
    ) -> DownloadResult:
        options = options or SyncOptions()
        shared_link = options.shared_link_url

        if shared_link:
            metadata = await self._rpc(
                "sharing/get_shared_link_metadata", {"url": shared_link, "path": file_id}
            )
        else:
            metadata = await self._rpc("files/get_metadata", {"path": file_id})
            if metadata.get(".tag") != "file":
                raise StorageError(f"Dropbox item {file_id} is not a file")

        file_name = metadata.get("name") or options.file_name or file_id
        size = int(metadata.get("size") or 0)
        ensure_size_allowed(file_name, size, self.max_file_size)

        if shared_link:
            response = await self._content(
                "sharing/get_shared_link_file", {"url": shared_link, "path": file_id}
            )
        else:
            response = await self._content("files/download", {"path": file_id})

        content = response.content
        logger.info(
            "dropbox_file_downloaded",
            file_id=file_id,
            file_name=file_name,
            size=len(content),
            shared_link=bool(shared_link),
        )
        return DownloadResult(
            content=content,
            mime_type=guess_mime_type(file_name),
            file_name=file_name,
            size=size or len(content),
        )

    async def resolve_url(self, url: str) -> ResolveResult:
        if SHARED_LINK_PATTERN.search(url):
            try:
                metadata = await self._rpc("sharing/get_shared_link_metadata", {"url": url})
            except (httpx.HTTPError, StorageError):
                logger.warning("dropbox_resolve_failed", url=url, exc_info=True)
                return None
            if metadata.get(".tag") != "folder":
                return None
            return FolderInfo(folder_id=metadata.get("path_lower") or "")

        path_match = HOME_PATH_PATTERN.search(url)
        if path_match:
            folder_path = unquote(path_match.group(1))
            try:
                await self._rpc("files/get_metadata", {"path": folder_path})
            except (httpx.HTTPError, StorageError):
                logger.warning("dropbox_resolve_failed", url=url, exc_info=True)
                return None
            return FolderInfo(folder_id=folder_path)

        return NO_MATCH

    async def _rpc(self, route: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", f"{API_URL}/{route}", json=payload)
        return response.json()

    async def _content(self, route: str, arg: dict[str, Any]) -> httpx.Response:
        return await self._request(
            "POST",
            f"{CONTENT_URL}/{route}",
            headers={"Dropbox-API-Arg": json.dumps(arg)},
        )
