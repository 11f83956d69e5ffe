"""Tests for the SharePoint storage client."""

import httpx
import pytest

from intake.integrations.storage import (
    NO_MATCH,
    DocumentTooLargeError,
    FolderInfo,
    SharePointClient,
    StorageConfigError,
    SyncOptions,
)
from intake.integrations.storage.sharepoint import encode_sharing_url

OPTIONS = SyncOptions(drive_id="drive-1")


def _client(handler) -> SharePointClient:
    return SharePointClient("token", httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestSharePointSync:
    """Tests for SharePointClient.sync_folder."""

    @pytest.mark.asyncio
    async def test_requires_drive_id(self) -> None:
        """Sync without a drive id is a configuration error."""
        with pytest.raises(StorageConfigError):
            await _client(lambda request: httpx.Response(200)).sync_folder("item-1", None)

    @pytest.mark.asyncio
    async def test_walks_delta_pages_to_delta_link(self) -> None:
        """nextLink pages are followed; the deltaLink becomes the checkpoint."""
        urls: list[str] = []
        next_link = "https://graph.microsoft.com/v1.0/drives/drive-1/items/item-1/delta?token=2"
        delta_link = "https://graph.microsoft.com/v1.0/drives/drive-1/items/item-1/delta?token=3"

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            if len(urls) == 1:
                return httpx.Response(
                    200,
                    json={
                        "value": [
                            {"id": "root", "name": "Client", "folder": {}},
                            {"id": "d1", "name": "w2.pdf", "file": {"mimeType": "application/pdf"}},
                        ],
                        "@odata.nextLink": next_link,
                    },
                )
            return httpx.Response(
                200,
                json={
                    "value": [{"id": "d2", "name": "old.pdf", "deleted": {}}],
                    "@odata.deltaLink": delta_link,
                },
            )

        result = await _client(handler).sync_folder("item-1", None, OPTIONS)

        assert urls[0].endswith("/drives/drive-1/items/item-1/delta")
        assert urls[1] == next_link
        assert [(f.id, f.deleted) for f in result.files] == [("d1", False), ("d2", True)]
        assert result.next_checkpoint == delta_link

    @pytest.mark.asyncio
    async def test_checkpoint_is_used_verbatim(self) -> None:
        """A stored delta link is requested as-is."""
        stored = "https://graph.microsoft.com/v1.0/drives/drive-1/items/item-1/delta?token=3"
        urls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, json={"value": [], "@odata.deltaLink": stored})

        await _client(handler).sync_folder("item-1", stored, OPTIONS)

        assert urls == [stored]


class TestSharePointDownload:
    """Tests for SharePointClient.download_file."""

    @pytest.mark.asyncio
    async def test_download_url_is_fetched_without_bearer(self) -> None:
        """The pre-authenticated URL must not receive the Graph token."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "download.example":
                assert "Authorization" not in request.headers
                return httpx.Response(200, content=b"%PDF")
            return httpx.Response(
                200,
                json={
                    "name": "w2.pdf",
                    "size": 4,
                    "file": {"mimeType": "application/pdf"},
                    "@microsoft.graph.downloadUrl": "https://download.example/w2.pdf",
                },
            )

        result = await _client(handler).download_file("d1", OPTIONS)

        assert result.content == b"%PDF"
        assert result.mime_type == "application/pdf"

    @pytest.mark.asyncio
    async def test_oversized_file_rejected(self) -> None:
        """Files over the limit are rejected before download."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"name": "big.pdf", "size": 26 * 1024 * 1024})

        with pytest.raises(DocumentTooLargeError):
            await _client(handler).download_file("d1", OPTIONS)


class TestSharePointResolve:
    """Tests for SharePointClient.resolve_url."""

    def test_encode_sharing_url(self) -> None:
        """Sharing URLs are unpadded urlsafe base64 with a u! prefix."""
        encoded = encode_sharing_url("https://contoso.sharepoint.com/x")
        assert encoded.startswith("u!")
        assert "=" not in encoded

    @pytest.mark.asyncio
    async def test_share_link_resolves_with_drive(self) -> None:
        """Share links resolve to the item id and its drive."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert "/shares/u!" in request.url.path
            return httpx.Response(200, json={"id": "item-1", "parentReference": {"driveId": "drive-1"}})

        result = await _client(handler).resolve_url("https://contoso.sharepoint.com/:f:/s/tax/abc")
        assert result == FolderInfo(folder_id="item-1", drive_id="drive-1")

    @pytest.mark.asyncio
    async def test_non_sharepoint_url(self) -> None:
        """Other URLs are NO_MATCH."""
        result = await _client(lambda request: httpx.Response(500)).resolve_url(
            "https://drive.google.com/drive/folders/abc"
        )
        assert result is NO_MATCH

    @pytest.mark.asyncio
    async def test_missing_token_is_none(self) -> None:
        """Without a token a share link cannot be verified."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = SharePointClient(None, httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        assert await client.resolve_url("https://contoso.sharepoint.com/:f:/s/tax/abc") is None
