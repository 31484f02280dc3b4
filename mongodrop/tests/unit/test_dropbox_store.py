from __future__ import annotations

import json

import httpx
import pytest

from mongodrop.core.errors import StorageError, StorageNotFoundError
from mongodrop.services.storage import DropboxStore, folder_path, remote_path


def _store(handler) -> DropboxStore:
    return DropboxStore(token="tok", transport=httpx.MockTransport(handler))


def test_remote_and_folder_paths() -> None:
    assert remote_path("", "a.gz") == "/a.gz"
    assert remote_path("/nightly/", "a.gz") == "/nightly/a.gz"
    assert folder_path("") == ""
    assert folder_path("nightly") == "/nightly"


@pytest.mark.asyncio
async def test_upload_sends_body_and_api_arg() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"name": "a.gz"})

    store = _store(handler)
    await store.upload("/a.gz", b"payload")
    await store.aclose()

    [request] = seen
    assert request.url.path == "/2/files/upload"
    assert request.headers["Authorization"] == "Bearer tok"
    arg = json.loads(request.headers["Dropbox-API-Arg"])
    assert arg == {"path": "/a.gz", "mode": "add", "autorename": False, "mute": True}
    assert request.content == b"payload"


@pytest.mark.asyncio
async def test_download_returns_bytes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.headers["Dropbox-API-Arg"]) == {"path": "/a.gz"}
        return httpx.Response(200, content=b"archive")

    assert await _store(handler).download("/a.gz") == b"archive"


@pytest.mark.asyncio
async def test_download_not_found_maps_to_not_found_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"error_summary": "path/not_found/.."})

    with pytest.raises(StorageNotFoundError):
        await _store(handler).download("/missing.gz")


@pytest.mark.asyncio
async def test_server_and_network_errors_map_to_storage_error() -> None:
    def failing(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(StorageError):
        await _store(failing).upload("/a.gz", b"x")
    with pytest.raises(StorageError):
        await _store(unreachable).download("/a.gz")


@pytest.mark.asyncio
async def test_list_folder_follows_cursor_and_skips_folders() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if request.url.path == "/2/files/list_folder":
            assert body == {"path": "", "recursive": False}
            return httpx.Response(
                200,
                json={
                    "entries": [
                        {
                            ".tag": "file",
                            "name": "backup_2024-01-01_00-00-00.gz",
                            "size": 42,
                            "server_modified": "2024-01-01T00:00:05Z",
                        },
                        {".tag": "folder", "name": "old"},
                    ],
                    "has_more": True,
                    "cursor": "c1",
                },
            )
        assert request.url.path == "/2/files/list_folder/continue"
        assert body == {"cursor": "c1"}
        return httpx.Response(
            200,
            json={
                "entries": [{".tag": "file", "name": "notes.txt", "size": 3}],
                "has_more": False,
                "cursor": "c2",
            },
        )

    entries = await _store(handler).list_folder("")

    assert [entry.name for entry in entries] == ["backup_2024-01-01_00-00-00.gz", "notes.txt"]
    assert entries[0].size == 42
    assert entries[0].modified is not None and entries[0].modified.second == 5
    assert entries[1].modified is None


@pytest.mark.asyncio
async def test_list_folder_rejects_unexpected_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"entries": [{".tag": "file"}]})

    with pytest.raises(StorageError):
        await _store(handler).list_folder("")
