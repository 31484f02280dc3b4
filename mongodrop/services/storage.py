from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
import logging
from typing import Any, Protocol

import httpx

from mongodrop.core.config import Settings
from mongodrop.core.errors import StorageError, StorageNotFoundError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
    # Remote file entry as reported by the object store listing.
    name: str
    size: int
    modified: datetime | None


class ObjectStore(Protocol):
    # Minimal storage contract the backup pipelines depend on.
    async def upload(self, path: str, data: bytes) -> None:
        ...

    async def download(self, path: str) -> bytes:
        ...

    async def list_folder(self, path: str) -> list[StoredObject]:
        ...


def remote_path(folder: str, name: str) -> str:
    # Dropbox paths are absolute and the root folder is the empty string.
    cleaned = folder.strip().strip("/")
    if not cleaned:
        return f"/{name}"
    return f"/{cleaned}/{name}"


def folder_path(folder: str) -> str:
    cleaned = folder.strip().strip("/")
    return f"/{cleaned}" if cleaned else ""


def _parse_modified(raw: str | None) -> datetime | None:
    # Dropbox timestamps are ISO 8601 with a trailing Z.
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def _error_summary(response: httpx.Response) -> str:
    # Dropbox reports endpoint errors as JSON with an error_summary field.
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"
    if isinstance(payload, dict) and payload.get("error_summary"):
        return str(payload["error_summary"])
    return f"HTTP {response.status_code}"


class DropboxStore:
    """Object store backed by the Dropbox HTTP API v2.

    Transfers are whole-body: uploads send the full archive in one request and
    downloads buffer the full response. ``transport`` lets tests substitute an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        token: str,
        api_url: str = "https://api.dropboxapi.com/2",
        content_url: str = "https://content.dropboxapi.com/2",
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._content_url = content_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "DropboxStore":
        if not settings.dropbox_token:
            raise StorageError("DROPBOX_TOKEN is required")
        return cls(
            token=settings.dropbox_token,
            api_url=settings.dropbox_api_url,
            content_url=settings.dropbox_content_url,
            timeout_s=settings.ext_call_timeout_ms / 1000.0,
        )

    def _get_client(self) -> httpx.AsyncClient:
        # Lazily create a shared client so connections are reused across calls.
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout_s,
                transport=self._transport,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._get_client().post(url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("dropbox_request_failed url=%s", url, exc_info=exc)
            raise StorageError(f"Dropbox request failed: {exc}") from exc
        if response.status_code == 409:
            summary = _error_summary(response)
            if "not_found" in summary:
                raise StorageNotFoundError(f"Dropbox path not found: {summary}")
            raise StorageError(f"Dropbox request rejected: {summary}")
        if response.status_code >= 400:
            raise StorageError(f"Dropbox request failed: {_error_summary(response)}")
        return response

    async def upload(self, path: str, data: bytes) -> None:
        # Mode "add" without autorename refuses to overwrite an existing artifact.
        arg = {"path": path, "mode": "add", "autorename": False, "mute": True}
        await self._post(
            f"{self._content_url}/files/upload",
            content=data,
            headers={
                "Dropbox-API-Arg": json.dumps(arg),
                "Content-Type": "application/octet-stream",
            },
        )

    async def download(self, path: str) -> bytes:
        response = await self._post(
            f"{self._content_url}/files/download",
            headers={"Dropbox-API-Arg": json.dumps({"path": path})},
        )
        return response.content

    async def list_folder(self, path: str) -> list[StoredObject]:
        # Follow cursors until the listing is exhausted.
        response = await self._post(
            f"{self._api_url}/files/list_folder",
            json={"path": path, "recursive": False},
        )
        entries: list[StoredObject] = []
        while True:
            try:
                payload = response.json()
                for entry in payload.get("entries", []):
                    if entry.get(".tag") != "file":
                        continue
                    entries.append(
                        StoredObject(
                            name=entry["name"],
                            size=int(entry.get("size", 0)),
                            modified=_parse_modified(entry.get("server_modified")),
                        )
                    )
                if not payload.get("has_more"):
                    return entries
                cursor = payload["cursor"]
            except (KeyError, TypeError, ValueError) as exc:
                raise StorageError(f"Unexpected Dropbox listing payload: {exc}") from exc
            response = await self._post(
                f"{self._api_url}/files/list_folder/continue",
                json={"cursor": cursor},
            )
