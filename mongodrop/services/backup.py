from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Callable
from uuid import uuid4

from mongodrop.core.errors import (
    DownloadFailedError,
    DumpFailedError,
    ListingFailedError,
    RestoreFailedError,
    StorageError,
    UploadFailedError,
)
from mongodrop.services.process import CommandRunner, run_command
from mongodrop.services.storage import ObjectStore, folder_path, remote_path


logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".gz"
ARTIFACT_PREFIX = "backup_"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class BackupArtifact:
    # Describe a remote archive; size and mtime come from the store listing.
    name: str
    size: int
    modified: datetime | None

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "size": self.size,
            "modified": self.modified.isoformat() if self.modified else None,
        }


def _utc_now() -> datetime:
    # Use UTC timestamps so artifact names sort the same on every host.
    return datetime.now(timezone.utc)


class ArtifactNamer:
    """Name archives ``backup_<YYYY-MM-DD_HH-mm-ss>.gz`` from a clock."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or _utc_now

    def name(self) -> str:
        return f"{ARTIFACT_PREFIX}{self._clock().strftime(TIMESTAMP_FORMAT)}{ARCHIVE_EXTENSION}"


def _validate_artifact_name(name: str) -> None:
    # Only plain file names may be mapped onto the staging directory and remote folder.
    if not name or name in {".", ".."} or any(ch in name for ch in ("/", "\\", "\x00")):
        raise DownloadFailedError(f"Invalid backup name: {name!r}")


def staging_path_for(staging_dir: Path, name: str) -> Path:
    # Prefix with a per-invocation token so concurrent runs never share a file.
    return staging_dir / f"{uuid4().hex}_{name}"


class DumpPipeline:
    """Dump the database to a staged archive and upload it to the object store."""

    def __init__(
        self,
        *,
        mongo_uri: str,
        store: ObjectStore,
        staging_dir: Path,
        remote_folder: str = "",
        namer: ArtifactNamer | None = None,
        runner: CommandRunner | None = None,
        dump_command: str = "mongodump",
    ) -> None:
        self._mongo_uri = mongo_uri
        self._store = store
        self._staging_dir = staging_dir
        self._remote_folder = remote_folder
        self._namer = namer or ArtifactNamer()
        self._runner = runner or run_command
        self._dump_command = dump_command

    def dump_args(self, archive_path: Path) -> list[str]:
        return [
            self._dump_command,
            f"--uri={self._mongo_uri}",
            f"--archive={archive_path}",
            "--gzip",
        ]

    async def create_backup(self) -> str:
        name = self._namer.name()
        staging_path = staging_path_for(self._staging_dir, name)
        self._staging_dir.mkdir(parents=True, exist_ok=True)

        try:
            result = await self._runner(self.dump_args(staging_path))
        except OSError as exc:
            staging_path.unlink(missing_ok=True)
            logger.error("backup_dump_spawn_failed name=%s", name, exc_info=exc)
            raise DumpFailedError(f"Backup dump failed: {exc}") from exc
        if not result.ok:
            # Drop partial archives so repeated failures cannot fill the disk.
            staging_path.unlink(missing_ok=True)
            logger.error(
                "backup_dump_failed name=%s returncode=%s", name, result.returncode
            )
            raise DumpFailedError(f"Backup dump failed: {result.diagnostics}")
        logger.info("backup_dumped name=%s", name)

        try:
            data = await asyncio.to_thread(staging_path.read_bytes)
            await self._store.upload(remote_path(self._remote_folder, name), data)
        except (OSError, StorageError) as exc:
            logger.error(
                "backup_upload_failed name=%s staging_path=%s", name, staging_path, exc_info=exc
            )
            raise UploadFailedError(
                f"Backup upload failed: {exc}", staging_path=str(staging_path)
            ) from exc

        logger.info("backup_uploaded name=%s size_bytes=%s", name, len(data))
        return name


class RestorePipeline:
    """Download a named archive and restore it, always removing the local copy."""

    def __init__(
        self,
        *,
        mongo_uri: str,
        store: ObjectStore,
        staging_dir: Path,
        remote_folder: str = "",
        runner: CommandRunner | None = None,
        restore_command: str = "mongorestore",
    ) -> None:
        self._mongo_uri = mongo_uri
        self._store = store
        self._staging_dir = staging_dir
        self._remote_folder = remote_folder
        self._runner = runner or run_command
        self._restore_command = restore_command

    def restore_args(self, archive_path: Path) -> list[str]:
        # --drop replaces existing collections with the archived data.
        return [
            self._restore_command,
            f"--uri={self._mongo_uri}",
            f"--archive={archive_path}",
            "--gzip",
            "--drop",
        ]

    async def restore_backup(self, name: str) -> None:
        _validate_artifact_name(name)
        try:
            data = await self._store.download(remote_path(self._remote_folder, name))
        except StorageError as exc:
            logger.error("restore_download_failed name=%s", name, exc_info=exc)
            raise DownloadFailedError(f"Backup download failed: {exc}") from exc
        logger.info("restore_downloaded name=%s size_bytes=%s", name, len(data))

        staging_path = staging_path_for(self._staging_dir, name)
        self._staging_dir.mkdir(parents=True, exist_ok=True)
        try:
            try:
                await asyncio.to_thread(staging_path.write_bytes, data)
            except OSError as exc:
                raise DownloadFailedError(f"Backup download failed: {exc}") from exc
            try:
                result = await self._runner(self.restore_args(staging_path))
            except OSError as exc:
                logger.error("restore_spawn_failed name=%s", name, exc_info=exc)
                raise RestoreFailedError(f"Restore failed: {exc}") from exc
            if not result.ok:
                logger.error("restore_failed name=%s returncode=%s", name, result.returncode)
                raise RestoreFailedError(f"Restore failed: {result.diagnostics}")
        finally:
            staging_path.unlink(missing_ok=True)

        logger.info("restore_completed name=%s", name)


class BackupCatalog:
    """List archives from the remote store, never from local disk."""

    def __init__(self, *, store: ObjectStore, remote_folder: str = "") -> None:
        self._store = store
        self._remote_folder = remote_folder

    async def list_backups(self) -> list[BackupArtifact]:
        try:
            entries = await self._store.list_folder(folder_path(self._remote_folder))
        except StorageError as exc:
            logger.error("backup_listing_failed", exc_info=exc)
            raise ListingFailedError(f"Backup listing failed: {exc}") from exc
        return [
            BackupArtifact(name=entry.name, size=entry.size, modified=entry.modified)
            for entry in entries
            if entry.name.endswith(ARCHIVE_EXTENSION)
        ]
