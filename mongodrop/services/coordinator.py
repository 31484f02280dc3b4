from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from mongodrop.core.config import Settings
from mongodrop.core.errors import ConfigError
from mongodrop.services.backup import (
    ArtifactNamer,
    BackupArtifact,
    BackupCatalog,
    Clock,
    DumpPipeline,
    RestorePipeline,
)
from mongodrop.services.process import CommandRunner
from mongodrop.services.scheduler import ScheduleController, ScheduleState
from mongodrop.services.storage import DropboxStore, ObjectStore


logger = logging.getLogger(__name__)


@dataclass
class BackupCoordinator:
    # Bundle the pipelines, catalog, and schedule so request handlers share one instance.
    dump: DumpPipeline
    restore: RestorePipeline
    catalog: BackupCatalog
    schedule: ScheduleController
    store: ObjectStore

    async def create_backup(self) -> str:
        return await self.dump.create_backup()

    async def restore_backup(self, name: str) -> None:
        await self.restore.restore_backup(name)

    async def list_backups(self) -> list[BackupArtifact]:
        return await self.catalog.list_backups()

    async def set_schedule(self, interval: object) -> ScheduleState:
        return await self.schedule.set_schedule(interval)

    def start(self) -> None:
        self.schedule.start()

    async def aclose(self) -> None:
        self.schedule.shutdown()
        close = getattr(self.store, "aclose", None)
        if close is not None:
            await close()


def initialize(
    settings: Settings,
    *,
    store: ObjectStore | None = None,
    runner: CommandRunner | None = None,
    clock: Clock | None = None,
) -> BackupCoordinator:
    """Validate configuration and wire a coordinator.

    Raises ``ConfigError`` when the database URI or the storage token is
    missing. Creates the staging directory. Collaborators can be injected for
    tests and tooling; defaults are the Dropbox store and real subprocesses.
    """
    missing = [
        env_name
        for env_name, value in (("MONGO_URI", settings.mongo_uri), ("DROPBOX_TOKEN", settings.dropbox_token))
        if not value
    ]
    if missing:
        raise ConfigError(f"{' and '.join(missing)} must be set")
    if not settings.jwt_secret:
        logger.warning("jwt_secret_missing protected endpoints will reject all tokens")

    staging_dir = Path(settings.backup_staging_dir)
    try:
        staging_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"Cannot create staging directory {staging_dir}: {exc}") from exc

    store = store or DropboxStore.from_settings(settings)
    dump = DumpPipeline(
        mongo_uri=settings.mongo_uri,
        store=store,
        staging_dir=staging_dir,
        remote_folder=settings.dropbox_folder,
        namer=ArtifactNamer(clock),
        runner=runner,
        dump_command=settings.dump_command,
    )
    restore = RestorePipeline(
        mongo_uri=settings.mongo_uri,
        store=store,
        staging_dir=staging_dir,
        remote_folder=settings.dropbox_folder,
        runner=runner,
        restore_command=settings.restore_command,
    )
    catalog = BackupCatalog(store=store, remote_folder=settings.dropbox_folder)
    schedule = ScheduleController(
        dump.create_backup,
        timezone=settings.schedule_timezone,
        misfire_grace_s=settings.schedule_misfire_grace_s,
    )
    logger.info("coordinator_initialized staging_dir=%s", staging_dir)
    return BackupCoordinator(
        dump=dump,
        restore=restore,
        catalog=catalog,
        schedule=schedule,
        store=store,
    )
