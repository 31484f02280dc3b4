from __future__ import annotations

from datetime import datetime
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from mongodrop.apps.api.deps import Principal, get_coordinator, require_operator
from mongodrop.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from mongodrop.services.coordinator import BackupCoordinator


logger = logging.getLogger(__name__)

router = APIRouter(tags=["backups"], responses=DEFAULT_ERROR_RESPONSES)


class ScheduleResponse(BaseModel):
    interval: str | None
    next_run_time: datetime | None = None


class RestoreRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    backup_name: str = Field(alias="backupName", min_length=1, max_length=255)


class BackupEntry(BaseModel):
    name: str
    size: int
    modified: datetime | None


@router.post("/schedule", response_class=PlainTextResponse)
async def set_schedule(
    payload: Any = Body(None),
    principal: Principal = Depends(require_operator),
    coordinator: BackupCoordinator = Depends(get_coordinator),
) -> str:
    # Replace the recurring backup job; at most one is ever active.
    # Any body shape is accepted so every unusable interval is reported as INVALID_SCHEDULE.
    interval = payload.get("interval") if isinstance(payload, dict) else None
    state = await coordinator.set_schedule(interval)
    logger.info("schedule_updated interval=%s actor=%s", state.interval, principal.subject_id)
    return f"Backup schedule set to {state.interval}"


@router.get("/schedule", response_model=ScheduleResponse)
async def get_schedule(
    principal: Principal = Depends(require_operator),
    coordinator: BackupCoordinator = Depends(get_coordinator),
) -> ScheduleResponse:
    state = coordinator.schedule.state
    if state is None:
        return ScheduleResponse(interval=None)
    return ScheduleResponse(interval=state.interval, next_run_time=state.next_run_time)


@router.delete("/schedule", response_class=PlainTextResponse)
async def clear_schedule(
    principal: Principal = Depends(require_operator),
    coordinator: BackupCoordinator = Depends(get_coordinator),
) -> str:
    await coordinator.schedule.clear()
    logger.info("schedule_cleared actor=%s", principal.subject_id)
    return "Backup schedule cleared"


@router.get("/backups", response_model=list[BackupEntry])
async def list_backups(
    principal: Principal = Depends(require_operator),
    coordinator: BackupCoordinator = Depends(get_coordinator),
) -> list[BackupEntry]:
    # The remote store is authoritative, so listings survive process restarts.
    artifacts = await coordinator.list_backups()
    return [
        BackupEntry(name=artifact.name, size=artifact.size, modified=artifact.modified)
        for artifact in artifacts
    ]


@router.post("/backup", response_class=PlainTextResponse)
async def create_backup(
    principal: Principal = Depends(require_operator),
    coordinator: BackupCoordinator = Depends(get_coordinator),
) -> str:
    name = await coordinator.create_backup()
    logger.info("backup_requested name=%s actor=%s", name, principal.subject_id)
    return f"Backup created: {name}"


@router.post("/restore", response_class=PlainTextResponse)
async def restore_backup(
    payload: RestoreRequest,
    principal: Principal = Depends(require_operator),
    coordinator: BackupCoordinator = Depends(get_coordinator),
) -> str:
    await coordinator.restore_backup(payload.backup_name)
    logger.info("restore_requested name=%s actor=%s", payload.backup_name, principal.subject_id)
    return f"Database restored from: {payload.backup_name}"
