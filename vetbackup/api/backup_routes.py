"""Backup and admin API routes."""

import secrets
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from starlette.types import Receive, Scope, Send

from vetbackup.backup.gateway import BackupGateway
from vetbackup.config.logging_config import get_logger
from vetbackup.core.error_handling import AuthenticationError

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class ImportDumpRequest(BaseModel):
    """Body of ``POST /api/backup/import``."""

    dir_path: Optional[str] = Field(default=None, alias="dirPath")


class RestoreRequest(BaseModel):
    """Body of ``POST /api/backup/restore``."""

    backup_path: Optional[str] = Field(default=None, alias="backupPath")


class DiscardingFileResponse(FileResponse):
    """File download that hands the file to ``discard`` once sending ends, successfully or not."""

    def __init__(self, path: Path, discard: Callable[[Path], Awaitable[None]], **kwargs: Any):
        super().__init__(path, filename=path.name, **kwargs)
        self.discard_path = path
        self.discard = discard

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.discard(self.discard_path)


def get_gateway(request: Request) -> BackupGateway:
    return request.app.state.gateway


def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """Reject the call unless it carries the configured admin bearer token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Access token is missing")

    expected = request.app.state.settings.admin_api_token
    if not expected or not secrets.compare_digest(credentials.credentials, expected):
        raise AuthenticationError("Access denied: administrator rights required", status_code=403)


backup_router = APIRouter(prefix="/api/backup", tags=["backup"], dependencies=[Depends(require_admin)])
admin_router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@backup_router.get("")
async def create_snapshot(gateway: BackupGateway = Depends(get_gateway)):
    """Write a full JSON snapshot into the backups directory."""
    path = await gateway.create_snapshot()
    return {"message": "Backup created successfully", "path": str(path)}


@backup_router.get("/list")
async def list_backups(gateway: BackupGateway = Depends(get_gateway)):
    """List dump archives and JSON snapshots, newest first."""
    return {"backups": [artifact.to_dict() for artifact in gateway.list_backups()]}


@backup_router.post("/run")
async def run_backup(gateway: BackupGateway = Depends(get_gateway)):
    """Run the scheduled dump-archive pipeline now and wait for it."""
    artifact = await gateway.run_backup()
    return {"message": "Backup created successfully", "backup": artifact.to_dict()}


@backup_router.get("/export")
async def export_backup(gateway: BackupGateway = Depends(get_gateway)):
    """
    Export the entire database as a ZIP download.

    The archive is deleted once sending ends, whether or not it succeeded.
    """
    artifact = await gateway.export_backup()
    return DiscardingFileResponse(artifact.location, gateway.discard_export, media_type="application/zip")


@backup_router.post("/import")
async def import_backup(body: ImportDumpRequest, gateway: BackupGateway = Depends(get_gateway)):
    """Load a dump directory from inside the backups directory."""
    await gateway.import_backup(body.dir_path)
    return {"message": "Data successfully imported"}


@backup_router.post("/restore")
async def restore_backup(body: RestoreRequest, gateway: BackupGateway = Depends(get_gateway)):
    """Replace the shop collections with the contents of a JSON snapshot file."""
    report = await gateway.restore_snapshot_file(body.backup_path)
    return {
        "message": "Backup restored successfully",
        "restoredData": report.restored,
        "atomic": report.atomic,
    }


@admin_router.get("/export")
async def export_snapshot(gateway: BackupGateway = Depends(get_gateway)):
    """Download orders, users and products as JSON."""
    path = await gateway.export_snapshot()
    return DiscardingFileResponse(path, gateway.discard_export, media_type="application/json")


@admin_router.post("/import")
async def import_snapshot(request: Request, gateway: BackupGateway = Depends(get_gateway)):
    """Add records from a JSON body holding any subset of collection arrays."""
    body = await request.body()
    summary = await gateway.import_snapshot(body)
    return {"message": "Data imported successfully", "imported": summary.to_dict()}
