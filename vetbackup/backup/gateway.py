"""
Backup/restore gateway.

The one object the route layer and the CLI talk to. Each operation runs to
completion before returning. Blocking work goes to a dedicated thread pool,
and everything that writes into the backups or exports directories holds a
single lock so retention never races an in-progress write.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

from vetbackup.config.logging_config import get_logger
from vetbackup.config.settings import Settings
from vetbackup.core.error_handling import NotFoundError, ValidationError, log_and_swallow

from .archive import ArchiveBuilder
from .datastore import Datastore
from .models import (
    BackupArtifact,
    BackupStrategy,
    ImportSummary,
    RestoreReport,
    snapshot_name,
    utc_now,
)
from .pipeline import DumpArchivePipeline
from .process import MongoTools, ProcessRunner, SubprocessRunner
from .restore import RestoreOrchestrator
from .retention import RetentionManager
from .snapshot import EXPORT_KEYS, SnapshotCodec, SnapshotManifest

logger = get_logger(__name__)


class BackupGateway:
    """Run backup now, list, export, import and restore."""

    def __init__(
        self,
        settings: Settings,
        datastore: Datastore,
        runner: Optional[ProcessRunner] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self.datastore = datastore
        self.clock = clock
        self.backups_dir = Path(settings.backups_dir).resolve()
        self.exports_dir = Path(settings.exports_dir).resolve()

        self.executor = ThreadPoolExecutor(
            max_workers=settings.worker_threads,
            thread_name_prefix="backup-worker",
        )
        self._write_lock = asyncio.Lock()

        self.retention = RetentionManager(settings.retention_window)
        self.codec = SnapshotCodec(datastore)
        self.restorer = RestoreOrchestrator(datastore)
        self.tools = MongoTools(
            runner or SubprocessRunner(),
            uri=settings.mongo_uri or "",
            dump_command=settings.dump_command,
            restore_command=settings.restore_command,
            timeout=settings.process_timeout_seconds,
        )
        self.pipeline = DumpArchivePipeline(
            self.tools,
            ArchiveBuilder(settings.archive_compression_level),
            self.retention,
            executor=self.executor,
            clock=clock,
        )

    async def _blocking(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, func, *args)

    # ----------------------------- Dump archives -----------------------------

    async def run_backup(self) -> BackupArtifact:
        """Dump, archive and prune. Raises on failure."""
        async with self._write_lock:
            return await self.pipeline.run(self.backups_dir, prune=True)

    @log_and_swallow("Scheduled backup")
    async def run_scheduled_backup(self) -> BackupArtifact:
        """``run_backup`` for the scheduler: failures are logged, never raised."""
        return await self.run_backup()

    def list_backups(self) -> List[BackupArtifact]:
        """Every backup artifact of either kind, newest first."""
        artifacts = []
        for strategy in BackupStrategy:
            artifacts.extend(self.retention.collect(self.backups_dir, strategy))
        artifacts.sort(key=lambda artifact: artifact.created_at, reverse=True)
        return artifacts

    async def export_backup(self) -> BackupArtifact:
        """Build a dump archive for download.

        The archive lives in the exports directory, outside retention's
        reach. Call ``discard_export`` once the download has been sent.
        """
        async with self._write_lock:
            return await self.pipeline.run(self.exports_dir, prune=False)

    async def discard_export(self, path: Union[str, Path]) -> None:
        """Remove a downloaded export. Failures are logged only."""
        try:
            await self._blocking(Path(path).unlink, True)
        except OSError as e:
            logger.error(f"File cleanup error for {path}: {e}")

    async def import_backup(self, dir_path: Optional[str]) -> None:
        """Load a dump directory (inside the backups root) with ``--drop``."""
        directory = self._confine(dir_path, field="dirPath")
        if not directory.is_dir():
            raise NotFoundError("Directory not found or not specified", path=str(dir_path))
        await self.tools.restore(directory, drop=True)
        logger.info(f"Data successfully imported from {directory}")

    # ----------------------------- JSON snapshots ----------------------------

    async def create_snapshot(self) -> Path:
        """Write a full snapshot into the backups directory."""
        moment = self.clock()
        manifest = await self._blocking(self.codec.collect, None, moment)
        path = self.backups_dir / snapshot_name(moment, prefix="backup")
        async with self._write_lock:
            await self.codec.write(manifest, path)
            window = self.settings.snapshot_retention_window
            if window is not None:
                await self._blocking(self.retention.enforce, self.backups_dir, BackupStrategy.JSON_SNAPSHOT, window)
        return path

    async def export_snapshot(self) -> Path:
        """Write the orders/users/products export for download."""
        moment = self.clock()
        manifest = await self._blocking(self.codec.collect, EXPORT_KEYS, None)
        path = self.exports_dir / snapshot_name(moment, prefix="export")
        async with self._write_lock:
            await self.codec.write(manifest, path)
        return path

    async def import_snapshot(self, document: Union[SnapshotManifest, Any]) -> ImportSummary:
        """Additive import of any subset of collections."""
        manifest = self._as_manifest(document)
        manifest.require_any()
        return await self._blocking(self.codec.import_manifest, manifest)

    async def restore_snapshot(self, document: Union[SnapshotManifest, Any]) -> RestoreReport:
        """Destructive restore from an in-memory snapshot."""
        manifest = self._as_manifest(document)
        self.restorer.validate(manifest)
        return await self._blocking(self.restorer.restore, manifest)

    async def restore_snapshot_file(self, backup_path: Optional[str]) -> RestoreReport:
        """Destructive restore from a snapshot file inside the backups root."""
        path = self._confine(backup_path, field="backupPath")
        if not path.is_file():
            raise NotFoundError("Backup file not found", path=str(backup_path))
        manifest = await self.codec.read(path)
        return await self.restore_snapshot(manifest)

    # ------------------------------- Helpers ---------------------------------

    @staticmethod
    def _as_manifest(document: Union[SnapshotManifest, Any]) -> SnapshotManifest:
        if isinstance(document, SnapshotManifest):
            return document
        if isinstance(document, (str, bytes)):
            return SnapshotManifest.loads(document)
        return SnapshotManifest.from_document(document)

    def _confine(self, raw_path: Optional[str], field: str) -> Path:
        """Resolve a caller-supplied path and refuse anything outside the backups root."""
        if not raw_path or not str(raw_path).strip():
            raise ValidationError(f"{field} is required", field=field)

        root = self.backups_dir
        candidate = Path(raw_path)
        if not candidate.is_absolute():
            candidate = root / candidate
        resolved = candidate.resolve()

        if resolved != root and root not in resolved.parents:
            logger.warning(f"Rejected path outside backups root: {raw_path}")
            raise ValidationError(f"{field} must be inside the backups directory", field=field)
        return resolved

    def close(self) -> None:
        self.executor.shutdown(wait=True)
