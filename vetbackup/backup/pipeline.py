"""Dump-archive backup pipeline: native dump, zip, cleanup, prune."""

import asyncio
from concurrent.futures import Executor
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from vetbackup.config.logging_config import get_logger
from vetbackup.core.error_handling import FileSystemError

from .archive import ArchiveBuilder, discard_directory
from .models import BackupArtifact, BackupStrategy, archive_name, epoch_millis, temp_dump_name, utc_now
from .process import MongoTools
from .retention import RetentionManager

logger = get_logger(__name__)


class DumpArchivePipeline:
    """Produces ``backup-<epoch-millis>.zip`` files from a native dump."""

    def __init__(
        self,
        tools: MongoTools,
        builder: ArchiveBuilder,
        retention: RetentionManager,
        executor: Optional[Executor] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.tools = tools
        self.builder = builder
        self.retention = retention
        self.executor = executor
        self.clock = clock
        self._last_stamp = 0

    def next_stamp(self) -> int:
        """Millisecond timestamp, strictly increasing across calls."""
        stamp = epoch_millis(self.clock())
        if stamp <= self._last_stamp:
            stamp = self._last_stamp + 1
        self._last_stamp = stamp
        return stamp

    async def run(self, destination: Path, prune: bool = True) -> BackupArtifact:
        """Dump the database and archive it into ``destination``.

        Args:
            destination: Directory receiving the archive (created if absent)
            prune: Enforce the retention window on ``destination`` afterwards

        Raises:
            ExternalToolError: The dump tool failed; no archive was attempted.
            ArchiveError: Archiving failed; no archive is left behind.
            FileSystemError: The working directories could not be created.
        """
        loop = asyncio.get_running_loop()
        stamp = self.next_stamp()
        temp_dir = destination / temp_dump_name(stamp)
        archive_path = destination / archive_name(stamp)

        try:
            temp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(f"Cannot create dump directory: {e}", path=str(temp_dir)) from e

        # The temp dump directory goes away however the run ends, cancellation included
        try:
            await self.tools.dump(temp_dir)
            await loop.run_in_executor(self.executor, self.builder.build, temp_dir, archive_path)
        finally:
            await loop.run_in_executor(self.executor, discard_directory, temp_dir)

        artifact = BackupArtifact.from_path(archive_path, BackupStrategy.ARCHIVE_DUMP)
        logger.info(f"Backup created: {archive_path}")

        if prune:
            await loop.run_in_executor(
                self.executor, self.retention.enforce, destination, BackupStrategy.ARCHIVE_DUMP
            )
        return artifact
