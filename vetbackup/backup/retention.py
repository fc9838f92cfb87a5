"""Count-based retention for backup artifacts."""

from pathlib import Path
from typing import List, Optional

from vetbackup.config.logging_config import get_logger

from .models import BackupArtifact, BackupStrategy

logger = get_logger(__name__)


class RetentionManager:
    """Keeps the newest N artifacts of a strategy and deletes the rest.

    Ordering is by file modification time, never by file name, so clock
    changes between runs cannot make an old artifact look new.
    """

    def __init__(self, window: int = 7):
        if window < 0:
            raise ValueError(f"Retention window must be >= 0, got {window}")
        self.window = window

    def collect(self, directory: Path, strategy: BackupStrategy) -> List[BackupArtifact]:
        """List artifacts of ``strategy`` in ``directory``, newest first.

        Args:
            directory: Backups directory
            strategy: Which artifact kind to list

        Returns:
            Artifacts sorted by modification time descending
        """
        if not directory.exists():
            return []

        entries = []
        for path in directory.iterdir():
            try:
                if strategy.matches(path):
                    entries.append((path.stat().st_mtime_ns, path))
            except FileNotFoundError:
                # Deleted between listing and stat
                continue

        entries.sort(key=lambda entry: (entry[0], entry[1].name), reverse=True)
        artifacts = []
        for _, path in entries:
            try:
                artifacts.append(BackupArtifact.from_path(path, strategy))
            except FileNotFoundError:
                continue
        return artifacts

    def enforce(
        self,
        directory: Path,
        strategy: BackupStrategy,
        window: Optional[int] = None,
    ) -> List[Path]:
        """Delete every artifact beyond the retention window.

        Args:
            directory: Backups directory
            strategy: Which artifact kind to prune
            window: Override for the configured window

        Returns:
            Paths that were removed
        """
        keep = self.window if window is None else window
        artifacts = self.collect(directory, strategy)
        removed: List[Path] = []

        for artifact in artifacts[keep:]:
            try:
                artifact.location.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to remove old backup {artifact.location}: {e}")
                continue
            removed.append(artifact.location)
            logger.info(f"Removed old backup: {artifact.identifier}")

        if removed:
            logger.info(
                "Retention enforced",
                strategy=strategy.value,
                kept=min(len(artifacts), keep),
                removed=len(removed),
            )
        return removed
