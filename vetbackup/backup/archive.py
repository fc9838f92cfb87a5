"""
Archive builder for the dump-based backup path.

Turns a freshly produced dump directory into a single ZIP file. The archive
is written next to its final location with a ``.partial`` suffix and only
renamed once complete, so readers never see a half-written file.
"""

import shutil
import zipfile
import zlib
from pathlib import Path

from vetbackup.config.logging_config import get_logger
from vetbackup.core.error_handling import ArchiveError

logger = get_logger(__name__)

PARTIAL_SUFFIX = ".partial"


class ArchiveBuilder:
    """Streams a directory tree into a compressed ZIP archive."""

    def __init__(self, compression_level: int = 9):
        """Initialize archive builder.

        Args:
            compression_level: zlib level, 0 (store) to 9 (smallest)
        """
        if not 0 <= compression_level <= 9:
            raise ValueError(f"compression_level must be between 0 and 9, got {compression_level}")
        self.compression_level = compression_level

    def build(self, source_dir: Path, archive_path: Path) -> Path:
        """Archive the contents of ``source_dir`` into ``archive_path``.

        Entries are stored relative to ``source_dir`` (the directory itself
        is not a member).

        Args:
            source_dir: Directory to archive
            archive_path: Final archive location

        Returns:
            ``archive_path``

        Raises:
            ArchiveError: The archive could not be written. Nothing is left
                at ``archive_path`` in that case.
        """
        source_dir = Path(source_dir)
        archive_path = Path(archive_path)
        partial_path = archive_path.with_name(archive_path.name + PARTIAL_SUFFIX)

        if not source_dir.is_dir():
            raise ArchiveError(f"Archive source is not a directory: {source_dir}", archive_path=str(archive_path))

        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(
                partial_path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compression_level,
            ) as archive:
                for path in sorted(source_dir.rglob("*")):
                    arcname = path.relative_to(source_dir).as_posix()
                    archive.write(path, arcname)
            partial_path.replace(archive_path)
        except (OSError, ValueError, zipfile.LargeZipFile, zlib.error) as e:
            self._discard_partial(partial_path)
            logger.error(f"Archive error: {e}")
            raise ArchiveError(f"Error creating archive: {e}", archive_path=str(archive_path)) from e

        logger.info(
            f"Archive created: {archive_path}",
            size_mb=round(archive_path.stat().st_size / (1024**2), 3),
        )
        return archive_path

    @staticmethod
    def _discard_partial(partial_path: Path) -> None:
        try:
            partial_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete partial archive {partial_path}: {e}")


def discard_directory(path: Path) -> bool:
    """Remove a directory tree, logging instead of raising on failure.

    Used for temp dump directories, where a cleanup error must never replace
    the error being cleaned up after.

    Returns:
        True if the directory is gone afterwards
    """
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.error(f"Failed to remove temporary directory {path}: {e}")
        return False
    return True
