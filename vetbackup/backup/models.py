"""Data model for backup artifacts, snapshots and restore results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class BackupStrategy(Enum):
    """The two kinds of backup artifact the service produces."""

    ARCHIVE_DUMP = "directory-dump-archive"
    JSON_SNAPSHOT = "json-snapshot"

    @property
    def suffix(self) -> str:
        return ".zip" if self is BackupStrategy.ARCHIVE_DUMP else ".json"

    def matches(self, path: Path) -> bool:
        """True for files this strategy owns inside a backups directory."""
        return path.is_file() and path.name.startswith("backup-") and path.name.endswith(self.suffix)


@dataclass(frozen=True)
class BackupArtifact:
    """A backup file on disk. Identity is its file name."""

    identifier: str
    kind: BackupStrategy
    location: Path
    created_at: datetime

    @classmethod
    def from_path(cls, path: Path, kind: BackupStrategy) -> "BackupArtifact":
        stat = path.stat()
        return cls(
            identifier=path.stem,
            kind=kind,
            location=path,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.identifier,
            "kind": self.kind.value,
            "path": str(self.location),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class CollectionSpec:
    """A snapshot key and the datastore collection behind it."""

    key: str
    collection: str


@dataclass
class ImportSummary:
    """Records inserted per snapshot key by an additive import."""

    inserted: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.inserted.values())

    def to_dict(self) -> Dict[str, int]:
        return dict(self.inserted)


@dataclass
class RestoreReport:
    """Outcome of a destructive restore, per collection."""

    restored: Dict[str, int] = field(default_factory=dict)
    failed: Optional[str] = None
    not_restored: List[str] = field(default_factory=list)
    atomic: bool = False
    rolled_back: bool = False

    @property
    def complete(self) -> bool:
        return self.failed is None and not self.not_restored

    def to_dict(self) -> Dict[str, Any]:
        return {
            "restored": dict(self.restored),
            "failed": self.failed,
            "not_restored": list(self.not_restored),
            "atomic": self.atomic,
            "rolled_back": self.rolled_back,
        }


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def iso_stamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T00:00:00.000Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def file_safe_stamp(moment: datetime) -> str:
    """``iso_stamp`` with ``:`` and ``.`` replaced by dashes for use in file names."""
    return iso_stamp(moment).replace(":", "-").replace(".", "-")


def archive_name(millis: int) -> str:
    return f"backup-{millis}.zip"


def temp_dump_name(millis: int) -> str:
    return f"temp-{millis}"


def snapshot_name(moment: datetime, prefix: str = "backup") -> str:
    return f"{prefix}-{file_safe_stamp(moment)}.json"
