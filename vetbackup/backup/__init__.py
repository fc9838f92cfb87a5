"""Backup, snapshot, retention and restore components."""

from .archive import ArchiveBuilder
from .datastore import Datastore, MongoDatastore
from .gateway import BackupGateway
from .models import BackupArtifact, BackupStrategy, ImportSummary, RestoreReport
from .pipeline import DumpArchivePipeline
from .process import MongoTools, ProcessResult, ProcessRunner, SubprocessRunner
from .restore import RestoreOrchestrator
from .retention import RetentionManager
from .scheduler import BackupScheduler
from .snapshot import CATALOG, SnapshotCodec, SnapshotManifest

__all__ = [
    "ArchiveBuilder",
    "BackupArtifact",
    "BackupGateway",
    "BackupScheduler",
    "BackupStrategy",
    "CATALOG",
    "Datastore",
    "DumpArchivePipeline",
    "ImportSummary",
    "MongoDatastore",
    "MongoTools",
    "ProcessResult",
    "ProcessRunner",
    "RestoreOrchestrator",
    "RestoreReport",
    "RetentionManager",
    "SnapshotCodec",
    "SnapshotManifest",
    "SubprocessRunner",
]
