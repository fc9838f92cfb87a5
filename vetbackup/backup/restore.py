"""Destructive restore of the managed collections from a snapshot."""

from typing import Optional, Tuple

from vetbackup.config.logging_config import get_logger
from vetbackup.core.error_handling import RestoreError

from .datastore import Datastore
from .models import RestoreReport
from .snapshot import CATALOG_BY_KEY, SnapshotManifest

logger = get_logger(__name__)

# A restore snapshot must carry these keys.
REQUIRED_KEYS: Tuple[str, ...] = ("orders", "users", "products")

# Collections a restore replaces; optional ones default to empty.
RESTORE_KEYS: Tuple[str, ...] = ("orders", "users", "products", "payments", "orderItems")


class RestoreOrchestrator:
    """Replaces the managed collections with the contents of a snapshot.

    The manifest is validated before anything is touched. Each collection is
    cleared and then repopulated, one at a time. When the datastore yields a
    transaction session the whole sequence commits or aborts together;
    otherwise a failure raises ``RestoreError`` whose report lists exactly
    which collections were replaced and which were not.
    """

    def __init__(self, datastore: Datastore):
        self.datastore = datastore

    def validate(self, manifest: SnapshotManifest) -> None:
        manifest.require(REQUIRED_KEYS)

    def restore(self, manifest: SnapshotManifest) -> RestoreReport:
        """Validate then replace. Blocking.

        Raises:
            ValidationError: A required key is missing; nothing was changed.
            RestoreError: The datastore failed part way.
        """
        self.validate(manifest)

        report = RestoreReport()
        current: Optional[str] = None
        try:
            with self.datastore.transaction() as session:
                report.atomic = session is not None
                for key in RESTORE_KEYS:
                    current = key
                    collection = CATALOG_BY_KEY[key].collection
                    self.datastore.delete_all(collection, session=session)
                    report.restored[key] = self.datastore.insert_many(
                        collection, manifest.records(key), session=session
                    )
                current = None
        except Exception as e:
            report.failed = current
            if report.atomic:
                report.rolled_back = True
                report.restored = {}
            report.not_restored = [key for key in RESTORE_KEYS if key not in report.restored]
            logger.error(
                f"Restore failed at {current or 'transaction commit'}: {e}",
                restored=list(report.restored),
                not_restored=report.not_restored,
                rolled_back=report.rolled_back,
            )
            raise RestoreError(f"Error restoring backup: {e}", report=report) from e

        logger.info("Backup restored", restored=report.restored, atomic=report.atomic)
        return report
