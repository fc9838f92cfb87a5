"""
Datastore snapshot codec.

A snapshot is one JSON document mapping collection keys to the full list of
records in that collection. MongoDB extended JSON (``bson.json_util``) keeps
``ObjectId``, ``Decimal128`` and dates intact across an export/import round
trip.
"""

from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import aiofiles
from bson import json_util
from bson.errors import BSONError

from vetbackup.config.logging_config import get_logger
from vetbackup.core.error_handling import DatastoreError, FileSystemError, ValidationError

from .datastore import Datastore, Document
from .models import CollectionSpec, ImportSummary, iso_stamp

logger = get_logger(__name__)

# Snapshot key -> datastore collection. Fixed for the deployment.
CATALOG: Tuple[CollectionSpec, ...] = (
    CollectionSpec("users", "users"),
    CollectionSpec("animals", "animals"),
    CollectionSpec("appointments", "appointments"),
    CollectionSpec("healthRecords", "healthrecords"),
    CollectionSpec("orders", "orders"),
    CollectionSpec("orderItems", "orderitems"),
    CollectionSpec("payments", "payments"),
    CollectionSpec("products", "products"),
)

CATALOG_BY_KEY: Dict[str, CollectionSpec] = {entry.key: entry for entry in CATALOG}

# Collections written by the export-only variant.
EXPORT_KEYS: Tuple[str, ...] = ("orders", "users", "products")

JSON_OPTIONS = json_util.RELAXED_JSON_OPTIONS


class SnapshotManifest:
    """Collection key -> ordered records, plus an optional creation timestamp."""

    def __init__(self, collections: Optional[Dict[str, List[Document]]] = None, timestamp: Optional[str] = None):
        self.collections: Dict[str, List[Document]] = dict(collections or {})
        self.timestamp = timestamp

    @classmethod
    def from_document(cls, document: Any) -> "SnapshotManifest":
        """Validate the shape of a decoded snapshot document.

        Unknown top-level keys are ignored. A catalog key that is present but
        null counts as absent.

        Raises:
            ValidationError: The document is not a mapping, or a catalog key
                does not hold a list of mappings.
        """
        if not isinstance(document, Mapping):
            raise ValidationError("Snapshot must be a JSON object keyed by collection name")

        collections: Dict[str, List[Document]] = {}
        for entry in CATALOG:
            value = document.get(entry.key)
            if value is None:
                continue
            if not isinstance(value, list):
                raise ValidationError(f"Snapshot key '{entry.key}' must be a list of records", field=entry.key)
            for position, record in enumerate(value):
                if not isinstance(record, Mapping):
                    raise ValidationError(
                        f"Record {position} of '{entry.key}' is not an object",
                        field=entry.key,
                    )
            collections[entry.key] = [dict(record) for record in value]

        timestamp = document.get("timestamp")
        return cls(collections, timestamp=str(timestamp) if timestamp is not None else None)

    @classmethod
    def loads(cls, text: Union[str, bytes]) -> "SnapshotManifest":
        """Parse extended JSON text into a manifest."""
        try:
            document = json_util.loads(text, json_options=JSON_OPTIONS)
        except (ValueError, TypeError, BSONError) as e:
            raise ValidationError(f"Snapshot is not valid JSON: {e}") from e
        return cls.from_document(document)

    def dumps(self) -> str:
        """Pretty-printed extended JSON for this manifest."""
        return json_util.dumps(self.to_document(), indent=2, json_options=JSON_OPTIONS)

    def to_document(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            entry.key: self.collections[entry.key] for entry in CATALOG if entry.key in self.collections
        }
        if self.timestamp is not None:
            document["timestamp"] = self.timestamp
        return document

    def keys(self) -> List[str]:
        return [entry.key for entry in CATALOG if entry.key in self.collections]

    def has(self, key: str) -> bool:
        return key in self.collections

    def records(self, key: str) -> List[Document]:
        return self.collections.get(key, [])

    def counts(self) -> Dict[str, int]:
        return {key: len(self.collections[key]) for key in self.keys()}

    def require(self, keys: Iterable[str]) -> None:
        """Fail unless every key in ``keys`` is present."""
        missing = [key for key in keys if key not in self.collections]
        if missing:
            raise ValidationError(
                f"Invalid backup file structure: missing {', '.join(missing)}",
                field=missing[0],
                context={"missing": missing},
            )

    def require_any(self) -> None:
        """Fail unless at least one catalog key is present."""
        if not self.collections:
            raise ValidationError(
                "No valid data provided for import",
                context={"accepted_keys": [entry.key for entry in CATALOG]},
            )


class SnapshotCodec:
    """Reads the datastore into manifests and writes manifests back into it."""

    def __init__(self, datastore: Datastore):
        self.datastore = datastore

    def collect(self, keys: Optional[Sequence[str]] = None, moment: Optional[datetime] = None) -> SnapshotManifest:
        """Read the full contents of the given collections (all by default). Blocking."""
        selected = [CATALOG_BY_KEY[key] for key in keys] if keys else list(CATALOG)
        collections = {entry.key: self.datastore.find_all(entry.collection) for entry in selected}
        manifest = SnapshotManifest(collections, timestamp=iso_stamp(moment) if moment else None)
        logger.info("Snapshot collected", counts=manifest.counts())
        return manifest

    def import_manifest(self, manifest: SnapshotManifest) -> ImportSummary:
        """Additively bulk-insert every collection present in ``manifest``. Blocking.

        Nothing is deleted and nothing is deduplicated: importing the same
        manifest twice inserts its records twice.
        """
        manifest.require_any()
        summary = ImportSummary({entry.key: 0 for entry in CATALOG})

        for entry in CATALOG:
            if not manifest.has(entry.key):
                continue
            try:
                summary.inserted[entry.key] = self.datastore.insert_many(entry.collection, manifest.records(entry.key))
            except DatastoreError as e:
                e.context["inserted_before_failure"] = summary.to_dict()
                raise

        logger.info("Snapshot imported", inserted=summary.to_dict())
        return summary

    @staticmethod
    async def write(manifest: SnapshotManifest, path: Path) -> Path:
        """Write ``manifest`` to ``path`` as pretty-printed JSON."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "w", encoding="utf-8") as f:
                await f.write(manifest.dumps())
        except OSError as e:
            raise FileSystemError(f"Failed to write snapshot: {e}", path=str(path)) from e
        logger.info(f"Snapshot written: {path}")
        return path

    @staticmethod
    async def read(path: Path) -> SnapshotManifest:
        """Read and validate a snapshot file."""
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                text = await f.read()
        except UnicodeDecodeError as e:
            raise ValidationError(f"Error reading backup file: {e}") from e
        except OSError as e:
            raise FileSystemError(f"Error reading backup file: {e}", path=str(path)) from e
        return SnapshotManifest.loads(text)
