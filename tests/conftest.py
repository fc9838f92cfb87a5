"""Shared fixtures: an in-memory datastore and a scripted process runner."""

import copy
import os
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

from vetbackup.backup.gateway import BackupGateway
from vetbackup.backup.process import ProcessResult
from vetbackup.config.settings import Settings
from vetbackup.core.error_handling import DatastoreError, ExternalToolError

ADMIN_TOKEN = "test-admin-token"


class InMemoryDatastore:
    """Dict-of-lists datastore with optional transactions and failure injection."""

    def __init__(self, supports_transactions: bool = False):
        self.collections: Dict[str, List[Dict[str, Any]]] = {}
        self.supports_transactions = supports_transactions
        self.fail_insert_on: Optional[str] = None
        self.calls: List[tuple] = []
        self._next_id = 1

    def seed(self, collection: str, count: int, **fields: Any) -> None:
        for _ in range(count):
            self.collections.setdefault(collection, []).append({"_id": self._next_id, **fields})
            self._next_id += 1

    def find_all(self, collection: str) -> List[Dict[str, Any]]:
        self.calls.append(("find_all", collection))
        return copy.deepcopy(self.collections.get(collection, []))

    def count(self, collection: str) -> int:
        return len(self.collections.get(collection, []))

    def insert_many(self, collection: str, documents: Sequence[Dict[str, Any]], session: Any = None) -> int:
        self.calls.append(("insert_many", collection))
        if self.fail_insert_on == collection:
            raise DatastoreError(f"insert into {collection} rejected", operation="insert_many", collection=collection)
        target = self._target(session).setdefault(collection, [])
        target.extend(copy.deepcopy(list(documents)))
        return len(documents)

    def delete_all(self, collection: str, session: Any = None) -> int:
        self.calls.append(("delete_all", collection))
        target = self._target(session)
        removed = len(target.get(collection, []))
        target[collection] = []
        return removed

    def close(self) -> None:
        self.calls.append(("close",))

    def counts(self) -> Dict[str, int]:
        return {name: len(records) for name, records in self.collections.items()}

    def _target(self, session: Any) -> Dict[str, List[Dict[str, Any]]]:
        return session if session is not None else self.collections

    @contextmanager
    def transaction(self):
        if not self.supports_transactions:
            yield None
            return
        working = copy.deepcopy(self.collections)
        yield working
        # Only reached when the block finished without raising
        self.collections = working


class FakeRunner:
    """Stands in for mongodump/mongorestore.

    ``mode`` is "ok" (writes a fake dump into --out), "missing" (binary not
    installed) or "fail" (nonzero exit).
    """

    def __init__(self, mode: str = "ok"):
        self.mode = mode
        self.calls: List[Sequence[str]] = []

    async def run(self, args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
        self.calls.append(list(args))
        tool = args[0]
        if self.mode == "missing":
            raise ExternalToolError(f"{tool} command not found", tool=tool)
        if self.mode == "fail":
            return ProcessResult(args=tuple(args), exit_code=1, stderr="Failed: connection refused")

        for arg in args:
            if arg.startswith("--out="):
                out = Path(arg[len("--out="):])
                (out / "vet_clinic").mkdir(parents=True, exist_ok=True)
                (out / "vet_clinic" / "users.bson").write_bytes(b"\x00" * 64)
                (out / "vet_clinic" / "users.metadata.json").write_text('{"indexes": []}')
        return ProcessResult(args=tuple(args), exit_code=0)


class SteppingClock:
    """Clock that advances by ``step`` on every call."""

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(milliseconds=1)):
        self.now = start or datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


def make_archives(directory: Path, count: int, start_mtime: int = 1_700_000_000) -> List[Path]:
    """Create ``count`` dummy archives with increasing modification times."""
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for index in range(count):
        path = directory / f"backup-{1_000 + index}.zip"
        path.write_bytes(b"PK")
        os.utime(path, (start_mtime + index, start_mtime + index))
        paths.append(path)
    return paths


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temp directory."""
    return Settings(
        app_root=tmp_path,
        mongo_uri="mongodb://localhost:27017/vet_clinic",
        admin_api_token=ADMIN_TOKEN,
        scheduler_enabled=False,
        retention_window=7,
        worker_threads=2,
    )


@pytest.fixture
def datastore():
    store = InMemoryDatastore()
    store.seed("users", 3, role="owner")
    store.seed("orders", 4, status="accepted")
    store.seed("products", 5, price="9.99")
    store.seed("payments", 2, status="completed")
    store.seed("orderitems", 6, quantity=1)
    store.seed("animals", 2, species="cat")
    return store


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def gateway(settings, datastore, runner, clock):
    gw = BackupGateway(settings, datastore, runner=runner, clock=clock)
    yield gw
    gw.close()


@pytest.fixture
def archive_factory():
    return make_archives


@pytest.fixture
def datastore_factory():
    return InMemoryDatastore


@pytest.fixture
def runner_factory():
    return FakeRunner
