"""Tests for the backup gateway."""

import asyncio
import json
import zipfile
from datetime import timedelta

import pytest

from vetbackup.backup.gateway import BackupGateway
from vetbackup.backup.models import BackupStrategy
from vetbackup.core.error_handling import (
    ExternalToolError,
    NotFoundError,
    RestoreError,
    ValidationError,
)


class TestDumpOperations:
    """Test run, list, export and import of dump archives."""

    @pytest.mark.asyncio
    async def test_run_backup_writes_into_backups_dir(self, gateway, settings):
        artifact = await gateway.run_backup()

        assert artifact.location.parent == settings.backups_dir.resolve()
        assert artifact.location.exists()

    @pytest.mark.asyncio
    async def test_run_backup_raises_on_failure(self, settings, datastore, runner_factory):
        gw = BackupGateway(settings, datastore, runner=runner_factory("fail"))
        try:
            with pytest.raises(ExternalToolError):
                await gw.run_backup()
        finally:
            gw.close()

    @pytest.mark.asyncio
    async def test_scheduled_backup_swallows_failure(self, settings, datastore, runner_factory):
        gw = BackupGateway(settings, datastore, runner=runner_factory("missing"))
        try:
            assert await gw.run_scheduled_backup() is None
        finally:
            gw.close()

    @pytest.mark.asyncio
    async def test_list_backups_covers_both_kinds(self, gateway):
        await gateway.run_backup()
        await gateway.create_snapshot()

        kinds = {artifact.kind for artifact in gateway.list_backups()}

        assert kinds == {BackupStrategy.ARCHIVE_DUMP, BackupStrategy.JSON_SNAPSHOT}

    def test_list_backups_empty(self, gateway):
        assert gateway.list_backups() == []

    @pytest.mark.asyncio
    async def test_export_lives_outside_backups_dir(self, gateway, settings, archive_factory):
        """Exports are never pruned and never pruned against."""
        archive_factory(settings.backups_dir, 7)

        artifact = await gateway.export_backup()

        assert artifact.location.parent == settings.exports_dir.resolve()
        assert len(list(settings.backups_dir.glob("backup-*.zip"))) == 7

        await gateway.discard_export(artifact.location)
        assert not artifact.location.exists()

    @pytest.mark.asyncio
    async def test_discard_missing_export(self, gateway, tmp_path):
        await gateway.discard_export(tmp_path / "never-existed.zip")

    @pytest.mark.asyncio
    async def test_import_backup_runs_restore_tool(self, gateway, runner, settings):
        dump = settings.backups_dir / "temp-1"
        (dump / "vet_clinic").mkdir(parents=True)

        await gateway.import_backup(str(dump))

        args = runner.calls[-1]
        assert args[0] == "mongorestore"
        assert f"--dir={dump.resolve()}" in args
        assert "--drop" in args

    @pytest.mark.asyncio
    async def test_import_backup_relative_path(self, gateway, runner, settings):
        (settings.backups_dir / "temp-2").mkdir(parents=True)
        await gateway.import_backup("temp-2")
        assert runner.calls

    @pytest.mark.asyncio
    async def test_import_backup_missing_directory(self, gateway, runner):
        """A missing directory never reaches the restore tool."""
        with pytest.raises(NotFoundError) as exc_info:
            await gateway.import_backup("temp-404")

        assert exc_info.value.message == "Directory not found or not specified"
        assert runner.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [None, "", "   "])
    async def test_import_backup_requires_path(self, gateway, raw):
        with pytest.raises(ValidationError):
            await gateway.import_backup(raw)

    @pytest.mark.asyncio
    async def test_import_backup_rejects_escape(self, gateway, runner, tmp_path):
        (tmp_path / "elsewhere").mkdir()
        with pytest.raises(ValidationError):
            await gateway.import_backup("../elsewhere")
        with pytest.raises(ValidationError):
            await gateway.import_backup(str(tmp_path / "elsewhere"))
        assert runner.calls == []


class TestSnapshotOperations:
    """Test JSON snapshot create, export, import and restore."""

    @pytest.mark.asyncio
    async def test_create_snapshot(self, gateway, settings):
        path = await gateway.create_snapshot()

        assert path.name == "backup-2024-03-01T12-00-00-000Z.json"
        assert path.parent == settings.backups_dir.resolve()
        document = json.loads(path.read_text())
        assert document["timestamp"] == "2024-03-01T12:00:00.000Z"
        assert len(document["orderItems"]) == 6
        assert document["healthRecords"] == []

    @pytest.mark.asyncio
    async def test_snapshot_retention_window(self, settings, datastore, runner, clock):
        gw = BackupGateway(settings.model_copy(update={"snapshot_retention_window": 2}), datastore, runner, clock)
        try:
            for _ in range(4):
                await gw.create_snapshot()
        finally:
            gw.close()

        assert len(list(settings.backups_dir.glob("backup-*.json"))) == 2

    @pytest.mark.asyncio
    async def test_export_snapshot(self, gateway, settings):
        path = await gateway.export_snapshot()

        assert path.name.startswith("export-")
        assert path.parent == settings.exports_dir.resolve()
        document = json.loads(path.read_text())
        assert set(document) == {"orders", "users", "products"}

    @pytest.mark.asyncio
    async def test_import_snapshot_from_bytes(self, gateway, datastore):
        summary = await gateway.import_snapshot(b'{"users": [{"name": "Ann"}], "appointments": [{"slot": 1}]}')

        assert summary.inserted["users"] == 1
        assert summary.inserted["appointments"] == 1
        assert datastore.count("users") == 4

    @pytest.mark.asyncio
    async def test_import_snapshot_rejects_empty(self, gateway):
        with pytest.raises(ValidationError) as exc_info:
            await gateway.import_snapshot({"somethingElse": []})
        assert exc_info.value.message == "No valid data provided for import"

    @pytest.mark.asyncio
    async def test_restore_snapshot_file(self, gateway, datastore):
        path = await gateway.create_snapshot()
        datastore.seed("orders", 10)

        report = await gateway.restore_snapshot_file(str(path))

        assert report.restored["orders"] == 4
        assert datastore.count("orders") == 4

    @pytest.mark.asyncio
    async def test_restore_snapshot_file_missing(self, gateway):
        with pytest.raises(NotFoundError) as exc_info:
            await gateway.restore_snapshot_file("backup-nope.json")
        assert exc_info.value.message == "Backup file not found"

    @pytest.mark.asyncio
    async def test_restore_snapshot_file_invalid_json(self, gateway, settings, datastore):
        settings.backups_dir.mkdir(parents=True)
        (settings.backups_dir / "backup-bad.json").write_text("not json at all")
        before = datastore.counts()

        with pytest.raises(ValidationError):
            await gateway.restore_snapshot_file("backup-bad.json")

        assert datastore.counts() == before

    @pytest.mark.asyncio
    async def test_restore_snapshot_missing_required(self, gateway, datastore):
        before = datastore.counts()
        with pytest.raises(ValidationError):
            await gateway.restore_snapshot({"orders": [], "products": []})
        assert datastore.counts() == before

    @pytest.mark.asyncio
    async def test_restore_snapshot_partial_failure(self, gateway, datastore):
        datastore.fail_insert_on = "users"
        with pytest.raises(RestoreError) as exc_info:
            await gateway.restore_snapshot({"orders": [], "users": [{"_id": 1}], "products": []})
        assert exc_info.value.report.failed == "users"


class TestToolFailures:
    """Test dump failures through the real subprocess runner."""

    @pytest.mark.asyncio
    async def test_unrunnable_dump_command(self, settings, datastore, tmp_path):
        """A corrupt dump binary gives a tool error and leaves no temp directory."""
        binary = tmp_path / "broken-mongodump"
        binary.write_bytes(b"\x00\x01\x02 garbage")
        binary.chmod(0o755)
        gw = BackupGateway(settings.model_copy(update={"dump_command": str(binary)}), datastore)
        try:
            with pytest.raises(ExternalToolError):
                await gw.run_backup()
        finally:
            gw.close()

        assert list(settings.backups_dir.glob("temp-*")) == []
        assert list(settings.backups_dir.glob("backup-*.zip")) == []


class TestConcurrentBackups:
    """Test on-demand and scheduled backups overlapping."""

    @pytest.mark.asyncio
    async def test_export_and_scheduled_backup_together(self, gateway, settings, clock, archive_factory):
        """Both runs produce distinct, readable archives and retention stays within its window."""
        clock.step = timedelta(0)
        archive_factory(settings.backups_dir, 8)

        exported, scheduled = await asyncio.gather(gateway.export_backup(), gateway.run_scheduled_backup())

        assert scheduled is not None
        assert exported.identifier != scheduled.identifier
        for artifact in (exported, scheduled):
            with zipfile.ZipFile(artifact.location) as archive:
                assert archive.testzip() is None
                assert "vet_clinic/users.bson" in archive.namelist()

        remaining = list(settings.backups_dir.glob("backup-*.zip"))
        assert len(remaining) == settings.retention_window
        assert scheduled.location.name in {path.name for path in remaining}
        assert exported.location.parent == settings.exports_dir.resolve()
        assert list(settings.backups_dir.glob("temp-*")) == []
        assert list(settings.exports_dir.glob("temp-*")) == []
