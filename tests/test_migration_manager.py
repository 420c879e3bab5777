"""
Tests for legacy storage and MigrationAdapter.
"""

import json
import logging

import pytest

from worklite.constants import LEGACY_DATA_KEY, LEGACY_FILENAME_KEY
from worklite.exceptions import StorageError
from worklite.managers.migration_manager import LegacyStorage, MigrationAdapter


@pytest.fixture
def legacy(data_dir):
    return LegacyStorage(data_dir / "legacy_storage.json")


@pytest.fixture
def adapter(store, legacy):
    return MigrationAdapter(store, legacy)


class TestLegacyStorage:
    """Test the flat key/value file."""

    def test_missing_file_is_empty(self, legacy):
        assert legacy.get("anything") is None
        assert not legacy.contains("anything")

    def test_set_get_remove(self, legacy):
        legacy.set("k", "v")
        assert legacy.get("k") == "v"
        assert legacy.contains("k")

        legacy.remove("k")
        assert not legacy.contains("k")
        assert json.loads(legacy.file_path.read_text()) == {}

    def test_remove_missing_key_is_noop(self, legacy):
        legacy.remove("nothing")
        assert not legacy.file_path.exists()

    def test_remove_several_keys(self, legacy):
        legacy.set("a", "1")
        legacy.set("b", "2")
        legacy.set("c", "3")
        legacy.remove("a", "b", "missing")
        assert json.loads(legacy.file_path.read_text()) == {"c": "3"}

    def test_corrupt_file_reads_as_empty(self, legacy, caplog):
        legacy.file_path.parent.mkdir(parents=True)
        legacy.file_path.write_text("{not json")
        with caplog.at_level(logging.WARNING, logger="worklite"):
            assert legacy.get("k") is None
        assert "Could not read legacy storage" in caplog.text

    def test_write_failure_raises_storage_error(self, temp_dir):
        blocker = temp_dir / "file"
        blocker.write_text("")
        storage = LegacyStorage(blocker / "legacy.json")
        with pytest.raises(StorageError):
            storage.set("k", "v")


class TestMigrate:
    """Test MigrationAdapter.migrate."""

    async def test_nothing_to_migrate(self, adapter, store):
        assert not adapter.needs_migration()
        assert await adapter.migrate() is None
        assert await store.get_all_projects() == []

    async def test_successful_migration(self, adapter, legacy, store, legacy_document, caplog):
        legacy.set(LEGACY_DATA_KEY, json.dumps(legacy_document))
        legacy.set(LEGACY_FILENAME_KEY, "old-project.json")

        with caplog.at_level(logging.INFO, logger="worklite"):
            project_id = await adapter.migrate()

        assert project_id is not None
        active = await store.get_active_project()
        assert active.id == project_id
        assert active.name == "Legacy Project"
        data = await store.get_project(project_id)
        assert [item.id for item in data.work_items] == ["E", "S", "T"]
        assert data.metadata.completed_work_items == 1

        assert not legacy.contains(LEGACY_DATA_KEY)
        assert not legacy.contains(LEGACY_FILENAME_KEY)
        assert not adapter.needs_migration()
        assert "old-project.json" in caplog.text

    async def test_second_run_does_nothing(self, adapter, legacy, store, legacy_document):
        legacy.set(LEGACY_DATA_KEY, json.dumps(legacy_document))
        await adapter.migrate()
        assert await adapter.migrate() is None
        assert len(await store.get_all_projects()) == 1

    async def test_missing_work_items_keeps_legacy_data(
        self, adapter, legacy, store, legacy_document, caplog
    ):
        del legacy_document["workItems"]
        raw = json.dumps(legacy_document)
        legacy.set(LEGACY_DATA_KEY, raw)

        with caplog.at_level(logging.WARNING, logger="worklite"):
            assert await adapter.migrate() is None

        assert legacy.get(LEGACY_DATA_KEY) == raw
        assert await store.get_all_projects() == []
        assert "workItems" in caplog.text

    @pytest.mark.parametrize("raw", [
        "{not json",
        json.dumps([1, 2, 3]),
        json.dumps({"workItems": []}),
        json.dumps({"project": {"name": "no required fields"}, "workItems": []}),
    ])
    async def test_bad_legacy_data_is_kept(self, adapter, legacy, store, raw):
        legacy.set(LEGACY_DATA_KEY, raw)
        assert await adapter.migrate() is None
        assert legacy.get(LEGACY_DATA_KEY) == raw
        assert await store.get_all_projects() == []

    async def test_duplicate_item_ids_keep_legacy_data(
        self, adapter, legacy, store, legacy_document
    ):
        legacy_document["workItems"].append(legacy_document["workItems"][0])
        legacy.set(LEGACY_DATA_KEY, json.dumps(legacy_document))

        assert await adapter.migrate() is None
        assert legacy.contains(LEGACY_DATA_KEY)
        assert await store.get_all_projects() == []

    async def test_activation_failure_removes_created_project(
        self, adapter, legacy, store, legacy_document, monkeypatch
    ):
        async def failing_set_active(project_id):
            raise StorageError("disk full")

        monkeypatch.setattr(store, "set_active_project", failing_set_active)
        legacy.set(LEGACY_DATA_KEY, json.dumps(legacy_document))

        assert await adapter.migrate() is None
        assert legacy.contains(LEGACY_DATA_KEY)
        assert await store.get_all_projects() == []

    async def test_failed_cleanup_is_logged(
        self, adapter, legacy, store, legacy_document, monkeypatch, caplog
    ):
        async def failing_set_active(project_id):
            raise StorageError("disk full")

        async def failing_delete(project_id):
            raise StorageError("database is locked")

        monkeypatch.setattr(store, "set_active_project", failing_set_active)
        monkeypatch.setattr(store, "delete_project", failing_delete)
        legacy.set(LEGACY_DATA_KEY, json.dumps(legacy_document))

        with caplog.at_level(logging.WARNING, logger="worklite"):
            assert await adapter.migrate() is None

        assert legacy.contains(LEGACY_DATA_KEY)
        assert "Could not remove half-migrated project" in caplog.text

    async def test_legacy_removal_failure_allows_clean_retry(
        self, adapter, legacy, store, legacy_document, monkeypatch, caplog
    ):
        legacy.set(LEGACY_DATA_KEY, json.dumps(legacy_document))

        def failing_remove(*keys):
            raise StorageError("read-only fs")

        with monkeypatch.context() as m:
            m.setattr(legacy, "remove", failing_remove)
            with caplog.at_level(logging.WARNING, logger="worklite"):
                assert await adapter.migrate() is None

        assert "Could not clear legacy data" in caplog.text
        assert legacy.contains(LEGACY_DATA_KEY)
        assert await store.get_all_projects() == []

        project_id = await adapter.migrate()
        assert project_id is not None
        assert not legacy.contains(LEGACY_DATA_KEY)
        projects = await store.get_all_projects()
        assert [p.id for p in projects] == [project_id]
