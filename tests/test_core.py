"""
Tests for WorkliteCore.

Verifies the facade wiring: startup migration, import/export, filtered
trees, parent candidates and item edits saved to the active project.
"""

import json

import pytest

from worklite.constants import LEGACY_DATA_KEY
from worklite.core import WorkliteCore, parse_project_data
from worklite.exceptions import ConfigurationError, InvalidOperationError, ValidationError
from worklite.models.filters import FilterValue


@pytest.fixture
async def core(data_dir):
    async with WorkliteCore(data_dir) as opened:
        await opened.startup()
        yield opened


class TestParseProjectData:
    """Test schema validation of imported documents."""

    def test_accepts_json_text(self, legacy_document):
        data = parse_project_data(json.dumps(legacy_document))
        assert data.project.name == "Legacy Project"

    def test_rejects_invalid_json(self):
        with pytest.raises(ValidationError, match="not valid JSON"):
            parse_project_data("{oops")

    def test_rejects_schema_violations(self, legacy_document):
        legacy_document["workItems"][0]["status"] = "finished"
        with pytest.raises(ValidationError, match="project schema"):
            parse_project_data(legacy_document)


class TestStartup:
    """Test WorkliteCore startup."""

    async def test_empty_data_dir(self, core):
        assert await core.store.get_all_projects() == []
        assert core.projects.current_project_id is None

    async def test_startup_migrates_legacy_data(self, data_dir, legacy_document):
        async with WorkliteCore(data_dir) as first:
            first.migration.legacy.set(LEGACY_DATA_KEY, json.dumps(legacy_document))

        async with WorkliteCore(data_dir) as core:
            projects = await core.startup()

        assert [p.name for p in projects] == ["Legacy Project"]
        assert projects[0].is_active
        assert core.projects.current_project_id == projects[0].id

    async def test_config_overrides_completed_status(self, data_dir, mock_data):
        data_dir.mkdir(parents=True)
        (data_dir / "config.json").write_text(json.dumps({"completed_status": "review"}))

        async with WorkliteCore(data_dir) as core:
            items = [mock_data.create_item("a", status="review")]
            project_id = await core.import_project(mock_data.create_project_data(items).to_record())
            data = await core.store.get_project(project_id)

        assert data.metadata.completed_work_items == 1

    def test_bad_config_value(self, data_dir):
        data_dir.mkdir(parents=True)
        (data_dir / "config.json").write_text(json.dumps({"busy_timeout_ms": "soon"}))
        with pytest.raises(ConfigurationError):
            WorkliteCore(data_dir)


class TestProjects:
    """Test project import, export, switching and deletion."""

    async def test_import_activates(self, core, legacy_document):
        project_id = await core.import_project(json.dumps(legacy_document))
        assert core.projects.current_project_id == project_id
        assert (await core.current_project()).project.name == "Legacy Project"

    async def test_import_with_name_without_activation(self, core, legacy_document):
        project_id = await core.import_project(legacy_document, name="Copy", activate=False)
        assert core.projects.current_project_id is None
        assert (await core.store.get_project(project_id)).project.name == "Copy"

    async def test_export_round_trips(self, core, legacy_document):
        project_id = await core.import_project(legacy_document)
        exported = json.loads(await core.export_project(project_id))

        assert exported["project"]["name"] == "Legacy Project"
        assert [item["id"] for item in exported["workItems"]] == ["E", "S", "T"]
        assert exported["metadata"]["totalWorkItems"] == 3
        assert "isActive" not in exported["project"]

        second_id = await core.import_project(exported)
        assert second_id != project_id

    async def test_current_project_requires_active(self, core):
        with pytest.raises(InvalidOperationError):
            await core.current_project()

    async def test_delete_active_project_clears_filters(self, core, legacy_document):
        project_id = await core.import_project(legacy_document)
        await core.add_filter("status", "done")
        await core.delete_project(project_id)

        assert core.filters.active == []
        assert await core.store.get_setting(f"filters:{project_id}") is None

    async def test_switch_loads_project_filters(self, core, legacy_document):
        first = await core.import_project(legacy_document, name="First")
        await core.add_filter("status", "done")
        await core.import_project(legacy_document, name="Second")
        assert core.filters.active == []

        await core.switch_project(first)
        assert [f.value for f in core.filters.active] == ["done"]


class TestItems:
    """Test trees, parent candidates and item edits."""

    async def test_tree_with_saved_and_explicit_filters(self, core, legacy_document):
        await core.import_project(legacy_document)

        assert [node.id for node in await core.tree()] == ["E"]

        await core.add_filter("status", "todo")
        assert await core.tree() == []

        explicit = [FilterValue(kind="status", value="done")]
        forest = await core.tree(explicit)
        assert forest[0].children[0].children[0].id == "T"

    async def test_valid_parents_sorted_and_safe(self, core, mock_data):
        items = [
            mock_data.create_item("t", "Task"),
            mock_data.create_item("s", "Story", type="story"),
            mock_data.create_item("e", "Epic", type="epic"),
            mock_data.create_item("c", "Child", parent_id="s"),
        ]
        await core.import_project(mock_data.create_project_data(items).to_record())

        assert [i.id for i in await core.valid_parents("s")] == ["e", "t"]
        assert [i.id for i in await core.valid_parents(None)] == ["e", "s", "c", "t"]

    async def test_item_edits_are_saved(self, core, legacy_document):
        project_id = await core.import_project(legacy_document)

        items = await core.item_manager()
        new_item = items.add_item("Follow-up", parent_id="S")
        stored = await core.save_items(items)

        assert stored.version == 2
        data = await core.store.get_project(project_id)
        assert new_item.id in [item.id for item in data.work_items]
        assert data.metadata.total_work_items == 4
