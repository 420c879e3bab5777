"""
Tests for ActiveProjectManager.
"""

import pytest

from worklite.exceptions import ConflictError, InvalidOperationError, NotFoundError
from worklite.managers.project_manager import ActiveProjectManager


@pytest.fixture
def projects(store):
    return ActiveProjectManager(store)


class TestSwitchTo:
    """Test switch_to."""

    async def test_switch_returns_data_and_activates(self, projects, store, mock_data):
        project_id = await store.create_project(
            mock_data.create_project_data(mock_data.create_epic_story_task(), name="Alpha")
        )
        data = await projects.switch_to(project_id)

        assert data.project.name == "Alpha"
        assert [item.id for item in data.work_items] == ["E", "S", "T"]
        assert projects.current_project_id == project_id
        assert projects.current_version == 1
        assert [p.id for p in await store.get_all_projects() if p.is_active] == [project_id]

    async def test_switching_moves_the_active_flag(self, projects, store, mock_data):
        first = await store.create_project(mock_data.create_project_data(name="First"))
        second = await store.create_project(mock_data.create_project_data(name="Second"))

        await projects.switch_to(first)
        await projects.switch_to(second)

        active = [p.id for p in await store.get_all_projects() if p.is_active]
        assert active == [second]

    async def test_switch_to_missing_project(self, projects, store, mock_data):
        project_id = await store.create_project(mock_data.create_project_data())
        await projects.switch_to(project_id)

        with pytest.raises(NotFoundError):
            await projects.switch_to("missing")
        assert projects.current_project_id == project_id


class TestLoadProjects:
    """Test load_projects."""

    async def test_nothing_active(self, projects, store, mock_data):
        await store.create_project(mock_data.create_project_data())
        all_projects, active = await projects.load_projects()

        assert len(all_projects) == 1
        assert active is None
        assert projects.current_project_id is None

    async def test_loads_active_project_data(self, projects, store, mock_data):
        project_id = await store.create_project(
            mock_data.create_project_data(mock_data.create_epic_story_task())
        )
        await store.set_active_project(project_id)

        fresh = ActiveProjectManager(store)
        _, active = await fresh.load_projects()

        assert len(active.work_items) == 3
        assert fresh.current_project_id == project_id
        assert fresh.current_version == 1


class TestCreateProject:
    """Test create_project."""

    async def test_create_without_activation(self, projects, store, mock_data):
        project_id = await projects.create_project(mock_data.create_project_data())
        assert projects.current_project_id is None
        assert (await store.get_project(project_id)).project.name == "Test Project"

    async def test_create_with_name_and_activation(self, projects, store, mock_data):
        project_id = await projects.create_project(
            mock_data.create_project_data(), name="Renamed", activate=True
        )
        assert projects.current_project_id == project_id
        assert (await store.get_active_project()).name == "Renamed"


class TestUpdateCurrent:
    """Test update_current."""

    async def test_requires_active_project(self, projects, mock_data):
        with pytest.raises(InvalidOperationError):
            await projects.update_current(mock_data.create_project_data())

    async def test_updates_and_tracks_version(self, projects, mock_data):
        project_id = await projects.create_project(
            mock_data.create_project_data(mock_data.create_epic_story_task()), activate=True
        )
        data = await projects.store.get_project(project_id)
        data.work_items = data.work_items[:1]

        stored = await projects.update_current(data)
        assert stored.version == 2
        assert projects.current_version == 2

        await projects.update_current(data)
        assert projects.current_version == 3

    async def test_concurrent_change_is_rejected(self, projects, store, mock_data):
        project_id = await projects.create_project(
            mock_data.create_project_data(mock_data.create_epic_story_task()), activate=True
        )
        other = ActiveProjectManager(store)
        await other.load_projects()

        data = await store.get_project(project_id)
        await other.update_current(data)

        with pytest.raises(ConflictError):
            await projects.update_current(data.model_copy(update={"work_items": []}))
        assert await store.count_work_items(project_id) == 3

    async def test_write_after_switch_read_is_detected(
        self, projects, store, mock_data, monkeypatch
    ):
        project_id = await store.create_project(
            mock_data.create_project_data(mock_data.create_epic_story_task())
        )
        read = store.get_project_with_version

        async def read_then_other_writer(pid):
            result = await read(pid)
            changed, version = await read(pid)
            changed.work_items = changed.work_items[:1]
            await store.update_project(pid, changed, expected_version=version)
            return result

        with monkeypatch.context() as m:
            m.setattr(store, "get_project_with_version", read_then_other_writer)
            data = await projects.switch_to(project_id)

        assert projects.current_version == 1
        with pytest.raises(ConflictError):
            await projects.update_current(data)
        assert await store.count_work_items(project_id) == 1

    async def test_read_current_refreshes_version(self, projects, store, mock_data):
        project_id = await projects.create_project(
            mock_data.create_project_data(mock_data.create_epic_story_task()), activate=True
        )
        other = ActiveProjectManager(store)
        await other.load_projects()
        await other.update_current(await other.read_current())

        data = await projects.read_current()
        assert projects.current_version == 2
        data.work_items = []
        assert (await projects.update_current(data)).version == 3
        assert await store.count_work_items(project_id) == 0

    async def test_read_current_requires_active_project(self, projects):
        with pytest.raises(InvalidOperationError):
            await projects.read_current()


class TestDeleteProject:
    """Test delete_project."""

    async def test_deleting_active_project_clears_current(self, projects, store, mock_data):
        project_id = await projects.create_project(mock_data.create_project_data(), activate=True)
        await projects.delete_project(project_id)

        assert projects.current_project_id is None
        assert await store.get_active_project() is None

    async def test_deleting_other_project_keeps_current(self, projects, mock_data):
        active_id = await projects.create_project(mock_data.create_project_data(), activate=True)
        other_id = await projects.create_project(mock_data.create_project_data())
        await projects.delete_project(other_id)
        assert projects.current_project_id == active_id
