"""
Test fixtures for the Worklite test suite.

Provides:
- Temporary directory fixtures (isolated from the real .worklite/)
- Mock data builders for work items, projects and project documents
- An open in-memory PersistenceStore
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Generator, List, Optional

import pytest

from worklite.constants import ENV_HOME, reset_config_manager
from worklite.managers.storage_manager import PersistenceStore
from worklite.models.project import Project, ProjectData
from worklite.models.work_item import WorkItem


# =============================================================================
# Environment
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch) -> Generator[None, None, None]:
    """Keep tests away from the user's data dir and reset shared state.

    The CLI configures the 'worklite' logger with its own handler and no
    propagation; undo that so caplog sees records.
    """
    monkeypatch.delenv(ENV_HOME, raising=False)
    reset_config_manager()
    yield
    logger = logging.getLogger("worklite")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    reset_config_manager()


# =============================================================================
# Temporary Directory Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test isolation."""
    temp_path = Path(tempfile.mkdtemp(prefix="worklite_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def data_dir(temp_dir: Path) -> Path:
    """A .worklite/ data directory inside the temp dir (not yet created)."""
    return temp_dir / ".worklite"


# =============================================================================
# Mock Data Builders
# =============================================================================


class MockDataBuilder:
    """Helper class for building mock Worklite records for testing."""

    @staticmethod
    def create_item(
        id: str,
        title: Optional[str] = None,
        type: str = "task",
        status: str = "backlog",
        priority: str = "medium",
        parent_id: Optional[str] = None,
        **fields,
    ) -> WorkItem:
        """Create a WorkItem; the title defaults to the id."""
        return WorkItem(
            id=id,
            title=title or id,
            type=type,
            status=status,
            priority=priority,
            parent_id=parent_id,
            **fields,
        )

    @staticmethod
    def create_project(
        id: str = "proj-1",
        name: str = "Test Project",
        **fields,
    ) -> Project:
        """Create a Project with sensible defaults."""
        values = {
            "type": "software",
            "status": "in_progress",
            "priority": "high",
            "created_date": "2024-01-01T00:00:00+00:00",
        }
        values.update(fields)
        return Project(id=id, name=name, **values)

    def create_project_data(
        self,
        work_items: Optional[List[WorkItem]] = None,
        name: str = "Test Project",
    ) -> ProjectData:
        """Create a ProjectData document."""
        return ProjectData(
            project=self.create_project(name=name),
            work_items=work_items or [],
        )

    def create_epic_story_task(self, task_status: str = "backlog") -> List[WorkItem]:
        """Epic E -> Story S -> Task T."""
        return [
            self.create_item("E", "Epic", type="epic"),
            self.create_item("S", "Story", type="story", parent_id="E"),
            self.create_item("T", "Task", status=task_status, parent_id="S"),
        ]


@pytest.fixture
def mock_data() -> MockDataBuilder:
    """Provide mock data builder for test record creation."""
    return MockDataBuilder()


@pytest.fixture
def legacy_document(mock_data: MockDataBuilder) -> dict:
    """A project document in the camelCase file format."""
    data = mock_data.create_project_data(
        mock_data.create_epic_story_task(task_status="done"), name="Legacy Project"
    )
    return data.to_record()


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
async def store() -> AsyncGenerator[PersistenceStore, None]:
    """An open in-memory PersistenceStore."""
    async with PersistenceStore() as opened:
        yield opened


@pytest.fixture
async def file_store(data_dir: Path) -> AsyncGenerator[PersistenceStore, None]:
    """An open PersistenceStore backed by a file in the temp data dir."""
    async with PersistenceStore(data_dir / "worklite.db") as opened:
        yield opened
