"""
ActiveProjectManager for Worklite.

Policy layer over PersistenceStore that tracks the active project and
switches between projects.
"""

from typing import List, Optional, Tuple

from worklite.exceptions import InvalidOperationError
from worklite.logs import get_logger
from worklite.managers.storage_manager import PersistenceStore
from worklite.models.project import ProjectData, StoredProject

log = get_logger("projects")


class ActiveProjectManager:
    """
    Manages which project is active.

    Handles:
    - Switching the active project and loading its data
    - Loading the project list with the active project's data
    - Creating, updating and deleting projects with active-id bookkeeping

    Usage:
        store = PersistenceStore(db_path)
        await store.open()
        projects = ActiveProjectManager(store)

        data = await projects.switch_to(project_id)
        await projects.update_current(edited_data)
    """

    def __init__(self, store: PersistenceStore) -> None:
        """
        Initialize ActiveProjectManager.

        Args:
            store: Open PersistenceStore.
        """
        self.store = store
        self.current_project_id: Optional[str] = None
        self.current_version: Optional[int] = None

    async def switch_to(self, project_id: str) -> ProjectData:
        """Make a project active and return its full data.

        Raises:
            NotFoundError: If the project does not exist.
        """
        await self.store.set_active_project(project_id)
        data, version = await self.store.get_project_with_version(project_id)
        self.current_project_id = project_id
        self.current_version = version
        log.debug(f"Switched to project '{data.project.name}' ({project_id})")
        return data

    async def load_projects(self) -> Tuple[List[StoredProject], Optional[ProjectData]]:
        """Load all projects and, if one is active, its data."""
        projects = await self.store.get_all_projects()
        active = next((p for p in projects if p.is_active), None)
        if active is None:
            self.current_project_id = None
            self.current_version = None
            return projects, None

        data, version = await self.store.get_project_with_version(active.id)
        self.current_project_id = active.id
        self.current_version = version
        return projects, data

    async def read_current(self) -> ProjectData:
        """Re-read the active project's data and the version to update against.

        Raises:
            InvalidOperationError: If no project is active.
            NotFoundError: If the active project was deleted meanwhile.
        """
        if self.current_project_id is None:
            raise InvalidOperationError("No active project")

        data, version = await self.store.get_project_with_version(self.current_project_id)
        self.current_version = version
        return data

    async def create_project(
        self,
        data: ProjectData,
        name: Optional[str] = None,
        activate: bool = False,
    ) -> str:
        """Create a project, optionally renaming and activating it.

        Returns:
            The new project id.
        """
        if name:
            data = data.model_copy(update={"project": data.project.model_copy(update={"name": name})})
        project_id = await self.store.create_project(data)
        if activate:
            await self.switch_to(project_id)
        return project_id

    async def update_current(self, data: ProjectData) -> StoredProject:
        """Save new data for the active project.

        The write is rejected with ConflictError if the project changed since
        this manager last read it.

        Raises:
            InvalidOperationError: If no project is active.
        """
        if self.current_project_id is None:
            raise InvalidOperationError("No active project")

        stored = await self.store.update_project(
            self.current_project_id, data, expected_version=self.current_version
        )
        self.current_version = stored.version
        return stored

    async def delete_project(self, project_id: str) -> None:
        """Delete a project. Deleting the active project leaves none active."""
        await self.store.delete_project(project_id)
        if project_id == self.current_project_id:
            self.current_project_id = None
            self.current_version = None

