"""
WorkliteCore - Core business logic for Worklite.

Orchestrates manager classes for all business operations over one data
directory: the SQLite store, the legacy storage file and config.json.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from worklite.constants import (
    DEFAULT_BUSY_TIMEOUT_MS,
    DEFAULT_COMPLETED_STATUS,
    DEFAULT_DB_FILENAME,
    DEFAULT_LEGACY_FILENAME,
    ConfigManager,
    get_config_manager,
    get_default_data_dir,
)
from worklite.exceptions import InvalidOperationError, ValidationError
from worklite.logs import get_logger
from worklite.managers import (
    ActiveProjectManager,
    FilterManager,
    LegacyStorage,
    MigrationAdapter,
    PersistenceStore,
    WorkItemManager,
    apply_filters,
    build_hierarchy,
    sort_by_hierarchy,
    valid_parents_for,
)
from worklite.models.filters import FilterValue
from worklite.models.project import ProjectData, StoredProject
from worklite.models.work_item import WorkItem, WorkItemNode

log = get_logger("core")


def parse_project_data(raw: Union[str, Dict[str, Any]]) -> ProjectData:
    """Validate an externally supplied project document.

    Args:
        raw: JSON text or an already-decoded dict.

    Raises:
        ValidationError: If the document is not JSON or does not match the schema.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Project file is not valid JSON: {e.msg}") from e
    try:
        return ProjectData.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Project file does not match the project schema:\n{e}") from e


class WorkliteCore:
    """
    Core class for business logic operations.

    Orchestrates manager classes:
    - PersistenceStore: Transactional storage in <data_dir>/worklite.db
    - ActiveProjectManager: Active project policy and switching
    - MigrationAdapter: Legacy storage import on startup
    - FilterManager: Active filters of the current project
    - WorkItemManager: Edits to the current project's work items

    Usage:
        async with WorkliteCore(Path(".worklite")) as core:
            await core.startup()
            forest = await core.tree()
    """

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        """
        Initialize the WorkliteCore with a data directory.

        Args:
            data_dir: Directory holding the database, config and legacy file.
                Defaults to $WORKLITE_HOME or .worklite/ in the current directory.
        """
        if data_dir is None:
            self.data_dir = get_default_data_dir()
            self.config = get_config_manager()
        else:
            self.data_dir = data_dir
            self.config = ConfigManager(data_dir=data_dir)

        self.store = PersistenceStore(
            self.data_dir / self.config.get_str("db_filename", DEFAULT_DB_FILENAME),
            completed_status=self.config.get_str("completed_status", DEFAULT_COMPLETED_STATUS),
            busy_timeout_ms=self.config.get_int("busy_timeout_ms", DEFAULT_BUSY_TIMEOUT_MS),
        )
        self.projects = ActiveProjectManager(self.store)
        self.migration = MigrationAdapter(
            self.store,
            LegacyStorage(
                self.data_dir / self.config.get_str("legacy_filename", DEFAULT_LEGACY_FILENAME)
            ),
        )
        self.filters = FilterManager(self.store)

    async def open(self) -> "WorkliteCore":
        await self.store.open()
        return self

    async def close(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> "WorkliteCore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def startup(self) -> List[StoredProject]:
        """Run pending legacy migration, then load projects and active filters."""
        if self.migration.needs_migration():
            await self.migration.migrate()
        projects, _ = await self.projects.load_projects()
        await self.filters.load(self.projects.current_project_id)
        log.debug(f"Loaded {len(projects)} projects from {self.data_dir}")
        return projects

    # =========================================================================
    # Projects
    # =========================================================================

    async def import_project(
        self,
        raw: Union[str, Dict[str, Any]],
        name: Optional[str] = None,
        activate: bool = True,
    ) -> str:
        """Validate and store an external project document."""
        data = parse_project_data(raw)
        project_id = await self.projects.create_project(data, name=name, activate=activate)
        if activate:
            await self.filters.load(project_id)
        return project_id

    async def export_project(self, project_id: str) -> str:
        """Serialize a stored project as a JSON document."""
        data = await self.store.get_project(project_id)
        return json.dumps(data.to_record(), indent=2)

    async def switch_project(self, project_id: str) -> ProjectData:
        data = await self.projects.switch_to(project_id)
        await self.filters.load(project_id)
        return data

    async def delete_project(self, project_id: str) -> None:
        await self.projects.delete_project(project_id)
        await self.store.delete_setting(FilterManager.setting_key(project_id))
        if self.projects.current_project_id is None:
            self.filters.clear()

    async def current_project(self) -> ProjectData:
        """Load the active project's data.

        Raises:
            InvalidOperationError: If no project is active.
        """
        if self.projects.current_project_id is None:
            await self.projects.load_projects()
        if self.projects.current_project_id is None:
            raise InvalidOperationError("No active project. Import or switch to a project first.")
        return await self.projects.read_current()

    # =========================================================================
    # Work items
    # =========================================================================

    async def item_manager(self) -> WorkItemManager:
        """WorkItemManager over the committed state of the active project."""
        return WorkItemManager(await self.current_project())

    async def save_items(self, manager: WorkItemManager) -> StoredProject:
        return await self.projects.update_current(manager.data)

    async def tree(self, filters: Optional[List[FilterValue]] = None) -> List[WorkItemNode]:
        """Active project's forest, reduced by the given or saved filters."""
        data = await self.current_project()
        active = self.filters.active if filters is None else filters
        return apply_filters(build_hierarchy(data.work_items), active)

    async def valid_parents(self, item_id: Optional[str]) -> List[WorkItem]:
        """Parent candidates for an item, from committed data, epics first."""
        data = await self.current_project()
        return sort_by_hierarchy(valid_parents_for(item_id, data.work_items))

    # =========================================================================
    # Filters
    # =========================================================================

    async def add_filter(self, kind: str, value: str) -> bool:
        try:
            new_filter = FilterValue(kind=kind, value=value)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid filter: {e}") from e
        await self.current_project()
        added = self.filters.add(new_filter)
        await self.filters.save(self.projects.current_project_id)
        return added

    async def remove_filter(self, filter_id: str) -> bool:
        await self.current_project()
        removed = self.filters.remove(filter_id)
        await self.filters.save(self.projects.current_project_id)
        return removed

    async def clear_filters(self) -> None:
        await self.current_project()
        self.filters.clear()
        await self.filters.save(self.projects.current_project_id)
