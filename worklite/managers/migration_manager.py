"""
Migration from legacy single-project storage.

The legacy format kept one project as a JSON string under a flat key/value
store. MigrationAdapter moves it into the PersistenceStore once; if anything
goes wrong the legacy data is left in place so the next start retries.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from worklite.constants import (
    LEGACY_DATA_KEY,
    LEGACY_DEFAULT_FILENAME,
    LEGACY_FILENAME_KEY,
)
from worklite.exceptions import MigrationError, StorageError, ValidationError
from worklite.logs import get_logger
from worklite.managers.storage_manager import PersistenceStore
from worklite.models.project import ProjectData

log = get_logger("migration")


class LegacyStorage:
    """
    Flat string key/value store persisted as one JSON file.

    Missing or unreadable files behave as an empty store; writes are atomic.
    """

    def __init__(self, file_path: Path) -> None:
        self.file_path = file_path

    def _read(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.warning(f"Could not read legacy storage {self.file_path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.file_path.parent, prefix=".tmp_legacy_", suffix=".json"
            )
        except OSError as e:
            raise StorageError(f"Failed to write to {self.file_path}: {e}")

        try:
            with os.fdopen(temp_fd, "w") as temp_file:
                json.dump(data, temp_file, indent=2)
            os.replace(temp_path, self.file_path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise StorageError(f"Failed to write to {self.file_path}: {e}")

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, *keys: str) -> None:
        data = self._read()
        present = [key for key in keys if key in data]
        for key in present:
            del data[key]
        if present:
            self._write(data)

    def contains(self, key: str) -> bool:
        return key in self._read()


class MigrationAdapter:
    """
    Converts the legacy single-project blob into a stored, active project.

    Usage:
        adapter = MigrationAdapter(store, LegacyStorage(path))
        project_id = await adapter.migrate()  # None if nothing was migrated
    """

    def __init__(self, store: PersistenceStore, legacy: LegacyStorage) -> None:
        self.store = store
        self.legacy = legacy

    def needs_migration(self) -> bool:
        return self.legacy.contains(LEGACY_DATA_KEY)

    def _parse_legacy(self, raw: str) -> ProjectData:
        """Parse and shape-check the legacy blob.

        Raises:
            MigrationError: If the blob is not JSON, lacks a ``project``
                object or ``workItems`` array, or fails model validation.
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise MigrationError(f"Legacy data is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("project"), dict):
            raise MigrationError("Legacy data has no 'project' object")
        if not isinstance(data.get("workItems"), list):
            raise MigrationError("Legacy data has no 'workItems' array")

        try:
            return ProjectData.model_validate(data)
        except PydanticValidationError as e:
            raise MigrationError(f"Legacy data does not match the project schema: {e}") from e

    async def _discard(self, project_id: str) -> None:
        """Delete a half-migrated project so the retry does not duplicate it."""
        try:
            await self.store.delete_project(project_id)
        except StorageError as e:
            log.warning(f"Could not remove half-migrated project {project_id}: {e}")

    async def migrate(self) -> Optional[str]:
        """Migrate legacy data if present.

        On success the new project is active and the legacy keys are removed.
        Failures are logged, never raised, and leave the legacy keys intact
        with no migrated copy in the store.

        Returns:
            The new project id, or None if nothing was migrated.
        """
        raw = self.legacy.get(LEGACY_DATA_KEY)
        if raw is None:
            return None

        filename = self.legacy.get(LEGACY_FILENAME_KEY) or LEGACY_DEFAULT_FILENAME
        try:
            data = self._parse_legacy(raw)
            try:
                project_id = await self.store.create_project(data)
            except (StorageError, ValidationError) as e:
                raise MigrationError(f"Could not store legacy project: {e}") from e
            try:
                await self.store.set_active_project(project_id)
            except StorageError as e:
                await self._discard(project_id)
                raise MigrationError(f"Could not activate legacy project: {e}") from e
            try:
                self.legacy.remove(LEGACY_DATA_KEY, LEGACY_FILENAME_KEY)
            except (StorageError, OSError) as e:
                await self._discard(project_id)
                raise MigrationError(f"Could not clear legacy data: {e}") from e
        except MigrationError as e:
            log.warning(f"Failed to migrate legacy project '{filename}': {e}")
            return None

        log.info(f"Migrated project '{filename}' from legacy storage")
        return project_id
