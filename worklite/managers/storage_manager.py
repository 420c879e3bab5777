"""
Persistence store for Worklite.

SQLite-backed (via aiosqlite) multi-collection store holding projects, their
work items, per-project metadata and application settings. Every logical
operation runs inside exactly one transaction scope, so partially applied
writes are never visible.
"""

import asyncio
import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import aiosqlite

from worklite.constants import (
    DEFAULT_BUSY_TIMEOUT_MS,
    DEFAULT_COMPLETED_STATUS,
    SCHEMA_VERSION,
)
from worklite.exceptions import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    StorageError,
    TransactionError,
    ValidationError,
)
from worklite.logs import get_logger
from worklite.models.base import EstimatedEffort
from worklite.models.project import Metadata, Project, ProjectData, StoredProject
from worklite.models.work_item import WorkItem

log = get_logger("store")

MEMORY_DB = ":memory:"


def utc_now() -> str:
    """Current time as an ISO 8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def _dumps(data: Any) -> str:
    return json.dumps(data, sort_keys=True)


def compute_metadata(
    work_items: Sequence[WorkItem],
    supplied: Optional[Metadata],
    now: str,
    completed_status: str = DEFAULT_COMPLETED_STATUS,
) -> Metadata:
    """Derive project metadata from the work items actually being stored.

    Counts are always recomputed. The estimated effort total is summed when
    every estimated item uses the same unit; otherwise the supplied total is
    kept. Version fields are carried over from the supplied metadata.
    """
    supplied = supplied or Metadata()

    efforts = [item.estimated_effort for item in work_items if item.estimated_effort]
    units = {effort.unit for effort in efforts}
    if len(units) == 1:
        total_effort = EstimatedEffort(
            value=sum(effort.value for effort in efforts), unit=units.pop()
        )
    else:
        total_effort = supplied.total_estimated_effort

    return Metadata(
        version=supplied.version,
        last_updated=now,
        total_work_items=len(work_items),
        completed_work_items=sum(1 for item in work_items if item.status == completed_status),
        total_estimated_effort=total_effort,
        schema_version=supplied.schema_version or SCHEMA_VERSION,
    )


def _check_unique_ids(work_items: Sequence[WorkItem]) -> None:
    seen = set()
    for item in work_items:
        if item.id in seen:
            raise ValidationError(f"Duplicate work item id '{item.id}'")
        seen.add(item.id)


class Transaction:
    """
    One atomic scope over the store's collections.

    Use explicitly:
        tx = store.transaction()
        await tx.begin()
        try:
            ...
            await tx.commit()
        except Exception:
            await tx.abort()
            raise

    or as a context manager, which commits on success and aborts on error:
        async with store.transaction() as tx:
            await tx.execute(...)

    Transactions on one store are serialized (single writer). Any sqlite3
    error surfacing from the scope is raised as TransactionError after the
    rollback.
    """

    def __init__(self, store: "PersistenceStore", readonly: bool = False) -> None:
        self.store = store
        self.readonly = readonly
        self._state = "new"

    @property
    def is_active(self) -> bool:
        return self._state == "active"

    async def begin(self) -> "Transaction":
        if self._state != "new":
            raise InvalidOperationError(f"Cannot begin a transaction that is {self._state}")
        connection = self.store.connection
        await self.store._lock.acquire()
        try:
            await connection.execute("BEGIN" if self.readonly else "BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            self.store._lock.release()
            raise TransactionError(f"Failed to begin transaction: {e}") from e
        self._state = "active"
        return self

    async def commit(self) -> None:
        self._require_active()
        try:
            await self.store.connection.execute("COMMIT")
        except sqlite3.Error as e:
            await self._rollback()
            raise TransactionError(f"Failed to commit transaction: {e}") from e
        self._finish("committed")

    async def abort(self) -> None:
        """Roll back everything done in this scope. No-op once finished."""
        if self._state != "active":
            return
        await self._rollback()

    async def _rollback(self) -> None:
        try:
            await self.store.connection.execute("ROLLBACK")
        except sqlite3.Error as e:
            # SQLite may already have rolled back on its own
            log.debug(f"Rollback reported: {e}")
        finally:
            self._finish("aborted")

    def _finish(self, state: str) -> None:
        self._state = state
        self.store._lock.release()

    def _require_active(self) -> None:
        if self._state != "active":
            raise InvalidOperationError(f"Transaction is {self._state}, not active")

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a statement and return the number of affected rows."""
        self._require_active()
        async with self.store.connection.execute(sql, params) as cursor:
            return cursor.rowcount

    async def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        self._require_active()
        async with self.store.connection.execute(sql, params) as cursor:
            return await cursor.fetchone()

    async def fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        self._require_active()
        async with self.store.connection.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    async def __aenter__(self) -> "Transaction":
        return await self.begin()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            await self.commit()
            return False
        await self.abort()
        if isinstance(exc, sqlite3.Error):
            raise TransactionError(f"Transaction aborted: {exc}") from exc
        return False


class PersistenceStore:
    """
    Local transactional store for projects, work items, metadata and settings.

    Construct once, open before use, close when done:
        store = PersistenceStore(Path(".worklite/worklite.db"))
        await store.open()
        project_id = await store.create_project(project_data)
        await store.close()

    or:
        async with PersistenceStore(path) as store:
            ...

    Invariants kept by every operation:
    - Work items are stored under their project's id; deleting a project
      removes its work items and metadata in the same transaction.
    - At most one project has ``is_active`` set.
    - Metadata counts are recomputed from the stored work items on every write.
    """

    def __init__(
        self,
        db_path: Union[Path, str] = MEMORY_DB,
        completed_status: str = DEFAULT_COMPLETED_STATUS,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ) -> None:
        """
        Initialize the store. No I/O happens until open().

        Args:
            db_path: SQLite database file, or ":memory:".
            completed_status: Work item status counted as completed in metadata.
            busy_timeout_ms: SQLite busy timeout for lock contention.
        """
        self.db_path = db_path if db_path == MEMORY_DB else Path(db_path)
        self.completed_status = completed_status
        self.busy_timeout_ms = busy_timeout_ms
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StorageError("Store is not open")
        return self._connection

    async def open(self) -> "PersistenceStore":
        """Open the database and create the schema if needed."""
        if self._connection is not None:
            return self

        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode; transaction boundaries are explicit
            self._connection = await aiosqlite.connect(str(self.db_path), isolation_level=None)
            self._connection.row_factory = sqlite3.Row
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}")
            await self._connection.execute("PRAGMA foreign_keys=ON")
            await self._create_schema()
        except (sqlite3.Error, OSError) as e:
            await self.close()
            raise StorageError(f"Failed to open store at {self.db_path}: {e}") from e

        log.debug(f"Opened store at {self.db_path}")
        return self

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> "PersistenceStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _create_schema(self) -> None:
        conn = self.connection
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 0,
                last_accessed TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            )
        """)
        # Enforces a single active project at the storage level
        await conn.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_projects_single_active
            ON projects (is_active) WHERE is_active = 1
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS work_items (
                project_id TEXT NOT NULL,
                id TEXT NOT NULL,
                parent_id TEXT,
                status TEXT NOT NULL,
                type TEXT NOT NULL,
                position INTEGER NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (project_id, id),
                FOREIGN KEY (project_id) REFERENCES projects (id) ON DELETE CASCADE
            )
        """)
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_work_items_parent ON work_items (project_id, parent_id)"
        )
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS metadata (
                project_id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                FOREIGN KEY (project_id) REFERENCES projects (id) ON DELETE CASCADE
            )
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)

    def transaction(self, readonly: bool = False) -> Transaction:
        """Create a new transaction scope (not yet begun)."""
        return Transaction(self, readonly=readonly)

    # =========================================================================
    # Row conversion
    # =========================================================================

    @staticmethod
    def _row_to_stored_project(row: sqlite3.Row) -> StoredProject:
        data = json.loads(row["data"])
        data.update(
            id=row["id"],
            lastAccessed=row["last_accessed"],
            isActive=bool(row["is_active"]),
            version=row["version"],
        )
        return StoredProject.model_validate(data)

    @staticmethod
    def _project_record(project: Project, project_id: str) -> str:
        record = project.to_record()
        record["id"] = project_id
        return _dumps(record)

    async def _write_metadata(
        self, tx: Transaction, project_id: str, metadata: Metadata
    ) -> None:
        await tx.execute(
            "INSERT OR REPLACE INTO metadata (project_id, data) VALUES (?, ?)",
            (project_id, _dumps(metadata.to_record())),
        )

    async def _insert_work_item(
        self, tx: Transaction, project_id: str, item: WorkItem, position: int, data: str
    ) -> None:
        await tx.execute(
            """
            INSERT INTO work_items (project_id, id, parent_id, status, type, position, data)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (project_id, item.id, item.parent_id, item.status, item.type, position, data),
        )

    async def _get_stored_project(self, tx: Transaction, project_id: str) -> StoredProject:
        row = await tx.fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
        if row is None:
            raise NotFoundError(f"Project '{project_id}' not found")
        return self._row_to_stored_project(row)

    # =========================================================================
    # Projects
    # =========================================================================

    async def create_project(self, data: ProjectData) -> str:
        """Store a new project with its work items and derived metadata.

        The project gets a freshly generated id (any id in ``data`` is
        replaced), version 1, inactive. All writes share one transaction.

        Returns:
            The new project id.

        Raises:
            ValidationError: If work item ids are not unique.
            TransactionError: If any write fails; nothing is persisted.
        """
        _check_unique_ids(data.work_items)
        project_id = str(uuid.uuid4())
        now = utc_now()
        metadata = compute_metadata(data.work_items, data.metadata, now, self.completed_status)

        async with self.transaction() as tx:
            await tx.execute(
                """
                INSERT INTO projects (id, data, is_active, last_accessed, version)
                VALUES (?, ?, 0, ?, 1)
                """,
                (project_id, self._project_record(data.project, project_id), now),
            )
            for position, item in enumerate(data.work_items):
                await self._insert_work_item(
                    tx, project_id, item, position, _dumps(item.to_record())
                )
            await self._write_metadata(tx, project_id, metadata)

        log.info(
            f"Created project '{data.project.name}' ({project_id}) "
            f"with {len(data.work_items)} work items"
        )
        return project_id

    async def get_project(self, project_id: str) -> ProjectData:
        """Read a project with its work items and metadata.

        Bookkeeping fields (last access, active flag, version, project id on
        work items) are stripped.

        Raises:
            NotFoundError: If the project does not exist.
        """
        data, _ = await self.get_project_with_version(project_id)
        return data

    async def get_project_with_version(self, project_id: str) -> Tuple[ProjectData, int]:
        """Read a project together with the version it was read at.

        Both come from one transaction, so the version can be passed as
        ``expected_version`` to a later update_project() of edited data.

        Raises:
            NotFoundError: If the project does not exist.
        """
        async with self.transaction(readonly=True) as tx:
            stored = await self._get_stored_project(tx, project_id)
            item_rows = await tx.fetchall(
                "SELECT data FROM work_items WHERE project_id = ? ORDER BY position",
                (project_id,),
            )
            meta_row = await tx.fetchone(
                "SELECT data FROM metadata WHERE project_id = ?", (project_id,)
            )

        work_items = [WorkItem.model_validate(json.loads(row["data"])) for row in item_rows]
        if meta_row is not None:
            metadata = Metadata.model_validate(json.loads(meta_row["data"]))
        else:
            metadata = Metadata(last_updated=utc_now())

        data = ProjectData(project=stored.to_project(), work_items=work_items, metadata=metadata)
        return data, stored.version

    async def update_project(
        self,
        project_id: str,
        data: ProjectData,
        expected_version: Optional[int] = None,
    ) -> StoredProject:
        """Replace a project's contents in one transaction.

        Applies the minimal work item delta: new ids are inserted, changed
        items rewritten, missing ids deleted. Metadata is recomputed, the
        version incremented and last access refreshed. The active flag is kept.

        Args:
            project_id: Project to update.
            data: Complete new project document.
            expected_version: If given, the version the caller last read.

        Returns:
            The updated StoredProject.

        Raises:
            NotFoundError: If the project does not exist.
            ConflictError: If expected_version no longer matches.
            ValidationError: If work item ids are not unique.
            TransactionError: If any write fails; nothing is persisted.
        """
        _check_unique_ids(data.work_items)
        now = utc_now()
        metadata = compute_metadata(data.work_items, data.metadata, now, self.completed_status)

        async with self.transaction() as tx:
            current = await self._get_stored_project(tx, project_id)
            if expected_version is not None and current.version != expected_version:
                raise ConflictError(project_id, expected_version, current.version)

            new_version = current.version + 1
            await tx.execute(
                "UPDATE projects SET data = ?, last_accessed = ?, version = ? WHERE id = ?",
                (self._project_record(data.project, project_id), now, new_version, project_id),
            )

            existing: Dict[str, Tuple[str, int]] = {
                row["id"]: (row["data"], row["position"])
                for row in await tx.fetchall(
                    "SELECT id, data, position FROM work_items WHERE project_id = ?",
                    (project_id,),
                )
            }

            added = changed = 0
            for position, item in enumerate(data.work_items):
                record = _dumps(item.to_record())
                if item.id not in existing:
                    await self._insert_work_item(tx, project_id, item, position, record)
                    added += 1
                elif existing[item.id] != (record, position):
                    await tx.execute(
                        """
                        UPDATE work_items
                        SET parent_id = ?, status = ?, type = ?, position = ?, data = ?
                        WHERE project_id = ? AND id = ?
                        """,
                        (item.parent_id, item.status, item.type, position, record,
                         project_id, item.id),
                    )
                    changed += 1

            removed = set(existing) - {item.id for item in data.work_items}
            for item_id in removed:
                await tx.execute(
                    "DELETE FROM work_items WHERE project_id = ? AND id = ?",
                    (project_id, item_id),
                )

            await self._write_metadata(tx, project_id, metadata)

        log.debug(
            f"Updated project {project_id} to version {new_version}: "
            f"{added} added, {changed} changed, {len(removed)} removed"
        )
        return StoredProject.model_validate({
            **data.project.model_dump(),
            "id": project_id,
            "last_accessed": now,
            "is_active": current.is_active,
            "version": new_version,
        })

    async def delete_project(self, project_id: str) -> None:
        """Remove a project, all its work items and its metadata.

        Raises:
            NotFoundError: If the project does not exist.
        """
        async with self.transaction() as tx:
            await self._get_stored_project(tx, project_id)
            await tx.execute("DELETE FROM work_items WHERE project_id = ?", (project_id,))
            await tx.execute("DELETE FROM metadata WHERE project_id = ?", (project_id,))
            await tx.execute("DELETE FROM projects WHERE id = ?", (project_id,))

        log.info(f"Deleted project {project_id}")

    async def get_all_projects(self) -> List[StoredProject]:
        """Return every stored project, most recently accessed first."""
        async with self.transaction(readonly=True) as tx:
            rows = await tx.fetchall("SELECT * FROM projects ORDER BY last_accessed DESC, id")
        return [self._row_to_stored_project(row) for row in rows]

    async def set_active_project(self, project_id: str) -> None:
        """Mark one project active and every other project inactive.

        Refreshes last access on the target only.

        Raises:
            NotFoundError: If the project does not exist; nothing changes.
        """
        async with self.transaction() as tx:
            await self._get_stored_project(tx, project_id)
            await tx.execute(
                "UPDATE projects SET is_active = 0 WHERE is_active = 1 AND id != ?",
                (project_id,),
            )
            await tx.execute(
                "UPDATE projects SET is_active = 1, last_accessed = ? WHERE id = ?",
                (utc_now(), project_id),
            )

        log.debug(f"Active project is now {project_id}")

    async def get_active_project(self) -> Optional[StoredProject]:
        """Return the active project, or None when no project is active."""
        async with self.transaction(readonly=True) as tx:
            row = await tx.fetchone("SELECT * FROM projects WHERE is_active = 1")
        return self._row_to_stored_project(row) if row is not None else None

    async def count_work_items(self, project_id: str) -> int:
        """Count work items stored under a project id (existing or not)."""
        async with self.transaction(readonly=True) as tx:
            row = await tx.fetchone(
                "SELECT COUNT(*) AS n FROM work_items WHERE project_id = ?", (project_id,)
            )
        return row["n"]

    # =========================================================================
    # Settings
    # =========================================================================

    async def set_setting(self, key: str, value: Any) -> None:
        """Store a JSON-serializable setting value."""
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Setting '{key}' is not JSON-serializable: {e}") from e
        async with self.transaction() as tx:
            await tx.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, encoded)
            )

    async def get_setting(self, key: str, default: Any = None) -> Any:
        async with self.transaction(readonly=True) as tx:
            row = await tx.fetchone("SELECT value FROM settings WHERE key = ?", (key,))
        return json.loads(row["value"]) if row is not None else default

    async def delete_setting(self, key: str) -> bool:
        async with self.transaction() as tx:
            deleted = await tx.execute("DELETE FROM settings WHERE key = ?", (key,))
        return deleted > 0
