"""
WorkItemManager for edits to the work items of one project.

Works on an in-memory ProjectData snapshot; callers persist the result
through ActiveProjectManager.update_current().
"""
import secrets
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from worklite.constants import (
    DEFAULT_ITEM_PRIORITY,
    DEFAULT_ITEM_STATUS,
    DEFAULT_ITEM_TYPE,
)
from worklite.exceptions import NotFoundError, ValidationError
from worklite.managers.ancestry import descendants_of, validate_parent
from worklite.managers.storage_manager import utc_now
from worklite.models.base import merge_custom_fields
from worklite.models.project import ProjectData
from worklite.models.work_item import WorkItem

# Fields callers may not change through update_item()
READONLY_FIELDS = {"id", "created_date", "updated_date"}


def generate_item_id() -> str:
    """Generate an id of the form item-<epoch ms>-<random>."""
    return f"item-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


def _check_field_names(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - set(WorkItem.model_fields)
    if unknown:
        raise ValidationError(f"Unknown work item fields: {', '.join(sorted(unknown))}")


class WorkItemManager:
    """
    Manages add/update/move/delete of work items.

    Handles:
    - Creating items with generated ids, defaults and timestamps
    - Updating fields (custom fields are merged, not replaced)
    - Reparenting, validated against the committed item set
    - Deleting items, re-parenting or cascading to their children

    Usage:
        items = WorkItemManager(project_data)
        story = items.add_item("Login form", type="story", parent_id=epic_id)
        items.update_item(story.id, status="in_progress")
        await projects.update_current(items.data)
    """

    def __init__(self, data: ProjectData) -> None:
        """
        Initialize WorkItemManager.

        Args:
            data: Project snapshot as last read from the store.
        """
        self.data = data

    @property
    def items(self) -> List[WorkItem]:
        return self.data.work_items

    def get_item(self, item_id: str) -> WorkItem:
        """Find a work item by id.

        Raises:
            NotFoundError: If no item has this id.
        """
        for item in self.items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"Work item '{item_id}' not found")

    def _replace(self, updated: WorkItem) -> None:
        self.data.work_items = [
            updated if item.id == updated.id else item for item in self.items
        ]

    @staticmethod
    def _build(fields: Dict[str, Any]) -> WorkItem:
        try:
            return WorkItem.model_validate(fields)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid work item: {e}") from e

    def add_item(
        self,
        title: str,
        type: str = DEFAULT_ITEM_TYPE,
        status: str = DEFAULT_ITEM_STATUS,
        priority: str = DEFAULT_ITEM_PRIORITY,
        parent_id: Optional[str] = None,
        **fields: Any,
    ) -> WorkItem:
        """Add a new work item.

        Args:
            title: Item title (surrounding whitespace is stripped).
            type: Work item type.
            status: Initial status.
            priority: Priority.
            parent_id: Optional parent work item id.
            **fields: Any other WorkItem field (description, assignee, tags, ...).

        Returns:
            The new work item.

        Raises:
            ValidationError: If the title is empty or a field is unknown or invalid.
            NotFoundError: If the parent does not exist.
        """
        _check_field_names(fields)
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required for all work items.")

        if parent_id is not None and not any(item.id == parent_id for item in self.items):
            raise NotFoundError(f"Parent work item '{parent_id}' not found")

        now = utc_now()
        item = self._build({
            "tags": [],
            "acceptance_criteria": [],
            **fields,
            "id": generate_item_id(),
            "title": title,
            "type": type,
            "status": status,
            "priority": priority,
            "parent_id": parent_id,
            "created_date": fields.get("created_date") or now,
            "updated_date": now,
        })
        self.data.work_items = [*self.items, item]
        return item

    def update_item(self, item_id: str, **changes: Any) -> WorkItem:
        """Update fields of an existing work item.

        ``custom_fields`` is merged into the existing bag (a None value
        removes a key). A ``parent_id`` change is validated against the
        current items so no cycle can be created.

        Raises:
            NotFoundError: If the item or new parent does not exist.
            ValidationError: If no change is given, a field is unknown or
                read-only, a value is invalid, or the reparent makes a cycle.
        """
        item = self.get_item(item_id)
        if not changes:
            raise ValidationError("No update parameters provided.")
        _check_field_names(changes)

        forbidden = READONLY_FIELDS.intersection(changes)
        if forbidden:
            raise ValidationError(f"Cannot update read-only fields: {', '.join(sorted(forbidden))}")

        if "parent_id" in changes:
            validate_parent(item_id, changes["parent_id"], self.items)

        merged = item.model_dump()
        for key, value in changes.items():
            if key == "custom_fields":
                try:
                    merged[key] = merge_custom_fields(item.custom_fields, value)
                except ValueError as e:
                    raise ValidationError(str(e)) from e
            else:
                merged[key] = value
        merged["updated_date"] = utc_now()

        updated = self._build(merged)
        self._replace(updated)
        return updated

    def move_item(self, item_id: str, parent_id: Optional[str]) -> WorkItem:
        """Reparent an item. ``parent_id=None`` makes it a root."""
        return self.update_item(item_id, parent_id=parent_id)

    def delete_item(self, item_id: str, cascade: bool = False) -> List[str]:
        """Delete a work item.

        Without ``cascade`` its direct children move up to the deleted
        item's parent; with ``cascade`` the whole subtree is removed.

        Returns:
            Ids of all deleted items.

        Raises:
            NotFoundError: If the item does not exist.
        """
        item = self.get_item(item_id)
        deleted = {item_id}
        if cascade:
            deleted |= descendants_of(item_id, self.items)

        deleted_ids = [other.id for other in self.items if other.id in deleted]
        now = utc_now()
        remaining: List[WorkItem] = []
        for other in self.items:
            if other.id in deleted:
                continue
            if other.parent_id == item_id:
                other = other.model_copy(
                    update={"parent_id": item.parent_id, "updated_date": now}
                )
            remaining.append(other)

        self.data.work_items = remaining
        return deleted_ids
