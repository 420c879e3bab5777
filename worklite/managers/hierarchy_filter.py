"""
Ancestor-preserving filtering of work item forests.

A node is kept when it matches every active filter, or when at least one of
its descendants does. Matching leaves therefore pull their whole ancestor
chain into the result.
"""

from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from worklite.constants import FILTER_SETTING_PREFIX
from worklite.logs import get_logger
from worklite.managers.tree_builder import walk
from worklite.models.base import Priority, WorkItemStatus, WorkItemType
from worklite.models.filters import FilterKind, FilterOption, FilterOptions, FilterValue
from worklite.models.work_item import WorkItem, WorkItemNode

if TYPE_CHECKING:
    from worklite.managers.storage_manager import PersistenceStore

log = get_logger("filters")


def _label(value: str) -> str:
    return value.replace("_", " ").title()


def matches_filter(item: WorkItem, active: FilterValue) -> bool:
    """Check a single (kind, value) predicate against one item."""
    kind = FilterKind(active.kind)
    if kind == FilterKind.STATUS:
        return item.status == active.value
    if kind == FilterKind.TYPE:
        return item.type == active.value
    if kind == FilterKind.PRIORITY:
        return item.priority == active.value
    if kind == FilterKind.TAGS:
        return active.value in (item.tags or [])
    if kind == FilterKind.ASSIGNEE:
        return item.assignee == active.value
    return False


def matches(item: WorkItem, filters: Sequence[FilterValue]) -> bool:
    """An item matches when every filter holds (AND, also within one kind)."""
    return all(matches_filter(item, active) for active in filters)


def apply_filters(
    forest: Sequence[WorkItemNode], filters: Sequence[FilterValue]
) -> List[WorkItemNode]:
    """Reduce a forest to matching nodes and their ancestors.

    With no filters the forest is returned unchanged. Otherwise new nodes
    are built and the input forest is left untouched.

    Args:
        forest: Roots produced by build_hierarchy().
        filters: Active filters, all of which must hold.

    Returns:
        Filtered roots, in original order.
    """
    if not filters:
        return list(forest)

    # Children come after their parent in pre-order, so reversing it
    # settles every subtree before the node that holds it.
    kept: Dict[int, Optional[WorkItemNode]] = {}
    for node, _ in reversed(list(walk(forest))):
        children = [kept[id(child)] for child in node.children if kept[id(child)] is not None]
        if matches(node.item, filters) or children:
            kept[id(node)] = WorkItemNode(item=node.item, children=children)
        else:
            kept[id(node)] = None
    return [kept[id(node)] for node in forest if kept[id(node)] is not None]


def available_filters(items: Iterable[WorkItem]) -> List[FilterOptions]:
    """List the selectable values per filter kind.

    Status, type and priority come from their enums; tags are collected from
    the given items in first-seen order.
    """
    tags: List[str] = []
    for item in items:
        for tag in item.tags or []:
            if tag not in tags:
                tags.append(tag)

    return [
        FilterOptions(
            kind=FilterKind.STATUS,
            label="Status",
            options=[FilterOption(value=s.value, label=_label(s.value)) for s in WorkItemStatus],
        ),
        FilterOptions(
            kind=FilterKind.TYPE,
            label="Type",
            options=[FilterOption(value=t.value, label=_label(t.value)) for t in WorkItemType],
        ),
        FilterOptions(
            kind=FilterKind.PRIORITY,
            label="Priority",
            options=[FilterOption(value=p.value, label=_label(p.value)) for p in Priority],
        ),
        FilterOptions(
            kind=FilterKind.TAGS,
            label="Tags",
            options=[FilterOption(value=tag, label=tag) for tag in tags],
        ),
    ]


class FilterManager:
    """
    Manages the active filter list of a project.

    Handles:
    - Adding filters (exact kind+value duplicates are ignored)
    - Removing filters by id and clearing all filters
    - Persisting filters per project in the settings collection

    Usage:
        filters = FilterManager(store)
        await filters.load(project_id)
        filters.add(FilterValue(kind="status", value="done"))
        await filters.save(project_id)
        forest = apply_filters(build_hierarchy(items), filters.active)
    """

    def __init__(self, store: "PersistenceStore") -> None:
        """
        Initialize FilterManager.

        Args:
            store: PersistenceStore holding the settings collection.
        """
        self.store = store
        self.active: List[FilterValue] = []

    @staticmethod
    def setting_key(project_id: str) -> str:
        return f"{FILTER_SETTING_PREFIX}{project_id}"

    def add(self, new_filter: FilterValue) -> bool:
        """Add a filter. Returns False if an identical filter is already active."""
        for existing in self.active:
            if existing.kind == new_filter.kind and existing.value == new_filter.value:
                return False
        self.active.append(new_filter)
        return True

    def remove(self, filter_id: str) -> bool:
        """Remove a filter by id. Returns True if one was removed."""
        remaining = [f for f in self.active if f.id != filter_id]
        removed = len(remaining) != len(self.active)
        self.active = remaining
        return removed

    def clear(self) -> None:
        self.active = []

    async def load(self, project_id: Optional[str]) -> List[FilterValue]:
        """Load the saved filters of a project, replacing the active list.

        Saved filters that cannot be read are logged and treated as empty.
        """
        self.active = []
        if not project_id:
            return self.active

        saved = await self.store.get_setting(self.setting_key(project_id))
        if saved is None:
            return self.active
        if not isinstance(saved, list):
            log.warning(f"Ignoring saved filters for project '{project_id}': not a list")
            return self.active

        try:
            self.active = [FilterValue.model_validate(entry) for entry in saved]
        except PydanticValidationError as e:
            log.warning(f"Ignoring saved filters for project '{project_id}': {e}")
            self.active = []
        return self.active

    async def save(self, project_id: Optional[str]) -> None:
        """Persist the active filters. An empty list removes the saved entry."""
        if not project_id:
            return
        key = self.setting_key(project_id)
        if self.active:
            await self.store.set_setting(key, [f.to_record() for f in self.active])
        else:
            await self.store.delete_setting(key)
