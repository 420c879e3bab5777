"""
Ancestry checks for work item reparenting.

Computes descendants and ancestors over a flat item list and the set of
items that can safely become an item's parent.
"""

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Set

from worklite.exceptions import NotFoundError, ValidationError
from worklite.models.work_item import WorkItem


def _children_map(items: Sequence[WorkItem]) -> Dict[str, List[str]]:
    children: Dict[str, List[str]] = defaultdict(list)
    for item in items:
        if item.parent_id:
            children[item.parent_id].append(item.id)
    return children


def descendants_of(item_id: str, items: Sequence[WorkItem]) -> Set[str]:
    """Return the ids of all transitive descendants of an item.

    Follows ``parent_id`` edges downward. Cyclic data terminates: each id is
    visited once, and the starting id is never reported as its own descendant.

    Args:
        item_id: Id of the item whose subtree is wanted.
        items: Committed work items of the project.

    Returns:
        Set of descendant ids.
    """
    children = _children_map(items)
    descendants: Set[str] = set()
    visited = {item_id}
    stack = list(children.get(item_id, []))

    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        descendants.add(current)
        stack.extend(children.get(current, []))

    return descendants


def ancestors_of(item_id: str, items: Sequence[WorkItem]) -> List[str]:
    """Return ancestor ids of an item, nearest parent first.

    Stops at a root, at an unknown parent id, or when the chain loops.
    """
    by_id = {item.id: item for item in items}
    ancestors: List[str] = []
    visited = {item_id}
    current = by_id.get(item_id)

    while current is not None and current.parent_id:
        parent_id = current.parent_id
        if parent_id in visited or parent_id not in by_id:
            break
        visited.add(parent_id)
        ancestors.append(parent_id)
        current = by_id[parent_id]

    return ancestors


def valid_parents_for(item_id: Optional[str], items: Sequence[WorkItem]) -> List[WorkItem]:
    """Return the items that may become the parent of ``item_id``.

    Excludes the item itself and all of its descendants. A new, unsaved
    item (``item_id`` is None) can take any parent.

    Args:
        item_id: Id of the item being reparented, or None for a new item.
        items: Committed work items of the project.
    """
    if not item_id:
        return list(items)

    excluded = descendants_of(item_id, items)
    excluded.add(item_id)
    return [item for item in items if item.id not in excluded]


def validate_parent(
    item_id: str, parent_id: Optional[str], items: Sequence[WorkItem]
) -> None:
    """Ensure ``parent_id`` is an acceptable parent for ``item_id``.

    Raises:
        NotFoundError: If the proposed parent does not exist.
        ValidationError: If the parent is the item itself or one of its descendants.
    """
    if parent_id is None:
        return
    if parent_id == item_id:
        raise ValidationError(f"Work item '{item_id}' cannot be its own parent")
    if not any(item.id == parent_id for item in items):
        raise NotFoundError(f"Parent work item '{parent_id}' not found")
    if parent_id in descendants_of(item_id, items):
        raise ValidationError(
            f"Work item '{parent_id}' is a descendant of '{item_id}' and cannot be its parent"
        )
