"""
Tree building for work items.

Turns a flat, parent-referencing list of work items into a forest.
The linking pass keeps the result acyclic: self-parenting and any edge that
would close a cycle are rejected and the item is placed at the root.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from worklite.constants import TYPE_HIERARCHY_ORDER
from worklite.logs import get_logger
from worklite.models.work_item import WorkItem, WorkItemNode

log = get_logger("hierarchy")


@dataclass
class HierarchyIndex:
    """Arena view of a work item forest.

    ``by_id`` holds every valid item, ``children_ids`` the ordered child ids
    of each item, ``root_ids`` the ordered roots. ``rejected`` records
    (item_id, parent_id) edges that were refused because they would create a
    cycle.
    """

    by_id: Dict[str, WorkItem] = field(default_factory=dict)
    children_ids: Dict[str, List[str]] = field(default_factory=dict)
    root_ids: List[str] = field(default_factory=list)
    rejected: List[Tuple[str, str]] = field(default_factory=list)

    def parent_of(self, item_id: str) -> Optional[str]:
        """Return the effective parent id of an item, or None for roots."""
        for parent_id, child_ids in self.children_ids.items():
            if item_id in child_ids:
                return parent_id
        return None

    def to_nodes(self) -> List[WorkItemNode]:
        """Materialize the arena as nested WorkItemNode trees.

        Built bottom-up without recursion, so chain depth is unbounded.
        """
        order: List[str] = []
        stack = list(reversed(self.root_ids))
        while stack:
            item_id = stack.pop()
            order.append(item_id)
            stack.extend(reversed(self.children_ids[item_id]))

        nodes: Dict[str, WorkItemNode] = {}
        for item_id in reversed(order):
            nodes[item_id] = WorkItemNode(
                item=self.by_id[item_id],
                children=[nodes[child_id] for child_id in self.children_ids[item_id]],
            )
        return [nodes[root_id] for root_id in self.root_ids]


def is_valid_item(item: Optional[WorkItem]) -> bool:
    """Items without an id or title are dropped from hierarchies."""
    return bool(getattr(item, "id", None)) and bool(getattr(item, "title", None))


def _closes_cycle(item_id: str, parent_id: str, parents: Dict[str, str]) -> bool:
    """Check whether linking item_id under parent_id would create a cycle.

    Walks up from parent_id through the edges accepted so far.
    """
    visited = set()
    current: Optional[str] = parent_id
    while current is not None and current not in visited:
        if current == item_id:
            return True
        visited.add(current)
        current = parents.get(current)
    return False


def build_index(items: Iterable[Optional[WorkItem]]) -> HierarchyIndex:
    """Build the arena index for a flat list of work items.

    Invalid items (missing id or title) are skipped. When an id appears more
    than once the first occurrence wins.

    Args:
        items: Flat work items, in display order.

    Returns:
        HierarchyIndex with roots and children in input order.
    """
    index = HierarchyIndex()
    ordered: List[WorkItem] = []

    for item in items:
        if not is_valid_item(item):
            continue
        if item.id in index.by_id:
            log.warning(f"Duplicate work item id '{item.id}' ignored")
            continue
        index.by_id[item.id] = item
        index.children_ids[item.id] = []
        ordered.append(item)

    # Accepted child -> parent edges
    parents: Dict[str, str] = {}

    for item in ordered:
        parent_id = item.parent_id
        if not parent_id or parent_id not in index.by_id:
            continue
        if parent_id == item.id or _closes_cycle(item.id, parent_id, parents):
            log.warning(
                f"Rejected parent '{parent_id}' for work item '{item.id}': would create a cycle"
            )
            index.rejected.append((item.id, parent_id))
            continue
        parents[item.id] = parent_id

    for item in ordered:
        parent_id = parents.get(item.id)
        if parent_id is None:
            index.root_ids.append(item.id)
        else:
            index.children_ids[parent_id].append(item.id)

    return index


def build_hierarchy(items: Iterable[Optional[WorkItem]]) -> List[WorkItemNode]:
    """Build a forest of WorkItemNode from a flat list of work items.

    Every valid input item appears exactly once, either as a root or as the
    child of exactly one parent.
    """
    if items is None:
        return []
    return build_index(items).to_nodes()


def walk(nodes: Sequence[WorkItemNode]) -> Iterator[Tuple[WorkItemNode, int]]:
    """Yield (node, depth) pairs of a forest in depth-first pre-order."""
    stack = [(node, 0) for node in reversed(nodes)]
    while stack:
        node, depth = stack.pop()
        yield node, depth
        stack.extend((child, depth + 1) for child in reversed(node.children))


def flatten(nodes: Sequence[WorkItemNode]) -> List[WorkItem]:
    """Return the items of a forest in depth-first pre-order."""
    return [node.item for node, _ in walk(nodes)]


def sort_by_hierarchy(items: Iterable[WorkItem]) -> List[WorkItem]:
    """Order items epic, feature, story, then everything else; ties by title."""
    return sorted(
        items,
        key=lambda item: (TYPE_HIERARCHY_ORDER.get(item.type, 5), item.title.lower()),
    )
