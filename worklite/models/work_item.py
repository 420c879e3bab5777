"""
Work item models for Worklite.

WorkItem is the flat, persisted record (parent referenced by ``parent_id``).
WorkItemNode is the in-memory tree node built from a flat list.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from worklite.models.base import (
    AcceptanceCriterion,
    Dependency,
    EstimatedEffort,
    ExtensibleModel,
    Priority,
    WorkItemStatus,
    WorkItemType,
)


class WorkItem(ExtensibleModel):
    """A single epic/feature/story/task/bug/spike/research item.

    ``parent_id`` references another work item in the same project.
    """

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: Optional[str] = None
    type: WorkItemType
    status: WorkItemStatus
    priority: Priority
    parent_id: Optional[str] = None
    estimated_effort: Optional[EstimatedEffort] = None
    actual_effort: Optional[EstimatedEffort] = None
    assignee: Optional[str] = None
    reporter: Optional[str] = None
    created_date: Optional[str] = None
    updated_date: Optional[str] = None
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    tags: Optional[List[str]] = None
    acceptance_criteria: Optional[List[AcceptanceCriterion]] = None
    dependencies: Optional[List[Dependency]] = None


class WorkItemNode(BaseModel):
    """A work item with its ordered child nodes."""

    item: WorkItem
    children: List["WorkItemNode"] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return self.item.id

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the node into the item record plus a nested ``children`` list."""
        order: List["WorkItemNode"] = []
        stack: List["WorkItemNode"] = [self]
        while stack:
            node = stack.pop()
            order.append(node)
            stack.extend(node.children)

        records: Dict[int, Dict[str, Any]] = {}
        for node in reversed(order):
            data = node.item.to_record()
            data["children"] = [records[id(child)] for child in node.children]
            records[id(node)] = data
        return records[id(self)]


WorkItemNode.model_rebuild()
