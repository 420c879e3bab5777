"""
Project models for Worklite.

Project is the user-facing container record.
StoredProject adds the store's bookkeeping (last access, active flag, version).
ProjectData is the import/export unit: project + work items + metadata.
"""

from typing import List, Optional

from pydantic import Field

from worklite.models.base import (
    EstimatedEffort,
    ExtensibleModel,
    Priority,
    ProjectType,
    WorkItemStatus,
    WorkliteModel,
)
from worklite.models.work_item import WorkItem


# Fields that belong to the store and never leave it
BOOKKEEPING_FIELDS = frozenset({"last_accessed", "is_active", "version"})


class Project(ExtensibleModel):
    """Top-level container owning a set of work items."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    type: ProjectType
    status: WorkItemStatus
    priority: Priority
    estimated_effort: Optional[EstimatedEffort] = None
    tags: Optional[List[str]] = None
    created_date: str = Field(min_length=1)
    target_date: Optional[str] = None
    owner: Optional[str] = None
    stakeholders: Optional[List[str]] = None


class StoredProject(Project):
    """Project plus store bookkeeping.

    At most one StoredProject in a store has ``is_active`` set.
    ``version`` starts at 1 and is incremented by every update.
    """

    last_accessed: str
    is_active: bool = False
    version: int = 1

    def to_project(self) -> Project:
        """Strip bookkeeping fields."""
        return Project.model_validate(
            self.model_dump(exclude=set(BOOKKEEPING_FIELDS))
        )


class Metadata(WorkliteModel):
    """Per-project aggregate, recomputed by the store on every write."""

    version: Optional[str] = None
    last_updated: Optional[str] = None
    total_work_items: Optional[int] = Field(default=None, ge=0)
    completed_work_items: Optional[int] = Field(default=None, ge=0)
    total_estimated_effort: Optional[EstimatedEffort] = None
    schema_version: Optional[str] = None


class ProjectData(WorkliteModel):
    """Complete project document: the unit of import, export and storage."""

    project: Project
    work_items: List[WorkItem] = Field(default_factory=list)
    metadata: Optional[Metadata] = None
