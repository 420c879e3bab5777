"""
Data models for Worklite.

Import models explicitly from their modules to avoid circular imports:
    from worklite.models.base import WorkItemStatus, merge_custom_fields
    from worklite.models.work_item import WorkItem, WorkItemNode
    from worklite.models.project import Project, StoredProject, Metadata, ProjectData
    from worklite.models.filters import FilterKind, FilterValue
"""

from .filters import FilterKind, FilterValue
from .project import Metadata, Project, ProjectData, StoredProject
from .work_item import WorkItem, WorkItemNode
