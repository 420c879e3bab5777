"""
Managers for Worklite.

This package contains focused modules that handle specific aspects of Worklite functionality:
- tree_builder: Build work item forests from flat lists
- ancestry: Descendant/ancestor queries and safe parent candidates
- hierarchy_filter: Ancestor-preserving filters and per-project filter persistence
- PersistenceStore: Transactional storage of projects, work items, metadata, settings
- ActiveProjectManager: Single-active-project policy and project switching
- MigrationAdapter: One-time import of legacy single-project storage
- WorkItemManager: Add/update/move/delete of work items
"""

from worklite.managers.ancestry import (
    ancestors_of,
    descendants_of,
    valid_parents_for,
    validate_parent,
)
from worklite.managers.hierarchy_filter import (
    FilterManager,
    apply_filters,
    available_filters,
    matches,
)
from worklite.managers.item_manager import WorkItemManager
from worklite.managers.migration_manager import LegacyStorage, MigrationAdapter
from worklite.managers.project_manager import ActiveProjectManager
from worklite.managers.storage_manager import PersistenceStore, Transaction
from worklite.managers.tree_builder import (
    HierarchyIndex,
    build_hierarchy,
    build_index,
    flatten,
    sort_by_hierarchy,
    walk,
)

__all__ = [
    "ancestors_of",
    "descendants_of",
    "valid_parents_for",
    "validate_parent",
    "FilterManager",
    "apply_filters",
    "available_filters",
    "matches",
    "WorkItemManager",
    "LegacyStorage",
    "MigrationAdapter",
    "ActiveProjectManager",
    "PersistenceStore",
    "Transaction",
    "HierarchyIndex",
    "build_hierarchy",
    "build_index",
    "flatten",
    "sort_by_hierarchy",
    "walk",
]
