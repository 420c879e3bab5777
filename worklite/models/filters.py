"""
Filter models for Worklite.

A FilterValue is one active (kind, value) predicate over work items.
FilterOptions lists the values a user can pick per filter kind.
"""

import uuid
from enum import Enum
from typing import List, Optional

from pydantic import Field

from worklite.models.base import WorkliteModel


class FilterKind(str, Enum):
    """Work item fields that can be filtered on."""

    STATUS = "status"
    TYPE = "type"
    PRIORITY = "priority"
    TAGS = "tags"
    ASSIGNEE = "assignee"


class FilterValue(WorkliteModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: FilterKind = Field(alias="type")
    value: str
    label: Optional[str] = None


class FilterOption(WorkliteModel):
    value: str
    label: str


class FilterOptions(WorkliteModel):
    kind: FilterKind = Field(alias="type")
    label: str
    options: List[FilterOption] = Field(default_factory=list)
