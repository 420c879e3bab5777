"""
Base models for Worklite.

Enumerations and value objects shared by projects and work items.
All models accept camelCase (wire) and snake_case (Python) field names and
serialize using the camelCase aliases so exported files match the legacy format.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Open attribute bag attached to projects and work items.
#
# Values must be JSON-serializable; they are stored verbatim inside the
# record. Updates go through merge_custom_fields().
CustomFields = Dict[str, Any]


class WorkItemType(str, Enum):
    """Valid work item types."""

    EPIC = "epic"
    FEATURE = "feature"
    STORY = "story"
    TASK = "task"
    BUG = "bug"
    SPIKE = "spike"
    RESEARCH = "research"


class WorkItemStatus(str, Enum):
    """Valid status values for projects and work items."""

    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    TESTING = "testing"
    DONE = "done"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ProjectType(str, Enum):
    SOFTWARE = "software"
    INFRASTRUCTURE = "infrastructure"
    DESIGN = "design"
    RESEARCH = "research"
    PHYSICAL = "physical"
    OTHER = "other"


class EffortUnit(str, Enum):
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    STORY_POINTS = "story_points"
    T_SHIRT_SIZE = "t_shirt_size"


class DependencyType(str, Enum):
    BLOCKS = "blocks"
    BLOCKED_BY = "blocked_by"
    RELATES_TO = "relates_to"
    DUPLICATES = "duplicates"
    CLONES = "clones"


class WorkliteModel(BaseModel):
    """Common configuration for all persisted Worklite models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_record(self) -> Dict[str, Any]:
        """Dump to a JSON-compatible dict using camelCase keys, without unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class EstimatedEffort(WorkliteModel):
    value: float = Field(ge=0)
    unit: EffortUnit


class AcceptanceCriterion(WorkliteModel):
    id: Optional[str] = None
    description: str = Field(min_length=1)
    completed: bool = False


class Dependency(WorkliteModel):
    id: Optional[str] = None
    type: DependencyType
    target_id: str = Field(min_length=1)
    description: Optional[str] = None


def validate_custom_fields(value: Optional[CustomFields]) -> Optional[CustomFields]:
    """Reject custom field bags that cannot be stored as JSON."""
    if value is None:
        return value
    try:
        json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Custom fields must be JSON-serializable: {e}")
    return value


def merge_custom_fields(
    existing: Optional[CustomFields], changes: Optional[CustomFields]
) -> Optional[CustomFields]:
    """Merge a change set into an existing custom field bag.

    Keys in ``changes`` overwrite existing keys, a key whose new value is
    ``None`` is removed, and keys absent from ``changes`` are preserved.
    Returns ``None`` when the merged bag is empty.

    Args:
        existing: Current custom fields (may be None).
        changes: Incoming custom fields (may be None, meaning no change).

    Returns:
        New merged dictionary, or None if nothing remains.
    """
    merged = dict(existing or {})
    for key, value in (changes or {}).items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    validate_custom_fields(merged)
    return merged or None


class ExtensibleModel(WorkliteModel):
    """Base for records that carry an open ``custom_fields`` bag."""

    custom_fields: Optional[CustomFields] = None

    @field_validator("custom_fields")
    @classmethod
    def check_custom_fields(cls, v: Optional[CustomFields]) -> Optional[CustomFields]:
        return validate_custom_fields(v)
