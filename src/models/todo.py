"""Todo models with validation."""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TodoPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _ensure_aware(v: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


def _strip_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    return [t.strip() for t in v if t and t.strip()]


class TodoCreate(_CamelModel):
    """Request to create a todo.

    Attributes:
        title: Short title (max 200 chars)
        description: Optional details (max 1000 chars)
        start_time: When work starts
        end_time: When work is due; must be after start_time
        status: Initial status (default pending)
        priority: Priority (default medium)
        tags: Free-form labels
        assigned_to: Optional assignee user id; defaults to the creator
    """

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    start_time: datetime
    end_time: datetime
    status: TodoStatus = TodoStatus.PENDING
    priority: TodoPriority = TodoPriority.MEDIUM
    tags: List[str] = Field(default_factory=list)
    assigned_to: Optional[UUID] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Title cannot be empty or whitespace only")
        return stripped

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v: List[str]) -> List[str]:
        return _strip_tags(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def times_are_aware(cls, v: datetime) -> datetime:
        return _ensure_aware(v)

    @model_validator(mode="after")
    def end_after_start(self) -> "TodoCreate":
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class TodoUpdate(_CamelModel):
    """Partial todo update. Time ordering is checked against the stored todo."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[TodoStatus] = None
    priority: Optional[TodoPriority] = None
    tags: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        stripped = v.strip()
        if not stripped:
            raise ValueError("Title cannot be empty or whitespace only")
        return stripped

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _strip_tags(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def times_are_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _ensure_aware(v)


class Todo(_CamelModel):
    """A stored todo item."""

    id: UUID
    user_id: UUID = Field(
        validation_alias=AliasChoices("user_id", "userId"), serialization_alias="user"
    )
    created_by: UUID
    assigned_to: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: TodoStatus
    priority: TodoPriority
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def duration(self) -> int:
        """Length in whole hours, rounded up."""
        seconds = (self.end_time - self.start_time).total_seconds()
        return max(0, math.ceil(seconds / 3600))

    @computed_field(alias="isOverdue")
    @property
    def is_overdue(self) -> bool:
        return (
            self.end_time < datetime.now(timezone.utc)
            and self.status != TodoStatus.COMPLETED
        )

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
