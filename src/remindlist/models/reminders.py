"""Pydantic models for reminders."""

import math
from collections.abc import Mapping
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from remindlist import clock
from remindlist.errors import ValidationError

# Python attribute names in code, camelCase names in persisted records
RECORD_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Priority(str, Enum):
    """Priority levels for reminders."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReminderFilter(str, Enum):
    """Canned queries over a reminder collection."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"


def generate_id() -> str:
    """Generate a new opaque reminder id."""
    return str(uuid4())


def _check_title(value: Any) -> Any:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Title is required")
    return value


def _check_priority(value: Any) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        raise ValueError("Invalid priority level") from None


def _naive(value: datetime | None) -> datetime | None:
    return clock.to_naive_local(value) if value is not None else None


class ReminderUpdate(BaseModel):
    """Partial update for a reminder. Only fields that were supplied are applied."""

    model_config = RECORD_CONFIG

    title: str | None = Field(None, description="New title")
    description: str | None = Field(None, description="New description")
    due_date: datetime | None = Field(None, description="New due date (None clears it)")
    priority: Priority | None = Field(None, description="New priority")
    category: str | None = Field(None, description="New category")

    @field_validator("title", mode="before")
    @classmethod
    def _validate_title(cls, value: Any) -> Any:
        return _check_title(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _validate_priority(cls, value: Any) -> Priority:
        return _check_priority(value)

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        return "general" if value is None else value

    @field_validator("due_date")
    @classmethod
    def _localize_due_date(cls, value: datetime | None) -> datetime | None:
        return _naive(value)

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "ReminderUpdate":
        """Validate raw update data, raising ValidationError on failure."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

    def changes(self) -> dict[str, Any]:
        """Return the explicitly supplied fields keyed by attribute name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class ReminderCreate(BaseModel):
    """Plain creation data for a new reminder."""

    model_config = RECORD_CONFIG

    title: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    priority: Priority | None = None
    category: str | None = None

    @field_validator("priority", mode="before")
    @classmethod
    def _validate_priority(cls, value: Any) -> Priority | None:
        return None if value is None else _check_priority(value)


class Reminder(BaseModel):
    """A single reminder.

    Construct with keyword arguments (``Reminder(title="Call mom")``), from plain
    creation data with :meth:`from_fields`, or from a persisted record with
    :meth:`from_record`. Invalid data raises :class:`remindlist.errors.ValidationError`.
    """

    model_config = RECORD_CONFIG

    id: str = Field(default_factory=generate_id, description="Unique reminder identifier")
    title: str = Field(None, validate_default=True, description="The reminder title")
    description: str = Field(default="", description="Additional notes")
    due_date: datetime | None = Field(None, description="Due date and time (local, naive)")
    priority: Priority = Field(default=Priority.MEDIUM, description="Priority level")
    category: str = Field(default="general", description="Free-form category")
    is_completed: bool = Field(default=False, description="Whether the reminder is completed")
    created_at: datetime = Field(default_factory=lambda: clock.now(), description="Creation timestamp")
    completed_at: datetime | None = Field(None, description="When the reminder was completed")

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

    @field_validator("title", mode="before")
    @classmethod
    def _validate_title(cls, value: Any) -> Any:
        return _check_title(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _validate_priority(cls, value: Any) -> Priority:
        return _check_priority(value)

    @field_validator("due_date", "created_at", "completed_at")
    @classmethod
    def _localize(cls, value: datetime | None) -> datetime | None:
        return _naive(value)

    @model_validator(mode="after")
    def _sync_completion(self) -> "Reminder":
        # completed_at is set iff the reminder is completed
        if self.is_completed and self.completed_at is None:
            self.completed_at = clock.now()
        elif not self.is_completed and self.completed_at is not None:
            self.completed_at = None
        return self

    # ── Factories ────────────────────────────────────────────────────────────

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> "Reminder":
        """Create a new reminder (fresh id) from plain creation data."""
        try:
            create = ReminderCreate.model_validate(fields)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e
        return cls(**create.model_dump(exclude_none=True))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Reminder":
        """Rebuild a reminder from its persisted record, keeping id and completion state."""
        try:
            return cls.model_validate(record)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted record shape (camelCase, ISO datetimes)."""
        return self.model_dump(mode="json", by_alias=True)

    def clone(self) -> "Reminder":
        """Copy every field under a new id."""
        return self.model_copy(update={"id": generate_id()})

    # ── Due date ─────────────────────────────────────────────────────────────

    def is_overdue(self) -> bool:
        if self.due_date is None or self.is_completed:
            return False
        return self.due_date < clock.now()

    def time_until_due(self) -> timedelta | None:
        """Signed time left until the due date; negative once it has passed."""
        if self.due_date is None:
            return None
        return self.due_date - clock.now()

    def time_until_due_formatted(self) -> str:
        remaining = self.time_until_due()
        if remaining is None:
            return "No due date"

        seconds = remaining.total_seconds()
        if seconds < 0:
            # Counts are floored before dropping the sign
            days = math.floor(seconds / 86400)
            if days < -1:
                return f"{abs(days)} days overdue"
            return f"{abs(math.floor(seconds / 3600))} hours overdue"

        hours_left = seconds / 3600
        if hours_left >= 24:
            return f"{math.floor(hours_left / 24)} days remaining"
        return f"{math.floor(hours_left)} hours remaining"

    # ── Mutation ─────────────────────────────────────────────────────────────

    def mark_complete(self, completed: bool | None = None) -> None:
        """Toggle completion, or set it explicitly when ``completed`` is given."""
        if completed is None:
            self.is_completed = not self.is_completed
        else:
            self.is_completed = bool(completed)
        self.completed_at = clock.now() if self.is_completed else None

    def update(self, changes: ReminderUpdate | Mapping[str, Any]) -> "Reminder":
        """Apply a partial update.

        The whole patch is validated before any field changes, so a rejected
        update leaves the reminder untouched.
        """
        patch = changes if isinstance(changes, ReminderUpdate) else ReminderUpdate.parse(changes)
        for name, value in patch.changes().items():
            setattr(self, name, value)
        return self
