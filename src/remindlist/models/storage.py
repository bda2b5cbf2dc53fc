"""Pydantic models for persisted envelopes and storage/manager results."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from remindlist.models.reminders import RECORD_CONFIG

STORAGE_VERSION = 1


class StorageEnvelope(BaseModel):
    """Versioned wrapper around the persisted reminder records."""

    version: int = Field(default=STORAGE_VERSION, description="Schema version")
    data: list[dict[str, Any]] = Field(default_factory=list, description="Reminder records")


class ExportEnvelope(BaseModel):
    """Backup payload produced by StorageLayer.export()."""

    model_config = RECORD_CONFIG

    version: int = Field(default=STORAGE_VERSION, description="Schema version")
    exported_at: datetime = Field(..., description="When the backup was taken (UTC)")
    data: list[dict[str, Any]] = Field(default_factory=list, description="Reminder records")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SaveReport(BaseModel):
    """Outcome of a permissive bulk save."""

    saved: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class ImportReport(BaseModel):
    """Outcome of importing a backup."""

    imported: int = 0
    errors: list[str] = Field(default_factory=list)


class StorageInfo(BaseModel):
    """Size and item count of the value stored under a key."""

    model_config = RECORD_CONFIG

    key: str
    size: int = Field(0, description="Character length of the raw stored value")
    item_count: int = Field(0, description="Number of reminders the value decodes to")


class ReminderStatistics(BaseModel):
    """Aggregate counts over a reminder collection."""

    model_config = RECORD_CONFIG

    total: int = 0
    active: int = 0
    completed: int = 0
    overdue: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
