"""Data models for reminders and their persisted form."""

from remindlist.models.reminders import (
    Priority,
    Reminder,
    ReminderCreate,
    ReminderFilter,
    ReminderUpdate,
)
from remindlist.models.storage import (
    STORAGE_VERSION,
    ExportEnvelope,
    ImportReport,
    ReminderStatistics,
    SaveReport,
    StorageEnvelope,
    StorageInfo,
)

__all__ = [
    "STORAGE_VERSION",
    "ExportEnvelope",
    "ImportReport",
    "Priority",
    "Reminder",
    "ReminderCreate",
    "ReminderFilter",
    "ReminderStatistics",
    "ReminderUpdate",
    "SaveReport",
    "StorageEnvelope",
    "StorageInfo",
]
