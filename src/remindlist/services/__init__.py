"""Storage and collection services for reminders."""

from remindlist.services.manager import ReminderManager, get_reminder_manager
from remindlist.services.storage import StorageLayer, normalize_record
from remindlist.services.stores import (
    FileStore,
    KeyValueStore,
    MemoryStore,
    QuotaExceededError,
    StoreError,
    get_default_store,
)

__all__ = [
    "FileStore",
    "KeyValueStore",
    "MemoryStore",
    "QuotaExceededError",
    "ReminderManager",
    "StorageLayer",
    "StoreError",
    "get_default_store",
    "get_reminder_manager",
    "normalize_record",
]
