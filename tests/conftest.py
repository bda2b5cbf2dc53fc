"""Pytest fixtures for remindlist tests."""

import logging
import os
from datetime import datetime

import pytest

# Set test environment before importing the package
os.environ["REMINDLIST_LOG_LEVEL"] = "WARNING"
os.environ.pop("REMINDLIST_LOG_DIR", None)

# Clear settings cache to pick up test environment
from remindlist.config import get_settings
get_settings.cache_clear()

from remindlist import clock
from remindlist.models.reminders import Reminder
from remindlist.services.manager import ReminderManager
from remindlist.services.storage import StorageLayer
from remindlist.services.stores import MemoryStore

# Pinned "now" used by the clock fixture
NOW = datetime(2025, 6, 15, 12, 0, 0)
PAST_DATE = datetime(2023, 1, 15, 9, 0, 0)
FUTURE_DATE = datetime(2026, 12, 25, 15, 30, 0)


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch: pytest.MonkeyPatch) -> datetime:
    """Pin clock.now() so due-date arithmetic is deterministic."""
    monkeypatch.setattr(clock, "now", lambda: NOW)
    return NOW


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo handler changes made by setup_logging()."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def store() -> MemoryStore:
    """Create an empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def storage(store: MemoryStore) -> StorageLayer:
    """Create a storage layer over the in-memory store."""
    return StorageLayer("test-reminders", store=store)


@pytest.fixture
def manager(storage: StorageLayer) -> ReminderManager:
    """Create an empty manager over the in-memory store."""
    return ReminderManager(storage=storage)


@pytest.fixture
def sample_reminders() -> list[Reminder]:
    """Five reminders across categories and priorities; one completed."""
    reminders = [
        Reminder(title="Work meeting", description="Weekly team sync", due_date=FUTURE_DATE,
                 priority="high", category="work"),
        Reminder(title="Buy groceries", description="Milk, bread, eggs", due_date=PAST_DATE,
                 priority="medium", category="personal"),
        Reminder(title="Doctor appointment", description="Annual checkup", due_date=FUTURE_DATE,
                 priority="high", category="health"),
        Reminder(title="Call mom", priority="low", category="personal"),
        Reminder(title="Overdue task", description="This task is overdue", due_date=PAST_DATE,
                 priority="high", category="work"),
    ]
    reminders[1].mark_complete()
    return reminders
