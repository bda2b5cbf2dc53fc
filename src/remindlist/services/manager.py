"""In-memory reminder collection with automatic persistence."""

import json
import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from remindlist import clock
from remindlist.config import get_settings
from remindlist.errors import ReminderError, ValidationError
from remindlist.models.reminders import Priority, Reminder, ReminderFilter, ReminderUpdate
from remindlist.models.storage import ReminderStatistics
from remindlist.services.storage import StorageLayer, normalize_record
from remindlist.services.stores import get_default_store

logger = logging.getLogger(__name__)

_PRIORITY_RANK = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}

# Record field names accepted by sort_by()
_SORT_ALIASES = {
    "dueDate": "due_date",
    "createdAt": "created_at",
    "completedAt": "completed_at",
    "isCompleted": "is_completed",
}


class ReminderManager:
    """Ordered reminder collection for one storage key.

    Every mutating call persists the whole collection through the storage layer.
    """

    def __init__(self, storage_key: str = "reminders", storage: StorageLayer | None = None) -> None:
        """Initialize the manager and load any stored reminders.

        Args:
            storage_key: Key the collection is persisted under.
            storage: Storage layer to use. If None, one is built over the
                configured file store. A given storage layer's own key wins.
        """
        self._storage = storage or StorageLayer(storage_key, store=get_default_store())
        self.storage_key = self._storage.storage_key
        self._reminders: list[Reminder] = []

        self.load()

    @property
    def storage(self) -> StorageLayer:
        return self._storage

    # ── Collection management ─────────────────────────────────────────────────

    def add(self, reminder: Reminder | Mapping[str, Any]) -> Reminder:
        """Add a reminder or create one from plain field data.

        Raises:
            ValidationError: If the argument is not a reminder or lacks a title,
                or a reminder with the same id is already present.
        """
        if isinstance(reminder, Reminder):
            if self.get_by_id(reminder.id) is not None:
                raise ValidationError(f"Reminder {reminder.id} is already in the collection")
        elif isinstance(reminder, Mapping) and isinstance(reminder.get("title"), str) and reminder["title"]:
            # Blank titles are left to the entity, which reports them as missing
            reminder = Reminder.from_fields(reminder)
        else:
            raise ValidationError("Invalid reminder")

        self._reminders.append(reminder)
        self.save()
        return reminder

    def add_multiple(self, reminders: Iterable[Reminder | Mapping[str, Any]]) -> list[Reminder]:
        return [self.add(reminder) for reminder in reminders]

    def remove(self, reminder_id: str) -> Reminder | None:
        """Remove a reminder by id.

        Returns:
            The removed reminder, or None if no reminder has that id.
        """
        for index, reminder in enumerate(self._reminders):
            if reminder.id == reminder_id:
                del self._reminders[index]
                self.save()
                return reminder
        return None

    def remove_completed(self) -> int:
        """Drop all completed reminders and return how many were removed."""
        kept = [r for r in self._reminders if not r.is_completed]
        removed = len(self._reminders) - len(kept)
        self._reminders = kept
        self.save()
        return removed

    def clear(self) -> None:
        self._reminders = []
        self.save()

    def update(self, reminder_id: str, changes: ReminderUpdate | Mapping[str, Any]) -> Reminder | None:
        """Apply a partial update to a reminder.

        Returns:
            The updated reminder, or None if no reminder has that id.

        Raises:
            ValidationError: If the update is invalid. Nothing is changed or saved.
        """
        reminder = self.get_by_id(reminder_id)
        if reminder is None:
            return None

        reminder.update(changes)
        self.save()
        return reminder

    def set_completed(self, reminder_id: str, completed: bool | None = None) -> Reminder | None:
        """Toggle (or set) completion of a reminder and persist it."""
        reminder = self.get_by_id(reminder_id)
        if reminder is None:
            return None

        reminder.mark_complete(completed)
        self.save()
        return reminder

    # ── Retrieval ─────────────────────────────────────────────────────────────

    def get_all(self) -> list[Reminder]:
        return list(self._reminders)

    def get_by_id(self, reminder_id: str) -> Reminder | None:
        return next((r for r in self._reminders if r.id == reminder_id), None)

    def get_active(self) -> list[Reminder]:
        return [r for r in self._reminders if not r.is_completed]

    def get_completed(self) -> list[Reminder]:
        return [r for r in self._reminders if r.is_completed]

    def get_overdue(self) -> list[Reminder]:
        return [r for r in self._reminders if r.is_overdue()]

    def get_upcoming(self, days: int = 7) -> list[Reminder]:
        """Open reminders due between now and ``days`` from now, inclusive."""
        now = clock.now()
        limit = now + timedelta(days=days)
        return [
            r
            for r in self._reminders
            if not r.is_completed and r.due_date is not None and now <= r.due_date <= limit
        ]

    def get_by_category(self, category: str) -> list[Reminder]:
        return [r for r in self._reminders if r.category == category]

    def get_by_priority(self, priority: Priority | str) -> list[Reminder]:
        return [r for r in self._reminders if r.priority == priority]

    def search(self, query: str) -> list[Reminder]:
        """Case-insensitive substring search over title and description.

        An empty query matches nothing.
        """
        if not query:
            return []

        query_lower = query.lower()
        return [
            r
            for r in self._reminders
            if query_lower in r.title.lower() or query_lower in r.description.lower()
        ]

    def filter(self, filter_type: ReminderFilter, days: int | None = None) -> list[Reminder]:
        """Run one of the canned queries."""
        if filter_type == ReminderFilter.ACTIVE:
            return self.get_active()
        if filter_type == ReminderFilter.COMPLETED:
            return self.get_completed()
        if filter_type == ReminderFilter.OVERDUE:
            return self.get_overdue()
        if filter_type == ReminderFilter.UPCOMING:
            return self.get_upcoming(days if days is not None else get_settings().upcoming_days)
        return self.get_all()

    # ── Sorting ───────────────────────────────────────────────────────────────

    def sort_by(self, field: str, order: str = "asc") -> list[Reminder]:
        """Return the reminders sorted by a field; stored order is unchanged.

        ``title`` and generic attributes honour ``order``. ``due_date`` and
        ``created_at`` always sort oldest first with undated reminders last, and
        ``priority`` always sorts most urgent first.
        """
        field = _SORT_ALIASES.get(field, field)
        descending = order == "desc"
        reminders = list(self._reminders)

        if field == "title":
            return sorted(reminders, key=lambda r: r.title.lower(), reverse=descending)
        if field == "due_date":
            return sorted(reminders, key=lambda r: (r.due_date is None, r.due_date or datetime.min))
        if field == "priority":
            return sorted(reminders, key=lambda r: -_PRIORITY_RANK[r.priority])
        if field == "created_at":
            return sorted(reminders, key=lambda r: r.created_at)

        def _value(reminder: Reminder) -> tuple[bool, Any]:
            value = getattr(reminder, field, None)
            return (value is None, value)

        return sorted(reminders, key=_value, reverse=descending)

    # ── Persistence ───────────────────────────────────────────────────────────

    def save(self) -> bool:
        """Persist the collection. Failures are logged, never raised."""
        saved = self._storage.save(self._reminders)
        if not saved:
            logger.error(
                "Failed to save %d reminders under %r", len(self._reminders), self.storage_key
            )
        return saved

    def load(self) -> None:
        """Replace the collection with what is stored."""
        try:
            self._reminders = self._storage.load()
        except Exception:
            logger.exception("Failed to load reminders under %r", self.storage_key)
            self._reminders = []
            return
        logger.debug("Loaded %d reminders under %r", len(self._reminders), self.storage_key)

    def export(self) -> str:
        """Serialize the whole collection as pretty-printed JSON."""
        return json.dumps([r.to_record() for r in self._reminders], indent=2)

    def import_json(self, payload: str) -> int:
        """Append reminders from a JSON list or envelope.

        Returns:
            Number of reminders imported; 0 if the payload could not be decoded,
            in which case the collection is left unchanged.
        """
        try:
            parsed = json.loads(payload)
            records = parsed.get("data") if isinstance(parsed, Mapping) else parsed
            if not isinstance(records, list):
                raise ValidationError("Expected a list of reminders")
            imported = [Reminder.from_record(normalize_record(item)) for item in records]
        except (ValueError, RecursionError, TypeError, ReminderError) as e:
            logger.error("Failed to import reminders: %s", e)
            return 0

        seen_ids = {r.id for r in self._reminders}
        for index, reminder in enumerate(imported):
            if reminder.id in seen_ids:
                imported[index] = reminder = reminder.clone()
            seen_ids.add(reminder.id)

        self._reminders.extend(imported)
        self.save()
        logger.info("Imported %d reminders under %r", len(imported), self.storage_key)
        return len(imported)

    # ── Statistics ────────────────────────────────────────────────────────────

    def count(self) -> int:
        return len(self._reminders)

    def count_active(self) -> int:
        return len(self.get_active())

    def count_completed(self) -> int:
        return len(self.get_completed())

    def count_overdue(self) -> int:
        return len(self.get_overdue())

    def count_by_category(self) -> dict[str, int]:
        return dict(Counter(r.category for r in self._reminders))

    def count_by_priority(self) -> dict[str, int]:
        return dict(Counter(r.priority.value for r in self._reminders))

    def get_statistics(self) -> ReminderStatistics:
        return ReminderStatistics(
            total=self.count(),
            active=self.count_active(),
            completed=self.count_completed(),
            overdue=self.count_overdue(),
            by_category=self.count_by_category(),
            by_priority=self.count_by_priority(),
        )


# Global manager instance (lazy-loaded)
_manager: ReminderManager | None = None


def get_reminder_manager() -> ReminderManager:
    """Get the global reminder manager for the configured storage key."""
    global _manager
    if _manager is None:
        _manager = ReminderManager(get_settings().storage_key)
    return _manager
