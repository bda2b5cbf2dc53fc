"""Versioned persistence of reminder lists on top of a key-value store.

Values are stored as JSON. The current format is the envelope
``{"version": 1, "data": [record, ...]}``; a bare list of records is the legacy
format and is migrated to the envelope the first time it is loaded.

Storage trouble (no store, quota exceeded, corrupted values, bad records) is
logged and reported by value. Only malformed arguments raise.
"""

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from remindlist import clock
from remindlist.errors import FormatError, ReminderError, ValidationError
from remindlist.models.reminders import Priority, Reminder, generate_id
from remindlist.models.storage import (
    STORAGE_VERSION,
    ExportEnvelope,
    ImportReport,
    SaveReport,
    StorageEnvelope,
    StorageInfo,
)
from remindlist.services.stores import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

_PROBE_KEY = "__storage_test__"

# Priority names written by older releases
_LEGACY_PRIORITIES = {"normal": Priority.MEDIUM.value}
_PRIORITY_VALUES = {p.value for p in Priority}


def normalize_record(item: Any) -> dict[str, Any]:
    """Fill in defaults and repair outdated values on a raw reminder record."""
    if not isinstance(item, Mapping):
        raise ValidationError("Invalid reminder data: expected an object")

    priority = item.get("priority")
    priority = _LEGACY_PRIORITIES.get(priority, priority) if isinstance(priority, str) else None
    if priority not in _PRIORITY_VALUES:
        priority = Priority.MEDIUM.value

    return {
        "id": item.get("id") or generate_id(),
        "title": item.get("title") or "",
        "description": item.get("description") or "",
        "dueDate": item.get("dueDate") or None,
        "priority": priority,
        "category": item.get("category") or "general",
        "isCompleted": bool(item.get("isCompleted")),
        "createdAt": item.get("createdAt") or clock.now().isoformat(),
        "completedAt": item.get("completedAt") or None,
    }


def _has_title(item: Any) -> bool:
    if not isinstance(item, Mapping):
        return False
    title = item.get("title")
    return isinstance(title, str) and bool(title.strip())


class StorageLayer:
    """Reads and writes one reminder list under a single storage key."""

    version = STORAGE_VERSION

    def __init__(self, storage_key: str = "reminders", store: KeyValueStore | None = None) -> None:
        """Initialize the storage layer.

        Args:
            storage_key: Key the reminder list is stored under.
            store: Backing key-value store. None means no store is available;
                loads return nothing and saves report failure.
        """
        self.storage_key = storage_key
        self.store = store

    # ── Save ──────────────────────────────────────────────────────────────────

    def save(self, reminders: Sequence[Reminder | Mapping[str, Any]]) -> bool:
        """Persist reminders under the storage key.

        Every element must be a Reminder or a mapping with a non-empty title;
        anything else raises ValidationError before anything is written.

        Returns:
            True if written, False if the store is missing or refused the write.
        """
        entities = [self._coerce_for_save(item) for item in reminders]

        if not self.is_storage_available():
            logger.warning("Storage unavailable; could not save %d reminders", len(entities))
            return False

        envelope = StorageEnvelope(version=self.version, data=[r.to_record() for r in entities])
        try:
            self.store.set(self.storage_key, envelope.model_dump_json())
        except (StoreError, OSError) as e:
            logger.error("Failed to save reminders under %r: %s", self.storage_key, e)
            return False

        logger.debug("Saved %d reminders under %r", len(entities), self.storage_key)
        return True

    @staticmethod
    def _coerce_for_save(item: Any) -> Reminder:
        if isinstance(item, Reminder):
            return item
        if not _has_title(item):
            raise ValidationError("Invalid reminder data")
        return Reminder.from_record(normalize_record(item))

    def save_with_validation(self, items: Iterable[Any]) -> SaveReport:
        """Save the valid subset of items, reporting what was skipped. Never raises."""
        report = SaveReport()
        valid: list[Reminder] = []

        for item in items:
            try:
                if isinstance(item, Reminder):
                    reminder = item
                elif _has_title(item):
                    reminder = Reminder.from_fields(item)
                else:
                    raise ValidationError("Invalid reminder data: missing or empty title")
            except ReminderError as e:
                report.skipped += 1
                report.errors.append(e.message)
                continue
            valid.append(reminder)
            report.saved += 1

        if not self.save(valid):
            logger.warning("Bulk save of %d reminders was not persisted", len(valid))
        return report

    # ── Load ──────────────────────────────────────────────────────────────────

    def _read_raw(self) -> str | None:
        if self.store is None:
            return None
        try:
            return self.store.get(self.storage_key)
        except (StoreError, OSError) as e:
            logger.error("Failed to read reminders under %r: %s", self.storage_key, e)
            return None

    def load(self) -> list[Reminder]:
        """Load reminders, migrating legacy data. Never raises."""
        raw = self._read_raw()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except (ValueError, RecursionError) as e:
            logger.error("Stored reminders under %r are corrupted: %s", self.storage_key, e)
            return []

        if isinstance(parsed, list):
            return self._migrate_from_legacy(parsed)

        if not isinstance(parsed, Mapping):
            logger.error(
                "Stored reminders under %r are corrupted: unexpected %s",
                self.storage_key,
                type(parsed).__name__,
            )
            return []

        version = parsed.get("version")
        if version != self.version:
            logger.warning(
                "Stored reminders under %r have version %r (expected %d); reading data as-is",
                self.storage_key,
                version,
                self.version,
            )

        data = parsed.get("data") or []
        if not isinstance(data, list):
            logger.error("Stored reminders under %r have no data list", self.storage_key)
            return []

        return self._decode_records(data, source="stored")

    def _decode_records(self, records: Iterable[Any], source: str) -> list[Reminder]:
        reminders = []
        for item in records:
            try:
                reminders.append(Reminder.from_record(normalize_record(item)))
            except ReminderError as e:
                logger.warning("Skipping invalid %s reminder: %s", source, e.message)
        return reminders

    def _migrate_from_legacy(self, legacy: list[Any]) -> list[Reminder]:
        reminders = self._decode_records(legacy, source="legacy")
        logger.info(
            "Migrating %d legacy reminders under %r to version %d",
            len(reminders),
            self.storage_key,
            self.version,
        )
        self.save(reminders)
        return reminders

    # ── Maintenance ───────────────────────────────────────────────────────────

    def clear(self) -> None:
        """Delete the stored value. Safe to call when nothing is stored."""
        if self.store is None:
            return
        try:
            self.store.delete(self.storage_key)
        except (StoreError, OSError) as e:
            logger.error("Failed to clear reminders under %r: %s", self.storage_key, e)

    def is_storage_available(self) -> bool:
        """Probe the store with a throwaway write and delete."""
        if self.store is None:
            return False
        try:
            self.store.set(_PROBE_KEY, "test")
            self.store.delete(_PROBE_KEY)
        except (StoreError, OSError) as e:
            logger.debug("Storage probe failed: %s", e)
            return False
        return True

    def get_storage_info(self) -> StorageInfo:
        raw = self._read_raw()
        return StorageInfo(
            key=self.storage_key,
            size=len(raw) if raw else 0,
            item_count=len(self.load()) if raw else 0,
        )

    # ── Backup ────────────────────────────────────────────────────────────────

    def export(self) -> ExportEnvelope:
        """Snapshot the stored reminders as a backup payload."""
        return ExportEnvelope(
            version=self.version,
            exported_at=clock.utc_now(),
            data=[r.to_record() for r in self.load()],
        )

    def import_data(self, backup: ExportEnvelope | Mapping[str, Any]) -> ImportReport:
        """Append the reminders of a backup to the stored list.

        Raises:
            FormatError: If the backup has no ``data`` list.
        """
        if isinstance(backup, ExportEnvelope):
            data = backup.data
        elif isinstance(backup, Mapping):
            data = backup.get("data")
        else:
            data = None
        if not isinstance(data, list):
            raise FormatError("Invalid backup data format")

        existing = self.load()
        seen_ids = {r.id for r in existing}
        report = ImportReport()
        imported: list[Reminder] = []

        for item in data:
            try:
                reminder = self._decode_backup_item(item)
            except ReminderError as e:
                report.errors.append(f"Failed to import item: {e.message}")
                continue
            if reminder.id in seen_ids:
                reminder = reminder.clone()
            seen_ids.add(reminder.id)
            imported.append(reminder)
            report.imported += 1

        if imported and not self.save([*existing, *imported]):
            logger.warning("Imported %d reminders but could not persist them", len(imported))
        return report

    @staticmethod
    def _decode_backup_item(item: Any) -> Reminder:
        if isinstance(item, Reminder):
            return item
        # Full records keep their identity and completion state
        if isinstance(item, Mapping) and not item.get("id") and item.get("title"):
            return Reminder.from_fields(item)
        return Reminder.from_record(normalize_record(item))
