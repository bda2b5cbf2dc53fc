"""Tests for the versioned storage layer."""

import json
from unittest.mock import patch

import pytest

from remindlist.errors import FormatError, ValidationError
from remindlist.models.reminders import Priority, Reminder
from remindlist.models.storage import ExportEnvelope
from remindlist.services.storage import StorageLayer, normalize_record
from remindlist.services.stores import MemoryStore, QuotaExceededError, StoreError
from tests.conftest import FUTURE_DATE, NOW

KEY = "test-reminders"


def _stored(store: MemoryStore) -> dict:
    return json.loads(store.get(KEY))


class TestSaveLoad:
    """Tests for save() and load()."""

    def test_save_and_load(self, storage: StorageLayer) -> None:
        """Saved reminders load back field for field."""
        reminder = Reminder(title="Test Task", description="Test description", due_date=FUTURE_DATE)
        reminder.mark_complete()

        assert storage.save([reminder]) is True
        loaded = storage.load()

        assert loaded == [reminder]

    def test_versioned_format(self, storage: StorageLayer, store: MemoryStore) -> None:
        """Data is written inside the version 1 envelope."""
        reminder = Reminder(title="Test Task")
        storage.save([reminder])

        stored = _stored(store)
        assert stored["version"] == 1
        assert stored["data"] == [reminder.to_record()]

    def test_empty_store(self, storage: StorageLayer) -> None:
        assert storage.load() == []

    def test_save_empty_list(self, storage: StorageLayer, store: MemoryStore) -> None:
        assert storage.save([]) is True
        assert _stored(store) == {"version": 1, "data": []}

    def test_plain_records_accepted(self, storage: StorageLayer) -> None:
        """Mappings with a title are saved as reminders."""
        assert storage.save([{"title": "Plain", "priority": "high"}]) is True
        loaded = storage.load()
        assert loaded[0].title == "Plain"
        assert loaded[0].priority == Priority.HIGH

    @pytest.mark.parametrize("item", [{"title": "", "description": "Invalid"}, None, "text", 42])
    def test_invalid_element_rejected(self, storage: StorageLayer, store: MemoryStore, item) -> None:
        """An invalid element raises and nothing is written."""
        storage.save([Reminder(title="Existing")])
        before = store.get(KEY)

        with pytest.raises(ValidationError, match="Invalid reminder data"):
            storage.save([Reminder(title="Valid"), item])

        assert store.get(KEY) == before

    def test_quota_exceeded(self) -> None:
        """A full store makes save() return False instead of raising."""
        storage = StorageLayer(KEY, store=MemoryStore(max_bytes=200))
        reminders = [Reminder(title=f"Task {i}") for i in range(10)]
        assert storage.save(reminders) is False

    def test_store_error_on_write(self, storage: StorageLayer, store: MemoryStore) -> None:
        """Errors raised by the store are reported by value."""
        original_set = store.set

        def failing_set(key: str, value: str) -> None:
            if key == KEY:
                raise QuotaExceededError("Storage quota exceeded")
            original_set(key, value)

        with patch.object(store, "set", side_effect=failing_set):
            assert storage.save([Reminder(title="Test Task")]) is False

    def test_missing_store(self) -> None:
        """Without a store, load() is empty and save() fails."""
        storage = StorageLayer(KEY, store=None)
        assert storage.load() == []
        assert storage.save([Reminder(title="Test")]) is False
        assert storage.is_storage_available() is False

    def test_read_error(self, storage: StorageLayer, store: MemoryStore) -> None:
        with patch.object(store, "get", side_effect=StoreError("unreadable")):
            assert storage.load() == []


class TestCorruption:
    """Tests for corrupted and partially invalid stored data."""

    def test_invalid_json(self, storage: StorageLayer, store: MemoryStore) -> None:
        store.set(KEY, "invalid json")
        assert storage.load() == []

    @pytest.mark.parametrize("payload", ["9" * 5000, "[" * 100000], ids=["huge-int", "deep-nesting"])
    def test_undecodable_json(self, storage: StorageLayer, store: MemoryStore, payload: str) -> None:
        """Values the JSON decoder refuses are treated as corruption."""
        store.set(KEY, payload)
        assert storage.load() == []
        assert storage.get_storage_info().item_count == 0

    @pytest.mark.parametrize("payload", ["42", '"text"', "null", '{"version": 1, "data": "x"}'])
    def test_unexpected_shapes(self, storage: StorageLayer, store: MemoryStore, payload: str) -> None:
        store.set(KEY, payload)
        assert storage.load() == []

    def test_invalid_items_skipped(self, storage: StorageLayer, store: MemoryStore) -> None:
        """Bad records are skipped individually."""
        store.set(KEY, json.dumps({
            "version": 1,
            "data": [
                {"title": "Valid Task", "description": "Valid description"},
                {"description": "Missing title"},
                "not a record",
                {"title": "Bad date", "dueDate": "someday"},
                {"title": "Another valid task"},
            ],
        }))

        loaded = storage.load()

        assert [r.title for r in loaded] == ["Valid Task", "Another valid task"]

    def test_future_version_read(self, storage: StorageLayer, store: MemoryStore) -> None:
        """Unknown versions are read optimistically."""
        store.set(KEY, json.dumps({
            "version": 2,
            "data": [{"title": "Future Task"}],
            "newFeature": "unknown feature",
        }))

        loaded = storage.load()

        assert len(loaded) == 1
        assert loaded[0].title == "Future Task"


class TestMigration:
    """Tests for legacy data migration and record normalization."""

    def test_legacy_list_migrated(self, storage: StorageLayer, store: MemoryStore) -> None:
        """A bare list is loaded and rewritten inside the envelope."""
        legacy = [
            {
                "id": "legacy_1",
                "title": "Legacy Task",
                "description": "Old format task",
                "dueDate": None,
                "priority": "medium",
                "category": "general",
                "isCompleted": False,
                "createdAt": "2024-01-01T10:00:00",
                "completedAt": None,
            },
            {
                "id": "legacy_2",
                "title": "Finished",
                "description": "",
                "dueDate": "2026-12-25T15:30:00",
                "priority": "high",
                "category": "work",
                "isCompleted": True,
                "createdAt": "2024-01-01T10:00:00",
                "completedAt": "2024-01-02T08:15:00",
            },
        ]
        store.set(KEY, json.dumps(legacy))

        loaded = storage.load()

        assert [r.to_record() for r in loaded] == legacy
        stored = _stored(store)
        assert stored["version"] == 1
        assert stored["data"] == legacy

    def test_missing_fields_defaulted(self, storage: StorageLayer, store: MemoryStore) -> None:
        store.set(KEY, json.dumps({
            "version": 1,
            "data": [{
                "id": "old_1",
                "title": "Old Task",
                "priority": "normal",
                "isCompleted": False,
                "createdAt": "2024-01-01T10:00:00",
            }],
        }))

        loaded = storage.load()

        assert loaded[0].id == "old_1"
        assert loaded[0].description == ""
        assert loaded[0].priority == Priority.MEDIUM
        assert loaded[0].category == "general"
        assert loaded[0].due_date is None

    def test_normalize_defaults(self) -> None:
        record = normalize_record({"title": "Bare"})
        assert record["id"]
        assert record["description"] == ""
        assert record["category"] == "general"
        assert record["createdAt"] == NOW.isoformat()
        assert record["dueDate"] is None
        assert record["completedAt"] is None
        assert record["isCompleted"] is False

    @pytest.mark.parametrize(
        ("priority", "expected"),
        [("normal", "medium"), ("urgent", "medium"), (None, "medium"), (3, "medium"), ("low", "low")],
    )
    def test_normalize_priority(self, priority, expected: str) -> None:
        assert normalize_record({"title": "t", "priority": priority})["priority"] == expected

    def test_normalize_rejects_non_mapping(self) -> None:
        with pytest.raises(ValidationError):
            normalize_record(["not", "a", "record"])

    def test_utc_created_at_made_local(self, storage: StorageLayer, store: MemoryStore) -> None:
        """Timestamps written with a Z suffix load as naive local time."""
        store.set(KEY, json.dumps([{"title": "Old", "createdAt": "2024-01-01T10:00:00.000Z"}]))
        loaded = storage.load()
        assert loaded[0].created_at.tzinfo is None


class TestSaveWithValidation:
    """Tests for save_with_validation()."""

    def test_mixed_batch(self, storage: StorageLayer) -> None:
        """Valid items are saved and the invalid one reported."""
        report = storage.save_with_validation([
            Reminder(title="Valid Task 1"),
            {"title": "", "description": "Invalid - empty title"},
            {"title": "Valid Task 2", "description": "Valid data"},
        ])

        assert report.saved == 2
        assert report.skipped == 1
        assert len(report.errors) == 1
        assert [r.title for r in storage.load()] == ["Valid Task 1", "Valid Task 2"]

    def test_invalid_priority_skipped(self, storage: StorageLayer) -> None:
        report = storage.save_with_validation([{"title": "Task", "priority": "urgent"}, None])
        assert report.saved == 0
        assert report.skipped == 2
        assert "Invalid priority level" in report.errors[0]


class TestUtilities:
    """Tests for clear(), availability, info, export and import."""

    def test_clear(self, storage: StorageLayer, store: MemoryStore) -> None:
        storage.save([Reminder(title="Test Task")])
        storage.clear()
        assert store.get(KEY) is None
        assert storage.load() == []
        storage.clear()

    def test_is_storage_available(self, storage: StorageLayer, store: MemoryStore) -> None:
        assert storage.is_storage_available() is True
        assert store.keys() == []

    def test_probe_failure(self, storage: StorageLayer, store: MemoryStore) -> None:
        with patch.object(store, "set", side_effect=StoreError("read-only")):
            assert storage.is_storage_available() is False

    def test_storage_info(self, storage: StorageLayer, store: MemoryStore) -> None:
        storage.save([Reminder(title="Test Task")])
        info = storage.get_storage_info()
        assert info.key == KEY
        assert info.size == len(store.get(KEY))
        assert info.item_count == 1

    def test_storage_info_empty(self, storage: StorageLayer) -> None:
        info = storage.get_storage_info()
        assert (info.size, info.item_count) == (0, 0)

    def test_export(self, storage: StorageLayer) -> None:
        storage.save([Reminder(title="Task 1"), Reminder(title="Task 2")])

        exported = storage.export().to_json_dict()

        assert exported["version"] == 1
        assert exported["exportedAt"].endswith("Z")
        assert [r["title"] for r in exported["data"]] == ["Task 1", "Task 2"]

    def test_import_plain_items(self, storage: StorageLayer) -> None:
        """Plain items are created as new reminders and appended."""
        storage.save([Reminder(title="Existing")])
        backup = {
            "version": 1,
            "exportedAt": "2024-01-01T10:00:00",
            "data": [
                {"title": "Imported Task 1", "description": "From backup"},
                {"title": "Imported Task 2", "dueDate": "2026-12-25T15:30:00"},
            ],
        }

        report = storage.import_data(backup)

        assert report.imported == 2
        assert report.errors == []
        loaded = storage.load()
        assert [r.title for r in loaded] == ["Existing", "Imported Task 1", "Imported Task 2"]
        assert loaded[2].due_date == FUTURE_DATE

    def test_import_full_records(self, storage: StorageLayer) -> None:
        """Records with ids keep their completion state."""
        done = Reminder(title="Done")
        done.mark_complete()

        storage.import_data({"data": [done.to_record()]})

        loaded = storage.load()
        assert loaded[0].id == done.id
        assert loaded[0].is_completed is True

    def test_import_export_envelope(self, storage: StorageLayer) -> None:
        source = StorageLayer("source", store=MemoryStore())
        source.save([Reminder(title="Backed up")])

        report = storage.import_data(source.export())

        assert report.imported == 1
        assert storage.load()[0].title == "Backed up"

    def test_import_colliding_ids_reissued(self, storage: StorageLayer) -> None:
        """Importing the same record twice keeps ids unique."""
        reminder = Reminder(title="Twice")
        storage.save([reminder])

        storage.import_data({"data": [reminder.to_record()]})

        ids = [r.id for r in storage.load()]
        assert len(ids) == 2
        assert len(set(ids)) == 2

    def test_import_errors_collected(self, storage: StorageLayer) -> None:
        report = storage.import_data({"data": [{"title": "Good"}, {"description": "no title"}, 7]})
        assert report.imported == 1
        assert len(report.errors) == 2
        assert all(e.startswith("Failed to import item:") for e in report.errors)

    @pytest.mark.parametrize("backup", [{}, {"data": "x"}, {"data": None}, None, []])
    def test_import_invalid_format(self, storage: StorageLayer, backup) -> None:
        with pytest.raises(FormatError, match="Invalid backup data format"):
            storage.import_data(backup)

    def test_import_accepts_reminders(self, storage: StorageLayer) -> None:
        report = storage.import_data(ExportEnvelope(exported_at=NOW, data=[]))
        assert report.imported == 0
