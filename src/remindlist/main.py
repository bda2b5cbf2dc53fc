"""Command line entry point for remindlist."""

import argparse
import json
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from remindlist import __version__
from remindlist.config import get_settings
from remindlist.errors import ReminderError
from remindlist.models.reminders import Priority, Reminder, ReminderFilter
from remindlist.services.manager import ReminderManager
from remindlist.services.storage import StorageLayer
from remindlist.services.stores import FileStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_INVALID = 2


def setup_logging(level: str = "INFO") -> None:
    """Configure logging with a consistent format and optional file output."""
    settings = get_settings()
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    # stdout carries command output, so console logging goes to stderr
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter(log_format, date_format))
    stream_handler.setLevel(log_level)
    root_logger.addHandler(stream_handler)

    if settings.log_dir:
        log_dir = Path(settings.log_dir).expanduser().resolve()
        log_dir.mkdir(parents=True, exist_ok=True, mode=0o700)

        app_log_path = log_dir / "remindlist.log"
        file_handler = RotatingFileHandler(
            app_log_path,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(logging.Formatter(log_format, date_format))
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)

        if app_log_path.exists():
            os.chmod(app_log_path, 0o600)


def _parse_due(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid due date {value!r} (expected ISO format, e.g. 2026-12-25T15:30)"
        ) from None


def _format_reminder(reminder: Reminder) -> str:
    mark = "x" if reminder.is_completed else " "
    line = f"[{mark}] {reminder.id}  {reminder.title}  ({reminder.priority.value}, {reminder.category})"
    if reminder.due_date is not None:
        line += f"  due {reminder.due_date.isoformat(sep=' ', timespec='minutes')}"
        if not reminder.is_completed:
            line += f" ({reminder.time_until_due_formatted()})"
    return line


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="remindlist", description="Manage a local reminder list.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--key", help="Storage key (default: REMINDLIST_STORAGE_KEY or 'reminders')")
    parser.add_argument("--data-dir", type=Path, help="Data directory (default: REMINDLIST_DATA_DIR)")
    parser.add_argument("--log-level", help="Log level (default: REMINDLIST_LOG_LEVEL)")

    sub = parser.add_subparsers(dest="command", required=True)
    priorities = [p.value for p in Priority]

    p_add = sub.add_parser("add", help="Add a reminder")
    p_add.add_argument("title")
    p_add.add_argument("--description", default="")
    p_add.add_argument("--due", type=_parse_due)
    p_add.add_argument("--priority", choices=priorities, default=Priority.MEDIUM.value)
    p_add.add_argument("--category", default="general")

    p_list = sub.add_parser("list", help="List reminders")
    p_list.add_argument(
        "--filter", choices=[f.value for f in ReminderFilter], default=ReminderFilter.ALL.value
    )
    p_list.add_argument("--days", type=int, help="Window for --filter upcoming")
    p_list.add_argument("--category")
    p_list.add_argument("--priority", choices=priorities)
    p_list.add_argument("--search")
    p_list.add_argument("--sort", help="Sort field: title, due_date, priority, created_at, ...")
    p_list.add_argument("--order", choices=["asc", "desc"], default="asc")

    p_complete = sub.add_parser("complete", help="Mark a reminder complete")
    p_complete.add_argument("id")
    p_complete.add_argument("--undo", action="store_true", help="Mark it incomplete instead")

    p_edit = sub.add_parser("edit", help="Edit a reminder")
    p_edit.add_argument("id")
    p_edit.add_argument("--title")
    p_edit.add_argument("--description")
    p_edit.add_argument("--due", type=_parse_due)
    p_edit.add_argument("--clear-due", action="store_true")
    p_edit.add_argument("--priority", choices=priorities)
    p_edit.add_argument("--category")

    p_remove = sub.add_parser("remove", help="Remove a reminder")
    p_remove.add_argument("id")

    sub.add_parser("purge-completed", help="Remove all completed reminders")
    sub.add_parser("stats", help="Show statistics")
    sub.add_parser("info", help="Show storage information")

    p_export = sub.add_parser("export", help="Export reminders as JSON")
    p_export.add_argument("--output", type=Path, help="Write to a file instead of stdout")
    p_export.add_argument("--backup", action="store_true", help="Use the versioned backup format")

    p_import = sub.add_parser("import", help="Import reminders from a JSON file")
    p_import.add_argument("file", type=Path)

    return parser


def _cmd_add(manager: ReminderManager, args: argparse.Namespace) -> int:
    reminder = manager.add(
        {
            "title": args.title,
            "description": args.description,
            "due_date": args.due,
            "priority": args.priority,
            "category": args.category,
        }
    )
    print(reminder.id)
    return EXIT_OK


def _cmd_list(manager: ReminderManager, args: argparse.Namespace) -> int:
    if args.search:
        reminders = manager.search(args.search)
    else:
        reminders = manager.filter(ReminderFilter(args.filter), days=args.days)
    if args.sort:
        order = {r.id: i for i, r in enumerate(manager.sort_by(args.sort, args.order))}
        reminders = sorted(reminders, key=lambda r: order[r.id])
    if args.category:
        reminders = [r for r in reminders if r.category == args.category]
    if args.priority:
        reminders = [r for r in reminders if r.priority == args.priority]

    for reminder in reminders:
        print(_format_reminder(reminder))
    return EXIT_OK


def _cmd_complete(manager: ReminderManager, args: argparse.Namespace) -> int:
    reminder = manager.set_completed(args.id, not args.undo)
    if reminder is None:
        print(f"No reminder with id {args.id}", file=sys.stderr)
        return EXIT_NOT_FOUND
    print(_format_reminder(reminder))
    return EXIT_OK


def _cmd_edit(manager: ReminderManager, args: argparse.Namespace) -> int:
    changes = {
        name: getattr(args, name)
        for name in ("title", "description", "priority", "category")
        if getattr(args, name) is not None
    }
    if args.clear_due:
        changes["due_date"] = None
    elif args.due is not None:
        changes["due_date"] = args.due

    reminder = manager.update(args.id, changes)
    if reminder is None:
        print(f"No reminder with id {args.id}", file=sys.stderr)
        return EXIT_NOT_FOUND
    print(_format_reminder(reminder))
    return EXIT_OK


def _cmd_remove(manager: ReminderManager, args: argparse.Namespace) -> int:
    if manager.remove(args.id) is None:
        print(f"No reminder with id {args.id}", file=sys.stderr)
        return EXIT_NOT_FOUND
    return EXIT_OK


def _cmd_purge(manager: ReminderManager, args: argparse.Namespace) -> int:
    print(manager.remove_completed())
    return EXIT_OK


def _cmd_stats(manager: ReminderManager, args: argparse.Namespace) -> int:
    print(json.dumps(manager.get_statistics().model_dump(by_alias=True), indent=2))
    return EXIT_OK


def _cmd_info(manager: ReminderManager, args: argparse.Namespace) -> int:
    print(json.dumps(manager.storage.get_storage_info().model_dump(by_alias=True), indent=2))
    return EXIT_OK


def _cmd_export(manager: ReminderManager, args: argparse.Namespace) -> int:
    if args.backup:
        payload = json.dumps(manager.storage.export().to_json_dict(), indent=2)
    else:
        payload = manager.export()

    if args.output:
        args.output.write_text(payload + "\n", encoding="utf-8")
        logger.info("Exported reminders to %s", args.output)
    else:
        print(payload)
    return EXIT_OK


def _cmd_import(manager: ReminderManager, args: argparse.Namespace) -> int:
    text = args.file.read_text(encoding="utf-8")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None

    # Backups go through the storage layer so per-item errors can be reported
    if isinstance(parsed, dict) and "exportedAt" in parsed:
        report = manager.storage.import_data(parsed)
        manager.load()
        for error in report.errors:
            print(error, file=sys.stderr)
        print(report.imported)
        return EXIT_OK

    print(manager.import_json(text))
    return EXIT_OK


_COMMANDS = {
    "add": _cmd_add,
    "list": _cmd_list,
    "complete": _cmd_complete,
    "edit": _cmd_edit,
    "remove": _cmd_remove,
    "purge-completed": _cmd_purge,
    "stats": _cmd_stats,
    "info": _cmd_info,
    "export": _cmd_export,
    "import": _cmd_import,
}


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run one command and return its exit code."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level)

    store = FileStore(args.data_dir or settings.data_dir, max_bytes=settings.store_max_bytes)
    manager = ReminderManager(storage=StorageLayer(args.key or settings.storage_key, store=store))

    try:
        return _COMMANDS[args.command](manager, args)
    except ReminderError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return EXIT_INVALID


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
