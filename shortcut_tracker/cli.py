"""
Command-line front end.

Subcommands cover the catalog (list, add-app, add-shortcut), the backup
engine (backup, import, sync, watch, auto-sync, info) and AI extraction
(extract). Every command runs against one ShortcutTrackerApp.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .ai_service import AIServiceError
from .app import ShortcutTrackerApp
from .backup import BackupError
from .catalog import SortOption, filter_shortcuts, sort_shortcuts
from .config import CONFIG
from .importer import Error as ImportFailed
from .keys import is_valid_key_combination, text_to_symbols
from .store import StoreError, ValidationError
from .utils import die, info, warn


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _require_app(app: ShortcutTrackerApp, name: str):
    target = app.catalog.find_app(name)
    if target is None:
        die(f"No application named {name!r}")
    return target


def _read_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    try:
        return Path(source).read_text(encoding="utf-8")
    except OSError as e:
        die(f"Cannot read {source}: {e}")


def _print_shortcut(s) -> None:
    extra = f"  [{s.category}]" if s.category else ""
    desc = f"  - {s.description}" if s.description else ""
    print(f"  {s.keys:<10} {s.title}{extra}{desc}")


# ---------------------------------------------------------------------------
# Catalog commands
# ---------------------------------------------------------------------------
def cmd_list(app: ShortcutTrackerApp, args) -> None:
    apps = [_require_app(app, args.app)] if args.app else app.catalog.apps
    if not apps:
        info("No applications yet. Use `add-app NAME`.")
        return
    for a in apps:
        shortcuts = sort_shortcuts(filter_shortcuts(a.shortcuts, args.search or ""), SortOption(args.sort))
        print(f"{a.name} ({len(a.shortcuts)} shortcuts)")
        for s in shortcuts:
            _print_shortcut(s)


def cmd_add_app(app: ShortcutTrackerApp, args) -> None:
    if app.catalog.find_app(args.name.strip()) is not None:
        die(f"Application {args.name.strip()!r} already exists")
    created = app.catalog.add_app(args.name, icon_path=args.icon)
    info(f"Added application: {created.name}")


def cmd_add_shortcut(app: ShortcutTrackerApp, args) -> None:
    target = _require_app(app, args.app)
    keys = args.keys if any(c in args.keys for c in "⌘⇧⌥⌃") else text_to_symbols(args.keys)
    if not is_valid_key_combination(keys):
        warn(f"{keys!r} does not look like a key combination; storing it anyway")
    shortcut = app.catalog.add_shortcut(
        args.title, keys, description=args.description, category=args.category, app=target
    )
    info(f"Added {shortcut.keys} {shortcut.title!r} to {target.name}")


# ---------------------------------------------------------------------------
# Backup commands
# ---------------------------------------------------------------------------
def cmd_backup(app: ShortcutTrackerApp, args) -> None:
    app.backup.save_backup(app.store.fetch_applications())


def cmd_import(app: ShortcutTrackerApp, args) -> None:
    report = app.backup.import_from_backup(app.store)
    if not report.backup_present:
        info(f"No backup found at {app.backup.backup_file_path}")
        return
    info(
        f"Import done: {report.apps_created} apps created, "
        f"{report.shortcuts_added} shortcuts added, {report.shortcuts_skipped} skipped"
    )


def cmd_sync(app: ShortcutTrackerApp, args) -> None:
    app.backup.perform_sync(app.store)
    info(app.backup.sync_status.description)


def cmd_watch(app: ShortcutTrackerApp, args) -> None:
    if args.auto_sync and not app.settings.auto_sync_enabled:
        app.set_auto_sync(True)
    if not app.backup.is_monitoring:
        app.backup.start_file_monitoring()
    if args.hotkey:
        combo = app.register_hotkey(lambda: info("Hotkey pressed"))
        info(f"Global hotkey: {combo}")
    if args.overlay:
        app.overlay.add_listener(
            lambda items: print("  ".join(f"{i.keys} {i.matched_title or ''}".strip() for i in items))
        )
        app.keystroke_monitor.start()

    info(f"Watching {app.backup.backup_file_path} (Ctrl+C to stop)")
    try:
        while True:
            app.dispatcher.drain(block=True, timeout=CONFIG["watch_poll_interval"])
    except KeyboardInterrupt:
        info("Stopped watching.")


def cmd_auto_sync(app: ShortcutTrackerApp, args) -> None:
    enabled = args.state == "on"
    app.set_auto_sync(enabled)
    info(f"Auto sync {'enabled' if enabled else 'disabled'}")


def cmd_info(app: ShortcutTrackerApp, args) -> None:
    b = app.backup.backup_info()
    last = app.backup.last_sync_time
    print(f"Backup file:   {b.path}")
    print(f"Exists:        {'yes' if b.exists else 'no'}")
    if b.modification_date is not None:
        print(f"Modified:      {b.modification_date.isoformat(timespec='seconds')}")
    if b.file_size is not None:
        print(f"Size:          {b.file_size} bytes")
    print(f"Auto sync:     {'on' if app.settings.auto_sync_enabled else 'off'}")
    print(f"Last sync:     {last.isoformat(timespec='seconds') if last else 'never'}")
    print(f"Applications:  {len(app.store.applications)}")
    print(f"AI provider:   {app.settings.ai_service_type}")
    print(f"Global hotkey: {app.settings.get('hotkey_display')}")


# ---------------------------------------------------------------------------
# AI extraction
# ---------------------------------------------------------------------------
def cmd_extract(app: ShortcutTrackerApp, args) -> None:
    text = _read_text(args.source)
    session = app.new_import_session(args.provider)
    state = session.extract(text)

    if isinstance(state, ImportFailed):
        die(state.message)
    if not session.extracted_shortcuts:
        info("No shortcuts found.")
        return

    print(session.extracted_json())

    if args.confirm:
        if not args.app:
            die("--confirm needs --app NAME")
        target = app.catalog.find_app(args.app.strip()) or app.catalog.add_app(args.app)
        added = session.confirm_import(target)
        info(f"Imported {added} shortcuts into {target.name}")


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shortcut-tracker", description="Track application keyboard shortcuts")
    parser.add_argument("--home", default=None,
                        help=f"Data directory (default: {CONFIG['backup_dir']}).")
    parser.add_argument("--log-level", default=CONFIG["log_level"],
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List applications and shortcuts.")
    p.add_argument("--app", help="Only this application.")
    p.add_argument("--search", help="Filter by title, keys or description.")
    p.add_argument("--sort", choices=[o.value for o in SortOption], default=SortOption.NAME.value)
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("add-app", help="Add an application.")
    p.add_argument("name")
    p.add_argument("--icon", default=None, help="Path to an icon file.")
    p.set_defaults(func=cmd_add_app)

    p = sub.add_parser("add-shortcut", help="Add a shortcut to an application.")
    p.add_argument("app")
    p.add_argument("title")
    p.add_argument("keys", help='Symbols ("⇧⌘S") or text ("Cmd+Shift+S").')
    p.add_argument("--description", default=None)
    p.add_argument("--category", default=None)
    p.set_defaults(func=cmd_add_shortcut)

    sub.add_parser("backup", help="Write the backup file now.").set_defaults(func=cmd_backup)
    sub.add_parser("import", help="Merge the backup file into the store.").set_defaults(func=cmd_import)
    sub.add_parser("sync", help="Import if the backup is newer, then save.").set_defaults(func=cmd_sync)

    p = sub.add_parser("watch", help="Watch the backup file and import external edits.")
    p.add_argument("--auto-sync", action="store_true", help="Enable auto sync first.")
    p.add_argument("--hotkey", action="store_true", help="Register the global hotkey.")
    p.add_argument("--overlay", action="store_true", help="Echo shortcut keystrokes.")
    p.set_defaults(func=cmd_watch)

    p = sub.add_parser("extract", help="Extract shortcuts from text with an AI provider.")
    p.add_argument("source", help="Text file, or - for stdin.")
    p.add_argument("--provider", choices=["gemini", "openai", "mock"], default=None)
    p.add_argument("--app", default=None, help="Target application for --confirm.")
    p.add_argument("--confirm", action="store_true", help="Store the extracted shortcuts.")
    p.set_defaults(func=cmd_extract)

    p = sub.add_parser("auto-sync", help="Turn auto sync on or off.")
    p.add_argument("state", choices=["on", "off"])
    p.set_defaults(func=cmd_auto_sync)

    sub.add_parser("info", help="Show backup and sync status.").set_defaults(func=cmd_info)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one command, return the exit code."""
    args = build_parser().parse_args(argv)
    logging.getLogger("shortcut_tracker").setLevel(args.log_level)

    app = ShortcutTrackerApp(home=Path(args.home) if args.home else None)
    try:
        app.start()
        args.func(app, args)
    except ValidationError as e:
        die(f"Invalid input: {e}")
    except (BackupError, StoreError, AIServiceError) as e:
        die(str(e))
    finally:
        app.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
