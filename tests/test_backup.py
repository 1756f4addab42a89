import json
import os
from datetime import datetime, timezone

import pytest

from shortcut_tracker import utils
from shortcut_tracker.backup import (
    BackupDecodeError,
    Error,
    FileAccessError,
    Idle,
    LocalBackupService,
    Success,
    Syncing,
)
from shortcut_tracker.exporter import export_all
from shortcut_tracker.models import Application, Shortcut
from shortcut_tracker.settings import Settings
from shortcut_tracker.store import ShortcutStore


@pytest.fixture
def service(tmp_path):
    svc = LocalBackupService(tmp_path / "backup", settings=Settings(in_memory=True), poll_interval=60)
    yield svc
    svc.close()


def _record_statuses(svc):
    seen = []
    svc.status_listeners.append(seen.append)
    return seen


def _app(name, *pairs):
    app = Application(name=name)
    for title, keys in pairs:
        app.add_shortcut(Shortcut(title=title, keys=keys))
    return app


def _names_and_keys(store):
    return {a.name: sorted((s.title, s.keys) for s in a.shortcuts) for a in store.applications}


def test_backup_directory_is_created(tmp_path):
    svc = LocalBackupService(tmp_path / "nested" / "dir")
    assert svc.backup_dir.is_dir()
    assert svc.backup_file_path.name == "shortcuts_backup.json"


def test_default_directory_comes_from_config(tracker_home):
    svc = LocalBackupService()
    assert svc.backup_dir == tracker_home.resolve()


def test_save_transitions_and_writes_file(service):
    seen = _record_statuses(service)
    assert isinstance(service.sync_status, Idle)

    service.save_backup([_app("Xcode", ("Build", "⌘B"))])

    assert seen == [Syncing(), Success()]
    assert service.last_sync_time is not None
    raw = json.loads(service.backup_file_path.read_text(encoding="utf-8"))
    assert raw["apps"][0]["name"] == "Xcode"


def test_failed_write_keeps_previous_backup(service, monkeypatch):
    service.save_backup([_app("Xcode", ("Build", "⌘B"))])
    before = service.backup_file_path.read_bytes()
    seen = _record_statuses(service)

    def refuse(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(utils.os, "replace", refuse)
    with pytest.raises(FileAccessError):
        service.save_backup([_app("Safari", ("Reload", "⌘R"))])

    assert service.backup_file_path.read_bytes() == before
    assert seen[0] == Syncing()
    assert isinstance(seen[-1], Error)
    assert seen[-1].message
    assert "disk full" in seen[-1].description
    # no stray temp files next to the backup
    assert os.listdir(service.backup_dir) == [service.backup_file_path.name]


def test_import_without_backup_file_leaves_store_untouched(service):
    store = ShortcutStore(in_memory=True)
    store.add_app(Application(name="Xcode"))
    seen = _record_statuses(service)

    report = service.import_from_backup(store)

    assert not report.backup_present
    assert not report.changed
    assert [a.name for a in store.applications] == ["Xcode"]
    assert seen == [Syncing(), Idle()]


def test_empty_placeholder_counts_as_absent(service):
    service.backup_file_path.touch()
    assert service.load_backup() == b""
    report = service.import_from_backup(ShortcutStore(in_memory=True))
    assert not report.backup_present


def test_load_backup_returns_none_when_missing(service):
    assert service.load_backup() is None


def test_import_corrupt_backup_reports_error(service):
    service.backup_file_path.write_text("{broken", encoding="utf-8")
    seen = _record_statuses(service)
    with pytest.raises(BackupDecodeError):
        service.import_from_backup(ShortcutStore(in_memory=True))
    assert isinstance(seen[-1], Error)


def test_import_is_idempotent(service):
    service.backup_file_path.write_bytes(export_all([_app("Xcode", ("Build", "⌘B"), ("Run", "⌘R"))]))
    store = ShortcutStore(in_memory=True)

    service.import_from_backup(store)
    once = _names_and_keys(store)
    service.import_from_backup(store)

    assert _names_and_keys(store) == once == {"Xcode": [("Build", "⌘B"), ("Run", "⌘R")]}
    assert isinstance(service.sync_status, Success)


def test_import_does_not_overwrite_matching_keys(service):
    store = ShortcutStore(in_memory=True)
    app = store.add_app(Application(name="TextEdit"))
    store.add_shortcut(Shortcut(title="Save", keys="⌘S"), app)
    service.backup_file_path.write_bytes(export_all([_app("TextEdit", ("SaveAs", "⌘S"))]))

    service.import_from_backup(store)

    assert _names_and_keys(store) == {"TextEdit": [("Save", "⌘S")]}


def test_set_auto_sync_creates_placeholder_and_monitors(service):
    assert not service.backup_file_path.exists()
    service.set_auto_sync(True)
    assert service.settings.auto_sync_enabled
    assert service.is_monitoring
    assert service.backup_file_path.exists()

    service.set_auto_sync(False)
    assert not service.settings.auto_sync_enabled
    assert not service.is_monitoring


def test_restarting_monitoring_replaces_the_watch(service):
    service.start_file_monitoring()
    first = service._watcher
    service.start_file_monitoring()
    assert service._watcher is not first
    assert not first.running


def test_own_writes_are_not_reported_as_external(service):
    fired = []
    service.on_external_changes_detected = lambda: fired.append(1)
    service.start_file_monitoring()

    service.save_backup([_app("Xcode", ("Build", "⌘B"))])

    assert service.check_for_changes() is None
    assert fired == []


def test_external_change_fires_callback_once(service):
    fired = []
    service.on_external_changes_detected = lambda: fired.append(1)
    service.start_file_monitoring()

    service.backup_file_path.write_bytes(export_all([_app("Xcode", ("Build", "⌘B"))]))

    assert service.check_for_changes() is not None
    assert service.check_for_changes() is None
    assert fired == [1]


def test_attached_store_mutations_are_backed_up_when_auto_sync_on(service):
    store = ShortcutStore(in_memory=True)
    service.attach(store)

    store.add_app(Application(name="Safari"))
    assert not service.backup_file_path.exists()

    service.set_auto_sync(True)
    store.add_app(Application(name="Xcode"))
    raw = json.loads(service.backup_file_path.read_text(encoding="utf-8"))
    assert sorted(a["name"] for a in raw["apps"]) == ["Safari", "Xcode"]


def test_perform_sync_imports_newer_backup_first(service):
    store = ShortcutStore(in_memory=True)
    store.add_app(Application(name="Safari"))
    service.backup_file_path.write_bytes(export_all([_app("Xcode", ("Build", "⌘B"))]))
    service.last_sync_time = datetime(2000, 1, 1, tzinfo=timezone.utc)

    service.perform_sync(store)

    assert _names_and_keys(store) == {"Safari": [], "Xcode": [("Build", "⌘B")]}
    raw = json.loads(service.backup_file_path.read_text(encoding="utf-8"))
    assert sorted(a["name"] for a in raw["apps"]) == ["Safari", "Xcode"]


def test_perform_sync_without_previous_sync_only_saves(service):
    store = ShortcutStore(in_memory=True)
    store.add_app(Application(name="Safari"))
    service.backup_file_path.write_bytes(export_all([_app("Xcode", ("Build", "⌘B"))]))

    service.perform_sync(store)

    assert [a.name for a in store.applications] == ["Safari"]


def test_backup_info(service):
    info = service.backup_info()
    assert not info.exists
    assert info.modification_date is None and info.file_size is None

    service.save_backup([_app("Xcode")])
    info = service.backup_info()
    assert info.exists
    assert info.path == str(service.backup_file_path)
    assert info.file_size == service.backup_file_path.stat().st_size
    assert info.modification_date == service.backup_modification_date


def test_status_descriptions():
    assert Idle().description == "Waiting to sync"
    assert Syncing().description == "Syncing..."
    assert Success().description == "Sync succeeded"
    assert Error("nope").description == "Sync failed: nope"


def test_end_to_end_external_edit_is_merged(service):
    store = ShortcutStore(in_memory=True)
    service.set_auto_sync(True)
    service.attach(store)

    xcode = store.add_app(Application(name="Xcode"))
    store.add_shortcut(Shortcut(title="Build", keys="⌘B"), xcode)
    assert service.check_for_changes() is None

    # another process appends a shortcut to the backup
    raw = json.loads(service.backup_file_path.read_text(encoding="utf-8"))
    raw["apps"][0]["shortcuts"].append({"title": "Run", "keys": "⌘R"})
    service.backup_file_path.write_text(json.dumps(raw, ensure_ascii=False), encoding="utf-8")

    assert service.check_for_changes() is not None

    assert _names_and_keys(store) == {"Xcode": [("Build", "⌘B"), ("Run", "⌘R")]}
    assert len(store.applications) == 1
    # the merged state was written back
    raw = json.loads(service.backup_file_path.read_text(encoding="utf-8"))
    assert sorted(s["keys"] for s in raw["apps"][0]["shortcuts"]) == ["⌘B", "⌘R"]
    assert service.check_for_changes() is None
