import io
import json

import pytest

from shortcut_tracker.app import ShortcutTrackerApp
from shortcut_tracker.cli import main
from shortcut_tracker.config import CONFIG
from shortcut_tracker.events import OPEN_AI_IMPORT, OPEN_FLOATING_PANEL
from shortcut_tracker.exporter import export_all
from shortcut_tracker.importer import AIImportSession
from shortcut_tracker.models import Application, Shortcut


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setitem(CONFIG, "watch_poll_interval", 60)
    return tmp_path / "data"


def run(home, *argv):
    return main(["--home", str(home), *argv])


def _write_backup(home, name, *pairs):
    app = Application(name=name)
    for title, keys in pairs:
        app.add_shortcut(Shortcut(title=title, keys=keys))
    home.mkdir(parents=True, exist_ok=True)
    (home / "shortcuts_backup.json").write_bytes(export_all([app]))


# -----------------------------
# Composition root
# -----------------------------
def test_startup_import_when_auto_sync_is_on(home):
    _write_backup(home, "Xcode", ("Build", "⌘B"))
    (home / "settings.json").write_text(json.dumps({"auto_sync_enabled": True}), encoding="utf-8")

    app = ShortcutTrackerApp(home)
    app.start()
    try:
        assert [a.name for a in app.store.applications] == ["Xcode"]
        assert app.overlay.find_matching_title("⌘B") == "Build"
        assert app.backup.is_monitoring
    finally:
        app.shutdown()
    assert not app.backup.is_monitoring


def test_no_startup_import_when_auto_sync_is_off(home):
    _write_backup(home, "Xcode", ("Build", "⌘B"))
    app = ShortcutTrackerApp(home)
    app.start()
    try:
        assert app.store.applications == []
        assert not app.backup.is_monitoring
    finally:
        app.shutdown()


def test_external_edit_is_imported_on_drain(home):
    app = ShortcutTrackerApp(home)
    app.start()
    try:
        app.set_auto_sync(True)
        xcode = app.catalog.add_app("Xcode")
        app.catalog.add_shortcut("Build", "⌘B", app=xcode)
        assert app.backup.check_for_changes() is None

        _write_backup(home, "Xcode", ("Build", "⌘B"), ("Run", "⌘R"))
        assert app.backup.check_for_changes() is not None
        assert app.dispatcher.drain() == 1

        assert sorted(s.keys for s in xcode.shortcuts) == ["⌘B", "⌘R"]
        assert app.overlay.find_matching_title("⌘R") == "Run"
    finally:
        app.shutdown()


def test_default_hotkey_opens_floating_panel(home, fake_keyboard):
    app = ShortcutTrackerApp(home)
    app.start()
    opened = []
    app.bus.subscribe(OPEN_FLOATING_PANEL, opened.append)
    try:
        assert app.register_hotkey() == "ctrl+alt+p"
        fake_keyboard.press("ctrl+alt+p")
        assert opened == []
        app.dispatcher.drain()
        assert opened == [None]
    finally:
        app.shutdown()
    assert fake_keyboard.hotkeys == {}


def test_open_ai_import_announces_session(home):
    app = ShortcutTrackerApp(home)
    sessions = []
    app.bus.subscribe(OPEN_AI_IMPORT, sessions.append)
    session = app.open_ai_import("mock")
    assert isinstance(session, AIImportSession)
    assert sessions == [session]
    assert session.service.name == "mock"


# -----------------------------
# CLI
# -----------------------------
def test_add_and_list(home, capsys):
    assert run(home, "add-app", "Xcode") == 0
    assert run(home, "add-shortcut", "Xcode", "Build", "Cmd+B", "--category", "Tools") == 0
    assert run(home, "add-shortcut", "Xcode", "Run", "⌘R") == 0
    capsys.readouterr()

    run(home, "list")
    out = capsys.readouterr().out
    assert "Xcode (2 shortcuts)" in out
    assert "⌘B" in out and "Build  [Tools]" in out
    assert out.index("Build") < out.index("Run")

    run(home, "list", "--search", "run")
    out = capsys.readouterr().out
    assert "Run" in out and "Build" not in out


def test_duplicate_app_and_unknown_app_exit(home):
    run(home, "add-app", "Xcode")
    with pytest.raises(SystemExit):
        run(home, "add-app", "Xcode")
    with pytest.raises(SystemExit):
        run(home, "list", "--app", "Safari")
    with pytest.raises(SystemExit):
        run(home, "add-app", "   ")


def test_backup_and_info(home, capsys):
    run(home, "add-app", "Safari")
    run(home, "backup")
    doc = json.loads((home / "shortcuts_backup.json").read_text(encoding="utf-8"))
    assert [a["name"] for a in doc["apps"]] == ["Safari"]

    capsys.readouterr()
    run(home, "info")
    out = capsys.readouterr().out
    assert "Exists:        yes" in out
    assert "Auto sync:     off" in out
    assert "Applications:  1" in out


def test_import_merges_backup(home):
    run(home, "add-app", "Xcode")
    _write_backup(home, "Xcode", ("Build", "⌘B"))
    run(home, "import")
    run(home, "import")

    app = ShortcutTrackerApp(home)
    app.store.load()
    assert [(s.title, s.keys) for s in app.store.applications[0].shortcuts] == [("Build", "⌘B")]


def test_auto_sync_on_writes_backup_and_persists(home):
    run(home, "add-app", "Xcode")
    run(home, "auto-sync", "on")
    assert json.loads((home / "settings.json").read_text(encoding="utf-8"))["auto_sync_enabled"] is True
    assert (home / "shortcuts_backup.json").stat().st_size > 0

    run(home, "add-app", "Safari")
    doc = json.loads((home / "shortcuts_backup.json").read_text(encoding="utf-8"))
    assert sorted(a["name"] for a in doc["apps"]) == ["Safari", "Xcode"]


def test_extract_with_mock_provider(home, tmp_path, capsys):
    source = tmp_path / "manual.txt"
    source.write_text("Save: Cmd+S\nCopy - ⌘C\n", encoding="utf-8")

    run(home, "extract", str(source), "--provider", "mock", "--app", "TextEdit", "--confirm")
    printed = json.loads(capsys.readouterr().out)
    assert [item["keys"] for item in printed] == ["⌘S", "⌘C"]

    run(home, "list", "--app", "TextEdit")
    assert "TextEdit (2 shortcuts)" in capsys.readouterr().out
    history = json.loads((home / "extraction_history.json").read_text(encoding="utf-8"))
    assert history[-1]["provider"] == "mock"
    assert history[-1]["count"] == 2


def test_extract_from_stdin_without_confirm(home, monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("Undo: Cmd+Z"))
    run(home, "extract", "-", "--provider", "mock")
    assert json.loads(capsys.readouterr().out)[0]["title"] == "Undo"

    run(home, "list")
    assert "TextEdit" not in capsys.readouterr().out


def test_extract_failure_exits(home, tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    source = tmp_path / "manual.txt"
    source.write_text("Save: Cmd+S", encoding="utf-8")
    with pytest.raises(SystemExit):
        run(home, "extract", str(source), "--provider", "gemini")
