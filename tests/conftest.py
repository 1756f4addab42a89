# Shared fixtures: every test gets its own data directory so nothing touches
# ~/.shortcutTracker, plus a stand-in for the `keyboard` module.

import types

import pytest

from shortcut_tracker.config import CONFIG


@pytest.fixture(autouse=True)
def tracker_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setitem(CONFIG, "backup_dir", str(home))
    return home


class FakeKeyboard:
    """Records calls made against the `keyboard` module API."""

    def __init__(self):
        self.hotkeys = {}
        self.hooks = []
        self.removed = []
        self.unhooked = []
        self.waited = False
        self._next = 0

    def add_hotkey(self, combo, callback):
        self._next += 1
        handle = f"hotkey-{self._next}"
        self.hotkeys[handle] = (combo, callback)
        return handle

    def remove_hotkey(self, handle):
        self.removed.append(handle)
        self.hotkeys.pop(handle)

    def hook(self, callback):
        self.hooks.append(callback)
        return callback

    def unhook(self, handle):
        self.unhooked.append(handle)
        self.hooks.remove(handle)

    def wait(self):
        self.waited = True

    def press(self, combo):
        for registered, callback in list(self.hotkeys.values()):
            if registered == combo:
                callback()

    def send(self, name, event_type="down"):
        event = types.SimpleNamespace(name=name, event_type=event_type)
        for callback in list(self.hooks):
            callback(event)


@pytest.fixture
def fake_keyboard(monkeypatch):
    from shortcut_tracker import hotkeys, keystrokes

    kb = FakeKeyboard()
    monkeypatch.setattr(hotkeys, "keyboard", kb)
    monkeypatch.setattr(keystrokes, "keyboard", kb)
    return kb
