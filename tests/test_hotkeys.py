import pytest

from shortcut_tracker.hotkeys import (
    CMD_KEY,
    CONTROL_KEY,
    OPTION_KEY,
    SHIFT_KEY,
    HotkeyBinding,
    HotkeyManager,
    decode_modifiers,
    encode_modifiers,
    key_display,
)
from shortcut_tracker.settings import Settings


def test_modifier_masks():
    assert encode_modifiers(["control", "option"]) == CONTROL_KEY | OPTION_KEY == 6144
    assert decode_modifiers(CMD_KEY | SHIFT_KEY) == {"command", "shift"}
    with pytest.raises(ValueError):
        encode_modifiers(["hyper"])


def test_key_display():
    assert key_display(0x23) == "P"
    assert key_display(0x7B) == "←"
    assert key_display(0x60) == "F5"
    assert key_display(0x99) == "#153"


def test_default_binding():
    binding = HotkeyBinding()
    assert binding.display == "⌃⌥P"
    assert binding.to_combo() == "ctrl+alt+p"
    assert HotkeyBinding.create(binding.modifiers, binding.key_code) == binding


def test_create_builds_display_in_canonical_order():
    binding = HotkeyBinding.create(CMD_KEY | SHIFT_KEY, 0x01)
    assert binding.display == "⇧⌘S"
    assert binding.to_combo() == "shift+command+s"


def test_unknown_key_code_has_no_combo():
    with pytest.raises(ValueError):
        HotkeyBinding(key_code=0x99).to_combo()


def test_binding_persists_in_settings(tmp_path):
    path = tmp_path / "settings.json"
    HotkeyBinding.create(CONTROL_KEY | CMD_KEY, 0x0B).to_settings(Settings(path))
    restored = HotkeyBinding.from_settings(Settings(path))
    assert restored.display == "⌃⌘B"
    assert restored.to_combo() == "ctrl+command+b"


def test_bind_and_press(fake_keyboard):
    pressed = []
    manager = HotkeyManager()
    manager.bind("ctrl+alt+p", lambda: pressed.append(1))
    fake_keyboard.press("ctrl+alt+p")
    assert pressed == [1]
    assert "ctrl+alt+p" in manager.bindings


def test_failing_callback_is_contained(fake_keyboard):
    manager = HotkeyManager()
    manager.bind("ctrl+alt+p", lambda: 1 / 0)
    fake_keyboard.press("ctrl+alt+p")


def test_rebind_replaces_previous_hotkey(fake_keyboard):
    manager = HotkeyManager()
    assert manager.rebind(HotkeyBinding(), lambda: None) == "ctrl+alt+p"
    combo = manager.rebind(HotkeyBinding.create(CMD_KEY | SHIFT_KEY, 0x01), lambda: None)

    assert combo == "shift+command+s"
    assert [c for c, _ in fake_keyboard.hotkeys.values()] == ["shift+command+s"]
    assert len(fake_keyboard.removed) == 1
    assert manager.current.display == "⇧⌘S"


def test_stop_unbinds_everything(fake_keyboard):
    manager = HotkeyManager()
    manager.bind("ctrl+alt+p", lambda: None)
    manager.bind("ctrl+alt+o", lambda: None)
    manager.stop()
    assert fake_keyboard.hotkeys == {}
    assert manager.bindings == {}
    assert manager.current is None


def test_start_blocks_on_keyboard_wait(fake_keyboard):
    HotkeyManager().start()
    assert fake_keyboard.waited
