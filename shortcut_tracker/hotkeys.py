"""
Global hotkey for the app selector.

The binding is persisted as a Carbon-style modifier mask plus a macOS virtual
key code (what the settings file stores) and translated into a `keyboard`
library combo string for registration. The manager itself is a thin wrapper
around the `keyboard` library for system-wide hotkeys.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, Optional

import keyboard

from .config import CONFIG
from .keys import KeySymbol, build_key_string

logger = logging.getLogger(__name__)

# Carbon modifier masks
CMD_KEY = 256
SHIFT_KEY = 512
OPTION_KEY = 2048
CONTROL_KEY = 4096

_MASKS = {
    "command": CMD_KEY,
    "shift": SHIFT_KEY,
    "option": OPTION_KEY,
    "control": CONTROL_KEY,
}

# keyboard-library modifier names, in ⌃⌥⇧⌘ order
_COMBO_MODIFIERS = (
    ("control", "ctrl"),
    ("option", "alt"),
    ("shift", "shift"),
    ("command", "command"),
)

# macOS virtual key code -> keyboard-library key name
KEY_CODE_NAMES: Dict[int, str] = {
    0x00: "a", 0x01: "s", 0x02: "d", 0x03: "f", 0x04: "h", 0x05: "g",
    0x06: "z", 0x07: "x", 0x08: "c", 0x09: "v", 0x0B: "b", 0x0C: "q",
    0x0D: "w", 0x0E: "e", 0x0F: "r", 0x10: "y", 0x11: "t", 0x12: "1",
    0x13: "2", 0x14: "3", 0x15: "4", 0x16: "6", 0x17: "5", 0x18: "=",
    0x19: "9", 0x1A: "7", 0x1B: "-", 0x1C: "8", 0x1D: "0", 0x1E: "]",
    0x1F: "o", 0x20: "u", 0x21: "[", 0x22: "i", 0x23: "p", 0x24: "enter",
    0x25: "l", 0x26: "j", 0x27: "'", 0x28: "k", 0x29: ";", 0x2A: "\\",
    0x2B: ",", 0x2C: "/", 0x2D: "n", 0x2E: "m", 0x2F: ".", 0x30: "tab",
    0x31: "space", 0x32: "`", 0x33: "backspace", 0x35: "esc",
    0x60: "f5", 0x61: "f6", 0x62: "f7", 0x63: "f3", 0x64: "f8", 0x65: "f9",
    0x67: "f11", 0x6D: "f10", 0x6F: "f12", 0x75: "delete", 0x76: "f4",
    0x78: "f2", 0x7A: "f1", 0x7B: "left", 0x7C: "right", 0x7D: "down",
    0x7E: "up",
}

_DISPLAY_KEYS = {
    "enter": KeySymbol.RETURN.value,
    "tab": KeySymbol.TAB.value,
    "space": "Space",
    "backspace": KeySymbol.DELETE.value,
    "esc": KeySymbol.ESCAPE.value,
    "delete": KeySymbol.FORWARD_DELETE.value,
    "left": KeySymbol.ARROW_LEFT.value,
    "right": KeySymbol.ARROW_RIGHT.value,
    "down": KeySymbol.ARROW_DOWN.value,
    "up": KeySymbol.ARROW_UP.value,
}


def encode_modifiers(flags: Iterable[str]) -> int:
    """{"control", "option"} -> 6144"""
    mask = 0
    for flag in flags:
        try:
            mask |= _MASKS[flag]
        except KeyError:
            raise ValueError(f"Unknown modifier: {flag!r}")
    return mask


def decode_modifiers(mask: int) -> FrozenSet[str]:
    return frozenset(name for name, bit in _MASKS.items() if mask & bit)


def key_display(key_code: int) -> str:
    name = KEY_CODE_NAMES.get(key_code)
    if name is None:
        return f"#{key_code}"
    return _DISPLAY_KEYS.get(name, name.upper())


@dataclass(frozen=True)
class HotkeyBinding:
    """Persisted global hotkey: Carbon modifier mask, virtual key code, label."""
    modifiers: int = CONFIG["hotkey_default_modifiers"]
    key_code: int = CONFIG["hotkey_default_key_code"]
    display: str = CONFIG["hotkey_default_display"]

    @classmethod
    def create(cls, modifiers: int, key_code: int) -> "HotkeyBinding":
        """Build a binding with its display label derived from the keys."""
        flags = decode_modifiers(modifiers)
        display = build_key_string(
            control="control" in flags,
            option="option" in flags,
            shift="shift" in flags,
            command="command" in flags,
            main_key=key_display(key_code),
        )
        return cls(modifiers=modifiers, key_code=key_code, display=display)

    @classmethod
    def from_settings(cls, settings) -> "HotkeyBinding":
        return cls(
            modifiers=int(settings.get("hotkey_modifiers", CONFIG["hotkey_default_modifiers"])),
            key_code=int(settings.get("hotkey_key_code", CONFIG["hotkey_default_key_code"])),
            display=settings.get("hotkey_display") or CONFIG["hotkey_default_display"],
        )

    def to_settings(self, settings) -> None:
        settings.values.update(
            hotkey_modifiers=self.modifiers,
            hotkey_key_code=self.key_code,
            hotkey_display=self.display,
        )
        settings.save()

    def to_combo(self) -> str:
        """keyboard-library combo string, e.g. "ctrl+alt+p"."""
        name = KEY_CODE_NAMES.get(self.key_code)
        if name is None:
            raise ValueError(f"Unsupported key code: {self.key_code:#x}")
        flags = decode_modifiers(self.modifiers)
        parts = [combo for flag, combo in _COMBO_MODIFIERS if flag in flags]
        return "+".join(parts + [name])


class HotkeyManager:
    """
    Manage global hotkey bindings.

    Attributes:
        bindings (Dict[str, Callable]): Registered hotkey → callback map.
    """

    def __init__(self) -> None:
        """Initialize an empty hotkey registry."""
        self.bindings: Dict[str, Callable] = {}
        self._handles: Dict[str, object] = {}
        self.current: Optional[HotkeyBinding] = None

    @staticmethod
    def _guard(combo: str, callback: Callable) -> Callable:
        def _run() -> None:
            try:
                callback()
            except Exception as e:
                logger.warning("Hotkey %s callback failed: %s", combo, e)
        return _run

    def bind(self, combo: str, callback: Callable) -> None:
        """
        Register a system-wide hotkey. Rebinding a combo replaces it.

        Args:
            combo (str): Key combo (e.g. "ctrl+alt+p").
            callback (Callable): Function to run when pressed.
        """
        if combo in self._handles:
            self.unbind(combo)
        self.bindings[combo] = callback
        self._handles[combo] = keyboard.add_hotkey(combo, self._guard(combo, callback))

    def unbind(self, combo: str) -> None:
        handle = self._handles.pop(combo, None)
        self.bindings.pop(combo, None)
        if handle is not None:
            keyboard.remove_hotkey(handle)

    def rebind(self, binding: HotkeyBinding, callback: Callable) -> str:
        """Replace the current global hotkey with `binding`."""
        if self.current is not None:
            self.unbind(self.current.to_combo())
        combo = binding.to_combo()
        self.bind(combo, callback)
        self.current = binding
        logger.info("Global hotkey registered: %s (%s)", binding.display, combo)
        return combo

    def start(self) -> None:
        """
        Block and listen for hotkey events indefinitely.
        """
        keyboard.wait()

    def stop(self) -> None:
        for combo in list(self._handles):
            self.unbind(combo)
        self.current = None
