"""
Key-combination helpers using macOS modifier symbols.

Stored key strings are order-normalized: Control, Option, Shift, Command,
then the main key (e.g. "⌃⌥⇧⌘S").
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List


class KeySymbol(str, Enum):
    # Modifier keys
    COMMAND = "⌘"
    SHIFT = "⇧"
    OPTION = "⌥"
    CONTROL = "⌃"
    CAPS_LOCK = "⇪"

    # Special keys
    ESCAPE = "⎋"
    RETURN = "↩"
    DELETE = "⌫"
    FORWARD_DELETE = "⌦"
    TAB = "⇥"
    SPACE = "␣"

    # Arrow keys
    ARROW_UP = "↑"
    ARROW_DOWN = "↓"
    ARROW_LEFT = "←"
    ARROW_RIGHT = "→"

    FN = "fn"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_modifier(self) -> bool:
        return self in MODIFIERS


_DISPLAY_NAMES = {
    KeySymbol.COMMAND: "Command",
    KeySymbol.SHIFT: "Shift",
    KeySymbol.OPTION: "Option",
    KeySymbol.CONTROL: "Control",
    KeySymbol.CAPS_LOCK: "Caps Lock",
    KeySymbol.ESCAPE: "Escape",
    KeySymbol.RETURN: "Return",
    KeySymbol.DELETE: "Delete",
    KeySymbol.FORWARD_DELETE: "Forward Delete",
    KeySymbol.TAB: "Tab",
    KeySymbol.SPACE: "Space",
    KeySymbol.ARROW_UP: "Up",
    KeySymbol.ARROW_DOWN: "Down",
    KeySymbol.ARROW_LEFT: "Left",
    KeySymbol.ARROW_RIGHT: "Right",
    KeySymbol.FN: "Function",
}

# Canonical macOS modifier order
MODIFIERS = (KeySymbol.CONTROL, KeySymbol.OPTION, KeySymbol.SHIFT, KeySymbol.COMMAND)

FUNCTION_KEYS = tuple(f"F{i}" for i in range(1, 13))

# Keys that are a valid combination on their own, without a modifier
_STANDALONE_KEYS = FUNCTION_KEYS + (KeySymbol.ESCAPE.value, KeySymbol.RETURN.value, KeySymbol.DELETE.value)

# Word -> symbol replacements for text notation ("Cmd+Shift+S")
_TEXT_REPLACEMENTS = [
    ("cmd", KeySymbol.COMMAND),
    ("command", KeySymbol.COMMAND),
    ("ctrl", KeySymbol.CONTROL),
    ("control", KeySymbol.CONTROL),
    ("opt", KeySymbol.OPTION),
    ("option", KeySymbol.OPTION),
    ("alt", KeySymbol.OPTION),
    ("shift", KeySymbol.SHIFT),
    ("return", KeySymbol.RETURN),
    ("enter", KeySymbol.RETURN),
    ("esc", KeySymbol.ESCAPE),
    ("escape", KeySymbol.ESCAPE),
    ("tab", KeySymbol.TAB),
    ("delete", KeySymbol.DELETE),
    ("backspace", KeySymbol.DELETE),
    ("space", KeySymbol.SPACE),
    ("up", KeySymbol.ARROW_UP),
    ("down", KeySymbol.ARROW_DOWN),
    ("left", KeySymbol.ARROW_LEFT),
    ("right", KeySymbol.ARROW_RIGHT),
]

_SYMBOL_PATTERN = re.compile(r"[⌘⇧⌥⌃]+[A-Za-z0-9↩⎋⌫⇥↑↓←→]+")
_TEXT_PATTERN = re.compile(
    r"(?:(?:Cmd|Command|Ctrl|Control|Alt|Opt|Option|Shift)\s*[+\-]\s*)+[A-Za-z0-9]+",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class KeyCombination:
    control: bool = False
    option: bool = False
    shift: bool = False
    command: bool = False
    main_key: str = ""

    @property
    def has_modifier(self) -> bool:
        return self.control or self.option or self.shift or self.command

    def to_string(self) -> str:
        return build_key_string(self.control, self.option, self.shift, self.command, self.main_key)


def build_key_string(
        control: bool = False,
        option: bool = False,
        shift: bool = False,
        command: bool = False,
        main_key: str = "",
) -> str:
    """Build "⌃⌥⇧⌘<key>" from modifier flags, in canonical order."""
    result = ""
    if control:
        result += KeySymbol.CONTROL.value
    if option:
        result += KeySymbol.OPTION.value
    if shift:
        result += KeySymbol.SHIFT.value
    if command:
        result += KeySymbol.COMMAND.value
    return result + main_key


def parse_key_string(key_string: str) -> KeyCombination:
    """Split a symbol key string into modifier flags and the remaining main key."""
    remaining = key_string
    flags = {}
    for name, symbol in (
            ("control", KeySymbol.CONTROL),
            ("option", KeySymbol.OPTION),
            ("shift", KeySymbol.SHIFT),
            ("command", KeySymbol.COMMAND),
    ):
        flags[name] = symbol.value in remaining
        remaining = remaining.replace(symbol.value, "")
    return KeyCombination(main_key=remaining, **flags)


def normalize_keys(key_string: str) -> str:
    """Reorder modifiers to Control, Option, Shift, Command."""
    return parse_key_string(key_string).to_string()


def text_to_symbols(text: str) -> str:
    """
    Convert text notation ("Cmd+Shift+S", "Ctrl + Alt + Delete") to normalized
    symbol notation ("⇧⌘S", "⌃⌥⌫").
    """
    result = text.replace(" + ", "+").replace("- ", "-")
    for word, symbol in _TEXT_REPLACEMENTS:
        result = re.sub(rf"\b{word}\b", symbol.value, result, flags=re.IGNORECASE)
    for sep in ("+", "-", " "):
        result = result.replace(sep, "")
    combo = parse_key_string(result)
    main = combo.main_key.upper() if len(combo.main_key) == 1 else combo.main_key
    return build_key_string(combo.control, combo.option, combo.shift, combo.command, main)


def symbols_to_text(symbols: str) -> str:
    """Convert "⌘⇧S" to "Shift + Command + S"."""
    parts: List[str] = []
    remaining = symbols
    for modifier in MODIFIERS:
        if modifier.value in remaining:
            parts.append(modifier.display_name)
            remaining = remaining.replace(modifier.value, "")
    for symbol in KeySymbol:
        if symbol.is_modifier:
            continue
        if symbol.value in remaining:
            parts.append(symbol.display_name)
            remaining = remaining.replace(symbol.value, "")
    if remaining:
        parts.append(remaining)
    return " + ".join(parts)


def is_valid_key_combination(key_string: str) -> bool:
    """A modifier plus a main key, or one of the standalone special keys."""
    if not key_string:
        return False
    combo = parse_key_string(key_string)
    if combo.has_modifier and combo.main_key:
        return True
    return combo.main_key in _STANDALONE_KEYS


def extract_key_strings(text: str) -> List[str]:
    """Find symbol-form and text-form key combinations in free text."""
    found: List[str] = []
    for m in _SYMBOL_PATTERN.finditer(text):
        if m.group(0) not in found:
            found.append(m.group(0))
    for m in _TEXT_PATTERN.finditer(text):
        symbolized = text_to_symbols(m.group(0))
        if symbolized not in found:
            found.append(symbolized)
    return found
