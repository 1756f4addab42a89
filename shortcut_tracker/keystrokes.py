"""
Keystroke overlay model.

Turns key-down events into symbol strings ("⌘⇧S"), keeps the few most recent
ones with an expiry, and tags each with the title of a matching recorded
shortcut. KeystrokeMonitor feeds it from a global `keyboard` hook; drawing
the overlay is left to whatever front end listens for changes.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set

import keyboard

from .config import CONFIG
from .keys import FUNCTION_KEYS, KeySymbol, build_key_string

logger = logging.getLogger(__name__)

# keyboard-library modifier names -> canonical modifier
_MODIFIER_NAMES = {
    "ctrl": "control", "left ctrl": "control", "right ctrl": "control", "control": "control",
    "alt": "option", "left alt": "option", "right alt": "option", "alt gr": "option", "option": "option",
    "shift": "shift", "left shift": "shift", "right shift": "shift",
    "command": "command", "cmd": "command", "left windows": "command", "right windows": "command",
    "windows": "command",
}

_SPECIAL_KEYS = {
    "enter": KeySymbol.RETURN.value,
    "return": KeySymbol.RETURN.value,
    "tab": KeySymbol.TAB.value,
    "space": "Space",
    "backspace": KeySymbol.DELETE.value,
    "esc": KeySymbol.ESCAPE.value,
    "escape": KeySymbol.ESCAPE.value,
    "delete": KeySymbol.FORWARD_DELETE.value,
    "left": KeySymbol.ARROW_LEFT.value,
    "right": KeySymbol.ARROW_RIGHT.value,
    "down": KeySymbol.ARROW_DOWN.value,
    "up": KeySymbol.ARROW_UP.value,
    "home": "↖",
    "end": "↘",
    "page up": "⇞",
    "page down": "⇟",
}

_FUNCTION_KEY_NAMES = {f.lower() for f in FUNCTION_KEYS}


def modifier_for(name: str) -> Optional[str]:
    return _MODIFIER_NAMES.get(name.lower())


def is_function_key(key: str) -> bool:
    return key.lower() in _FUNCTION_KEY_NAMES


def key_label(key: str) -> str:
    lowered = key.lower()
    if lowered in _SPECIAL_KEYS:
        return _SPECIAL_KEYS[lowered]
    if lowered in _FUNCTION_KEY_NAMES:
        return lowered.upper()
    return key.upper()


def format_key_event(modifiers: Iterable[str], key: str) -> str:
    """{"command", "shift"}, "s" -> "⇧⌘S" """
    held = set(modifiers)
    return build_key_string(
        control="control" in held,
        option="option" in held,
        shift="shift" in held,
        command="command" in held,
        main_key=key_label(key) if key else "",
    )


@dataclass
class KeystrokeItem:
    keys: str
    matched_title: Optional[str]
    timestamp: float
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class KeystrokeOverlay:
    """
    Most-recent-first list of displayed keystrokes.

    Attributes:
        display_duration (float): Seconds an item stays visible.
        max_lines (int): Maximum number of items kept.
        show_all_keys (bool): Show plain keys too, not only shortcuts.
        show_matched_title (bool): Look up titles of recorded shortcuts.
        items (List[KeystrokeItem]): Current items, newest first.
    """

    def __init__(
            self,
            display_duration: float = CONFIG["overlay_display_duration"],
            max_lines: int = CONFIG["overlay_max_lines"],
            show_all_keys: bool = False,
            show_matched_title: bool = True,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.display_duration = display_duration
        self.max_lines = max(1, max_lines)
        self.show_all_keys = show_all_keys
        self.show_matched_title = show_matched_title
        self.items: List[KeystrokeItem] = []
        self._clock = clock
        self._cache: Dict[str, str] = {}
        self._listeners: List[Callable[[List[KeystrokeItem]], None]] = []
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "KeystrokeOverlay":
        duration = settings.get("overlay_display_duration") or CONFIG["overlay_display_duration"]
        max_lines = settings.get("overlay_max_lines") or CONFIG["overlay_max_lines"]
        return cls(
            display_duration=float(duration),
            max_lines=int(max_lines),
            show_all_keys=bool(settings.get("overlay_show_all_keys", False)),
            show_matched_title=bool(settings.get("overlay_show_matched_title", True)),
            **kwargs,
        )

    # ------------------------------------------------------------------

    def add_listener(self, callback: Callable[[List[KeystrokeItem]], None]) -> Callable[[], None]:
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback) if callback in self._listeners else None

    def _notify(self) -> None:
        snapshot = list(self.items)
        for cb in list(self._listeners):
            try:
                cb(snapshot)
            except Exception as e:
                logger.warning("Overlay listener failed: %s", e)

    # ------------------------------------------------------------------

    def refresh_shortcut_cache(self, mapping: Dict[str, str]) -> None:
        """Replace the keys -> title lookup; keys are matched upper-cased."""
        self._cache = {k.upper(): v for k, v in mapping.items()}

    def find_matching_title(self, keys: str) -> Optional[str]:
        if not self.show_matched_title:
            return None
        return self._cache.get(keys.upper())

    def should_display(self, modifiers: Iterable[str], key: str) -> bool:
        if self.show_all_keys:
            return True
        held = set(modifiers)
        return bool(held & {"command", "control", "option"}) or is_function_key(key)

    def add_keystroke(self, keys: str, matched_title: Optional[str] = None) -> KeystrokeItem:
        item = KeystrokeItem(
            keys=keys,
            matched_title=matched_title if matched_title is not None else self.find_matching_title(keys),
            timestamp=self._clock(),
        )
        with self._lock:
            self.items.insert(0, item)
            del self.items[self.max_lines:]
        self._notify()
        return item

    def handle_key(self, modifiers: Iterable[str], key: str) -> Optional[KeystrokeItem]:
        """Format and add a key-down, if it passes the display filter."""
        held = set(modifiers)
        if not self.should_display(held, key):
            return None
        keys = format_key_event(held, key)
        if not keys:
            return None
        return self.add_keystroke(keys)

    def visible(self, now: Optional[float] = None) -> List[KeystrokeItem]:
        """Drop expired items and return the rest, newest first."""
        now = self._clock() if now is None else now
        with self._lock:
            before = len(self.items)
            self.items = [i for i in self.items if now - i.timestamp < self.display_duration]
            expired = before != len(self.items)
        if expired:
            self._notify()
        return list(self.items)

    def clear(self) -> None:
        with self._lock:
            self.items = []
        self._notify()


class KeystrokeMonitor:
    """Global key hook feeding a KeystrokeOverlay."""

    def __init__(self, overlay: KeystrokeOverlay) -> None:
        self.overlay = overlay
        self.held: Set[str] = set()
        self._held_lock = threading.Lock()
        self._hook = None

    @property
    def running(self) -> bool:
        return self._hook is not None

    def start(self) -> None:
        if self._hook is None:
            self._hook = keyboard.hook(self._on_key_event)

    def stop(self) -> None:
        if self._hook is not None:
            keyboard.unhook(self._hook)
            self._hook = None
        with self._held_lock:
            self.held.clear()
        self.overlay.clear()

    def _on_key_event(self, event) -> None:
        name = getattr(event, "name", None) or ""
        if not name:
            return
        modifier = modifier_for(name)
        with self._held_lock:
            if modifier is not None:
                if event.event_type == "down":
                    self.held.add(modifier)
                else:
                    self.held.discard(modifier)
                return
            if event.event_type != "down":
                return
            held = set(self.held)
        try:
            self.overlay.handle_key(held, name)
        except Exception as e:
            logger.warning("Keystroke handling failed for %r: %s", name, e)
