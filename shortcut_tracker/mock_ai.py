"""
Offline shortcut extraction.

Scans text line by line for "Cmd+Shift+S" / "⌘⇧S" style combinations and
guesses a title from the surrounding words and a category from keywords.
Useful without an API key and in tests.
"""

import re
from typing import List, Optional, Set

from .ai_service import AIService, ExtractedShortcut
from .keys import normalize_keys, text_to_symbols

_PATTERNS = [
    # "Cmd+Shift+S", "Ctrl+Alt+Delete"
    re.compile(
        r"(Cmd|Ctrl|Alt|Shift|Option|Command|Control)"
        r"(\s*\+\s*(Cmd|Ctrl|Alt|Shift|Option|Command|Control|[A-Z0-9]))+\b",
        re.IGNORECASE,
    ),
    # "⌘⇧S", "⌃⌥⌘A"
    re.compile(r"[⌘⇧⌥⌃]+[A-Z0-9↑↓←→⎋↩⌫⇥␣]"),
    # "Command + Shift + S"
    re.compile(
        r"(Command|Control|Option|Shift)(\s*\+\s*(Command|Control|Option|Shift|[A-Z0-9]))+\b",
        re.IGNORECASE,
    ),
]

_TITLE_SEPARATORS = (":", "-", "–", "—", "(", "[")
_MAX_TITLE_LEN = 50

_CATEGORIES = [
    ("File", ("file", "save", "open", "new", "close", "export", "import", "print")),
    ("Edit", ("edit", "copy", "paste", "cut", "undo", "redo", "select", "find", "replace")),
    ("View", ("view", "zoom", "window", "panel", "sidebar", "toolbar", "fullscreen")),
    ("Navigation", ("navigate", "go to", "jump", "move", "scroll", "next", "previous")),
    ("Format", ("format", "font", "style", "bold", "italic", "underline", "align")),
    ("Tools", ("tool", "debug", "build", "run", "test", "compile")),
    ("Help", ("help", "documentation", "about")),
]

_SYMBOLS = "⌘⇧⌥⌃"


def _normalize(matched: str) -> str:
    if any(s in matched for s in _SYMBOLS):
        return normalize_keys(matched)
    return text_to_symbols(matched)


def extract_title(line: str, start: int, end: int) -> str:
    """Guess the action name around line[start:end]; "Shortcut" if none."""
    before = line[:start].strip()
    for sep in _TITLE_SEPARATORS:
        idx = before.rfind(sep)
        if idx != -1:
            title = before[:idx].strip()
            if title and len(title) < _MAX_TITLE_LEN:
                return title

    after = line[end:].strip()
    for sep in _TITLE_SEPARATORS:
        if after.startswith(sep):
            words = after[len(sep):].strip().split()
            title = " ".join(words[:5])
            if title and len(title) < _MAX_TITLE_LEN:
                return title

    return "Shortcut"


def extract_category(line: str) -> Optional[str]:
    lowered = line.lower()
    for category, keywords in _CATEGORIES:
        if any(k in lowered for k in keywords):
            return category
    return None


class MockAIService(AIService):
    """Regex-based extractor with the AIService interface."""
    name = "mock"

    def extract_shortcuts(self, text: str) -> List[ExtractedShortcut]:
        found: List[ExtractedShortcut] = []
        seen: Set[str] = set()

        for line in text.splitlines():
            for pattern in _PATTERNS:
                for m in pattern.finditer(line):
                    keys = _normalize(m.group(0))
                    if keys in seen:
                        continue
                    seen.add(keys)
                    found.append(
                        ExtractedShortcut(
                            title=extract_title(line, m.start(), m.end()),
                            keys=keys,
                            category=extract_category(line),
                        )
                    )

        self.last_raw_response = None
        return found
