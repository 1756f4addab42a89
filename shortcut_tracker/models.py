"""
Entity graph for tracked applications and their keyboard shortcuts.

An Application owns its Shortcuts; each Shortcut keeps a back-reference to
its parent. The two sides are only ever changed together through
Application.add_shortcut / remove_shortcut.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(eq=False)
class Shortcut:
    """A named key combination belonging to one Application."""
    title: str
    keys: str
    description: Optional[str] = None
    category: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=utcnow)
    modified_at: datetime = field(default_factory=utcnow)
    app: Optional["Application"] = field(default=None, repr=False, compare=False)

    def touch(self) -> None:
        """Mark the shortcut (and its parent) as modified now."""
        now = utcnow()
        self.modified_at = now
        if self.app is not None:
            self.app.modified_at = now


@dataclass(eq=False)
class Application:
    """A tracked program and the shortcuts recorded for it."""
    name: str
    icon_path: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=utcnow)
    modified_at: datetime = field(default_factory=utcnow)
    shortcuts: List[Shortcut] = field(default_factory=list)

    def add_shortcut(self, shortcut: Shortcut) -> Shortcut:
        if shortcut.app is not None and shortcut.app is not self:
            shortcut.app.remove_shortcut(shortcut)
        shortcut.app = self
        if not any(s is shortcut for s in self.shortcuts):
            self.shortcuts.append(shortcut)
        self.modified_at = utcnow()
        return shortcut

    def remove_shortcut(self, shortcut: Shortcut) -> None:
        self.shortcuts = [s for s in self.shortcuts if s.id != shortcut.id]
        if shortcut.app is self:
            shortcut.app = None
        self.modified_at = utcnow()

    def find_shortcut_by_keys(self, keys: str) -> Optional[Shortcut]:
        return next((s for s in self.shortcuts if s.keys == keys), None)

    def touch(self) -> None:
        self.modified_at = utcnow()
