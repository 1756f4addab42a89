"""
Application/shortcut catalog operations.

The selection-aware layer on top of ShortcutStore: creating, renaming and
deleting applications, editing the selected application's shortcuts, and
the search/sort view of them. Mutations publish on the event bus so other
components (backup, keystroke overlay) can react.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .events import SELECTED_APP_CHANGED, SHORTCUTS_CHANGED, EventBus
from .keys import normalize_keys
from .models import Application, Shortcut
from .store import ShortcutStore, ValidationError

logger = logging.getLogger(__name__)


class SortOption(str, Enum):
    NAME = "name"
    MODIFIED = "modified"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def sort_shortcuts(shortcuts: Iterable[Shortcut], option: SortOption = SortOption.NAME) -> List[Shortcut]:
    """NAME: case-insensitive title ascending. MODIFIED: newest first."""
    if SortOption(option) is SortOption.MODIFIED:
        return sorted(shortcuts, key=lambda s: s.modified_at, reverse=True)
    return sorted(shortcuts, key=lambda s: s.title.casefold())


def filter_shortcuts(shortcuts: Iterable[Shortcut], query: str) -> List[Shortcut]:
    """Case-insensitive substring match on title, keys or description."""
    if not query:
        return list(shortcuts)
    q = query.lower()
    return [
        s for s in shortcuts
        if q in s.title.lower()
        or q in s.keys.lower()
        or (s.description is not None and q in s.description.lower())
    ]


class Catalog:
    """
    Selection and CRUD over the store.

    Attributes:
        store (ShortcutStore): Backing store.
        bus (EventBus): Where change events are published.
        selected_app (Optional[Application]): Current selection.
        search_text (str): Filter applied by visible_shortcuts().
        sort_option (SortOption): Ordering applied by visible_shortcuts().
    """

    def __init__(self, store: ShortcutStore, bus: Optional[EventBus] = None) -> None:
        self.store = store
        self.bus = bus if bus is not None else EventBus()
        self.selected_app: Optional[Application] = None
        self.search_text = ""
        self.sort_option = SortOption.NAME

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    @property
    def apps(self) -> List[Application]:
        return self.store.fetch_applications()

    def select_app(self, app: Optional[Application]) -> None:
        self.selected_app = app
        self.bus.publish(SELECTED_APP_CHANGED, app)

    def add_app(self, name: str, icon_path: Optional[str] = None) -> Application:
        trimmed = name.strip()
        if not trimmed:
            raise ValidationError("Application name must not be empty")
        app = self.store.add_app(Application(name=trimmed, icon_path=icon_path))
        self.select_app(app)
        return app

    def rename_app(self, app: Application, new_name: str) -> None:
        trimmed = new_name.strip()
        if not trimmed:
            raise ValidationError("Application name must not be empty")
        app.name = trimmed
        self.store.update_app(app)

    def update_app(self, app: Application, name: str, icon_path: Optional[str]) -> None:
        trimmed = name.strip()
        if not trimmed:
            raise ValidationError("Application name must not be empty")
        app.name = trimmed
        app.icon_path = icon_path
        self.store.update_app(app)

    def delete_app(self, app: Application) -> None:
        if self.selected_app is not None and self.selected_app.id == app.id:
            self.select_app(None)
        self.store.delete_app(app)

    def find_app(self, name: str) -> Optional[Application]:
        return self.store.find_application_by_name(name)

    # ------------------------------------------------------------------
    # Shortcuts
    # ------------------------------------------------------------------

    def add_shortcut(
            self,
            title: str,
            keys: str,
            description: Optional[str] = None,
            category: Optional[str] = None,
            app: Optional[Application] = None,
    ) -> Shortcut:
        """Add to `app`, or to the selected application when omitted."""
        target = app if app is not None else self.selected_app
        if target is None:
            raise ValidationError("No application selected")
        title, keys = title.strip(), keys.strip()
        if not title or not keys:
            raise ValidationError("Shortcut title and keys must not be empty")
        keys = normalize_keys(keys)
        shortcut = self.store.add_shortcut(
            Shortcut(title=title, keys=keys, description=_clean(description), category=_clean(category)),
            target,
        )
        self.bus.publish(SHORTCUTS_CHANGED)
        return shortcut

    def edit_shortcut(
            self,
            shortcut: Shortcut,
            title: str,
            keys: str,
            description: Optional[str] = None,
            category: Optional[str] = None,
    ) -> None:
        title, keys = title.strip(), keys.strip()
        if not title or not keys:
            raise ValidationError("Shortcut title and keys must not be empty")
        keys = normalize_keys(keys)
        shortcut.title = title
        shortcut.keys = keys
        shortcut.description = _clean(description)
        shortcut.category = _clean(category)
        self.store.update_shortcut(shortcut)
        self.bus.publish(SHORTCUTS_CHANGED)

    def delete_shortcut(self, shortcut: Shortcut) -> None:
        self.store.delete_shortcut(shortcut)
        self.bus.publish(SHORTCUTS_CHANGED)

    def visible_shortcuts(self) -> List[Shortcut]:
        """Selected app's shortcuts after search_text and sort_option."""
        if self.selected_app is None:
            return []
        return sort_shortcuts(filter_shortcuts(self.selected_app.shortcuts, self.search_text), self.sort_option)

    def shortcut_title_index(self) -> Dict[str, str]:
        """Upper-cased key string -> title, across all applications."""
        index: Dict[str, str] = {}
        for app in self.store.fetch_applications():
            for s in app.shortcuts:
                index.setdefault(s.keys.upper(), s.title)
        return index
