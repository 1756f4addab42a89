"""
Local object store for Applications and Shortcuts.

Keeps the full entity graph in memory and persists it (ids and timestamps
included) to a single JSON file. Mutations notify registered listeners; the
backup engine uses that hook to mirror the store into the backup file.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from .config import CONFIG, backup_dir
from .models import Application, Shortcut
from .utils import atomic_write_bytes, warn

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


class StoreError(Exception):
    """Raised when the store cannot be read or persisted."""


class ValidationError(StoreError):
    """Raised when an entity would violate a basic field rule (e.g. empty name)."""


class _GraphSnapshot:
    """Field values and membership of the live entities at batch start."""

    def __init__(self, applications: List[Application]) -> None:
        self.applications = list(applications)
        self.app_fields = [
            (a, a.name, a.icon_path, a.modified_at, list(a.shortcuts)) for a in applications
        ]
        self.shortcut_fields = [
            (s, s.title, s.keys, s.description, s.category, s.modified_at, s.app)
            for a in applications
            for s in a.shortcuts
        ]

    def restore(self, current: List[Application]) -> List[Application]:
        known = {id(s) for s, *_ in self.shortcut_fields}
        for app in current:
            for s in app.shortcuts:
                if id(s) not in known:
                    s.app = None

        for app, name, icon_path, modified_at, shortcuts in self.app_fields:
            app.name = name
            app.icon_path = icon_path
            app.modified_at = modified_at
            app.shortcuts = shortcuts
        for s, title, keys, description, category, modified_at, owner in self.shortcut_fields:
            s.title = title
            s.keys = keys
            s.description = description
            s.category = category
            s.modified_at = modified_at
            s.app = owner
        return list(self.applications)


class ShortcutStore:
    """
    JSON-file-backed store for the Application/Shortcut graph.

    Attributes:
        path (Path): Location of the persisted store file (None = memory only).
        applications (List[Application]): Live entity graph.
    """

    def __init__(self, path: Optional[Path] = None, in_memory: bool = False) -> None:
        if path is None and not in_memory:
            path = backup_dir() / CONFIG["store_file_name"]
        self.path: Optional[Path] = Path(path) if path is not None else None
        self.applications: List[Application] = []
        self._listeners: List[Callable[[], None]] = []
        self._batch_depth = 0
        self._dirty = False

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a mutation listener. Returns a function that removes it."""
        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    def _notify(self) -> None:
        for cb in list(self._listeners):
            try:
                cb()
            except Exception as e:
                logger.warning("Store listener %r failed: %s", cb, e)

    def _changed(self) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        self.save()
        self._notify()

    # ------------------------------------------------------------------
    # Capability interface used by the backup engine
    # ------------------------------------------------------------------

    def fetch_applications(self) -> List[Application]:
        """All applications sorted by name (case-insensitive)."""
        return sorted(self.applications, key=lambda a: a.name.lower())

    def find_application_by_name(self, name: str) -> Optional[Application]:
        """Exact, case-sensitive name lookup."""
        return next((a for a in self.applications if a.name == name), None)

    def find_application(self, app_id: str) -> Optional[Application]:
        return next((a for a in self.applications if a.id == app_id), None)

    def insert_application(self, app: Application) -> Application:
        if not app.name:
            raise ValidationError("Application name must not be empty")
        if not any(a is app for a in self.applications):
            self.applications.append(app)
        self._changed()
        return app

    def insert_shortcut(self, shortcut: Shortcut, into: Application) -> Shortcut:
        if not shortcut.title or not shortcut.keys:
            raise ValidationError("Shortcut title and keys must not be empty")
        into.add_shortcut(shortcut)
        self._changed()
        return shortcut

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def add_app(self, app: Application) -> Application:
        return self.insert_application(app)

    def update_app(self, app: Application) -> None:
        app.touch()
        self._changed()

    def delete_app(self, app: Application) -> None:
        # Cascade: shortcuts live only inside their application.
        self.applications = [a for a in self.applications if a.id != app.id]
        for s in app.shortcuts:
            s.app = None
        app.shortcuts = []
        self._changed()

    def add_shortcut(self, shortcut: Shortcut, app: Application) -> Shortcut:
        return self.insert_shortcut(shortcut, into=app)

    def update_shortcut(self, shortcut: Shortcut) -> None:
        shortcut.touch()
        self._changed()

    def delete_shortcut(self, shortcut: Shortcut) -> None:
        if shortcut.app is not None:
            shortcut.app.remove_shortcut(shortcut)
        self._changed()

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    def _snapshot(self) -> "_GraphSnapshot":
        return _GraphSnapshot(self.applications)

    @contextmanager
    def batch(self) -> Iterator["ShortcutStore"]:
        """
        Group several mutations into one save + one notification.

        If the block raises, the graph is restored to its pre-batch state and
        the exception propagates. The restore is done in place on the same
        Application and Shortcut objects, so references held elsewhere stay
        live. Nested batches flush with the outermost one.
        """
        snapshot = self._snapshot() if self._batch_depth == 0 else None
        self._batch_depth += 1
        try:
            yield self
        except BaseException:
            self._batch_depth -= 1
            if snapshot is not None:
                self.applications = snapshot.restore(self.applications)
                self._dirty = False
            raise
        self._batch_depth -= 1
        if self._batch_depth == 0 and self._dirty:
            self._dirty = False
            try:
                self.save()
            except StoreError:
                self.applications = snapshot.restore(self.applications)
                raise
            self._notify()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load the persisted graph if present. A corrupt file raises StoreError."""
        if self.path is None or not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(f"Failed to read store {self.path}: {e}") from e

        apps: List[Application] = []
        for a in raw.get("applications", []):
            try:
                app = Application(
                    name=a["name"],
                    icon_path=a.get("icon_path"),
                    id=a["id"],
                    created_at=datetime.fromisoformat(a["created_at"]),
                    modified_at=datetime.fromisoformat(a["modified_at"]),
                )
                for s in a.get("shortcuts", []):
                    shortcut = Shortcut(
                        title=s["title"],
                        keys=s["keys"],
                        description=s.get("description"),
                        category=s.get("category"),
                        id=s["id"],
                        created_at=datetime.fromisoformat(s["created_at"]),
                        modified_at=datetime.fromisoformat(s["modified_at"]),
                    )
                    shortcut.app = app
                    app.shortcuts.append(shortcut)
            except (KeyError, TypeError, ValueError) as e:
                warn(f"Skipping malformed application record in store: {e}")
                continue
            apps.append(app)
        self.applications = apps
        logger.debug("Loaded %d applications from %s", len(apps), self.path)

    def save(self) -> None:
        """Persist the graph atomically. Raises StoreError on IO failure."""
        if self.path is None:
            return
        payload = json.dumps(self._to_dict(), indent=2, ensure_ascii=False)
        try:
            atomic_write_bytes(self.path, payload.encode("utf-8"))
        except OSError as e:
            raise StoreError(f"Failed to save store {self.path}: {e}") from e

    def _to_dict(self) -> Dict[str, Any]:
        return {
            "format": STORE_FORMAT_VERSION,
            "applications": [
                {
                    "id": a.id,
                    "name": a.name,
                    "icon_path": a.icon_path,
                    "created_at": a.created_at.isoformat(),
                    "modified_at": a.modified_at.isoformat(),
                    "shortcuts": [
                        {
                            "id": s.id,
                            "title": s.title,
                            "keys": s.keys,
                            "description": s.description,
                            "category": s.category,
                            "created_at": s.created_at.isoformat(),
                            "modified_at": s.modified_at.isoformat(),
                        }
                        for s in a.shortcuts
                    ],
                }
                for a in self.applications
            ],
        }
