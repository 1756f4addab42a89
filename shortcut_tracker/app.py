"""
Composition root.

Builds exactly one of each long-lived component and wires them together:
store mutations mirror into the backup file, external edits of the backup
file flow back into the store, and shortcut changes refresh the keystroke
overlay's title lookup.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from .ai_service import create_ai_service
from .backup import BackupError, LocalBackupService
from .catalog import Catalog
from .config import CONFIG, _ensure_dir, backup_dir
from .events import OPEN_AI_IMPORT, OPEN_FLOATING_PANEL, SHORTCUTS_CHANGED, EventBus, MainThreadDispatcher
from .exporter import ImportReport
from .history import ExtractionHistory
from .hotkeys import HotkeyBinding, HotkeyManager
from .importer import AIImportSession
from .keystrokes import KeystrokeMonitor, KeystrokeOverlay
from .settings import Settings
from .store import ShortcutStore, StoreError
from .utils import info, warn

logger = logging.getLogger(__name__)


class ShortcutTrackerApp:
    """
    Owns and connects every component.

    Args:
        home (Path): Data directory; defaults to CONFIG["backup_dir"].
    """

    def __init__(self, home: Optional[Path] = None) -> None:
        self.home = _ensure_dir(home, "backup_dir") if home is not None else backup_dir()

        self.settings = Settings(self.home / CONFIG["settings_file_name"])
        self.store = ShortcutStore(self.home / CONFIG["store_file_name"])
        self.bus = EventBus()
        self.dispatcher = MainThreadDispatcher()
        self.backup = LocalBackupService(self.home, settings=self.settings, dispatcher=self.dispatcher)
        self.catalog = Catalog(self.store, self.bus)
        self.history = ExtractionHistory(self.home / CONFIG["history_file_name"])
        self.overlay = KeystrokeOverlay.from_settings(self.settings)
        self.keystroke_monitor = KeystrokeMonitor(self.overlay)
        self.hotkeys = HotkeyManager()

        self._unsubscribe: Optional[Callable[[], None]] = None
        self.started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Load data, hook up auto backup, run the startup import."""
        if self.started:
            return
        self.store.load()

        self.backup.on_external_changes_detected = self._on_external_change
        self.backup.attach(self.store)

        if self.settings.auto_sync_enabled and self.backup.backup_exists:
            self.import_backup()

        self._unsubscribe = self.bus.subscribe(SHORTCUTS_CHANGED, lambda _: self.refresh_overlay_cache())
        self.refresh_overlay_cache()
        self.started = True
        info(f"ShortcutTracker ready ({len(self.store.applications)} apps, data in {self.home})")

    def shutdown(self) -> None:
        self.backup.close()
        self.hotkeys.stop()
        self.keystroke_monitor.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.started = False

    # ------------------------------------------------------------------
    # Backup wiring
    # ------------------------------------------------------------------

    def import_backup(self) -> Optional[ImportReport]:
        """Import the backup file; publish SHORTCUTS_CHANGED if anything was added."""
        try:
            report = self.backup.import_from_backup(self.store)
        except (BackupError, StoreError) as e:
            warn(f"Import from backup failed: {e}")
            return None
        if report.changed:
            self.bus.publish(SHORTCUTS_CHANGED)
        return report

    def _on_external_change(self) -> None:
        info("External changes detected, importing...")
        self.import_backup()

    def set_auto_sync(self, enabled: bool) -> None:
        self.backup.set_auto_sync(enabled)
        if enabled:
            self.backup.save_backup(self.store.fetch_applications())

    # ------------------------------------------------------------------
    # Overlay / hotkey / AI
    # ------------------------------------------------------------------

    def refresh_overlay_cache(self) -> None:
        self.overlay.refresh_shortcut_cache(self.catalog.shortcut_title_index())

    def register_hotkey(self, callback: Optional[Callable[[], None]] = None) -> str:
        """Bind the persisted global hotkey; default action opens the app selector."""
        if callback is None:
            callback = lambda: self.dispatcher(lambda: self.bus.publish(OPEN_FLOATING_PANEL))
        return self.hotkeys.rebind(HotkeyBinding.from_settings(self.settings), callback)

    def new_import_session(self, service_type: Optional[str] = None) -> AIImportSession:
        service = create_ai_service(self.settings, service_type)
        return AIImportSession(service, self.catalog, history=self.history)

    def open_ai_import(self, service_type: Optional[str] = None) -> AIImportSession:
        """Start a fresh import session and announce it on OPEN_AI_IMPORT."""
        session = self.new_import_session(service_type)
        self.bus.publish(OPEN_AI_IMPORT, session)
        return session
