"""
Local backup and sync to ~/.shortcutTracker.

Keeps a single JSON file as a mirror of the whole store, watches it for
out-of-band edits, and reconciles those edits back into the store.

Reconciliation: applications match by exact name, shortcuts by exact key
string, and a key match is skipped rather than overwritten. There is no
timestamp-based conflict resolution and no cross-process locking; the last
writer wins.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from .config import CONFIG, backup_dir as default_backup_dir
from .exporter import (
    BackupDecodeError,
    BackupError,
    FileAccessError,
    ImportReport,
    decode,
    export_all,
    import_document,
)
from .models import Application
from .settings import Settings
from .store import StoreError
from .utils import atomic_write_bytes, info, warn
from .watcher import FileWatcher, direct_dispatch

logger = logging.getLogger(__name__)

__all__ = [
    "BackupDecodeError",
    "BackupError",
    "BackupInfo",
    "Error",
    "FileAccessError",
    "Idle",
    "LocalBackupService",
    "Success",
    "SyncStatus",
    "Syncing",
]


# -----------------------------
# Sync status
# -----------------------------
@dataclass(frozen=True)
class Idle:
    @property
    def description(self) -> str:
        return "Waiting to sync"


@dataclass(frozen=True)
class Syncing:
    @property
    def description(self) -> str:
        return "Syncing..."


@dataclass(frozen=True)
class Success:
    @property
    def description(self) -> str:
        return "Sync succeeded"


@dataclass(frozen=True)
class Error:
    message: str

    @property
    def description(self) -> str:
        return f"Sync failed: {self.message}"


SyncStatus = Union[Idle, Syncing, Success, Error]


@dataclass
class BackupInfo:
    exists: bool
    path: str
    modification_date: Optional[datetime]
    file_size: Optional[int]


class LocalBackupService:
    """
    Backup/sync engine for the shortcut store.

    Attributes:
        backup_dir (Path): Directory holding the backup file.
        sync_status (SyncStatus): Phase of the most recent operation.
        last_sync_time (Optional[datetime]): When the last save/import finished.
        on_external_changes_detected (Optional[Callable]): Invoked (through the
            dispatcher) when the backup file changes on disk.
    """

    def __init__(
            self,
            backup_dir: Optional[Path] = None,
            settings: Optional[Settings] = None,
            dispatcher: Optional[Callable[[Callable[[], None]], None]] = None,
            poll_interval: Optional[float] = None,
    ) -> None:
        self.backup_dir = Path(backup_dir) if backup_dir is not None else None
        self.settings = settings if settings is not None else Settings(in_memory=True)
        self.dispatcher = dispatcher or direct_dispatch
        self.poll_interval = poll_interval or CONFIG["watch_poll_interval"]

        self._status: SyncStatus = Idle()
        self.status_listeners: List[Callable[[SyncStatus], None]] = []
        self.last_sync_time: Optional[datetime] = self.settings.last_sync_time
        self.on_external_changes_detected: Optional[Callable[[], None]] = None

        self._watcher: Optional[FileWatcher] = None
        self._lock = threading.RLock()
        self._store = None
        self._detach_store: Optional[Callable[[], None]] = None

        self._ensure_backup_directory_exists()

    # ------------------------------------------------------------------
    # Directory management
    # ------------------------------------------------------------------

    def _ensure_backup_directory_exists(self) -> None:
        try:
            if self.backup_dir is None:
                self.backup_dir = default_backup_dir()
            else:
                self.backup_dir.mkdir(parents=True, exist_ok=True)
        except (OSError, RuntimeError) as e:
            warn(f"Failed to create backup directory: {e}")
            if self.backup_dir is None:
                self.backup_dir = Path(CONFIG["backup_dir"]).expanduser()

    @property
    def backup_file_path(self) -> Path:
        return self.backup_dir / CONFIG["backup_file_name"]

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def sync_status(self) -> SyncStatus:
        return self._status

    def _set_status(self, status: SyncStatus) -> None:
        self._status = status
        for cb in list(self.status_listeners):
            try:
                cb(status)
            except Exception as e:
                logger.warning("Status listener failed: %s", e)

    def _mark_synced(self) -> None:
        self.last_sync_time = datetime.now(timezone.utc)
        self.settings.last_sync_time = self.last_sync_time

    @property
    def auto_sync_enabled(self) -> bool:
        return self.settings.auto_sync_enabled

    # ------------------------------------------------------------------
    # Backup operations
    # ------------------------------------------------------------------

    def save_backup(self, applications: Sequence[Application]) -> None:
        """
        Serialize `applications` and atomically replace the backup file.

        Raises:
            FileAccessError: If the file cannot be written. The previous
                backup (if any) is left intact.
        """
        with self._lock:
            self._set_status(Syncing())
            try:
                data = export_all(applications)
                atomic_write_bytes(self.backup_file_path, data)
            except OSError as e:
                message = str(e) or e.__class__.__name__
                self._set_status(Error(message))
                raise FileAccessError(f"Failed to write backup {self.backup_file_path}: {message}") from e

            # Our own write is not an external change.
            if self._watcher is not None:
                self._watcher.rebaseline()

            self._mark_synced()
            self._set_status(Success())
            info(f"Backup saved to: {self.backup_file_path}")

    def load_backup(self) -> Optional[bytes]:
        """
        Return the raw backup bytes, or None if the file does not exist.

        Raises:
            FileAccessError: For IO failures other than absence.
        """
        try:
            return self.backup_file_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise FileAccessError(f"Failed to read backup {self.backup_file_path}: {e}") from e

    def import_from_backup(self, store) -> ImportReport:
        """
        Reconcile the backup file into `store`.

        An absent (or empty placeholder) file is not an error: status returns
        to idle and the report has backup_present=False.
        """
        with self._lock:
            self._set_status(Syncing())
            try:
                data = self.load_backup()
                if data is None or not data.strip():
                    self._set_status(Idle())
                    return ImportReport(backup_present=False)

                document = decode(data)
                report = import_document(document, store)
            except (BackupError, StoreError) as e:
                self._set_status(Error(str(e) or e.__class__.__name__))
                raise

            self._mark_synced()
            self._set_status(Success())
            info("Imported from backup successfully")
            return report

    def perform_sync(self, store) -> None:
        """Import first if the backup is newer than the last sync, then save."""
        backup_date = self.backup_modification_date
        if backup_date is not None and self.last_sync_time is not None and backup_date > self.last_sync_time:
            self.import_from_backup(store)
        self.save_backup(store.fetch_applications())

    # ------------------------------------------------------------------
    # Backup info
    # ------------------------------------------------------------------

    @property
    def backup_exists(self) -> bool:
        return self.backup_file_path.exists()

    @property
    def backup_modification_date(self) -> Optional[datetime]:
        try:
            mtime = os.stat(self.backup_file_path).st_mtime
        except OSError:
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)

    def backup_info(self) -> BackupInfo:
        size = None
        try:
            size = self.backup_file_path.stat().st_size
        except OSError:
            pass
        return BackupInfo(
            exists=self.backup_exists,
            path=str(self.backup_file_path),
            modification_date=self.backup_modification_date,
            file_size=size,
        )

    # ------------------------------------------------------------------
    # File monitoring
    # ------------------------------------------------------------------

    @property
    def is_monitoring(self) -> bool:
        return self._watcher is not None

    def start_file_monitoring(self) -> None:
        """Watch the backup file. Restarting replaces any existing watch."""
        self.stop_file_monitoring()

        path = self.backup_file_path
        if not path.exists():
            # A placeholder gives the watcher a concrete file to track.
            try:
                path.touch()
            except OSError as e:
                warn(f"Failed to create backup file for monitoring: {e}")
                return

        self._watcher = FileWatcher(
            path,
            self._handle_file_change,
            poll_interval=self.poll_interval,
            dispatcher=self.dispatcher,
        )
        self._watcher.start()
        info(f"Started file monitoring for: {path}")

    def stop_file_monitoring(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.stop()

    def check_for_changes(self) -> Optional[str]:
        """Poll the watched file once. Returns the event kind, if any."""
        if self._watcher is None:
            return None
        return self._watcher.check()

    def _handle_file_change(self, kind: str) -> None:
        info(f"Backup file changed externally ({kind})")
        if self.on_external_changes_detected is not None:
            self.on_external_changes_detected()

    # ------------------------------------------------------------------
    # Auto sync
    # ------------------------------------------------------------------

    def set_auto_sync(self, enabled: bool) -> None:
        self.settings.auto_sync_enabled = enabled
        if enabled:
            self.start_file_monitoring()
        else:
            self.stop_file_monitoring()

    def attach(self, store) -> None:
        """
        Bind to a store: mutations trigger save_backup() while auto sync is
        on, and external file changes are imported into the store.
        """
        self.detach()
        self._store = store
        self._detach_store = store.add_listener(self._on_store_changed)
        if self.on_external_changes_detected is None:
            self.on_external_changes_detected = self._auto_import
        if self.auto_sync_enabled:
            self.start_file_monitoring()

    def detach(self) -> None:
        if self._detach_store is not None:
            self._detach_store()
        self._detach_store = None
        if self.on_external_changes_detected == self._auto_import:
            self.on_external_changes_detected = None
        self._store = None

    def _on_store_changed(self) -> None:
        if not self.auto_sync_enabled or self._store is None:
            return
        try:
            self.save_backup(self._store.fetch_applications())
        except BackupError as e:
            warn(f"Auto-backup failed: {e}")

    def _auto_import(self) -> None:
        if self._store is None:
            return
        try:
            self.import_from_backup(self._store)
        except (BackupError, StoreError) as e:
            warn(f"Auto-import failed: {e}")

    def close(self) -> None:
        self.stop_file_monitoring()
        self.detach()
