"""
Poll-based file watcher.

Watches one path with os.stat() and reports write / extend / rename /
delete events to a callback. Polling keeps the behavior identical across
platforms and tolerates the file being replaced atomically (new inode).
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

EVENT_WRITE = "write"
EVENT_EXTEND = "extend"
EVENT_RENAME = "rename"
EVENT_DELETE = "delete"


@dataclass(frozen=True)
class FileSignature:
    exists: bool
    inode: int = 0
    mtime_ns: int = 0
    size: int = 0


def file_signature(path: Path) -> FileSignature:
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return FileSignature(exists=False)
    return FileSignature(True, st.st_ino, st.st_mtime_ns, st.st_size)


def classify_change(old: FileSignature, new: FileSignature) -> Optional[str]:
    """Return the event kind for a signature change, or None if unchanged."""
    if old == new:
        return None
    if old.exists and not new.exists:
        return EVENT_DELETE
    if not old.exists and new.exists:
        return EVENT_WRITE
    if old.inode != new.inode:
        return EVENT_RENAME
    if new.size > old.size:
        return EVENT_EXTEND
    return EVENT_WRITE


def direct_dispatch(fn: Callable[[], None]) -> None:
    fn()


class FileWatcher:
    """
    Poll-based watcher for a single file.
    Calls `callback(event_kind)` through `dispatcher` whenever the file changes.
    """

    def __init__(
            self,
            path: Path,
            callback: Callable[[str], None],
            poll_interval: float = 0.5,
            dispatcher: Callable[[Callable[[], None]], None] = direct_dispatch,
    ):
        self.path = Path(path)
        self._callback = callback
        self._poll_interval = poll_interval
        self._dispatcher = dispatcher
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._last = file_signature(self.path)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self.rebaseline()
        self._thread = threading.Thread(
            target=self._run, name=f"FileWatcher[{self.path.name}]", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self._poll_interval * 4))

    def rebaseline(self) -> None:
        """Accept the current on-disk state as unchanged."""
        with self._lock:
            self._last = file_signature(self.path)

    def check(self) -> Optional[str]:
        """Poll once; dispatch and return the event kind if the file changed."""
        with self._lock:
            current = file_signature(self.path)
            kind = classify_change(self._last, current)
            self._last = current
        if kind is not None:
            logger.debug("Detected %s on %s", kind, self.path)
            self._dispatcher(lambda: self._safe_callback(kind))
        return kind

    def _safe_callback(self, kind: str) -> None:
        try:
            self._callback(kind)
        except Exception as e:
            logger.warning("File watch callback failed for %s: %s", self.path, e)

    def _run(self) -> None:
        while not self._stop.wait(self._poll_interval):
            try:
                self.check()
            except Exception as e:
                logger.warning("File watch poll failed for %s: %s", self.path, e)
