"""
In-process event bus and main-thread hand-off queue.

Delivery is synchronous, best-effort and at-most-once: a failing subscriber
is logged and the remaining subscribers still run.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

SELECTED_APP_CHANGED = "selected_app_changed"
SHORTCUTS_CHANGED = "shortcuts_changed"
OPEN_FLOATING_PANEL = "open_floating_panel"
OPEN_AI_IMPORT = "open_ai_import"


class EventBus:
    def __init__(self) -> None:
        self._subscribers: DefaultDict[str, List[Callable[[Any], None]]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, name: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register `callback` for `name`. Returns an unsubscribe function."""
        with self._lock:
            self._subscribers[name].append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[name]:
                    self._subscribers[name].remove(callback)

        return _unsubscribe

    def publish(self, name: str, payload: Any = None) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(name, ()))
        for cb in callbacks:
            try:
                cb(payload)
            except Exception as e:
                logger.warning("Subscriber %r for %s failed: %s", cb, name, e)


class MainThreadDispatcher:
    """
    Queue of callables posted from background threads, run by the owning
    thread on drain(). Pass an instance as a watcher's `dispatcher`.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[Callable[[], None]]" = queue.Queue()

    def __call__(self, fn: Callable[[], None]) -> None:
        self._queue.put(fn)

    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self, block: bool = False, timeout: float = None) -> int:
        """Run queued callables on the calling thread. Returns how many ran."""
        ran = 0
        while True:
            try:
                fn = self._queue.get(block=block and ran == 0, timeout=timeout)
            except queue.Empty:
                return ran
            try:
                fn()
            except Exception as e:
                logger.warning("Dispatched call %r failed: %s", fn, e)
            ran += 1
