"""
AI import session: text in, reviewed shortcuts out.

Drives one extraction at a time through an AIService and holds the result
until the user confirms it into an application or discards it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from .ai_service import AIService, AIServiceError, ExtractedShortcut
from .catalog import Catalog
from .events import SHORTCUTS_CHANGED
from .history import ExtractionHistory
from .models import Application

logger = logging.getLogger(__name__)


# -----------------------------
# Import state
# -----------------------------
@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Loaded:
    shortcuts: List[ExtractedShortcut] = field(default_factory=list)


@dataclass(frozen=True)
class Error:
    message: str


ImportState = Union[Idle, Loading, Loaded, Error]


class AIImportSession:
    """
    State machine for one AI import.

    Attributes:
        service (AIService): Provider used by extract().
        catalog (Catalog): Supplies the selected app and performs inserts.
        history (Optional[ExtractionHistory]): Log of extraction attempts.
        input_text (str): Text used when extract() is called without one.
        state (ImportState): Idle, Loading, Loaded(shortcuts) or Error(message).
        raw_ai_response (Optional[str]): Model text of the last extraction.
    """

    def __init__(self, service: AIService, catalog: Catalog, history: Optional[ExtractionHistory] = None) -> None:
        self.service = service
        self.catalog = catalog
        self.history = history
        self.input_text = ""
        self.state: ImportState = Idle()
        self.raw_ai_response: Optional[str] = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return isinstance(self.state, Loading)

    @property
    def extracted_shortcuts(self) -> List[ExtractedShortcut]:
        return list(self.state.shortcuts) if isinstance(self.state, Loaded) else []

    @property
    def error_message(self) -> Optional[str]:
        return self.state.message if isinstance(self.state, Error) else None

    @property
    def can_extract(self) -> bool:
        return bool(self.input_text.strip()) and not self.is_loading

    @property
    def can_confirm_import(self) -> bool:
        return bool(self.extracted_shortcuts) and self.catalog.selected_app is not None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def extract(self, text: Optional[str] = None) -> ImportState:
        """Run one extraction. Empty input leaves the state untouched."""
        if text is not None:
            self.input_text = text
        trimmed = self.input_text.strip()
        if not trimmed:
            return self.state

        self.state = Loading()
        try:
            shortcuts = self.service.extract_shortcuts(trimmed)
        except AIServiceError as e:
            self.state = Error(str(e))
        except Exception as e:
            logger.exception("Unexpected error during extraction")
            self.state = Error(f"An unexpected error occurred: {e}")
        else:
            self.raw_ai_response = self.service.last_raw_response
            self.state = Loaded(list(shortcuts))

        self._record(trimmed)
        return self.state

    def _record(self, text: str) -> None:
        if self.history is None:
            return
        self.history.add_extraction(
            provider=self.service.name,
            text=text,
            count=len(self.extracted_shortcuts),
            error=self.error_message,
            raw_response=self.service.last_raw_response,
        )

    def confirm_import(self, app: Optional[Application] = None) -> int:
        """
        Add every extracted shortcut to `app` (default: the selected app),
        publish SHORTCUTS_CHANGED and reset. Returns the number added; 0 when
        there is nothing loaded or no target application.
        """
        target = app if app is not None else self.catalog.selected_app
        if target is None or not isinstance(self.state, Loaded):
            return 0

        store = self.catalog.store
        with store.batch():
            for extracted in self.state.shortcuts:
                store.insert_shortcut(extracted.to_shortcut(), into=target)
        added = len(self.state.shortcuts)

        self.catalog.bus.publish(SHORTCUTS_CHANGED)
        self.reset()
        return added

    def remove_extracted(self, shortcut_id: str) -> None:
        if not isinstance(self.state, Loaded):
            return
        remaining = [s for s in self.state.shortcuts if s.id != shortcut_id]
        self.state = Loaded(remaining) if remaining else Idle()

    def reset(self) -> None:
        self.input_text = ""
        self.state = Idle()

    def clear_error(self) -> None:
        if isinstance(self.state, Error):
            self.state = Idle()

    def extracted_json(self) -> str:
        """Pretty JSON of the loaded shortcuts, absent optionals omitted."""
        if not isinstance(self.state, Loaded):
            return "[]"
        return json.dumps([s.to_dict() for s in self.state.shortcuts], indent=2, ensure_ascii=False)
