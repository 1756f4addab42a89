"""
Process-wide persisted settings.

A flat name -> value JSON file in the backup directory holding scalar
preferences: auto-sync flag, last sync time, AI provider/model/prompt
overrides, the global hotkey binding and keystroke overlay options.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .config import CONFIG, backup_dir
from .utils import atomic_write_bytes, warn

logger = logging.getLogger(__name__)


def default_settings() -> Dict[str, Any]:
    return {
        # Sync
        "auto_sync_enabled": False,
        "last_sync_time": None,  # ISO-8601 string

        # AI
        "ai_service_type": CONFIG["ai_service_type"],
        "gemini_api_key": None,
        "gemini_model": CONFIG["gemini_model"],
        "gemini_custom_prompt": None,
        "openai_provider": CONFIG["openai_provider"],
        "openai_api_key": None,
        "openai_endpoint": None,
        "openai_model": None,
        "openai_custom_prompt": None,

        # Global hotkey
        "hotkey_modifiers": CONFIG["hotkey_default_modifiers"],
        "hotkey_key_code": CONFIG["hotkey_default_key_code"],
        "hotkey_display": CONFIG["hotkey_default_display"],

        # Keystroke overlay
        "overlay_enabled": False,
        "overlay_display_duration": CONFIG["overlay_display_duration"],
        "overlay_max_lines": CONFIG["overlay_max_lines"],
        "overlay_show_all_keys": False,
        "overlay_show_matched_title": True,
    }


def _text_setting(key: str) -> property:
    """Optional string preference; empty strings read back as None."""

    def _get(self: "Settings") -> Optional[str]:
        value = self.values.get(key)
        return value if isinstance(value, str) and value else None

    def _set(self: "Settings", value: Optional[str]) -> None:
        self.set(key, value or None)

    return property(_get, _set)


class Settings:
    """
    Key/value preferences persisted as JSON.

    Attributes:
        path (Path): Settings file location (None = memory only).
        values (Dict[str, Any]): Current values, defaults merged in.
    """

    def __init__(self, path: Optional[Path] = None, in_memory: bool = False) -> None:
        if path is None and not in_memory:
            path = backup_dir() / CONFIG["settings_file_name"]
        self.path: Optional[Path] = Path(path) if path is not None else None
        self.values: Dict[str, Any] = default_settings()
        self.load()

    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load settings from disk (or keep defaults)."""
        self.values = default_settings()
        if self.path is None or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            warn(f"Failed to read settings {self.path}, using defaults: {e}")
            return
        if not isinstance(data, dict):
            warn(f"Ignoring settings file {self.path}: root is not an object")
            return
        self.values.update(data)

    # ------------------------------------------------------------------

    def save(self) -> None:
        """Persist settings to disk."""
        if self.path is None:
            return
        payload = json.dumps(self.values, indent=2, ensure_ascii=False)
        try:
            atomic_write_bytes(self.path, payload.encode("utf-8"))
        except OSError as e:
            warn(f"Failed to save settings: {e}")

    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value
        self.save()

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    @property
    def auto_sync_enabled(self) -> bool:
        return bool(self.values.get("auto_sync_enabled", False))

    @auto_sync_enabled.setter
    def auto_sync_enabled(self, enabled: bool) -> None:
        self.set("auto_sync_enabled", bool(enabled))

    @property
    def last_sync_time(self) -> Optional[datetime]:
        raw = self.values.get("last_sync_time")
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed last_sync_time %r", raw)
            return None

    @last_sync_time.setter
    def last_sync_time(self, when: Optional[datetime]) -> None:
        self.set("last_sync_time", when.isoformat() if when else None)

    @property
    def ai_service_type(self) -> str:
        return self.values.get("ai_service_type") or CONFIG["ai_service_type"]

    @ai_service_type.setter
    def ai_service_type(self, value: str) -> None:
        self.set("ai_service_type", value)

    gemini_api_key = _text_setting("gemini_api_key")
    gemini_model = _text_setting("gemini_model")
    gemini_custom_prompt = _text_setting("gemini_custom_prompt")
    openai_provider = _text_setting("openai_provider")
    openai_api_key = _text_setting("openai_api_key")
    openai_endpoint = _text_setting("openai_endpoint")
    openai_model = _text_setting("openai_model")
    openai_custom_prompt = _text_setting("openai_custom_prompt")
