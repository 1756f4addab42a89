import os
from pathlib import Path
from typing import Any, Dict

# =============================================================================
# Global Configuration
# =============================================================================
# Central config dictionary for ShortcutTracker. The store, backup engine,
# AI gateway, hotkeys and keystroke overlay all pull defaults from here.

CONFIG: Dict[str, Any] = {
    # --------------------------
    # Local Backup / Sync
    # --------------------------
    "backup_dir": os.getenv("SHORTCUT_TRACKER_HOME", "~/.shortcutTracker"),
    "backup_file_name": "shortcuts_backup.json",
    "backup_version": "1.0",
    "watch_poll_interval": 0.5,  # Seconds between stat() polls of the backup file

    # --------------------------
    # Data Store / Settings
    # --------------------------
    "store_file_name": "shortcuts.json",
    "settings_file_name": "settings.json",
    "history_file_name": "extraction_history.json",

    # --------------------------
    # AI Extraction
    # --------------------------
    "ai_timeout": 300,  # Slow model replies are normal; one attempt, no retry
    "ai_service_type": "gemini",  # Options: "gemini", "openai", "mock"
    "gemini_endpoint": "https://generativelanguage.googleapis.com/v1beta/models/",
    "gemini_model": "gemini-2.5-flash",
    "gemini_models": [
        "gemini-2.5-pro",
        "gemini-2.5-flash",
        "gemini-2.0-flash",
        "gemini-1.5-pro",
        "gemini-1.5-flash",
    ],
    "openai_provider": "siliconflow",  # Options: "siliconflow", "openai", "custom"
    "openai_providers": {
        "siliconflow": {
            "endpoint": "https://api.siliconflow.cn/v1/chat/completions",
            "models": [
                "Qwen/Qwen2.5-7B-Instruct",
                "Qwen/Qwen2.5-32B-Instruct",
                "deepseek-ai/DeepSeek-V2.5",
            ],
        },
        "openai": {
            "endpoint": "https://api.openai.com/v1/chat/completions",
            "models": ["gpt-4o-mini", "gpt-4o", "gpt-4-turbo"],
        },
        "custom": {"endpoint": "", "models": []},
    },
    "openai_fallback_model": "gpt-4o-mini",
    "openai_temperature": 0.1,
    "history_preview_chars": 80,

    # --------------------------
    # Global Hotkey (app selector)
    # --------------------------
    "hotkey_default_modifiers": 4096 | 2048,  # Carbon controlKey | optionKey
    "hotkey_default_key_code": 0x23,  # P
    "hotkey_default_display": "⌃⌥P",

    # --------------------------
    # Keystroke Overlay
    # --------------------------
    "overlay_display_duration": 3.0,
    "overlay_max_lines": 3,

    # --------------------------
    # General Output
    # --------------------------
    "log_level": "INFO",  # Options: "DEBUG", "INFO", "WARNING", "ERROR"
}

# =============================================================================
# Directory Initialization
# =============================================================================

def _ensure_dir(path_value: Any, key: str) -> Path:
    """Resolve a filesystem path from CONFIG, ensure the directory exists, and
    return it as a Path. Raises RuntimeError on failure for clear surfacing."""
    try:
        p = Path(path_value).expanduser().resolve()
        p.mkdir(parents=True, exist_ok=True)
        return p
    except Exception as e:
        raise RuntimeError(
            f"Failed to initialize CONFIG['{key}'] directory ({path_value}): {e}"
        )


def backup_dir() -> Path:
    """Return the resolved backup directory, creating it if needed."""
    return _ensure_dir(CONFIG["backup_dir"], "backup_dir")

# =============================================================================
# Configuration Validation
# =============================================================================

def validate_config() -> None:
    """Validate configuration parameters for common issues."""
    if CONFIG["watch_poll_interval"] <= 0:
        raise ValueError(
            f"watch_poll_interval must be positive, got {CONFIG['watch_poll_interval']}"
        )

    if CONFIG["ai_timeout"] <= 0:
        raise ValueError(f"ai_timeout must be positive, got {CONFIG['ai_timeout']}")

    if CONFIG["ai_service_type"] not in ("gemini", "openai", "mock"):
        raise ValueError(
            f"ai_service_type must be 'gemini', 'openai' or 'mock', got {CONFIG['ai_service_type']!r}"
        )

    if CONFIG["overlay_max_lines"] < 1:
        raise ValueError(f"overlay_max_lines must be >= 1, got {CONFIG['overlay_max_lines']}")

    if CONFIG["overlay_display_duration"] <= 0:
        raise ValueError(
            f"overlay_display_duration must be positive, got {CONFIG['overlay_display_duration']}"
        )

# Run validation on import
validate_config()
