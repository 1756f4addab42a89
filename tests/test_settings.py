import json
from datetime import datetime, timezone

from shortcut_tracker.settings import Settings, default_settings


def test_defaults(tmp_path):
    settings = Settings(tmp_path / "settings.json")
    assert settings.auto_sync_enabled is False
    assert settings.last_sync_time is None
    assert settings.ai_service_type == "gemini"
    assert settings.get("hotkey_display") == "⌃⌥P"
    assert settings.get("overlay_max_lines") == 3
    assert settings.gemini_api_key is None


def test_values_persist_across_instances(tmp_path):
    path = tmp_path / "settings.json"
    settings = Settings(path)
    when = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    settings.auto_sync_enabled = True
    settings.last_sync_time = when
    settings.gemini_api_key = "secret"

    reloaded = Settings(path)
    assert reloaded.auto_sync_enabled is True
    assert reloaded.last_sync_time == when
    assert reloaded.gemini_api_key == "secret"


def test_default_location_is_backup_dir(tracker_home):
    settings = Settings()
    settings.auto_sync_enabled = True
    assert (tracker_home / "settings.json").exists()


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("not json", encoding="utf-8")
    assert Settings(path).values == default_settings()


def test_unknown_keys_are_preserved(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"future_option": 7}), encoding="utf-8")
    settings = Settings(path)
    settings.auto_sync_enabled = True
    assert json.loads(path.read_text(encoding="utf-8"))["future_option"] == 7


def test_empty_text_settings_read_as_none():
    settings = Settings(in_memory=True)
    settings.openai_endpoint = ""
    assert settings.openai_endpoint is None
    settings.openai_endpoint = "https://example.test/v1/chat/completions"
    assert settings.openai_endpoint == "https://example.test/v1/chat/completions"
