import os
from typing import List, Optional

from .ai_service import (
    AIService,
    APIKeyMissingError,
    ExtractedShortcut,
    ParsingError,
    build_prompt,
    check_response,
    parse_shortcuts_json,
    post_json,
)
from .config import CONFIG
from .settings import Settings
from .utils import info

GEMINI_MODELS = tuple(CONFIG["gemini_models"])


# -----------------------------
# Gemini client
# -----------------------------
class GeminiService(AIService):
    """
    Shortcut extraction through Google's Gemini generateContent API.

    The API key is resolved on every call: explicit key, then settings, then
    the GEMINI_API_KEY environment variable.
    """
    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, settings: Optional[Settings] = None) -> None:
        super().__init__()
        self.api_key = api_key
        self.settings = settings if settings is not None else Settings(in_memory=True)

    # -----------------------------
    # Configuration
    # -----------------------------
    def resolve_api_key(self) -> Optional[str]:
        return self.api_key or self.settings.gemini_api_key or os.getenv("GEMINI_API_KEY") or None

    @property
    def has_api_key(self) -> bool:
        return self.resolve_api_key() is not None

    @property
    def model(self) -> str:
        chosen = self.settings.gemini_model
        return chosen if chosen in GEMINI_MODELS else CONFIG["gemini_model"]

    @property
    def endpoint(self) -> str:
        return f"{CONFIG['gemini_endpoint']}{self.model}:generateContent"

    # -----------------------------
    # Extraction
    # -----------------------------
    def extract_shortcuts(self, text: str) -> List[ExtractedShortcut]:
        """
        Ask Gemini for the shortcuts mentioned in `text`.

        Raises:
            APIKeyMissingError: No key configured, or the API rejected it.
            AITimeoutError / AINetworkError: Transport failures.
            RateLimitExceededError, ParsingError, InvalidResponseError.
        """
        key = self.resolve_api_key()
        if not key:
            raise APIKeyMissingError()

        payload = {
            "contents": [
                {"parts": [{"text": build_prompt(self.settings.gemini_custom_prompt, text)}]}
            ]
        }
        info(f"Calling Gemini ({self.model}), text length: {len(text)}")
        resp = post_json(
            self.endpoint,
            payload,
            timeout=CONFIG["ai_timeout"],
            params={"key": key},
            headers={"Content-Type": "application/json"},
        )
        check_response(resp)

        try:
            data = resp.json()
        except ValueError as e:
            raise ParsingError(f"Failed to decode Gemini response: {e}") from e

        try:
            content = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ParsingError("No text content in response")
        if not isinstance(content, str):
            raise ParsingError("No text content in response")

        self.last_raw_response = content
        return parse_shortcuts_json(content)
