"""
Shared pieces of the AI shortcut-extraction gateway.

A provider sends a prompt containing the user's text and gets back a model
reply that should hold a JSON array of {"title", "keys", "description",
"category"} objects. Everything provider-independent lives here: the error
hierarchy, the extracted-shortcut value type, prompt building, HTTP status
mapping and the tolerant JSON array parsing.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .keys import normalize_keys
from .models import Shortcut

logger = logging.getLogger(__name__)


# -----------------------------
# Errors
# -----------------------------
class AIServiceError(Exception):
    """Base class for AI extraction failures."""


class APIKeyMissingError(AIServiceError):
    def __init__(self, message: str = "API key is missing. Please configure your API key in settings.") -> None:
        super().__init__(message)


class AINetworkError(AIServiceError):
    def __init__(self, cause: Any) -> None:
        super().__init__(f"Network error: {cause}")
        self.cause = cause


class InvalidResponseError(AIServiceError):
    def __init__(self, message: str = "Invalid response from AI service.") -> None:
        super().__init__(message)


class ParsingError(AIServiceError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Failed to parse shortcuts: {detail}")
        self.detail = detail


class RateLimitExceededError(AIServiceError):
    def __init__(self, message: str = "API rate limit exceeded. Please try again later.") -> None:
        super().__init__(message)


class AITimeoutError(AIServiceError):
    def __init__(self, message: str = "Request timed out. Please try again.") -> None:
        super().__init__(message)


# -----------------------------
# Extracted shortcut
# -----------------------------
@dataclass
class ExtractedShortcut:
    """A shortcut proposed by a provider, not yet stored."""
    title: str
    keys: str
    description: Optional[str] = None
    category: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()), compare=False)

    def to_shortcut(self) -> Shortcut:
        return Shortcut(
            title=self.title,
            keys=normalize_keys(self.keys),
            description=self.description,
            category=self.category,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict with absent optional fields omitted."""
        out: Dict[str, Any] = {"title": self.title, "keys": self.keys}
        if self.description is not None:
            out["description"] = self.description
        if self.category is not None:
            out["category"] = self.category
        return out


# -----------------------------
# Prompt
# -----------------------------
DEFAULT_PROMPT = """Analyze the following text and extract all keyboard shortcuts mentioned. For each shortcut, provide:
1. title: A brief name for the action (e.g., "Save", "Copy")
2. keys: The key combination using macOS symbols (⌘ for Command, ⇧ for Shift, ⌥ for Option, ⌃ for Control)
3. description: A brief description of what the shortcut does (optional)
4. category: A category like "File", "Edit", "View", "Navigation", "Format", "Tools" (optional)

Return the results as a JSON array with objects containing these fields.
If no shortcuts are found, return an empty array [].

Example output format:
[
    {"title": "Save", "keys": "⌘S", "description": "Save the current document", "category": "File"},
    {"title": "Copy", "keys": "⌘C", "description": "Copy selected text", "category": "Edit"}
]

Text to analyze:
---
{{TEXT}}
---

Return only the JSON array, no additional text."""

TEXT_PLACEHOLDER = "{{TEXT}}"


def build_prompt(template: Optional[str], text: str) -> str:
    """Substitute `text` into `template` (DEFAULT_PROMPT when empty)."""
    return (template or DEFAULT_PROMPT).replace(TEXT_PLACEHOLDER, text)


# -----------------------------
# Response handling
# -----------------------------
_DECODER = json.JSONDecoder()


def extract_json_array(text: str) -> str:
    """
    Pull the JSON array out of a model reply that may carry prose before or
    after it. The first "[" that starts a complete JSON array wins; when none
    does, the text from the first "[" on is returned so the parser reports
    the error.
    """
    trimmed = text.strip()
    first = trimmed.find("[")
    if first == -1:
        return "[]"
    start = first
    while start != -1:
        try:
            value, end = _DECODER.raw_decode(trimmed, start)
        except ValueError:
            value = None
        if isinstance(value, list):
            return trimmed[start:end]
        start = trimmed.find("[", start + 1)
    return trimmed[first:]


def parse_shortcuts_json(text: str) -> List[ExtractedShortcut]:
    """Decode the model reply into ExtractedShortcuts. Raises ParsingError."""
    try:
        items = json.loads(extract_json_array(text))
    except ValueError as e:
        raise ParsingError(str(e)) from e

    if not isinstance(items, list):
        raise ParsingError("Expected a JSON array of shortcuts")

    shortcuts: List[ExtractedShortcut] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ParsingError(f"Item {i} is not an object")
        title, keys = item.get("title"), item.get("keys")
        if not isinstance(title, str) or not isinstance(keys, str):
            raise ParsingError(f"Item {i} is missing a string 'title' or 'keys'")
        description = item.get("description")
        category = item.get("category")
        shortcuts.append(
            ExtractedShortcut(
                title=title,
                keys=keys,
                description=description if isinstance(description, str) else None,
                category=category if isinstance(category, str) else None,
            )
        )
    return shortcuts


def _error_message(resp: requests.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if isinstance(message, str):
            return message
    return None


def check_response(resp: requests.Response) -> None:
    """Map a non-2xx HTTP status onto the AIServiceError hierarchy."""
    code = resp.status_code
    if 200 <= code < 300:
        return
    if code == 429:
        raise RateLimitExceededError()
    if code in (401, 403):
        raise APIKeyMissingError()
    message = _error_message(resp)
    if message is not None:
        raise ParsingError(f"API Error ({code}): {message}")
    raise InvalidResponseError()


def post_json(url: str, payload: Dict[str, Any], timeout: float, **kwargs: Any) -> requests.Response:
    """
    Single POST attempt with transport errors mapped to AIServiceError.

    Raises:
        AITimeoutError: The request exceeded `timeout`.
        AINetworkError: Any other transport failure.
    """
    try:
        return requests.post(url, json=payload, timeout=timeout, **kwargs)
    except requests.exceptions.Timeout as e:
        logger.warning("AI request to %s timed out after %ss", url.split("?")[0], timeout)
        raise AITimeoutError() from e
    except requests.exceptions.RequestException as e:
        raise AINetworkError(e) from e


# -----------------------------
# Service base
# -----------------------------
class AIService:
    """
    Interface for shortcut extraction providers.

    Attributes:
        last_raw_response (Optional[str]): Model text from the last call.
    """
    name = "ai"

    def __init__(self) -> None:
        self.last_raw_response: Optional[str] = None

    def extract_shortcuts(self, text: str) -> List[ExtractedShortcut]:
        raise NotImplementedError


def create_ai_service(settings, service_type: Optional[str] = None) -> AIService:
    """Build the provider selected by `service_type` or settings.ai_service_type."""
    from .gemini import GeminiService
    from .mock_ai import MockAIService
    from .openai_compat import OpenAICompatibleService

    kind = (service_type or settings.ai_service_type).lower()
    if kind == "gemini":
        return GeminiService(settings=settings)
    if kind == "openai":
        return OpenAICompatibleService(settings=settings)
    if kind == "mock":
        return MockAIService()
    raise ValueError(f"Unknown AI service type: {kind!r}")
