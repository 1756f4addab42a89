"""
OpenAI-compatible chat completions client.

Works against any endpoint speaking the /v1/chat/completions dialect:
SiliconFlow (default), OpenAI itself, or a custom URL.
"""

from typing import List, Optional

from .ai_service import (
    AIService,
    APIKeyMissingError,
    ExtractedShortcut,
    InvalidResponseError,
    ParsingError,
    build_prompt,
    check_response,
    parse_shortcuts_json,
    post_json,
)
from .config import CONFIG
from .settings import Settings
from .utils import info

PROVIDERS = CONFIG["openai_providers"]

SYSTEM_MESSAGE = (
    "You are a helpful assistant that extracts keyboard shortcuts from text. "
    "Always respond with valid JSON only."
)


def provider_defaults(provider: str) -> dict:
    return PROVIDERS.get(provider, PROVIDERS[CONFIG["openai_provider"]])


class OpenAICompatibleService(AIService):
    """Shortcut extraction via an OpenAI-style chat completions endpoint."""
    name = "openai"

    def __init__(self, api_key: Optional[str] = None, settings: Optional[Settings] = None) -> None:
        super().__init__()
        self.api_key = api_key
        self.settings = settings if settings is not None else Settings(in_memory=True)

    @property
    def provider(self) -> str:
        chosen = self.settings.openai_provider
        return chosen if chosen in PROVIDERS else CONFIG["openai_provider"]

    @property
    def endpoint(self) -> str:
        return self.settings.openai_endpoint or provider_defaults(self.provider)["endpoint"]

    @property
    def model(self) -> str:
        if self.settings.openai_model:
            return self.settings.openai_model
        models = provider_defaults(self.provider)["models"]
        return models[0] if models else CONFIG["openai_fallback_model"]

    def resolve_api_key(self) -> Optional[str]:
        return self.api_key or self.settings.openai_api_key

    @property
    def has_api_key(self) -> bool:
        return self.resolve_api_key() is not None

    def extract_shortcuts(self, text: str) -> List[ExtractedShortcut]:
        key = self.resolve_api_key()
        if not key:
            raise APIKeyMissingError()

        endpoint = self.endpoint
        if not endpoint:
            # "custom" provider with no URL configured
            raise InvalidResponseError("No endpoint configured for the custom provider.")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": build_prompt(self.settings.openai_custom_prompt, text)},
            ],
            "temperature": CONFIG["openai_temperature"],
        }
        info(f"Calling {self.provider} ({self.model}) at {endpoint}")
        resp = post_json(
            endpoint,
            payload,
            timeout=CONFIG["ai_timeout"],
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {key}",
            },
        )
        check_response(resp)

        try:
            data = resp.json()
        except ValueError as e:
            raise ParsingError(f"Failed to decode response: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ParsingError("No content in response")
        if not isinstance(content, str):
            raise ParsingError("No content in response")

        self.last_raw_response = content
        return parse_shortcuts_json(content)
