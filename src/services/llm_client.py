"""
Thin async clients for the language model providers used to enrich bookmarks.

Each provider is reached over its REST API with a shared httpx.AsyncClient. The
analyzer only depends on the LLMClient protocol, so adding a provider means
adding a class here and a branch in create_llm_client().
"""
import logging
from typing import Any, Protocol

import httpx

from core.config import Settings

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"
OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"

# How much page text each provider is sent per request
ANTHROPIC_CONTENT_CHAR_LIMIT = 1000
OPENAI_CONTENT_CHAR_LIMIT = 4000


class LLMProviderError(Exception):
    """Raised when a provider request fails or returns something unusable."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class LLMClient(Protocol):
    """Interface the content analyzer uses to talk to a provider."""

    @property
    def provider_name(self) -> str:
        """Short identifier used in logs and errors."""
        ...

    @property
    def content_char_limit(self) -> int:
        """Maximum number of characters of page text to send per request."""
        ...

    async def complete(
        self,
        system: str,
        user_content: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the model's text answer for a single-turn conversation."""
        ...


async def _post_json(
    http_client: httpx.AsyncClient,
    provider: str,
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any],
) -> Any:  # noqa: ANN401
    try:
        response = await http_client.post(url, headers=headers, json=payload)
    except (httpx.HTTPError, UnicodeEncodeError) as e:
        raise LLMProviderError(provider, f"request failed: {type(e).__name__}") from e

    if not response.is_success:
        raise LLMProviderError(
            provider,
            f"HTTP {response.status_code}",
            status_code=response.status_code,
        )

    try:
        return response.json()
    except ValueError as e:
        raise LLMProviderError(provider, "response was not valid JSON") from e


class AnthropicClient:
    """Client for the Anthropic Messages API."""

    provider_name = "anthropic"
    content_char_limit = ANTHROPIC_CONTENT_CHAR_LIMIT

    def __init__(self, api_key: str, model: str, http_client: httpx.AsyncClient) -> None:
        self._api_key = api_key
        self._model = model
        self._http_client = http_client

    async def complete(
        self,
        system: str,
        user_content: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Send one user message and return the text of the first content block."""
        data = await _post_json(
            self._http_client,
            self.provider_name,
            ANTHROPIC_API_URL,
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": ANTHROPIC_API_VERSION,
                "content-type": "application/json",
            },
            payload={
                "model": self._model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "system": system,
                "messages": [{"role": "user", "content": user_content}],
            },
        )
        try:
            text = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMProviderError(self.provider_name, "unexpected response shape") from e
        if not isinstance(text, str):
            raise LLMProviderError(self.provider_name, "unexpected response shape")
        return text


class OpenAIClient:
    """Client for the OpenAI Chat Completions API."""

    provider_name = "openai"
    content_char_limit = OPENAI_CONTENT_CHAR_LIMIT

    def __init__(self, api_key: str, model: str, http_client: httpx.AsyncClient) -> None:
        self._api_key = api_key
        self._model = model
        self._http_client = http_client

    async def complete(
        self,
        system: str,
        user_content: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Send a system + user message pair and return the first choice's content."""
        data = await _post_json(
            self._http_client,
            self.provider_name,
            OPENAI_API_URL,
            headers={"Authorization": f"Bearer {self._api_key}"},
            payload={
                "model": self._model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": user_content},
                ],
            },
        )
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMProviderError(self.provider_name, "unexpected response shape") from e
        # content is null when the model refuses or only returns tool calls
        return text if isinstance(text, str) else ""


def create_llm_client(
    provider: str,
    api_key: str,
    http_client: httpx.AsyncClient,
    settings: Settings,
) -> LLMClient:
    """
    Build the client for the configured provider.

    Raises:
        ValueError: If the provider is not supported.
    """
    if provider == "anthropic":
        return AnthropicClient(api_key, settings.anthropic_model, http_client)
    if provider == "openai":
        return OpenAIClient(api_key, settings.openai_model, http_client)
    raise ValueError(f"Unsupported AI provider: {provider}")
