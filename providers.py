"""Sends extraction prompts to the configured language model backend."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from config import (
    DEFAULT_OLLAMA_ENDPOINT,
    MAX_CONTENT_LENGTH,
    BackendConfig,
    PromptsConfig,
)
from models import ProviderError, UnsupportedBackend

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

CONNECT_TIMEOUT = 10.0


@dataclass(frozen=True)
class ExtractionPrompt:
    """Fixed extraction instruction paired with the page content."""
    system: str
    content: str

    @property
    def user_message(self) -> str:
        return f"Extract recipe from:\n{self.content}"

    @property
    def combined(self) -> str:
        """Instruction and content as one text, for single-message APIs."""
        return f"{self.system}\n\nWebpage content:\n{self.content}"


def build_prompt(
    content: str,
    prompts: PromptsConfig | None = None,
    max_length: int = MAX_CONTENT_LENGTH,
) -> ExtractionPrompt:
    """Builds the extraction prompt, capping content to the model input limit."""
    prompts = prompts or PromptsConfig()
    if len(content) > max_length:
        logger.info(f"Content truncated from {len(content)} to {max_length} characters")
        content = content[:max_length]
    return ExtractionPrompt(system=prompts.extraction, content=content)


# =============================================================================
# BACKENDS
# =============================================================================

class ModelBackend(ABC):
    """One language model API. Returns the raw text of the answer."""

    name = ""
    requires_api_key = True
    default_temperature = 0.2

    def __init__(self, config: BackendConfig):
        self.config = config

    @property
    def temperature(self) -> float:
        if self.config.temperature is not None:
            return self.config.temperature
        return self.default_temperature

    def _require_api_key(self) -> None:
        if self.requires_api_key and not self.config.api_key:
            raise ProviderError(self.name, "API key not configured")

    @abstractmethod
    async def invoke(self, prompt: ExtractionPrompt) -> str:
        ...


class GeminiBackend(ModelBackend):
    name = "gemini"

    async def invoke(self, prompt: ExtractionPrompt) -> str:
        self._require_api_key()
        client = genai.Client(api_key=self.config.api_key)

        try:
            response = await client.aio.models.generate_content(
                model=self.config.model_name,
                contents=[prompt.combined],
                config=genai_types.GenerateContentConfig(
                    temperature=self.temperature,
                    response_mime_type="application/json",
                    max_output_tokens=self.config.max_output_tokens,
                ),
            )
        except genai_errors.APIError as e:
            raise ProviderError(self.name, str(e)) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"Request failed: {e}") from e

        return response.text or ""


class HttpBackend(ModelBackend):
    """Backend spoken to over plain JSON HTTP."""

    def __init__(self, config: BackendConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(config)
        self._transport = transport

    async def _post_json(self, url: str, payload: dict, headers: dict | None = None) -> dict[str, Any]:
        timeout = httpx.Timeout(self.config.timeout, connect=CONNECT_TIMEOUT)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"Request failed: {e}") from e

        if response.is_error:
            raise ProviderError(self.name, f"HTTP {response.status_code}: {_error_message(response)}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(self.name, "Response is not JSON") from e
        if not isinstance(data, dict):
            raise ProviderError(self.name, "Unexpected response shape")
        return data


def _error_message(response: httpx.Response) -> str:
    """Pulls the API error message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or "API error"

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    return response.text[:200] or "API error"


class OpenAIBackend(HttpBackend):
    name = "openai"

    async def invoke(self, prompt: ExtractionPrompt) -> str:
        self._require_api_key()
        data = await self._post_json(
            self.config.endpoint or OPENAI_URL,
            {
                "model": self.config.model_name,
                "messages": [
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": prompt.user_message},
                ],
                "temperature": self.temperature,
                "max_tokens": self.config.max_output_tokens,
            },
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )
        choices = data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""


class AnthropicBackend(HttpBackend):
    name = "anthropic"

    async def invoke(self, prompt: ExtractionPrompt) -> str:
        self._require_api_key()
        data = await self._post_json(
            self.config.endpoint or ANTHROPIC_URL,
            {
                "model": self.config.model_name,
                "max_tokens": self.config.max_output_tokens,
                "system": prompt.system,
                "messages": [{"role": "user", "content": prompt.user_message}],
                "temperature": self.temperature,
            },
            headers={
                "x-api-key": self.config.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )
        blocks = data.get("content") or []
        return "".join(
            block.get("text", "") for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )


class OllamaBackend(HttpBackend):
    """Locally hosted model through the Ollama chat API."""

    name = "ollama"
    requires_api_key = False
    default_temperature = 0.1

    async def invoke(self, prompt: ExtractionPrompt) -> str:
        base_url = (self.config.endpoint or DEFAULT_OLLAMA_ENDPOINT).rstrip("/")
        data = await self._post_json(
            f"{base_url}/api/chat",
            {
                "model": self.config.model_name,
                "messages": [
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": prompt.user_message},
                ],
                "format": "json",  # Force JSON output mode
                "stream": False,
                "options": {"temperature": self.temperature},
            },
        )
        return (data.get("message") or {}).get("content") or ""


BACKENDS: dict[str, type[ModelBackend]] = {
    "gemini": GeminiBackend,
    "openai": OpenAIBackend,
    "anthropic": AnthropicBackend,
    "ollama": OllamaBackend,
}


def get_backend(config: BackendConfig) -> ModelBackend:
    """Creates the adapter for the configured provider."""
    backend_class = BACKENDS.get((config.provider or "").lower())
    if backend_class is None:
        raise UnsupportedBackend(config.provider)
    return backend_class(config)


async def invoke(
    content: str,
    backend_config: BackendConfig,
    prompts: PromptsConfig | None = None,
    max_length: int = MAX_CONTENT_LENGTH,
    backend: ModelBackend | None = None,
) -> str:
    """
    Runs one extraction request against exactly one backend.

    Raises:
        UnsupportedBackend: For unknown provider identifiers
        ProviderError: When the backend rejects or fails the request
    """
    if backend is None:
        backend = get_backend(backend_config)
    prompt = build_prompt(content, prompts, max_length)

    logger.info(f"Sending {len(prompt.content)} characters to {backend.name} ({backend.config.model_name})...")
    logger.debug(f"AI input preview: {prompt.content[:200]}...")

    output = await backend.invoke(prompt)

    logger.debug(f"AI raw response: {output[:500]}")
    return output
