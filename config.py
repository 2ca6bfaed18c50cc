"""Configuration management for the recipe importer."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("gemini", "openai", "anthropic", "ollama")

DEFAULT_MODELS = {
    "gemini": "gemini-2.0-flash",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-20241022",
    "ollama": "llama3",
}

DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"

# Content limits (characters)
MAX_CONTENT_LENGTH = 15000
MIN_CONTENT_LENGTH = 500


@dataclass
class BackendConfig:
    provider: str = "gemini"
    api_key: str = ""
    model: str | None = None
    endpoint: str | None = None  # Only used by ollama
    temperature: float | None = None
    max_output_tokens: int = 4096
    timeout: float = 60.0

    @property
    def model_name(self) -> str:
        """Configured model, or the provider's default."""
        return self.model or DEFAULT_MODELS.get(self.provider, "")


@dataclass
class ExtractionConfig:
    max_content_length: int = MAX_CONTENT_LENGTH
    min_content_length: int = MIN_CONTENT_LENGTH
    structured_data_direct: bool = False  # Skip the model when JSON-LD is found


# Default prompt for recipe extraction
DEFAULT_EXTRACTION_PROMPT = """You are a recipe extraction assistant. Extract the recipe information from the provided webpage content.

Respond ONLY with a JSON object in this format:
{
  "type": "food or drink",
  "title": "Recipe title",
  "description": "Brief description of the dish",
  "ingredients": [
    {"name": "ingredient name", "amount": "quantity", "unit": "measurement unit"}
  ],
  "instructions": "Step-by-step cooking instructions with clear separation.",
  "cookingTime": 30,
  "servings": 4,
  "allergens": ["list", "of", "allergens"],
  "categories": ["cuisine type", "meal type"],
  "glassware": "suggested glass type (if drink)",
  "ice": "ice type e.g. Cubes, Crushed (if drink)",
  "tools": ["list", "of", "tools"],
  "isAlcoholic": true
}

CRITICAL INSTRUCTIONS:
1. Pay extreme attention to ingredient quantities and units. Copy them EXACTLY, do not miss them.
2. If instructions are in a list, combine them but preserve order.
3. Ensure no HTML tags remain in the output.
4. Respond in the language of the provided text (or English if unclear).
5. Double check that all ingredients listed in the text are included.
6. If the page content appears to be a CAPTCHA, error page, or does not contain a recipe, respond with: {"error": "No recipe found in content"}.

RULES:
- cookingTime is in minutes, servings is a number
- ONLY the JSON, no other text!"""


@dataclass
class PromptsConfig:
    extraction: str = DEFAULT_EXTRACTION_PROMPT


@dataclass
class Config:
    backend: BackendConfig = field(default_factory=BackendConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    prompts: PromptsConfig = field(default_factory=PromptsConfig)


def _expand_env(value: str) -> str:
    """Replaces ${ENV_VAR} with environment variables."""
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, "")
    return value


def _positive_int(raw: dict, key: str, default: int) -> int:
    """Reads a positive integer, falling back to the default."""
    value = raw.get(key, default)
    try:
        value = int(value)
    except (ValueError, TypeError):
        logger.warning(f"Invalid value for '{key}': {value!r}, defaulting to {default}")
        return default
    if value <= 0:
        logger.warning(f"'{key}' must be positive, defaulting to {default}")
        return default
    return value


def load_config(config_path: Path | None = None) -> Config:
    """Loads configuration from YAML file."""
    if config_path is None:
        config_path = Path(__file__).parent / "config.yaml"

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    backend_raw = raw.get("backend", {}) or {}
    provider = str(backend_raw.get("provider", "gemini")).lower()
    if provider not in SUPPORTED_PROVIDERS:
        logger.warning(f"Unknown provider '{provider}', supported: {', '.join(SUPPORTED_PROVIDERS)}")

    temperature = backend_raw.get("temperature")
    backend = BackendConfig(
        provider=provider,
        api_key=_expand_env(backend_raw.get("api_key", "")) or "",
        model=_expand_env(backend_raw.get("model")) or None,
        endpoint=_expand_env(backend_raw.get("endpoint")) or None,
        temperature=float(temperature) if temperature is not None else None,
        max_output_tokens=_positive_int(backend_raw, "max_output_tokens", 4096),
        timeout=float(backend_raw.get("timeout", 60.0)),
    )

    extraction_raw = raw.get("extraction", {}) or {}
    extraction = ExtractionConfig(
        max_content_length=_positive_int(extraction_raw, "max_content_length", MAX_CONTENT_LENGTH),
        min_content_length=_positive_int(extraction_raw, "min_content_length", MIN_CONTENT_LENGTH),
        structured_data_direct=bool(extraction_raw.get("structured_data_direct", False)),
    )

    prompts_raw = raw.get("prompts", {}) or {}
    prompts = PromptsConfig(
        extraction=prompts_raw.get("extraction", DEFAULT_EXTRACTION_PROMPT),
    )

    return Config(backend=backend, extraction=extraction, prompts=prompts)
