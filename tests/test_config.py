"""Tests for YAML configuration loading."""

import pytest

from config import DEFAULT_EXTRACTION_PROMPT, MAX_CONTENT_LENGTH, BackendConfig, load_config


@pytest.fixture
def write_config(tmp_path):
    def write(text: str):
        path = tmp_path / "config.yaml"
        path.write_text(text, encoding="utf-8")
        return path
    return write


def test_full_config(write_config, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    path = write_config(
        """
backend:
  provider: OpenAI
  api_key: ${OPENAI_API_KEY}
  model: gpt-4o
  temperature: 0.3
  timeout: 30
extraction:
  max_content_length: 8000
  structured_data_direct: true
prompts:
  extraction: "Only JSON."
"""
    )

    config = load_config(path)

    assert config.backend.provider == "openai"
    assert config.backend.api_key == "sk-from-env"
    assert config.backend.model_name == "gpt-4o"
    assert config.backend.temperature == 0.3
    assert config.backend.timeout == 30.0
    assert config.extraction.max_content_length == 8000
    assert config.extraction.structured_data_direct is True
    assert config.prompts.extraction == "Only JSON."


def test_empty_file_uses_defaults(write_config):
    config = load_config(write_config(""))

    assert config.backend.provider == "gemini"
    assert config.backend.api_key == ""
    assert config.backend.temperature is None
    assert config.extraction.max_content_length == MAX_CONTENT_LENGTH
    assert config.extraction.structured_data_direct is False
    assert config.prompts.extraction == DEFAULT_EXTRACTION_PROMPT


def test_missing_env_var_gives_empty_key(write_config, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    config = load_config(write_config("backend:\n  api_key: ${GEMINI_API_KEY}\n"))
    assert config.backend.api_key == ""


def test_invalid_limits_fall_back(write_config):
    config = load_config(write_config("extraction:\n  max_content_length: -5\n  min_content_length: lots\n"))
    assert config.extraction.max_content_length == MAX_CONTENT_LENGTH
    assert config.extraction.min_content_length == 500


def test_default_models():
    assert BackendConfig(provider="anthropic").model_name == "claude-3-5-haiku-20241022"
    assert BackendConfig(provider="ollama").model_name == "llama3"
    assert BackendConfig(provider="unknown").model_name == ""
