"""
Tests for LLM Provider Factory.

Tests provider creation and configuration checks.
"""

import pytest

from schemarag.config import LLMSettings
from schemarag.llm.anthropic import AnthropicProvider
from schemarag.llm.factory import LLMProviderFactory
from schemarag.llm.openai import OpenAIProvider


@pytest.fixture
def mock_config():
    """Mock LLM configuration with both providers configured."""
    return LLMSettings(
        default_provider="openai",
        openai_api_key="sk-test-openai-key-1234567890",
        openai_model="gpt-4o",
        openai_model_mini="gpt-4o-mini",
        anthropic_api_key="sk-ant-REDACTED",
        anthropic_model="claude-3-5-sonnet-20241022",
        anthropic_model_mini="claude-3-5-haiku-20241022",
        temperature=0.1,
        max_tokens=500,
        timeout=30,
    )


class TestProviderRegistry:
    """Test provider registry."""

    def test_providers_registered(self):
        assert set(LLMProviderFactory.PROVIDERS) == {"openai", "anthropic"}
        assert LLMProviderFactory.PROVIDERS["openai"] == OpenAIProvider
        assert LLMProviderFactory.PROVIDERS["anthropic"] == AnthropicProvider


class TestCreateProvider:
    """Test create_provider method."""

    def test_create_openai_provider(self, mock_config):
        provider = LLMProviderFactory.create_provider("openai", mock_config)
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o"
        assert provider.temperature == 0.1
        assert provider.max_tokens == 500

    def test_create_openai_mini(self, mock_config):
        provider = LLMProviderFactory.create_provider("openai", mock_config, model_type="mini")
        assert provider.model == "gpt-4o-mini"

    def test_create_anthropic_provider(self, mock_config):
        provider = LLMProviderFactory.create_provider("anthropic", mock_config)
        assert isinstance(provider, AnthropicProvider)
        assert provider.model == "claude-3-5-sonnet-20241022"

    def test_unknown_provider(self, mock_config):
        with pytest.raises(ValueError, match="Unknown provider type"):
            LLMProviderFactory.create_provider("google", mock_config)

    def test_missing_openai_key(self):
        config = LLMSettings(default_provider="openai", openai_api_key=None)
        with pytest.raises(ValueError, match="OpenAI API key is required"):
            LLMProviderFactory.create_provider("openai", config)

    def test_missing_anthropic_key(self):
        config = LLMSettings(anthropic_api_key=None)
        with pytest.raises(ValueError, match="Anthropic API key is required"):
            LLMProviderFactory.create_provider("anthropic", config)


class TestCreateDefaultProvider:
    def test_uses_default_provider(self, mock_config):
        mock_config.default_provider = "anthropic"
        provider = LLMProviderFactory.create_default_provider(mock_config)
        assert isinstance(provider, AnthropicProvider)
