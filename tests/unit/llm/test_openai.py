"""
Tests for OpenAI Provider.

Tests OpenAI provider implementation with mocked API calls.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from schemarag.llm.models import LLMMessage, LLMRequest
from schemarag.llm.openai import OpenAIProvider


@pytest.fixture
def provider():
    """Create OpenAI provider instance."""
    return OpenAIProvider(
        api_key="sk-test-key-1234567890abcdefghij",
        model="gpt-4o",
        temperature=0.0,
        max_tokens=2000,
        timeout=30,
    )


def _response(content="SELECT 1", finish_reason="stop"):
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content
    mock_response.choices[0].finish_reason = finish_reason
    mock_response.model = "gpt-4o"
    mock_response.usage.prompt_tokens = 10
    mock_response.usage.completion_tokens = 5
    mock_response.usage.total_tokens = 15
    mock_response.id = "chatcmpl-123"
    return mock_response


class TestOpenAIProviderInit:
    def test_initialization(self, provider):
        assert provider.model == "gpt-4o"
        assert provider.temperature == 0.0
        assert provider.max_tokens == 2000
        assert provider.timeout == 30
        assert provider.provider_name == "openai"
        assert provider.client is not None


class TestGenerate:
    async def test_successful_generation(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_response('SELECT * FROM "users"'),
        ):
            request = LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
            response = await provider.generate(request)

        assert response.content == 'SELECT * FROM "users"'
        assert response.usage.total_tokens == 15
        assert response.finish_reason == "stop"
        assert response.provider == "openai"
        assert response.metadata["id"] == "chatcmpl-123"

    async def test_applies_defaults(self, provider):
        mock_create = AsyncMock(return_value=_response())

        with patch.object(provider.client.chat.completions, "create", mock_create):
            await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Test")])
            )

        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["temperature"] == 0.0
        assert call_kwargs["max_tokens"] == 2000
        assert call_kwargs["model"] == "gpt-4o"

    async def test_request_overrides_defaults(self, provider):
        mock_create = AsyncMock(return_value=_response())

        with patch.object(provider.client.chat.completions, "create", mock_create):
            await provider.generate(
                LLMRequest(
                    messages=[LLMMessage(role="user", content="Test")],
                    temperature=0.7,
                    max_tokens=500,
                )
            )

        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["temperature"] == 0.7
        assert call_kwargs["max_tokens"] == 500

    async def test_unknown_finish_reason_maps_to_stop(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_response(finish_reason="tool_calls"),
        ):
            response = await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Test")])
            )

        assert response.finish_reason == "stop"

    async def test_empty_content(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_response(content=None),
        ):
            response = await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Test")])
            )

        assert response.content == ""


class TestModelInfo:
    def test_known_model(self, provider):
        info = provider.get_model_info("gpt-4o-mini")
        assert info.context_window == 128000
        assert info.provider == "openai"

    def test_unknown_model_defaults(self, provider):
        info = provider.get_model_info("gpt-custom")
        assert info.max_output == 4096
