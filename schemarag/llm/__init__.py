"""
LLM Provider Module

Text-generation abstraction over OpenAI and Anthropic models.

Usage:
    from schemarag.llm import LLMProviderFactory, LLMRequest, LLMMessage
    from schemarag.config import get_settings

    provider = LLMProviderFactory.create_default_provider(get_settings().llm)
    response = await provider.generate(
        LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
    )
"""

from schemarag.llm.anthropic import AnthropicProvider
from schemarag.llm.base import BaseLLMProvider
from schemarag.llm.factory import LLMProviderFactory
from schemarag.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    ModelInfo,
)
from schemarag.llm.openai import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "BaseLLMProvider",
    "LLMMessage",
    "LLMProviderFactory",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    "ModelInfo",
    "OpenAIProvider",
]
