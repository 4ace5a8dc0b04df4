"""
OpenAI LLM Provider

BaseLLMProvider implementation for OpenAI chat models.
"""

import logging

import openai
import tiktoken
from openai import AsyncOpenAI

from schemarag.llm.base import BaseLLMProvider
from schemarag.llm.models import LLMRequest, LLMResponse, LLMUsage, ModelInfo

logger = logging.getLogger(__name__)

_CONTEXT_WINDOWS = {
    "gpt-4o": (128000, 16384),
    "gpt-4o-mini": (128000, 16384),
    "gpt-3.5-turbo": (16385, 4096),
}


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completion provider using the async SDK."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.0,
        max_tokens: int = 2000,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="openai",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, timeout=float(timeout))

        logger.info(f"OpenAI provider initialized with model: {model}", extra={"model": model})

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion using OpenAI API.

        Raises:
            openai.APIError: On API errors
            openai.APITimeoutError: On timeout
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            response = await self.client.chat.completions.create(
                model=request.model or self.model,
                messages=[{"role": m.role, "content": m.content} for m in request.messages],
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise

        llm_response = LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            ),
            finish_reason=self._map_finish_reason(response.choices[0].finish_reason),
            provider="openai",
            metadata={"id": response.id},
        )

        self._log_response(llm_response)
        return llm_response

    def count_tokens(self, text: str) -> int:
        """Count tokens using tiktoken."""
        try:
            encoding = tiktoken.encoding_for_model(self.model)
        except KeyError:
            encoding = tiktoken.get_encoding("cl100k_base")
        return len(encoding.encode(text))

    def get_model_info(self, model_name: str | None = None) -> ModelInfo:
        model = model_name or self.model
        context_window, max_output = _CONTEXT_WINDOWS.get(model, (128000, 4096))
        return ModelInfo(
            name=model,
            provider="openai",
            context_window=context_window,
            max_output=max_output,
        )

    def _map_finish_reason(self, reason: str | None) -> str:
        if reason in ("stop", "length", "content_filter"):
            return reason
        return "stop"
