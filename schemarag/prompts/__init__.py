"""Prompt templates for text generation."""

from schemarag.prompts.loader import PromptLoader

__all__ = ["PromptLoader"]
