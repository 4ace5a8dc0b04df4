"""
SQLSynthesizer: one-shot PostgreSQL generation from retrieved schema.

Renders the retrieved tables and their foreign keys into a prompt, makes a
single low-temperature generation call and returns the cleaned statement.
"""

import logging
import re

from schemarag.llm.base import BaseLLMProvider
from schemarag.llm.models import LLMMessage, LLMRequest
from schemarag.models.errors import GenerationError
from schemarag.models.retrieval import TableDescriptor
from schemarag.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```[a-zA-Z]*\n?")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fence markers from a model response."""
    return _FENCE_PATTERN.sub("", text).strip()


def build_prompt_context(tables: list[TableDescriptor]) -> tuple[list[dict], list[dict]]:
    """
    Template variables for the SQL prompt.

    Returns:
        (tables, relationships); a relationship's target column is ``id``
        because retrieved columns only carry the referenced table
    """
    table_context = []
    relationships = []
    for table in tables:
        foreign_keys = [c for c in table.columns if c.is_foreign_key]
        table_context.append(
            {
                "name": table.name,
                "primary_key": table.primary_key,
                "columns": [
                    {
                        "name": c.name,
                        "type": c.type or "unknown",
                        "is_foreign_key": c.is_foreign_key,
                    }
                    for c in table.columns
                ],
                "foreign_keys": [
                    {"name": c.name, "related_table": c.related_table} for c in foreign_keys
                ],
            }
        )
        for column in foreign_keys:
            if column.related_table:
                relationships.append(
                    {
                        "from_table": table.name,
                        "from_column": column.name,
                        "to_table": column.related_table,
                        "to_column": "id",
                    }
                )
    return table_context, relationships


class SQLSynthesizer:
    """
    Generates a single SQL statement for a question.

    Usage:
        synthesizer = SQLSynthesizer(provider)
        sql = await synthesizer.generate(retrieval.tables, "who are the users")
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        prompts: PromptLoader | None = None,
        temperature: float = 0.1,
        max_tokens: int = 500,
    ):
        self.provider = provider
        self.prompts = prompts or PromptLoader()
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_messages(self, tables: list[TableDescriptor], question: str) -> list[LLMMessage]:
        table_context, relationships = build_prompt_context(tables)
        return [
            LLMMessage(role="system", content=self.prompts.render("sql_system.md")),
            LLMMessage(
                role="user",
                content=self.prompts.render(
                    "sql_generator.md",
                    tables=table_context,
                    relationships=relationships,
                    question=question,
                ),
            ),
        ]

    async def generate(self, tables: list[TableDescriptor], question: str) -> str:
        """
        Generate SQL for a question.

        Raises:
            GenerationError: If the prompt does not fit the model's context
                window, the model call fails, or it returns nothing usable
                (empty, or without a SELECT)
        """
        messages = self.build_messages(tables, question)
        self._check_prompt_budget(messages)
        request = LLMRequest(
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        try:
            response = await self.provider.generate(request)
        except Exception as e:
            logger.error(f"SQL generation call failed: {e}")
            raise GenerationError(
                "sql_synthesizer", f"Failed to generate SQL query: {e}"
            ) from e

        sql = strip_code_fences(response.content or "")
        if not sql:
            raise GenerationError("sql_synthesizer", "No response content from model")
        if "SELECT" not in sql.upper():
            raise GenerationError(
                "sql_synthesizer",
                "Generated query must include SELECT statement",
                context={"sql": sql},
            )

        logger.info(f"Generated SQL query: {sql[:100]}", extra={"tables": len(tables)})
        return sql

    def _check_prompt_budget(self, messages: list[LLMMessage]) -> None:
        prompt_tokens = sum(self.provider.count_tokens(m.content) for m in messages)
        model_info = self.provider.get_model_info()
        logger.debug(
            f"SQL prompt is ~{prompt_tokens} tokens for {model_info.name}",
            extra={"prompt_tokens": prompt_tokens, "context_window": model_info.context_window},
        )
        if prompt_tokens + self.max_tokens > model_info.context_window:
            raise GenerationError(
                "sql_synthesizer",
                f"Schema context too large: {prompt_tokens} prompt tokens plus "
                f"{self.max_tokens} answer tokens exceed the "
                f"{model_info.context_window}-token window of {model_info.name}",
                context={
                    "prompt_tokens": prompt_tokens,
                    "context_window": model_info.context_window,
                },
            )
