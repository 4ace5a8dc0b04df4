"""
SchemaRAG Query Pipeline

Runs one question through the query path:
- SchemaRetriever → SQLSynthesizer → QueryExecutor (validation included)
- Each stage failure after retrieval becomes a partial, explanatory answer
- Only retrieval failures propagate to the caller
"""

import logging
import time
from typing import Any
from uuid import UUID

from schemarag.agents.executor import VALIDATION_STAGE, QueryExecutor
from schemarag.agents.sql import SQLSynthesizer
from schemarag.knowledge.retriever import SchemaRetriever
from schemarag.models.answer import (
    AnswerTable,
    ExecutionResult,
    QueryAnswer,
    QueryResultPayload,
)
from schemarag.models.errors import GenerationError
from schemarag.models.retrieval import RetrievalResult, TableDescriptor

logger = logging.getLogger(__name__)

NARRATIVE_ROW_LIMIT = 10
PAYLOAD_ROW_LIMIT = 50


# ============================================================================
# Narrative Formatting
# ============================================================================


def format_no_match(question: str) -> str:
    return (
        f'I couldn\'t find specific information related to "{question}" in the database schema.'
        "\n\nTry asking about:\n"
        "- Table names\n"
        "- Column names\n"
        "- Relationships between tables\n"
        "- Specific data types"
    )


def format_table_list(tables: list[TableDescriptor]) -> str:
    lines = []
    for position, table in enumerate(tables, start=1):
        suffix = f" (PK: {table.primary_key})" if table.primary_key else ""
        lines.append(f"{position}. {table.name}{suffix}")
    return "\n".join(lines)


def format_generation_failure(message: str, tables: list[TableDescriptor]) -> str:
    return (
        "I found relevant schema information but couldn't generate a query:\n\n"
        f"{message}\n\n"
        "Relevant Tables:\n"
        f"{format_table_list(tables)}"
    )


def format_empty_result(sql: str) -> str:
    return (
        "I executed the query but found no results.\n\n"
        f"Query used:\n```sql\n{sql}\n```\n\n"
        "This could mean:\n"
        "- The data doesn't exist in the database\n"
        "- The search criteria might need adjustment"
    )


def format_rows(result: ExecutionResult) -> str:
    """Render the first rows of a result as readable text."""
    lines = [f"Query Results ({result.row_count} row(s)):", ""]
    columns = result.columns or (list(result.rows[0].keys()) if result.rows else [])
    lines.append(f"Columns: {', '.join(columns)}")
    lines.append("")

    for position, row in enumerate(result.rows[:NARRATIVE_ROW_LIMIT], start=1):
        lines.append(f"Row {position}:")
        for column in columns:
            lines.append(f"  {column}: {row.get(column)}")
        lines.append("")

    remaining = result.row_count - NARRATIVE_ROW_LIMIT
    if remaining > 0:
        lines.append(f"... and {remaining} more row(s)")
        lines.append("")

    lines.append(f"SQL Query used:\n```sql\n{result.sql}\n```")
    return "\n".join(lines)


def format_execution_failure(result: ExecutionResult) -> str:
    if result.error_stage == VALIDATION_STAGE:
        return (
            "I generated a SQL query but it was rejected before running, "
            "so nothing was executed:\n\n"
            f"Reason: {result.error}\n\n"
            f"Generated Query:\n```sql\n{result.sql}\n```\n\n"
            "Please try rephrasing your question."
        )
    return (
        "I generated a SQL query but encountered an error executing it:\n\n"
        f"Error: {result.error}\n\n"
        f"Generated Query:\n```sql\n{result.sql}\n```\n\n"
        "Please try rephrasing your question."
    )


# ============================================================================
# Pipeline
# ============================================================================


class QueryPipeline:
    """
    Answers natural-language questions about one connection's data.

    Usage:
        pipeline = QueryPipeline(retriever, synthesizer, executor)
        answer = await pipeline.ask(connection_id, "who are the users")
        print(answer.narrative_answer)
    """

    def __init__(
        self,
        retriever: SchemaRetriever,
        synthesizer: SQLSynthesizer,
        executor: QueryExecutor,
    ):
        self.retriever = retriever
        self.synthesizer = synthesizer
        self.executor = executor

    async def ask(self, connection_id: UUID | str, question: str) -> QueryAnswer:
        """
        Answer a question.

        Raises:
            RetrievalError: If the question cannot be embedded or searched
        """
        connection_id = str(connection_id)
        start_time = time.perf_counter()

        retrieval = await self.retriever.retrieve(connection_id, question)
        if not retrieval.tables:
            logger.info(f"No schema matches for question on connection {connection_id}")
            return QueryAnswer(
                narrative_answer=format_no_match(question),
                match_count=retrieval.match_count,
            )

        base = self._base_fields(retrieval)

        try:
            sql = await self.synthesizer.generate(retrieval.tables, question)
        except GenerationError as e:
            logger.warning(f"SQL generation failed: {e.message}", extra={"stage": e.stage})
            return QueryAnswer(
                narrative_answer=format_generation_failure(e.message, retrieval.tables),
                error=e.message,
                **base,
            )

        result = await self.executor.execute(connection_id, sql)
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Answered question in {elapsed_ms:.0f}ms",
            extra={
                "connection_id": connection_id,
                "success": result.success,
                "row_count": result.row_count,
            },
        )

        if not result.success:
            return QueryAnswer(
                narrative_answer=format_execution_failure(result),
                sql_query=result.sql,
                error=result.error,
                **base,
            )

        if result.row_count == 0:
            narrative = format_empty_result(result.sql)
        else:
            narrative = format_rows(result)

        return QueryAnswer(
            narrative_answer=narrative,
            sql_query=result.sql,
            query_result=QueryResultPayload(
                rows=result.rows[:PAYLOAD_ROW_LIMIT],
                row_count=result.row_count,
            ),
            **base,
        )

    @staticmethod
    def _base_fields(retrieval: RetrievalResult) -> dict[str, Any]:
        return {
            "relevant_tables": [
                AnswerTable(
                    name=table.name,
                    primary_key=table.primary_key,
                    columns=table.column_names(),
                )
                for table in retrieval.tables
            ],
            "relationships": retrieval.relationships,
            "match_count": retrieval.match_count,
        }
