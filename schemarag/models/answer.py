"""
Validation, execution and answer models.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from schemarag.models.retrieval import RelationshipMatch


class ValidationResult(BaseModel):
    """Outcome of SQL validation and repair."""

    is_valid: bool
    sql: str = Field(..., description="Statement as submitted")
    repaired_sql: str | None = Field(None, description="Proposed repaired statement")
    error: str | None = None
    repairable: bool = False

    @property
    def preferred_sql(self) -> str | None:
        """Statement to execute, or None when execution must be skipped."""
        if self.is_valid:
            return self.sql
        if self.repairable and self.repaired_sql:
            return self.repaired_sql
        return None


class ExecutionResult(BaseModel):
    """Outcome of executing a statement against a target database."""

    success: bool
    sql: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    columns: list[str] = Field(default_factory=list)
    error: str | None = None
    error_stage: str | None = Field(None, description="Stage that failed, if any")
    repaired: bool = Field(default=False, description="Whether a repaired statement was run")


class QueryResultPayload(BaseModel):
    """Row payload returned to callers."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0


class AnswerTable(BaseModel):
    """Table summary included in an answer."""

    name: str
    primary_key: str | None = None
    columns: list[str] = Field(default_factory=list)


class QueryAnswer(BaseModel):
    """Answer to a natural-language question."""

    narrative_answer: str
    relevant_tables: list[AnswerTable] = Field(default_factory=list)
    relationships: list[RelationshipMatch] = Field(default_factory=list)
    match_count: int = 0
    sql_query: str | None = None
    query_result: QueryResultPayload | None = None
    error: str | None = None
