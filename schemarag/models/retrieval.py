"""
Retrieval result models.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class RetrievedColumn(BaseModel):
    """Column surfaced by retrieval."""

    name: str
    type: str = Field(default="unknown", description="Declared data type")
    is_foreign_key: bool = False
    related_table: str | None = None


class TableDescriptor(BaseModel):
    """Per-table aggregate of retrieved schema records."""

    name: str
    primary_key: str | None = None
    columns: list[RetrievedColumn] = Field(default_factory=list)
    score: float = Field(default=0.0, description="Best similarity seen for this table")

    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def get_column(self, name: str) -> RetrievedColumn | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None


class RelationshipMatch(BaseModel):
    """Foreign key relationship surfaced by retrieval."""

    from_table: str
    to_table: str
    score: float = 0.0


class RetrievalResult(BaseModel):
    """Output of the retrieval stage for one question."""

    tables: list[TableDescriptor] = Field(default_factory=list)
    relationships: list[RelationshipMatch] = Field(default_factory=list)
    match_count: int = 0
    graph_expanded: bool = Field(
        default=False, description="Whether graph expansion contributed to the tables"
    )
