"""
Column classification models.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ColumnRole(str, Enum):
    """Semantic role of a column."""

    IDENTIFIER = "identifier"
    DESCRIPTION = "description"
    ATTRIBUTE = "attribute"


class ColumnClassification(BaseModel):
    """Role and semantically related columns of one column."""

    role: ColumnRole
    related_columns: list[str] = Field(
        default_factory=list, description="Sorted names of related columns in the same table"
    )


class TableClassification(BaseModel):
    """Classification of every column in a table."""

    table_name: str
    columns: dict[str, ColumnClassification] = Field(default_factory=dict)

    def role_of(self, column_name: str) -> ColumnRole | None:
        entry = self.columns.get(column_name)
        return entry.role if entry else None

    def identifiers(self) -> list[str]:
        return sorted(
            name for name, entry in self.columns.items() if entry.role == ColumnRole.IDENTIFIER
        )
