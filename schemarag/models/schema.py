"""
Schema snapshot models.

A SchemaSnapshot is the normalized, introspected shape of one target
database: tables and views with their columns, keys, unique constraints
and index definitions. Snapshots are produced whole or not at all.
"""

from __future__ import annotations

import hashlib
import json
from typing import Literal

from pydantic import BaseModel, Field


class ColumnSchema(BaseModel):
    """A single column as declared in the database."""

    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Declared data type")
    is_nullable: bool = Field(default=True, description="Whether column can be NULL")
    default: str | None = Field(None, description="Default expression if any")
    ordinal_position: int = Field(..., ge=1, description="1-based position in the table")
    max_length: int | None = Field(None, description="Character maximum length if any")


class ForeignKey(BaseModel):
    """Foreign key from a column to another table's column."""

    column: str = Field(..., description="Referencing column")
    target_table: str = Field(..., description="Referenced table")
    target_column: str = Field(..., description="Referenced column")


class IndexDefinition(BaseModel):
    """Index as reported by the catalog."""

    name: str = Field(..., description="Index name")
    definition: str = Field(..., description="CREATE INDEX definition text")


class TableSchema(BaseModel):
    """Table or view with its columns and constraints."""

    name: str = Field(..., description="Table name")
    kind: Literal["table", "view"] = Field(default="table", description="Relation kind")
    columns: list[ColumnSchema] = Field(default_factory=list)
    primary_keys: list[str] = Field(default_factory=list)
    foreign_keys: list[ForeignKey] = Field(default_factory=list)
    unique_columns: list[str] = Field(default_factory=list)
    indexes: list[IndexDefinition] = Field(default_factory=list)

    def get_column(self, name: str) -> ColumnSchema | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def foreign_key_for(self, column_name: str) -> ForeignKey | None:
        for fk in self.foreign_keys:
            if fk.column == column_name:
                return fk
        return None

    @property
    def primary_key(self) -> str | None:
        """First primary key column, used to key indexed documents."""
        return self.primary_keys[0] if self.primary_keys else None


class SchemaSnapshot(BaseModel):
    """Complete introspected schema of one database."""

    tables: list[TableSchema] = Field(default_factory=list)

    def get_table(self, name: str) -> TableSchema | None:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def content_hash(self) -> str:
        """Stable digest of the snapshot contents."""
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
