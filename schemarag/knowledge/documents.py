"""
Schema document builders.

Turns tables of a SchemaSnapshot into plain-text documents for embedding:
one document per (primary key, column) pair and one per foreign key.
Also provides the token estimate and the token-bounded batching used
when calling the embedding model.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from collections.abc import Callable
from typing import TypeVar

from schemarag.knowledge.classifier import extract_index_columns
from schemarag.models.schema import ColumnSchema, ForeignKey, SchemaSnapshot, TableSchema

T = TypeVar("T")

DEFAULT_CHARS_PER_TOKEN = 4
DEFAULT_MAX_BATCH_TOKENS = 4000


@dataclass(frozen=True)
class SchemaDocument:
    """Text to embed plus the structured facts stored alongside it."""

    text: str
    table_name: str
    column_name: str
    data_type: str
    is_foreign_key: bool = False
    related_table: str | None = None
    relationship_type: str | None = None


def _type_label(column: ColumnSchema) -> str:
    if column.max_length:
        return f"{column.data_type}({column.max_length})"
    return column.data_type


def _kind_label(table: TableSchema) -> str:
    return "VIEW" if table.kind == "view" else "BASE TABLE"


def column_document_text(table: TableSchema, column: ColumnSchema, primary_key: ColumnSchema) -> str:
    """Describe one column of a table together with the table's primary key."""
    lines = [
        f"Table: {table.name}",
        f"Type: {_kind_label(table)}",
        "",
        f"Primary Key: {primary_key.name} [{_type_label(primary_key)}]",
        "",
        f"Column: {column.name} [{_type_label(column)}]",
    ]

    constraints = []
    if column.name in table.primary_keys:
        constraints.append("PRIMARY KEY")
    if column.name in table.unique_columns:
        constraints.append("UNIQUE")
    if not column.is_nullable:
        constraints.append("NOT NULL")
    if column.default:
        constraints.append(f"DEFAULT: {column.default}")

    fk = table.foreign_key_for(column.name)
    if fk:
        constraints.append(f"REFERENCES {fk.target_table}.{fk.target_column}")
        lines.append(f"Foreign Key: References {fk.target_table}.{fk.target_column}")

    if constraints:
        lines.append(f"Constraints: {', '.join(constraints)}")

    names = [c.name for c in table.columns]
    index_names = [
        index.name
        for index in table.indexes
        if column.name in extract_index_columns(index.definition, names)
    ]
    if index_names:
        lines.append("")
        lines.append(f"Indexes: {', '.join(index_names)}")

    return "\n".join(lines) + "\n"


def relationship_document_text(
    table: TableSchema, fk: ForeignKey, snapshot: SchemaSnapshot
) -> str:
    """Describe a foreign key and the table it points at."""
    lines = [
        f"Relationship: {table.name}.{fk.column} → {fk.target_table}.{fk.target_column}",
        "",
        f"Source Table: {table.name}",
    ]
    source = table.get_column(fk.column)
    if source:
        lines.append(f"Source Column: {fk.column} [{_type_label(source)}]")

    lines.append("")
    lines.append(f"Target Table: {fk.target_table}")
    target_table = snapshot.get_table(fk.target_table)
    if target_table:
        target = target_table.get_column(fk.target_column)
        if target:
            lines.append(f"Target Column: {fk.target_column} [{_type_label(target)}]")
        lines.append("")
        lines.append("Target Table Schema:")
        lines.append(f"  Type: {_kind_label(target_table)}")
        lines.append(f"  Columns: {', '.join(c.name for c in target_table.columns)}")
        if target_table.primary_keys:
            lines.append(f"  Primary Keys: {', '.join(target_table.primary_keys)}")

    lines.append("")
    lines.append(
        f"Relationship Type: Foreign Key (Many-to-One from {table.name} to {fk.target_table})"
    )
    return "\n".join(lines)


def build_column_documents(table: TableSchema) -> list[SchemaDocument]:
    """One document per column, keyed on the first primary key. Empty if no primary key."""
    pk_name = table.primary_key
    primary_key = table.get_column(pk_name) if pk_name else None
    if primary_key is None:
        return []

    documents = []
    for column in table.columns:
        fk = table.foreign_key_for(column.name)
        documents.append(
            SchemaDocument(
                text=column_document_text(table, column, primary_key),
                table_name=table.name,
                column_name=column.name,
                data_type=column.data_type,
                is_foreign_key=fk is not None,
                related_table=fk.target_table if fk else None,
            )
        )
    return documents


def build_relationship_documents(
    table: TableSchema, snapshot: SchemaSnapshot
) -> list[SchemaDocument]:
    """One document per foreign key of the table."""
    documents = []
    for fk in table.foreign_keys:
        source = table.get_column(fk.column)
        documents.append(
            SchemaDocument(
                text=relationship_document_text(table, fk, snapshot),
                table_name=table.name,
                column_name=fk.column,
                data_type=source.data_type if source else "unknown",
                is_foreign_key=True,
                related_table=fk.target_table,
                relationship_type="foreign_key",
            )
        )
    return documents


def estimate_tokens(text: str, chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text) / chars_per_token)


def batch_by_token_limit(
    items: list[T],
    text_of: Callable[[T], str],
    max_tokens: int = DEFAULT_MAX_BATCH_TOKENS,
    chars_per_token: int = DEFAULT_CHARS_PER_TOKEN,
) -> list[list[T]]:
    """
    Group items into order-preserving batches under a token ceiling.

    A new batch starts whenever the next item would push the running total
    over ``max_tokens``. An item that alone exceeds the ceiling is placed in
    a batch of its own.

    Args:
        items: Items to batch
        text_of: Callable returning the text of an item
        max_tokens: Token ceiling per batch
        chars_per_token: Characters per token for the estimate

    Returns:
        Batches in input order; concatenated they equal ``items``
    """
    batches: list[list[T]] = []
    current: list[T] = []
    current_tokens = 0

    for item in items:
        tokens = estimate_tokens(text_of(item), chars_per_token)

        if tokens > max_tokens:
            if current:
                batches.append(current)
                current = []
                current_tokens = 0
            batches.append([item])
            continue

        if current and current_tokens + tokens > max_tokens:
            batches.append(current)
            current = [item]
            current_tokens = tokens
        else:
            current.append(item)
            current_tokens += tokens

    if current:
        batches.append(current)

    return batches
