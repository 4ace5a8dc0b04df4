"""
Column Classifier

Rule-based, side-effect-free classification of table columns.

Each column gets a role (identifier, description, attribute) from its
declared constraints and type, and a set of semantically related columns
from the same table derived from indexes, composite keys, ordinal
adjacency, naming and foreign keys. Every relation predicate is
symmetric, so A related to B always implies B related to A.
"""

from __future__ import annotations

import re

from schemarag.models.classification import (
    ColumnClassification,
    ColumnRole,
    TableClassification,
)
from schemarag.models.schema import ColumnSchema, TableSchema

_INDEX_COLUMNS_PATTERN = re.compile(r"\(([^)]+)\)")
_TEXTUAL_TYPES = ("varchar", "text", "char")


def classify_role(column: ColumnSchema, table: TableSchema) -> ColumnRole:
    """Assign a role using the first matching rule."""
    data_type = column.data_type.lower()
    is_key = column.name in table.primary_keys or table.foreign_key_for(column.name) is not None
    is_unique = column.name in table.unique_columns
    max_length = column.max_length or 0

    if is_key:
        return ColumnRole.IDENTIFIER
    if is_unique and any(t in data_type for t in _TEXTUAL_TYPES):
        return ColumnRole.IDENTIFIER
    if "uuid" in data_type or "guid" in data_type:
        return ColumnRole.IDENTIFIER
    if "text" in data_type or max_length > 1000:
        return ColumnRole.DESCRIPTION
    if 0 < max_length <= 100 and ("varchar" in data_type or "char" in data_type) and not is_unique:
        return ColumnRole.IDENTIFIER
    return ColumnRole.ATTRIBUTE


def extract_index_columns(definition: str, column_names: list[str]) -> list[str]:
    """
    Column names referenced by an index definition.

    Only the first parenthesised group is read. Quotes, casts, function
    wrappers and sort modifiers are stripped before matching names exactly.
    """
    match = _INDEX_COLUMNS_PATTERN.search(definition.lower())
    if not match:
        return []

    by_lower = {name.lower(): name for name in column_names}
    found: list[str] = []
    for raw in match.group(1).split(","):
        candidate = raw.strip().replace('"', "").replace("'", "")
        candidate = candidate.split("(")[0].split(" ")[0].split("::")[0].strip()
        name = by_lower.get(candidate)
        if name and name not in found:
            found.append(name)
    return found


def names_similar(first: str, second: str) -> bool:
    """Whether two column names look like variants of each other."""
    a = first.lower()
    b = second.lower()
    parts_a = a.split("_")
    parts_b = b.split("_")

    common = {p for p in parts_a if len(p) > 2} & {p for p in parts_b if len(p) > 2}
    if common and len(common) >= min(len(parts_a), len(parts_b)) - 1:
        return True

    if len(parts_a) > 1 and len(parts_b) > 1:
        if parts_a[0] == parts_b[0] and len(parts_a[0]) > 2:
            return True
        if parts_a[-1] == parts_b[-1] and len(parts_a[-1]) > 2:
            return True

    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    return len(shorter) > 3 and shorter in longer


def _index_groups(table: TableSchema) -> list[set[str]]:
    names = [c.name for c in table.columns]
    groups = []
    for index in table.indexes:
        columns = extract_index_columns(index.definition, names)
        if len(columns) > 1:
            groups.append(set(columns))
    return groups


def _are_related(
    a: ColumnSchema, b: ColumnSchema, table: TableSchema, index_groups: list[set[str]]
) -> bool:
    if any(a.name in group and b.name in group for group in index_groups):
        return True

    if (
        len(table.primary_keys) > 1
        and a.name in table.primary_keys
        and b.name in table.primary_keys
    ):
        return True

    same_type = a.data_type == b.data_type
    if same_type and abs(a.ordinal_position - b.ordinal_position) == 1:
        return True
    if same_type and names_similar(a.name, b.name):
        return True

    both_fk = (
        table.foreign_key_for(a.name) is not None and table.foreign_key_for(b.name) is not None
    )
    return both_fk and same_type


def classify_table(table: TableSchema) -> TableClassification:
    """
    Classify every column of a table.

    The result does not depend on column order: roles use per-column facts
    only and related column lists are sorted.
    """
    index_groups = _index_groups(table)
    related: dict[str, set[str]] = {c.name: set() for c in table.columns}

    columns = table.columns
    for i, a in enumerate(columns):
        for b in columns[i + 1 :]:
            if a.name == b.name:
                continue
            if _are_related(a, b, table, index_groups):
                related[a.name].add(b.name)
                related[b.name].add(a.name)

    return TableClassification(
        table_name=table.name,
        columns={
            column.name: ColumnClassification(
                role=classify_role(column, table),
                related_columns=sorted(related[column.name]),
            )
            for column in columns
        },
    )
