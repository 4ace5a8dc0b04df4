"""
Schema Retriever

Finds the schema context for a question: embeds the question, searches the
connection's schema records, folds matches into per-table descriptors and
expands each table's columns through the schema graph. When the graph
store is unavailable the vector results are returned as they are.
"""

import logging
import re
from typing import Any

from schemarag.knowledge.embeddings import Embedder, EmbeddingError
from schemarag.knowledge.graph import GraphStoreError, SchemaGraphStore
from schemarag.knowledge.vectors import SchemaVectorStore, VectorStoreError
from schemarag.models.errors import RetrievalDegradation, RetrievalError
from schemarag.models.retrieval import (
    RelationshipMatch,
    RetrievalResult,
    RetrievedColumn,
    TableDescriptor,
)

logger = logging.getLogger(__name__)

IDENTIFIER_CUES = ("who", "user", "person", "people")

_TYPE_IN_TEXT = re.compile(r"\[([^\]]+)\]")


def needs_identifiers(question: str) -> bool:
    """Whether a question asks about people, so identifier columns matter."""
    lowered = question.lower()
    return any(cue in lowered for cue in IDENTIFIER_CUES)


def _column_type(metadata: dict[str, Any]) -> str:
    if metadata.get("data_type"):
        return metadata["data_type"]
    match = _TYPE_IN_TEXT.search(metadata.get("source_text") or "")
    return match.group(1) if match else "unknown"


def fold_matches(matches: list[dict[str, Any]]) -> tuple[list[TableDescriptor], list[RelationshipMatch]]:
    """
    Group vector matches by table.

    Tables keep the order of their first appearance; columns are
    deduplicated by name and the best score per table is kept.
    """
    tables: dict[str, TableDescriptor] = {}
    relationships: list[RelationshipMatch] = []

    for match in matches:
        metadata = match.get("metadata") or {}
        table_name = metadata.get("table_name")
        if not table_name:
            continue

        score = float(match.get("score") or 0.0)
        table = tables.get(table_name)
        if table is None:
            table = TableDescriptor(
                name=table_name,
                primary_key=metadata.get("primary_key"),
                score=score,
            )
            tables[table_name] = table
        else:
            table.score = max(table.score, score)

        column_name = metadata.get("column_name")
        if column_name and table.get_column(column_name) is None:
            table.columns.append(
                RetrievedColumn(
                    name=column_name,
                    type=_column_type(metadata),
                    is_foreign_key=bool(metadata.get("is_foreign_key", False)),
                    related_table=metadata.get("related_table"),
                )
            )

        if metadata.get("relationship_type") == "foreign_key":
            relationships.append(
                RelationshipMatch(
                    from_table=table_name,
                    to_table=metadata.get("related_table") or "",
                    score=score,
                )
            )

    return list(tables.values()), relationships


class SchemaRetriever:
    """
    Vector search plus graph expansion over a connection's schema.

    Usage:
        retriever = SchemaRetriever(embedder, vector_store, graph_store)
        result = await retriever.retrieve(connection_id, "who are the users")
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: SchemaVectorStore,
        graph_store: SchemaGraphStore | None = None,
        top_k: int = 15,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.graph_store = graph_store
        self.top_k = top_k

    async def retrieve(self, connection_id: str, question: str) -> RetrievalResult:
        """
        Retrieve schema context for a question.

        Raises:
            RetrievalError: If the question cannot be embedded or searched
        """
        connection_id = str(connection_id)

        try:
            vector = await self.embedder.embed_query(question)
            matches = await self.vector_store.query(vector, connection_id, top_k=self.top_k)
        except (EmbeddingError, VectorStoreError) as e:
            logger.error(f"Schema retrieval failed for connection {connection_id}: {e}")
            raise RetrievalError(
                "retriever", str(e), context={"connection_id": connection_id}
            ) from e

        tables, relationships = fold_matches(matches)
        logger.info(
            f"Vector search matched {len(matches)} records across {len(tables)} tables",
            extra={"connection_id": connection_id, "matches": len(matches)},
        )

        expanded = False
        if tables:
            try:
                tables = self._expand(connection_id, tables, question)
                expanded = True
            except RetrievalDegradation as e:
                logger.warning(f"Graph expansion skipped, using vector results only: {e.message}")

        return RetrievalResult(
            tables=tables,
            relationships=relationships,
            match_count=len(matches),
            graph_expanded=expanded,
        )

    def _expand(
        self, connection_id: str, tables: list[TableDescriptor], question: str
    ) -> list[TableDescriptor]:
        if self.graph_store is None:
            raise RetrievalDegradation("retriever", "No graph store configured")

        include_identifiers = needs_identifiers(question)
        expanded_tables = []
        for table in tables:
            try:
                graph_columns = self.graph_store.expand_columns(
                    connection_id,
                    table.name,
                    table.column_names(),
                    include_identifiers,
                )
            except GraphStoreError as e:
                raise RetrievalDegradation(
                    "retriever", str(e), context={"connection_id": connection_id}
                ) from e

            columns = []
            for node in graph_columns:
                existing = table.get_column(node["column_name"])
                if existing is not None:
                    columns.append(existing)
                else:
                    columns.append(
                        RetrievedColumn(
                            name=node["column_name"],
                            type=node.get("data_type") or "unknown",
                            is_foreign_key=bool(node.get("is_foreign_key", False)),
                            related_table=node.get("related_table"),
                        )
                    )

            # Never let expansion shrink what vector search found.
            if len(columns) >= len(table.columns):
                added = len(columns) - len(table.columns)
                if added:
                    logger.debug(f"Graph expansion added {added} columns to {table.name}")
                table = table.model_copy(update={"columns": columns})
            expanded_tables.append(table)

        return expanded_tables
