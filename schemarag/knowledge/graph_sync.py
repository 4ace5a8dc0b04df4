"""
Graph Synchronizer

Mirrors a SchemaSnapshot and its column classification into the schema
graph store. Tables are written in small batches with a pause between
batches; a failing table is logged and skipped. After the writes, graph
entities of the connection that the snapshot no longer contains are
pruned, so the graph follows dropped tables, columns and relations.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from schemarag.knowledge.classifier import classify_table
from schemarag.knowledge.graph import (
    EdgeType,
    SchemaGraphStore,
    column_node_id,
)
from schemarag.models.schema import SchemaSnapshot, TableSchema

logger = logging.getLogger(__name__)


@dataclass
class GraphSyncReport:
    """Outcome of one graph sync run."""

    connection_id: str
    tables_synced: list[str] = field(default_factory=list)
    tables_failed: list[str] = field(default_factory=list)
    nodes_pruned: int = 0
    edges_pruned: int = 0


@dataclass
class _WriteSet:
    """Node ids and edge keys written during one sync run."""

    nodes: set[str] = field(default_factory=set)
    edges: set[tuple[str, str, str]] = field(default_factory=set)


class GraphSynchronizer:
    """Writes schema snapshots into a SchemaGraphStore."""

    def __init__(
        self,
        store: SchemaGraphStore,
        table_batch_size: int = 5,
        batch_delay_seconds: float = 0.1,
    ):
        self.store = store
        self.table_batch_size = table_batch_size
        self.batch_delay_seconds = batch_delay_seconds

    async def sync(
        self,
        connection_id: str,
        snapshot: SchemaSnapshot,
        connection_name: str | None = None,
        db_type: str = "postgresql",
    ) -> GraphSyncReport:
        """
        Merge every table of a snapshot into the graph, prune what the
        snapshot no longer has, and persist the graph.

        Returns:
            GraphSyncReport listing synced and failed tables
        """
        connection_id = str(connection_id)
        report = GraphSyncReport(connection_id=connection_id)
        writes = _WriteSet()
        tables = snapshot.tables

        logger.info(
            f"Syncing {len(tables)} tables to graph for connection {connection_id}",
            extra={"connection_id": connection_id, "tables": len(tables)},
        )

        for start in range(0, len(tables), self.table_batch_size):
            batch = tables[start : start + self.table_batch_size]
            for table in batch:
                try:
                    self._sync_table(connection_id, table, connection_name, db_type, writes)
                    report.tables_synced.append(table.name)
                except Exception as e:
                    logger.error(
                        f"Failed to sync table {table.name} to graph: {e}",
                        extra={"connection_id": connection_id, "table": table.name},
                    )
                    report.tables_failed.append(table.name)

            if start + self.table_batch_size < len(tables) and self.batch_delay_seconds:
                await asyncio.sleep(self.batch_delay_seconds)

        # Foreign key targets may live in a later batch, so edges are added last.
        for table in tables:
            if table.name in report.tables_synced:
                self._sync_foreign_keys(connection_id, table, writes)

        report.nodes_pruned, report.edges_pruned = self.store.prune_connection(
            connection_id,
            writes.nodes,
            writes.edges,
            preserve_tables=set(report.tables_failed),
        )

        self.store.save()

        logger.info(
            f"Graph sync finished for connection {connection_id}: "
            f"{len(report.tables_synced)} synced, {len(report.tables_failed)} failed, "
            f"{report.nodes_pruned} stale nodes pruned"
        )
        return report

    def _merge_edge(
        self,
        writes: _WriteSet,
        edge_type: EdgeType,
        source_id: str,
        target_id: str,
        properties: dict[str, Any] | None = None,
    ) -> bool:
        merged = self.store.merge_edge(edge_type, source_id, target_id, properties)
        if merged:
            writes.edges.add((source_id, target_id, edge_type.value))
        return merged

    def _sync_table(
        self,
        connection_id: str,
        table: TableSchema,
        connection_name: str | None,
        db_type: str,
        writes: _WriteSet,
    ) -> None:
        classification = classify_table(table)

        table_id = self.store.merge_table(
            connection_id,
            table.name,
            {
                "primary_key": table.primary_key or "",
                "kind": table.kind,
                "connection_name": connection_name or "",
                "db_type": db_type,
            },
        )
        writes.nodes.add(table_id)

        for column in table.columns:
            fk = table.foreign_key_for(column.name)
            column_id = self.store.merge_column(
                connection_id,
                table.name,
                column.name,
                {
                    "data_type": column.data_type,
                    "is_nullable": column.is_nullable,
                    "is_primary_key": column.name in table.primary_keys,
                    "is_foreign_key": fk is not None,
                    "role": classification.columns[column.name].role.value,
                    "related_table": fk.target_table if fk else None,
                },
            )
            writes.nodes.add(column_id)
            self._merge_edge(writes, EdgeType.HAS_COLUMN, table_id, column_id)

        for column_name, entry in classification.columns.items():
            source_id = column_node_id(connection_id, table.name, column_name)
            for related_name in entry.related_columns:
                target_id = column_node_id(connection_id, table.name, related_name)
                self._merge_edge(writes, EdgeType.SEMANTICALLY_RELATED, source_id, target_id)

    def _sync_foreign_keys(self, connection_id: str, table: TableSchema, writes: _WriteSet) -> None:
        for fk in table.foreign_keys:
            source_id = column_node_id(connection_id, table.name, fk.column)
            target_id = column_node_id(connection_id, fk.target_table, fk.target_column)
            merged = self._merge_edge(
                writes,
                EdgeType.FOREIGN_KEY,
                source_id,
                target_id,
                {"from_column": fk.column, "to_column": fk.target_column},
            )
            if not merged:
                logger.debug(
                    f"Skipped foreign key {table.name}.{fk.column} -> "
                    f"{fk.target_table}.{fk.target_column}: target column not in graph"
                )
