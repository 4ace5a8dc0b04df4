"""
Schema Graph Store

NetworkX-based property graph mirroring introspected schemas.

Nodes are tables and columns keyed by (connection_id, table_name[,
column_name]); edges are HAS_COLUMN, FOREIGN_KEY and SEMANTICALLY_RELATED.
All writes merge on those keys, so writing the same schema twice leaves
the graph unchanged; entities a newer schema no longer has are pruned.
Each named graph is persisted as a JSON file.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

import networkx as nx
from networkx.readwrite import json_graph

logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    """Types of nodes in the schema graph."""

    TABLE = "table"
    COLUMN = "column"


class EdgeType(str, Enum):
    """Types of edges in the schema graph."""

    HAS_COLUMN = "has_column"  # Table -> Column
    FOREIGN_KEY = "foreign_key"  # Column -> Column (other table)
    SEMANTICALLY_RELATED = "semantically_related"  # Column -> Column (same table)


class GraphStoreError(Exception):
    """Raised when the graph store is unavailable or an operation fails."""

    pass


def table_node_id(connection_id: str, table_name: str) -> str:
    return f"table::{connection_id}::{table_name}"


def column_node_id(connection_id: str, table_name: str, column_name: str) -> str:
    return f"column::{connection_id}::{table_name}::{column_name}"


class SchemaGraphStore:
    """
    Named schema graph using NetworkX.

    Usage:
        store = SchemaGraphStore(persist_directory="./graph_data", graph_name="schema")
        store.load()

        store.merge_table(connection_id, "users", {"primary_key": "id"})
        store.merge_column(connection_id, "users", "email", {"role": "identifier"})
        store.merge_edge(EdgeType.HAS_COLUMN, table_id, column_id)

        columns = store.expand_columns(connection_id, "users", ["email"], True)
        store.save()
    """

    def __init__(
        self,
        persist_directory: str | Path | None = None,
        graph_name: str = "schema",
    ):
        """
        Initialize an empty graph store.

        Args:
            persist_directory: Directory for the JSON file (None = in-memory only)
            graph_name: Name of the graph, used as the file stem
        """
        self.graph = nx.MultiDiGraph()
        self.graph_name = graph_name
        self.persist_directory = Path(persist_directory) if persist_directory else None
        self.available = True

        logger.info(f"SchemaGraphStore initialized: graph={graph_name}")

    @property
    def file_path(self) -> Path | None:
        if self.persist_directory is None:
            return None
        return self.persist_directory / f"{self.graph_name}.json"

    def _require_available(self) -> None:
        if not self.available:
            raise GraphStoreError(f"Graph store '{self.graph_name}' is unavailable")

    # Writes

    def merge_table(self, connection_id: str, table_name: str, properties: dict[str, Any]) -> str:
        """Create or update a Table node."""
        self._require_available()
        node_id = table_node_id(connection_id, table_name)
        self.graph.add_node(
            node_id,
            node_type=NodeType.TABLE,
            connection_id=str(connection_id),
            table_name=table_name,
            **properties,
        )
        return node_id

    def merge_column(
        self,
        connection_id: str,
        table_name: str,
        column_name: str,
        properties: dict[str, Any],
    ) -> str:
        """Create or update a Column node."""
        self._require_available()
        node_id = column_node_id(connection_id, table_name, column_name)
        self.graph.add_node(
            node_id,
            node_type=NodeType.COLUMN,
            connection_id=str(connection_id),
            table_name=table_name,
            column_name=column_name,
            **properties,
        )
        return node_id

    def merge_edge(
        self,
        edge_type: EdgeType,
        source_id: str,
        target_id: str,
        properties: dict[str, Any] | None = None,
    ) -> bool:
        """
        Create or update an edge between existing nodes.

        The edge type is the multigraph key, so there is at most one edge of
        each type per ordered node pair.

        Returns:
            False if either endpoint does not exist
        """
        self._require_available()
        if source_id not in self.graph or target_id not in self.graph:
            return False
        self.graph.add_edge(
            source_id,
            target_id,
            key=edge_type.value,
            edge_type=edge_type,
            **(properties or {}),
        )
        return True

    def delete_connection(self, connection_id: str) -> int:
        """Remove every node (and so every edge) of one connection."""
        self._require_available()
        nodes = [
            node
            for node, data in self.graph.nodes(data=True)
            if data.get("connection_id") == str(connection_id)
        ]
        self.graph.remove_nodes_from(nodes)
        logger.info(f"Removed {len(nodes)} graph nodes for connection {connection_id}")
        return len(nodes)

    def prune_connection(
        self,
        connection_id: str,
        keep_nodes: set[str],
        keep_edges: set[tuple[str, str, str]],
        preserve_tables: set[str] | None = None,
    ) -> tuple[int, int]:
        """
        Remove a connection's nodes and edges that were not written by the last sync.

        Nodes and outgoing edges of tables in ``preserve_tables`` are left as
        they are, so a table that failed to sync keeps its previous state.

        Returns:
            (nodes_removed, edges_removed)
        """
        self._require_available()
        connection_id = str(connection_id)
        preserve_tables = preserve_tables or set()

        def prunable(data: dict[str, Any]) -> bool:
            return (
                data.get("connection_id") == connection_id
                and data.get("table_name") not in preserve_tables
            )

        stale_nodes = [
            node
            for node, data in self.graph.nodes(data=True)
            if prunable(data) and node not in keep_nodes
        ]
        self.graph.remove_nodes_from(stale_nodes)

        stale_edges = [
            (source, target, key)
            for source, target, key in self.graph.edges(keys=True)
            if prunable(self.graph.nodes[source]) and (source, target, key) not in keep_edges
        ]
        self.graph.remove_edges_from(stale_edges)

        if stale_nodes or stale_edges:
            logger.info(
                f"Pruned {len(stale_nodes)} nodes and {len(stale_edges)} edges "
                f"for connection {connection_id}"
            )
        return len(stale_nodes), len(stale_edges)

    # Reads

    def has_column(self, connection_id: str, table_name: str, column_name: str) -> bool:
        return column_node_id(connection_id, table_name, column_name) in self.graph

    def table_columns(self, connection_id: str, table_name: str) -> list[dict[str, Any]]:
        """Column node data reachable through HAS_COLUMN edges."""
        self._require_available()
        table_id = table_node_id(connection_id, table_name)
        if table_id not in self.graph:
            return []

        columns = []
        for _, column_id, key in self.graph.out_edges(table_id, keys=True):
            if key == EdgeType.HAS_COLUMN.value:
                columns.append(dict(self.graph.nodes[column_id]))
        return columns

    def semantically_related(self, connection_id: str, table_name: str, column_name: str) -> set[str]:
        """Names of columns this column has a SEMANTICALLY_RELATED edge to."""
        self._require_available()
        column_id = column_node_id(connection_id, table_name, column_name)
        if column_id not in self.graph:
            return set()

        related = set()
        for _, target, key in self.graph.out_edges(column_id, keys=True):
            if key == EdgeType.SEMANTICALLY_RELATED.value:
                related.add(self.graph.nodes[target]["column_name"])
        return related

    def expand_columns(
        self,
        connection_id: str,
        table_name: str,
        matched_columns: list[str],
        include_identifiers: bool,
    ) -> list[dict[str, Any]]:
        """
        Columns of a table relevant to a set of matched columns.

        Selects matched columns, identifier columns (when requested) and
        columns semantically related to a matched column. Ordered matched
        first, then identifiers, then by name.

        Raises:
            GraphStoreError: If the store is unavailable
        """
        self._require_available()
        matched = set(matched_columns)

        selected = []
        for column in self.table_columns(connection_id, table_name):
            name = column["column_name"]
            is_identifier = column.get("role") == "identifier"
            related = self.semantically_related(connection_id, table_name, name)
            if name in matched or (include_identifiers and is_identifier) or related & matched:
                selected.append(column)

        selected.sort(
            key=lambda c: (
                0 if c["column_name"] in matched else 1,
                0 if c.get("role") == "identifier" else 1,
                c["column_name"],
            )
        )
        return selected

    def get_stats(self, connection_id: str | None = None) -> dict[str, Any]:
        """
        Get graph statistics.

        Returns:
            Dict with node and edge counts by type
        """
        node_type_counts: dict[str, int] = {}
        node_ids = set()
        for node, data in self.graph.nodes(data=True):
            if connection_id is not None and data.get("connection_id") != str(connection_id):
                continue
            node_ids.add(node)
            node_type = str(NodeType(data.get("node_type")).value)
            node_type_counts[node_type] = node_type_counts.get(node_type, 0) + 1

        edge_type_counts: dict[str, int] = {}
        total_edges = 0
        for source, _target, key in self.graph.edges(keys=True):
            if source not in node_ids:
                continue
            total_edges += 1
            edge_type_counts[key] = edge_type_counts.get(key, 0) + 1

        return {
            "total_nodes": len(node_ids),
            "total_edges": total_edges,
            "node_types": node_type_counts,
            "edge_types": edge_type_counts,
        }

    # Persistence

    def save(self) -> None:
        """
        Save graph to its JSON file. No-op for in-memory stores.

        Raises:
            GraphStoreError: If the store is unavailable or save fails
        """
        file_path = self.file_path
        if file_path is None:
            return
        # An unreadable file stays on disk until someone repairs it.
        self._require_available()

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            graph_data = json_graph.node_link_data(self.graph, edges="links")
            data = {"graph_name": self.graph_name, "graph": graph_data}

            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            logger.info(f"Saved schema graph to {file_path}")

        except Exception as e:
            logger.error(f"Failed to save graph to {file_path}: {e}")
            raise GraphStoreError(f"Failed to save graph: {e}") from e

    def load(self) -> None:
        """
        Load graph from its JSON file if present.

        A file that cannot be read marks the store unavailable, so callers
        fall back to vector-only retrieval until it is repaired.
        """
        file_path = self.file_path
        if file_path is None or not file_path.exists():
            return

        try:
            with open(file_path, encoding="utf-8") as f:
                data = json.load(f)

            self.graph = json_graph.node_link_graph(
                data["graph"], directed=True, multigraph=True, edges="links"
            )
            self.available = True

            logger.info(
                f"Loaded schema graph from {file_path}: "
                f"{self.graph.number_of_nodes()} nodes, "
                f"{self.graph.number_of_edges()} edges"
            )

        except Exception as e:
            self.available = False
            logger.error(f"Failed to load graph from {file_path}: {e}")
