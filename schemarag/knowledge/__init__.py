"""
Knowledge Module

Schema knowledge for retrieval: column classification, schema documents,
embeddings, the Chroma vector store, the schema graph and the retriever.

Usage:
    from schemarag.knowledge import SchemaIndexer, SchemaRetriever
"""

from schemarag.knowledge.classifier import classify_table
from schemarag.knowledge.embeddings import Embedder, EmbeddingError
from schemarag.knowledge.graph import EdgeType, GraphStoreError, NodeType, SchemaGraphStore
from schemarag.knowledge.graph_sync import GraphSyncReport, GraphSynchronizer
from schemarag.knowledge.indexer import IndexingReport, SchemaIndexer
from schemarag.knowledge.retriever import SchemaRetriever
from schemarag.knowledge.vectors import (
    SchemaEmbeddingRecord,
    SchemaVectorStore,
    VectorStoreError,
)

__all__ = [
    "EdgeType",
    "Embedder",
    "EmbeddingError",
    "GraphStoreError",
    "GraphSyncReport",
    "GraphSynchronizer",
    "IndexingReport",
    "NodeType",
    "SchemaEmbeddingRecord",
    "SchemaGraphStore",
    "SchemaIndexer",
    "SchemaRetriever",
    "SchemaVectorStore",
    "VectorStoreError",
    "classify_table",
]
