"""
Vector Store

Chroma-based store for schema embedding records with async interface.
Vectors are computed by the caller and passed in explicitly; every record
carries the connection id so searches and deletes stay scoped to one
connection.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import chromadb
from chromadb.config import Settings

from schemarag.config import get_settings

logger = logging.getLogger(__name__)

SCHEMA_RECORD_KIND = "schema"


class VectorStoreError(Exception):
    """Raised when vector store operations fail."""

    pass


@dataclass
class SchemaEmbeddingRecord:
    """One embedded schema document."""

    id: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


def _clean_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    # Chroma metadata values must be str, int, float or bool.
    return {key: value for key, value in metadata.items() if value is not None}


class SchemaVectorStore:
    """
    Vector store for schema records using Chroma.

    Usage:
        store = SchemaVectorStore()
        await store.initialize()

        await store.upsert_records(records)
        matches = await store.query(vector, connection_id="...", top_k=15)
        await store.delete_connection("...")
    """

    def __init__(
        self,
        collection_name: str | None = None,
        persist_directory: str | Path | None = None,
        upsert_batch_size: int | None = None,
    ):
        """
        Initialize the vector store.

        Args:
            collection_name: Name of the Chroma collection (default from config)
            persist_directory: Directory for persistence (default from config)
            upsert_batch_size: Records written per upsert call (default from config)
        """
        # Only load config if needed (allows tests to avoid config validation)
        if collection_name is None or persist_directory is None or upsert_batch_size is None:
            config = get_settings()
            self.collection_name = collection_name or config.chroma.collection_name
            self.persist_directory = Path(persist_directory or config.chroma.persist_dir)
            self.upsert_batch_size = upsert_batch_size or config.chroma.upsert_batch_size
        else:
            self.collection_name = collection_name
            self.persist_directory = Path(persist_directory)
            self.upsert_batch_size = upsert_batch_size

        self.client: chromadb.ClientAPI | None = None
        self.collection: chromadb.Collection | None = None

        logger.info(
            f"SchemaVectorStore initialized: collection={self.collection_name}, "
            f"persist_dir={self.persist_directory}"
        )

    async def initialize(self):
        """
        Initialize the Chroma client and collection.

        Raises:
            VectorStoreError: If initialization fails
        """
        try:
            self.persist_directory.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(self._init_client)
            logger.info("SchemaVectorStore initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize SchemaVectorStore: {e}")
            raise VectorStoreError(f"Initialization failed: {e}") from e

    def _init_client(self):
        self.client = chromadb.PersistentClient(
            path=str(self.persist_directory),
            settings=Settings(
                anonymized_telemetry=False,
                allow_reset=True,
            ),
        )
        self.collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )
        logger.debug(
            f"Chroma collection '{self.collection_name}' ready "
            f"with {self.collection.count()} records"
        )

    def _require_collection(self) -> chromadb.Collection:
        if not self.collection:
            raise VectorStoreError("SchemaVectorStore not initialized. Call initialize() first.")
        return self.collection

    @staticmethod
    def connection_filter(connection_id: str) -> dict[str, Any]:
        """Metadata filter selecting the schema records of one connection."""
        return {
            "$and": [
                {"connection_id": str(connection_id)},
                {"kind": SCHEMA_RECORD_KIND},
            ]
        }

    async def upsert_records(self, records: list[SchemaEmbeddingRecord]) -> int:
        """
        Write records in fixed-size groups.

        Returns:
            Number of records written

        Raises:
            VectorStoreError: If a write fails
        """
        collection = self._require_collection()

        if not records:
            logger.warning("No schema records to upsert")
            return 0

        try:
            total = 0
            for i in range(0, len(records), self.upsert_batch_size):
                group = records[i : i + self.upsert_batch_size]
                await asyncio.to_thread(
                    collection.upsert,
                    ids=[record.id for record in group],
                    embeddings=[record.vector for record in group],
                    metadatas=[_clean_metadata(record.metadata) for record in group],
                    documents=[record.metadata.get("source_text", "") for record in group],
                )
                total += len(group)
                logger.debug(f"Upserted group of {len(group)} records ({total} total)")

            logger.info(f"Upserted {total} schema records")
            return total

        except Exception as e:
            logger.error(f"Failed to upsert schema records: {e}")
            raise VectorStoreError(f"Failed to upsert schema records: {e}") from e

    async def query(
        self,
        vector: list[float],
        connection_id: str,
        top_k: int = 15,
    ) -> list[dict[str, Any]]:
        """
        Nearest schema records of one connection.

        Returns:
            Matches ordered by similarity, each with id, score, metadata and document

        Raises:
            VectorStoreError: If search fails
        """
        collection = self._require_collection()

        try:
            results = await asyncio.to_thread(
                collection.query,
                query_embeddings=[vector],
                n_results=top_k,
                where=self.connection_filter(connection_id),
            )
        except Exception as e:
            logger.error(f"Search failed: {e}")
            raise VectorStoreError(f"Search failed: {e}") from e

        matches = []
        if results["ids"] and results["ids"][0]:
            for i in range(len(results["ids"][0])):
                distance = results["distances"][0][i] if results.get("distances") else None
                matches.append(
                    {
                        "id": results["ids"][0][i],
                        "score": 1.0 - distance if distance is not None else 0.0,
                        "metadata": results["metadatas"][0][i] if results.get("metadatas") else {},
                        "document": results["documents"][0][i] if results.get("documents") else "",
                    }
                )

        logger.debug(f"Vector search for connection {connection_id} returned {len(matches)} matches")
        return matches

    async def delete_connection(self, connection_id: str) -> None:
        """
        Delete every record of one connection.

        Raises:
            VectorStoreError: If deletion fails
        """
        collection = self._require_collection()

        try:
            await asyncio.to_thread(
                collection.delete,
                where={"connection_id": str(connection_id)},
            )
            logger.info(f"Deleted schema records for connection {connection_id}")
        except Exception as e:
            logger.error(f"Failed to delete schema records: {e}")
            raise VectorStoreError(f"Failed to delete schema records: {e}") from e

    async def count(self, connection_id: str | None = None) -> int:
        """Number of records, optionally for one connection."""
        collection = self._require_collection()

        try:
            if connection_id is None:
                return await asyncio.to_thread(collection.count)
            results = await asyncio.to_thread(
                collection.get,
                where={"connection_id": str(connection_id)},
                include=[],
            )
            return len(results["ids"])
        except Exception as e:
            logger.error(f"Failed to get count: {e}")
            raise VectorStoreError(f"Failed to get count: {e}") from e
