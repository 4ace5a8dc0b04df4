"""
Semantic Indexer

Builds schema documents for a snapshot, embeds them in token-bounded
batches and writes the resulting records to the vector store. Existing
records of the connection are deleted before the new ones are written.
"""

import logging
from dataclasses import dataclass

from schemarag.knowledge.documents import (
    SchemaDocument,
    batch_by_token_limit,
    build_column_documents,
    build_relationship_documents,
    estimate_tokens,
)
from schemarag.knowledge.embeddings import Embedder
from schemarag.knowledge.vectors import (
    SCHEMA_RECORD_KIND,
    SchemaEmbeddingRecord,
    SchemaVectorStore,
)
from schemarag.models.errors import IndexingError
from schemarag.models.schema import SchemaSnapshot, TableSchema

logger = logging.getLogger(__name__)


@dataclass
class IndexingReport:
    """Outcome of indexing one snapshot."""

    connection_id: str
    records_written: int = 0
    tables_indexed: int = 0
    tables_skipped: int = 0
    embedding_calls: int = 0


class SchemaIndexer:
    """
    Embeds schema snapshots into the vector store.

    Usage:
        indexer = SchemaIndexer(embedder, vector_store)
        report = await indexer.index(connection_id, snapshot)
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: SchemaVectorStore,
        max_batch_tokens: int = 4000,
        chars_per_token: int = 4,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.max_batch_tokens = max_batch_tokens
        self.chars_per_token = chars_per_token

    async def index(self, connection_id: str, snapshot: SchemaSnapshot) -> IndexingReport:
        """
        Replace the connection's schema records with records for ``snapshot``.

        Raises:
            IndexingError: If any embedding call or vector write fails
        """
        connection_id = str(connection_id)
        report = IndexingReport(connection_id=connection_id)
        schema_hash = snapshot.content_hash()

        records: list[SchemaEmbeddingRecord] = []
        try:
            for table in snapshot.tables:
                if table.primary_key is None:
                    logger.warning(
                        f"Skipping table {table.name}: no primary key",
                        extra={"connection_id": connection_id, "table": table.name},
                    )
                    report.tables_skipped += 1
                    continue

                table_records = await self._embed_table(
                    connection_id, table, snapshot, schema_hash, report
                )
                records.extend(table_records)
                report.tables_indexed += 1

            await self.vector_store.delete_connection(connection_id)
            report.records_written = await self.vector_store.upsert_records(records)

        except IndexingError:
            raise
        except Exception as e:
            logger.error(
                f"Indexing failed for connection {connection_id}: {e}",
                extra={"connection_id": connection_id},
            )
            raise IndexingError(
                "indexer",
                f"Indexing failed: {e}",
                context={"connection_id": connection_id},
            ) from e

        logger.info(
            f"Indexed {report.records_written} schema records for connection {connection_id}",
            extra={
                "connection_id": connection_id,
                "tables_indexed": report.tables_indexed,
                "tables_skipped": report.tables_skipped,
                "embedding_calls": report.embedding_calls,
                "schema_hash": schema_hash,
            },
        )
        return report

    async def _embed_table(
        self,
        connection_id: str,
        table: TableSchema,
        snapshot: SchemaSnapshot,
        schema_hash: str,
        report: IndexingReport,
    ) -> list[SchemaEmbeddingRecord]:
        column_docs = build_column_documents(table)
        relationship_docs = build_relationship_documents(table, snapshot)

        records = []
        sequence = 0
        for documents in (column_docs, relationship_docs):
            for batch in batch_by_token_limit(
                documents,
                lambda doc: doc.text,
                max_tokens=self.max_batch_tokens,
                chars_per_token=self.chars_per_token,
            ):
                batch_tokens = sum(estimate_tokens(d.text, self.chars_per_token) for d in batch)
                logger.debug(
                    f"Embedding {len(batch)} documents of {table.name} (~{batch_tokens} tokens)"
                )
                vectors = await self.embedder.embed([doc.text for doc in batch])
                report.embedding_calls += 1

                for doc, vector in zip(batch, vectors):
                    records.append(
                        SchemaEmbeddingRecord(
                            id=f"schema-{connection_id}-{table.name}-{sequence}",
                            vector=vector,
                            metadata=self._metadata(connection_id, table, doc, schema_hash),
                        )
                    )
                    sequence += 1
        return records

    @staticmethod
    def _metadata(
        connection_id: str, table: TableSchema, doc: SchemaDocument, schema_hash: str
    ) -> dict:
        return {
            "connection_id": connection_id,
            "table_name": table.name,
            "column_name": doc.column_name,
            "primary_key": table.primary_key,
            "data_type": doc.data_type,
            "is_foreign_key": doc.is_foreign_key,
            "related_table": doc.related_table,
            "relationship_type": doc.relationship_type,
            "schema_hash": schema_hash,
            "source_text": doc.text,
            "kind": SCHEMA_RECORD_KIND,
        }
