"""Unit tests for SchemaIndexer."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from schemarag.knowledge.embeddings import EmbeddingError
from schemarag.knowledge.indexer import SchemaIndexer
from schemarag.models.errors import IndexingError
from schemarag.models.schema import SchemaSnapshot, TableSchema


@pytest.fixture
def embedder():
    embedder = MagicMock()
    embedder.embed = AsyncMock(side_effect=lambda texts: [[0.1, 0.2, 0.3] for _ in texts])
    return embedder


@pytest.fixture
def vector_store():
    store = MagicMock()
    store.delete_connection = AsyncMock()
    store.upsert_records = AsyncMock(side_effect=lambda records: len(records))
    return store


def _written(vector_store):
    return vector_store.upsert_records.call_args.args[0]


class TestIndex:
    async def test_one_relationship_record_per_foreign_key(
        self, embedder, vector_store, orders_snapshot
    ):
        indexer = SchemaIndexer(embedder, vector_store)

        report = await indexer.index("c1", orders_snapshot)

        records = _written(vector_store)
        relationships = [r for r in records if r.metadata.get("relationship_type")]
        assert len(relationships) == 1
        assert relationships[0].metadata["relationship_type"] == "foreign_key"
        assert relationships[0].metadata["related_table"] == "customers"
        assert relationships[0].metadata["table_name"] == "orders"
        assert report.records_written == 4
        assert report.tables_indexed == 2

    async def test_record_ids_and_metadata(self, embedder, vector_store, orders_snapshot):
        indexer = SchemaIndexer(embedder, vector_store)

        await indexer.index("c1", orders_snapshot)

        records = _written(vector_store)
        assert [r.id for r in records] == [
            "schema-c1-customers-0",
            "schema-c1-orders-0",
            "schema-c1-orders-1",
            "schema-c1-orders-2",
        ]
        metadata = records[1].metadata
        assert metadata["connection_id"] == "c1"
        assert metadata["primary_key"] == "id"
        assert metadata["data_type"] == "integer"
        assert metadata["kind"] == "schema"
        assert metadata["schema_hash"] == orders_snapshot.content_hash()
        assert metadata["source_text"].startswith("Table: orders")

    async def test_replaces_previous_records(self, embedder, vector_store, orders_snapshot):
        calls = MagicMock()
        calls.attach_mock(vector_store.delete_connection, "delete_connection")
        calls.attach_mock(vector_store.upsert_records, "upsert_records")
        indexer = SchemaIndexer(embedder, vector_store)

        await indexer.index("c1", orders_snapshot)

        names = [call[0] for call in calls.mock_calls]
        assert names == ["delete_connection", "upsert_records"]
        vector_store.delete_connection.assert_awaited_once_with("c1")

    async def test_skips_table_without_primary_key(self, embedder, vector_store, users_table):
        snapshot = SchemaSnapshot(tables=[users_table, TableSchema(name="audit_log")])
        indexer = SchemaIndexer(embedder, vector_store)

        report = await indexer.index("c1", snapshot)

        assert report.tables_skipped == 1
        assert {r.metadata["table_name"] for r in _written(vector_store)} == {"users"}

    async def test_column_and_relationship_documents_embedded_separately(
        self, embedder, vector_store, orders_snapshot
    ):
        indexer = SchemaIndexer(embedder, vector_store)

        report = await indexer.index("c1", orders_snapshot)

        # customers columns, orders columns, orders relationships
        assert report.embedding_calls == 3

    async def test_small_token_ceiling_splits_batches(self, embedder, vector_store, users_table):
        indexer = SchemaIndexer(embedder, vector_store, max_batch_tokens=10)

        report = await indexer.index("c1", SchemaSnapshot(tables=[users_table]))

        assert report.embedding_calls == 3
        for call in embedder.embed.call_args_list:
            assert len(call.args[0]) == 1

    async def test_embedding_failure_wrapped(self, embedder, vector_store, orders_snapshot):
        embedder.embed.side_effect = EmbeddingError("rate limited")
        indexer = SchemaIndexer(embedder, vector_store)

        with pytest.raises(IndexingError, match="rate limited"):
            await indexer.index("c1", orders_snapshot)

        vector_store.delete_connection.assert_not_awaited()
