"""Unit tests for SchemaSyncSupervisor."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from schemarag.connectors.base import SchemaError
from schemarag.knowledge.graph_sync import GraphSyncReport
from schemarag.knowledge.indexer import IndexingReport
from schemarag.models.connection import ConnectionProfile
from schemarag.models.errors import IndexingError
from schemarag.sync.orchestrator import SchemaSyncSupervisor


@pytest.fixture
def profile():
    return ConnectionProfile(
        owner_id="user-1",
        name="shop",
        host="db.internal",
        database="shop",
        username="reader",
        password="secret",
    )


@pytest.fixture
def connector(orders_snapshot):
    connector = MagicMock()
    connector.connect = AsyncMock()
    connector.close = AsyncMock()
    connector.get_schema = AsyncMock(return_value=orders_snapshot)
    return connector


@pytest.fixture
def indexer():
    indexer = MagicMock()
    indexer.index = AsyncMock(
        side_effect=lambda connection_id, snapshot: IndexingReport(
            connection_id=connection_id, records_written=4, tables_indexed=2
        )
    )
    return indexer


@pytest.fixture
def graph_sync():
    graph_sync = MagicMock()
    graph_sync.sync = AsyncMock(
        side_effect=lambda connection_id, snapshot, connection_name=None: GraphSyncReport(
            connection_id=connection_id, tables_synced=["customers", "orders"]
        )
    )
    return graph_sync


@pytest.fixture
def supervisor(indexer, graph_sync, connector):
    return SchemaSyncSupervisor(
        indexer,
        graph_sync,
        connector_factory=lambda profile, settings: connector,
        max_attempts=2,
        retry_backoff_seconds=0,
    )


class TestSchemaSyncSupervisor:
    async def test_successful_sync(self, supervisor, profile, connector, indexer, graph_sync):
        job = supervisor.enqueue(profile)
        assert job.status == "pending"

        await supervisor.wait(profile.connection_id)

        status = supervisor.get_status(profile.connection_id)
        assert status["status"] == "completed"
        assert status["attempts"] == 1
        assert status["records_written"] == 4
        assert status["tables_synced"] == 2
        assert status["job_id"] == str(job.job_id)
        assert status["finished_at"] is not None
        connector.get_schema.assert_awaited_once_with("public")
        connector.close.assert_awaited_once()
        indexer.index.assert_awaited_once()
        assert graph_sync.sync.await_args.kwargs["connection_name"] == "shop"

    async def test_retries_then_succeeds(self, supervisor, profile, indexer):
        report = IndexingReport(connection_id=str(profile.connection_id), records_written=4)
        indexer.index.side_effect = [IndexingError("embedding", "rate limited"), report]

        supervisor.enqueue(profile)
        await supervisor.wait(profile.connection_id)

        status = supervisor.get_status(profile.connection_id)
        assert status["status"] == "completed"
        assert status["attempts"] == 2
        assert status["error"] is None

    async def test_failure_recorded(self, supervisor, profile, connector):
        connector.get_schema.side_effect = SchemaError("permission denied for schema public")

        supervisor.enqueue(profile)
        await supervisor.wait(profile.connection_id)

        status = supervisor.get_status(profile.connection_id)
        assert status["status"] == "failed"
        assert status["attempts"] == 2
        assert "permission denied" in status["error"]
        assert status["stage"] == "introspection"
        assert connector.close.await_count == 2

    async def test_graph_failure_wrapped(self, supervisor, profile, graph_sync):
        graph_sync.sync.side_effect = RuntimeError("disk full")

        supervisor.enqueue(profile)
        await supervisor.wait(profile.connection_id)

        status = supervisor.get_status(profile.connection_id)
        assert status["status"] == "failed"
        assert "Graph sync failed: disk full" in status["error"]
        assert status["stage"] == "graph_sync"

    async def test_enqueue_replaces_running_sync(
        self, supervisor, profile, connector, orders_snapshot
    ):
        release = asyncio.Event()

        async def slow_schema(schema_name):
            await release.wait()
            return orders_snapshot

        connector.get_schema.side_effect = slow_schema
        first = supervisor.enqueue(profile)
        await asyncio.sleep(0)

        second = supervisor.enqueue(profile)
        release.set()
        await supervisor.wait(profile.connection_id)

        assert first.status == "cancelled"
        assert supervisor.get_status(profile.connection_id)["job_id"] == str(second.job_id)
        assert second.status == "completed"

    async def test_cancel_forgets_status(self, supervisor, profile, connector, orders_snapshot):
        release = asyncio.Event()

        async def slow_schema(schema_name):
            await release.wait()
            return orders_snapshot

        connector.get_schema.side_effect = slow_schema
        job = supervisor.enqueue(profile)
        await asyncio.sleep(0)

        await supervisor.cancel(profile.connection_id)

        assert job.status == "cancelled"
        assert supervisor.get_status(profile.connection_id)["status"] == "idle"

    def test_idle_status(self, supervisor, profile):
        status = supervisor.get_status(profile.connection_id)

        assert status["status"] == "idle"
        assert status["job_id"] is None
        assert status["tables_failed"] == []

    async def test_shutdown_cancels_tasks(self, supervisor, profile, connector):
        async def never(schema_name):
            await asyncio.Event().wait()

        connector.get_schema.side_effect = never
        job = supervisor.enqueue(profile)
        await asyncio.sleep(0)

        await supervisor.shutdown()

        assert job.status == "cancelled"
