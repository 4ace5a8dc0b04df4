"""Unit tests for QueryExecutor."""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

from schemarag.agents.executor import QueryExecutor, to_json_safe
from schemarag.connectors.base import ConnectionError, QueryError, QueryResult
from schemarag.database.pools import PoolRegistry
from schemarag.models.connection import ConnectionProfile


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
def connector():
    connector = MagicMock()
    connector.connect = AsyncMock()
    connector.close = AsyncMock()
    connector.execute = AsyncMock(
        return_value=QueryResult(
            rows=[{"id": 1, "total": Decimal("9.50"), "placed": date(2024, 1, 2)}],
            row_count=1,
            columns=["id", "total", "placed"],
            execution_time_ms=1.2,
        )
    )
    return connector


@pytest.fixture
def registry(connector):
    return PoolRegistry(connector_factory=lambda profile, settings: connector)


@pytest.fixture
def profile_store(profile):
    store = MagicMock()
    store.get_profile = AsyncMock(return_value=profile)
    return store


@pytest.fixture
def executor(registry, profile_store):
    return QueryExecutor(registry, profile_store)


class TestToJsonSafe:
    def test_converts_driver_values(self):
        value = {
            "amount": Decimal("1.25"),
            "at": datetime(2024, 5, 1, 12, 30),
            "key": UUID("12345678-1234-5678-1234-567812345678"),
            "blob": b"\x01\xff",
            "tags": ("a", Decimal("2")),
            "plain": "text",
        }

        assert to_json_safe(value) == {
            "amount": 1.25,
            "at": "2024-05-01T12:30:00",
            "key": "12345678-1234-5678-1234-567812345678",
            "blob": "01ff",
            "tags": ["a", 2.0],
            "plain": "text",
        }


class TestExecute:
    async def test_success_builds_pool_lazily(self, executor, registry, profile, connector):
        result = await executor.execute(profile.connection_id, 'SELECT * FROM "orders"')

        assert result.success is True
        assert result.rows == [{"id": 1, "total": 9.5, "placed": "2024-01-02"}]
        assert result.row_count == 1
        assert result.repaired is False
        assert profile.connection_id in registry

    async def test_reuses_existing_pool(self, executor, profile_store, profile):
        await executor.execute(profile.connection_id, "SELECT 1")
        await executor.execute(profile.connection_id, "SELECT 2")

        profile_store.get_profile.assert_awaited_once()

    async def test_repaired_statement_executed(self, executor, connector, profile):
        result = await executor.execute(
            profile.connection_id, "SELECT * FROM \"orders\" WHERE \"status\" ILIKE '%shipped"
        )

        assert result.success is True
        assert result.repaired is True
        executed = connector.execute.call_args.args[0]
        assert executed.endswith("'%shipped'")
        assert result.sql == executed

    async def test_unrepairable_statement_not_executed(self, executor, connector, profile):
        result = await executor.execute(profile.connection_id, 'DROP TABLE "orders"')

        assert result.success is False
        assert "SELECT" in result.error
        assert result.error_stage == "sql_validator"
        connector.execute.assert_not_awaited()

    async def test_query_error_returned(self, executor, connector, registry, profile):
        connector.execute.side_effect = QueryError('column "nope" does not exist')

        result = await executor.execute(profile.connection_id, 'SELECT "nope" FROM "orders"')

        assert result.success is False
        assert result.error == 'column "nope" does not exist'
        assert result.sql == 'SELECT "nope" FROM "orders"'
        assert result.error_stage == "query_executor"
        assert profile.connection_id in registry

    async def test_connection_error_invalidates_pool(self, executor, connector, registry, profile):
        connector.execute.side_effect = ConnectionError("server closed the connection")

        result = await executor.execute(profile.connection_id, "SELECT 1")

        assert result.success is False
        assert profile.connection_id not in registry
        connector.close.assert_awaited_once()

    async def test_unknown_connection(self, executor, profile_store):
        profile_store.get_profile.side_effect = KeyError("Connection not found")

        result = await executor.execute(uuid4(), "SELECT 1")

        assert result.success is False
        assert "Connection not found" in result.error
