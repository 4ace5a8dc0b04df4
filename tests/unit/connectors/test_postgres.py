"""
Unit tests for PostgresConnector.

Tests the PostgreSQL connector with mocked asyncpg connections.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from schemarag.connectors.base import (
    ConnectionError,
    QueryError,
    SchemaError,
    tls_mode_for_host,
)
from schemarag.connectors.postgres import PostgresConnector


@pytest.fixture
def postgres_config():
    """PostgreSQL connection configuration."""
    return {
        "host": "localhost",
        "port": 5432,
        "database": "testdb",
        "user": "testuser",
        "password": "testpass",
        "pool_size": 5,
        "timeout": 30,
    }


@pytest.fixture
def mock_pool():
    """Mock asyncpg connection pool."""
    pool = AsyncMock()

    conn = AsyncMock()
    conn.fetchval = AsyncMock(return_value="PostgreSQL 16.2, compiled by gcc")
    conn.fetch = AsyncMock(return_value=[])
    conn.execute = AsyncMock()

    pool.acquire = MagicMock()
    pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
    pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)
    pool.close = AsyncMock()

    return pool, conn


async def _connected(postgres_config, pool) -> PostgresConnector:
    with patch("asyncpg.create_pool", new=AsyncMock(return_value=pool)):
        connector = PostgresConnector(**postgres_config)
        await connector.connect()
    return connector


class TestTlsMode:
    @pytest.mark.parametrize("host", ["localhost", "127.0.0.1", "::1", "LOCALHOST"])
    def test_loopback_disables_tls(self, host):
        assert tls_mode_for_host(host) is False

    def test_remote_requires_tls(self):
        assert tls_mode_for_host("db.example.com") == "require"


class TestConnection:
    """Test connection management."""

    async def test_connect_success(self, postgres_config, mock_pool):
        pool, conn = mock_pool

        connector = await _connected(postgres_config, pool)

        assert connector.is_connected is True
        conn.fetchval.assert_awaited_once_with("SELECT version()")

    async def test_connect_passes_pool_bounds(self, postgres_config, mock_pool):
        pool, _ = mock_pool
        config = {**postgres_config, "host": "db.example.com", "connect_timeout": 10, "idle_timeout": 60}

        with patch("asyncpg.create_pool", new=AsyncMock(return_value=pool)) as create_pool:
            await PostgresConnector(**config).connect()

        kwargs = create_pool.call_args.kwargs
        assert kwargs["max_size"] == 5
        assert kwargs["timeout"] == 10
        assert kwargs["max_inactive_connection_lifetime"] == 60
        assert kwargs["ssl"] == "require"

    async def test_connect_loopback_without_tls(self, postgres_config, mock_pool):
        pool, _ = mock_pool

        with patch("asyncpg.create_pool", new=AsyncMock(return_value=pool)) as create_pool:
            await PostgresConnector(**postgres_config).connect()

        assert create_pool.call_args.kwargs["ssl"] is False

    async def test_connect_idempotent(self, postgres_config, mock_pool):
        pool, _ = mock_pool

        with patch("asyncpg.create_pool", new=AsyncMock(return_value=pool)) as create_pool:
            connector = PostgresConnector(**postgres_config)
            await connector.connect()
            await connector.connect()

        assert create_pool.call_count == 1

    async def test_connect_failure(self, postgres_config):
        with patch(
            "asyncpg.create_pool",
            new=AsyncMock(side_effect=asyncpg.PostgresError("password authentication failed")),
        ):
            connector = PostgresConnector(**postgres_config)

            with pytest.raises(ConnectionError, match="Failed to connect"):
                await connector.connect()

        assert connector.is_connected is False

    async def test_connect_unreachable_host(self, postgres_config):
        with patch("asyncpg.create_pool", new=AsyncMock(side_effect=OSError("refused"))):
            with pytest.raises(ConnectionError):
                await PostgresConnector(**postgres_config).connect()

    async def test_failed_check_query_closes_pool(self, postgres_config, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.side_effect = asyncpg.PostgresError("permission denied")

        with patch("asyncpg.create_pool", new=AsyncMock(return_value=pool)):
            connector = PostgresConnector(**postgres_config)
            with pytest.raises(ConnectionError):
                await connector.connect()

        pool.close.assert_awaited_once()
        assert connector._pool is None
        assert connector.is_connected is False

    async def test_close_is_safe_twice(self, postgres_config, mock_pool):
        pool, _ = mock_pool
        connector = await _connected(postgres_config, pool)

        await connector.close()
        await connector.close()

        pool.close.assert_awaited_once()
        assert connector.is_connected is False


class TestExecute:
    async def test_execute_returns_rows(self, postgres_config, mock_pool):
        pool, conn = mock_pool
        conn.fetch.return_value = [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Grace"}]
        connector = await _connected(postgres_config, pool)

        result = await connector.execute('SELECT "id", "name" FROM "users"')

        assert result.row_count == 2
        assert result.columns == ["id", "name"]
        assert result.rows[0] == {"id": 1, "name": "Ada"}
        conn.execute.assert_awaited_once_with("SET statement_timeout = 30000")

    async def test_execute_requires_connection(self, postgres_config):
        connector = PostgresConnector(**postgres_config)

        with pytest.raises(ConnectionError, match="Not connected"):
            await connector.execute("SELECT 1")

    async def test_execute_statement_error(self, postgres_config, mock_pool):
        pool, conn = mock_pool
        conn.fetch.side_effect = asyncpg.PostgresError('relation "nope" does not exist')
        connector = await _connected(postgres_config, pool)

        with pytest.raises(QueryError, match="does not exist"):
            await connector.execute('SELECT * FROM "nope"')

    async def test_execute_connection_lost(self, postgres_config, mock_pool):
        pool, conn = mock_pool
        conn.fetch.side_effect = ConnectionResetError("connection reset by peer")
        connector = await _connected(postgres_config, pool)

        with pytest.raises(ConnectionError, match="Connection lost"):
            await connector.execute("SELECT 1")


class TestGetSchema:
    async def test_introspects_complete_table(self, postgres_config, mock_pool):
        pool, conn = mock_pool
        conn.fetch.side_effect = [
            [{"table_name": "users", "table_type": "BASE TABLE"}],
            [
                {
                    "column_name": "id",
                    "data_type": "integer",
                    "is_nullable": "NO",
                    "column_default": "nextval('users_id_seq'::regclass)",
                    "ordinal_position": 1,
                    "character_maximum_length": None,
                },
                {
                    "column_name": "email",
                    "data_type": "character varying",
                    "is_nullable": "YES",
                    "column_default": None,
                    "ordinal_position": 2,
                    "character_maximum_length": 255,
                },
            ],
            [{"column_name": "id"}],
            [],
            [{"column_name": "email"}],
            [
                {
                    "indexname": "users_email_key",
                    "indexdef": "CREATE UNIQUE INDEX users_email_key ON public.users USING btree (email)",
                }
            ],
        ]
        connector = await _connected(postgres_config, pool)

        snapshot = await connector.get_schema()

        users = snapshot.get_table("users")
        assert users.kind == "table"
        assert users.primary_keys == ["id"]
        assert users.unique_columns == ["email"]
        assert users.get_column("id").is_nullable is False
        assert users.get_column("email").max_length == 255
        assert users.indexes[0].name == "users_email_key"

    async def test_view_kind(self, postgres_config, mock_pool):
        pool, conn = mock_pool
        conn.fetch.side_effect = [
            [{"table_name": "active_users", "table_type": "VIEW"}],
            [],
            [],
            [],
            [],
            [],
        ]
        connector = await _connected(postgres_config, pool)

        snapshot = await connector.get_schema("public")

        assert snapshot.tables[0].kind == "view"
        assert snapshot.tables[0].primary_key is None

    async def test_any_table_failure_aborts_snapshot(self, postgres_config, mock_pool):
        pool, conn = mock_pool
        conn.fetch.side_effect = [
            [
                {"table_name": "a", "table_type": "BASE TABLE"},
                {"table_name": "b", "table_type": "BASE TABLE"},
            ],
            [],
            [],
            [],
            [],
            [],
            asyncpg.PostgresError("permission denied for table b"),
        ]
        connector = await _connected(postgres_config, pool)

        with pytest.raises(SchemaError, match="permission denied"):
            await connector.get_schema()
