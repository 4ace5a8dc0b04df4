"""
PostgreSQL Connector

Async PostgreSQL connector using asyncpg.

Features:
- Bounded connection pool (max size, connect timeout, idle connection lifetime)
- TLS required for remote hosts, disabled for loopback hosts
- Complete schema introspection: tables, views, columns, primary keys,
  foreign keys, unique constraints and index definitions
- Statement timeout support

Usage:
    connector = PostgresConnector(
        host="localhost",
        port=5432,
        database="mydb",
        user="postgres",
        password="secret"
    )

    await connector.connect()
    snapshot = await connector.get_schema(schema_name="public")
    result = await connector.execute('SELECT * FROM "users"')
    await connector.close()
"""

import asyncio
import logging
import time

import asyncpg

from schemarag.connectors.base import (
    BaseConnector,
    ConnectionError,
    QueryError,
    QueryResult,
    SchemaError,
    tls_mode_for_host,
)
from schemarag.models.schema import (
    ColumnSchema,
    ForeignKey,
    IndexDefinition,
    SchemaSnapshot,
    TableSchema,
)

logger = logging.getLogger(__name__)

# Errors that mean the pool itself is unusable, not just the statement.
CONNECTION_LEVEL_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)

_TABLES_QUERY = """
    SELECT table_name, table_type
    FROM information_schema.tables
    WHERE table_schema = $1
    AND table_type IN ('BASE TABLE', 'VIEW')
    ORDER BY table_name
"""

_COLUMNS_QUERY = """
    SELECT
        column_name,
        data_type,
        is_nullable,
        column_default,
        ordinal_position,
        character_maximum_length
    FROM information_schema.columns
    WHERE table_schema = $1 AND table_name = $2
    ORDER BY ordinal_position
"""

_CONSTRAINT_COLUMNS_QUERY = """
    SELECT kcu.column_name
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    WHERE tc.constraint_type = $3
    AND tc.table_schema = $1
    AND tc.table_name = $2
    ORDER BY kcu.ordinal_position
"""

_FOREIGN_KEYS_QUERY = """
    SELECT
        kcu.column_name,
        ccu.table_name AS foreign_table_name,
        ccu.column_name AS foreign_column_name
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage AS ccu
        ON ccu.constraint_name = tc.constraint_name
        AND ccu.table_schema = tc.table_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
    AND tc.table_schema = $1
    AND tc.table_name = $2
"""

_INDEXES_QUERY = """
    SELECT indexname, indexdef
    FROM pg_indexes
    WHERE schemaname = $1 AND tablename = $2
    ORDER BY indexname
"""


class PostgresConnector(BaseConnector):
    """
    PostgreSQL database connector using asyncpg.

    Provides async interface for PostgreSQL with connection pooling,
    schema introspection, and query execution.
    """

    async def connect(self) -> None:
        """
        Establish connection to PostgreSQL and create connection pool.

        Raises:
            ConnectionError: If the host is unreachable or credentials are rejected
        """
        if self._connected and self._pool:
            logger.debug("Already connected, skipping connection")
            return

        try:
            logger.info(f"Connecting to PostgreSQL at {self.host}:{self.port}/{self.database}")

            self._pool = await asyncpg.create_pool(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
                min_size=1,
                max_size=self.pool_size,
                timeout=self.connect_timeout,
                command_timeout=self.timeout,
                max_inactive_connection_lifetime=self.idle_timeout,
                ssl=tls_mode_for_host(self.host),
                **self.kwargs,
            )

            async with self._pool.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
                logger.info(f"Connected to PostgreSQL: {version.split(',')[0]}")

            self._connected = True

        except asyncpg.PostgresError as e:
            logger.error(f"PostgreSQL connection failed: {e}")
            await self._discard_pool()
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error during connection: {e}")
            await self._discard_pool()
            raise ConnectionError(f"Connection error: {e}") from e

    async def _discard_pool(self) -> None:
        """Drop a pool whose connectivity check failed."""
        pool, self._pool = self._pool, None
        self._connected = False
        if pool is None:
            return
        try:
            await pool.close()
        except Exception as e:
            logger.warning(f"Error closing unusable pool: {e}")
            pool.terminate()

    async def execute(self, query: str, timeout: float | None = None) -> QueryResult:
        """
        Execute a SQL statement.

        Raises:
            QueryError: If the statement fails
            ConnectionError: If not connected or the connection is lost
        """
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        start_time = time.perf_counter()
        query_timeout = timeout or self.timeout

        try:
            async with self._pool.acquire() as conn:
                await conn.execute(f"SET statement_timeout = {int(query_timeout * 1000)}")
                rows = await conn.fetch(query)

                result_rows = [dict(row) for row in rows]
                columns = list(rows[0].keys()) if rows else []

                execution_time_ms = (time.perf_counter() - start_time) * 1000

                logger.debug(
                    f"Query executed in {execution_time_ms:.2f}ms, "
                    f"returned {len(result_rows)} rows"
                )

                return QueryResult(
                    rows=result_rows,
                    row_count=len(result_rows),
                    columns=columns,
                    execution_time_ms=execution_time_ms,
                )

        except asyncpg.QueryCanceledError as e:
            logger.error(f"Query timed out after {query_timeout}s: {query[:100]}...")
            raise QueryError(f"Query timeout ({query_timeout}s)") from e
        except CONNECTION_LEVEL_ERRORS as e:
            logger.error(f"Connection lost during query: {e}")
            raise ConnectionError(f"Connection lost: {e}") from e
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error during query execution: {e}")
            raise QueryError(f"Query error: {e}") from e

    async def get_schema(self, schema_name: str | None = None) -> SchemaSnapshot:
        """
        Introspect PostgreSQL schema.

        Any metadata query failure for any table aborts the whole snapshot.

        Args:
            schema_name: Specific schema (default: public)

        Returns:
            SchemaSnapshot with every table and view of the schema

        Raises:
            SchemaError: If schema introspection fails
        """
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        schema_filter = schema_name or "public"

        try:
            async with self._pool.acquire() as conn:
                tables = await conn.fetch(_TABLES_QUERY, schema_filter)

                table_schemas = []
                for table_row in tables:
                    table_schemas.append(
                        await self._introspect_table(
                            conn,
                            schema_filter,
                            table_row["table_name"],
                            table_row["table_type"],
                        )
                    )

            logger.info(
                f"Introspected schema '{schema_filter}': found {len(table_schemas)} tables"
            )
            return SchemaSnapshot(tables=table_schemas)

        except CONNECTION_LEVEL_ERRORS as e:
            logger.error(f"Connection lost during schema introspection: {e}")
            raise ConnectionError(f"Connection lost: {e}") from e
        except asyncpg.PostgresError as e:
            logger.error(f"Schema introspection failed: {e}")
            raise SchemaError(f"Failed to introspect schema: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error during schema introspection: {e}")
            raise SchemaError(f"Schema introspection error: {e}") from e

    async def _introspect_table(
        self, conn, schema_name: str, table_name: str, table_type: str
    ) -> TableSchema:
        columns = await conn.fetch(_COLUMNS_QUERY, schema_name, table_name)
        pk_rows = await conn.fetch(
            _CONSTRAINT_COLUMNS_QUERY, schema_name, table_name, "PRIMARY KEY"
        )
        fk_rows = await conn.fetch(_FOREIGN_KEYS_QUERY, schema_name, table_name)
        unique_rows = await conn.fetch(
            _CONSTRAINT_COLUMNS_QUERY, schema_name, table_name, "UNIQUE"
        )
        index_rows = await conn.fetch(_INDEXES_QUERY, schema_name, table_name)

        primary_keys: list[str] = []
        for row in pk_rows:
            if row["column_name"] not in primary_keys:
                primary_keys.append(row["column_name"])

        unique_columns: list[str] = []
        for row in unique_rows:
            if row["column_name"] not in unique_columns:
                unique_columns.append(row["column_name"])

        return TableSchema(
            name=table_name,
            kind="view" if table_type == "VIEW" else "table",
            columns=[
                ColumnSchema(
                    name=col["column_name"],
                    data_type=col["data_type"],
                    is_nullable=col["is_nullable"] == "YES",
                    default=col["column_default"],
                    ordinal_position=col["ordinal_position"],
                    max_length=col["character_maximum_length"],
                )
                for col in columns
            ],
            primary_keys=primary_keys,
            foreign_keys=[
                ForeignKey(
                    column=row["column_name"],
                    target_table=row["foreign_table_name"],
                    target_column=row["foreign_column_name"],
                )
                for row in fk_rows
            ],
            unique_columns=unique_columns,
            indexes=[
                IndexDefinition(name=row["indexname"], definition=row["indexdef"])
                for row in index_rows
            ],
        )

    async def close(self) -> None:
        """
        Close connection pool and clean up resources.

        Safe to call multiple times.
        """
        if not self._pool:
            logger.debug("No connection pool to close")
            return

        try:
            await self._pool.close()
            self._pool = None
            self._connected = False
            logger.info("PostgreSQL connection closed")
        except Exception as e:
            logger.error(f"Error closing connection: {e}")
            raise ConnectionError(f"Failed to close connection: {e}") from e
