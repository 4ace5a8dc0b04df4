"""
Base Database Connector

Abstract base class for target database connectors. Provides a consistent
async interface for connecting to, querying, and introspecting databases.

All connectors must implement:
- connect(): Establish a bounded connection pool
- execute(): Run a statement with timeout
- get_schema(): Introspect a complete SchemaSnapshot
- close(): Clean up connections and pools
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from schemarag.models.schema import SchemaSnapshot

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def tls_mode_for_host(host: str) -> bool | str:
    """
    Pick the TLS mode for a host.

    Loopback hosts connect without TLS; every other host requires it.
    The return value is passed as the ``ssl`` argument to the driver.
    """
    if host.strip().lower() in LOOPBACK_HOSTS:
        return False
    return "require"


# ============================================================================
# Data Models
# ============================================================================


class QueryResult(BaseModel):
    """Result from query execution."""

    rows: list[dict[str, Any]] = Field(..., description="Query result rows")
    row_count: int = Field(..., description="Number of rows returned")
    columns: list[str] = Field(..., description="Column names")
    execution_time_ms: float = Field(..., description="Query execution time in ms")


class ConnectorError(Exception):
    """Base exception for connector errors."""

    pass


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""

    pass


class QueryError(ConnectorError):
    """Error executing database query."""

    pass


class SchemaError(ConnectorError):
    """Error introspecting database schema."""

    pass


# ============================================================================
# Base Connector
# ============================================================================


class BaseConnector(ABC):
    """
    Abstract base class for database connectors.

    Usage:
        connector = PostgresConnector(host="localhost", ...)
        await connector.connect()

        result = await connector.execute('SELECT * FROM "users"')
        print(f"Found {result.row_count} rows")

        snapshot = await connector.get_schema()
        await connector.close()
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        pool_size: int = 20,
        timeout: float = 30,
        connect_timeout: float = 10,
        idle_timeout: float = 60,
        **kwargs,
    ):
        """
        Initialize connector.

        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Database user
            password: Database password
            pool_size: Maximum concurrent connections (default: 20)
            timeout: Statement timeout in seconds (default: 30)
            connect_timeout: Seconds to wait for a new connection (default: 10)
            idle_timeout: Seconds before an unused connection is closed (default: 60)
            **kwargs: Additional driver-specific parameters
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.idle_timeout = idle_timeout
        self.kwargs = kwargs

        self._pool = None
        self._connected = False

        logger.info(f"Initialized {self.__class__.__name__} for {user}@{host}:{port}/{database}")

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish database connection and create connection pool.

        Idempotent: calling multiple times does not create multiple pools.

        Raises:
            ConnectionError: If the host is unreachable or credentials are rejected
        """
        pass

    @abstractmethod
    async def execute(self, query: str, timeout: float | None = None) -> QueryResult:
        """
        Execute a SQL statement.

        Raises:
            QueryError: If the statement fails
            ConnectionError: If the connection is lost or not established
        """
        pass

    @abstractmethod
    async def get_schema(self, schema_name: str | None = None) -> SchemaSnapshot:
        """
        Introspect the database schema.

        Either the complete snapshot is returned or SchemaError is raised;
        a partial snapshot is never produced.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the pool. Safe to call multiple times."""
        pass

    @property
    def is_connected(self) -> bool:
        """Check if connector is connected."""
        return self._connected

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"<{self.__class__.__name__} {self.user}@{self.host}:{self.port}/{self.database} ({status})>"
