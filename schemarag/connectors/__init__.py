"""
Database Connectors Module

Provides async connectors for target databases.

Available Connectors:
    - BaseConnector: Abstract base class
    - PostgresConnector: PostgreSQL connector (asyncpg)

Usage:
    from schemarag.connectors import PostgresConnector

    connector = PostgresConnector(
        host="localhost",
        port=5432,
        database="mydb",
        user="postgres",
        password="secret"
    )

    async with connector:
        snapshot = await connector.get_schema()
"""

from schemarag.connectors.base import (
    BaseConnector,
    ConnectionError,
    ConnectorError,
    QueryError,
    QueryResult,
    SchemaError,
    tls_mode_for_host,
)
from schemarag.connectors.postgres import CONNECTION_LEVEL_ERRORS, PostgresConnector

__all__ = [
    "BaseConnector",
    "CONNECTION_LEVEL_ERRORS",
    "PostgresConnector",
    "QueryResult",
    "ConnectorError",
    "ConnectionError",
    "QueryError",
    "SchemaError",
    "tls_mode_for_host",
]
