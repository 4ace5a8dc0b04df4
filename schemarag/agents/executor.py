"""
QueryExecutor: runs validated SQL against a connection's pool.

Never raises past its boundary: every driver failure is returned as an
unsuccessful ExecutionResult carrying the offending SQL.
"""

import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from schemarag.agents.validator import SQLValidator
from schemarag.connectors.base import ConnectionError, ConnectorError
from schemarag.database.manager import ConnectionProfileStore
from schemarag.database.pools import PoolRegistry
from schemarag.models.answer import ExecutionResult
from schemarag.models.errors import ExecutionError, ValidationError

logger = logging.getLogger(__name__)

VALIDATION_STAGE = "sql_validator"


def to_json_safe(value: Any) -> Any:
    """Convert a driver value into a JSON-serializable one."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, dict):
        return {k: to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    return value


class QueryExecutor:
    """
    Validates and executes SQL for a connection.

    Usage:
        executor = QueryExecutor(pool_registry, profile_store)
        result = await executor.execute(connection_id, sql)
        if result.success:
            print(result.row_count)
    """

    def __init__(
        self,
        pool_registry: PoolRegistry,
        profile_store: ConnectionProfileStore,
        validator: SQLValidator | None = None,
    ):
        self.pool_registry = pool_registry
        self.profile_store = profile_store
        self.validator = validator or SQLValidator()

    async def execute(self, connection_id: UUID | str, sql: str) -> ExecutionResult:
        validation = self.validator.validate(sql)
        statement = validation.preferred_sql
        if statement is None:
            error = ValidationError(VALIDATION_STAGE, validation.error or "Invalid SQL query")
            logger.warning(f"Skipping execution: {error.message}", extra={"sql": sql})
            return ExecutionResult(
                success=False, sql=sql, error=error.message, error_stage=error.stage
            )

        repaired = statement != sql
        if repaired:
            logger.info(f"Executing repaired SQL: {validation.error}")

        try:
            connector = await self.pool_registry.get_existing(connection_id)
            if connector is None:
                profile = await self.profile_store.get_profile(connection_id)
                connector = await self.pool_registry.get_or_create(connection_id, profile)
            result = await connector.execute(statement)
        except ConnectionError as e:
            await self.pool_registry.invalidate(connection_id)
            return self._failure(statement, e, repaired, recoverable=True)
        except ConnectorError as e:
            return self._failure(statement, e, repaired)
        except Exception as e:
            logger.exception(f"Unexpected execution failure for connection {connection_id}")
            return self._failure(statement, e, repaired)

        rows = [{key: to_json_safe(value) for key, value in row.items()} for row in result.rows]
        logger.info(
            f"Query returned {result.row_count} row(s)",
            extra={
                "connection_id": str(connection_id),
                "execution_time_ms": result.execution_time_ms,
            },
        )
        return ExecutionResult(
            success=True,
            sql=statement,
            rows=rows,
            row_count=result.row_count,
            columns=result.columns,
            repaired=repaired,
        )

    @staticmethod
    def _failure(
        sql: str, exc: Exception, repaired: bool, recoverable: bool = False
    ) -> ExecutionResult:
        error = ExecutionError("query_executor", str(exc), recoverable=recoverable)
        logger.error(
            f"Query execution failed: {error.message}",
            extra={"stage": error.stage, "recoverable": error.recoverable, "sql": sql},
        )
        return ExecutionResult(
            success=False,
            sql=sql,
            error=error.message,
            error_stage=error.stage,
            repaired=repaired,
        )
