"""Background schema sync supervisor for target databases."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from schemarag.config import PoolSettings
from schemarag.connectors.base import BaseConnector
from schemarag.database.pools import build_postgres_connector
from schemarag.knowledge.graph_sync import GraphSynchronizer
from schemarag.knowledge.indexer import SchemaIndexer
from schemarag.models.connection import ConnectionProfile
from schemarag.models.errors import IndexingError

logger = logging.getLogger(__name__)

ConnectorFactory = Callable[[ConnectionProfile, PoolSettings], BaseConnector]


@dataclass
class SyncJob:
    """Status for a schema sync job."""

    job_id: UUID
    connection_id: str
    status: str
    started_at: datetime
    stage: str | None = None
    finished_at: datetime | None = None
    attempts: int = 0
    tables_indexed: int = 0
    records_written: int = 0
    tables_synced: int = 0
    tables_failed: list[str] = field(default_factory=list)
    error: str | None = None


class SchemaSyncSupervisor:
    """
    Run introspection, indexing and graph sync as supervised background tasks.

    One task per connection; enqueueing again replaces the running task.
    Failures are retried with backoff and recorded on the job, never raised
    to the caller that enqueued them.
    """

    def __init__(
        self,
        indexer: SchemaIndexer,
        graph_sync: GraphSynchronizer,
        pool_settings: PoolSettings | None = None,
        connector_factory: ConnectorFactory = build_postgres_connector,
        schema_name: str = "public",
        max_attempts: int = 2,
        retry_backoff_seconds: float = 2.0,
    ) -> None:
        self._indexer = indexer
        self._graph_sync = graph_sync
        self._pool_settings = pool_settings or PoolSettings()
        self._connector_factory = connector_factory
        self._schema_name = schema_name
        self._max_attempts = max_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._jobs: dict[str, SyncJob] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def enqueue(self, profile: ConnectionProfile) -> SyncJob:
        """Schedule a sync for a profile on the running loop."""
        key = str(profile.connection_id)
        previous = self._tasks.pop(key, None)
        if previous is not None and not previous.done():
            logger.info(f"Replacing running sync for connection {key}")
            previous.cancel()

        job = SyncJob(
            job_id=uuid4(),
            connection_id=key,
            status="pending",
            started_at=datetime.now(UTC),
        )
        self._jobs[key] = job
        task = asyncio.create_task(self._run(job, profile), name=f"schema-sync-{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda done, key=key: self._on_done(key, done))
        return job

    def get_status(self, connection_id: UUID | str) -> dict:
        job = self._jobs.get(str(connection_id))
        if job is None:
            return {
                "status": "idle",
                "job_id": None,
                "connection_id": str(connection_id),
                "stage": None,
                "started_at": None,
                "finished_at": None,
                "attempts": 0,
                "tables_indexed": 0,
                "records_written": 0,
                "tables_synced": 0,
                "tables_failed": [],
                "error": None,
            }
        payload = asdict(job)
        payload["job_id"] = str(payload["job_id"])
        return payload

    async def wait(self, connection_id: UUID | str | None = None) -> None:
        """Wait for one connection's sync, or for every running sync."""
        if connection_id is not None:
            task = self._tasks.get(str(connection_id))
            tasks = [task] if task is not None else []
        else:
            tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def cancel(self, connection_id: UUID | str) -> None:
        """Stop a connection's sync and forget its status."""
        key = str(connection_id)
        task = self._tasks.pop(key, None)
        self._jobs.pop(key, None)
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_done(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            self._tasks.pop(key, None)

    async def _run(self, job: SyncJob, profile: ConnectionProfile) -> None:
        job.status = "running"
        try:
            while job.attempts < self._max_attempts:
                job.attempts += 1
                try:
                    await self._sync_once(job, profile)
                    job.status = "completed"
                    job.error = None
                    return
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    job.error = str(exc)
                    logger.warning(
                        f"Schema sync attempt {job.attempts} failed for connection "
                        f"{job.connection_id}: {exc}",
                        extra={"connection_id": job.connection_id, "attempt": job.attempts},
                    )
                    if job.attempts < self._max_attempts:
                        await asyncio.sleep(self._retry_backoff_seconds * job.attempts)
            job.status = "failed"
            logger.error(
                f"Schema sync failed for connection {job.connection_id}: {job.error}",
                extra={"connection_id": job.connection_id},
            )
        except asyncio.CancelledError:
            job.status = "cancelled"
            raise
        finally:
            job.finished_at = datetime.now(UTC)

    async def _sync_once(self, job: SyncJob, profile: ConnectionProfile) -> None:
        job.stage = "introspection"
        connector = self._connector_factory(profile, self._pool_settings)
        try:
            await connector.connect()
            snapshot = await connector.get_schema(self._schema_name)
        finally:
            await connector.close()

        job.stage = "indexing"
        report = await self._indexer.index(job.connection_id, snapshot)
        job.tables_indexed = report.tables_indexed
        job.records_written = report.records_written

        job.stage = "graph_sync"
        try:
            graph_report = await self._graph_sync.sync(
                job.connection_id,
                snapshot,
                connection_name=profile.name,
            )
        except Exception as exc:
            raise IndexingError(
                "graph_sync",
                f"Graph sync failed: {exc}",
                context={"connection_id": job.connection_id},
            ) from exc
        job.tables_synced = len(graph_report.tables_synced)
        job.tables_failed = list(graph_report.tables_failed)

        logger.info(
            f"Schema sync completed for connection {job.connection_id}",
            extra={
                "connection_id": job.connection_id,
                "tables_indexed": job.tables_indexed,
                "records_written": job.records_written,
                "tables_synced": job.tables_synced,
            },
        )
