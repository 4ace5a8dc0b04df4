"""
PoolRegistry: one bounded connection pool per target database.

Pools are built lazily from stored credentials, reused across questions, and
evicted when idle. The pool map and last-used timestamps are only mutated
while holding the registry lock; connecting and closing happen outside it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from uuid import UUID

from schemarag.config import PoolSettings
from schemarag.connectors.base import BaseConnector
from schemarag.connectors.postgres import PostgresConnector
from schemarag.models.connection import ConnectionProfile

logger = logging.getLogger(__name__)

ConnectorFactory = Callable[[ConnectionProfile, PoolSettings], BaseConnector]


def build_postgres_connector(profile: ConnectionProfile, settings: PoolSettings) -> BaseConnector:
    """Build a pooled PostgreSQL client for a profile."""
    return PostgresConnector(
        host=profile.host,
        port=profile.port,
        database=profile.database,
        user=profile.username,
        password=profile.password.get_secret_value(),
        pool_size=settings.pool_max_size,
        timeout=settings.command_timeout,
        connect_timeout=settings.connect_timeout,
        idle_timeout=settings.connection_idle_timeout,
    )


class PoolRegistry:
    """
    Maps connection ids to live pooled clients.

    Usage:
        registry = PoolRegistry(settings.pools)
        registry.start()
        connector = await registry.get_or_create(profile.connection_id, profile)
        ...
        await registry.close_all()
    """

    def __init__(
        self,
        settings: PoolSettings | None = None,
        connector_factory: ConnectorFactory = build_postgres_connector,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or PoolSettings()
        self._connector_factory = connector_factory
        self._clock = clock
        self._pools: dict[str, BaseConnector] = {}
        self._last_used: dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._creation_locks: dict[str, asyncio.Lock] = {}
        self._sweep_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._pools)

    def __contains__(self, connection_id: UUID | str) -> bool:
        return str(connection_id) in self._pools

    async def get_or_create(
        self, connection_id: UUID | str, profile: ConnectionProfile
    ) -> BaseConnector:
        """
        Return the live pool for a connection, building it on first use.

        At the pool ceiling, idle pools are evicted first; creation proceeds
        even when nothing was evictable. Concurrent callers for the same
        connection share one build, and builds never hold the registry lock.

        Raises:
            ConnectionError: If the new pool cannot connect
        """
        key = str(connection_id)
        async with self._lock:
            connector = self._touch_locked(key)
            if connector is not None:
                return connector
            creation_lock = self._creation_locks.setdefault(key, asyncio.Lock())

        async with creation_lock:
            async with self._lock:
                connector = self._touch_locked(key)
                if connector is not None:
                    return connector

                evicted: list[tuple[str, BaseConnector]] = []
                if len(self._pools) >= self.settings.max_pools:
                    evicted = self._pop_idle_locked()
                    if not evicted:
                        logger.warning(
                            f"Pool ceiling reached with no idle pools; creating pool {key} anyway",
                            extra={"pools": len(self._pools)},
                        )

            for evicted_key, evicted_connector in evicted:
                await self._close_connector(evicted_key, evicted_connector)

            connector = self._connector_factory(profile, self.settings)
            await connector.connect()

            async with self._lock:
                self._pools[key] = connector
                self._last_used[key] = self._clock()
                pool_count = len(self._pools)

        logger.info(f"Created pool for connection {key}", extra={"pools": pool_count})
        return connector

    async def get_existing(self, connection_id: UUID | str) -> BaseConnector | None:
        """Return the live pool for a connection without creating one."""
        async with self._lock:
            return self._touch_locked(str(connection_id))

    async def close(self, connection_id: UUID | str) -> bool:
        """Close and forget one pool. Returns False if none was live."""
        key = str(connection_id)
        async with self._lock:
            connector = self._pools.pop(key, None)
            self._last_used.pop(key, None)
        if connector is None:
            return False
        await self._close_connector(key, connector)
        return True

    async def invalidate(self, connection_id: UUID | str) -> None:
        """Drop a pool after a connection-level error so the next use rebuilds it."""
        if await self.close(connection_id):
            logger.warning(f"Invalidated pool for connection {connection_id}")

    async def close_all(self) -> None:
        async with self._lock:
            pools = list(self._pools.items())
            self._pools.clear()
            self._last_used.clear()
        for key, connector in pools:
            await self._close_connector(key, connector)

    async def sweep(self) -> list[str]:
        """Evict every pool idle longer than the threshold."""
        async with self._lock:
            evicted = self._pop_idle_locked()
        for key, connector in evicted:
            await self._close_connector(key, connector)
        return [key for key, _ in evicted]

    def start(self) -> None:
        """Launch the periodic idle sweep on the running loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def shutdown(self) -> None:
        """Stop the sweep and close every pool."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None
        await self.close_all()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval_seconds)
            try:
                evicted = await self.sweep()
                if evicted:
                    logger.info(f"Idle sweep evicted {len(evicted)} pool(s)")
            except Exception as e:
                logger.error(f"Idle pool sweep failed: {e}")

    def _touch_locked(self, key: str) -> BaseConnector | None:
        connector = self._pools.get(key)
        if connector is not None:
            self._last_used[key] = self._clock()
        return connector

    def _pop_idle_locked(self) -> list[tuple[str, BaseConnector]]:
        """Remove idle pools from the map; the caller closes them after unlocking."""
        now = self._clock()
        idle = [
            key
            for key, last_used in self._last_used.items()
            if now - last_used > self.settings.pool_idle_seconds
        ]
        evicted = []
        for key in idle:
            evicted.append((key, self._pools.pop(key)))
            self._last_used.pop(key, None)
        return evicted

    @staticmethod
    async def _close_connector(key: str, connector: BaseConnector) -> None:
        try:
            await connector.close()
        except Exception as e:
            logger.warning(f"Error closing pool for connection {key}: {e}")
        else:
            logger.debug(f"Closed pool for connection {key}")
