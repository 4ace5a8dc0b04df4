"""
SchemaRAG service: the operations exposed to the API and CLI.

Owns the application collaborators (profile store, pool registry, vector and
graph stores, sync supervisor, query pipeline) and their lifecycle.
"""

from __future__ import annotations

import logging
from uuid import UUID

from schemarag.agents.executor import QueryExecutor
from schemarag.agents.sql import SQLSynthesizer
from schemarag.agents.validator import SQLValidator
from schemarag.config import PoolSettings, Settings, get_settings
from schemarag.database.manager import ConnectionProfileStore
from schemarag.database.pools import ConnectorFactory, PoolRegistry, build_postgres_connector
from schemarag.knowledge.embeddings import Embedder
from schemarag.knowledge.graph import GraphStoreError, SchemaGraphStore
from schemarag.knowledge.graph_sync import GraphSynchronizer
from schemarag.knowledge.indexer import SchemaIndexer
from schemarag.knowledge.retriever import SchemaRetriever
from schemarag.knowledge.vectors import SchemaVectorStore
from schemarag.llm.factory import LLMProviderFactory
from schemarag.models.answer import QueryAnswer
from schemarag.models.connection import ConnectionProfile, ConnectionProfileCreate
from schemarag.pipeline.orchestrator import QueryPipeline
from schemarag.sync.orchestrator import SchemaSyncSupervisor

logger = logging.getLogger(__name__)


class SchemaRAGService:
    """
    Connection management and question answering over target databases.

    Usage:
        service = build_service()
        await service.start()
        profile = await service.create_connection("user-1", payload)
        answer = await service.ask(profile.connection_id, "who are the users")
        await service.close()
    """

    def __init__(
        self,
        profile_store: ConnectionProfileStore,
        pool_registry: PoolRegistry,
        pipeline: QueryPipeline,
        sync_supervisor: SchemaSyncSupervisor,
        vector_store: SchemaVectorStore,
        graph_store: SchemaGraphStore,
        pool_settings: PoolSettings | None = None,
        connector_factory: ConnectorFactory = build_postgres_connector,
    ):
        self.profile_store = profile_store
        self.pool_registry = pool_registry
        self.pipeline = pipeline
        self.sync_supervisor = sync_supervisor
        self.vector_store = vector_store
        self.graph_store = graph_store
        self.pool_settings = pool_settings or PoolSettings()
        self._connector_factory = connector_factory

    async def start(self) -> None:
        await self.profile_store.initialize()
        await self.vector_store.initialize()
        self.graph_store.load()
        self.pool_registry.start()
        logger.info("SchemaRAG service started")

    async def close(self) -> None:
        await self.sync_supervisor.shutdown()
        await self.pool_registry.shutdown()
        await self.profile_store.close()
        logger.info("SchemaRAG service stopped")

    # Connections

    async def create_connection(
        self, owner_id: str, payload: ConnectionProfileCreate
    ) -> ConnectionProfile:
        """
        Register a target database and start its background sync.

        Raises:
            ConnectionError: If the target database cannot be reached
        """
        await self._check_connectivity(owner_id, payload)
        profile = await self.profile_store.add_profile(owner_id, payload)
        self.sync_supervisor.enqueue(profile)
        logger.info(
            f"Created connection {profile.connection_id}",
            extra={"owner_id": owner_id, "connection_id": str(profile.connection_id)},
        )
        return profile

    async def list_connections(self, owner_id: str) -> list[ConnectionProfile]:
        return await self.profile_store.list_profiles(owner_id)

    async def get_connection(self, connection_id: UUID | str) -> ConnectionProfile:
        return await self.profile_store.get_profile(connection_id)

    async def delete_connection(self, connection_id: UUID | str) -> None:
        """
        Remove a connection with its pool, vectors and graph entities.

        Raises:
            KeyError: If the connection does not exist
        """
        profile = await self.profile_store.get_profile(connection_id)
        key = str(profile.connection_id)

        await self.sync_supervisor.cancel(key)
        await self.pool_registry.close(key)
        await self.vector_store.delete_connection(key)
        try:
            self.graph_store.delete_connection(key)
            self.graph_store.save()
        except GraphStoreError as e:
            logger.warning(f"Could not purge graph entities for connection {key}: {e}")

        await self.profile_store.remove_profile(key)
        logger.info(f"Deleted connection {key}")

    async def resync_connection(self, connection_id: UUID | str) -> dict:
        profile = await self.profile_store.get_profile(connection_id)
        self.sync_supervisor.enqueue(profile)
        return self.sync_supervisor.get_status(profile.connection_id)

    async def sync_status(self, connection_id: UUID | str) -> dict:
        profile = await self.profile_store.get_profile(connection_id)
        return self.sync_supervisor.get_status(profile.connection_id)

    # Questions

    async def ask(self, connection_id: UUID | str, question: str) -> QueryAnswer:
        """
        Answer a natural-language question about a connection's data.

        Raises:
            KeyError: If the connection does not exist
            RetrievalError: If the question cannot be embedded or searched
        """
        profile = await self.profile_store.get_profile(connection_id)
        return await self.pipeline.ask(profile.connection_id, question)

    async def _check_connectivity(self, owner_id: str, payload: ConnectionProfileCreate) -> None:
        candidate = ConnectionProfile(owner_id=owner_id, **payload.model_dump())
        connector = self._connector_factory(candidate, self.pool_settings)
        try:
            await connector.connect()
        finally:
            await connector.close()


def build_service(settings: Settings | None = None) -> SchemaRAGService:
    """Wire the service and its collaborators from settings."""
    settings = settings or get_settings()

    vector_store = SchemaVectorStore(
        collection_name=settings.chroma.collection_name,
        persist_directory=settings.chroma.persist_dir,
        upsert_batch_size=settings.chroma.upsert_batch_size,
    )
    graph_store = SchemaGraphStore(
        persist_directory=settings.graph.persist_dir,
        graph_name=settings.graph.graph_name,
    )
    embedder = Embedder(
        api_key=settings.llm.openai_api_key,
        model=settings.embedding.model,
        timeout=settings.llm.timeout,
    )
    profile_store = ConnectionProfileStore(
        system_database_url=(
            str(settings.system_database.url) if settings.system_database.url else None
        ),
        encryption_key=settings.database_credentials_key,
    )
    pool_registry = PoolRegistry(settings.pools)

    indexer = SchemaIndexer(
        embedder,
        vector_store,
        max_batch_tokens=settings.embedding.max_batch_tokens,
        chars_per_token=settings.embedding.chars_per_token,
    )
    graph_sync = GraphSynchronizer(
        graph_store,
        table_batch_size=settings.graph.table_batch_size,
        batch_delay_seconds=settings.graph.batch_delay_seconds,
    )
    sync_supervisor = SchemaSyncSupervisor(
        indexer,
        graph_sync,
        pool_settings=settings.pools,
        schema_name=settings.sync.schema_name,
        max_attempts=settings.sync.max_attempts,
        retry_backoff_seconds=settings.sync.retry_backoff_seconds,
    )

    provider = LLMProviderFactory.create_default_provider(settings.llm)
    pipeline = QueryPipeline(
        retriever=SchemaRetriever(
            embedder, vector_store, graph_store, top_k=settings.chroma.top_k
        ),
        synthesizer=SQLSynthesizer(
            provider,
            temperature=settings.llm.temperature,
            max_tokens=settings.llm.max_tokens,
        ),
        executor=QueryExecutor(pool_registry, profile_store, SQLValidator()),
    )

    return SchemaRAGService(
        profile_store=profile_store,
        pool_registry=pool_registry,
        pipeline=pipeline,
        sync_supervisor=sync_supervisor,
        vector_store=vector_store,
        graph_store=graph_store,
        pool_settings=settings.pools,
    )
