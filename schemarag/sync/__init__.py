"""Background schema synchronization."""

from schemarag.sync.orchestrator import SchemaSyncSupervisor, SyncJob

__all__ = ["SchemaSyncSupervisor", "SyncJob"]
