"""System database access and target database pools."""

from schemarag.database.manager import ConnectionProfileStore
from schemarag.database.pools import PoolRegistry, build_postgres_connector

__all__ = ["ConnectionProfileStore", "PoolRegistry", "build_postgres_connector"]
