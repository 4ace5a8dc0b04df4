"""Connection profile store backed by the system database."""

from __future__ import annotations

from uuid import UUID

import asyncpg
from cryptography.fernet import Fernet, InvalidToken
from pydantic import SecretStr

from schemarag.config import get_settings
from schemarag.models.connection import ConnectionProfile, ConnectionProfileCreate

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS connection_profiles (
    connection_id UUID PRIMARY KEY,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    host TEXT NOT NULL,
    port INTEGER NOT NULL,
    database_name TEXT NOT NULL,
    username TEXT NOT NULL,
    password_encrypted TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL
);
"""

_CREATE_OWNER_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS connection_profiles_owner_idx
ON connection_profiles (owner_id);
"""

_PROFILE_COLUMNS = """
    connection_id,
    owner_id,
    name,
    host,
    port,
    database_name,
    username,
    password_encrypted,
    created_at
"""


class ConnectionProfileStore:
    """Manage connection profiles stored in the system database."""

    def __init__(
        self,
        system_database_url: str | None = None,
        encryption_key: str | bytes | None = None,
        pool: asyncpg.Pool | None = None,
    ) -> None:
        if system_database_url is None or encryption_key is None:
            settings = get_settings()
            if system_database_url is None and settings.system_database.url is not None:
                system_database_url = str(settings.system_database.url)
            encryption_key = encryption_key or settings.database_credentials_key
        self._system_database_url = system_database_url
        self._pool = pool
        self._encryption_key = encryption_key
        self._cipher: Fernet | None = None

    async def initialize(self) -> None:
        """Initialize connection pool and ensure schema exists."""
        self._ensure_cipher()
        if self._pool is None:
            if not self._system_database_url:
                raise ValueError("SYSTEM_DATABASE_URL must be set to store connection profiles.")
            dsn = self._normalize_postgres_url(self._system_database_url)
            self._pool = await asyncpg.create_pool(dsn=dsn, min_size=1, max_size=5)
        await self._pool.execute(_CREATE_TABLE_SQL)
        await self._pool.execute(_CREATE_OWNER_INDEX_SQL)

    async def close(self) -> None:
        """Close the underlying connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def add_profile(self, owner_id: str, payload: ConnectionProfileCreate) -> ConnectionProfile:
        """Persist a new profile for an owner."""
        self._ensure_pool()
        profile = ConnectionProfile(owner_id=owner_id, **payload.model_dump())
        encrypted = self._encrypt(profile.password.get_secret_value())

        row = await self._pool.fetchrow(
            f"""
            INSERT INTO connection_profiles (
                {_PROFILE_COLUMNS}
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING {_PROFILE_COLUMNS}
            """,
            profile.connection_id,
            profile.owner_id,
            profile.name,
            profile.host,
            profile.port,
            profile.database,
            profile.username,
            encrypted,
            profile.created_at,
        )
        return self._row_to_profile(row)

    async def list_profiles(self, owner_id: str) -> list[ConnectionProfile]:
        """List an owner's profiles, newest first."""
        self._ensure_pool()
        rows = await self._pool.fetch(
            f"""
            SELECT {_PROFILE_COLUMNS}
            FROM connection_profiles
            WHERE owner_id = $1
            ORDER BY created_at DESC
            """,
            owner_id,
        )
        return [self._row_to_profile(row) for row in rows]

    async def get_profile(self, connection_id: UUID | str) -> ConnectionProfile:
        """Retrieve a single profile."""
        self._ensure_pool()
        connection_uuid = self._coerce_uuid(connection_id)
        row = await self._pool.fetchrow(
            f"""
            SELECT {_PROFILE_COLUMNS}
            FROM connection_profiles
            WHERE connection_id = $1
            """,
            connection_uuid,
        )
        if row is None:
            raise KeyError(f"Connection not found: {connection_id}")
        return self._row_to_profile(row)

    async def remove_profile(self, connection_id: UUID | str) -> None:
        """Remove a profile from the store."""
        self._ensure_pool()
        connection_uuid = self._coerce_uuid(connection_id)
        result = await self._pool.execute(
            "DELETE FROM connection_profiles WHERE connection_id = $1",
            connection_uuid,
        )
        deleted = int(result.split()[-1]) if result else 0
        if deleted == 0:
            raise KeyError(f"Connection not found: {connection_id}")

    def _row_to_profile(self, row: asyncpg.Record) -> ConnectionProfile:
        return ConnectionProfile(
            connection_id=row["connection_id"],
            owner_id=row["owner_id"],
            name=row["name"],
            host=row["host"],
            port=row["port"],
            database=row["database_name"],
            username=row["username"],
            password=SecretStr(self._decrypt(row["password_encrypted"])),
            created_at=row["created_at"],
        )

    def _encrypt(self, value: str) -> str:
        cipher = self._ensure_cipher()
        return cipher.encrypt(value.encode("utf-8")).decode("utf-8")

    def _decrypt(self, encrypted: str) -> str:
        cipher = self._ensure_cipher()
        try:
            return cipher.decrypt(encrypted.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Failed to decrypt stored password.") from exc

    def _ensure_cipher(self) -> Fernet:
        if self._cipher is not None:
            return self._cipher
        if not self._encryption_key:
            raise ValueError(
                "DATABASE_CREDENTIALS_KEY must be set to store encrypted passwords."
            )
        key = self._encryption_key
        if isinstance(key, str):
            key = key.encode("utf-8")
        try:
            self._cipher = Fernet(key)
        except (ValueError, TypeError) as exc:
            raise ValueError(
                "Invalid DATABASE_CREDENTIALS_KEY. Use a Fernet-compatible base64 key."
            ) from exc
        return self._cipher

    def _ensure_pool(self) -> None:
        if self._pool is None:
            raise RuntimeError("ConnectionProfileStore is not initialized")

    @staticmethod
    def _coerce_uuid(connection_id: UUID | str) -> UUID:
        if isinstance(connection_id, UUID):
            return connection_id
        try:
            return UUID(str(connection_id))
        except ValueError as exc:
            raise KeyError(f"Connection not found: {connection_id}") from exc

    @staticmethod
    def _normalize_postgres_url(database_url: str) -> str:
        if database_url.startswith("postgresql+asyncpg://"):
            return database_url.replace("postgresql+asyncpg://", "postgresql://", 1)
        return database_url
