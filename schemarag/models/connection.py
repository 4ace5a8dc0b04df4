"""
Connection profile models.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, SecretStr


class ConnectionProfile(BaseModel):
    """Stored credentials and metadata for one target database."""

    connection_id: UUID = Field(default_factory=uuid4, description="Connection identifier")
    owner_id: str = Field(..., min_length=1, description="Owning user account")
    name: str = Field(..., min_length=1, description="User-friendly name")
    host: str = Field(..., min_length=1, description="Database host")
    port: int = Field(default=5432, gt=0, le=65535, description="Database port")
    database: str = Field(..., min_length=1, description="Database name")
    username: str = Field(..., min_length=1, description="Database user")
    password: SecretStr = Field(..., description="Database password")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp"
    )

    def public_dict(self) -> dict:
        """Serialize without the password."""
        return self.model_dump(mode="json", exclude={"password"})


class ConnectionProfileCreate(BaseModel):
    """Payload for registering a target database."""

    name: str = Field(..., min_length=1, description="User-friendly name")
    host: str = Field(..., min_length=1, description="Database host")
    port: int = Field(default=5432, gt=0, le=65535, description="Database port")
    database: str = Field(..., min_length=1, description="Database name")
    username: str = Field(..., min_length=1, description="Database user")
    password: SecretStr = Field(..., description="Database password")
