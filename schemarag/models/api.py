"""
API request/response models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from schemarag.models.connection import ConnectionProfile


class AskRequest(BaseModel):
    """Request body for asking a question about a connection."""

    question: str = Field(..., min_length=1, max_length=2000, description="Natural-language question")


class ConnectionResponse(BaseModel):
    """Connection profile as returned by the API (no password)."""

    connection_id: UUID
    owner_id: str
    name: str
    host: str
    port: int
    database: str
    username: str
    created_at: datetime

    @classmethod
    def from_profile(cls, profile: ConnectionProfile) -> ConnectionResponse:
        return cls.model_validate(profile.public_dict())


class SyncStatusResponse(BaseModel):
    """Background schema sync status for a connection."""

    status: str = Field(..., description="idle, pending, running, completed, failed or cancelled")
    job_id: str | None = None
    connection_id: str
    stage: str | None = Field(None, description="Stage of the latest attempt")
    started_at: datetime | None = None
    finished_at: datetime | None = None
    attempts: int = 0
    tables_indexed: int = 0
    records_written: int = 0
    tables_synced: int = 0
    tables_failed: list[str] = Field(default_factory=list)
    error: str | None = None


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""

    status: str = Field(..., description="Service status: 'healthy' or 'unhealthy'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")
    checks: dict[str, Any] = Field(default_factory=dict, description="Component checks")
