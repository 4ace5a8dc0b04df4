"""
Health Check Routes

FastAPI endpoint for service liveness.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, status

from schemarag.models.api import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    """
    Basic liveness check.

    Returns 200 OK while the process is alive. ``checks`` reports whether the
    service finished starting and whether the schema graph is usable; an
    unusable graph only degrades retrieval to vector search.
    """
    from schemarag.api.main import app_state

    service = app_state.get("service")
    checks = {
        "service": service is not None,
        "graph_store": bool(service is not None and service.graph_store.available),
    }
    return HealthResponse(
        status="healthy",
        version="0.1.0",
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )
