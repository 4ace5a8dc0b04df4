"""Connection and question routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Response, status

from schemarag.models.answer import QueryAnswer
from schemarag.models.api import AskRequest, ConnectionResponse, SyncStatusResponse
from schemarag.models.connection import ConnectionProfileCreate
from schemarag.service import SchemaRAGService

router = APIRouter()


def _get_service() -> SchemaRAGService:
    from schemarag.api.main import app_state

    service = app_state.get("service")
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is unavailable. Check SYSTEM_DATABASE_URL and DATABASE_CREDENTIALS_KEY.",
        )
    return service


@router.post(
    "/connections", response_model=ConnectionResponse, status_code=status.HTTP_201_CREATED
)
async def create_connection(
    payload: ConnectionProfileCreate,
    x_owner_id: str = Header(..., min_length=1),
) -> ConnectionResponse:
    """Register a target database; schema sync starts in the background."""
    service = _get_service()
    try:
        profile = await service.create_connection(x_owner_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ConnectionResponse.from_profile(profile)


@router.get("/connections", response_model=list[ConnectionResponse])
async def list_connections(x_owner_id: str = Header(..., min_length=1)) -> list[ConnectionResponse]:
    """List the caller's connections."""
    profiles = await _get_service().list_connections(x_owner_id)
    return [ConnectionResponse.from_profile(profile) for profile in profiles]


@router.get("/connections/{connection_id}", response_model=ConnectionResponse)
async def get_connection(connection_id: UUID) -> ConnectionResponse:
    profile = await _get_service().get_connection(connection_id)
    return ConnectionResponse.from_profile(profile)


@router.delete("/connections/{connection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_connection(connection_id: UUID) -> Response:
    """Delete a connection with its pool, vectors and graph entities."""
    await _get_service().delete_connection(connection_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/connections/{connection_id}/sync",
    response_model=SyncStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def resync_connection(connection_id: UUID) -> SyncStatusResponse:
    """Re-run introspection, indexing and graph sync for a connection."""
    return SyncStatusResponse(**await _get_service().resync_connection(connection_id))


@router.get("/connections/{connection_id}/sync", response_model=SyncStatusResponse)
async def get_sync_status(connection_id: UUID) -> SyncStatusResponse:
    return SyncStatusResponse(**await _get_service().sync_status(connection_id))


@router.post("/connections/{connection_id}/ask", response_model=QueryAnswer)
async def ask(connection_id: UUID, payload: AskRequest) -> QueryAnswer:
    """Answer a natural-language question about a connection's data."""
    return await _get_service().ask(connection_id, payload.question)
