"""
FastAPI Application

Main FastAPI application for SchemaRAG with:
- Lifespan management for the service and its collaborators
- CORS middleware for frontend integration
- Global exception handlers for connector and retrieval errors
- Connection, question and health endpoints

Usage:
    uvicorn schemarag.api.main:app --reload --port 8000
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schemarag.api.routes import connections, health
from schemarag.connectors.base import ConnectionError as ConnectorConnectionError
from schemarag.models.errors import RetrievalError
from schemarag.service import SchemaRAGService, build_service

logger = logging.getLogger(__name__)

# Global state for the service
app_state: dict[str, SchemaRAGService | None] = {
    "service": None,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan context manager for startup and shutdown.

    Initializes:
    - Connection profile store (system PostgreSQL)
    - Vector store (Chroma) and schema graph (NetworkX)
    - Pool registry idle sweep
    """
    logger.info("Starting SchemaRAG API server...")

    try:
        service = build_service()
        await service.start()
        app_state["service"] = service
        logger.info("SchemaRAG API server started successfully")

        yield  # Application runs here

    finally:
        logger.info("Shutting down SchemaRAG API server...")
        if app_state["service"]:
            try:
                await app_state["service"].close()
            except Exception as e:
                logger.error(f"Error closing service: {e}")
            app_state["service"] = None
        logger.info("SchemaRAG API server shut down complete")


app = FastAPI(
    title="SchemaRAG API",
    description="Natural language questions over relational databases",
    version="0.1.0",
    lifespan=lifespan,
)

cors_origins_env = os.getenv("CORS_ORIGINS", "")
cors_origins = (
    [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
    if cors_origins_env
    else ["http://localhost:3000"]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ConnectorConnectionError)
async def connection_error_handler(request: Request, exc: ConnectorConnectionError) -> JSONResponse:
    """Handle unreachable or rejected target databases."""
    logger.error(f"Database connection error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "connection_error",
            "message": f"Failed to connect to database: {exc}",
        },
    )


@app.exception_handler(KeyError)
async def not_found_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Handle lookups of unknown connections."""
    message = exc.args[0] if exc.args else "Not found"
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "not_found", "message": str(message)},
    )


@app.exception_handler(RetrievalError)
async def retrieval_error_handler(request: Request, exc: RetrievalError) -> JSONResponse:
    """Handle embedding or vector search failures on the question path."""
    logger.error(f"Retrieval error: {exc}", extra={"stage": exc.stage})
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "error": "retrieval_error",
            "message": exc.message,
            "stage": exc.stage,
            "recoverable": exc.recoverable,
        },
    )


# Include routers
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(connections.router, prefix="/api/v1", tags=["connections"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "SchemaRAG API",
        "version": "0.1.0",
        "description": "Natural language questions over relational databases",
        "docs": "/docs",
    }
