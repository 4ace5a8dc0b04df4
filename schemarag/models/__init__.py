"""
SchemaRAG Models Module

Pydantic models for type-safe data validation throughout the application.

Available Models:
    Schema Models:
        - SchemaSnapshot, TableSchema, ColumnSchema, ForeignKey, IndexDefinition

    Classification Models:
        - ColumnRole, ColumnClassification, TableClassification

    Connection Models:
        - ConnectionProfile, ConnectionProfileCreate

    Retrieval Models:
        - RetrievedColumn, TableDescriptor, RelationshipMatch, RetrievalResult

    Answer Models:
        - ValidationResult, ExecutionResult, QueryAnswer

    API Models:
        - AskRequest, ConnectionResponse, SyncStatusResponse, HealthResponse

    Errors:
        - StageError and its subclasses

Usage:
    from schemarag.models import SchemaSnapshot, QueryAnswer
"""

from schemarag.models.answer import (
    AnswerTable,
    ExecutionResult,
    QueryAnswer,
    QueryResultPayload,
    ValidationResult,
)
from schemarag.models.api import (
    AskRequest,
    ConnectionResponse,
    HealthResponse,
    SyncStatusResponse,
)
from schemarag.models.classification import (
    ColumnClassification,
    ColumnRole,
    TableClassification,
)
from schemarag.models.connection import ConnectionProfile, ConnectionProfileCreate
from schemarag.models.errors import (
    ExecutionError,
    GenerationError,
    IndexingError,
    RetrievalDegradation,
    RetrievalError,
    StageError,
    ValidationError,
)
from schemarag.models.retrieval import (
    RelationshipMatch,
    RetrievalResult,
    RetrievedColumn,
    TableDescriptor,
)
from schemarag.models.schema import (
    ColumnSchema,
    ForeignKey,
    IndexDefinition,
    SchemaSnapshot,
    TableSchema,
)

__all__ = [
    "AnswerTable",
    "AskRequest",
    "ColumnClassification",
    "ColumnRole",
    "ColumnSchema",
    "ConnectionProfile",
    "ConnectionProfileCreate",
    "ConnectionResponse",
    "ExecutionError",
    "ExecutionResult",
    "ForeignKey",
    "GenerationError",
    "HealthResponse",
    "IndexDefinition",
    "IndexingError",
    "QueryAnswer",
    "QueryResultPayload",
    "RelationshipMatch",
    "RetrievalDegradation",
    "RetrievalError",
    "RetrievalResult",
    "RetrievedColumn",
    "SchemaSnapshot",
    "StageError",
    "SyncStatusResponse",
    "TableClassification",
    "TableDescriptor",
    "TableSchema",
    "ValidationError",
    "ValidationResult",
]
