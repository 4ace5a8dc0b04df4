"""
Pipeline error taxonomy.

Every stage raises a subclass of StageError so failures can be logged and
converted into partial answers uniformly.
"""

from __future__ import annotations

from typing import Any


class StageError(Exception):
    """
    Base exception for pipeline stage errors.

    Attributes:
        stage: Name of the stage that raised the error
        message: Error description
        recoverable: Whether the caller can degrade and continue
        context: Additional context for debugging
    """

    def __init__(
        self,
        stage: str,
        message: str,
        recoverable: bool = True,
        context: dict[str, Any] | None = None,
    ):
        self.stage = stage
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}
        super().__init__(f"[{stage}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "stage": self.stage,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class IndexingError(StageError):
    """Embedding, vector write or graph write failure during background sync."""

    def __init__(self, stage: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(stage, message, recoverable=True, context=context)


class RetrievalError(StageError):
    """Question embedding or vector search failure (not recoverable for one question)."""

    def __init__(self, stage: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(stage, message, recoverable=False, context=context)


class RetrievalDegradation(StageError):
    """Graph store unavailable; retrieval continues with vector results only."""

    def __init__(self, stage: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(stage, message, recoverable=True, context=context)


class GenerationError(StageError):
    """Model failure or unusable generated statement."""

    def __init__(self, stage: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(stage, message, recoverable=True, context=context)


class ValidationError(StageError):
    """Statement cannot be repaired into a runnable read-only query."""

    def __init__(self, stage: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(stage, message, recoverable=False, context=context)


class ExecutionError(StageError):
    """Driver failure while executing a statement."""

    def __init__(
        self,
        stage: str,
        message: str,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(stage, message, recoverable=recoverable, context=context)
