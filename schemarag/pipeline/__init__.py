"""Question answering pipeline."""

from schemarag.pipeline.orchestrator import QueryPipeline

__all__ = ["QueryPipeline"]
