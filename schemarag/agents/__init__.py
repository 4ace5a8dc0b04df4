"""Query-path stages: SQL synthesis, validation and execution."""

from schemarag.agents.executor import QueryExecutor, to_json_safe
from schemarag.agents.sql import SQLSynthesizer, build_prompt_context, strip_code_fences
from schemarag.agents.validator import FORBIDDEN_KEYWORDS, SQLValidator, scan_quotes

__all__ = [
    "FORBIDDEN_KEYWORDS",
    "QueryExecutor",
    "SQLSynthesizer",
    "SQLValidator",
    "build_prompt_context",
    "scan_quotes",
    "strip_code_fences",
    "to_json_safe",
]
