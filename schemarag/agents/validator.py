"""
SQLValidator: quote repair and read-only guard for generated SQL.

Rule-based, no LLM calls:
- Quote balance scan with automatic repair of a missing closing quote
- SELECT presence check
- Read-only guard using sqlparse (single statement, SELECT type, no
  data-changing or schema-changing keywords)
"""

import logging

import sqlparse
from sqlparse.tokens import Keyword

from schemarag.models.answer import ValidationResult

logger = logging.getLogger(__name__)

FORBIDDEN_KEYWORDS = frozenset(
    {
        "INSERT",
        "UPDATE",
        "DELETE",
        "MERGE",
        "UPSERT",
        "DROP",
        "ALTER",
        "CREATE",
        "TRUNCATE",
        "GRANT",
        "REVOKE",
        "COPY",
        "VACUUM",
        "REINDEX",
        "CALL",
        "EXECUTE",
    }
)


def scan_quotes(sql: str) -> tuple[bool, bool]:
    """
    Track single and double quote state across a statement.

    Each quote kind toggles its own state independently. A quote directly
    preceded by a backslash does not toggle.

    Returns:
        (single_open, double_open) at the end of the statement
    """
    single_open = False
    double_open = False
    previous = ""
    for char in sql:
        if previous != "\\":
            if char == "'":
                single_open = not single_open
            elif char == '"':
                double_open = not double_open
        previous = char
    return single_open, double_open


class SQLValidator:
    """
    Validates and repairs generated SQL before execution.

    Usage:
        validator = SQLValidator()
        result = validator.validate(sql)
        sql_to_run = result.preferred_sql
    """

    def validate(self, sql: str | None) -> ValidationResult:
        """
        Validate a statement, proposing a repair when quotes are unbalanced.

        Returns:
            ValidationResult; ``preferred_sql`` is None when execution must be skipped
        """
        if not sql or not sql.strip():
            return ValidationResult(
                is_valid=False, sql=sql or "", error="Empty or invalid SQL query"
            )

        single_open, double_open = scan_quotes(sql)
        candidate = sql
        error = None
        if single_open or double_open:
            if single_open:
                candidate += "'"
            if double_open:
                candidate += '"'
            missing = []
            if single_open:
                missing.append("missing closing single quote (')")
            if double_open:
                missing.append('missing closing double quote (")')
            error = f"Unbalanced quotes in SQL query: {', '.join(missing)}"
            logger.info(f"Repairing unbalanced quotes: {error}")

        if "SELECT" not in candidate.upper():
            return ValidationResult(
                is_valid=False,
                sql=sql,
                error="Query must include a SELECT statement",
                repairable=False,
            )

        guard_error = self._read_only_violation(candidate)
        if guard_error:
            logger.warning(f"Rejected non read-only SQL: {guard_error}")
            return ValidationResult(
                is_valid=False,
                sql=sql,
                error=guard_error,
                repairable=False,
            )

        if candidate != sql:
            return ValidationResult(
                is_valid=False,
                sql=sql,
                repaired_sql=candidate,
                error=error,
                repairable=True,
            )

        return ValidationResult(is_valid=True, sql=sql)

    def _read_only_violation(self, sql: str) -> str | None:
        """Describe why a statement is not a single read-only query, or None."""
        statements = [s for s in sqlparse.parse(sql) if str(s).strip().strip(";").strip()]
        if not statements:
            return "Failed to parse SQL - invalid syntax"
        if len(statements) > 1:
            return "Multiple SQL statements detected - only single SELECT allowed"

        statement = statements[0]
        statement_type = statement.get_type()
        if statement_type != "SELECT":
            return f"Only SELECT queries allowed, found: {statement_type}"

        for token in statement.flatten():
            if token.ttype in Keyword and token.normalized.upper() in FORBIDDEN_KEYWORDS:
                return f"Statement contains forbidden keyword: {token.normalized.upper()}"

        return None
