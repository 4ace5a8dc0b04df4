"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import logging
from unittest.mock import AsyncMock

import pytest

from schemarag.models.schema import (
    ColumnSchema,
    ForeignKey,
    IndexDefinition,
    SchemaSnapshot,
    TableSchema,
)

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires API keys and external services)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (may require external services)"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Capture logs at DEBUG for every test."""
    caplog.set_level(logging.DEBUG)
    yield


@pytest.fixture
def disable_logging():
    """Disable logging for tests that generate excessive logs."""
    logging.disable(logging.CRITICAL)
    yield
    logging.disable(logging.NOTSET)


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def mock_openai_api_key(monkeypatch, tmp_path):
    """
    Mock OpenAI API key and keep stores out of the working tree.

    Runs automatically for all tests so no test reads a developer .env.
    """
    from schemarag.config import clear_settings_cache

    clear_settings_cache()

    test_key = "sk-test-key-1234567890-abcdefghijklmnop"  # 20+ chars
    monkeypatch.setenv("SCHEMARAG_ENV_SOURCE", "env")
    monkeypatch.setenv("LLM_OPENAI_API_KEY", test_key)
    monkeypatch.setenv("CHROMA_PERSIST_DIR", str(tmp_path / "chroma"))
    monkeypatch.setenv("GRAPH_PERSIST_DIR", str(tmp_path / "graph"))
    yield test_key

    clear_settings_cache()


# ============================================================================
# Mock LLM Provider
# ============================================================================


@pytest.fixture
def mock_llm_provider():
    """
    Mock LLM provider for testing the SQL synthesizer.

    Usage:
        def test_sql(mock_llm_provider):
            mock_llm_provider.set_response('SELECT * FROM "users"')
    """
    from schemarag.llm.models import LLMResponse, LLMUsage, ModelInfo

    class MockLLMProvider:
        def __init__(self):
            self.generate = AsyncMock()
            self.context_window = 128000

        def count_tokens(self, text: str) -> int:
            return len(text) // 4

        def get_model_info(self, model_name=None):
            return ModelInfo(
                name="mock-model",
                provider="mock",
                context_window=self.context_window,
                max_output=4096,
            )

        def set_response(self, response: str):
            """Set the response that generate() will return."""
            self.generate.return_value = LLMResponse(
                content=response,
                model="mock-model",
                usage=LLMUsage(prompt_tokens=1, completion_tokens=1, total_tokens=2),
                finish_reason="stop",
                provider="mock",
                metadata={},
            )

    return MockLLMProvider()


# ============================================================================
# Mock Database Connectors
# ============================================================================


@pytest.fixture
def mock_postgres_connector():
    """Mock pooled PostgreSQL connector."""
    connector = AsyncMock()
    connector.connect = AsyncMock()
    connector.close = AsyncMock()
    connector.execute = AsyncMock()
    connector.get_schema = AsyncMock()
    return connector


# ============================================================================
# Common Schema Data
# ============================================================================


@pytest.fixture
def users_table() -> TableSchema:
    """users(id pk, name varchar, email varchar unique)."""
    return TableSchema(
        name="users",
        columns=[
            ColumnSchema(name="id", data_type="integer", is_nullable=False, ordinal_position=1),
            ColumnSchema(
                name="name", data_type="character varying", ordinal_position=2, max_length=100
            ),
            ColumnSchema(
                name="email", data_type="character varying", ordinal_position=3, max_length=255
            ),
        ],
        primary_keys=["id"],
        unique_columns=["email"],
        indexes=[
            IndexDefinition(
                name="users_pkey",
                definition="CREATE UNIQUE INDEX users_pkey ON public.users USING btree (id)",
            ),
            IndexDefinition(
                name="users_email_key",
                definition="CREATE UNIQUE INDEX users_email_key ON public.users USING btree (email)",
            ),
        ],
    )


@pytest.fixture
def orders_snapshot() -> SchemaSnapshot:
    """orders(id pk, customer_id fk -> customers.id) and customers(id pk)."""
    return SchemaSnapshot(
        tables=[
            TableSchema(
                name="customers",
                columns=[
                    ColumnSchema(
                        name="id", data_type="integer", is_nullable=False, ordinal_position=1
                    ),
                ],
                primary_keys=["id"],
            ),
            TableSchema(
                name="orders",
                columns=[
                    ColumnSchema(
                        name="id", data_type="integer", is_nullable=False, ordinal_position=1
                    ),
                    ColumnSchema(name="customer_id", data_type="integer", ordinal_position=2),
                ],
                primary_keys=["id"],
                foreign_keys=[
                    ForeignKey(column="customer_id", target_table="customers", target_column="id")
                ],
            ),
        ]
    )
