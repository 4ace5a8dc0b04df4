"""Unit tests for schema, connection, answer and error models."""

import pytest
from pydantic import SecretStr, ValidationError

from schemarag.models import (
    ColumnSchema,
    ConnectionProfile,
    ConnectionResponse,
    GenerationError,
    RetrievalError,
    SchemaSnapshot,
    TableSchema,
    ValidationResult,
)


class TestSchemaModels:
    def test_primary_key_is_first_declared(self):
        table = TableSchema(name="line_items", primary_keys=["order_id", "line_no"])

        assert table.primary_key == "order_id"

    def test_primary_key_missing(self):
        assert TableSchema(name="events").primary_key is None

    def test_ordinal_position_must_be_positive(self):
        with pytest.raises(ValidationError):
            ColumnSchema(name="id", data_type="integer", ordinal_position=0)

    def test_foreign_key_lookup(self, orders_snapshot):
        orders = orders_snapshot.get_table("orders")

        assert orders.foreign_key_for("customer_id").target_table == "customers"
        assert orders.foreign_key_for("id") is None

    def test_content_hash_is_stable(self, orders_snapshot):
        copy = SchemaSnapshot.model_validate(orders_snapshot.model_dump())

        assert copy.content_hash() == orders_snapshot.content_hash()
        assert len(orders_snapshot.content_hash()) == 16

    def test_content_hash_changes_with_schema(self, orders_snapshot, users_table):
        extended = SchemaSnapshot(tables=[*orders_snapshot.tables, users_table])

        assert extended.content_hash() != orders_snapshot.content_hash()


class TestConnectionModels:
    def test_public_dict_omits_password(self):
        profile = ConnectionProfile(
            owner_id="alice",
            name="warehouse",
            host="db.internal",
            database="sales",
            username="reader",
            password=SecretStr("hunter2"),
        )

        payload = profile.public_dict()

        assert "password" not in payload
        assert payload["port"] == 5432
        assert ConnectionResponse.from_profile(profile).connection_id == profile.connection_id

    def test_port_range(self):
        with pytest.raises(ValidationError):
            ConnectionProfile(
                owner_id="alice",
                name="warehouse",
                host="db.internal",
                port=70000,
                database="sales",
                username="reader",
                password=SecretStr("x"),
            )


class TestValidationResult:
    def test_preferred_sql_valid(self):
        result = ValidationResult(is_valid=True, sql="SELECT 1")

        assert result.preferred_sql == "SELECT 1"

    def test_preferred_sql_repaired(self):
        result = ValidationResult(
            is_valid=False, sql="SELECT 'a", repaired_sql="SELECT 'a'", repairable=True
        )

        assert result.preferred_sql == "SELECT 'a'"

    def test_preferred_sql_unrepairable(self):
        result = ValidationResult(is_valid=False, sql="DROP TABLE x", error="nope")

        assert result.preferred_sql is None


class TestErrors:
    def test_retrieval_error_not_recoverable(self):
        error = RetrievalError("retriever", "embedding service down")

        assert error.recoverable is False
        assert str(error) == "[retriever] embedding service down"

    def test_to_dict(self):
        error = GenerationError("sql_synthesizer", "empty", context={"attempt": 1})

        assert error.to_dict() == {
            "stage": "sql_synthesizer",
            "message": "empty",
            "recoverable": True,
            "context": {"attempt": 1},
            "type": "GenerationError",
        }
