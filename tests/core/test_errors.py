"""Tests for polyschema.core.errors: hierarchy, categories and context."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from polyschema.core.errors import (
    ConfigError,
    ConstructionError,
    ErrorCategory,
    MarkerQueryError,
    MissingConfigError,
    PolyschemaError,
    SafetyCheckError,
    SchemaCompositionError,
    UnknownEntityError,
    UnsafeTargetError,
    categorize_error,
    qualified_name,
)
from tests.fixtures.entities import Person


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls",
        [MissingConfigError, SchemaCompositionError, UnknownEntityError, ConstructionError],
    )
    def test_configuration_errors(self, cls):
        assert issubclass(cls, ConfigError)
        assert issubclass(cls, PolyschemaError)

    @pytest.mark.parametrize("cls", [UnsafeTargetError, MarkerQueryError])
    def test_safety_errors(self, cls):
        assert issubclass(cls, SafetyCheckError)
        assert not issubclass(cls, ConfigError)

    def test_default_categories(self):
        assert ConfigError("x").category == ErrorCategory.CONFIG
        assert UnsafeTargetError("x").category == ErrorCategory.SAFETY
        assert PolyschemaError("x").category == ErrorCategory.INTERNAL


class TestPolyschemaError:
    def test_cause_is_chained(self):
        cause = ValueError("inner")
        err = ConfigError("outer", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "inner"

    def test_with_context(self):
        err = ConfigError("bad").with_context(module="billing")
        assert err.context == {"module": "billing"}
        assert err.to_dict() == {
            "error_type": "ConfigError",
            "message": "bad",
            "category": "CONFIG",
            "context": {"module": "billing"},
        }

    def test_repr(self):
        assert repr(UnsafeTargetError("no")) == "UnsafeTargetError('no', category=SAFETY)"

    def test_missing_config_message(self):
        err = MissingConfigError("statements")
        assert err.key == "statements"
        assert "statements" in str(err)
        assert err.context == {"key": "statements"}

    def test_unknown_entity_names_class(self):
        err = UnknownEntityError(Person)
        assert "tests.fixtures.entities.Person" in str(err)


class TestCategorize:
    def test_polyschema_error(self):
        assert categorize_error(MarkerQueryError("m")) == ErrorCategory.SAFETY

    def test_sqlalchemy_error(self):
        err = OperationalError("select 1", {}, Exception("locked"))
        assert categorize_error(err) == ErrorCategory.DATABASE

    def test_os_error(self):
        assert categorize_error(FileNotFoundError("x")) == ErrorCategory.STORAGE

    def test_anything_else(self):
        assert categorize_error(RuntimeError("x")) == ErrorCategory.INTERNAL


def test_qualified_name():
    assert qualified_name(Person) == "tests.fixtures.entities.Person"
    assert qualified_name("persons") == "'persons'"
