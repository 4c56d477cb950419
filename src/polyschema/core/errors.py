"""
Structured error types for polyschema.

Every failure the library raises on purpose is a ``PolyschemaError``.  The
hierarchy is shallow and follows the three ways things go wrong
when composing a schema and provisioning a database:

- **Configuration errors:** bad arguments, ambiguous entity ownership,
  unknown entities, empty statement batches.  Raised at composition time or
  at the start of an operation, never retried.
- **Safety-gate failures:** the target database did not prove it is a
  disposable development database.
- **Execution errors:** these are *not* wrapped.  Driver errors raised while
  running a statement batch propagate as the original SQLAlchemy exception
  after the transaction is rolled back.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                    PolyschemaError                        │
        │           (category, context, cause, to_dict)             │
        ├──────────────────────────────────────────────────────────┤
        │  ConfigError (CONFIG)          SafetyCheckError (SAFETY)   │
        │       │                              │                    │
        │  MissingConfigError            UnsafeTargetError          │
        │  SchemaCompositionError        MarkerQueryError           │
        │  UnknownEntityError                                       │
        │  ConstructionError                                        │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> error = UnknownEntityError(Person)
    >>> error.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> error.with_context(operation="delete").to_dict()["context"]
    {'entity': 'tests.fixtures.entities.Person', 'operation': 'delete'}

Tags:
    error-handling, exception-hierarchy, configuration, safety-gate
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories used for logging and CLI rendering."""

    CONFIG = "CONFIG"  # Invalid arguments, registries, schema composition
    SAFETY = "SAFETY"  # Destructive operation refused
    DATABASE = "DATABASE"  # Statement execution, connectivity
    STORAGE = "STORAGE"  # Script files, output directories
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


class PolyschemaError(Exception):
    """
    Base exception for all polyschema errors.

    Carries a category, a free-form context dict and an optional cause.  The
    cause is also installed as ``__cause__`` so tracebacks show the chain.

    Examples:
        >>> err = PolyschemaError("boom", category=ErrorCategory.DATABASE)
        >>> err.to_dict()["category"]
        'DATABASE'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PolyschemaError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ConfigError("No entities").with_context(module="billing")
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(PolyschemaError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """A required argument or setting is missing or empty."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}", context={"key": key})


class SchemaCompositionError(ConfigError):
    """The module registries cannot be merged into one schema."""


class UnknownEntityError(ConfigError):
    """An entity type is not part of the composed schema."""

    def __init__(self, entity: Any, message: str | None = None):
        self.entity = entity
        name = qualified_name(entity)
        super().__init__(message or f"Entity is not bound to the schema: {name}", context={"entity": name})


class ConstructionError(ConfigError):
    """A construction factory produced an unusable instance."""


# =============================================================================
# SAFETY-GATE ERRORS
# =============================================================================


class SafetyCheckError(PolyschemaError):
    """A destructive operation was refused by the production-safety check."""

    default_category = ErrorCategory.SAFETY


class UnsafeTargetError(SafetyCheckError):
    """The marker table exists but does not hold the expected sentinel row."""


class MarkerQueryError(SafetyCheckError):
    """The marker table could not be queried (usually it does not exist)."""


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def qualified_name(obj: Any) -> str:
    """Return ``module.QualName`` for classes, ``repr`` for anything else."""
    if isinstance(obj, type):
        return f"{obj.__module__}.{obj.__qualname__}"
    return repr(obj)


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, PolyschemaError):
        return error.category
    # Imported lazily so this module stays importable without the ORM stack
    from sqlalchemy.exc import SQLAlchemyError

    if isinstance(error, SQLAlchemyError):
        return ErrorCategory.DATABASE
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "PolyschemaError",
    "ConfigError",
    "MissingConfigError",
    "SchemaCompositionError",
    "UnknownEntityError",
    "ConstructionError",
    "SafetyCheckError",
    "UnsafeTargetError",
    "MarkerQueryError",
    "qualified_name",
    "categorize_error",
]
