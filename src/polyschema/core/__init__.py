"""Cross-cutting primitives: errors, logging and settings."""

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
)
from polyschema.core.logging import LogContext, configure_from_settings, configure_logging, get_logger
from polyschema.core.settings import OrmSettings, SessionOptions, clear_settings_cache, get_settings

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
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "LogContext",
    "OrmSettings",
    "SessionOptions",
    "get_settings",
    "clear_settings_cache",
]
