"""
Centralized settings for polyschema.

``OrmSettings`` is the flat key/value configuration lookup the schema
composer reads.  Values come from ``POLYSCHEMA_*`` environment variables,
a ``.env`` file, explicit keyword arguments, or a property mapping such as
one parsed from an ``.ini`` or ``.properties`` file::

    settings = OrmSettings.from_properties({
        "polyschema.database.url": "postgresql+psycopg://app@db/app",
        "polyschema.database.dialect": "sqlalchemy.dialects.postgresql.PGDialect",
        "polyschema.session.autoflush": "false",
    })

Keys under ``session`` are framework-level settings handed unchanged to the
SQLAlchemy ``sessionmaker``.  ``database_url`` is what ``create_engine_from_settings``
connects to; ``database_dialect`` names the SQL dialect used to
resolve ``{dialect}`` placeholders in generated script paths.

Tags:
    configuration, settings, pydantic, environment
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROPERTY_PREFIX = "polyschema."


class SessionOptions(BaseModel):
    """Keyword arguments for the ``sessionmaker`` built by the composer."""

    expire_on_commit: bool = False
    autoflush: bool = True


class OrmSettings(BaseSettings):
    """polyschema configuration.

    All fields can be set via ``POLYSCHEMA_*`` environment variables (e.g.
    ``POLYSCHEMA_DATABASE_URL=sqlite:///app.db`` or
    ``POLYSCHEMA_SESSION__AUTOFLUSH=false``).
    """

    model_config = SettingsConfigDict(
        env_prefix="POLYSCHEMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///:memory:")
    database_dialect: str | None = Field(
        default=None,
        description="Dialect identifier; defaults to the engine's dialect name",
    )
    database_echo: bool = Field(default=False)
    memory_markers: list[str] = Field(
        default_factory=lambda: [":memory:", "mode=memory"],
        description="Substrings of a database URL that identify an in-memory target",
    )

    # ── Framework-level (sessionmaker) ───────────────────────────
    session: SessionOptions = Field(default_factory=SessionOptions)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="json, console or auto")

    @classmethod
    def from_properties(
        cls,
        properties: Mapping[str, Any],
        prefix: str = DEFAULT_PROPERTY_PREFIX,
    ) -> OrmSettings:
        """Build settings from a flat property mapping.

        Only keys starting with *prefix* are read.  ``<prefix>session.<name>``
        keys become session options, every other dotted key is joined with
        underscores (``database.url`` -> ``database_url``).  Unknown keys are
        ignored like unknown environment variables.
        """
        values: dict[str, Any] = {}
        session: dict[str, Any] = {}
        for key, value in properties.items():
            if not key.startswith(prefix):
                continue
            path = key[len(prefix):].split(".")
            if path[0] == "session" and len(path) == 2:
                session[path[1]] = value
            else:
                values["_".join(path)] = value
        if session:
            values["session"] = session
        return cls(**values)

    def json_logs(self) -> bool | None:
        """Translate ``log_format`` into ``configure_logging``'s flag."""
        if self.log_format == "json":
            return True
        if self.log_format == "console":
            return False
        return None


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, OrmSettings] = {}


def get_settings(*, database_url: str | None = None, _force_reload: bool = False) -> OrmSettings:
    """Load, validate, and cache an :class:`OrmSettings` instance.

    Parameters
    ----------
    database_url:
        Explicit URL overriding ``POLYSCHEMA_DATABASE_URL``.
    _force_reload:
        Bypass cache and reload from the environment.
    """
    cache_key = database_url or ""
    if not _force_reload and cache_key in _settings_cache:
        return _settings_cache[cache_key]

    overrides: dict[str, Any] = {}
    if database_url:
        overrides["database_url"] = database_url
    settings = OrmSettings(**overrides)
    _settings_cache[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "DEFAULT_PROPERTY_PREFIX",
    "SessionOptions",
    "OrmSettings",
    "get_settings",
    "clear_settings_cache",
]
