"""
Shared pytest fixtures for polyschema tests.

This module provides:
- Settings and engines for in-memory and file-backed SQLite targets
- A catalog holding the sample modules from ``tests.fixtures.entities``
- A composer and a database utility built on top of them
- Cleanup of cached settings and logging configuration between tests

Composed entities are unmapped again when a test finishes, so every test
composes its own schema.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import structlog
from sqlalchemy import text
from sqlalchemy.engine import Engine

from polyschema.core.settings import OrmSettings, clear_settings_cache
from polyschema.orm import (
    ModuleRegistry,
    ModuleRegistryCatalog,
    SchemaComposer,
    create_engine_from_settings,
)
from polyschema.tools import MARKER_VALUE, DatabaseUtility
from tests.fixtures.entities import configure


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_global_state() -> Iterator[None]:
    clear_settings_cache()
    yield
    clear_settings_cache()
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


# =============================================================================
# Settings and engines
# =============================================================================


@pytest.fixture
def settings() -> OrmSettings:
    """In-memory SQLite settings."""
    return OrmSettings(database_url="sqlite:///:memory:")


@pytest.fixture
def engine(settings: OrmSettings) -> Iterator[Engine]:
    eng = create_engine_from_settings(settings)
    yield eng
    eng.dispose()


@pytest.fixture
def file_settings(tmp_path: Path) -> OrmSettings:
    """Settings for a SQLite file, which is not an in-memory target."""
    return OrmSettings(database_url=f"sqlite:///{tmp_path / 'target.db'}")


@pytest.fixture
def file_engine(file_settings: OrmSettings) -> Iterator[Engine]:
    eng = create_engine_from_settings(file_settings)
    yield eng
    eng.dispose()


def create_marker(engine: Engine, value: str | None = MARKER_VALUE) -> None:
    """Create the marker table, with a row holding *value* unless it is None."""
    with engine.begin() as conn:
        conn.execute(text("create table test_marker (drop_database varchar (50))"))
        if value is not None:
            conn.execute(text("insert into test_marker values (:value)"), {"value": value})


# =============================================================================
# Composition
# =============================================================================


@pytest.fixture
def catalog() -> ModuleRegistryCatalog:
    cat = ModuleRegistryCatalog()
    configure(cat)
    return cat


@pytest.fixture
def compose() -> Iterator[Callable[..., SchemaComposer]]:
    """Build composers and dispose of all of them at teardown.

    Call as ``compose(settings, engine, *registries)`` or with
    ``catalog=...`` instead of registries.
    """
    built: list[SchemaComposer] = []

    def _compose(
        settings: OrmSettings,
        engine: Engine,
        *registries: ModuleRegistry,
        catalog: ModuleRegistryCatalog | None = None,
    ) -> SchemaComposer:
        if catalog is None:
            catalog = ModuleRegistryCatalog(registries)
        composer = SchemaComposer(settings, engine, catalog)
        built.append(composer)
        return composer

    yield _compose
    for composer in reversed(built):
        composer.dispose()


@pytest.fixture
def composer(compose, settings, engine, catalog) -> SchemaComposer:
    return compose(settings, engine, catalog=catalog)


@pytest.fixture
def utility(composer: SchemaComposer) -> DatabaseUtility:
    """Database utility over an in-memory database with the schema created."""
    util = DatabaseUtility(composer)
    util.regenerate_schema()
    return util
