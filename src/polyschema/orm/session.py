"""SQLAlchemy engine factory and transaction coordination.

This module provides:

* ``create_engine_from_settings`` -- Create an engine from ``OrmSettings``.
* ``TransactionCoordinator``      -- One-session-per-transaction helper the
  composer exposes to repositories and the database utility.

An in-memory SQLite database lives only as long as its connection, so
in-memory SQLite targets get a single connection shared by every session
(``StaticPool``).  Otherwise the composed schema created by
``DatabaseUtility.regenerate_schema`` would vanish before the next session
opened.

Tags:
    orm, sqlalchemy, session, engine, transaction
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from polyschema.core.settings import OrmSettings


def is_memory_url(url: str | URL, markers: Sequence[str]) -> bool:
    """True when *url* names an in-memory database.

    A SQLite URL without a database path (``sqlite://``) is in-memory; any
    other URL is in-memory when one of *markers* occurs in it.
    """
    url = make_url(url)
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return True
    rendered = url.render_as_string(hide_password=True)
    return any(marker and marker in rendered for marker in markers)


def _configure_sqlite(engine: Engine) -> None:
    # pysqlite only opens a transaction before DML; take over BEGIN so DDL
    # statements belong to the surrounding transaction too
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, _rec: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_engine_from_settings(
    settings: OrmSettings,
    *,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    pool_timeout: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create the engine behind a :class:`~polyschema.orm.composer.SchemaComposer`.

    Parameters
    ----------
    settings:
        Supplies ``database_url``, ``database_echo`` and ``memory_markers``.
    pool_size, max_overflow, pool_timeout:
        Connection pool parameters (ignored for SQLite).
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    url = make_url(settings.database_url)
    kwargs.setdefault("echo", settings.database_echo)

    if url.get_backend_name() == "sqlite":
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if is_memory_url(url, settings.memory_markers):
            kwargs.setdefault("poolclass", StaticPool)
        engine = create_engine(url, **kwargs)
        _configure_sqlite(engine)
        return engine

    for name, value in (
        ("pool_size", pool_size),
        ("max_overflow", max_overflow),
        ("pool_timeout", pool_timeout),
    ):
        if value is not None:
            kwargs[name] = value
    return create_engine(url, **kwargs)


class TransactionCoordinator:
    """Scope units of work to one session and one transaction.

    ``transaction()`` commits when the block exits normally and rolls back
    (re-raising) when it raises::

        with coordinator.transaction() as session:
            session.add(person)
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        with self._session_factory.begin() as session:
            yield session

    def session(self) -> Session:
        """Open a plain session; the caller owns its lifecycle."""
        return self._session_factory()


__all__ = ["create_engine_from_settings", "is_memory_url", "TransactionCoordinator"]
