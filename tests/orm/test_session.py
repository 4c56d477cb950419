"""Tests for the engine factory."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from polyschema.core.settings import OrmSettings
from polyschema.orm.session import create_engine_from_settings, is_memory_url


class TestCreateEngineFromSettings:
    def test_in_memory_sqlite_shares_one_connection(self, engine):
        assert isinstance(engine.pool, StaticPool)
        with engine.begin() as conn:
            conn.exec_driver_sql("create table t (id integer)")
        with engine.connect() as conn:
            assert conn.exec_driver_sql("select count(*) from t").scalar_one() == 0

    def test_file_sqlite(self, file_engine):
        assert not isinstance(file_engine.pool, StaticPool)
        assert file_engine.dialect.name == "sqlite"

    def test_foreign_keys_enabled(self, engine):
        with engine.connect() as conn:
            assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar_one() == 1

    def test_echo_from_settings(self):
        eng = create_engine_from_settings(OrmSettings(database_echo=True))
        try:
            assert eng.echo is True
        finally:
            eng.dispose()

    def test_ddl_joins_the_transaction(self, file_engine):
        with pytest.raises(OperationalError):
            with file_engine.begin() as conn:
                conn.exec_driver_sql("create table t (id integer)")
                conn.exec_driver_sql("insert into missing values (1)")
        with file_engine.connect() as conn:
            assert conn.exec_driver_sql("select count(*) from sqlite_master").scalar_one() == 0


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("sqlite://", True),
        ("sqlite:///:memory:", True),
        ("sqlite:///file:db?mode=memory&cache=shared&uri=true", True),
        ("sqlite:///var/data/prod.db", False),
        ("postgresql://app:secret@db/prod", False),
    ],
)
def test_is_memory_url(url, expected):
    assert is_memory_url(url, (":memory:", "mode=memory")) is expected


def test_memory_markers_are_configurable():
    assert is_memory_url("postgresql://app@db/scratch_mem", ["_mem"])
    assert not is_memory_url("sqlite:///var/data/prod.db", [])
