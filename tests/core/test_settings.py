"""Tests for polyschema.core.settings: env, property mapping and caching."""

from __future__ import annotations

from polyschema.core.settings import OrmSettings, get_settings


class TestDefaults:
    def test_in_memory_sqlite_by_default(self, monkeypatch):
        monkeypatch.delenv("POLYSCHEMA_DATABASE_URL", raising=False)
        s = OrmSettings(_env_file=None)
        assert s.database_url == "sqlite:///:memory:"
        assert s.database_dialect is None
        assert s.memory_markers == [":memory:", "mode=memory"]
        assert s.session.model_dump() == {"expire_on_commit": False, "autoflush": True}

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("POLYSCHEMA_DATABASE_URL", "sqlite:///env.db")
        monkeypatch.setenv("POLYSCHEMA_DATABASE_DIALECT", "org.vendor.FooDialect")
        monkeypatch.setenv("POLYSCHEMA_SESSION__AUTOFLUSH", "false")
        s = OrmSettings(_env_file=None)
        assert s.database_url == "sqlite:///env.db"
        assert s.database_dialect == "org.vendor.FooDialect"
        assert s.session.autoflush is False


class TestFromProperties:
    def test_reads_prefixed_keys(self):
        s = OrmSettings.from_properties(
            {
                "polyschema.database.url": "sqlite:///props.db",
                "polyschema.database.dialect": "sqlalchemy.dialects.sqlite.SQLiteDialect",
                "polyschema.session.expire_on_commit": "true",
                "other.database.url": "ignored",
                "polyschema.unknown.key": "ignored",
            }
        )
        assert s.database_url == "sqlite:///props.db"
        assert s.database_dialect == "sqlalchemy.dialects.sqlite.SQLiteDialect"
        assert s.session.expire_on_commit is True

    def test_custom_prefix(self):
        s = OrmSettings.from_properties({"app.orm.database.url": "sqlite:///x.db"}, prefix="app.orm.")
        assert s.database_url == "sqlite:///x.db"


class TestJsonLogs:
    def test_formats(self):
        assert OrmSettings(log_format="json").json_logs() is True
        assert OrmSettings(log_format="console").json_logs() is False
        assert OrmSettings(log_format="auto").json_logs() is None


class TestGetSettings:
    def test_cached_per_url(self):
        first = get_settings(database_url="sqlite:///a.db")
        assert get_settings(database_url="sqlite:///a.db") is first
        assert get_settings(database_url="sqlite:///b.db") is not first

    def test_force_reload(self):
        first = get_settings(database_url="sqlite:///a.db")
        assert get_settings(database_url="sqlite:///a.db", _force_reload=True) is not first

    def test_explicit_url_wins_over_environment(self, monkeypatch):
        monkeypatch.setenv("POLYSCHEMA_DATABASE_URL", "sqlite:///env.db")
        assert get_settings(database_url="sqlite:///cli.db").database_url == "sqlite:///cli.db"
