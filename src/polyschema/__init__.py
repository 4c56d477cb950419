"""
polyschema - compose per-module SQLAlchemy entities into one schema.

Application modules describe their entities in module registries; the
schema composer merges them into one metadata with module-prefixed table
names and factory-aware entity construction; the database utility
provisions the resulting schema behind a production-safety gate.

Quick start::

    from polyschema import (
        DatabaseUtility, ModuleRegistry, ModuleRegistryCatalog,
        OrmSettings, SchemaComposer, create_engine_from_settings,
    )

    settings = OrmSettings(database_url="sqlite:///:memory:")
    catalog = ModuleRegistryCatalog()
    catalog.register(ModuleRegistry("m1").add(Person))
    composer = SchemaComposer(settings, create_engine_from_settings(settings), catalog)
    DatabaseUtility(composer).regenerate_schema()
"""

__version__ = "0.3.0"

from polyschema.core.errors import (
    ConfigError,
    PolyschemaError,
    SafetyCheckError,
    SchemaCompositionError,
)
from polyschema.core.settings import OrmSettings
from polyschema.orm import (
    EntityFactory,
    ModuleConfiguration,
    ModuleRegistry,
    ModuleRegistryCatalog,
    SchemaComposer,
    TableBinding,
    create_engine_from_settings,
    entity_table,
)
from polyschema.tools import DatabaseUtility, SqlScriptParser

__all__ = [
    "__version__",
    "PolyschemaError",
    "ConfigError",
    "SchemaCompositionError",
    "SafetyCheckError",
    "OrmSettings",
    "entity_table",
    "EntityFactory",
    "ModuleRegistry",
    "ModuleRegistryCatalog",
    "ModuleConfiguration",
    "SchemaComposer",
    "TableBinding",
    "create_engine_from_settings",
    "DatabaseUtility",
    "SqlScriptParser",
]
