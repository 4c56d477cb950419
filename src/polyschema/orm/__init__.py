"""Schema composition on top of SQLAlchemy.

Modules
-------
entity        entity_table(), EntityFactory protocol
registry      ModuleRegistry, ModuleRegistryCatalog, ModuleConfiguration
construction  ConstructionStrategy (factory-aware instantiation hook)
composer      SchemaComposer, TableBinding
session       create_engine_from_settings, TransactionCoordinator
"""

from __future__ import annotations

from polyschema.orm.composer import SchemaComposer, TableBinding, prefixed_table_name
from polyschema.orm.construction import ConstructionStrategy
from polyschema.orm.entity import CallableFactory, EntityFactory, as_factory, base_table_of, entity_table
from polyschema.orm.registry import (
    ModuleConfiguration,
    ModuleRegistry,
    ModuleRegistryCatalog,
    load_modules,
)
from polyschema.orm.session import TransactionCoordinator, create_engine_from_settings

__all__ = [
    "entity_table",
    "base_table_of",
    "EntityFactory",
    "CallableFactory",
    "as_factory",
    "ModuleRegistry",
    "ModuleRegistryCatalog",
    "ModuleConfiguration",
    "load_modules",
    "ConstructionStrategy",
    "SchemaComposer",
    "TableBinding",
    "prefixed_table_name",
    "TransactionCoordinator",
    "create_engine_from_settings",
]
