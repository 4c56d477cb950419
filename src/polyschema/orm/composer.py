"""Merge every module's entities into one schema.

The :class:`SchemaComposer` is the single point of contact with SQLAlchemy.
It is built once from a catalog snapshot and is read-only afterwards:

1. collect the entities of every registered module;
2. resolve the one module that owns each entity (zero or several owners is
   a configuration error);
3. name each table ``<module>_<base table>`` (or the base name for a blank
   module) and refuse two entities that end up with the same table name;
4. copy the tables into one ``MetaData`` and map every entity imperatively;
5. install the :class:`~polyschema.orm.construction.ConstructionStrategy`
   on every mapped class;
6. build the session factory and the transaction coordinator.

Example::

    catalog = ModuleRegistryCatalog()
    catalog.register(ModuleRegistry("m1").add(Person).add(Place, PlaceFactory()))
    composer = SchemaComposer(OrmSettings(), engine, catalog)
    composer.table_name_for(Person)   # 'm1_persons'
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from sqlalchemy import MetaData
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, registry, sessionmaker

from polyschema.core.errors import (
    ConfigError,
    MissingConfigError,
    SchemaCompositionError,
    UnknownEntityError,
    qualified_name,
)
from polyschema.core.logging import get_logger
from polyschema.core.settings import OrmSettings
from polyschema.orm.construction import ConstructionStrategy
from polyschema.orm.entity import EntityFactory, base_table_of
from polyschema.orm.registry import ModuleRegistry, ModuleRegistryCatalog
from polyschema.orm.session import TransactionCoordinator, is_memory_url

logger = get_logger(__name__)


@dataclass(frozen=True)
class TableBinding:
    """Where one entity lives in the composed schema."""

    entity: type
    table_name: str
    owning_module: str
    base_table_name: str
    factory: EntityFactory[Any] | None = None

    @property
    def construction(self) -> str:
        return "factory" if self.factory is not None else "default"


def prefixed_table_name(module_id: str, base_name: str) -> str:
    """Apply the module namespace to a base table name."""
    if not module_id.strip():
        return base_name
    return f"{module_id}_{base_name}"


class SchemaComposer:
    """Unified schema, session factory and transaction coordinator.

    Parameters
    ----------
    settings:
        Configuration lookup; supplies the connection URL, the dialect
        identifier and the session options.
    engine:
        Connection factory for the target database.
    catalog:
        The modules to compose.  Read once; later registrations are not seen.
    """

    def __init__(self, settings: OrmSettings, engine: Engine, catalog: ModuleRegistryCatalog):
        if settings is None:
            raise MissingConfigError("settings", "No settings instance.")
        if engine is None:
            raise MissingConfigError("engine", "No engine instance.")
        if catalog is None:
            raise MissingConfigError("catalog", "No module catalog instance.")

        registries = catalog.snapshot()
        if not registries:
            raise MissingConfigError("catalog", "No module configuration provided")

        self._settings = settings
        self._engine = engine
        self._registries = registries
        self._metadata = MetaData()
        self._mapper_registry = registry(metadata=self._metadata)

        self._bindings = self._resolve_bindings(registries)
        self._map_entities()

        self._session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine,
            **settings.session.model_dump(),
        )
        self._transaction_coordinator = TransactionCoordinator(self._session_factory)

        logger.info(
            "schema_composed",
            modules=[r.module_id for r in registries],
            tables=sorted(b.table_name for b in self._bindings.values()),
            dialect=self.dialect_name,
        )

    # ------------------------------------------------------------------
    # Read-only API
    # ------------------------------------------------------------------

    @property
    def engine(self) -> Engine:
        """The connection factory."""
        return self._engine

    @property
    def settings(self) -> OrmSettings:
        return self._settings

    @property
    def metadata(self) -> MetaData:
        """The unified metadata, with module-prefixed table names."""
        return self._metadata

    @property
    def registries(self) -> tuple[ModuleRegistry, ...]:
        return self._registries

    @property
    def bindings(self) -> Mapping[type, TableBinding]:
        return MappingProxyType(self._bindings)

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    @property
    def transaction_coordinator(self) -> TransactionCoordinator:
        return self._transaction_coordinator

    @property
    def dialect_name(self) -> str:
        """The configured dialect identifier, or the engine's dialect name."""
        return self._settings.database_dialect or self._engine.dialect.name

    def is_in_memory_target(self) -> bool:
        """True when the engine this composer runs against is an in-memory database."""
        return is_memory_url(self._engine.url, self._settings.memory_markers)

    def get_factory_for(self, entity: type) -> EntityFactory[Any] | None:
        """The construction factory registered for *entity*, if any."""
        binding = self._bindings.get(entity)
        return binding.factory if binding is not None else None

    def binding_for(self, entity: type) -> TableBinding:
        try:
            return self._bindings[entity]
        except (KeyError, TypeError):
            raise UnknownEntityError(entity) from None

    def table_name_for(self, entity: type) -> str:
        return self.binding_for(entity).table_name

    def entity_named(self, name: str) -> type:
        """Find a bound entity by class name or ``module.QualName`` path."""
        matches = [
            entity
            for entity in self._bindings
            if name in (entity.__name__, entity.__qualname__, qualified_name(entity))
        ]
        if not matches:
            raise ConfigError(f"No entity named {name!r} in the schema", context={"entity": name})
        if len(matches) > 1:
            raise ConfigError(
                f"Entity name {name!r} is ambiguous: {sorted(qualified_name(m) for m in matches)}",
                context={"entity": name},
            )
        return matches[0]

    def dispose(self) -> None:
        """Unmap every entity so the classes can be composed again."""
        self._mapper_registry.dispose()
        logger.debug("schema_disposed", tables=len(self._bindings))

    def __repr__(self) -> str:
        return f"SchemaComposer(modules={[r.module_id for r in self._registries]}, dialect={self.dialect_name!r})"

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def _resolve_bindings(self, registries: tuple[ModuleRegistry, ...]) -> dict[type, TableBinding]:
        entities: set[type] = set()
        for module in registries:
            entities.update(module.entities)

        bindings: dict[type, TableBinding] = {}
        claimed: dict[str, type] = {}
        for entity in sorted(entities, key=qualified_name):
            owner = self._find_registry(entity, registries)
            base_name = base_table_of(entity).name
            table_name = prefixed_table_name(owner.module_id, base_name)

            if table_name in claimed:
                raise SchemaCompositionError(
                    f"Table name {table_name!r} is claimed by both "
                    f"{qualified_name(claimed[table_name])} and {qualified_name(entity)}",
                    context={"table": table_name},
                )
            claimed[table_name] = entity

            bindings[entity] = TableBinding(
                entity=entity,
                table_name=table_name,
                owning_module=owner.module_id,
                base_table_name=base_name,
                factory=owner.factory_for(entity),
            )
        return bindings

    @staticmethod
    def _find_registry(entity: type, registries: tuple[ModuleRegistry, ...]) -> ModuleRegistry:
        owners = [module for module in registries if module.owns(entity)]
        if len(owners) != 1:
            found = [module.module_id for module in owners]
            raise SchemaCompositionError(
                f"{qualified_name(entity)} must belong to exactly one module, found {len(owners)}: {found}",
                context={"entity": qualified_name(entity), "modules": found},
            )
        return owners[0]

    def _map_entities(self) -> None:
        strategy = ConstructionStrategy(self)
        try:
            for entity, binding in self._bindings.items():
                table = base_table_of(entity).to_metadata(self._metadata, name=binding.table_name)
                mapper = self._mapper_registry.map_imperatively(entity, table)
                strategy.install(mapper)
        except SQLAlchemyError as exc:
            self._mapper_registry.dispose()
            raise SchemaCompositionError(f"Cannot map entities: {exc}", cause=exc) from exc
        except BaseException:
            self._mapper_registry.dispose()
            raise


__all__ = ["TableBinding", "SchemaComposer", "prefixed_table_name"]
