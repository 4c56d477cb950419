"""Module registries and the catalog that collects them.

Each application module describes its persistent entities in one
:class:`ModuleRegistry`.  The module id doubles as the table-name namespace:
an entity whose base table is ``user_roles`` registered by module ``login``
ends up in table ``login_user_roles``.  A blank id means "no namespace".

Registries are collected into a :class:`ModuleRegistryCatalog`, an explicit
object handed to every module-configuration step and then to the schema
composer.  The catalog is insert-only and tolerates modules registering
from several threads at once.

Usage::

    catalog = ModuleRegistryCatalog()

    class LoginModule(ModuleConfiguration):
        def build_registry(self) -> ModuleRegistry:
            return ModuleRegistry("login").add(User).add(UserRole, UserRoleFactory())

    LoginModule(catalog)
    composer = SchemaComposer(settings, engine, catalog)
"""

from __future__ import annotations

import functools
import importlib
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from importlib.metadata import entry_points as _entry_points
from types import MappingProxyType
from typing import Any

from polyschema.core.errors import ConfigError, MissingConfigError, qualified_name
from polyschema.core.logging import get_logger
from polyschema.orm.entity import EntityFactory, as_factory

logger = get_logger(__name__)

ENTRY_POINT_GROUP = "polyschema.modules"


@functools.total_ordering
class ModuleRegistry:
    """The persistent entities contributed by one module.

    Two registries are equal when their module ids are equal; ordering and
    hashing use the module id only.
    """

    def __init__(self, module_id: str):
        if not isinstance(module_id, str):
            raise ConfigError(f"Module id must be a string, got {module_id!r}")
        self._module_id = module_id
        self._entities: set[type] = set()
        self._factories: dict[type, EntityFactory[Any]] = {}
        self._frozen = False

    @property
    def module_id(self) -> str:
        return self._module_id

    @property
    def is_blank(self) -> bool:
        """True when the module contributes no table-name prefix."""
        return not self._module_id.strip()

    @property
    def sort_key(self) -> str:
        return self._module_id

    @property
    def entities(self) -> frozenset[type]:
        return frozenset(self._entities)

    @property
    def factories(self) -> Mapping[type, EntityFactory[Any]]:
        return MappingProxyType(self._factories)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add(self, entity: type, factory: EntityFactory[Any] | Callable[[], Any] | None = None) -> ModuleRegistry:
        """Add *entity*, optionally with the factory that builds its instances.

        Adding an entity again replaces its factory.
        """
        if self._frozen:
            raise ConfigError(
                f"Module registry '{self._module_id}' is already registered; entities can no longer be added"
            )
        if not isinstance(entity, type):
            raise ConfigError(f"Entities must be classes, got {entity!r}")
        self._entities.add(entity)
        if factory is not None:
            self._factories[entity] = as_factory(factory)
        return self

    def factory_for(self, entity: type) -> EntityFactory[Any] | None:
        """Return the factory registered for *entity*, if any."""
        return self._factories.get(entity)

    def owns(self, entity: type) -> bool:
        return entity in self._entities

    def freeze(self) -> None:
        self._frozen = True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModuleRegistry):
            return NotImplemented
        return self._module_id == other._module_id

    def __lt__(self, other: ModuleRegistry) -> bool:
        if not isinstance(other, ModuleRegistry):
            return NotImplemented
        return self._module_id < other._module_id

    def __hash__(self) -> int:
        return hash(self._module_id)

    def __repr__(self) -> str:
        names = sorted(e.__name__ for e in self._entities)
        return f"ModuleRegistry({self._module_id!r}, entities={names})"


class ModuleRegistryCatalog:
    """Insert-only collection of module registries keyed by module id."""

    def __init__(self, registries: Iterable[ModuleRegistry] = ()):
        self._lock = threading.Lock()
        self._registries: dict[str, ModuleRegistry] = {}
        for registry in registries:
            self.register(registry)

    def register(self, registry: ModuleRegistry) -> bool:
        """Add *registry* to the catalog.

        Registering a module id that is already present keeps the first
        registry and returns ``False``.  The registry is frozen either way.
        """
        if registry is None:
            raise MissingConfigError("registry", "No ModuleRegistry given")
        if not registry.entities:
            raise ConfigError(f"Module registry '{registry.module_id}' declares no entities")

        registry.freeze()
        with self._lock:
            if registry.module_id in self._registries:
                logger.debug("module_already_registered", module=registry.module_id)
                return False
            self._registries[registry.module_id] = registry

        logger.debug(
            "module_registered",
            module=registry.module_id,
            entities=sorted(qualified_name(e) for e in registry.entities),
        )
        return True

    def snapshot(self) -> tuple[ModuleRegistry, ...]:
        """Return the registered modules, ordered by module id."""
        with self._lock:
            return tuple(sorted(self._registries.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._registries)

    def __contains__(self, module_id: object) -> bool:
        with self._lock:
            return module_id in self._registries

    def __repr__(self) -> str:
        return f"ModuleRegistryCatalog(modules={[r.module_id for r in self.snapshot()]})"


class ModuleConfiguration(ABC):
    """Base class for a module's persistence configuration.

    Instantiating a subclass builds its registry and registers it in the
    given catalog.
    """

    def __init__(self, catalog: ModuleRegistryCatalog):
        self.catalog = catalog
        self.registry = self.build_registry()
        catalog.register(self.registry)

    @abstractmethod
    def build_registry(self) -> ModuleRegistry:
        """Return this module's registry."""


# ── Module discovery ─────────────────────────────────────────────────────


def load_modules(
    catalog: ModuleRegistryCatalog,
    specs: Iterable[str] = (),
    *,
    entry_points: bool = True,
) -> list[str]:
    """Run module configuration hooks against *catalog*.

    Each spec is ``"package.module:attribute"``.  The attribute is either a
    :class:`ModuleConfiguration` subclass (instantiated with the catalog) or
    a callable taking the catalog.  With *entry_points*, hooks published in
    the ``polyschema.modules`` entry point group run as well.

    Returns the names of the hooks that ran.
    """
    loaded: list[str] = []
    for spec in specs:
        _run_hook(_import_spec(spec), catalog)
        loaded.append(spec)

    if entry_points:
        for ep in _entry_points(group=ENTRY_POINT_GROUP):
            _run_hook(ep.load(), catalog)
            loaded.append(ep.value)

    logger.debug("modules_loaded", hooks=loaded, modules=len(catalog))
    return loaded


def _import_spec(spec: str) -> Any:
    module_name, sep, attribute = spec.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigError(f"Module spec must look like 'package.module:attribute', got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import module configuration {spec!r}", cause=exc) from exc
    target: Any = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ConfigError(f"{module_name} has no attribute {attribute!r}", cause=exc) from exc
    return target


def _run_hook(hook: Any, catalog: ModuleRegistryCatalog) -> None:
    if isinstance(hook, ModuleRegistry):
        catalog.register(hook)
    elif callable(hook):
        hook(catalog)
    else:
        raise ConfigError(f"Module configuration hook is not callable: {hook!r}")


__all__ = [
    "ENTRY_POINT_GROUP",
    "ModuleRegistry",
    "ModuleRegistryCatalog",
    "ModuleConfiguration",
    "load_modules",
]
