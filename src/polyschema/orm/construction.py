"""Custom construction of entities materialized from rows.

SQLAlchemy creates the object for a loaded row through the mapped class's
``ClassManager.new_instance``, which calls ``cls.__new__`` and skips
``__init__``.  Entities that need collaborators at construction time cannot
work that way, so the composer installs a :class:`ConstructionStrategy` on
every mapped class.  On each materialization the strategy asks the composer
for the factory the owning module registered:

* factory registered: ``factory.create()`` builds the instance, and its
  failures propagate as-is (no fallback to default construction);
* no factory: the original ``new_instance`` runs.

The ORM then populates column attributes on whatever instance was returned.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect
from sqlalchemy.orm import Mapper

from polyschema.core.errors import ConstructionError, qualified_name
from polyschema.core.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.orm.instrumentation import ClassManager
    from sqlalchemy.orm.state import InstanceState

    from polyschema.orm.composer import SchemaComposer

logger = get_logger(__name__)

DefaultConstruction = Callable[["InstanceState[Any] | None"], Any]


class ConstructionStrategy:
    """Routes entity instantiation through registered construction factories."""

    def __init__(self, composer: SchemaComposer):
        self._composer = composer

    def install(self, mapper: Mapper[Any]) -> None:
        """Hook this strategy into *mapper*'s class instrumentation."""
        manager = mapper.class_manager
        entity = mapper.class_
        default = manager.new_instance

        def new_instance(state: InstanceState[Any] | None = None) -> Any:
            return self.instantiate(entity, manager, default, state)

        manager.new_instance = new_instance  # type: ignore[method-assign]
        logger.debug("construction_strategy_installed", entity=qualified_name(entity))

    def instantiate(
        self,
        entity: type,
        manager: ClassManager[Any],
        default: DefaultConstruction,
        state: InstanceState[Any] | None = None,
    ) -> Any:
        """Build an instance of *entity* for the ORM to populate."""
        factory = self._composer.get_factory_for(entity)
        if factory is None:
            return default(state)

        instance = factory.create()
        if instance is None:
            raise ConstructionError(
                f"Factory {factory!r} returned None for {qualified_name(entity)}",
                context={"entity": qualified_name(entity)},
            )
        if not isinstance(instance, entity):
            raise ConstructionError(
                f"Factory {factory!r} built {type(instance).__name__}, expected {entity.__name__}",
                context={"entity": qualified_name(entity)},
            )

        # Instances built through the instrumented __init__ already carry state
        if inspect(instance, raiseerr=False) is None:
            manager.setup_instance(instance, state)
        return instance


__all__ = ["ConstructionStrategy"]
