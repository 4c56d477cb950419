"""Entity declarations and construction factories.

Entities are plain Python classes.  Each one carries its *base* table (the
name it would have without any module prefix) in ``__entity_table__``::

    class Person:
        __entity_table__ = entity_table(
            "persons",
            Column("id", Integer, primary_key=True),
            Column("e_mail", String(255), nullable=False),
        )

The class is not mapped until a :class:`~polyschema.orm.composer.SchemaComposer`
takes it in; the composer copies the table into the unified metadata under
its final name and maps the class imperatively.

Entities that cannot be built by the ORM's no-argument construction register
an :class:`EntityFactory` next to the class in their module registry.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from sqlalchemy import MetaData, Table

from polyschema.core.errors import ConfigError, qualified_name

T = TypeVar("T", covariant=True)

ENTITY_TABLE_ATTR = "__entity_table__"


@runtime_checkable
class EntityFactory(Protocol[T]):
    """Builds a ready-to-populate entity instance.

    ``create`` must never return ``None``.
    """

    def create(self) -> T: ...


class CallableFactory:
    """Adapt a zero-argument callable to :class:`EntityFactory`."""

    def __init__(self, func: Callable[[], Any]):
        self._func = func

    def create(self) -> Any:
        return self._func()

    def __repr__(self) -> str:
        return f"CallableFactory({self._func!r})"


def as_factory(obj: EntityFactory[Any] | Callable[[], Any]) -> EntityFactory[Any]:
    """Normalise a factory object or a plain callable into an ``EntityFactory``."""
    if isinstance(obj, EntityFactory):
        return obj
    if callable(obj):
        return CallableFactory(obj)
    raise ConfigError(f"Not an entity factory: {obj!r}")


def entity_table(name: str, *columns: Any, **kwargs: Any) -> Table:
    """Declare the base table for an entity.

    Every base table lives on its own ``MetaData`` so that two modules can
    declare tables with the same base name; only the composed, prefixed
    names have to be unique.
    """
    if not name or not name.strip():
        raise ConfigError("Entity table name is empty")
    return Table(name, MetaData(), *columns, **kwargs)


def base_table_of(entity: type) -> Table:
    """Return the base table declared by *entity*."""
    table = getattr(entity, ENTITY_TABLE_ATTR, None)
    if not isinstance(table, Table):
        raise ConfigError(
            f"{qualified_name(entity)} does not declare {ENTITY_TABLE_ATTR} with entity_table()",
            context={"entity": qualified_name(entity)},
        )
    return table


__all__ = [
    "ENTITY_TABLE_ATTR",
    "EntityFactory",
    "CallableFactory",
    "as_factory",
    "entity_table",
    "base_table_of",
]
