"""Tests for module registries, the catalog and module discovery."""

from __future__ import annotations

import threading

import pytest

from polyschema.core.errors import ConfigError, MissingConfigError
from polyschema.orm.entity import CallableFactory
from polyschema.orm.registry import (
    ModuleConfiguration,
    ModuleRegistry,
    ModuleRegistryCatalog,
    load_modules,
)
from tests.fixtures.entities import Person, Pet, Place, PlaceFactory


# =========================================================================
# ModuleRegistry
# =========================================================================


class TestModuleRegistry:
    def test_add_is_chainable(self):
        factory = PlaceFactory()
        registry = ModuleRegistry("m1").add(Person).add(Place, factory)
        assert registry.entities == frozenset({Person, Place})
        assert registry.factory_for(Place) is factory
        assert registry.factory_for(Person) is None

    def test_plain_callable_becomes_factory(self):
        registry = ModuleRegistry("m1").add(Pet, lambda: Pet("rex"))
        factory = registry.factory_for(Pet)
        assert isinstance(factory, CallableFactory)
        assert factory.create().nick == "rex"

    def test_entities_must_be_classes(self):
        with pytest.raises(ConfigError):
            ModuleRegistry("m1").add(Person())

    def test_equality_uses_module_id_only(self):
        a = ModuleRegistry("m1").add(Person)
        b = ModuleRegistry("m1").add(Pet)
        assert a == b
        assert hash(a) == hash(b)
        assert a != ModuleRegistry("m2").add(Person)

    def test_ordering_by_module_id(self):
        regs = [ModuleRegistry(m).add(Person) for m in ("b", "", "a")]
        assert [r.module_id for r in sorted(regs)] == ["", "a", "b"]

    def test_blank(self):
        assert ModuleRegistry("").is_blank
        assert ModuleRegistry("  ").is_blank
        assert not ModuleRegistry("m1").is_blank


# =========================================================================
# ModuleRegistryCatalog
# =========================================================================


class TestCatalog:
    def test_same_module_id_registered_once(self):
        catalog = ModuleRegistryCatalog()
        first = ModuleRegistry("m1").add(Person)
        assert catalog.register(first) is True
        assert catalog.register(ModuleRegistry("m1").add(Pet)) is False

        snapshot = catalog.snapshot()
        assert len(snapshot) == 1
        assert snapshot[0] is first

    def test_snapshot_is_sorted_and_immutable(self):
        catalog = ModuleRegistryCatalog(
            [ModuleRegistry("m2").add(Pet), ModuleRegistry("m1").add(Person)]
        )
        snapshot = catalog.snapshot()
        assert isinstance(snapshot, tuple)
        assert [r.module_id for r in snapshot] == ["m1", "m2"]
        assert "m1" in catalog
        assert len(catalog) == 2

    def test_registered_registry_is_frozen(self):
        registry = ModuleRegistry("m1").add(Person)
        ModuleRegistryCatalog().register(registry)
        assert registry.frozen
        with pytest.raises(ConfigError, match="already registered"):
            registry.add(Pet)

    def test_rejects_none_and_empty(self):
        catalog = ModuleRegistryCatalog()
        with pytest.raises(MissingConfigError):
            catalog.register(None)
        with pytest.raises(ConfigError, match="no entities"):
            catalog.register(ModuleRegistry("m1"))

    def test_concurrent_registration(self):
        catalog = ModuleRegistryCatalog()
        barrier = threading.Barrier(16)

        def register(i: int) -> None:
            barrier.wait()
            catalog.register(ModuleRegistry(f"m{i % 4}").add(Person))

        threads = [threading.Thread(target=register, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert [r.module_id for r in catalog.snapshot()] == ["m0", "m1", "m2", "m3"]


# =========================================================================
# Module configuration and discovery
# =========================================================================


class PetsModule(ModuleConfiguration):
    def build_registry(self) -> ModuleRegistry:
        return ModuleRegistry("m2").add(Pet)


class TestModuleConfiguration:
    def test_instantiation_registers(self):
        catalog = ModuleRegistryCatalog()
        module = PetsModule(catalog)
        assert catalog.snapshot() == (module.registry,)


class TestLoadModules:
    def test_function_hook(self):
        catalog = ModuleRegistryCatalog()
        loaded = load_modules(catalog, ["tests.fixtures.entities:configure"], entry_points=False)
        assert loaded == ["tests.fixtures.entities:configure"]
        assert [r.module_id for r in catalog.snapshot()] == ["m1", "m2"]

    def test_module_configuration_class_hook(self):
        catalog = ModuleRegistryCatalog()
        load_modules(catalog, [f"{__name__}:PetsModule"], entry_points=False)
        assert "m2" in catalog

    @pytest.mark.parametrize(
        "spec",
        [
            "tests.fixtures.entities",
            "tests.fixtures.no_such_module:configure",
            "tests.fixtures.entities:no_such_hook",
        ],
    )
    def test_bad_specs(self, spec):
        with pytest.raises(ConfigError):
            load_modules(ModuleRegistryCatalog(), [spec], entry_points=False)

    def test_hook_must_be_callable(self):
        with pytest.raises(ConfigError, match="not callable"):
            load_modules(ModuleRegistryCatalog(), ["tests.fixtures.entities:__doc__"], entry_points=False)
