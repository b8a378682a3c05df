import unittest
from collections import OrderedDict
from decimal import Decimal
from os import path

import pytest

from servicebind import (
    ConfigStore,
    ConstructionFailure,
    ResolutionError,
    ServiceBuilder,
    ServiceRegistry,
    UnknownConfigKey,
    UnknownService,
    UnresolvedTokenCycle,
    resolve_class,
)


class TestBuildPrecedence(unittest.TestCase):
    reg: ServiceRegistry
    configs: ConfigStore

    def setUp(self):
        self.reg = ServiceRegistry()
        self.configs = ConfigStore()

    def build(self, service_id, **kwargs):
        return ServiceBuilder(self.reg, self.configs, **kwargs).build(service_id)

    def test_default_path_calls_class_without_arguments(self):
        class A:
            def __init__(self, value="default"):
                self.value = value

        self.reg.register("a", A)
        assert self.build("a").value == "default"

    def test_params_path_passes_positional_arguments(self):
        class A:
            def __init__(self, first, second):
                self.args = (first, second)

        self.reg.register("a", A)
        self.reg.set_params("a", [1, "two"])
        assert self.build("a").args == (1, "two")

    def test_params_mapping_passes_keyword_arguments(self):
        class A:
            def __init__(self, *, host, port):
                self.address = (host, port)

        self.configs.set("host", "localhost")
        self.reg.register("a", A)
        self.reg.set_params("a", {"host": ":host", "port": 5432})
        assert self.build("a").address == ("localhost", 5432)

    def test_empty_params_take_parameterized_path(self):
        class A:
            def __init__(self, value="default"):
                self.value = value

        self.reg.register("a", A)
        self.reg.set_params("a", [])
        assert self.build("a").value == "default"

    def test_factory_wins_over_params(self):
        class A:
            def __init__(self, *args):
                msg = f"constructor must not run, got {args!r}"
                raise AssertionError(msg)

        class AFactory:
            @staticmethod
            def create(value):
                return ("made", value)

        self.reg.register("a", A)
        self.reg.set_params("a", [":missing", "::missing"])
        self.reg.set_factory("a", AFactory, "create", [7])

        assert self.build("a") == ("made", 7)

    def test_factory_classmethod_receives_resolved_arguments(self):
        class Connection:
            def __init__(self, dsn):
                self.dsn = dsn

            @classmethod
            def from_dsn(cls, dsn):
                return cls(dsn)

        self.configs.set("dsn", "sqlite://")
        self.reg.register("db", object)
        self.reg.set_factory("db", Connection, "from_dsn", [":dsn"])

        db = self.build("db")
        assert isinstance(db, Connection)
        assert db.dsn == "sqlite://"

    def test_factory_class_and_method_are_not_token_substituted(self):
        self.configs.set("create", "nope")
        self.reg.register("a", object)
        self.reg.set_factory("a", object, ":create")

        with pytest.raises(ConstructionFailure) as ctx:
            self.build("a")
        assert ctx.value.stage == "factory"

    def test_string_class_reference_is_imported(self):
        self.reg.register("price", "decimal:Decimal")
        self.reg.set_params("price", ["1.50"])
        assert self.build("price") == Decimal("1.50")

    def test_custom_class_resolver(self):
        class Mailer: ...

        classes = {"Mailer": Mailer}
        self.reg.register("mailer", "Mailer")

        assert isinstance(self.build("mailer", class_resolver=classes.__getitem__), Mailer)


class TestBuildCalls(unittest.TestCase):
    reg: ServiceRegistry
    configs: ConfigStore

    def setUp(self):
        self.reg = ServiceRegistry()
        self.configs = ConfigStore()

    def build(self, service_id):
        return ServiceBuilder(self.reg, self.configs).build(service_id)

    def test_calls_run_in_registration_order(self):
        class A:
            def __init__(self):
                self.log = []

            def first(self, value):
                self.log.append(("first", value))

            def second(self):
                self.log.append(("second",))

        self.configs.set("x", "X")
        self.reg.register("a", A)
        self.reg.add_call("a", "first", [":x"])
        self.reg.add_call("a", "second")

        assert self.build("a").log == [("first", "X"), ("second",)]

    def test_repeated_call_runs_once_with_last_arguments(self):
        class A:
            def __init__(self):
                self.received = []

            def init(self, value):
                self.received.append(value)

        self.reg.register("a", A)
        self.reg.add_call("a", "init", [1])
        self.reg.add_call("a", "init", [2])

        assert self.build("a").received == [2]

    def test_call_return_value_is_discarded(self):
        class A:
            def with_value(self):
                return "ignored"

        self.reg.register("a", A)
        self.reg.add_call("a", "with_value")
        assert isinstance(self.build("a"), A)

    def test_calls_apply_to_factory_result(self):
        class A:
            configured = False

            def configure(self):
                self.configured = True

        class Factory:
            @staticmethod
            def make():
                return A()

        self.reg.register("a", object)
        self.reg.set_factory("a", Factory, "make")
        self.reg.add_call("a", "configure")
        assert self.build("a").configured is True

    def test_call_with_service_token_builds_dependency(self):
        class Logger: ...

        class Mailer:
            logger = None

            def set_logger(self, logger):
                self.logger = logger

        self.reg.register("logger", Logger)
        self.reg.register("mailer", Mailer)
        self.reg.add_call("mailer", "set_logger", ["::logger"])

        assert isinstance(self.build("mailer").logger, Logger)


class TestBuildErrors(unittest.TestCase):
    reg: ServiceRegistry
    configs: ConfigStore

    def setUp(self):
        self.reg = ServiceRegistry()
        self.configs = ConfigStore()

    def build(self, service_id, **kwargs):
        return ServiceBuilder(self.reg, self.configs, **kwargs).build(service_id)

    def test_unknown_service(self):
        with pytest.raises(UnknownService):
            self.build("missing")

    def test_unknown_service_token(self):
        self.reg.register("a", list)
        self.reg.set_params("a", [["::missing"]])
        with pytest.raises(UnknownService):
            self.build("a")

    def test_missing_config_key_propagates(self):
        self.reg.register("a", list)
        self.reg.set_params("a", [":missing"])
        with pytest.raises(UnknownConfigKey):
            self.build("a")

    def test_wrong_arity_is_construction_failure(self):
        class A:
            def __init__(self, only):
                self.only = only

        self.reg.register("a", A)
        self.reg.set_params("a", [1, 2])
        with pytest.raises(ConstructionFailure) as ctx:
            self.build("a")
        assert ctx.value.service_id == "a"
        assert ctx.value.stage == "constructor"
        assert isinstance(ctx.value.__cause__, TypeError)

    def test_constructor_exception_is_chained(self):
        class Boom(Exception): ...

        class A:
            def __init__(self):
                raise Boom

        self.reg.register("a", A)
        with pytest.raises(ConstructionFailure) as ctx:
            self.build("a")
        assert isinstance(ctx.value.__cause__, Boom)

    def test_unimportable_class(self):
        self.reg.register("a", "no_such_module_anywhere:Thing")
        with pytest.raises(ConstructionFailure) as ctx:
            self.build("a")
        assert ctx.value.stage == "class"

    def test_missing_call_method(self):
        class A: ...

        self.reg.register("a", A)
        self.reg.add_call("a", "nope")
        with pytest.raises(ConstructionFailure) as ctx:
            self.build("a")
        assert ctx.value.stage == "call"

    def test_failing_call(self):
        class A:
            def init(self):
                msg = "bad"
                raise ValueError(msg)

        self.reg.register("a", A)
        self.reg.add_call("a", "init")
        with pytest.raises(ConstructionFailure) as ctx:
            self.build("a")
        assert ctx.value.stage == "call"
        assert isinstance(ctx.value.__cause__, ValueError)

    def test_failure_of_dependency_surfaces_unchanged(self):
        class Broken:
            def __init__(self):
                raise RuntimeError

        self.reg.register("broken", Broken)
        self.reg.register("a", list)
        self.reg.set_params("a", [["::broken"]])

        with pytest.raises(ConstructionFailure) as ctx:
            self.build("a")
        assert ctx.value.service_id == "broken"

    def test_token_cycle_with_max_depth(self):
        self.reg.register("a", list)
        self.reg.set_params("a", [["::b"]])
        self.reg.register("b", list)
        self.reg.set_params("b", [["::a"]])

        with pytest.raises(UnresolvedTokenCycle) as ctx:
            self.build("a", max_depth=5)
        assert ctx.value.chain == ("a", "b", "a", "b", "a", "b")
        assert isinstance(ctx.value, ResolutionError)

    def test_max_depth_allows_chains_within_limit(self):
        self.reg.register("leaf", dict)
        self.reg.register("mid", list)
        self.reg.set_params("mid", [["::leaf"]])
        self.reg.register("top", list)
        self.reg.set_params("top", [["::mid"]])

        assert self.build("top", max_depth=3) == [[{}]]


def test_resolve_class_passes_callables_through():
    def factory(): ...

    assert resolve_class(factory) is factory
    assert resolve_class(dict) is dict


@pytest.mark.parametrize("ref", ["collections:OrderedDict", "collections.OrderedDict"])
def test_resolve_class_imports_paths(ref):
    assert resolve_class(ref) is OrderedDict


def test_resolve_class_nested_attribute():
    assert resolve_class("os:path.join") is path.join


@pytest.mark.parametrize("ref", ["NoModule", "collections:NoSuchThing", ":x"])
def test_resolve_class_bad_path_raises_import_error(ref):
    with pytest.raises(ImportError):
        resolve_class(ref)


def test_resolve_class_rejects_non_callables():
    with pytest.raises(TypeError):
        resolve_class(42)
