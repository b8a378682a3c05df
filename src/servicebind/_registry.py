from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ._errors import InvalidDefinition, UnknownService
from ._tokens import parse_arguments


if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._tokens import Arguments


logger = logging.getLogger(__name__)

_RECORD_KEYS = frozenset({"class", "params", "calls", "factory", "shared", "protected"})
_FACTORY_KEYS = frozenset({"class", "method", "params"})


class CallMap:
    """Ordered method name -> arguments.

    Setting a method that is already present replaces its arguments and keeps
    its original position; a method is never called twice.
    """

    def __init__(self) -> None:
        self._calls: dict[str, Arguments] = {}

    def set(self, method: str, args: Arguments) -> None:
        self._calls[method] = args

    def get(self, method: str) -> Arguments:
        return self._calls[method]

    def raw(self) -> dict[str, Any]:
        return {method: args.raw for method, args in self._calls.items()}

    def __iter__(self) -> Iterator[tuple[str, Arguments]]:
        return iter(list(self._calls.items()))

    def __contains__(self, method: object) -> bool:
        return method in self._calls

    def __len__(self) -> int:
        return len(self._calls)

    def __bool__(self) -> bool:
        return bool(self._calls)

    def __repr__(self) -> str:
        return f"CallMap({self.raw()!r})"


@dataclass
class FactoryDescriptor:
    cls: Any
    method: str
    params: Arguments

    def raw(self) -> dict[str, Any]:
        return {"class": self.cls, "method": self.method, "params": self.params.raw}


@dataclass
class Definition:
    """How to build one service.

    ``params is None`` means "call the class with no arguments"; an empty
    declaration still takes the parameterized path.
    """

    cls: Any
    params: Arguments | None = None
    calls: CallMap = field(default_factory=CallMap)
    factory: FactoryDescriptor | None = None
    shared: bool = False
    protected: bool = False


class ServiceRegistry:
    """Service id -> ``Definition``; every accessor rejects unknown ids."""

    def __init__(self) -> None:
        self._definitions: dict[str, Definition] = {}

    def register(self, service_id: str, cls: Any) -> None:
        if not isinstance(service_id, str):
            msg = f"Service id must be a string, got {type(service_id).__name__}"
            raise TypeError(msg)

        if service_id in self._definitions:
            logger.debug("Replacing definition of service %r", service_id)
        self._definitions[service_id] = Definition(cls=cls)

    def exists(self, service_id: str) -> bool:
        return service_id in self._definitions

    def get(self, service_id: str) -> Definition:
        try:
            return self._definitions[service_id]
        except KeyError:
            raise UnknownService(service_id) from None

    def ids(self) -> list[str]:
        return list(self._definitions)

    def set_params(self, service_id: str, params: Any) -> None:
        self.get(service_id).params = parse_arguments(params)

    def has_params(self, service_id: str) -> bool:
        return self.get(service_id).params is not None

    def get_params(self, service_id: str) -> Any:
        params = self.get(service_id).params
        return None if params is None else params.raw

    def set_factory(self, service_id: str, cls: Any, method: str, params: Any = None) -> None:
        definition = self.get(service_id)
        if not isinstance(method, str) or not method:
            msg = f"Factory method for service {service_id!r} must be a non-empty string"
            raise InvalidDefinition(msg)
        definition.factory = FactoryDescriptor(cls=cls, method=method, params=parse_arguments(params))

    def has_factory(self, service_id: str) -> bool:
        return self.get(service_id).factory is not None

    def get_factory(self, service_id: str) -> dict[str, Any] | None:
        factory = self.get(service_id).factory
        return None if factory is None else factory.raw()

    def add_call(self, service_id: str, method: str, params: Any = None) -> None:
        definition = self.get(service_id)
        if not isinstance(method, str) or not method:
            msg = f"Call on service {service_id!r} must name a method"
            raise InvalidDefinition(msg)
        definition.calls.set(method, parse_arguments(params))

    def has_calls(self, service_id: str) -> bool:
        return bool(self.get(service_id).calls)

    def get_calls(self, service_id: str) -> dict[str, Any]:
        return self.get(service_id).calls.raw()

    def set_shared(self, service_id: str, value: bool) -> None:  # noqa: FBT001
        self.get(service_id).shared = bool(value)

    def is_shared(self, service_id: str) -> bool:
        return self.get(service_id).shared

    def set_protected(self, service_id: str, value: bool) -> None:  # noqa: FBT001
        self.get(service_id).protected = bool(value)

    def is_protected(self, service_id: str) -> bool:
        return self.get(service_id).protected

    def get_class(self, service_id: str) -> Any:
        return self.get(service_id).cls

    def load(self, records: Mapping[str, Mapping[str, Any]]) -> None:
        """Replace every definition with the ones described by ``records``.

        Each record looks like::

            {
                "class": Mailer,
                "params": [":greeting", "::logger"],
                "calls": {"set_transport": ["::smtp"]},
                "factory": {"class": MailerFactory, "method": "create", "params": []},
                "shared": True,
                "protected": False,
            }

        Only ``class`` is required. The registry is left unchanged if any record is invalid.
        """
        if not isinstance(records, Mapping):
            msg = f"Service records must be a mapping, got {type(records).__name__}"
            raise InvalidDefinition(msg)

        definitions = {
            service_id: _definition_from_record(service_id, record) for service_id, record in records.items()
        }
        self._definitions = definitions
        logger.debug("Loaded %d service definitions", len(definitions))

    def __contains__(self, service_id: object) -> bool:
        return service_id in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


def _definition_from_record(service_id: str, record: Mapping[str, Any]) -> Definition:
    if not isinstance(service_id, str):
        msg = f"Service id must be a string, got {type(service_id).__name__}"
        raise InvalidDefinition(msg)

    if not isinstance(record, Mapping):
        msg = f"Definition of service {service_id!r} must be a mapping"
        raise InvalidDefinition(msg)

    _reject_unknown_keys(f"Definition of service {service_id!r}", record, _RECORD_KEYS)

    if "class" not in record:
        msg = f"Definition of service {service_id!r} is missing 'class'"
        raise InvalidDefinition(msg)

    definition = Definition(
        cls=record["class"],
        shared=_flag_from_record(service_id, record, "shared"),
        protected=_flag_from_record(service_id, record, "protected"),
    )

    if record.get("params") is not None:
        definition.params = parse_arguments(record["params"])

    if record.get("calls") is not None:
        _add_calls_from_record(service_id, definition.calls, record["calls"])

    if record.get("factory") is not None:
        definition.factory = _factory_from_record(service_id, record["factory"])

    return definition


def _reject_unknown_keys(owner: str, record: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(record) - allowed
    if unknown:
        msg = f"{owner} has unknown keys: {', '.join(sorted(map(str, unknown)))}"
        raise InvalidDefinition(msg)


def _add_calls_from_record(service_id: str, calls: CallMap, record: Any) -> None:
    if not isinstance(record, Mapping):
        msg = f"'calls' of service {service_id!r} must map method names to arguments"
        raise InvalidDefinition(msg)

    for method, args in record.items():
        calls.set(method, parse_arguments(args))


def _factory_from_record(service_id: str, record: Any) -> FactoryDescriptor:
    if not isinstance(record, Mapping) or not {"class", "method"} <= set(record):
        msg = f"'factory' of service {service_id!r} needs 'class' and 'method'"
        raise InvalidDefinition(msg)

    _reject_unknown_keys(f"'factory' of service {service_id!r}", record, _FACTORY_KEYS)
    return FactoryDescriptor(
        cls=record["class"],
        method=record["method"],
        params=parse_arguments(record.get("params")),
    )


def _flag_from_record(service_id: str, record: Mapping[str, Any], flag: str) -> bool:
    value = record.get(flag, False)
    if not isinstance(value, bool):
        msg = f"'{flag}' of service {service_id!r} must be a bool, got {value!r}"
        raise InvalidDefinition(msg)
    return value
