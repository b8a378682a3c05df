from __future__ import annotations

import functools
import logging
import re
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ._errors import InvalidDefinition


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from ._config import ConfigStore


logger = logging.getLogger(__name__)

_SERVICE_TOKEN = re.compile(r"::[^:]*")
_CONFIG_TOKEN = re.compile(r":[^:]*")


@dataclass(frozen=True)
class Literal:
    value: Any

    @property
    def raw(self) -> Any:
        return self.value


@dataclass(frozen=True)
class ConfigRef:
    key: str

    @property
    def raw(self) -> str:
        return f":{self.key}"


@dataclass(frozen=True)
class ServiceRef:
    service_id: str

    @property
    def raw(self) -> str:
        return f"::{self.service_id}"


@dataclass(frozen=True)
class Nested:
    """A list or tuple of arguments; ``kind`` rebuilds the declared container from its items."""

    items: tuple[Argument, ...]
    kind: Callable[[Iterable[Any]], Any] = list

    @property
    def raw(self) -> Any:
        return self.kind(item.raw for item in self.items)


@dataclass(frozen=True)
class NestedMap:
    """A mapping whose keys are kept verbatim and whose values are arguments.

    dict subclasses are rebuilt as their own type, other mappings as a plain dict.
    """

    items: tuple[tuple[Any, Argument], ...]
    kind: Callable[[Iterable[Any]], Any] = dict

    @property
    def raw(self) -> Any:
        return self.kind((key, item.raw) for key, item in self.items)


Argument = Literal | ConfigRef | ServiceRef | Nested | NestedMap
Arguments = Nested | NestedMap


def parse_argument(value: Any) -> Argument:
    """Classify a declared argument value.

    ``"::id"`` is a service reference, ``":key"`` a config reference; neither may
    contain a further colon. Lists, tuples and mappings are parsed recursively.
    Everything else is a literal.
    """
    if isinstance(value, str):
        if _SERVICE_TOKEN.fullmatch(value):
            return ServiceRef(value[2:])
        if _CONFIG_TOKEN.fullmatch(value):
            return ConfigRef(value[1:])
        return Literal(value)

    if isinstance(value, Mapping):
        items = tuple((key, parse_argument(item)) for key, item in value.items())
        return NestedMap(items, kind=_rebuilder(value) if isinstance(value, dict) else dict)

    if isinstance(value, (list, tuple)):
        return Nested(tuple(parse_argument(item) for item in value), kind=_rebuilder(value))

    return Literal(value)


def _rebuilder(value: Any) -> Callable[[Iterable[Any]], Any]:
    """Return a callable that builds a container of the same type as ``value`` from its items.

    Subclasses of list, tuple and dict are kept; namedtuples go through ``_make``
    and a defaultdict keeps its ``default_factory``.
    """
    kind = type(value)
    if isinstance(value, defaultdict):
        return functools.partial(kind, value.default_factory)
    if isinstance(value, tuple) and hasattr(kind, "_make"):
        return kind._make  # noqa: SLF001
    return kind


def parse_arguments(params: Any) -> Arguments:
    """Parse a top-level argument declaration: a sequence (positional) or a mapping (keywords)."""
    if params is None:
        return Nested(())

    if isinstance(params, (list, tuple, Mapping)):
        return _as_arguments(parse_argument(params))

    msg = f"Arguments must be a list, tuple or mapping, got {type(params).__name__}"
    raise InvalidDefinition(msg)


def _as_arguments(arg: Argument) -> Arguments:
    if not isinstance(arg, (Nested, NestedMap)):
        msg = f"Expected an argument sequence or mapping, got {arg!r}"
        raise InvalidDefinition(msg)
    return arg


class TokenResolver:
    """Substitutes config and service references inside parsed arguments.

    The result has the same shape as the declaration: same nesting, order and
    length at every level. Service references are handed to ``build_service``,
    which builds a fresh instance every time.
    """

    def __init__(self, configs: ConfigStore, build_service: Callable[[str], object]) -> None:
        self._configs = configs
        self._build_service = build_service

    def resolve(self, arg: Argument) -> Any:
        if isinstance(arg, Literal):
            return arg.value

        if isinstance(arg, ConfigRef):
            return self._configs.get(arg.key)

        if isinstance(arg, ServiceRef):
            logger.debug("Resolving service token %r", arg.raw)
            return self._build_service(arg.service_id)

        if isinstance(arg, Nested):
            return arg.kind(self.resolve(item) for item in arg.items)

        if isinstance(arg, NestedMap):
            return arg.kind((key, self.resolve(item)) for key, item in arg.items)

        msg = f"Unsupported argument node: {arg!r}"
        raise TypeError(msg)

    def resolve_value(self, value: Any) -> Any:
        """Parse and resolve a raw declared value in one go."""
        return self.resolve(parse_argument(value))

    def resolve_call_args(self, args: Arguments) -> tuple[list[Any], dict[str, Any]]:
        """Resolve ``args`` into ``(positional, keyword)`` arguments for a call."""
        resolved = self.resolve(args)
        if isinstance(args, NestedMap):
            return [], dict(resolved)
        return list(resolved), {}
