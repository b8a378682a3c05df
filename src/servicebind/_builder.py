from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, Any

from ._errors import ConstructionFailure, UnresolvedTokenCycle
from ._tokens import TokenResolver


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._config import ConfigStore
    from ._registry import Definition, ServiceRegistry

    ClassResolver = Callable[[Any], Callable[..., Any]]


logger = logging.getLogger(__name__)


def resolve_class(ref: Any) -> Callable[..., Any]:
    """Turn a class reference into something callable.

    Callables (classes included) are returned as is. Strings are import paths,
    either ``"package.module:Name"`` or ``"package.module.Name"``; the part after
    the module may be dotted to reach nested attributes.
    """
    if callable(ref):
        return ref

    if not isinstance(ref, str):
        msg = f"Class reference must be callable or an import path, got {type(ref).__name__}"
        raise TypeError(msg)

    module_name, sep, attr_path = ref.partition(":")
    if not sep:
        module_name, _, attr_path = ref.rpartition(".")

    if not module_name or not attr_path:
        msg = f"Cannot import {ref!r}: expected 'module:Name' or 'module.Name'"
        raise ImportError(msg)

    target: Any = importlib.import_module(module_name)
    try:
        for part in attr_path.split("."):
            target = getattr(target, part)
    except AttributeError as e:
        msg = f"Cannot import {ref!r}: {e}"
        raise ImportError(msg) from e

    if not callable(target):
        msg = f"{ref!r} does not name a callable"
        raise TypeError(msg)
    return target


class ServiceBuilder:
    """Builds one service from its definition.

    A builder lives for a single top-level build. Service tokens met while
    resolving arguments are built by the same builder, so ``max_depth`` bounds
    the whole chain.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        configs: ConfigStore,
        *,
        class_resolver: ClassResolver = resolve_class,
        max_depth: int | None = None,
    ) -> None:
        self._registry = registry
        self._class_resolver = class_resolver
        self._max_depth = max_depth
        self._chain: list[str] = []
        self._resolver = TokenResolver(configs, self.build)

    @property
    def resolver(self) -> TokenResolver:
        return self._resolver

    def build(self, service_id: str) -> object:
        """Build a fresh instance of ``service_id``, ignoring shared and protected flags.

        Precedence: factory, then declared params, then the no-argument constructor.
        Declared calls are applied afterwards, in registration order.
        """
        definition = self._registry.get(service_id)

        if self._max_depth is not None and len(self._chain) >= self._max_depth:
            raise UnresolvedTokenCycle((*self._chain, service_id), self._max_depth)

        self._chain.append(service_id)
        try:
            instance = self._construct(service_id, definition)
            self._apply_calls(service_id, definition, instance)
        finally:
            self._chain.pop()

        return instance

    def _construct(self, service_id: str, definition: Definition) -> object:
        if definition.factory is not None:
            factory = definition.factory
            args, kwargs = self._resolver.resolve_call_args(factory.params)
            target = self._load_class(service_id, factory.cls)
            method = self._lookup(service_id, "factory", target, factory.method)

            logger.debug("Building service %r with factory %s.%s", service_id, _name(target), factory.method)
            return self._invoke(service_id, "factory", method, args, kwargs)

        cls = self._load_class(service_id, definition.cls)

        if definition.params is not None:
            args, kwargs = self._resolver.resolve_call_args(definition.params)
            logger.debug("Building service %r as %s(...)", service_id, _name(cls))
            return self._invoke(service_id, "constructor", cls, args, kwargs)

        logger.debug("Building service %r as %s()", service_id, _name(cls))
        return self._invoke(service_id, "constructor", cls, [], {})

    def _apply_calls(self, service_id: str, definition: Definition, instance: object) -> None:
        for method_name, params in definition.calls:
            args, kwargs = self._resolver.resolve_call_args(params)
            method = self._lookup(service_id, "call", instance, method_name)
            self._invoke(service_id, "call", method, args, kwargs)

    def _lookup(self, service_id: str, stage: str, target: Any, name: str) -> Callable[..., Any]:
        try:
            return getattr(target, name)
        except AttributeError as e:
            raise ConstructionFailure(service_id, stage, str(e)) from e

    def _load_class(self, service_id: str, ref: Any) -> Callable[..., Any]:
        try:
            return self._class_resolver(ref)
        except Exception as e:
            raise ConstructionFailure(service_id, "class", f"cannot resolve {ref!r}: {e}") from e

    def _invoke(
        self,
        service_id: str,
        stage: str,
        func: Callable[..., Any],
        args: list[Any],
        kwargs: dict[str, Any],
    ) -> Any:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            raise ConstructionFailure(service_id, stage, f"{type(e).__name__}: {e}") from e


def _name(target: Any) -> str:
    return getattr(target, "__qualname__", None) or repr(target)
