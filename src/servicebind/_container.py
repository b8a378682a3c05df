from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from ._builder import ServiceBuilder, resolve_class
from ._config import ConfigStore
from ._errors import InvalidBulkInit, ProtectedAccessDenied
from ._registry import ServiceRegistry


if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._builder import ClassResolver
    from ._registry import Definition


logger = logging.getLogger(__name__)

_MISSING = object()


class Container:
    """Service container.

    - register services by id with a class, params, a factory and setter calls
    - ``":key"`` arguments are config values, ``"::id"`` arguments are other services
    - lifetimes: shared (built once, cached) / transient (built on every lookup)
    - protected services are only reachable as ``"::id"`` dependencies.

    Example:
      container = Container()
      container.set_config("greeting", "Hello")
      container.register("logger", Logger)
      container.set_shared("logger", True)
      container.register("mailer", Mailer)
      container.set_params("mailer", [":greeting", "::logger"])
      mailer = container.get_service("mailer")

    """

    def __init__(
        self,
        configs: Mapping[str, Any] | None = None,
        services: Mapping[str, Mapping[str, Any]] | None = None,
        *,
        class_resolver: ClassResolver | None = None,
        max_depth: int | None = None,
    ) -> None:
        if (configs is None) != (services is None):
            msg = "Supply both `configs` and `services`, or neither."
            raise InvalidBulkInit(msg)

        if max_depth is not None and max_depth < 1:
            msg = f"`max_depth` must be at least 1, got {max_depth}"
            raise ValueError(msg)

        self._configs = ConfigStore()
        self._registry = ServiceRegistry()
        self._instances: dict[str, object] = {}
        self._build_locks: dict[str, threading.RLock] = {}
        self._lock = threading.RLock()
        self._class_resolver = class_resolver or resolve_class
        self._max_depth = max_depth

        if configs is not None and services is not None:
            self.load_configs(configs)
            self.load_services(services)

    @property
    def configs(self) -> ConfigStore:
        return self._configs

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    # -- config ---------------------------------------------------------------

    def load_configs(self, configs: Mapping[str, Any]) -> None:
        """Replace all config values."""
        self._configs.load(configs)

    def set_config(self, key: str, value: Any) -> None:
        self._configs.set(key, value)

    def has_config(self, key: str) -> bool:
        return self._configs.has(key)

    def get_config(self, key: str) -> Any:
        return self._configs.get(key)

    # -- registration ---------------------------------------------------------

    def load_services(self, services: Mapping[str, Mapping[str, Any]]) -> None:
        """Replace all service definitions. Instances already cached stay cached."""
        self._registry.load(services)

    def register(self, service_id: str, cls: Any) -> None:
        """Register ``cls`` under ``service_id``, replacing any previous definition entirely.

        Example:
          container.register("mailer", Mailer)
          container.register("mailer", "myapp.mail:Mailer")

        """
        self._registry.register(service_id, cls)
        logger.debug("Registered service %r -> %r", service_id, cls)

    def exists(self, service_id: str) -> bool:
        return self._registry.exists(service_id)

    has_service = exists

    def set_params(self, service_id: str, params: Any) -> None:
        """Declare constructor arguments: a sequence is positional, a mapping is keywords."""
        self._registry.set_params(service_id, params)

    def has_params(self, service_id: str) -> bool:
        return self._registry.has_params(service_id)

    def get_params(self, service_id: str) -> Any:
        return self._registry.get_params(service_id)

    def set_factory(self, service_id: str, cls: Any, method: str, params: Any = None) -> None:
        """Build ``service_id`` by calling ``cls.method(*params)``; overrides params and the constructor."""
        self._registry.set_factory(service_id, cls, method, params)

    def has_factory(self, service_id: str) -> bool:
        return self._registry.has_factory(service_id)

    def get_factory(self, service_id: str) -> dict[str, Any] | None:
        return self._registry.get_factory(service_id)

    def add_call(self, service_id: str, method: str, params: Any = None) -> None:
        """Call ``method`` on each new instance; adding the same method again replaces its arguments."""
        self._registry.add_call(service_id, method, params)

    def has_calls(self, service_id: str) -> bool:
        return self._registry.has_calls(service_id)

    def get_calls(self, service_id: str) -> dict[str, Any]:
        return self._registry.get_calls(service_id)

    def set_shared(self, service_id: str, value: bool) -> None:  # noqa: FBT001
        self._registry.set_shared(service_id, value)

    def is_shared(self, service_id: str) -> bool:
        return self._registry.is_shared(service_id)

    def set_protected(self, service_id: str, value: bool) -> None:  # noqa: FBT001
        self._registry.set_protected(service_id, value)

    def is_protected(self, service_id: str) -> bool:
        return self._registry.is_protected(service_id)

    def get_definition(self, service_id: str) -> Definition:
        return self._registry.get(service_id)

    # -- resolution -----------------------------------------------------------

    def get_service(self, service_id: str) -> object:
        """Return the service instance, or ``ProtectedAccessDenied`` for a protected service.

        - protected: nothing is built.
        - already cached: the cached instance, whatever the definition says now.
        - shared: built once and cached; concurrent first lookups build once.
        - otherwise a new instance on every call.
        """
        definition = self._registry.get(service_id)

        if definition.protected:
            logger.warning("Refusing to return protected service %r", service_id)
            return ProtectedAccessDenied(service_id)

        shared = definition.shared
        with self._lock:
            instance = self._instances.get(service_id, _MISSING)
            if instance is _MISSING and shared:
                build_lock = self._build_lock(service_id)

        if instance is not _MISSING:
            return instance

        if not shared:
            return self.build(service_id)

        with build_lock:
            with self._lock:
                instance = self._instances.get(service_id, _MISSING)
            if instance is not _MISSING:
                return instance

            instance = self.build(service_id)
            with self._lock:
                self._instances[service_id] = instance
            logger.debug("Cached shared service %r", service_id)
            return instance

    def _build_lock(self, service_id: str) -> threading.RLock:
        # caller holds self._lock
        build_lock = self._build_locks.get(service_id)
        if build_lock is None:
            build_lock = self._build_locks[service_id] = threading.RLock()
        return build_lock

    def build(self, service_id: str) -> object:
        """Build a fresh instance, bypassing the shared cache and the protected flag.

        This is what ``"::id"`` arguments resolve through.
        """
        return self._new_builder().build(service_id)

    def has_instance(self, service_id: str) -> bool:
        """Whether a shared instance of ``service_id`` has been built and cached."""
        with self._lock:
            return service_id in self._instances

    def resolve_value(self, value: Any) -> Any:
        """Substitute config and service tokens in ``value`` as an argument declaration would."""
        return self._new_builder().resolver.resolve_value(value)

    def _new_builder(self) -> ServiceBuilder:
        return ServiceBuilder(
            self._registry,
            self._configs,
            class_resolver=self._class_resolver,
            max_depth=self._max_depth,
        )
