"""Service container with config and service tokens.

This package provides a small dependency injection container: services are
registered by id with a class, constructor params, an optional factory and
post-construction calls, and are built lazily on lookup.

Exports:
- `Container`: Main container; registration, config values and service lookup.
- `ServiceRegistry` / `Definition`: The service definitions a container builds from.
- `ConfigStore`: Config values referenced by ``":key"`` arguments.
- `ServiceBuilder` / `TokenResolver`: The build algorithm and token substitution.
- `ProtectedAccessDenied`: Returned, not raised, when a protected service is requested.
"""

from ._builder import ServiceBuilder, resolve_class
from ._config import ConfigStore
from ._container import Container
from ._errors import (
    ConstructionFailure,
    ContainerError,
    InvalidBulkInit,
    InvalidDefinition,
    ProtectedAccessDenied,
    ResolutionError,
    UnknownConfigKey,
    UnknownService,
    UnresolvedTokenCycle,
)
from ._registry import CallMap, Definition, FactoryDescriptor, ServiceRegistry
from ._tokens import ConfigRef, Literal, Nested, NestedMap, ServiceRef, TokenResolver, parse_argument


__all__ = [
    "CallMap",
    "ConfigRef",
    "ConfigStore",
    "ConstructionFailure",
    "Container",
    "ContainerError",
    "Definition",
    "FactoryDescriptor",
    "InvalidBulkInit",
    "InvalidDefinition",
    "Literal",
    "Nested",
    "NestedMap",
    "ProtectedAccessDenied",
    "ResolutionError",
    "ServiceBuilder",
    "ServiceRef",
    "ServiceRegistry",
    "TokenResolver",
    "UnknownConfigKey",
    "UnknownService",
    "UnresolvedTokenCycle",
    "parse_argument",
    "resolve_class",
]
