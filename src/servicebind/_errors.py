from __future__ import annotations

from dataclasses import dataclass


class ContainerError(Exception):
    """Base class for every error raised by the container."""


class InvalidBulkInit(ContainerError, ValueError):
    pass


class InvalidDefinition(ContainerError, ValueError):
    pass


class UnknownService(ContainerError, KeyError):
    def __init__(self, service_id: str) -> None:
        super().__init__(f"No service registered under id {service_id!r}")
        self.service_id = service_id

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0])


class UnknownConfigKey(ContainerError, KeyError):
    def __init__(self, key: str) -> None:
        super().__init__(f"No config value set for key {key!r}")
        self.key = key

    def __str__(self) -> str:
        return str(self.args[0])


class ResolutionError(ContainerError, RuntimeError):
    """Raised when a service cannot be built."""


class ConstructionFailure(ResolutionError):
    """Wraps whatever the class resolver, factory, constructor or a call raised.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, service_id: str, stage: str, detail: str) -> None:
        super().__init__(f"Failed to build service {service_id!r} ({stage}): {detail}")
        self.service_id = service_id
        self.stage = stage


class UnresolvedTokenCycle(ResolutionError):
    def __init__(self, chain: tuple[str, ...], max_depth: int) -> None:
        super().__init__(
            f"Service token chain exceeded max_depth={max_depth}: {' -> '.join(chain)}"
        )
        self.chain = chain
        self.max_depth = max_depth


@dataclass(frozen=True)
class ProtectedAccessDenied:
    """Returned by ``Container.get_service`` for a protected service.

    Not an exception: callers check ``isinstance(result, ProtectedAccessDenied)``.
    """

    service_id: str
