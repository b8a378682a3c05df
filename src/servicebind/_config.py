from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ._errors import UnknownConfigKey


if TYPE_CHECKING:
    from collections.abc import Mapping


logger = logging.getLogger(__name__)


class ConfigStore:
    """Flat key -> value store backing ``":key"`` config tokens."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def has(self, key: str) -> bool:
        return key in self._values

    def get(self, key: str) -> Any:
        try:
            return self._values[key]
        except KeyError:
            raise UnknownConfigKey(key) from None

    def load(self, values: Mapping[str, Any]) -> None:
        """Replace every stored value with ``values``."""
        self._values = dict(values)
        logger.debug("Loaded %d config values", len(self._values))

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
