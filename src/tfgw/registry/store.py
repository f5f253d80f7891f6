"""Static, in-memory registry of downstream prediction services."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple

from tfgw.registry.models import RegistryEntry
from tfgw.utils.config import GatewayConfig
from tfgw.utils.logging import get_logger

LOG = get_logger(__name__)


class ModelNotFound(KeyError):
    """Raised when a model identifier has no registry entry."""

    def __init__(self, name: object) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Model {self.name!r} is not registered"


class ModelRegistry:
    """Read-only mapping of model identifier to base address.

    Built once at startup and shared by every in-flight request. There are no
    mutators; lookups need no locking.
    """

    def __init__(self, entries: Iterable[Tuple[str, str]]) -> None:
        table: Dict[str, RegistryEntry] = {}
        for name, base_url in entries:
            if name in table:
                raise ValueError(f"Duplicate model identifier {name!r}")
            table[name] = RegistryEntry(name=name, base_url=base_url.rstrip("/"))
        self._entries: Mapping[str, RegistryEntry] = MappingProxyType(table)
        LOG.info("Model registry loaded", extra={"models": list(table)})

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "ModelRegistry":
        return cls(mapping.items())

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "ModelRegistry":
        return cls.from_mapping(config.models)

    def resolve(self, name: str) -> str:
        try:
            return self._entries[name].base_url
        except (KeyError, TypeError):
            raise ModelNotFound(name) from None

    def all_entries(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def names(self) -> List[str]:
        return list(self._entries)

