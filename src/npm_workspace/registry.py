"""
Package Registry - Maps workspace package names to their payloads.

A payload is whatever the caller uses to represent a package (for the
CLI, a WorkspacePackage holding the parsed manifest and its directory).
The registry does not validate names against the dependency graph: a
graph node without a payload is an external dependency and is skipped
at emission time.
"""

from __future__ import annotations

import logging
from typing import Dict, Generic, Iterator, List, Optional, TypeVar


logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT")


class PackageRegistry(Generic[PayloadT]):
    """
    Name -> payload mapping, one payload per name.

    Usage:
        registry = PackageRegistry()
        registry.set("lib", payload)
        registry.get("lib")      # payload
        registry.get("lodash")   # None (external dependency)
    """

    def __init__(self):
        self._payloads: Dict[str, PayloadT] = {}

    def set(self, name: str, payload: PayloadT) -> None:
        """Register a payload, replacing any previous one for ``name``."""
        if name in self._payloads:
            logger.debug(f"Replacing payload for package: {name}")
        self._payloads[name] = payload

    def get(self, name: str) -> Optional[PayloadT]:
        """Payload for ``name``, or None when the package is not registered."""
        return self._payloads.get(name)

    def remove(self, name: str) -> Optional[PayloadT]:
        """Drop the payload for ``name`` and return it."""
        return self._payloads.pop(name, None)

    def names(self) -> List[str]:
        """Registered names in registration order."""
        return list(self._payloads)

    def __contains__(self, name: object) -> bool:
        return name in self._payloads

    def __len__(self) -> int:
        return len(self._payloads)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._payloads))


__all__ = [
    "PackageRegistry",
]
