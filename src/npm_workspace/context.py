"""
Workspace Context - Collects workspace packages and their dependencies.

Joint owner of the DependencyGraph and PackageRegistry. Callers register
every package (descriptor + payload) and every dependency edge, then ask
the context to emit payloads for an EmissionScope.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, List, Optional, Protocol, TypeVar

from .emitter import EmissionScope, OrderedChannel, emit, resolve_names, write_to
from .graph import DependencyGraph
from .registry import PackageRegistry


PayloadT = TypeVar("PayloadT")


class NamedDescriptor(Protocol):
    """Anything with a package name (PackageDescriptor, test doubles)."""
    name: str


class WorkspaceContext(Generic[PayloadT]):
    """
    Workspace packages plus the dependency edges between them.

    Usage:
        context = WorkspaceContext()
        context.add_package(app_descriptor, app_payload)
        context.add_package_dependency(app_descriptor, "lib")

        for payload in context.emit(EmissionScope.closure("app")):
            ...
    """

    def __init__(
        self,
        graph: Optional[DependencyGraph] = None,
        registry: Optional[PackageRegistry[PayloadT]] = None,
    ):
        self.graph = graph if graph is not None else DependencyGraph()
        self.registry: PackageRegistry[PayloadT] = (
            registry if registry is not None else PackageRegistry()
        )

    def add_package(self, descriptor: NamedDescriptor, payload: PayloadT) -> None:
        """Register a workspace package and its payload."""
        self.graph.add_node(descriptor.name)
        self.registry.set(descriptor.name, payload)

    def add_package_dependency(self, descriptor: NamedDescriptor, dependency_name: str) -> None:
        """Record that the package described by ``descriptor`` depends on ``dependency_name``."""
        self.graph.add_dependency(descriptor.name, dependency_name)

    def get(self, name: str) -> Optional[PayloadT]:
        return self.registry.get(name)

    def is_workspace_package(self, name: str) -> bool:
        """True when ``name`` has a payload (i.e. it is not an external dependency)."""
        return name in self.registry

    def order(self, scope: Optional[EmissionScope] = None) -> List[str]:
        """Names of the workspace packages ``scope`` would emit, in order."""
        names = resolve_names(self.graph, scope or EmissionScope.full())
        return [name for name in names if name in self.registry]

    def emit(
        self,
        scope: Optional[EmissionScope] = None,
        transform: Optional[Callable[[PayloadT], Any]] = None,
    ) -> List[Any]:
        return emit(self.graph, self.registry, scope, transform)

    def write_to(
        self,
        channel: OrderedChannel,
        scope: Optional[EmissionScope] = None,
        transform: Optional[Callable[[PayloadT], Any]] = None,
    ) -> int:
        return write_to(channel, self.graph, self.registry, scope, transform)

    def __len__(self) -> int:
        return len(self.registry)


__all__ = [
    "WorkspaceContext",
    "NamedDescriptor",
]
