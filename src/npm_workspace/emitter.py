"""
Ordered Emitter - Emits workspace payloads in dependency order.

Resolves the package name sequence for an EmissionScope, then looks up
each name in the registry and writes the payload to an output channel.
Names without a payload (external dependencies) are skipped.

The whole name sequence is resolved before anything is written, so a
structural error (unknown package, cycle) leaves the channel untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Generic, List, Optional, Protocol, TypeVar

from .errors import UnknownNodeError
from .graph import DependencyGraph
from .registry import PackageRegistry

if TYPE_CHECKING:
    from .options import WorkspaceOptions


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScopeKind(str, Enum):
    """Which part of the graph gets emitted."""
    FULL = "full"          # every node
    CLOSURE = "closure"    # target's transitive dependencies, then target
    NAMED = "named"        # target only


@dataclass(frozen=True)
class EmissionScope:
    """
    Emission scope for one traversal.

    Build with the classmethods rather than the constructor:
        EmissionScope.full()
        EmissionScope.closure("app")
        EmissionScope.named("app")
    """
    kind: ScopeKind = ScopeKind.FULL
    target: Optional[str] = None

    def __post_init__(self):
        if self.kind is ScopeKind.FULL and self.target is not None:
            raise ValueError("Full scope does not take a target package")
        if self.kind is not ScopeKind.FULL and not self.target:
            raise ValueError(f"{self.kind.value} scope requires a target package")

    @classmethod
    def full(cls) -> "EmissionScope":
        return cls(ScopeKind.FULL)

    @classmethod
    def closure(cls, target: str) -> "EmissionScope":
        return cls(ScopeKind.CLOSURE, target)

    @classmethod
    def named(cls, target: str) -> "EmissionScope":
        return cls(ScopeKind.NAMED, target)

    @classmethod
    def from_options(cls, options: "WorkspaceOptions") -> "EmissionScope":
        """
        Pick the scope for resolved workspace options.

        No package -> full; package -> closure, or the package alone
        when ``only_named_package`` is set.
        """
        if not options.package:
            return cls.full()
        if options.only_named_package:
            return cls.named(options.package)
        return cls.closure(options.package)

    def describe(self) -> str:
        if self.kind is ScopeKind.FULL:
            return "all workspace packages"
        if self.kind is ScopeKind.CLOSURE:
            return f"'{self.target}' and its dependencies"
        return f"'{self.target}' only"


class OrderedChannel(Protocol):
    """Anything accepting items in order (queue.Queue, ListChannel, ...)."""

    def put(self, item: Any) -> Any:
        ...


class ListChannel(Generic[T]):
    """In-memory channel collecting items into a list."""

    def __init__(self):
        self.items: List[T] = []

    def put(self, item: T) -> None:
        self.items.append(item)

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


def resolve_names(graph: DependencyGraph, scope: EmissionScope) -> List[str]:
    """
    Package names for ``scope`` in processing order.

    Raises:
        UnknownNodeError: If the scope target is not in the graph
        CycleError: If the traversed part of the graph has a cycle
    """
    if scope.kind is ScopeKind.FULL:
        return graph.overall_order()

    target = scope.target
    if scope.kind is ScopeKind.CLOSURE:
        # Target is appended once, after its dependencies
        return graph.dependencies_of(target) + [target]

    if not graph.has_node(target):
        raise UnknownNodeError(target)
    return [target]


def write_to(
    channel: OrderedChannel,
    graph: DependencyGraph,
    registry: PackageRegistry,
    scope: Optional[EmissionScope] = None,
    transform: Optional[Callable[[Any], Any]] = None,
) -> int:
    """
    Write payloads for ``scope`` to ``channel`` in dependency order.

    Args:
        channel: Output channel
        graph: Dependency graph
        registry: Payload registry
        scope: Emission scope (defaults to full)
        transform: Optional mapping applied to each payload before writing

    Returns:
        Number of payloads written
    """
    scope = scope or EmissionScope.full()
    names = resolve_names(graph, scope)
    logger.debug(f"Emitting {scope.describe()}: {names}")

    written = 0
    for name in names:
        payload = registry.get(name)
        if payload is None:
            logger.debug(f"Skipping external dependency: {name}")
            continue

        if transform is not None:
            payload = transform(payload)
        channel.put(payload)
        written += 1

    return written


def emit(
    graph: DependencyGraph,
    registry: PackageRegistry,
    scope: Optional[EmissionScope] = None,
    transform: Optional[Callable[[Any], Any]] = None,
) -> List[Any]:
    """Payloads for ``scope`` as a list, in dependency order."""
    channel: ListChannel[Any] = ListChannel()
    write_to(channel, graph, registry, scope, transform)
    return channel.items


__all__ = [
    "EmissionScope",
    "ScopeKind",
    "OrderedChannel",
    "ListChannel",
    "resolve_names",
    "write_to",
    "emit",
]
