"""
Dependency Graph - Directed graph of workspace package names.

Nodes are package names; an edge (dependant, dependency) means the
dependant must be processed strictly after the dependency. The graph
is stored as adjacency maps keyed by name, so cyclic dependencies never
become object reference cycles.

Ordering uses Kahn's algorithm. When several nodes are eligible at the
same time, the one registered first wins, so the output is reproducible
for an unchanged graph. Cycles are reported at traversal time, never at
insertion time.
"""

from __future__ import annotations

import heapq
import logging
from typing import Dict, Iterable, Iterator, List, Set, Tuple

from .errors import CycleError, UnknownNodeError


logger = logging.getLogger(__name__)

# Markers for the iterative cycle search
_VISITING = 1
_VISITED = 2


class DependencyGraph:
    """
    Graph of packages and the dependencies between them.

    Usage:
        graph = DependencyGraph()
        graph.add_dependency("app", "lib")
        graph.add_dependency("lib", "utils")

        graph.overall_order()        # ["utils", "lib", "app"]
        graph.dependencies_of("app") # ["utils", "lib"]
    """

    def __init__(self):
        # name -> insertion index (used for tie-breaking)
        self._index: Dict[str, int] = {}
        # name -> ordered set of names it depends on
        self._dependencies: Dict[str, Dict[str, None]] = {}
        # name -> ordered set of names depending on it
        self._dependants: Dict[str, Dict[str, None]] = {}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(self, name: str) -> None:
        """Register a node. Registering an existing node is a no-op."""
        if name in self._index:
            return
        self._index[name] = len(self._index)
        self._dependencies[name] = {}
        self._dependants[name] = {}

    def add_dependency(self, dependant: str, dependency: str) -> None:
        """
        Record that ``dependant`` depends on ``dependency``.

        Missing endpoints are registered as nodes. Self edges are accepted
        here and surface as a CycleError when the graph is traversed.
        """
        self.add_node(dependant)
        self.add_node(dependency)
        self._dependencies[dependant][dependency] = None
        self._dependants[dependency][dependant] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_node(self, name: str) -> bool:
        return name in self._index

    def nodes(self) -> List[str]:
        """All node names in insertion order."""
        return list(self._index)

    def direct_dependencies_of(self, name: str) -> List[str]:
        """Names ``name`` depends on directly, in insertion order."""
        self._require(name)
        return list(self._dependencies[name])

    def dependants_of(self, name: str) -> List[str]:
        """Names depending directly on ``name``, in insertion order."""
        self._require(name)
        return list(self._dependants[name])

    def edges(self) -> List[Tuple[str, str]]:
        """All (dependant, dependency) pairs."""
        return [
            (dependant, dependency)
            for dependant, dependencies in self._dependencies.items()
            for dependency in dependencies
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._index)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._index))

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def overall_order(self) -> List[str]:
        """
        Topological order of the entire graph.

        Raises:
            CycleError: If the graph contains a cycle
        """
        return self._order(set(self._index))

    def dependencies_of(self, name: str) -> List[str]:
        """
        Transitive dependencies of ``name`` in dependency order.

        ``name`` itself is not part of the result. Every node in the result
        appears after all of its own dependencies.

        Raises:
            UnknownNodeError: If ``name`` was never registered
            CycleError: If the closure of ``name`` (``name`` included)
                contains a cycle
        """
        self._require(name)

        closure = self._reachable_from(name)
        closure.add(name)

        # name depends on every other node of its closure, so in an acyclic
        # closure it always comes out last
        order = self._order(closure)
        return [node for node in order if node != name]

    def _require(self, name: str) -> None:
        if name not in self._index:
            raise UnknownNodeError(name)

    def _reachable_from(self, name: str) -> Set[str]:
        """Nodes reachable from ``name`` via dependency edges."""
        reachable: Set[str] = set()
        stack = list(self._dependencies[name])

        while stack:
            node = stack.pop()
            if node in reachable:
                continue
            reachable.add(node)
            stack.extend(self._dependencies[node])

        return reachable

    def _order(self, nodes: Set[str]) -> List[str]:
        """Kahn's algorithm over the subgraph induced by ``nodes``."""
        in_degree: Dict[str, int] = {
            node: sum(1 for dep in self._dependencies[node] if dep in nodes)
            for node in nodes
        }

        # Heap keyed by insertion index for deterministic tie-breaking
        ready = [(self._index[node], node) for node, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: List[str] = []

        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)

            for dependant in self._dependants[node]:
                if dependant not in in_degree:
                    continue
                in_degree[dependant] -= 1
                if in_degree[dependant] == 0:
                    heapq.heappush(ready, (self._index[dependant], dependant))

        if len(order) != len(nodes):
            placed = set(order)
            stalled = sorted(
                (node for node in nodes if node not in placed),
                key=self._index.__getitem__,
            )
            cycle = self._find_cycle(stalled)
            logger.debug(f"Cycle detected among {len(stalled)} packages: {cycle}")
            raise CycleError(cycle, stalled)

        return order

    def _find_cycle(self, candidates: Iterable[str]) -> List[str]:
        """
        Extract one cycle path from ``candidates``.

        Iterative depth-first search with visiting/visited markers. Only
        edges between candidates are followed.
        """
        candidates = list(candidates)
        allowed = set(candidates)
        state: Dict[str, int] = {}

        for start in candidates:
            if start in state:
                continue

            state[start] = _VISITING
            path = [start]
            stack = [iter(self._dependencies[start])]

            while stack:
                advanced = False
                for dep in stack[-1]:
                    if dep not in allowed:
                        continue
                    mark = state.get(dep)
                    if mark == _VISITING:
                        return path[path.index(dep):] + [dep]
                    if mark is None:
                        state[dep] = _VISITING
                        path.append(dep)
                        stack.append(iter(self._dependencies[dep]))
                        advanced = True
                        break

                if not advanced:
                    state[path.pop()] = _VISITED
                    stack.pop()

        return []


__all__ = [
    "DependencyGraph",
]
