"""
Tests for the registry, ordered emission and WorkspaceContext.
"""

import queue

import pytest

from npm_workspace.context import WorkspaceContext
from npm_workspace.emitter import EmissionScope, ListChannel, ScopeKind, emit, resolve_names, write_to
from npm_workspace.errors import CycleError, UnknownNodeError
from npm_workspace.graph import DependencyGraph
from npm_workspace.options import WorkspaceOptions
from npm_workspace.registry import PackageRegistry


class Descriptor:
    def __init__(self, name):
        self.name = name


def chain_context():
    """A -> B -> C, plus A -> external."""
    context = WorkspaceContext()
    for name in ("A", "B", "C"):
        context.add_package(Descriptor(name), f"payload-{name}")
    context.add_package_dependency(Descriptor("A"), "B")
    context.add_package_dependency(Descriptor("B"), "C")
    context.add_package_dependency(Descriptor("A"), "external")
    return context


class TestPackageRegistry:

    def test_get_missing_returns_none(self):
        assert PackageRegistry().get("nope") is None

    def test_set_overwrites_payload(self):
        registry = PackageRegistry()
        registry.set("a", 1)
        registry.set("a", 2)

        assert registry.get("a") == 2
        assert len(registry) == 1

    def test_overwrite_keeps_graph_edges(self):
        context = chain_context()
        context.add_package(Descriptor("B"), "payload-B2")

        assert context.graph.direct_dependencies_of("B") == ["C"]
        assert context.emit() == ["payload-C", "payload-B2", "payload-A"]

    def test_names_and_remove(self):
        registry = PackageRegistry()
        registry.set("x", 1)
        registry.set("y", 2)

        assert registry.remove("x") == 1
        assert registry.names() == ["y"]
        assert "x" not in registry


class TestEmissionScope:

    def test_full_rejects_target(self):
        with pytest.raises(ValueError):
            EmissionScope(ScopeKind.FULL, "a")

    def test_closure_requires_target(self):
        with pytest.raises(ValueError):
            EmissionScope(ScopeKind.CLOSURE)

    def test_from_options(self):
        assert EmissionScope.from_options(WorkspaceOptions()) == EmissionScope.full()
        assert EmissionScope.from_options(WorkspaceOptions(package="app")) == EmissionScope.closure("app")
        assert (
            EmissionScope.from_options(WorkspaceOptions(package="app", only_named_package=True))
            == EmissionScope.named("app")
        )


class TestEmit:

    def test_full_scope_skips_external(self):
        context = chain_context()

        assert context.emit() == ["payload-C", "payload-B", "payload-A"]
        # external is a node but has no payload
        assert "external" in context.graph
        assert context.order() == ["C", "B", "A"]

    def test_closure_scope_target_last(self):
        context = chain_context()

        assert context.emit(EmissionScope.closure("A")) == ["payload-C", "payload-B", "payload-A"]
        assert context.emit(EmissionScope.closure("B")) == ["payload-C", "payload-B"]

    def test_named_scope(self):
        context = chain_context()

        assert context.emit(EmissionScope.named("B")) == ["payload-B"]

    def test_named_scope_unknown_package(self):
        with pytest.raises(UnknownNodeError):
            chain_context().emit(EmissionScope.named("missing"))

    def test_closure_unknown_package(self):
        with pytest.raises(UnknownNodeError):
            chain_context().emit(EmissionScope.closure("missing"))

    def test_target_without_payload_is_skipped(self):
        context = chain_context()

        assert context.emit(EmissionScope.closure("external")) == []

    def test_transform_applied(self):
        context = chain_context()

        assert context.emit(transform=str.upper) == ["PAYLOAD-C", "PAYLOAD-B", "PAYLOAD-A"]

    def test_write_to_queue(self):
        context = chain_context()
        channel = queue.Queue()

        written = context.write_to(channel, EmissionScope.closure("A"))

        drained = []
        while not channel.empty():
            drained.append(channel.get_nowait())
        assert written == 3
        assert drained == ["payload-C", "payload-B", "payload-A"]

    def test_cycle_writes_nothing(self):
        graph = DependencyGraph()
        registry = PackageRegistry()
        graph.add_dependency("a", "b")
        graph.add_dependency("b", "a")
        graph.add_node("c")
        for name in ("a", "b", "c"):
            registry.set(name, name)
        channel = ListChannel()

        with pytest.raises(CycleError):
            write_to(channel, graph, registry)

        assert len(channel) == 0

    def test_module_level_emit(self):
        graph = DependencyGraph()
        graph.add_dependency("a", "b")
        registry = PackageRegistry()
        registry.set("a", "A")

        assert emit(graph, registry) == ["A"]
        assert resolve_names(graph, EmissionScope.full()) == ["b", "a"]
