"""
npm-workspace - Dependency-ordered npm commands for multi-package workspaces.

This package provides:
- DependencyGraph: package graph with topological order and closures
- PackageRegistry / WorkspaceContext: package payloads and registration
- emit / write_to: dependency-ordered emission for an EmissionScope
- ActionPipeline: sequential per-package actions with continue-on-error
- resolve_options: defaults + caller options + command-line overrides
"""

from .actions import AsyncAction, ConditionableAction, SyncAction
from .context import WorkspaceContext
from .emitter import EmissionScope, ListChannel, ScopeKind, emit, write_to
from .errors import (
    ActionError,
    CycleError,
    PartialFailureError,
    PipelineAbortedError,
    UnknownNodeError,
    WorkspaceError,
)
from .graph import DependencyGraph
from .pipeline import (
    ActionPipeline,
    PackageOutcome,
    PackageStatus,
    PipelinePolicy,
    PipelineResult,
    PipelineStatus,
)
from .registry import PackageRegistry
from .options import VersionBump, WorkspaceOptions, resolve_options

__version__ = "0.1.0"

__all__ = [
    # Graph
    "DependencyGraph",
    "PackageRegistry",
    "WorkspaceContext",
    # Emission
    "EmissionScope",
    "ScopeKind",
    "ListChannel",
    "emit",
    "write_to",
    # Pipeline
    "ActionPipeline",
    "AsyncAction",
    "ConditionableAction",
    "SyncAction",
    "PackageOutcome",
    "PackageStatus",
    "PipelinePolicy",
    "PipelineResult",
    "PipelineStatus",
    # Options
    "VersionBump",
    "WorkspaceOptions",
    "resolve_options",
    # Errors
    "WorkspaceError",
    "UnknownNodeError",
    "CycleError",
    "ActionError",
    "PipelineAbortedError",
    "PartialFailureError",
]
