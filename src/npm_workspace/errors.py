"""
Workspace Errors - Exception hierarchy shared by every layer.

Structural errors (unknown package, dependency cycle) abort a run
immediately. Action errors are recorded by the pipeline and only abort
when the pipeline policy says so.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from .pipeline import PipelineResult


class WorkspaceError(Exception):
    """Base class for all npm-workspace failures."""
    pass


# ==============================================================================
# Graph errors
# ==============================================================================

class GraphError(WorkspaceError):
    """Raised when no valid processing order exists."""
    pass


class UnknownNodeError(GraphError):
    """Raised when a traversal is requested for a package never registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Package '{name}' is not registered in the workspace graph")


class CycleError(GraphError):
    """
    Raised when the traversed part of the graph contains a circular dependency.

    Attributes:
        cycle: One concrete cycle path, first node repeated at the end
            (e.g. ``["a", "b", "a"]``). Empty if no path could be extracted.
        nodes: Every node that could not be ordered.
    """

    def __init__(self, cycle: Sequence[str], nodes: Sequence[str]):
        self.cycle: List[str] = list(cycle)
        self.nodes: List[str] = list(nodes)
        if self.cycle:
            detail = " -> ".join(self.cycle)
        else:
            detail = ", ".join(self.nodes)
        super().__init__(f"Dependency cycle detected: {detail}")


# ==============================================================================
# Action / pipeline errors
# ==============================================================================

class ActionError(WorkspaceError):
    """
    A per-package action (primary or post) failed.

    Attributes:
        package_name: Workspace package whose action failed
        message: Human-readable description
        cause: Underlying exception
        continue_on_error: Policy flag in effect when the failure happened
    """

    def __init__(
        self,
        package_name: str,
        message: str,
        cause: Optional[BaseException] = None,
        continue_on_error: bool = False,
    ):
        self.package_name = package_name
        self.message = message
        self.cause = cause
        self.continue_on_error = continue_on_error
        super().__init__(message)


class PipelineError(WorkspaceError):
    """Raised by PipelineResult.raise_for_status() for unsuccessful runs."""

    def __init__(self, message: str, result: "PipelineResult"):
        self.result = result
        super().__init__(message)


class PipelineAbortedError(PipelineError):
    """A fatal package failure stopped the run."""
    pass


class PartialFailureError(PipelineError):
    """Some packages failed but every package was processed."""
    pass


# ==============================================================================
# Collaborator errors
# ==============================================================================

class ManifestError(WorkspaceError):
    """Raised when a package.json cannot be read or validated."""

    def __init__(self, path: object, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class OptionsError(WorkspaceError):
    """Raised when workspace options are invalid."""
    pass


class NpmCommandError(WorkspaceError):
    """Raised when an npm subprocess exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command '{' '.join(self.command)}' failed with exit code {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)


__all__ = [
    "WorkspaceError",
    "GraphError",
    "UnknownNodeError",
    "CycleError",
    "ActionError",
    "PipelineError",
    "PipelineAbortedError",
    "PartialFailureError",
    "ManifestError",
    "OptionsError",
    "NpmCommandError",
]
