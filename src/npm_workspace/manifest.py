"""
Manifests - package.json models and workspace discovery.

Reads every package.json under a workspace root and registers the
packages and their dependency edges into a WorkspaceContext.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .context import WorkspaceContext
from .errors import ManifestError


logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"

# Directories never searched for workspace manifests
IGNORED_DIRS = {"node_modules", ".git", ".hg", ".svn"}


class PackageDescriptor(BaseModel):
    """
    Parsed package.json.

    Only the fields the workspace tooling needs are modelled; everything
    else is kept as extra data.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., min_length=1, description="npm package name")
    version: Optional[str] = Field(None, description="Package version")
    private: bool = Field(False, description="Private packages are never published")
    dependencies: Dict[str, str] = Field(default_factory=dict)
    dev_dependencies: Dict[str, str] = Field(default_factory=dict, alias="devDependencies")
    optional_dependencies: Dict[str, str] = Field(default_factory=dict, alias="optionalDependencies")
    peer_dependencies: Dict[str, str] = Field(default_factory=dict, alias="peerDependencies")

    def all_dependencies(self) -> Dict[str, str]:
        """
        Every dependency with its version range.

        Later sections win on duplicates:
        peer < optional < dev < regular dependencies.
        """
        merged: Dict[str, str] = {}
        for section in (
            self.peer_dependencies,
            self.optional_dependencies,
            self.dev_dependencies,
            self.dependencies,
        ):
            merged.update(section)
        return merged

    def dependency_names(self) -> List[str]:
        """
        Names of the packages this one is ordered after.

        Declaration order, without duplicates. Peer dependencies are left
        out: a plugin peer-depending on a host that dev-depends on the
        plugin is not a cycle.
        """
        names: Dict[str, None] = {}
        for section in (
            self.dependencies,
            self.dev_dependencies,
            self.optional_dependencies,
        ):
            for dep_name in section:
                names[dep_name] = None
        return list(names)


class WorkspacePackage(NamedTuple):
    """Payload registered for each workspace package."""
    descriptor: PackageDescriptor
    path: Path

    @property
    def name(self) -> str:
        return self.descriptor.name


def load_descriptor(path: Path) -> PackageDescriptor:
    """
    Load and validate a package.json file.

    Raises:
        ManifestError: If the file is missing, not JSON, or has no valid name
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ManifestError(path, "manifest not found") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(path, f"cannot read manifest: {e}") from e
    except json.JSONDecodeError as e:
        raise ManifestError(path, f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(path, "manifest must be a JSON object")

    try:
        return PackageDescriptor.model_validate(data)
    except ValidationError as e:
        raise ManifestError(path, f"invalid manifest: {e}") from e


def discover_manifests(root: Path) -> Iterator[Path]:
    """
    Yield every package.json under ``root`` in a stable order.

    node_modules and VCS directories are not searched.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
        if MANIFEST_FILENAME in filenames:
            yield Path(dirpath) / MANIFEST_FILENAME


def build_context(
    root: Optional[Path] = None,
    manifests: Optional[Iterable[Path]] = None,
) -> WorkspaceContext[WorkspacePackage]:
    """
    Register workspace packages and their dependencies.

    Args:
        root: Workspace root to search (ignored if ``manifests`` given)
        manifests: Explicit manifest paths

    Returns:
        Populated WorkspaceContext with WorkspacePackage payloads
    """
    if manifests is None:
        if root is None:
            raise ValueError("Either root or manifests is required")
        manifests = discover_manifests(root)

    context: WorkspaceContext[WorkspacePackage] = WorkspaceContext()

    for manifest_path in manifests:
        descriptor = load_descriptor(manifest_path)
        if context.is_workspace_package(descriptor.name):
            logger.warning(
                f"Duplicate workspace package '{descriptor.name}' at {manifest_path}; "
                "replacing the earlier one"
            )

        context.add_package(descriptor, WorkspacePackage(descriptor, manifest_path.parent))
        for dep_name in descriptor.dependency_names():
            context.add_package_dependency(descriptor, dep_name)

    logger.debug(f"Registered {len(context)} workspace packages")
    return context


__all__ = [
    "MANIFEST_FILENAME",
    "PackageDescriptor",
    "WorkspacePackage",
    "load_descriptor",
    "discover_manifests",
    "build_context",
]
