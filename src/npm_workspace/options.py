"""
Workspace Options - Effective configuration for a workspace run.

Options come from three layers, highest precedence first:
1. Command-line overrides
2. Caller (local) options, e.g. a YAML options file
3. Defaults (command defaults, then the global defaults below)

resolve_options() builds a fresh WorkspaceOptions on every call; defaults
are never mutated and nothing is cached between calls.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ManifestError, OptionsError
from .manifest import MANIFEST_FILENAME, load_descriptor


logger = logging.getLogger(__name__)

# "-p !name" streams only the named package
EXCLUSIVE_PACKAGE_MARKER = "!"
_PACKAGE_ARGUMENT = re.compile(r"^(!?)(.+)$")


class VersionBump(str, Enum):
    """Increment applied to version numbers during a publish."""
    MAJOR = "major"
    PREMAJOR = "premajor"
    MINOR = "minor"
    PREMINOR = "preminor"
    PATCH = "patch"
    PREPATCH = "prepatch"
    PRERELEASE = "prerelease"


class WorkspaceOptions(BaseModel):
    """
    Options applied across all workspace commands.

    Field aliases match the camelCase keys accepted in options files.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    package: Optional[str] = Field(
        None,
        description="Workspace package to focus on",
    )
    only_named_package: bool = Field(
        False,
        alias="onlyNamedPackage",
        description="With 'package': process only that package, not its dependencies",
    )
    enable_logging: bool = Field(True, alias="enableLogging")
    verbose_logging: bool = Field(False, alias="verboseLogging")
    version_bump: VersionBump = Field(
        VersionBump.PATCH,
        alias="versionBump",
        description="How version numbers are bumped during a publish",
    )
    cwd: Path = Field(
        default_factory=Path.cwd,
        description="Workspace root directory",
    )
    continue_on_error: Optional[bool] = Field(
        None,
        alias="continueOnError",
        description="Keep processing after a package fails (None = command default)",
    )


OptionsLayer = Union[WorkspaceOptions, Mapping[str, Any], None]


def _explicit_fields(layer: OptionsLayer) -> Dict[str, Any]:
    """Fields explicitly set in ``layer``, keyed by field name."""
    if layer is None:
        return {}
    if not isinstance(layer, WorkspaceOptions):
        try:
            layer = WorkspaceOptions.model_validate(dict(layer))
        except ValidationError as e:
            raise OptionsError(f"Invalid workspace options: {e}") from e
    return layer.model_dump(exclude_unset=True)


def resolve_options(
    local: OptionsLayer = None,
    overrides: OptionsLayer = None,
    command_defaults: OptionsLayer = None,
) -> WorkspaceOptions:
    """
    Merge option layers into one effective configuration.

    Args:
        local: Caller-supplied options
        overrides: Command-line options (highest precedence)
        command_defaults: Defaults specific to one command

    Returns:
        New WorkspaceOptions
    """
    merged: Dict[str, Any] = {}
    for layer in (command_defaults, local, overrides):
        merged.update(_explicit_fields(layer))

    try:
        return WorkspaceOptions.model_validate(merged)
    except ValidationError as e:
        raise OptionsError(f"Invalid workspace options: {e}") from e


def find_package_name(token: str, cwd: Optional[Path] = None) -> str:
    """
    Resolve a command-line package token to a package name.

    If the token names an existing file or directory, the nearest
    package.json at or above it provides the name. Anything else is taken
    to be a package name already.
    """
    candidate = Path(token)
    if not candidate.is_absolute():
        candidate = (cwd or Path.cwd()) / candidate

    if not candidate.exists():
        return token

    directory = candidate.parent if candidate.is_file() else candidate
    for folder in (directory, *directory.parents):
        manifest_path = folder / MANIFEST_FILENAME
        if manifest_path.is_file():
            try:
                name = load_descriptor(manifest_path).name
            except ManifestError as e:
                raise OptionsError(f"Cannot resolve package '{token}': {e}") from e
            logger.debug(f"Resolved '{token}' to package '{name}' via {manifest_path}")
            return name

    return token


def parse_package_argument(token: str, cwd: Optional[Path] = None) -> Dict[str, Any]:
    """
    Parse a ``--package`` value.

    ``"!name"`` selects the named package only; ``"name"`` selects the
    package and its dependencies. Paths are resolved to package names.
    """
    match = _PACKAGE_ARGUMENT.match(token.strip())
    if not match:
        return {}

    exclusive, package_token = match.groups()
    package = find_package_name(package_token, cwd)
    return {
        "package": package,
        "only_named_package": bool(package) and exclusive == EXCLUSIVE_PACKAGE_MARKER,
    }


def cli_overrides(
    package: Optional[str] = None,
    verbose: bool = False,
    version_bump: Optional[str] = None,
    cwd: Optional[Path] = None,
) -> Dict[str, Any]:
    """Override mapping from command-line values; unset values are left out."""
    overrides: Dict[str, Any] = {}

    if cwd is not None:
        overrides["cwd"] = cwd
    if package:
        overrides.update(parse_package_argument(package, cwd))
    if verbose:
        overrides["verbose_logging"] = True
    if version_bump:
        overrides["version_bump"] = version_bump

    return overrides


def load_options_file(path: Path) -> WorkspaceOptions:
    """
    Load caller options from a YAML file.

    Raises:
        OptionsError: If the file is missing, not YAML, or not a mapping of options
    """
    if not path.exists():
        raise OptionsError(f"Options file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise OptionsError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise OptionsError(f"Options file {path} must contain a mapping")

    try:
        return WorkspaceOptions.model_validate(data)
    except ValidationError as e:
        raise OptionsError(f"Invalid options in {path}: {e}") from e


__all__ = [
    "VersionBump",
    "WorkspaceOptions",
    "resolve_options",
    "find_package_name",
    "parse_package_argument",
    "cli_overrides",
    "load_options_file",
]
