"""
Workspace Commands - npm install / uninstall / publish for workspace packages.

Each command is a primary action bound into an ActionPipeline together
with the command's default failure policy. The pipeline is fed by the
OrderedEmitter, so every package is processed after its workspace
dependencies.

npm is invoked through NpmRunner, which runs one subprocess at a time
and raises NpmCommandError on a non-zero exit.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from .actions import AsyncAction, ConditionableAction, SyncAction
from .config import Settings
from .context import WorkspaceContext
from .emitter import EmissionScope
from .errors import NpmCommandError
from .manifest import PackageDescriptor, WorkspacePackage
from .options import VersionBump, WorkspaceOptions
from .pipeline import ActionPipeline, PipelinePolicy, PipelineResult


logger = logging.getLogger(__name__)

NODE_MODULES = "node_modules"


class WorkspaceCommand(str, Enum):
    INSTALL = "install"
    UNINSTALL = "uninstall"
    PUBLISH = "publish"


# Used when options.continue_on_error is not set
DEFAULT_CONTINUE_ON_ERROR: Dict[WorkspaceCommand, bool] = {
    WorkspaceCommand.INSTALL: True,
    WorkspaceCommand.UNINSTALL: True,
    WorkspaceCommand.PUBLISH: False,
}


class NpmRunnerProtocol(Protocol):
    """Protocol for npm runners."""

    async def run(self, args: Sequence[str], cwd: Path) -> str:
        """Run ``npm <args>`` in ``cwd`` and return its stdout."""
        ...


class NpmRunner:
    """Runs npm as a subprocess."""

    def __init__(self, npm_bin: str = "npm", timeout_s: Optional[int] = None):
        self.npm_bin = npm_bin
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings: Settings) -> "NpmRunner":
        return cls(npm_bin=settings.npm_bin, timeout_s=settings.npm_timeout_s)

    async def run(self, args: Sequence[str], cwd: Path) -> str:
        """
        Run ``npm <args>`` in ``cwd``.

        Raises:
            NpmCommandError: If npm cannot be started, times out, or exits non-zero
        """
        cmd = [self.npm_bin, *args]
        logger.debug(f"Running {' '.join(cmd)} in {cwd}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise NpmCommandError(cmd, 127, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise NpmCommandError(cmd, -1, f"timed out after {self.timeout_s}s") from e

        if process.returncode != 0:
            raise NpmCommandError(cmd, process.returncode, stderr.decode(errors="replace"))
        return stdout.decode(errors="replace")


# ==============================================================================
# Primary actions
# ==============================================================================

def uninstall_package(descriptor: PackageDescriptor, path: Path) -> None:
    """Remove the package's node_modules directory (missing is fine)."""
    node_modules = path / NODE_MODULES
    if node_modules.is_symlink():
        node_modules.unlink()
    elif node_modules.exists():
        shutil.rmtree(node_modules)


def link_workspace_dependency(package_path: Path, dependency_name: str, dependency_path: Path) -> Path:
    """
    Symlink a workspace dependency into ``package_path/node_modules``.

    Scoped names (``@scope/name``) are linked inside the scope directory.
    Anything already at the link location is replaced.

    Returns:
        The link path
    """
    link = package_path / NODE_MODULES / dependency_name
    link.parent.mkdir(parents=True, exist_ok=True)

    if link.is_symlink() or link.is_file():
        link.unlink()
    elif link.exists():
        shutil.rmtree(link)

    link.symlink_to(dependency_path.resolve(), target_is_directory=True)
    return link


def make_install_action(context: WorkspaceContext[WorkspacePackage], runner: NpmRunnerProtocol) -> AsyncAction:
    """
    Install action: link workspace dependencies, npm-install the rest.
    """

    async def install_package(descriptor: PackageDescriptor, path: Path) -> None:
        external: List[str] = []

        for dep_name, version_range in descriptor.all_dependencies().items():
            workspace_dep = context.get(dep_name)
            if workspace_dep is not None:
                link_workspace_dependency(path, dep_name, workspace_dep.path)
            else:
                external.append(f"{dep_name}@{version_range}" if version_range else dep_name)

        if external:
            await runner.run(["install", "--no-save", *external], cwd=path)

    return AsyncAction(install_package, name="install")


def is_publishable(descriptor: PackageDescriptor, path: Path) -> bool:
    return not descriptor.private


def make_publish_action(runner: NpmRunnerProtocol, version_bump: VersionBump) -> ConditionableAction:
    """Publish action: bump the version, then npm publish. Private packages are skipped."""

    async def publish_package(descriptor: PackageDescriptor, path: Path) -> None:
        await runner.run(["version", version_bump.value, "--no-git-tag-version"], cwd=path)
        await runner.run(["publish"], cwd=path)

    return ConditionableAction(AsyncAction(publish_package, name="publish"), condition=is_publishable)


# ==============================================================================
# Pipelines
# ==============================================================================

def build_pipeline(
    command: WorkspaceCommand,
    options: WorkspaceOptions,
    context: WorkspaceContext[WorkspacePackage],
    runner: NpmRunnerProtocol,
    post_actions: Sequence[ConditionableAction] = (),
) -> ActionPipeline:
    """
    Create the ActionPipeline for a workspace command.

    Args:
        command: Which command to run
        options: Resolved workspace options
        context: Workspace packages (install links against it)
        runner: npm runner
        post_actions: Actions run after the primary action for each package
    """
    command = WorkspaceCommand(command)

    if command is WorkspaceCommand.INSTALL:
        primary = ConditionableAction(make_install_action(context, runner))
    elif command is WorkspaceCommand.UNINSTALL:
        primary = ConditionableAction(SyncAction(uninstall_package, name="uninstall"))
    else:
        primary = make_publish_action(runner, options.version_bump)

    continue_on_error = options.continue_on_error
    if continue_on_error is None:
        continue_on_error = DEFAULT_CONTINUE_ON_ERROR[command]

    return ActionPipeline(
        primary=primary,
        post_actions=post_actions,
        policy=PipelinePolicy(continue_on_error=continue_on_error),
        name=command.value,
    )


def run_command(
    command: WorkspaceCommand,
    context: WorkspaceContext[WorkspacePackage],
    options: WorkspaceOptions,
    settings: Settings,
    post_actions: Sequence[ConditionableAction] = (),
    runner: Optional[NpmRunnerProtocol] = None,
) -> PipelineResult:
    """
    Run a workspace command over the packages selected by ``options``.

    Raises:
        UnknownNodeError: If options.package is not a workspace package
        CycleError: If the selected packages have circular dependencies
    """
    runner = runner or NpmRunner.from_settings(settings)
    pipeline = build_pipeline(command, options, context, runner, post_actions)

    scope = EmissionScope.from_options(options)
    packages = context.emit(scope)
    logger.info(f"Running {pipeline.name} for {scope.describe()} ({len(packages)} packages)")

    return pipeline.run(packages)


__all__ = [
    "WorkspaceCommand",
    "DEFAULT_CONTINUE_ON_ERROR",
    "NpmRunner",
    "NpmRunnerProtocol",
    "uninstall_package",
    "link_workspace_dependency",
    "make_install_action",
    "make_publish_action",
    "is_publishable",
    "build_pipeline",
    "run_command",
]
