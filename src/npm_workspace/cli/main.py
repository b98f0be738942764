"""
npm-workspace CLI - Main entry point.

Provides commands for:
- Showing the workspace processing order
- Installing, uninstalling and publishing workspace packages in
  dependency order
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from pydantic import ValidationError

from npm_workspace.commands import WorkspaceCommand, run_command
from npm_workspace.config import Settings, load_settings
from npm_workspace.context import WorkspaceContext
from npm_workspace.emitter import EmissionScope
from npm_workspace.errors import WorkspaceError
from npm_workspace.manifest import WorkspacePackage, build_context
from npm_workspace.observability import setup_logging
from npm_workspace.options import (
    VersionBump,
    WorkspaceOptions,
    cli_overrides,
    load_options_file,
    resolve_options,
)
from npm_workspace.pipeline import PackageStatus, PipelineResult, PipelineStatus


logger = logging.getLogger("npm_workspace")

# Exit codes
EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(EXIT_FATAL)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Suppress output")
@click.option(
    "--cwd",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Workspace root (defaults to the current directory)",
)
@click.option(
    "--config", "-f",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to workspace options YAML",
)
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    help="Console log format",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    cwd: Optional[Path],
    config: Optional[Path],
    log_format: Optional[str],
):
    """npm-workspace - Run npm commands across a workspace in dependency order."""
    ctx.ensure_object(dict)

    try:
        settings = load_settings(**({"log_format": log_format} if log_format else {}))
    except ValidationError as e:
        _fail(f"Invalid settings: {e}")

    level = None
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    setup_logging(settings, level)

    local_options = None
    if config:
        try:
            local_options = load_options_file(config)
        except WorkspaceError as e:
            _fail(str(e))

    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["cwd"] = cwd
    ctx.obj["local_options"] = local_options


def _apply_log_level(options: WorkspaceOptions) -> None:
    """Apply enable_logging / verbose_logging from the resolved options."""
    if not options.enable_logging:
        logging.getLogger().setLevel(logging.ERROR)
    elif options.verbose_logging:
        logging.getLogger().setLevel(logging.DEBUG)


def _prepare(
    ctx: click.Context,
    package: Optional[str],
    continue_on_error: Optional[bool] = None,
    version_bump: Optional[str] = None,
) -> Tuple[WorkspaceOptions, WorkspaceContext[WorkspacePackage]]:
    """Resolve options and load the workspace."""
    try:
        overrides = cli_overrides(
            package=package,
            verbose=ctx.obj["verbose"],
            version_bump=version_bump,
            cwd=ctx.obj["cwd"],
        )
        if continue_on_error is not None:
            overrides["continue_on_error"] = continue_on_error

        options = resolve_options(local=ctx.obj["local_options"], overrides=overrides)
        if not ctx.obj["quiet"]:
            _apply_log_level(options)
        context = build_context(options.cwd)
    except WorkspaceError as e:
        _fail(str(e))

    if len(context) == 0:
        click.echo(f"No workspace packages found under {options.cwd}", err=True)
    return options, context


def _planned_order(context: WorkspaceContext[WorkspacePackage], scope: EmissionScope) -> List[str]:
    try:
        return context.order(scope)
    except WorkspaceError as e:
        _fail(str(e))


# ==============================================================================
# Order Command
# ==============================================================================

@cli.command("order")
@click.option("--package", "-p", help="Focus on a package ('!name' for that package only)")
@click.option("--json", "as_json", is_flag=True, help="Print the order as JSON")
@click.pass_context
def order(ctx: click.Context, package: Optional[str], as_json: bool):
    """
    Print workspace packages in processing order.

    Examples:

        # Whole workspace
        npm-workspace order

        # A package and its workspace dependencies
        npm-workspace order -p my-app
    """
    options, context = _prepare(ctx, package)
    names = _planned_order(context, EmissionScope.from_options(options))

    if as_json:
        click.echo(json.dumps(names, indent=2))
        return

    for index, name in enumerate(names, start=1):
        click.echo(f"{index:3d}. {name}")


# ==============================================================================
# Package Commands
# ==============================================================================

def _package_command_options(func):
    func = click.option(
        "--dry-run", is_flag=True,
        help="Show the packages that would be processed",
    )(func)
    func = click.option(
        "--continue-on-error/--stop-on-error",
        default=None,
        help="Keep going after a package fails (default depends on the command)",
    )(func)
    func = click.option(
        "--package", "-p",
        help="Focus on a package ('!name' for that package only)",
    )(func)
    return func


def _report(result: PipelineResult, planned: List[str]) -> int:
    """Print per-package results and return the exit code."""
    click.echo(f"\nResult: {result.status.value}")
    click.echo(f"Duration: {result.duration_ms:.2f}ms")

    icons = {
        PackageStatus.SUCCEEDED: "✓",
        PackageStatus.FAILED: "✗",
        PackageStatus.SKIPPED: "-",
    }
    for outcome in result.outcomes:
        click.echo(f"  {icons[outcome.status]} {outcome.package_name}: {outcome.status.value}")

    if result.errors:
        click.echo("\nErrors:", err=True)
        for error in result.errors:
            click.echo(f"  - {error}", err=True)

    if result.status == PipelineStatus.ABORTED:
        not_processed = planned[len(result.outcomes):]
        if not_processed:
            click.echo(f"\nNot processed: {', '.join(not_processed)}", err=True)
        return EXIT_FATAL
    if result.status == PipelineStatus.PARTIAL:
        return EXIT_PARTIAL
    return EXIT_OK


def _run_workspace_command(
    ctx: click.Context,
    command: WorkspaceCommand,
    package: Optional[str],
    continue_on_error: Optional[bool],
    dry_run: bool,
    version_bump: Optional[str] = None,
) -> None:
    settings: Settings = ctx.obj["settings"]
    options, context = _prepare(ctx, package, continue_on_error, version_bump)
    scope = EmissionScope.from_options(options)
    planned = _planned_order(context, scope)

    if dry_run:
        click.echo(f"[DRY RUN] Would {command.value} {len(planned)} packages:")
        for name in planned:
            click.echo(f"  - {name}")
        return

    try:
        result = run_command(command, context, options, settings)
    except WorkspaceError as e:
        _fail(str(e))

    sys.exit(_report(result, planned))


@cli.command("install")
@_package_command_options
@click.pass_context
def install(ctx: click.Context, package: Optional[str], continue_on_error: Optional[bool], dry_run: bool):
    """Link workspace dependencies and npm-install external ones."""
    _run_workspace_command(ctx, WorkspaceCommand.INSTALL, package, continue_on_error, dry_run)


@cli.command("uninstall")
@_package_command_options
@click.pass_context
def uninstall(ctx: click.Context, package: Optional[str], continue_on_error: Optional[bool], dry_run: bool):
    """Remove node_modules from workspace packages."""
    _run_workspace_command(ctx, WorkspaceCommand.UNINSTALL, package, continue_on_error, dry_run)


@cli.command("publish")
@_package_command_options
@click.option(
    "--version-bump",
    type=click.Choice([bump.value for bump in VersionBump]),
    help="Version increment applied before publishing",
)
@click.pass_context
def publish(
    ctx: click.Context,
    package: Optional[str],
    continue_on_error: Optional[bool],
    dry_run: bool,
    version_bump: Optional[str],
):
    """Bump versions and publish non-private workspace packages."""
    _run_workspace_command(
        ctx, WorkspaceCommand.PUBLISH, package, continue_on_error, dry_run, version_bump
    )


# ==============================================================================
# Entry Point
# ==============================================================================

def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
