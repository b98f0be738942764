"""
Tests for npm workspace commands (install / uninstall / publish).

npm itself is replaced by FakeRunner, or by a small shell script when
NpmRunner's subprocess handling is under test.
"""

import asyncio

import pytest

from npm_workspace.actions import ConditionableAction
from npm_workspace.commands import (
    DEFAULT_CONTINUE_ON_ERROR,
    NpmRunner,
    WorkspaceCommand,
    build_pipeline,
    link_workspace_dependency,
    run_command,
    uninstall_package,
)
from npm_workspace.config import load_settings
from npm_workspace.errors import NpmCommandError, UnknownNodeError
from npm_workspace.manifest import build_context
from npm_workspace.options import VersionBump, resolve_options
from npm_workspace.pipeline import PipelineStatus


class FakeRunner:
    """Records npm invocations; fails for packages listed in fail_in."""

    def __init__(self, fail_in=()):
        self.calls = []
        self.fail_in = set(fail_in)

    async def run(self, args, cwd):
        self.calls.append((list(args), cwd.name))
        if cwd.name in self.fail_in:
            raise NpmCommandError(["npm", *args], 1, "npm ERR! simulated")
        return ""


class TestNpmRunner:

    def test_returns_stdout(self, tmp_path, fake_npm):
        runner = NpmRunner(npm_bin=fake_npm('echo "args: $@"'))

        output = asyncio.run(runner.run(["publish", "--dry-run"], cwd=tmp_path))

        assert output.strip() == "args: publish --dry-run"

    def test_non_zero_exit(self, tmp_path, fake_npm):
        runner = NpmRunner(npm_bin=fake_npm('echo "npm ERR! 404" >&2\nexit 3'))

        with pytest.raises(NpmCommandError) as exc_info:
            asyncio.run(runner.run(["install"], cwd=tmp_path))

        assert exc_info.value.returncode == 3
        assert "npm ERR! 404" in exc_info.value.stderr
        assert exc_info.value.command[-1] == "install"

    def test_missing_binary(self, tmp_path):
        runner = NpmRunner(npm_bin=str(tmp_path / "no-such-npm"))

        with pytest.raises(NpmCommandError) as exc_info:
            asyncio.run(runner.run(["install"], cwd=tmp_path))

        assert exc_info.value.returncode == 127

    def test_timeout(self, tmp_path, fake_npm):
        runner = NpmRunner(npm_bin=fake_npm("exec sleep 5"), timeout_s=1)

        with pytest.raises(NpmCommandError, match="timed out"):
            asyncio.run(runner.run(["install"], cwd=tmp_path))

    def test_from_settings(self):
        settings = load_settings(npm_bin="pnpm", npm_timeout_s=30)

        runner = NpmRunner.from_settings(settings)

        assert runner.npm_bin == "pnpm"
        assert runner.timeout_s == 30


class TestUninstall:

    def test_removes_node_modules(self, tmp_path):
        (tmp_path / "node_modules" / "lodash").mkdir(parents=True)
        (tmp_path / "node_modules" / "lodash" / "index.js").write_text("")

        uninstall_package(None, tmp_path)

        assert not (tmp_path / "node_modules").exists()

    def test_missing_node_modules_is_fine(self, tmp_path):
        uninstall_package(None, tmp_path)

        assert not (tmp_path / "node_modules").exists()

    def test_uninstall_command(self, workspace):
        for name in ("app", "lib"):
            (workspace / "packages" / name / "node_modules").mkdir()
        context = build_context(workspace)

        result = run_command(
            WorkspaceCommand.UNINSTALL,
            context,
            resolve_options(overrides={"cwd": workspace}),
            load_settings(),
            runner=FakeRunner(),
        )

        assert result.status == PipelineStatus.SUCCESS
        assert len(result.succeeded) == 4
        assert not (workspace / "packages" / "app" / "node_modules").exists()
        assert not (workspace / "packages" / "lib" / "node_modules").exists()


class TestInstall:

    def test_link_scoped_dependency(self, tmp_path):
        package = tmp_path / "app"
        dependency = tmp_path / "core"
        package.mkdir()
        dependency.mkdir()

        link = link_workspace_dependency(package, "@acme/core", dependency)

        assert link == package / "node_modules" / "@acme" / "core"
        assert link.is_symlink()
        assert link.resolve() == dependency.resolve()

    def test_link_replaces_existing_directory(self, tmp_path):
        package = tmp_path / "app"
        dependency = tmp_path / "lib"
        (package / "node_modules" / "lib").mkdir(parents=True)
        dependency.mkdir()

        link = link_workspace_dependency(package, "lib", dependency)

        assert link.is_symlink()

    def test_install_links_workspace_and_installs_external(self, workspace):
        context = build_context(workspace)
        runner = FakeRunner()

        result = run_command(
            WorkspaceCommand.INSTALL,
            context,
            resolve_options(overrides={"cwd": workspace, "package": "app"}),
            load_settings(),
            runner=runner,
        )

        assert [o.package_name for o in result.outcomes] == ["utils", "lib", "app"]
        assert result.is_success

        app_dir = workspace / "packages" / "app"
        lib_link = app_dir / "node_modules" / "lib"
        assert lib_link.is_symlink()
        assert lib_link.resolve() == (workspace / "packages" / "lib").resolve()
        assert (workspace / "packages" / "lib" / "node_modules" / "utils").is_symlink()

        # Only app has an external dependency
        assert runner.calls == [(["install", "--no-save", "lodash@^4.17.0"], "app")]

    def test_install_continues_by_default(self, workspace):
        context = build_context(workspace)
        runner = FakeRunner(fail_in={"app"})
        options = resolve_options(overrides={"cwd": workspace})

        result = run_command(WorkspaceCommand.INSTALL, context, options, load_settings(), runner=runner)

        assert result.status == PipelineStatus.PARTIAL
        assert result.failed == ["app"]
        assert "simulated" in str(result.errors[0])


class TestPublish:

    def test_publish_skips_private_and_bumps_version(self, workspace):
        context = build_context(workspace)
        runner = FakeRunner()
        options = resolve_options(overrides={"cwd": workspace, "version_bump": "minor"})

        result = run_command(WorkspaceCommand.PUBLISH, context, options, load_settings(), runner=runner)

        assert result.skipped == ["tools"]
        assert result.succeeded == ["utils", "lib", "app"]
        assert runner.calls[:2] == [
            (["version", "minor", "--no-git-tag-version"], "utils"),
            (["publish"], "utils"),
        ]
        assert len(runner.calls) == 6

    def test_publish_stops_on_error_by_default(self, workspace):
        context = build_context(workspace)
        runner = FakeRunner(fail_in={"lib"})
        options = resolve_options(overrides={"cwd": workspace})

        result = run_command(WorkspaceCommand.PUBLISH, context, options, load_settings(), runner=runner)

        assert result.status == PipelineStatus.ABORTED
        assert result.aborted_at == "lib"
        assert all(cwd != "app" for _, cwd in runner.calls)

    def test_named_package_only(self, workspace):
        context = build_context(workspace)
        runner = FakeRunner()
        options = resolve_options(
            overrides={"cwd": workspace, "package": "app", "only_named_package": True}
        )

        result = run_command(WorkspaceCommand.PUBLISH, context, options, load_settings(), runner=runner)

        assert result.succeeded == ["app"]

    def test_unknown_package(self, workspace):
        context = build_context(workspace)
        options = resolve_options(overrides={"cwd": workspace, "package": "missing"})

        with pytest.raises(UnknownNodeError):
            run_command(WorkspaceCommand.PUBLISH, context, options, load_settings(), runner=FakeRunner())


class TestBuildPipeline:

    @pytest.mark.parametrize("command", list(WorkspaceCommand))
    def test_default_policy(self, workspace, command):
        pipeline = build_pipeline(command, resolve_options(), build_context(workspace), FakeRunner())

        assert pipeline.name == command.value
        assert pipeline.policy.continue_on_error is DEFAULT_CONTINUE_ON_ERROR[command]

    def test_option_overrides_policy(self, workspace):
        options = resolve_options(local={"continueOnError": False})

        pipeline = build_pipeline(WorkspaceCommand.UNINSTALL, options, build_context(workspace), FakeRunner())

        assert pipeline.policy.continue_on_error is False

    def test_post_actions_attached(self, workspace):
        marker = ConditionableAction.of_sync(lambda d, p: (p / "done").write_text(d.name))
        context = build_context(workspace)

        result = run_command(
            WorkspaceCommand.UNINSTALL,
            context,
            resolve_options(overrides={"cwd": workspace, "package": "lib", "only_named_package": True}),
            load_settings(),
            post_actions=[marker],
            runner=FakeRunner(),
        )

        assert result.succeeded == ["lib"]
        assert (workspace / "packages" / "lib" / "done").read_text() == "lib"

    def test_version_bump_from_options(self, workspace):
        runner = FakeRunner()
        options = resolve_options(overrides={"version_bump": VersionBump.PREMAJOR, "package": "utils"})
        context = build_context(workspace)

        run_command(WorkspaceCommand.PUBLISH, context, options, load_settings(), runner=runner)

        assert runner.calls[0][0][1] == "premajor"
