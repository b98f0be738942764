"""Pytest configuration and fixtures."""
import json
import logging
import stat
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep NPM_WORKSPACE_* settings and root logging state from leaking between tests."""
    for name in ("LOG_LEVEL", "LOG_FORMAT", "NPM_BIN", "NPM_TIMEOUT_S"):
        monkeypatch.delenv(f"NPM_WORKSPACE_{name}", raising=False)

    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


def write_manifest(directory: Path, **fields) -> Path:
    """Write a package.json into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps(fields, indent=2))
    return path


@pytest.fixture
def workspace(tmp_path):
    """
    Sample workspace:

        app   -> lib, lodash (external)
        lib   -> utils
        utils
        tools (private, no dependencies)
    """
    root = tmp_path / "workspace"
    write_manifest(
        root / "packages" / "app",
        name="app",
        version="1.0.0",
        dependencies={"lib": "^1.0.0", "lodash": "^4.17.0"},
    )
    write_manifest(
        root / "packages" / "lib",
        name="lib",
        version="1.0.0",
        dependencies={"utils": "^1.0.0"},
    )
    write_manifest(root / "packages" / "utils", name="utils", version="1.0.0")
    write_manifest(root / "packages" / "tools", name="tools", version="0.1.0", private=True)
    return root


@pytest.fixture
def fake_npm(tmp_path):
    """Factory for an executable shell script standing in for npm."""

    def make(body: str) -> str:
        script = tmp_path / "fake-npm"
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(script.stat().st_mode | stat.S_IEXEC)
        return str(script)

    return make
