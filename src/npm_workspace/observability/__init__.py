"""Observability package."""
from npm_workspace.observability.logging import (
    get_logger,
    setup_logging,
    with_package_context,
)

__all__ = ["get_logger", "setup_logging", "with_package_context"]
