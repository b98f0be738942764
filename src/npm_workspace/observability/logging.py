"""Console logging, plain text or structured JSON, with package context."""
import logging
import sys
from typing import Any, Optional, Union

from pythonjsonlogger import jsonlogger

from npm_workspace.config import Settings

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Context fields carried on log records
CONTEXT_FIELDS = ("package", "command")


class PackageContextFilter(logging.Filter):
    """Add package context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add default context fields if not present."""
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with standardized field names."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to the log record."""
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                log_record[name] = value
            else:
                log_record.pop(name, None)


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(
    settings: Settings,
    level: Optional[Union[int, str]] = None,
    stream=None,
) -> logging.Handler:
    """
    Configure console logging for the application.

    Args:
        settings: Process settings (log level and format)
        level: Overrides settings.log_level (e.g. from --verbose / --quiet)
        stream: Output stream, stderr by default

    Returns:
        The installed handler
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(build_formatter(settings.log_format))
    handler.addFilter(PackageContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level if level is not None else settings.log_level)

    return handler


class PackageLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges per-call extra with the adapter extra."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str, **context: Any) -> PackageLoggerAdapter:
    """
    Get a logger that accepts package context in its extra dict.

    Args:
        name: Logger name (typically __name__)
        **context: Context fields attached to every record
    """
    logger = logging.getLogger(name)
    return PackageLoggerAdapter(logger, extra=context)


def with_package_context(
    package: Optional[str] = None,
    command: Optional[str] = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create an extra dict with package context for logging.

    Args:
        package: Workspace package name
        command: Workspace command (install, uninstall, publish)
        **kwargs: Additional context fields

    Returns:
        Dict to pass as extra parameter to logger methods
    """
    extra = kwargs.copy()
    if package:
        extra["package"] = package
    if command:
        extra["command"] = command
    return extra
