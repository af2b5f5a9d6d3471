"""Utilities to configure diagnostic logging for the command line tool.

Everything noderun itself reports goes to standard error, one line per record,
prefixed with ``# ``.  Standard output belongs to the plugin.
"""

from __future__ import annotations

import logging
import logging.config
import datetime
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any
import importlib.resources as resources
from contextvars import ContextVar

import yaml

if TYPE_CHECKING:  # pragma: no cover - typing only
    from noderun.config import Settings


LOGGER_NAME = "noderun"
"""Base logger name used throughout the project."""

DIAGNOSTIC_PREFIX = "# "
"""Marker put in front of every diagnostic line."""


logger = logging.getLogger(LOGGER_NAME)
"""Central application logger.

Modules obtain child loggers with :func:`get_logger` ensuring that all logs
propagate through a single named hierarchy rooted at ``noderun``.
"""

logger.setLevel(logging.NOTSET)


plugin_ctx: ContextVar[str] = ContextVar("plugin", default="")


class InvocationFilter(logging.Filter):
    """Logging filter stamping records with the plugin being run."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - simple
        record.plugin = plugin_ctx.get("")
        return True


class DiagnosticFormatter(logging.Formatter):
    """Format records as ``# message`` lines, one per physical line."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.WARNING:
            message = f"{record.levelname.capitalize()}: {message}"
        return "\n".join(DIAGNOSTIC_PREFIX + line for line in message.splitlines() or [""])


class JSONFormatter(logging.Formatter):
    """Format log records as prefixed JSON objects."""

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting
        log_record = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.UTC
            ).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        plugin = getattr(record, "plugin", "")
        if plugin:
            log_record["plugin"] = plugin
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return DIAGNOSTIC_PREFIX + json.dumps(log_record)


def set_plugin_context(plugin: str | None = None) -> None:
    """Set the plugin name attached to subsequent log records."""

    plugin_ctx.set(plugin or "")


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the application logger or one of its children.

    Parameters
    ----------
    name:
        Optional child logger name. When provided the logger returned is
        ``noderun.<name>`` which still propagates through the central
        ``noderun`` logger.
    """

    return logger if name is None else logger.getChild(name)


def _resolve_level(settings: Settings, *, debug: bool, verbose: bool) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return getattr(logging, settings.logging.fallback_level, logging.WARNING)


def _select_formatter(config: dict[str, Any], name: str) -> None:
    """Point every handler of the packaged configuration at formatter *name*."""

    formatters = config.get("formatters")
    if not isinstance(formatters, dict) or name not in formatters:
        return
    handlers = config.get("handlers")
    if not isinstance(handlers, dict):
        return
    for handler_config in handlers.values():
        if isinstance(handler_config, dict):
            handler_config["formatter"] = name


def _load_config(config_path: Path) -> dict[str, Any]:
    with config_path.open("r", encoding="utf-8") as f:
        if config_path.suffix.lower() == ".json":
            return json.load(f)
        return yaml.safe_load(f) or {}


def configure_basic(level: int = logging.WARNING) -> None:
    """Plain prefixed diagnostics, used until the settings are known."""

    logging.basicConfig(
        level=level,
        format=DIAGNOSTIC_PREFIX + "%(message)s",
        stream=sys.stderr,
    )
    logger.setLevel(level)


def _configure_from_path(config_path: Path, *, level: int, formatter: str | None) -> None:
    """Load logging configuration from ``config_path`` if possible."""

    if not config_path.exists():
        configure_basic(level)
        return

    config = _load_config(config_path)
    if formatter is not None:
        _select_formatter(config, formatter)
    logging.config.dictConfig(config)
    logger.setLevel(level)


def configure(settings: Settings, *, debug: bool = False, verbose: bool = False) -> None:
    """Configure diagnostics for one invocation.

    A ``logging.config_path`` from *settings* wins over the packaged
    ``logging.yml``; the formatter choice only applies to the packaged file.
    ``--debug`` lowers the threshold to DEBUG and ``--verbose`` to INFO.
    """

    level = _resolve_level(settings, debug=debug, verbose=verbose)

    config_path = settings.logging.config_path
    if config_path is not None:
        _configure_from_path(config_path, level=level, formatter=None)
        return

    resource = resources.files("noderun.config") / "logging.yml"
    with resources.as_file(resource) as packaged:
        _configure_from_path(packaged, level=level, formatter=settings.logging.format)


__all__ = [
    "DIAGNOSTIC_PREFIX",
    "DiagnosticFormatter",
    "InvocationFilter",
    "JSONFormatter",
    "LOGGER_NAME",
    "configure",
    "configure_basic",
    "get_logger",
    "set_plugin_context",
]
