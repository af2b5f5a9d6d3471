"""Plugin lookup and file permission checks."""

from __future__ import annotations

import os
import stat
from pathlib import Path

from noderun.core import exit_codes
from noderun.core.logging_setup import get_logger

logger = get_logger("plugins")


class PluginError(RuntimeError):
    """Base class for errors preventing a plugin from running."""

    exit_code = exit_codes.PLUGIN_EXEC_FAILED


class UnknownPluginError(PluginError):
    """Raised when the service directory has no runnable plugin of that name."""

    exit_code = exit_codes.UNKNOWN_PLUGIN


class ParanoiaError(PluginError):
    """Raised when a plugin file or one of its directories is not trustworthy."""

    exit_code = exit_codes.PARANOIA_FAILED


class PluginExecError(PluginError):
    """Raised when the plugin process cannot be started."""

    exit_code = exit_codes.PLUGIN_EXEC_FAILED


def locate_plugin(name: str, service_dir: Path) -> Path:
    """Return the path of plugin *name* inside *service_dir*.

    *name* must already be validated; it never contains a path separator.
    Symbolic links are kept as-is in the returned path because wildcard
    plugins read their own name from ``argv[0]``.
    """

    path = service_dir / name
    try:
        info = path.stat()
    except OSError:
        raise UnknownPluginError(f"Unknown service: {name}") from None
    if not stat.S_ISREG(info.st_mode) or not os.access(path, os.X_OK):
        raise UnknownPluginError(f"Unknown service: {name}")
    return path


def _untrusted_reason(path: Path) -> str | None:
    info = path.stat()
    if info.st_uid != 0:
        return f"{path} is not owned by root"
    sticky_dir = stat.S_ISDIR(info.st_mode) and info.st_mode & stat.S_ISVTX
    if info.st_mode & (stat.S_IWGRP | stat.S_IWOTH) and not sticky_dir:
        return f"{path} is writable by group or others"
    return None


def check_paranoia(path: Path) -> None:
    """Check that *path* and every directory above it is safe to execute from.

    The resolved plugin file, its directories and the directories holding the
    link in the service directory must all be owned by root and must not be
    group or world writable.

    Raises
    ------
    ParanoiaError
        On the first violation found.
    """

    target = path.resolve()
    candidates = [target, *target.parents, *path.absolute().parents]

    seen: set[Path] = set()
    for candidate in candidates:
        if candidate in seen:
            continue
        seen.add(candidate)
        try:
            reason = _untrusted_reason(candidate)
        except OSError as exc:
            raise ParanoiaError(f"Cannot inspect {candidate}: {exc}") from exc
        if reason is not None:
            raise ParanoiaError(f"Plugin {path.name} failed the paranoia check: {reason}")
    logger.debug("Paranoia check passed for %s", path)


__all__ = [
    "ParanoiaError",
    "PluginError",
    "PluginExecError",
    "UnknownPluginError",
    "check_paranoia",
    "locate_plugin",
]
