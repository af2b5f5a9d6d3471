"""Parsed command line options of one noderun invocation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from noderun.core.validation import PluginInvocation


@dataclass(frozen=True, slots=True)
class RunOptions:
    """What the operator asked for, with the plugin name already validated."""

    invocation: PluginInvocation
    config_file: Path | None = None
    service_dir: Path | None = None
    conf_dir: Path | None = None
    conf_file: Path | None = None
    paranoia: bool = False
    debug: bool = False
    pidebug: bool = False
    verbose: bool = False
    ignore_systemd_properties: bool = False

    def forwarded_arguments(self) -> list[str]:
        """Return the options a re-executed noderun needs to behave the same.

        Paths are made absolute because the transient unit does not start in
        the caller's working directory.  Each is a single ``--option=value``
        token so a value starting with ``-`` cannot pass for an option.  The
        property guard is not part of this list; the re-exec path adds it.
        """

        args: list[str] = []
        for flag, path in (
            ("--config", self.config_file),
            ("--servicedir", self.service_dir),
            ("--sconfdir", self.conf_dir),
            ("--sconffile", self.conf_file),
        ):
            if path is not None:
                args.append(f"{flag}={path.absolute()}")
        for flag, enabled in (
            ("--paranoia", self.paranoia),
            ("--debug", self.debug),
            ("--pidebug", self.pidebug),
            ("--verbose", self.verbose),
        ):
            if enabled:
                args.append(flag)
        return args


__all__ = ["RunOptions"]
