"""Re-execution of noderun inside a transient systemd unit.

The transient unit carries the node service's hardening properties, so the
plugin started by the nested noderun sees the same restrictions it would see
under the node service.
"""

from __future__ import annotations

import os
import shlex
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from noderun.config import Settings
from noderun.core import exit_codes
from noderun.core.logging_setup import get_logger
from noderun.core.options import RunOptions
from noderun.core.validation import PluginInvocation
from noderun.sandbox.envfile import encode_environment
from noderun.sandbox.properties import HardeningProperty

logger = get_logger(__name__.rpartition(".")[2])

GUARD_FLAG = "--ignore-systemd-properties"
"""Makes the nested noderun run the plugin directly."""

SANDBOX_FLAGS: tuple[str, ...] = (
    "--collect",  # discard the unit once it finished, even when it failed
    "--pipe",  # connect the unit to our stdin, stdout and stderr
    "--quiet",  # no "Running as unit ..." chatter
    "--wait",  # block until the plugin exited
)

# Variables systemd assigns inside the transient unit itself.
IGNORED_ENVIRONMENT: frozenset[str] = frozenset(
    {
        "_",
        "HOME",
        "INVOCATION_ID",
        "JOURNAL_STREAM",
        "LANG",
        "LISTEN_FDNAMES",
        "LISTEN_FDS",
        "LISTEN_PID",
        "LOGNAME",
        "MANAGERPID",
        "NOTIFY_SOCKET",
        "OLDPWD",
        "PATH",
        "PWD",
        "SHELL",
        "SHLVL",
        "SYSTEMD_EXEC_PID",
        "USER",
        "WATCHDOG_PID",
        "WATCHDOG_USEC",
    }
)


class SandboxLaunchError(RuntimeError):
    """Raised when systemd-run itself cannot be started."""

    exit_code = exit_codes.SANDBOX_LAUNCH_FAILED


def self_command() -> tuple[str, ...]:
    """Return the command re-running this program."""

    script = Path(sys.argv[0]).resolve() if sys.argv and sys.argv[0] else None
    if (
        script is not None
        and script.name != "__main__.py"
        and script.is_file()
        and os.access(script, os.X_OK)
    ):
        return (str(script),)
    return (sys.executable, "-m", "noderun")


@dataclass(frozen=True, slots=True)
class ReexecInvocation:
    """Complete ``systemd-run`` command for one sandboxed plugin run."""

    systemd_run: str
    environment_file: str
    properties: tuple[HardeningProperty, ...]
    self_command: tuple[str, ...]
    plugin: PluginInvocation
    forwarded_options: tuple[str, ...] = ()

    @property
    def argv(self) -> list[str]:
        argv = [self.systemd_run, *SANDBOX_FLAGS]
        argv += ["--property", f"EnvironmentFile={self.environment_file}"]
        for prop in self.properties:
            argv += ["--property", prop.literal]
        argv.append("--")
        argv += self.self_command
        argv.append(GUARD_FLAG)
        argv += self.forwarded_options
        # Anything after this point is positional for the nested noderun.
        argv.append("--")
        argv += self.plugin.argv()
        return argv


def _exit_status(returncode: int) -> int:
    if returncode < 0:
        return 128 - returncode
    return returncode


def run(
    properties: Sequence[HardeningProperty],
    options: RunOptions,
    settings: Settings,
    *,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Run the plugin of *options* through ``systemd-run`` and return its exit code.

    The caller's environment, minus :data:`IGNORED_ENVIRONMENT`, is handed over
    through a temporary ``EnvironmentFile=`` which is removed before this
    function returns, whatever the outcome.

    Raises
    ------
    SandboxLaunchError
        If ``systemd-run`` cannot be started at all.
    """

    environ = os.environ if environ is None else environ

    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        errors="surrogateescape",
        prefix="noderun-",
        suffix=".env",
    ) as env_file:
        env_file.write(encode_environment(environ, IGNORED_ENVIRONMENT))
        env_file.flush()

        invocation = ReexecInvocation(
            systemd_run=settings.sandbox.systemd_run,
            environment_file=env_file.name,
            properties=tuple(properties),
            self_command=self_command(),
            plugin=options.invocation,
            forwarded_options=tuple(options.forwarded_arguments()),
        )
        argv = invocation.argv
        if options.debug:
            logger.debug("Running: %s", shlex.join(argv))

        try:
            completed = subprocess.run(argv, check=False)
        except OSError as exc:
            raise SandboxLaunchError(
                f"Failed to run {settings.sandbox.systemd_run}: {exc}. "
                f"Retry with {GUARD_FLAG} to run the plugin without the "
                f"service's systemd properties."
            ) from exc

    status = _exit_status(completed.returncode)
    if status != 0:
        logger.warning(
            "The plugin or systemd-run failed with exit code %d; "
            "rerun with --debug to see the systemd-run command.",
            status,
        )
    return status


__all__ = [
    "GUARD_FLAG",
    "IGNORED_ENVIRONMENT",
    "ReexecInvocation",
    "SANDBOX_FLAGS",
    "SandboxLaunchError",
    "run",
    "self_command",
]
