"""Questions asked to the host's service manager before sandboxing.

Every answer is a routing decision, not an error: a host without systemd, an
account that may not create transient units or an old ``systemd-run`` simply
means the plugin runs directly.
"""

from __future__ import annotations

import re
import subprocess

from noderun.configuration import SandboxSettings

VERSION_PATTERN = re.compile(r"^systemd (\d+)")


class ServiceManagerProbe:
    """Inspect systemd availability as configured by *settings*."""

    def __init__(self, settings: SandboxSettings) -> None:
        self.settings = settings

    def has_unit_manager(self) -> bool:
        """Return ``True`` when systemd manages this host."""

        return self.settings.runtime_dir.is_dir()

    def can_create_transient_unit(self) -> bool:
        """Try to run ``true`` in a transient unit, discarding all I/O."""

        cmd = [
            self.settings.systemd_run,
            "--collect",
            "--pipe",
            "--quiet",
            "--wait",
            "true",
        ]
        try:
            completed = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError:
            return False
        return completed.returncode == 0

    def sandbox_runner_version(self) -> int | None:
        """Return the major version reported by ``systemd-run --version``."""

        try:
            completed = subprocess.run(
                [self.settings.systemd_run, "--version"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                check=False,
            )
        except OSError:
            return None

        for line in (completed.stdout or "").splitlines():
            match = VERSION_PATTERN.match(line)
            if match:
                return int(match.group(1))
        return None


__all__ = ["ServiceManagerProbe", "VERSION_PATTERN"]
