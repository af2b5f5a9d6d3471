"""Import of the node service's hardening properties from ``systemctl show``.

``systemctl show`` reports the active configuration of a unit, drop-in
overrides already merged, as one ``Name=Value`` line per property.  Only the
properties that restrict or grant something to the service's processes are
replayed on the transient unit; the rest describe the unit's lifecycle.
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass

from noderun.core.logging_setup import get_logger

logger = get_logger(__name__.rpartition(".")[2])


class PropertyImportError(RuntimeError):
    """Raised when the unit's properties cannot be queried."""


@dataclass(frozen=True, slots=True)
class HardeningProperty:
    """One security relevant directive of the node service's unit."""

    name: str
    value: str

    @property
    def literal(self) -> str:
        """Return the ``Name=Value`` form accepted by ``--property``."""

        return f"{self.name}={self.value}"

    @classmethod
    def parse(cls, line: str) -> HardeningProperty:
        name, sep, value = line.partition("=")
        if not sep or not name:
            raise ValueError(f"Not a property assignment: {line!r}")
        return cls(name=name, value=value)


def _names(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern) for pattern in patterns)


IMPORTABLE_PROPERTIES: tuple[re.Pattern[str], ...] = _names(
    # capabilities
    r"AmbientCapabilities",
    r"CapabilityBoundingSet",
    # identity
    r"User",
    r"Group",
    r"DynamicUser",
    r"SupplementaryGroups",
    # sandboxing
    r"Protect\w+",
    r"Private\w+",
    r"Restrict\w+",
    r"NoNewPrivileges",
    r"LockPersonality",
    r"MemoryDenyWriteExecute",
    r"RemoveIPC",
    r"KeyringMode",
    r"IPAddress(?:Allow|Deny)",
    r"Device(?:Allow|Policy)",
    # filesystem visibility
    r"(?:ReadWrite|ReadOnly|Inaccessible|Exec|NoExec)Paths",
    r"TemporaryFileSystem",
    r"Bind(?:ReadOnly)?Paths",
    r"Root(?:Directory|Image)",
    r"MountFlags",
    # system call filtering
    r"SystemCall\w+",
    # directories handed to the service
    r"(?:Runtime|State|Cache|Logs|Configuration)Directory(?:Mode)?",
    r"RuntimeDirectoryPreserve",
    r"WorkingDirectory",
    r"UMask",
    # environment
    r"Environment",
    r"PassEnvironment",
    r"UnsetEnvironment",
    # resources; soft limits are dropped before matching
    r"Limit[A-Z]+",
    r"Nice",
    r"OOMScoreAdjust",
)

# Lines never replayed, whatever the allowlist says.
_SOFT_LIMIT = re.compile(r"Limit[A-Z]+Soft")
_MERGED_DROP_INS = "DropInPaths"
_ENVIRONMENT_FILE = re.compile(r"EnvironmentFiles?")


def is_importable(name: str) -> bool:
    """Return ``True`` when property *name* may be replayed on a transient unit."""

    if _SOFT_LIMIT.fullmatch(name):
        return False
    # Already merged into the other reported values; systemd-run rejects it.
    if name == _MERGED_DROP_INS:
        return False
    # systemctl renders these as "path (ignore_errors=yes)", which is not the
    # syntax --property expects.
    if _ENVIRONMENT_FILE.fullmatch(name):
        return False
    return any(pattern.fullmatch(name) for pattern in IMPORTABLE_PROPERTIES)


def filter_properties(lines: list[str]) -> list[HardeningProperty]:
    """Keep the importable ``Name=Value`` lines, in their original order."""

    imported: list[HardeningProperty] = []
    for line in lines:
        try:
            prop = HardeningProperty.parse(line)
        except ValueError:
            continue
        if is_importable(prop.name):
            imported.append(prop)
    return imported


def import_hardening_properties(
    unit: str, *, systemctl: str = "systemctl"
) -> list[HardeningProperty]:
    """Return the importable properties currently active for *unit*.

    Raises
    ------
    PropertyImportError
        If ``systemctl show`` cannot be started or exits non-zero, which is
        how an absent service manager or an undefined unit shows up.
    """

    cmd = [systemctl, "show", unit]
    try:
        completed = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise PropertyImportError(f"Could not run {systemctl}: {exc}") from exc

    if completed.returncode != 0:
        raise PropertyImportError(
            f"{systemctl} show {unit} exited with code {completed.returncode}"
        )

    properties = filter_properties((completed.stdout or "").splitlines())
    logger.debug("Imported %d properties from %s", len(properties), unit)
    return properties


__all__ = [
    "HardeningProperty",
    "IMPORTABLE_PROPERTIES",
    "PropertyImportError",
    "filter_properties",
    "import_hardening_properties",
    "is_importable",
]
