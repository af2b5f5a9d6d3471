"""Decide whether a plugin runs inside a transient unit or directly.

The checks run in a fixed order and the first one failing selects direct
execution.  None of them is retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from noderun.config import Settings
from noderun.core.logging_setup import get_logger
from noderun.core.options import RunOptions
from noderun.sandbox import reexec
from noderun.sandbox.probe import ServiceManagerProbe
from noderun.sandbox.properties import (
    HardeningProperty,
    PropertyImportError,
    import_hardening_properties,
)

logger = get_logger(__name__.rpartition(".")[2])

Importer = Callable[..., list[HardeningProperty]]
Orchestrator = Callable[[Sequence[HardeningProperty], RunOptions, Settings], int]


@dataclass(frozen=True, slots=True)
class DirectExecution:
    """Run the plugin in this process."""

    reason: str


@dataclass(frozen=True, slots=True)
class SandboxedExecution:
    """The plugin ran in a transient unit and exited with ``exit_code``."""

    exit_code: int


@dataclass(frozen=True, slots=True)
class OrchestratorFailure:
    """systemd-run could not be started."""

    message: str


DegradationOutcome = DirectExecution | SandboxedExecution | OrchestratorFailure


def decide(
    options: RunOptions,
    settings: Settings,
    *,
    probe: ServiceManagerProbe | None = None,
    importer: Importer = import_hardening_properties,
    orchestrator: Orchestrator = reexec.run,
) -> DegradationOutcome:
    """Walk the fallback chain for one invocation.

    Parameters
    ----------
    options:
        The validated command line.
    settings:
        Configuration of this invocation.
    probe, importer, orchestrator:
        Collaborators, replaceable for tests.
    """

    if options.ignore_systemd_properties:
        return DirectExecution("systemd properties ignored on request")

    probe = probe or ServiceManagerProbe(settings.sandbox)

    if not probe.has_unit_manager():
        return DirectExecution("systemd is not managing this host")

    if not probe.can_create_transient_unit():
        logger.debug(
            "Skipping systemd properties simulation: not allowed to create transient units"
        )
        return DirectExecution("transient units are not permitted")

    version = probe.sandbox_runner_version()
    minimum = settings.sandbox.minimum_version
    if version is None or version < minimum:
        logger.debug(
            "Skipping systemd properties simulation: systemd-run version %s, need at least %d",
            "unknown" if version is None else version,
            minimum,
        )
        return DirectExecution("systemd-run is missing or too old")

    try:
        properties = importer(settings.sandbox.unit, systemctl=settings.sandbox.systemctl)
    except PropertyImportError:
        return DirectExecution(f"no usable definition for {settings.sandbox.unit}")

    # An empty list still sandboxes: the plugin gets a fresh transient unit
    # with the stream wiring of the service.
    try:
        exit_code = orchestrator(properties, options, settings)
    except reexec.SandboxLaunchError as exc:
        return OrchestratorFailure(str(exc))
    return SandboxedExecution(exit_code)


__all__ = [
    "DegradationOutcome",
    "DirectExecution",
    "OrchestratorFailure",
    "SandboxedExecution",
    "decide",
]
