"""Command line entry point for noderun."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Sequence

from noderun import __version__
from noderun.config import Settings, load_settings
from noderun.core import exit_codes, logging_setup
from noderun.core.options import RunOptions
from noderun.core.validation import InvalidInvocationError, validate_invocation
from noderun.plugins import PluginError
from noderun.plugins.conf import PluginConfigError
from noderun.plugins.runner import run_plugin
from noderun.sandbox import controller
from noderun.sandbox.reexec import GUARD_FLAG

logger = logging_setup.get_logger("cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="noderun",
        description=(
            "Run a node plugin the way the node service runs it, inside a "
            "transient systemd unit carrying the service's hardening when possible."
        ),
    )
    parser.add_argument("--version", action="version", version=f"noderun {__version__}")
    parser.add_argument("plugin", help="Name of the plugin in the service directory.")
    parser.add_argument(
        "argument",
        nargs="?",
        default=None,
        help="Optional plugin argument, e.g. config or autoconf.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="FILE",
        help="Use FILE instead of /etc/noderun/noderun.toml.",
    )
    parser.add_argument(
        "--servicedir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Directory holding the plugins.",
    )
    parser.add_argument(
        "--sconfdir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Directory holding the plugin configuration files.",
    )
    parser.add_argument(
        "--sconffile",
        type=Path,
        default=None,
        metavar="FILE",
        help="Plugin configuration file read after the directory.",
    )
    parser.add_argument(
        "--paranoia",
        action="store_true",
        help="Only run plugins whose file and directories are owned by root.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print what noderun does on standard error.",
    )
    parser.add_argument(
        "--pidebug",
        action="store_true",
        help="Run the plugin with MUNIN_DEBUG=1.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print informational messages on standard error.",
    )
    parser.add_argument(
        GUARD_FLAG,
        dest="ignore_systemd_properties",
        action="store_true",
        help="Do not reproduce the node service's systemd hardening.",
    )
    return parser


def _settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    paths: dict[str, Any] = {}
    if args.servicedir is not None:
        paths["service_dir"] = args.servicedir
    if args.sconfdir is not None:
        paths["conf_dir"] = args.sconfdir
    if args.sconffile is not None:
        paths["conf_file"] = args.sconffile

    overrides: dict[str, Any] = {}
    if paths:
        overrides["paths"] = paths
    if args.paranoia:
        overrides["node"] = {"paranoia": True}
    return overrides


def _load(args: argparse.Namespace) -> Settings:
    return load_settings(args.config, **_settings_overrides(args))


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load(args)
    except (OSError, ValueError) as exc:
        # ValidationError and TOMLDecodeError are both ValueErrors.
        logging_setup.configure_basic()
        logger.error("Invalid configuration: %s", exc)
        return exit_codes.CONFIG_ERROR

    logging_setup.configure(settings, debug=args.debug, verbose=args.verbose)

    try:
        invocation = validate_invocation(args.plugin, args.argument)
    except InvalidInvocationError as exc:
        logger.error("%s", exc)
        return exc.exit_code

    logging_setup.set_plugin_context(invocation.name)
    options = RunOptions(
        invocation=invocation,
        config_file=args.config,
        service_dir=args.servicedir,
        conf_dir=args.sconfdir,
        conf_file=args.sconffile,
        paranoia=args.paranoia,
        debug=args.debug,
        pidebug=args.pidebug,
        verbose=args.verbose,
        ignore_systemd_properties=args.ignore_systemd_properties,
    )

    outcome = controller.decide(options, settings)
    if isinstance(outcome, controller.SandboxedExecution):
        return outcome.exit_code
    if isinstance(outcome, controller.OrchestratorFailure):
        logger.error("%s", outcome.message)
        return exit_codes.SANDBOX_LAUNCH_FAILED

    try:
        run_plugin(invocation, settings, pidebug=args.pidebug)
    except (PluginError, PluginConfigError) as exc:
        logger.error("%s", exc)
        return exc.exit_code


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
