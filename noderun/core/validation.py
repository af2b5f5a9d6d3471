"""Validation of the plugin name and argument received on the command line."""

from __future__ import annotations

import re
from dataclasses import dataclass

from noderun.core import exit_codes


# Plugin names are file names inside the service directory; wildcard plugins
# such as ``if_eth0`` or ``snmp_host.example.org_load`` need ``_``, ``.`` and
# ``:`` but never a path separator.
PLUGIN_NAME_PATTERN = re.compile(r"[A-Za-z0-9_.:-]+")
PLUGIN_ARGUMENT_PATTERN = re.compile(r"\w+", re.ASCII)


class InvalidInvocationError(ValueError):
    """Raised when the plugin name or argument contains forbidden characters."""

    exit_code = exit_codes.INVALID_INVOCATION


@dataclass(frozen=True, slots=True)
class PluginInvocation:
    """A plugin name and optional argument that passed validation.

    Instances are only created by :func:`validate_invocation`; downstream code
    hands ``name`` and ``argument`` to process launchers as-is.
    """

    name: str
    argument: str | None = None

    def argv(self) -> list[str]:
        """Return the positional arguments naming this plugin run."""

        if self.argument is None:
            return [self.name]
        return [self.name, self.argument]


def validate_plugin_name(name: str) -> str:
    """Return *name* unchanged or raise :class:`InvalidInvocationError`."""

    if not isinstance(name, str) or not PLUGIN_NAME_PATTERN.fullmatch(name):
        raise InvalidInvocationError(f"Invalid plugin name: {name!r}")
    return name


def validate_plugin_argument(argument: str) -> str:
    """Return *argument* unchanged or raise :class:`InvalidInvocationError`."""

    if not isinstance(argument, str) or not PLUGIN_ARGUMENT_PATTERN.fullmatch(argument):
        raise InvalidInvocationError(f"Invalid plugin argument: {argument!r}")
    return argument


def validate_invocation(name: str, argument: str | None = None) -> PluginInvocation:
    """Validate the untrusted command line values once.

    Parameters
    ----------
    name:
        Plugin name, restricted to letters, digits, ``-``, ``_``, ``.`` and
        ``:``.
    argument:
        Optional plugin argument (``config``, ``autoconf`` ...), restricted to
        ASCII word characters.

    Returns
    -------
    PluginInvocation
        The validated values.

    Raises
    ------
    InvalidInvocationError
        If either value contains anything else.
    """

    validated_name = validate_plugin_name(name)
    validated_argument = None if argument is None else validate_plugin_argument(argument)
    return PluginInvocation(name=validated_name, argument=validated_argument)


__all__ = [
    "InvalidInvocationError",
    "PLUGIN_ARGUMENT_PATTERN",
    "PLUGIN_NAME_PATTERN",
    "PluginInvocation",
    "validate_invocation",
    "validate_plugin_argument",
    "validate_plugin_name",
]
