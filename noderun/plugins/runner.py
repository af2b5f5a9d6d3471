"""Direct execution of a plugin, replacing the current process."""

from __future__ import annotations

import grp
import os
import pwd
import shlex
from pathlib import Path
from typing import Mapping, NoReturn

from noderun.config import Settings
from noderun.core.logging_setup import get_logger
from noderun.core.validation import PluginInvocation
from noderun.plugins import PluginExecError, check_paranoia, locate_plugin
from noderun.plugins.conf import PluginConfig, read_plugin_config

logger = get_logger("plugins.runner")


def build_environment(
    config: PluginConfig,
    settings: Settings,
    *,
    pidebug: bool = False,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return the environment a plugin is started with.

    The caller's environment is kept; the node's own variables are added and
    the ``env.*`` settings of the plugin configuration win over both.
    """

    env = dict(os.environ if environ is None else environ)
    env["MUNIN_PLUGSTATE"] = str(settings.paths.state_dir)
    env["MUNIN_LIBDIR"] = str(settings.paths.lib_dir)
    env["MUNIN_CAP_MULTIGRAPH"] = "1"
    if pidebug:
        env["MUNIN_DEBUG"] = "1"
    env.update(config.env)
    return env


def _lookup_user(name: str) -> pwd.struct_passwd:
    try:
        return pwd.getpwnam(name)
    except KeyError:
        pass
    if name.isdigit():
        try:
            return pwd.getpwuid(int(name))
        except KeyError:
            pass
    raise PluginExecError(f"Plugin user {name!r} does not exist")


def _lookup_group(name: str) -> int | None:
    try:
        return grp.getgrnam(name).gr_gid
    except KeyError:
        pass
    if name.isdigit():
        try:
            return grp.getgrgid(int(name)).gr_gid
        except KeyError:
            pass
    return None


def resolve_identity(config: PluginConfig, settings: Settings) -> tuple[int, int, list[int]]:
    """Return ``(uid, gid, supplementary gids)`` the plugin runs as."""

    user = _lookup_user(config.user or settings.node.default_user)

    gids: list[int] = []
    for group in config.groups:
        gid = _lookup_group(group.name)
        if gid is None:
            if group.optional:
                logger.debug("Skipping missing optional group %s", group.name)
                continue
            raise PluginExecError(f"Plugin group {group.name!r} does not exist")
        gids.append(gid)

    if gids:
        primary = gids[0]
    else:
        default_gid = _lookup_group(settings.node.default_group)
        primary = user.pw_gid if default_gid is None else default_gid
    return user.pw_uid, primary, [primary, *(gid for gid in gids if gid != primary)]


def drop_privileges(uid: int, gid: int, groups: list[int]) -> None:
    """Switch to *uid*, *gid* and supplementary *groups*; requires root."""

    try:
        os.setgroups(groups)
        os.setgid(gid)
        os.setuid(uid)
    except OSError as exc:
        raise PluginExecError(f"Cannot switch to uid {uid}, gid {gid}: {exc}") from exc


def exec_plugin(
    path: Path, invocation: PluginInvocation, env: Mapping[str, str]
) -> NoReturn:
    """Replace the current process with the plugin at *path*."""

    argv = [str(path)]
    if invocation.argument is not None:
        argv.append(invocation.argument)
    logger.debug("Executing %s", shlex.join(argv))
    try:
        os.execve(path, argv, dict(env))
    except OSError as exc:
        raise PluginExecError(f"Failed to execute {path}: {exc}") from exc
    raise PluginExecError(f"Failed to execute {path}")  # pragma: no cover - execve returned


def run_plugin(
    invocation: PluginInvocation, settings: Settings, *, pidebug: bool = False
) -> NoReturn:
    """Locate, check, configure and execute the plugin of *invocation*.

    Raises
    ------
    UnknownPluginError
        If the service directory has no such plugin.
    ParanoiaError
        If paranoia is enabled and the plugin is not trustworthy.
    PluginConfigError
        If the plugin configuration cannot be read.
    PluginExecError
        If the identity switch or the exec fails.
    """

    path = locate_plugin(invocation.name, settings.paths.service_dir)
    if settings.node.paranoia:
        check_paranoia(path)

    config = read_plugin_config(
        invocation.name, settings.paths.conf_dir, settings.paths.conf_file
    )
    env = build_environment(config, settings, pidebug=pidebug)
    if os.geteuid() == 0:
        drop_privileges(*resolve_identity(config, settings))
    elif config.user is not None or config.groups:
        logger.warning(
            "Not running as root; %s runs as the current user", invocation.name
        )
    exec_plugin(path, invocation, env)


__all__ = [
    "build_environment",
    "drop_privileges",
    "exec_plugin",
    "resolve_identity",
    "run_plugin",
]
