"""Parser for the node's plugin configuration directory.

Files look like::

    [df*]
    user root
    group disk, (adm)
    env.warning 92

Section names are glob patterns matched against the plugin name.  Matching
wildcard sections are applied first, then sections naming the plugin exactly,
each group in file order; a later ``user`` or ``group`` replaces an earlier
one while ``env.*`` settings accumulate.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable

from noderun.core import exit_codes
from noderun.core.logging_setup import get_logger

logger = get_logger("plugins.conf")

_SECTION = re.compile(r"^\[(?P<pattern>[^\]]+)\]$")
_IGNORED_SUFFIXES = ("~", ".bak", ".dpkg-old", ".dpkg-dist", ".rpmsave", ".rpmnew")


class PluginConfigError(ValueError):
    """Raised for syntax errors in a plugin configuration file."""

    exit_code = exit_codes.CONFIG_ERROR


@dataclass(frozen=True, slots=True)
class GroupRequirement:
    """A group a plugin runs with; optional groups may be missing on the host."""

    name: str
    optional: bool = False


@dataclass(frozen=True)
class PluginConfig:
    """Effective configuration of one plugin."""

    user: str | None = None
    groups: tuple[GroupRequirement, ...] = ()
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class _Section:
    pattern: str
    directives: list[tuple[str, str]] = field(default_factory=list)


def _parse_groups(value: str) -> tuple[GroupRequirement, ...]:
    groups: list[GroupRequirement] = []
    for raw in value.split(","):
        name = raw.strip()
        if not name:
            continue
        if name.startswith("(") and name.endswith(")"):
            groups.append(GroupRequirement(name[1:-1].strip(), optional=True))
        else:
            groups.append(GroupRequirement(name))
    return tuple(groups)


def parse_sections(text: str, source: str = "<string>") -> list[_Section]:
    """Split configuration *text* into its sections."""

    sections: list[_Section] = []
    current: _Section | None = None
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        match = _SECTION.match(line)
        if match:
            current = _Section(match.group("pattern").strip())
            sections.append(current)
            continue
        if current is None:
            raise PluginConfigError(f"{source}:{lineno}: directive outside of a section")
        key, *rest = line.split(None, 1)
        current.directives.append((key, rest[0].strip() if rest else ""))
    return sections


def _config_files(conf_dir: Path | None, conf_file: Path | None) -> list[Path]:
    files: list[Path] = []
    if conf_dir is not None and conf_dir.is_dir():
        files.extend(
            path
            for path in sorted(conf_dir.iterdir())
            if path.is_file()
            and not path.name.startswith(".")
            and not path.name.endswith(_IGNORED_SUFFIXES)
        )
    if conf_file is not None:
        files.append(conf_file)
    return files


def _apply(config: PluginConfig, directives: Iterable[tuple[str, str]]) -> PluginConfig:
    user = config.user
    groups = config.groups
    env = dict(config.env)
    for key, value in directives:
        if key.startswith("env."):
            env[key[4:]] = value
        elif key == "user":
            user = value
        elif key == "group":
            groups = _parse_groups(value)
        else:
            logger.debug("Ignoring plugin configuration directive %r", key)
    return PluginConfig(user=user, groups=groups, env=env)


def resolve_config(name: str, sections: Iterable[_Section]) -> PluginConfig:
    """Merge the sections applying to plugin *name*."""

    sections = list(sections)
    wildcard = [s for s in sections if s.pattern != name and fnmatchcase(name, s.pattern)]
    exact = [s for s in sections if s.pattern == name]

    config = PluginConfig()
    for section in (*wildcard, *exact):
        config = _apply(config, section.directives)
    return config


def read_plugin_config(
    name: str, conf_dir: Path | None, conf_file: Path | None = None
) -> PluginConfig:
    """Return the configuration of plugin *name*.

    Files of *conf_dir* are read in name order, *conf_file* last.  A missing
    *conf_dir* means no configuration; an unreadable file is an error.
    """

    sections: list[_Section] = []
    for path in _config_files(conf_dir, conf_file):
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PluginConfigError(f"Cannot read {path}: {exc}") from exc
        sections.extend(parse_sections(text, source=str(path)))
    return resolve_config(name, sections)


__all__ = [
    "GroupRequirement",
    "PluginConfig",
    "PluginConfigError",
    "parse_sections",
    "read_plugin_config",
    "resolve_config",
]
