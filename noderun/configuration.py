"""Typed configuration models for noderun settings."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class SectionSettings(BaseSettings):
    """Base class for configuration sections.

    The sections are populated by the top-level :class:`noderun.config.Settings`
    factory, therefore environment lookups for the individual sections are
    disabled.  Every section is frozen: a settings value is built once per
    invocation and handed down explicitly to the components that need it.
    """

    model_config = SettingsConfigDict(extra="ignore", validate_default=True, frozen=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Only use the data supplied by the parent :class:`Settings` instance so
        # nested sections do not parse the environment individually.
        return (init_settings,)


class PathsSettings(SectionSettings):
    """Filesystem locations shared with the node service."""

    service_dir: Path = Field(
        default=Path("/etc/munin/plugins"),
        description="Directory holding the enabled plugins.",
    )
    conf_dir: Path = Field(
        default=Path("/etc/munin/plugin-conf.d"),
        description="Directory holding the plugin configuration files.",
    )
    conf_file: Path | None = Field(
        default=None,
        description="Extra plugin configuration file read after conf_dir.",
    )
    state_dir: Path = Field(
        default=Path("/var/lib/munin-node/plugin-state"),
        description="Directory exported to plugins as MUNIN_PLUGSTATE.",
    )
    lib_dir: Path = Field(
        default=Path("/usr/share/munin"),
        description="Directory exported to plugins as MUNIN_LIBDIR.",
    )


class NodeSettings(SectionSettings):
    """Defaults applied to every plugin run."""

    default_user: str = Field(default="nobody", description="User running plugins.")
    default_group: str = Field(default="nogroup", description="Group running plugins.")
    paranoia: bool = Field(
        default=False,
        description="Refuse plugins whose file or parent directories are not root-owned.",
    )

    @field_validator("default_user", "default_group")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("user and group names must not be empty")
        return value


class SandboxSettings(SectionSettings):
    """How the node service's systemd hardening is reproduced."""

    unit: str = Field(
        default="munin-node.service",
        description="Service unit whose hardening properties are imported.",
    )
    runtime_dir: Path = Field(
        default=Path("/run/systemd/system"),
        description="Directory present only when systemd manages the host.",
    )
    systemctl: str = Field(default="systemctl", description="systemctl executable.")
    systemd_run: str = Field(default="systemd-run", description="systemd-run executable.")
    minimum_version: int = Field(
        default=235,
        description="Oldest systemd-run release offering --pipe, --wait and --collect.",
    )

    @field_validator("unit", "systemctl", "systemd_run")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("value must not be empty")
        return value

    @field_validator("minimum_version")
    @classmethod
    def _positive_version(cls, value: int) -> int:
        if value < 1:
            raise ValueError("minimum_version must be positive")
        return value


class LoggingSettings(SectionSettings):
    """Diagnostic logging configuration."""

    config_path: Path | None = Field(
        default=None,
        description="Path to a YAML or JSON logging configuration file.",
    )
    format: Literal["plain", "json"] = Field(
        default="plain",
        description="Formatter used by the packaged logging configuration.",
    )
    fallback_level: str = Field(
        default="WARNING",
        description="Level applied when neither --debug nor --verbose is given.",
    )

    @field_validator("fallback_level")
    @classmethod
    def _valid_level(cls, value: str) -> str:
        if not value:
            raise ValueError("fallback_level must not be empty")
        level = value.upper()
        if not isinstance(getattr(logging, level, None), int):
            raise ValueError("fallback_level must reference a standard logging level")
        return level


__all__ = [
    "LoggingSettings",
    "NodeSettings",
    "PathsSettings",
    "SandboxSettings",
    "SectionSettings",
]
