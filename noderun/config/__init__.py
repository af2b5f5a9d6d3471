"""Central configuration factory based on ``pydantic-settings``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomllib

from pydantic import Field
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    InitSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from noderun.configuration import (
    LoggingSettings,
    NodeSettings,
    PathsSettings,
    SandboxSettings,
)
from noderun.core.logging_setup import get_logger


logger = get_logger("config")

_CONFIG_DIR = Path(__file__).resolve().parent
PACKAGED_SETTINGS = _CONFIG_DIR / "settings.toml"
DEFAULT_CONFIG_FILE = Path("/etc/noderun/noderun.toml")


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError:
        logger.error("Configuration file not found: %s", path)
        raise
    except tomllib.TOMLDecodeError as exc:
        logger.error("Invalid TOML in %s: %s", path, exc)
        raise


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class _TomlSettingsSource(PydanticBaseSettingsSource):
    """Settings source reading the packaged defaults and the node configuration.

    The explicit ``config_file`` handed to :class:`Settings` must exist; the
    system-wide :data:`DEFAULT_CONFIG_FILE` is only read when present.
    """

    def __init__(
        self, settings_cls: type[BaseSettings], init_settings: PydanticBaseSettingsSource
    ) -> None:
        super().__init__(settings_cls)
        self._init_settings = init_settings

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def _explicit_path(self) -> Path | None:
        if isinstance(self._init_settings, InitSettingsSource):
            value = self._init_settings.init_kwargs.get("config_file")
            if value is not None:
                return Path(value)
        return None

    def __call__(self) -> dict[str, Any]:
        data = _read_toml(PACKAGED_SETTINGS)

        explicit = self._explicit_path()
        if explicit is not None:
            data = _deep_merge(data, _read_toml(explicit))
        elif DEFAULT_CONFIG_FILE.is_file():
            data = _deep_merge(data, _read_toml(DEFAULT_CONFIG_FILE))
        return data


class Settings(BaseSettings):
    """Typed, immutable configuration for one noderun invocation."""

    model_config = SettingsConfigDict(
        env_prefix="NODERUN_",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
        frozen=True,
    )

    config_file: Path | None = Field(
        default=None,
        description="Configuration file given on the command line, if any.",
    )
    paths: PathsSettings = Field(default_factory=PathsSettings)
    node: NodeSettings = Field(default_factory=NodeSettings)
    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            _TomlSettingsSource(settings_cls, init_settings),
        )


def load_settings(config_file: Path | str | None = None, **overrides: Any) -> Settings:
    """Build the settings for one invocation.

    Parameters
    ----------
    config_file:
        Optional TOML file overriding the packaged defaults.  A missing file
        raises :class:`FileNotFoundError`.
    overrides:
        Section values taking precedence over the environment and the files,
        e.g. ``paths={"service_dir": "/tmp/plugins"}``.
    """

    if config_file is not None:
        overrides["config_file"] = Path(config_file)
    return Settings(**overrides)


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "PACKAGED_SETTINGS",
    "Settings",
    "load_settings",
]
