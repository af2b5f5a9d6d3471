"""Shared pytest fixtures for the noderun test suite."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

import pytest
import pytest_socket

from noderun.config import Settings, load_settings

pytest_socket.disable_socket()


@pytest.fixture(autouse=True)
def configure_logging() -> None:
    """Reset logging configuration so caplog captures expected records."""

    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    logger_states: dict[logging.Logger, tuple[bool, int, bool]] = {}
    for existing in logging.root.manager.loggerDict.values():
        if isinstance(existing, logging.Logger):
            logger_states[existing] = (existing.disabled, existing.level, existing.propagate)
    for handler in original_handlers:
        root.removeHandler(handler)
    logging.basicConfig(level=logging.INFO)
    for existing in logger_states:
        existing.disabled = False
        existing.setLevel(logging.NOTSET)
        existing.propagate = True
    try:
        yield
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in original_handlers:
            root.addHandler(handler)
        root.setLevel(original_level)
        for logger_obj, (disabled, level, propagate) in logger_states.items():
            logger_obj.disabled = disabled
            logger_obj.setLevel(level)
            logger_obj.propagate = propagate


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep host configuration and NODERUN_* variables out of the tests."""

    import noderun.config as cfg_module

    for name in list(os.environ):
        if name.startswith("NODERUN_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(cfg_module, "DEFAULT_CONFIG_FILE", tmp_path / "absent.toml")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every directory into ``tmp_path``."""

    runtime_dir = tmp_path / "run-systemd"
    runtime_dir.mkdir()
    return load_settings(
        paths={
            "service_dir": tmp_path / "plugins",
            "conf_dir": tmp_path / "plugin-conf.d",
            "state_dir": tmp_path / "state",
            "lib_dir": tmp_path / "lib",
        },
        sandbox={"runtime_dir": runtime_dir},
    )


@dataclass
class FakeCompleted:
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


@dataclass
class SubprocessRecorder:
    """Stand-in for :func:`subprocess.run` returning queued results."""

    results: list[FakeCompleted | BaseException] = field(default_factory=list)
    calls: list[list[str]] = field(default_factory=list)
    kwargs: list[dict] = field(default_factory=list)

    def queue(self, returncode: int = 0, stdout: str = "") -> None:
        self.results.append(FakeCompleted(returncode=returncode, stdout=stdout))

    def queue_error(self, exc: BaseException) -> None:
        self.results.append(exc)

    def __call__(self, cmd, *args, **kwargs):
        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)
        result = self.results.pop(0) if self.results else FakeCompleted()
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def fake_run(monkeypatch: pytest.MonkeyPatch) -> SubprocessRecorder:
    """Replace :func:`subprocess.run` for the duration of a test."""

    recorder = SubprocessRecorder()
    monkeypatch.setattr(subprocess, "run", recorder)
    return recorder
