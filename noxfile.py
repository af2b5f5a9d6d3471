"""Automated quality sessions for noderun."""

from __future__ import annotations

import os

import nox

# Comma or space separated, e.g. NODERUN_NOX_PYTHON="3.11 3.12".
PYTHON_VERSIONS = os.environ.get("NODERUN_NOX_PYTHON", "3.12").replace(",", " ").split()
SOURCE_DIRECTORIES = ("noderun", "tests", "noxfile.py")

nox.options.sessions = ("lint", "typecheck", "tests")
nox.options.reuse_existing_virtualenvs = True


def install_project(session: nox.Session, *extra: str) -> None:
    """Install the project with its test and development extras."""
    session.install("--upgrade", "pip")
    session.install("-e", ".[test,dev]")
    if extra:
        session.install(*extra)


@nox.session(python=PYTHON_VERSIONS)
def lint(session: nox.Session) -> None:
    """Run formatting and static analysis checks."""
    install_project(session)
    session.run("ruff", "check", *SOURCE_DIRECTORIES)
    session.run("black", "--check", *SOURCE_DIRECTORIES)


@nox.session(python=PYTHON_VERSIONS)
def typecheck(session: nox.Session) -> None:
    """Run type checking with mypy."""
    install_project(session)
    session.run("mypy", "noderun", "tests")


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the unit test suite."""
    install_project(session)
    session.run("pytest", "--cov=noderun", "--cov-report=xml", *session.posargs)


@nox.session(python=PYTHON_VERSIONS)
def build(session: nox.Session) -> None:
    """Build the project wheel and source distribution."""
    install_project(session, "build")
    session.run("python", "-m", "build")
