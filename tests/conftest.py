"""Shared test fixtures for browsekit.

Provides a controllable clock, an isolated config environment, and reset
hooks for the global output and logging state.  These fixtures are
discovered by pytest and available to all test modules without imports.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler

from browsekit.output import reset_output


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and drop CLI log handlers after every test.

    Both hold references to the streams that were current when a CLI
    command ran; CliRunner closes those streams when the invocation ends.
    """
    yield
    reset_output()
    logger = logging.getLogger("browsekit")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at a fixed POSIX timestamp."""
    return FakeClock()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and data to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    forces the XDG code path, and clears all BROWSEKIT_* overrides so
    tests never touch real user state.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("browsekit.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["BROWSEKIT_PAGE_SIZE", "BROWSEKIT_CACHE_TTL", "BROWSEKIT_DATA_DIR"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
