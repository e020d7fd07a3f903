"""Shared fixtures for agent_browser_mcp tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from agent_browser_mcp.config import Config, RunnerConfig
from agent_browser_mcp.runner import ProcessRunner


@pytest.fixture
def cfg() -> Config:
    """A default Config with no external dependencies."""
    return Config()


@pytest.fixture
def runner(tmp_path: Path) -> ProcessRunner:
    """A runner whose "binary" is the current Python interpreter.

    Tests pass ``["-c", script]`` as argv, so the appended global flags
    (``--json`` and friends) land in the script's ``sys.argv``.
    """
    return ProcessRunner(RunnerConfig(
        bin=sys.executable,
        default_timeout_ms=10_000,
        kill_grace_ms=1_000,
        working_root=str(tmp_path),
    ))
