# conftest.py - Shared pytest fixtures for all tests
"""Shared pytest fixtures for the executor launcher test suite.

This module provides:
- An isolated working area (the pipeline chdirs, so cwd is restored after)
- Launch spec factories
- Fake fetch/extract tools and a fake exec that records instead of exec'ing

Usage:
    Import fixtures implicitly via pytest's fixture discovery.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import Mock

import pytest

from launcher.core.models import TaskLaunchSpec
from launcher.sandbox.commands import ExecutionResult

# =============================================================================
# File System Fixtures
# =============================================================================


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary directory that is also the current directory.

    monkeypatch restores the original cwd at teardown even when the code
    under test chdirs elsewhere.
    """
    monkeypatch.chdir(tmp_path)
    return tmp_path


# =============================================================================
# Launch Spec Fixtures
# =============================================================================


@pytest.fixture
def make_spec(workspace: Path) -> Callable[..., TaskLaunchSpec]:
    """Factory for TaskLaunchSpec with sensible defaults.

    Example:
        def test_something(make_spec):
            spec = make_spec(executor_ref="/bin/true", switch_user=True)
    """

    def factory(**overrides: Any) -> TaskLaunchSpec:
        fields: dict[str, Any] = {
            "framework_id": "fw-0001",
            "slave_pid": "slave@10.0.0.1:5051",
            "executor_ref": "/bin/true",
            "user": "alice",
            "work_directory": str(workspace / "work" / "fw-0001"),
            "params": {},
        }
        fields.update(overrides)
        return TaskLaunchSpec(**fields)

    return factory


# =============================================================================
# Fakes for External Commands and exec
# =============================================================================


class FakeFetcher:
    """Stands in for RemoteFetcher; writes a placeholder file on success."""

    def __init__(self, returncode: int = 0, content: bytes = b"#!/bin/sh\n"):
        self.returncode = returncode
        self.content = content
        self.calls: list[tuple[str, str, str]] = []

    def copy_to_local(self, client: str, remote_ref: str, local_path: str) -> ExecutionResult:
        self.calls.append((client, remote_ref, local_path))
        if self.returncode == 0:
            Path(local_path).write_bytes(self.content)
        return ExecutionResult(returncode=self.returncode)


class FakeExtractor:
    """Stands in for ArchiveExtractor; creates the given top-level directories."""

    def __init__(self, directories: list[str] | None = None, returncode: int = 0):
        self.directories = ["pkg"] if directories is None else directories
        self.returncode = returncode
        self.calls: list[str] = []

    def extract(self, archive: str) -> ExecutionResult:
        self.calls.append(archive)
        if self.returncode == 0:
            for name in self.directories:
                os.makedirs(name)
                script = Path(name) / "executor"
                script.write_text("#!/bin/sh\nexit 0\n")
                script.chmod(0o755)
        return ExecutionResult(returncode=self.returncode)


class ExecRecorder:
    """Fake for os.execve: records the call and raises Replaced.

    Real exec never returns, so the fake must not return either.
    """

    class Replaced(Exception):
        pass

    def __init__(self) -> None:
        self.path: str | None = None
        self.argv: list[str] = []
        self.env: dict[str, str] = {}
        self.cwd: str | None = None
        self.called = False

    def __call__(self, path: str, argv: list[str], env: dict[str, str]) -> None:
        self.called = True
        self.path = path
        self.argv = list(argv)
        self.env = dict(env)
        self.cwd = os.getcwd()
        raise self.Replaced(path)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def exec_recorder() -> ExecRecorder:
    return ExecRecorder()


@pytest.fixture
def mock_subprocess(mocker) -> Mock:
    """Create a mock for subprocess.run operations.

    Returns:
        Mock subprocess.run function.

    Example:
        def test_fetch(mock_subprocess):
            mock_subprocess.return_value.returncode = 0
            # Test command wrappers without running hadoop or tar
    """
    mock_run = mocker.patch("subprocess.run")
    mock_run.return_value.returncode = 0
    mock_run.return_value.stdout = ""
    mock_run.return_value.stderr = ""
    return mock_run


@pytest.fixture
def privilege_calls(mocker) -> list[tuple]:
    """Record initgroups/setgid/setuid calls, in order, without changing identity.

    Pretends to run as root so initgroups is exercised.
    """
    calls: list[tuple] = []
    mocker.patch("launcher.core.privileges.os.geteuid", return_value=0)
    mocker.patch(
        "launcher.core.privileges.os.initgroups",
        side_effect=lambda name, gid: calls.append(("initgroups", name, gid)),
    )
    mocker.patch(
        "launcher.core.privileges.os.setgid",
        side_effect=lambda gid: calls.append(("setgid", gid)),
    )
    mocker.patch(
        "launcher.core.privileges.os.setuid",
        side_effect=lambda uid: calls.append(("setuid", uid)),
    )
    return calls


@pytest.fixture
def alice(mocker) -> SimpleNamespace:
    """Make pwd.getpwnam know a single account, 'alice'."""
    entry = SimpleNamespace(pw_name="alice", pw_uid=1001, pw_gid=1002, pw_dir="/home/alice")

    def getpwnam(name: str) -> SimpleNamespace:
        if name == "alice":
            return entry
        raise KeyError(f"getpwnam(): name not found: '{name}'")

    mocker.patch("launcher.core.privileges.pwd.getpwnam", side_effect=getpwnam)
    return entry


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "posix: marks tests needing tar and symlinks")
