"""Tests for sandbox preparation - working directory creation, chdir, IO redirect."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from launcher.core.errors import (
    ChdirError,
    DirectoryCreateError,
    ErrorKind,
    IORedirectError,
)
from launcher.core.models import Account
from launcher.core.workdir import (
    STDERR_FILENO,
    STDOUT_FILENO,
    chown_work_directory,
    create_work_directory,
    enter_directory,
    redirect_output,
)

# =============================================================================
# Directory Creation Tests
# =============================================================================


class TestCreateWorkDirectory:
    """Tests for create_work_directory."""

    def test_creates_nested_relative_path(self, workspace):
        """Every segment of a relative path is created."""
        result = create_work_directory("slaves/s1/frameworks/fw-1")

        assert result == "slaves/s1/frameworks/fw-1"
        assert (workspace / "slaves/s1/frameworks/fw-1").is_dir()

    def test_preserves_absolute_leading_separator(self, tmp_path):
        """Absolute paths are created at the root, not relative to cwd."""
        target = tmp_path / "a" / "b" / "c"

        result = create_work_directory(str(target))

        assert result == str(target)
        assert target.is_dir()

    def test_existing_tree_is_left_unchanged(self, workspace):
        """Preparing a fully existing directory succeeds without modification."""
        target = workspace / "work" / "fw-1"
        target.mkdir(parents=True)
        (target / "keep.txt").write_text("data")
        before = os.stat(target).st_mtime_ns

        create_work_directory(str(target))

        assert os.stat(target).st_mtime_ns == before
        assert (target / "keep.txt").read_text() == "data"

    def test_collapses_repeated_separators(self, workspace):
        """Empty segments from '//' and trailing '/' are skipped."""
        result = create_work_directory("a//b/")

        assert result == "a/b"
        assert (workspace / "a" / "b").is_dir()

    def test_applies_mode(self, workspace):
        """New directories get the requested mode (subject to umask)."""
        old_umask = os.umask(0)
        try:
            create_work_directory("moded", mode=0o750)
        finally:
            os.umask(old_umask)

        assert (os.stat(workspace / "moded").st_mode & 0o777) == 0o750

    def test_file_in_the_way_is_fatal(self, workspace):
        """A regular file where a directory segment must go fails the stage."""
        (workspace / "blocker").write_text("")

        with pytest.raises(DirectoryCreateError) as exc_info:
            create_work_directory("blocker/inner")

        assert exc_info.value.kind == ErrorKind.DIRECTORY_CREATE_FAILED
        assert "blocker/inner" in str(exc_info.value)

    def test_permission_denied_is_fatal(self, workspace, mocker):
        """Errors other than 'already exists' are reported with the OS error."""
        mocker.patch(
            "launcher.core.workdir.os.mkdir",
            side_effect=PermissionError(13, "Permission denied"),
        )

        with pytest.raises(DirectoryCreateError) as exc_info:
            create_work_directory("denied")

        assert "Permission denied" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, PermissionError)


# =============================================================================
# chdir / chown Tests
# =============================================================================


class TestEnterDirectory:
    def test_changes_cwd(self, workspace):
        (workspace / "here").mkdir()

        enter_directory("here")

        assert Path.cwd() == (workspace / "here").resolve()

    def test_missing_directory_is_fatal(self, workspace):
        with pytest.raises(ChdirError):
            enter_directory("nowhere")


class TestChownWorkDirectory:
    def test_chowns_to_account(self, workspace, mocker):
        """The final directory is handed to the task user's uid/gid."""
        chown = mocker.patch("launcher.core.workdir.os.chown")
        account = Account(name="alice", uid=1001, gid=1002)

        chown_work_directory("work", account)

        chown.assert_called_once_with("work", 1001, 1002)

    def test_chown_failure_is_fatal(self, workspace, mocker):
        mocker.patch(
            "launcher.core.workdir.os.chown",
            side_effect=PermissionError(1, "Operation not permitted"),
        )

        with pytest.raises(DirectoryCreateError, match="chown"):
            chown_work_directory("work", Account(name="alice", uid=1001, gid=1002))


# =============================================================================
# IO Redirection Tests
# =============================================================================


class TestRedirectOutput:
    """Tests for redirect_output.

    os.dup2 is mocked so the test runner's own descriptors stay intact.
    """

    def test_creates_files_and_dups_onto_stdio(self, workspace, mocker):
        dup2 = mocker.patch("launcher.core.workdir.os.dup2")
        (workspace / "stdout").write_text("old contents")

        redirect_output(".")

        assert (workspace / "stdout").read_text() == ""
        assert (workspace / "stderr").exists()
        targets = [call.args[1] for call in dup2.call_args_list]
        assert targets == [STDOUT_FILENO, STDERR_FILENO]

    def test_open_failure_is_fatal(self, workspace, mocker):
        mocker.patch("launcher.core.workdir.os.dup2")

        with pytest.raises(IORedirectError) as exc_info:
            redirect_output(str(workspace / "missing-dir"))

        assert exc_info.value.kind == ErrorKind.IO_REDIRECT_FAILED

    def test_dup_failure_is_fatal(self, workspace, mocker):
        mocker.patch(
            "launcher.core.workdir.os.dup2",
            side_effect=OSError(9, "Bad file descriptor"),
        )

        with pytest.raises(IORedirectError, match="stdout"):
            redirect_output(".")
