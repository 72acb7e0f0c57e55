"""Launch error taxonomy.

Every error is terminal: the pipeline raises, the CLI prints a diagnostic
and exits non-zero. Nothing is retried or rolled back.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Kind of launch failure, reported in the diagnostic."""

    INVALID_REFERENCE = "InvalidReference"
    DIRECTORY_CREATE_FAILED = "DirectoryCreateFailed"
    CHDIR_FAILED = "ChdirFailed"
    IO_REDIRECT_FAILED = "IORedirectFailed"
    FETCH_FAILED = "FetchFailed"
    EXTRACT_FAILED = "ExtractFailed"
    NO_EXECUTOR_DIRECTORY = "NoExecutorDirectory"
    AMBIGUOUS_EXECUTOR_DIRECTORY = "AmbiguousExecutorDirectory"
    STAT_FAILED = "StatFailed"
    UNKNOWN_USER = "UnknownUser"
    PRIVILEGE_DROP_FAILED = "PrivilegeDropFailed"
    EXEC_FAILED = "ExecFailed"
    ENVIRONMENT_EXPORT_FAILED = "EnvironmentExportFailed"


class LaunchError(Exception):
    """Fatal error in one of the launch stages.

    Attributes:
        kind: Which failure occurred
        cause: Underlying OS error, if any
    """

    kind: ErrorKind = ErrorKind.EXEC_FAILED

    def __init__(self, message: str, cause: OSError | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.cause is not None and self.cause.strerror:
            return f"{self.message}: {self.cause.strerror}"
        return self.message

    def diagnostic(self) -> str:
        """One-line diagnostic naming the failing stage."""
        return f"[{self.kind.value}] {self}"


class InvalidReferenceError(LaunchError):
    """Executor reference contains characters unsafe for shell commands."""

    kind = ErrorKind.INVALID_REFERENCE


class DirectoryCreateError(LaunchError):
    """A working directory segment could not be created."""

    kind = ErrorKind.DIRECTORY_CREATE_FAILED


class ChdirError(LaunchError):
    """Could not change into a directory."""

    kind = ErrorKind.CHDIR_FAILED


class IORedirectError(LaunchError):
    """stdout/stderr could not be redirected into the working directory."""

    kind = ErrorKind.IO_REDIRECT_FAILED


class FetchFailedError(LaunchError):
    """Remote copy of the executor failed."""

    kind = ErrorKind.FETCH_FAILED

    def __init__(
        self, message: str, returncode: int | None = None, cause: OSError | None = None
    ) -> None:
        self.returncode = returncode
        super().__init__(message, cause)


class ExtractFailedError(LaunchError):
    """Archive extraction returned non-zero."""

    kind = ErrorKind.EXTRACT_FAILED

    def __init__(
        self, message: str, returncode: int | None = None, cause: OSError | None = None
    ) -> None:
        self.returncode = returncode
        super().__init__(message, cause)


class NoExecutorDirectoryError(LaunchError):
    """Extracted archive produced no top-level directory."""

    kind = ErrorKind.NO_EXECUTOR_DIRECTORY


class AmbiguousExecutorDirectoryError(LaunchError):
    """Extracted archive produced more than one top-level directory."""

    kind = ErrorKind.AMBIGUOUS_EXECUTOR_DIRECTORY

    def __init__(self, message: str, candidates: list[str]) -> None:
        self.candidates = candidates
        super().__init__(message)


class StatFailedError(LaunchError):
    """An entry in the extraction directory could not be inspected."""

    kind = ErrorKind.STAT_FAILED


class UnknownUserError(LaunchError):
    """Task owner account does not exist."""

    kind = ErrorKind.UNKNOWN_USER


class PrivilegeDropError(LaunchError):
    """setgid/setuid failed. ``stage`` is "group" or "user"."""

    kind = ErrorKind.PRIVILEGE_DROP_FAILED

    def __init__(self, message: str, stage: str, cause: OSError | None = None) -> None:
        self.stage = stage
        super().__init__(message, cause)

    def diagnostic(self) -> str:
        return f"[{self.kind.value}] ({self.stage}) {self}"


class ExecFailedError(LaunchError):
    """The executor could not replace the launcher process."""

    kind = ErrorKind.EXEC_FAILED


class EnvironmentExportError(LaunchError):
    """A variable could not be placed into the process environment."""

    kind = ErrorKind.ENVIRONMENT_EXPORT_FAILED
