"""Sandbox preparation: the executor's working directory.

The directory is created one segment at a time so that an existing prefix
is tolerated while any other failure (permission denied, a file in the
way of a later segment) is fatal.
"""

from __future__ import annotations

import logging
import os
import sys

from launcher.core.errors import ChdirError, DirectoryCreateError, IORedirectError
from launcher.core.models import Account

logger = logging.getLogger(__name__)

STDOUT_FILENO = 1
STDERR_FILENO = 2


def create_work_directory(work_directory: str, mode: int = 0o755) -> str:
    """Create every segment of ``work_directory``.

    Returns the path that was created, normalised to single separators.
    Calling this on a fully existing tree changes nothing.
    """
    # Keep the leading slash of absolute paths
    current = "/" if work_directory.startswith("/") else ""
    for segment in work_directory.split("/"):
        if not segment:
            continue
        current += segment
        try:
            os.mkdir(current, mode)
        except FileExistsError:
            pass
        except OSError as e:
            raise DirectoryCreateError(f"Failed to mkdir {current}", e) from e
        current += "/"

    return current.rstrip("/") or current


def chown_work_directory(path: str, account: Account) -> None:
    """Give the working directory to the task user."""
    try:
        os.chown(path, account.uid, account.gid)
    except OSError as e:
        raise DirectoryCreateError(f"Failed to chown {path} to {account.name}", e) from e
    logger.info(f"Working directory {path} now owned by {account.name}")


def enter_directory(path: str) -> None:
    try:
        os.chdir(path)
    except OSError as e:
        raise ChdirError(f"chdir into {path} failed", e) from e


def redirect_output(directory: str = ".") -> None:
    """Point file descriptors 1 and 2 at ``stdout``/``stderr`` in ``directory``.

    Works on the descriptors rather than sys.stdout so the exec'd executor
    inherits the redirection.
    """
    for name, target_fd, stream in (
        ("stdout", STDOUT_FILENO, sys.__stdout__),
        ("stderr", STDERR_FILENO, sys.__stderr__),
    ):
        path = os.path.join(directory, name)
        if stream is not None:
            stream.flush()
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        except OSError as e:
            raise IORedirectError(f"Failed to open {path}", e) from e
        try:
            os.dup2(fd, target_fd)
        except OSError as e:
            raise IORedirectError(f"Failed to redirect {name}", e) from e
        finally:
            os.close(fd)
