"""Executor resolution: turn an executor reference into a local executable.

Three sources are supported:
- a plain local path, used as-is
- a remote-filesystem URI (hdfs://...), copied into the working directory
- a .tgz bundle (local or fetched), unpacked in place; the bundle must hold
  exactly one top-level directory containing an ``executor`` entry point

All paths are relative to the current directory, which the sandbox stage
has already set to the working directory.
"""

from __future__ import annotations

import logging
import os
import posixpath
import stat
from collections.abc import Mapping

from launcher.core.config import LauncherConfig
from launcher.core.errors import (
    AmbiguousExecutorDirectoryError,
    ChdirError,
    ExtractFailedError,
    FetchFailedError,
    InvalidReferenceError,
    NoExecutorDirectoryError,
    StatFailedError,
)
from launcher.core.models import ResolvedExecutor
from launcher.sandbox.commands import ArchiveExtractor, CommandRunner, RemoteFetcher

logger = logging.getLogger(__name__)

# Characters that would break out of the single-quoted copy command
FORBIDDEN_CHARACTERS = ("\\", "'", "\0")


def validate_reference(executor_ref: str) -> None:
    """Reject references that are unsafe to embed in a quoted command."""
    for char in FORBIDDEN_CHARACTERS:
        if char in executor_ref:
            raise InvalidReferenceError(
                f"Illegal characters in executor path: {executor_ref!r}"
            )


def find_executor_directory(directory: str = ".") -> str:
    """Return the single directory inside ``directory``.

    Files are ignored. Symlinks count as what they point to.
    """
    try:
        entries = sorted(os.listdir(directory))
    except OSError as e:
        raise StatFailedError(f"Failed to list {directory}", e) from e

    candidates = []
    for name in entries:
        path = os.path.join(directory, name)
        try:
            info = os.stat(path)
        except OSError as e:
            raise StatFailedError(f"Stat failed on {name}", e) from e
        if stat.S_ISDIR(info.st_mode):
            candidates.append(name)

    if not candidates:
        raise NoExecutorDirectoryError("Executor archive must contain a single directory")
    if len(candidates) > 1:
        raise AmbiguousExecutorDirectoryError(
            f"Executor archive must contain a single directory, found: {', '.join(candidates)}",
            candidates=candidates,
        )
    return candidates[0]


class ExecutorResolver:
    """Materializes the executor in the current directory."""

    def __init__(
        self,
        config: LauncherConfig | None = None,
        fetcher: RemoteFetcher | None = None,
        extractor: ArchiveExtractor | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.config = config or LauncherConfig()
        runner = CommandRunner(self.config.max_output_bytes)
        self.fetcher = fetcher or RemoteFetcher(runner)
        self.extractor = extractor or ArchiveExtractor(runner, tar_command=self.config.tar_command)
        self.environ = os.environ if environ is None else environ

    def is_remote(self, executor_ref: str) -> bool:
        return executor_ref.startswith(self.config.remote_scheme)

    def is_archive(self, path: str) -> bool:
        return path.endswith(self.config.archive_suffix)

    def locate_remote_client(self, hadoop_home: str = "") -> str:
        """Find the hadoop script.

        Priority: the home the slave gave us, then $HADOOP_HOME, then
        whatever ``hadoop`` resolves to on PATH.
        """
        if hadoop_home:
            return posixpath.join(hadoop_home, "bin", self.config.hadoop_command)
        env_home = self.environ.get(self.config.hadoop_home_env)
        if env_home:
            return posixpath.join(env_home, "bin", self.config.hadoop_command)
        return self.config.hadoop_command

    def resolve(self, executor_ref: str, hadoop_home: str = "") -> ResolvedExecutor:
        validate_reference(executor_ref)

        path = executor_ref
        fetched = False
        if self.is_remote(executor_ref):
            path = self.fetch(executor_ref, hadoop_home)
            fetched = True

        if self.is_archive(path):
            directory = self.extract(path)
            return ResolvedExecutor(
                path=f"./{self.config.executor_name}",
                fetched=fetched,
                extracted=True,
                directory=directory,
            )

        return ResolvedExecutor(path=path, fetched=fetched)

    def fetch(self, executor_ref: str, hadoop_home: str = "") -> str:
        """Copy a remote executor into the current directory and make it executable."""
        client = self.locate_remote_client(hadoop_home)
        # Trailing slashes are dropped, as basename(3) does
        local_path = "./" + posixpath.basename(executor_ref.rstrip("/"))

        logger.info(f"Downloading executor from {executor_ref}")
        result = self.fetcher.copy_to_local(client, executor_ref, local_path)
        if not result.ok:
            raise FetchFailedError(
                f"HDFS copyToLocal failed: return code {result.returncode}",
                returncode=result.returncode,
            )

        try:
            os.chmod(local_path, self.config.executor_mode)
        except OSError as e:
            raise FetchFailedError(f"chmod of {local_path} failed", cause=e) from e
        return local_path

    def extract(self, archive: str) -> str:
        """Unpack ``archive`` and chdir into the directory it contained."""
        result = self.extractor.extract(archive)
        if not result.ok:
            raise ExtractFailedError(
                f"Untar failed: return code {result.returncode}",
                returncode=result.returncode,
            )

        directory = find_executor_directory(".")
        try:
            os.chdir(directory)
        except OSError as e:
            raise ChdirError(f"chdir into {directory} failed", e) from e
        logger.info(f"Entered executor directory {directory}")
        return directory
