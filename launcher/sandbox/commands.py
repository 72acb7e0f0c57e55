"""External commands used while resolving an executor.

Remote fetch and archive extraction shell out to independent tools whose
exit code is the only success signal. Each is wrapped as a typed operation
returning an ExecutionResult so tests can swap in fakes.

Commands run as argument vectors, never through a shell. The executor
reference is still checked for quote characters before we get here because
the quoted form is what operators see in the log.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Shell convention for "command not found"
COMMAND_NOT_FOUND = 127

DEFAULT_MAX_OUTPUT_BYTES = 1024 * 1024


def _truncate_output(output: str, max_bytes: int) -> str:
    """Truncate output to max_bytes, adding a truncation notice if needed."""
    encoded = output.encode("utf-8", errors="replace")
    if len(encoded) <= max_bytes:
        return output

    # Drop any UTF-8 sequence cut in half at the boundary
    truncated = encoded[:max_bytes].decode("utf-8", errors="ignore")
    return truncated + f"\n[OUTPUT TRUNCATED - exceeded {max_bytes} bytes]"


class ExecutionResult(BaseModel):
    """Result of an external command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs a command to completion in the current process' cwd.

    Output is decoded leniently: tools like tar echo file names verbatim and
    those need not be valid UTF-8. Captured output is capped at
    ``max_output_bytes`` per stream.
    """

    def __init__(self, max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES):
        self.max_output_bytes = max_output_bytes

    def run(self, command: list[str], cwd: str | Path | None = None) -> ExecutionResult:
        logger.debug(f"Running: {command}")
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                cwd=cwd,
            )
        except FileNotFoundError as e:
            return ExecutionResult(
                returncode=COMMAND_NOT_FOUND,
                stderr=f"{command[0]}: {e.strerror}",
            )
        except PermissionError as e:
            return ExecutionResult(
                returncode=126,
                stderr=f"{command[0]}: {e.strerror}",
            )

        stdout = _truncate_output(result.stdout, self.max_output_bytes)
        stderr = _truncate_output(result.stderr, self.max_output_bytes)
        if stdout:
            logger.debug(stdout.rstrip())
        if result.returncode != 0 and stderr:
            logger.warning(stderr.rstrip())
        return ExecutionResult(returncode=result.returncode, stdout=stdout, stderr=stderr)


class RemoteFetcher:
    """Copies a file out of the distributed filesystem with ``<client> fs``."""

    def __init__(self, runner: CommandRunner | None = None):
        self.runner = runner or CommandRunner()

    @staticmethod
    def describe(client: str, remote_ref: str, local_path: str) -> str:
        """Shell form of the copy command, for logs."""
        return f"{client} fs -copyToLocal '{remote_ref}' '{local_path}'"

    def copy_to_local(self, client: str, remote_ref: str, local_path: str) -> ExecutionResult:
        logger.info(f"HDFS command: {self.describe(client, remote_ref, local_path)}")
        return self.runner.run([client, "fs", "-copyToLocal", remote_ref, local_path])


class ArchiveExtractor:
    """Unpacks a gzipped tarball into the current directory."""

    def __init__(self, runner: CommandRunner | None = None, tar_command: str = "tar"):
        self.runner = runner or CommandRunner()
        self.tar_command = tar_command

    def describe(self, archive: str) -> str:
        return f"{self.tar_command} xzf '{archive}'"

    def extract(self, archive: str) -> ExecutionResult:
        logger.info(f"Untarring executor: {self.describe(archive)}")
        return self.runner.run([self.tar_command, "xzf", archive])
