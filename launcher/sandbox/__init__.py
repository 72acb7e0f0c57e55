"""Sandbox module for external commands run while resolving executors."""

from launcher.sandbox.commands import (
    ArchiveExtractor,
    CommandRunner,
    ExecutionResult,
    RemoteFetcher,
)

__all__ = ["ArchiveExtractor", "CommandRunner", "ExecutionResult", "RemoteFetcher"]
