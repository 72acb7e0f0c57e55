"""Core modules for the executor launcher."""

from launcher.core.config import LauncherConfig
from launcher.core.engine import LaunchPipeline
from launcher.core.errors import ErrorKind, LaunchError
from launcher.core.models import (
    EnvironmentOverlay,
    PreparedSandbox,
    PrivilegeState,
    ResolvedExecutor,
    TaskLaunchSpec,
)

__all__ = [
    "EnvironmentOverlay",
    "ErrorKind",
    "LaunchError",
    "LaunchPipeline",
    "LauncherConfig",
    "PreparedSandbox",
    "PrivilegeState",
    "ResolvedExecutor",
    "TaskLaunchSpec",
]
