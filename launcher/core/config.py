"""Launcher configuration loading and validation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class LauncherConfigError(Exception):
    """Invalid launcher configuration."""

    pass


@dataclass
class LauncherConfig:
    """Tunables for executor resolution and sandbox setup."""

    # Remote fetch
    remote_scheme: str = "hdfs://"
    hadoop_command: str = "hadoop"  # Looked up on PATH when no home is known
    hadoop_home_env: str = "HADOOP_HOME"

    # Archive extraction
    archive_suffix: str = ".tgz"
    tar_command: str = "tar"
    executor_name: str = "executor"  # Entry point inside the extracted directory

    # Permissions
    work_directory_mode: int = 0o755
    executor_mode: int = 0o755

    # Per-stream cap on captured hadoop/tar output
    max_output_bytes: int = 1024 * 1024

    # Hand the working directory to the task user before dropping privileges.
    # Off by default: the directory stays owned by the launcher's identity.
    chown_work_directory: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "<dict>") -> LauncherConfig:
        """Build a config from a mapping, rejecting unknown keys and bad types."""
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise LauncherConfigError(f"Unknown config keys in {source}: {', '.join(unknown)}")

        defaults = cls()
        values: dict[str, Any] = {}
        for key, value in data.items():
            expected = type(getattr(defaults, key))
            # bool is a subclass of int; don't accept True as a mode
            if expected is int and isinstance(value, bool):
                raise LauncherConfigError(f"'{key}' in {source} must be an integer")
            if not isinstance(value, expected):
                raise LauncherConfigError(
                    f"'{key}' in {source} must be {expected.__name__}, "
                    f"got {type(value).__name__}"
                )
            values[key] = value

        config = cls(**values)
        config.validate(source)
        return config

    def validate(self, source: str = "<config>") -> None:
        if not self.remote_scheme.endswith("://"):
            raise LauncherConfigError(f"remote_scheme in {source} must end with '://'")
        if not self.archive_suffix.startswith("."):
            raise LauncherConfigError(f"archive_suffix in {source} must start with '.'")
        if not self.executor_name or "/" in self.executor_name:
            raise LauncherConfigError(f"executor_name in {source} must be a bare file name")
        if self.max_output_bytes <= 0:
            raise LauncherConfigError(f"max_output_bytes in {source} must be positive")
        for key in ("work_directory_mode", "executor_mode"):
            mode = getattr(self, key)
            if not 0 <= mode <= 0o7777:
                raise LauncherConfigError(f"{key} in {source} is not a valid file mode")


class ConfigLoader:
    """Load launcher configuration from YAML with defined precedence.

    The first existing file wins:
    1. $LAUNCHER_CONFIG
    2. ~/.launcher/config.yaml
    3. /etc/launcher/config.yaml
    Without any file, built-in defaults are used.
    """

    ENV_VAR = "LAUNCHER_CONFIG"

    STATIC_SEARCH_PATHS = [
        Path.home() / ".launcher/config.yaml",
        Path("/etc/launcher/config.yaml"),
    ]

    def __init__(self, search_paths: list[Path] | None = None) -> None:
        if search_paths is None:
            search_paths = self.STATIC_SEARCH_PATHS.copy()
            override = os.environ.get(self.ENV_VAR)
            if override:
                search_paths.insert(0, Path(override))
        self._search_paths = search_paths

    def find(self) -> Path | None:
        for path in self._search_paths:
            if path.is_file():
                return path
        return None

    def load(self) -> LauncherConfig:
        path = self.find()
        if path is None:
            logger.debug("No launcher config file found, using defaults")
            return LauncherConfig()
        return self.load_file(path)

    @staticmethod
    def load_file(path: Path) -> LauncherConfig:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise LauncherConfigError(f"Invalid YAML in {path}: {e}") from e
        except OSError as e:
            raise LauncherConfigError(f"Cannot read {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise LauncherConfigError(f"{path} must contain a mapping at top level")

        # Allow the settings to live under a "launcher:" section
        if set(data) == {"launcher"} and isinstance(data["launcher"], dict):
            data = data["launcher"]

        logger.debug(f"Loaded launcher config from {path}")
        return LauncherConfig.from_dict(data, source=str(path))
