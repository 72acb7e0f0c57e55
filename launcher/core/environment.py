"""Environment exporter.

The executor learns everything about its task from environment variables.
``build_overlay`` computes them as a pure function of the launch spec;
nothing touches os.environ until the overlay is handed to exec (or to
``export_environment`` in export-only mode).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, MutableMapping

from launcher.core.errors import EnvironmentExportError
from launcher.core.models import EnvironmentOverlay, TaskLaunchSpec

logger = logging.getLogger(__name__)

ENV_PARAM_PREFIX = "env."

# Cluster identity
SLAVE_PID_VAR = "MESOS_SLAVE_PID"
FRAMEWORK_ID_VAR = "MESOS_FRAMEWORK_ID"
LIBPROCESS_PORT_VAR = "LIBPROCESS_PORT"
MESOS_HOME_VAR = "MESOS_HOME"

# "0" tells libprocess to bind to any free port
ANY_FREE_PORT = "0"

# Export-only mode: the full launch decision
EXECUTOR_URI_VAR = "MESOS_EXECUTOR_URI"
USER_VAR = "MESOS_USER"
WORK_DIRECTORY_VAR = "MESOS_WORK_DIRECTORY"
HADOOP_HOME_VAR = "MESOS_HADOOP_HOME"
REDIRECT_IO_VAR = "MESOS_REDIRECT_IO"
SWITCH_USER_VAR = "MESOS_SWITCH_USER"


def _check_variable(name: str, value: str) -> None:
    if "=" in name or "\0" in name:
        raise EnvironmentExportError(f"Illegal environment variable name {name!r}")
    if "\0" in value:
        raise EnvironmentExportError(f"Illegal NUL byte in value of {name}")


def params_to_variables(params: Mapping[str, str]) -> dict[str, str]:
    """Pick the ``env.*`` params and strip the prefix."""
    variables: dict[str, str] = {}
    for key, value in params.items():
        if not key.startswith(ENV_PARAM_PREFIX):
            continue
        name = key[len(ENV_PARAM_PREFIX):]
        if not name:
            logger.warning(f"Ignoring param {key!r}: empty variable name")
            continue
        _check_variable(name, value)
        variables[name] = value
    return variables


def build_overlay(spec: TaskLaunchSpec) -> EnvironmentOverlay:
    """Variables the executor needs: task params plus cluster identity."""
    variables = params_to_variables(spec.params)

    variables[SLAVE_PID_VAR] = spec.slave_pid
    variables[FRAMEWORK_ID_VAR] = spec.framework_id
    variables[LIBPROCESS_PORT_VAR] = ANY_FREE_PORT

    # Lets Java and Python executors find the Mesos libraries
    if spec.mesos_home:
        variables[MESOS_HOME_VAR] = spec.mesos_home

    for name, value in variables.items():
        _check_variable(name, value)
    return EnvironmentOverlay(variables=variables)


def build_export_overlay(spec: TaskLaunchSpec) -> EnvironmentOverlay:
    """Overlay for export-only mode.

    Adds the whole launch spec on top of ``build_overlay`` so a separate
    bootstrap process can rebuild it with ``spec_from_environment``.
    """
    variables = dict(build_overlay(spec).variables)
    variables.update(
        {
            FRAMEWORK_ID_VAR: spec.framework_id,
            EXECUTOR_URI_VAR: spec.executor_ref,
            USER_VAR: spec.user,
            WORK_DIRECTORY_VAR: spec.work_directory,
            SLAVE_PID_VAR: spec.slave_pid,
            MESOS_HOME_VAR: spec.mesos_home,
            HADOOP_HOME_VAR: spec.hadoop_home,
            REDIRECT_IO_VAR: "1" if spec.redirect_io else "0",
            SWITCH_USER_VAR: "1" if spec.switch_user else "0",
        }
    )
    for name, value in variables.items():
        _check_variable(name, value)
    return EnvironmentOverlay(variables=variables)


def export_environment(
    overlay: EnvironmentOverlay, environ: MutableMapping[str, str] | None = None
) -> None:
    """Write the overlay into ``environ`` (os.environ by default), overwriting."""
    target = os.environ if environ is None else environ
    for name, value in overlay.variables.items():
        try:
            target[name] = value
        except (ValueError, OSError) as e:
            raise EnvironmentExportError(f"Failed to set {name}: {e}") from e


def spec_from_environment(environ: Mapping[str, str] | None = None) -> TaskLaunchSpec:
    """Rebuild a launch spec from the variables written by export-only mode.

    ``env.*`` params are not recovered; they are already in the environment.
    """
    source = os.environ if environ is None else environ
    required = (FRAMEWORK_ID_VAR, EXECUTOR_URI_VAR, WORK_DIRECTORY_VAR, SLAVE_PID_VAR)
    missing = [name for name in required if name not in source]
    if missing:
        raise ValueError(f"Missing launcher environment variables: {', '.join(missing)}")

    return TaskLaunchSpec(
        framework_id=source[FRAMEWORK_ID_VAR],
        executor_ref=source[EXECUTOR_URI_VAR],
        user=source.get(USER_VAR, ""),
        work_directory=source[WORK_DIRECTORY_VAR],
        slave_pid=source[SLAVE_PID_VAR],
        mesos_home=source.get(MESOS_HOME_VAR, ""),
        hadoop_home=source.get(HADOOP_HOME_VAR, ""),
        redirect_io=source.get(REDIRECT_IO_VAR, "0") == "1",
        switch_user=source.get(SWITCH_USER_VAR, "0") == "1",
    )
