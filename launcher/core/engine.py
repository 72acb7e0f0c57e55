"""Launch pipeline.

Runs the five stages strictly in order, each consuming the previous
stage's output:

    prepare_sandbox   -> PreparedSandbox
    resolve_executor  -> ResolvedExecutor
    export_environment-> EnvironmentOverlay
    switch_user       -> PrivilegeState
    replace_process   -> never returns

Fetch and extraction therefore run with the launcher's own identity, and
only the exec'd executor runs as the task owner. Any stage failure raises a
LaunchError; nothing is retried.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from typing import NoReturn

from launcher.core import environment, privileges, workdir
from launcher.core.config import LauncherConfig
from launcher.core.errors import ExecFailedError
from launcher.core.models import (
    Account,
    EnvironmentOverlay,
    PreparedSandbox,
    PrivilegeState,
    ResolvedExecutor,
    TaskLaunchSpec,
)
from launcher.core.resolver import ExecutorResolver

logger = logging.getLogger(__name__)

ExecFunction = Callable[[str, list[str], Mapping[str, str]], object]


class LaunchPipeline:
    """Bootstraps one executor and replaces the current process with it."""

    def __init__(
        self,
        spec: TaskLaunchSpec,
        config: LauncherConfig | None = None,
        resolver: ExecutorResolver | None = None,
        environ: Mapping[str, str] | None = None,
        exec_fn: ExecFunction | None = None,
    ):
        self.spec = spec
        self.config = config or LauncherConfig()
        self.environ = os.environ if environ is None else environ
        self.resolver = resolver or ExecutorResolver(self.config, environ=self.environ)
        self.exec_fn = exec_fn or os.execve
        self._account: Account | None = None

    def _task_account(self) -> Account:
        if self._account is None:
            self._account = privileges.lookup_account(self.spec.user)
        return self._account

    # --- Stage 1 ---

    def prepare_sandbox(self) -> PreparedSandbox:
        path = workdir.create_work_directory(
            self.spec.work_directory, self.config.work_directory_mode
        )

        owner = None
        if self.config.chown_work_directory and self.spec.switch_user:
            owner = self._task_account()
            workdir.chown_work_directory(path, owner)

        workdir.enter_directory(self.spec.work_directory)
        logger.info(f"Working directory: {self.spec.work_directory}")

        if self.spec.redirect_io:
            workdir.redirect_output(".")

        return PreparedSandbox(path=path, redirected_io=self.spec.redirect_io, owner=owner)

    # --- Stage 2 ---

    def resolve_executor(self, sandbox: PreparedSandbox) -> ResolvedExecutor:
        executor = self.resolver.resolve(self.spec.executor_ref, self.spec.hadoop_home)
        logger.info(f"Resolved executor {self.spec.executor_ref} to {executor.path}")
        return executor

    # --- Stage 3 ---

    def export_environment(self, executor: ResolvedExecutor) -> EnvironmentOverlay:
        overlay = environment.build_overlay(self.spec)
        logger.debug(f"Environment overlay: {sorted(overlay.variables)}")
        return overlay

    # --- Stage 4 ---

    def switch_user(self, overlay: EnvironmentOverlay) -> PrivilegeState:
        if not self.spec.switch_user:
            return PrivilegeState()
        return privileges.drop_privileges(self._task_account())

    # --- Stage 5 ---

    def replace_process(
        self,
        executor: ResolvedExecutor,
        overlay: EnvironmentOverlay,
        privilege_state: PrivilegeState,
    ) -> NoReturn:
        """exec the executor with only its own path as argv."""
        env = overlay.apply(self.environ)
        logger.info(f"Executing {executor.path}")
        try:
            self.exec_fn(executor.path, [executor.path], env)
        except OSError as e:
            raise ExecFailedError(f"Could not execute {executor.path}", e) from e
        raise ExecFailedError(f"exec of {executor.path} returned")

    def run(self) -> NoReturn:
        sandbox = self.prepare_sandbox()
        executor = self.resolve_executor(sandbox)
        overlay = self.export_environment(executor)
        privilege_state = self.switch_user(overlay)
        self.replace_process(executor, overlay, privilege_state)

    def export_only(self, target: dict[str, str] | None = None) -> EnvironmentOverlay:
        """Export the environment plus the full launch spec, and stop.

        Used when a separate bootstrap process runs before the executor; it
        rebuilds the spec with ``environment.spec_from_environment``.
        """
        overlay = environment.build_export_overlay(self.spec)
        environment.export_environment(overlay, target)
        return overlay
