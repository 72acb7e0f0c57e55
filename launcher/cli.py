"""CLI entry point for the executor launcher.

Commands:
- executor-launcher launch: Prepare the sandbox and exec the executor
- executor-launcher export: Export the launch environment only
- executor-launcher version: Show version information
"""

from __future__ import annotations

import logging
import os
import shlex
import sys
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn

import click
import pydantic
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from launcher.core.config import ConfigLoader, LauncherConfig, LauncherConfigError
from launcher.core.engine import LaunchPipeline
from launcher.core.environment import spec_from_environment
from launcher.core.errors import LaunchError
from launcher.core.models import TaskLaunchSpec

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool) -> None:
    handler = RichHandler(console=err_console, show_path=False, markup=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(1)


def _parse_params(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> dict:
    params: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}")
        params[key] = value
    return params


def spec_options(func: Callable) -> Callable:
    """Options describing a TaskLaunchSpec, shared by launch and export."""
    options = [
        click.option("--framework-id", help="Framework ID passed to the executor"),
        click.option("--slave-pid", help="PID (address) of the launching slave"),
        click.option("--executor", "executor_ref", help="Executor path or hdfs:// URI"),
        click.option("--user", default="", help="Account to run the executor as"),
        click.option("--work-dir", "work_directory", help="Working directory to create"),
        click.option("--mesos-home", default="", help="MESOS_HOME for the executor"),
        click.option("--hadoop-home", default="", help="Hadoop install used for hdfs:// fetches"),
        click.option(
            "--redirect-io/--no-redirect-io",
            default=False,
            help="Send stdout/stderr to files in the working directory",
        ),
        click.option(
            "--switch-user/--no-switch-user",
            default=False,
            help="Drop privileges to --user before exec",
        ),
        click.option(
            "--param",
            "-p",
            "params",
            multiple=True,
            callback=_parse_params,
            help="Task parameter KEY=VALUE; env.NAME=VALUE becomes an environment variable",
        ),
        click.option(
            "--from-env",
            is_flag=True,
            help="Read the launch spec from MESOS_* environment variables",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_spec(from_env: bool, **fields: object) -> TaskLaunchSpec:
    if from_env:
        try:
            return spec_from_environment()
        except (ValueError, pydantic.ValidationError) as e:
            fail(str(e))

    missing = [
        flag
        for flag, key in (
            ("--framework-id", "framework_id"),
            ("--slave-pid", "slave_pid"),
            ("--executor", "executor_ref"),
            ("--work-dir", "work_directory"),
        )
        if fields.get(key) is None
    ]
    if missing:
        fail(f"Missing required options: {', '.join(missing)}")

    try:
        return TaskLaunchSpec(**fields)
    except pydantic.ValidationError as e:
        fail(str(e))


def load_config(config_path: str | None) -> LauncherConfig:
    try:
        if config_path:
            return ConfigLoader.load_file(Path(config_path))
        return ConfigLoader().load()
    except LauncherConfigError as e:
        fail(str(e))


@click.group()
@click.version_option(version="0.1.0")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Executor Launcher - bootstrap one task executor.

    Creates the working directory, fetches and unpacks the executor,
    exports the cluster environment, drops privileges and exec's it.
    """
    setup_logging(verbose)
    ctx.obj = {"config_path": config_path}


@main.command()
@spec_options
@click.pass_context
def launch(ctx: click.Context, from_env: bool, **fields: object) -> None:
    """Launch an executor, replacing this process.

    Example:
        executor-launcher launch --framework-id fw-1 --slave-pid slave@10.0.0.1:5051 \\
            --executor hdfs://nn/frameworks/pkg.tgz --work-dir /var/run/work/fw-1
    """
    config = load_config(ctx.obj["config_path"])
    spec = build_spec(from_env, **fields)

    try:
        LaunchPipeline(spec, config).run()
    except LaunchError as e:
        err_console.print(f"[red]Error[/red] {escape(e.diagnostic())}")
        sys.exit(1)


@main.command()
@spec_options
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def export(
    ctx: click.Context, from_env: bool, command: tuple[str, ...], **fields: object
) -> None:
    """Export the launch environment without resolving the executor.

    With COMMAND, the environment is exported and COMMAND is exec'd (a
    bootstrap that later runs `launch --from-env`). Without it, the
    variables are printed as shell `export` lines.
    """
    config = load_config(ctx.obj["config_path"])
    spec = build_spec(from_env, **fields)
    pipeline = LaunchPipeline(spec, config)

    try:
        if not command:
            overlay = pipeline.export_only({})
            for name, value in sorted(overlay.variables.items()):
                click.echo(f"export {name}={shlex.quote(value)}")
            return
        pipeline.export_only()
    except LaunchError as e:
        err_console.print(f"[red]Error[/red] {escape(e.diagnostic())}")
        sys.exit(1)

    try:
        os.execvp(command[0], list(command))
    except OSError as e:
        fail(f"Could not execute {command[0]}: {e.strerror}")


@main.command()
def version() -> None:
    """Show version information."""
    from launcher import __version__

    console.print(f"Executor Launcher v{__version__}")


if __name__ == "__main__":
    main()
