"""CLI commands for syswatch."""

import shutil
import sys
import time
from pathlib import Path

import click

from syswatch import logging as console
from syswatch.config import Config


def _load_config(path: Path | None) -> Config:
    try:
        return Config.load(path)
    except ValueError as e:
        console.config_invalid(str(e))
        sys.exit(1)


def _require_tracer(config: Config) -> None:
    if shutil.which(config.tracer.binary) is None:
        console.tracer_missing(config.tracer.binary)
        sys.exit(1)


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/syswatch/config.toml)",
)


@click.group(invoke_without_command=True)
@config_option
@click.option("--pid", type=int, default=None, help="Start tracing this PID immediately")
@click.version_option(package_name="syswatch")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, pid: int | None) -> None:
    """Watch the distinct syscalls a running process makes, live."""
    if ctx.invoked_subcommand is not None:
        return

    from syswatch.app import run_tui
    from syswatch.processes import EnumerationError, list_processes

    config = _load_config(config_path)
    _require_tracer(config)
    try:
        list_processes()
    except EnumerationError as e:
        console.process_table_unreadable(str(e))
        sys.exit(1)

    console.configure(config)
    run_tui(config, initial_pid=pid)


@main.command()
@config_option
@click.argument("pid", type=int)
@click.option("--timeout", type=float, default=None, help="Stop after this many seconds")
def trace(config_path: Path | None, pid: int, timeout: float | None) -> None:
    """Print each new syscall of PID as it is first seen."""
    from syswatch.tracer import TracerSession, TracerSpawnError

    config = _load_config(config_path)
    _require_tracer(config)
    console.configure(config)

    session = TracerSession(config.tracer)
    try:
        session.start(pid)
    except TracerSpawnError as e:
        console.error(str(e), console.Icon.FAIL)
        sys.exit(1)

    deadline = None if timeout is None else time.monotonic() + timeout
    printed = 0
    try:
        while session.is_running:
            session.poll()
            if deadline is not None and time.monotonic() >= deadline:
                session.stop()
            for name in session.syscalls[printed:]:
                console.syscall_discovered(name)
            printed = len(session.syscalls)
            if session.is_running:
                time.sleep(config.ui.tick_interval)
    except KeyboardInterrupt:
        session.close()

    reason = session.exit_reason
    console.trace_ended(pid, reason.label if reason else "stopped", len(session.syscalls))


@main.group()
def config() -> None:
    """Manage the configuration file."""
    pass


@config.command("init")
@config_option
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def config_init(config_path: Path | None, force: bool) -> None:
    """Write a config file with default values."""
    defaults = Config()
    path = config_path or defaults.config_path
    if path.exists() and not force:
        click.echo(f"Config already exists at {path} (use --force to overwrite)")
        return
    defaults.save(path)
    console.config_created(str(path))


@config.command("show")
@config_option
def config_show(config_path: Path | None) -> None:
    """Print the effective configuration."""
    click.echo(_load_config(config_path).dumps(), nl=False)
