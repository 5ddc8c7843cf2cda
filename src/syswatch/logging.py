"""Logging for syswatch.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Core console functions (log, info, warn, error) for CLI output
3. Structlog configuration writing JSON lines to a rotating file

The TUI owns the terminal while it runs, so structlog never writes to the
console; only the CLI uses the Rich helpers, before or after the TUI.
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from syswatch.config import Config

_console = Console(highlight=False)
_err_console = Console(highlight=False, stderr=True)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    NEW = "[bright_green]+[/]"
    STOP = "[yellow]■[/]"


_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Errors go to stderr so they never mix with headless trace output.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    console = _err_console if level == "error" else _console
    console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def tracer_missing(binary: str) -> None:
    error(f"Tracer [cyan]{binary}[/] not found on PATH", Icon.FAIL)


def process_table_unreadable(reason: str) -> None:
    error(f"Cannot read process table: {reason}", Icon.FAIL)


def config_invalid(reason: str) -> None:
    error(f"Invalid configuration: {reason}", Icon.FAIL)


def config_created(path: str) -> None:
    info(f"Created config at [cyan]{path}[/]", Icon.OK)


def syscall_discovered(name: str) -> None:
    info(f"[cyan]{name}[/]", Icon.NEW)


def trace_ended(pid: int, reason: str, count: int) -> None:
    info(f"PID [bold]{pid}[/]: {reason} [dim]({count} unique syscalls)[/]", Icon.STOP)


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure(config: Config) -> None:
    """Configure structlog to write JSON Lines to the rotating log file.

    Args:
        config: Application config with log path and rotation settings
    """
    config.log_path.parent.mkdir(parents=True, exist_ok=True)
    level = logging.getLevelName(config.logging.level)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.logging.max_bytes,
        backupCount=config.logging.backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
