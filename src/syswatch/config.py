"""Configuration system for syswatch."""

import logging
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

PID_PLACEHOLDER = "{pid}"


def _default_tracer_command() -> list[str]:
    return ["strace", "-f", "-e", "trace=all", "-p", PID_PLACEHOLDER]


@dataclass
class TracerConfig:
    """Tracer subprocess configuration."""

    # argv template; every "{pid}" is replaced with the target PID
    command: list[str] = field(default_factory=_default_tracer_command)
    stop_timeout: float = 2.0  # Seconds to wait for the tracer after SIGTERM
    kill_grace: float = 2.0  # Seconds the tracer gets to exit after the target is killed
    queue_size: int = 1024  # Max syscall names in flight between pump and UI

    @property
    def binary(self) -> str:
        return self.command[0]

    def build_command(self, pid: int) -> list[str]:
        """Return the tracer argv for a target PID."""
        return [arg.replace(PID_PLACEHOLDER, str(pid)) for arg in self.command]


@dataclass
class UIConfig:
    """Terminal UI configuration."""

    tick_interval: float = 0.2  # Seconds between queue polls / redraws
    process_refresh_seconds: float = 0.0  # Periodic process list refresh, 0 = only on entry
    command_truncate_length: int = 80  # Max chars of command line shown per process


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "INFO"
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of rotated log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    tracer: TracerConfig = field(default_factory=TracerConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "syswatch"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "syswatch"

    @property
    def log_path(self) -> Path:
        """JSON log file path."""
        return self.state_dir / "syswatch.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps())

    def dumps(self) -> str:
        """Render the config as a TOML document."""
        doc = tomlkit.document()
        for name in ("tracer", "ui", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())
        return tomlkit.dumps(doc)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            tracer=_load_tracer_config(data.get("tracer", {})),
            ui=_load_ui_config(data.get("ui", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_tracer_config(data: dict) -> TracerConfig:
    """Load tracer config from TOML data, using dataclass defaults for missing fields."""
    defaults = TracerConfig()

    command = data.get("command", defaults.command)
    if not isinstance(command, list) or not command or not all(isinstance(a, str) for a in command):
        raise ValueError(f"tracer.command must be a non-empty list of strings, got {command!r}")
    if not any(PID_PLACEHOLDER in arg for arg in command):
        raise ValueError(f"tracer.command must contain {PID_PLACEHOLDER!r}, got {command!r}")

    stop_timeout = data.get("stop_timeout", defaults.stop_timeout)
    kill_grace = data.get("kill_grace", defaults.kill_grace)
    queue_size = data.get("queue_size", defaults.queue_size)

    if stop_timeout <= 0:
        raise ValueError(f"tracer.stop_timeout must be > 0, got {stop_timeout}")
    if kill_grace <= 0:
        raise ValueError(f"tracer.kill_grace must be > 0, got {kill_grace}")
    if queue_size < 1:
        raise ValueError(f"tracer.queue_size must be >= 1, got {queue_size}")

    return TracerConfig(
        command=list(command),
        stop_timeout=stop_timeout,
        kill_grace=kill_grace,
        queue_size=queue_size,
    )


def _load_ui_config(data: dict) -> UIConfig:
    """Load UI config from TOML data."""
    d = UIConfig()
    tick_interval = data.get("tick_interval", d.tick_interval)
    process_refresh_seconds = data.get("process_refresh_seconds", d.process_refresh_seconds)

    if tick_interval <= 0:
        raise ValueError(f"ui.tick_interval must be > 0, got {tick_interval}")
    if process_refresh_seconds < 0:
        raise ValueError(f"ui.process_refresh_seconds must be >= 0, got {process_refresh_seconds}")

    return UIConfig(
        tick_interval=tick_interval,
        process_refresh_seconds=process_refresh_seconds,
        command_truncate_length=data.get("command_truncate_length", d.command_truncate_length),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    level = str(data.get("level", d.level)).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Invalid logging.level: {level!r}")

    return LoggingConfig(
        level=level,
        max_bytes=data.get("max_bytes", d.max_bytes),
        backup_count=data.get("backup_count", d.backup_count),
    )
