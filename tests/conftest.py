"""Shared test fixtures for syswatch."""

import logging
import subprocess
import sys
from collections.abc import Iterator, Sequence

import pytest
import structlog

from syswatch.config import TracerConfig
from syswatch.models import ExitReason, ProcessRecord, SyscallSet
from syswatch.tracer import TracerSpawnError


def fake_tracer_command(
    lines: Sequence[str] = (),
    exit_code: int = 0,
    hang: bool = False,
    repeat: int = 1,
    tail: Sequence[str] = (),
) -> list[str]:
    """
    Build a tracer argv that replays canned strace output on stderr.

    lines are written repeat times, then tail once. "PID" inside a line is
    replaced with the target PID. With hang=True the fake tracer goes silent
    and sleeps instead of exiting.
    """
    script = (
        "import sys, time\n"
        "def emit(line):\n"
        "    sys.stderr.write(line.replace('PID', sys.argv[1]) + '\\n')\n"
        f"for _ in range({repeat}):\n"
        f"    for line in {list(lines)!r}:\n"
        "        emit(line)\n"
        f"for line in {list(tail)!r}:\n"
        "    emit(line)\n"
        "sys.stderr.flush()\n"
        + ("time.sleep(60)\n" if hang else "")
        + f"sys.exit({exit_code})\n"
    )
    return [sys.executable, "-c", script, "{pid}"]


def fake_tracer_config(
    lines: Sequence[str] = (),
    exit_code: int = 0,
    hang: bool = False,
    repeat: int = 1,
    tail: Sequence[str] = (),
    **kwargs,
) -> TracerConfig:
    """TracerConfig running the fake tracer, with short timeouts."""
    kwargs.setdefault("stop_timeout", 1.0)
    kwargs.setdefault("kill_grace", 0.3)
    return TracerConfig(command=fake_tracer_command(lines, exit_code, hang, repeat, tail), **kwargs)


@pytest.fixture
def target() -> Iterator[subprocess.Popen]:
    """A throwaway process to attach the fake tracer to."""
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    try:
        yield proc
    finally:
        if proc.poll() is None:
            proc.kill()
        proc.wait(timeout=5)


def make_record(pid: int = 100, name: str = "proc", command: str | None = None) -> ProcessRecord:
    """Create a ProcessRecord for testing."""
    return ProcessRecord(pid=pid, name=name, command=command if command is not None else f"/usr/bin/{name}")


class FakeSession:
    """In-memory stand-in for TracerSession used by controller and app tests."""

    def __init__(self, fail_start: bool = False, kill_ok: bool = True) -> None:
        self.syscalls = SyscallSet()
        self.fail_start = fail_start
        self.kill_ok = kill_ok
        self.pending: list[str] = []
        self.exit_on_poll: ExitReason | None = None
        self.exit_reason: ExitReason | None = None
        self.exit_detail = ""
        self.target_pid: int | None = None
        self.kill_calls = 0
        self.stopped = False
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, pid: int) -> None:
        self.target_pid = pid
        if self.fail_start:
            self.exit_reason = ExitReason.SPAWN_FAILURE
            self.exit_detail = "tracer 'strace' not found"
            raise TracerSpawnError(self.exit_detail)
        self._running = True

    def poll(self) -> list[str]:
        added = self.syscalls.update(self.pending)
        self.pending = []
        if self.exit_on_poll is not None:
            self._running = False
            self.exit_reason = self.exit_on_poll
            self.exit_detail = f"process {self.target_pid} exited"
            self.exit_on_poll = None
        return added

    def kill(self) -> bool:
        self.kill_calls += 1
        return self.kill_ok

    def stop(self) -> None:
        self._running = False
        self.stopped = True
        self.exit_reason = ExitReason.USER_STOPPED

    def close(self) -> None:
        if self._running:
            self.stop()


class SessionRecorder:
    """Session factory that remembers every session it built."""

    def __init__(self, **session_kwargs) -> None:
        self.sessions: list[FakeSession] = []
        self._kwargs = session_kwargs

    def __call__(self) -> FakeSession:
        session = FakeSession(**self._kwargs)
        self.sessions.append(session)
        return session

    @property
    def last(self) -> FakeSession:
        return self.sessions[-1]


@pytest.fixture
def restore_logging():
    """Undo global logging configuration after a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
