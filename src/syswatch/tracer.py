"""Tracer session: supervises strace and streams syscall names to the UI."""

import subprocess
import threading
import time
from collections.abc import Callable
from queue import Empty, Full, Queue
from typing import IO, NoReturn

import structlog

from syswatch.config import TracerConfig
from syswatch.models import ExitReason, SessionState, SyscallSet
from syswatch.parser import LineKind, classify_line
from syswatch.processes import kill_process, process_exists

log = structlog.get_logger()

# Pump put() timeout; bounds how long a full queue can delay noticing stop
_PUT_TIMEOUT = 0.1
_JOIN_TIMEOUT = 1.0


def _is_attach_notice(raw: str) -> bool:
    return raw.rstrip().endswith(("attached", "detached"))


class TracerSpawnError(RuntimeError):
    """The tracer could not be started for the requested PID."""

    reason = ExitReason.SPAWN_FAILURE


class SessionStateError(RuntimeError):
    """An operation was called in a state that does not allow it."""


class TracerSession:
    """
    One tracing episode for one target process.

    The tracer runs as a subprocess whose stderr is read by a daemon pump
    thread. The pump classifies each line and pushes the first sighting of
    every syscall name onto a bounded Queue. The foreground calls poll() on
    every tick to move queued names into the session's SyscallSet, so the
    set is only ever mutated from one thread.

    States move NOT_STARTED -> RUNNING -> EXITED and never back; a new
    session is needed for a new target.
    """

    def __init__(
        self,
        config: TracerConfig | None = None,
        killer: Callable[[int], bool] = kill_process,
    ) -> None:
        """
        Initialize the TracerSession.

        Args:
            config: Tracer command and timeouts. Defaults to TracerConfig().
            killer: Sends a fatal signal to a PID, returning success.
        """
        self._config = config or TracerConfig()
        self._killer = killer
        self._queue: Queue[str] = Queue(maxsize=self._config.queue_size)
        self._stop_event = threading.Event()
        self._stream_closed = threading.Event()
        self._thread: threading.Thread | None = None
        self._process: subprocess.Popen[str] | None = None

        self.syscalls = SyscallSet()
        self._state = SessionState.NOT_STARTED
        self._target_pid: int | None = None
        self._exit_reason: ExitReason | None = None
        self._exit_detail = ""
        self._returncode: int | None = None

        # Written by the pump thread, read once the stream has closed
        self._target_exit_seen = False
        self._permission_denied = False
        self._last_diagnostic = ""

        self._kill_deadline: float | None = None
        self._closed_deadline: float | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def target_pid(self) -> int | None:
        return self._target_pid

    @property
    def exit_reason(self) -> ExitReason | None:
        return self._exit_reason

    @property
    def exit_detail(self) -> str:
        return self._exit_detail

    @property
    def returncode(self) -> int | None:
        return self._returncode

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def kill_requested(self) -> bool:
        return self._kill_deadline is not None

    def _require(self, state: SessionState, operation: str) -> None:
        if self._state is not state:
            raise SessionStateError(f"{operation}() requires {state.name}, session is {self._state.name}")

    def start(self, pid: int) -> None:
        """
        Spawn the tracer attached to pid and start the pump thread.

        Raises:
            SessionStateError: If the session was already started.
            TracerSpawnError: If the tracer could not be spawned. The session
                is left EXITED with SPAWN_FAILURE.
        """
        self._require(SessionState.NOT_STARTED, "start")
        self._target_pid = pid

        if pid < 1 or not process_exists(pid):
            self._spawn_failed(f"process {pid} does not exist")

        argv = self._config.build_command(pid)
        try:
            self._process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError:
            self._spawn_failed(f"tracer {argv[0]!r} not found")
        except PermissionError as e:
            self._spawn_failed(f"cannot execute tracer {argv[0]!r}: {e}")
        except OSError as e:
            self._spawn_failed(f"failed to start tracer: {e}")

        self._state = SessionState.RUNNING
        self._thread = threading.Thread(
            target=self._pump,
            args=(self._process.stderr,),
            daemon=True,
            name=f"TracerPump-{pid}",
        )
        self._thread.start()
        log.info("tracer_started", pid=pid, tracer_pid=self._process.pid, argv=argv)

    def _spawn_failed(self, message: str) -> NoReturn:
        self._finish(ExitReason.SPAWN_FAILURE, message)
        log.warning("tracer_spawn_failed", pid=self._target_pid, error=message)
        raise TracerSpawnError(message)

    def _pump(self, stream: IO[str]) -> None:
        """Read tracer output until the stream closes or stop is requested."""
        seen: set[str] = set()
        target = self._target_pid
        try:
            for raw in stream:
                if self._stop_event.is_set():
                    break
                line = classify_line(raw)
                if line.kind is LineKind.EXIT and line.pid in (None, target):
                    self._target_exit_seen = True
                elif line.kind is LineKind.DIAGNOSTIC:
                    if not _is_attach_notice(raw):
                        self._last_diagnostic = raw.strip()
                    if line.permission_error:
                        self._permission_denied = True
                if line.syscall is not None and line.syscall not in seen:
                    seen.add(line.syscall)
                    self._put(line.syscall)
        except (OSError, ValueError) as e:
            # ValueError: stream closed underneath us during shutdown
            log.debug("tracer_stream_error", pid=target, error=str(e))
        finally:
            self._stream_closed.set()

    def _put(self, name: str) -> None:
        while not self._stop_event.is_set():
            try:
                self._queue.put(name, timeout=_PUT_TIMEOUT)
                return
            except Full:
                continue

    def poll(self) -> list[str]:
        """
        Apply pending syscall names and detect the end of the session.

        Must be called from the foreground only. Returns the names newly
        added to the SyscallSet, in extraction order.
        """
        if self._state is not SessionState.RUNNING:
            return []

        added = self._drain()
        now = time.monotonic()
        process = self._process
        assert process is not None

        if self._kill_deadline is not None and now >= self._kill_deadline and process.poll() is None:
            log.warning("tracer_unresponsive_after_kill", pid=self._target_pid)
            self._terminate_tracer()

        if self._stream_closed.is_set():
            returncode = process.poll()
            if returncode is None:
                # Stream closed but the tracer lingers; give it stop_timeout then force it
                if self._closed_deadline is None:
                    self._closed_deadline = now + self._config.stop_timeout
                elif now >= self._closed_deadline:
                    self._terminate_tracer()
                    returncode = process.poll()
            if returncode is not None:
                added.extend(self._drain())
                self._returncode = returncode
                self._join_pump()
                reason, detail = self._resolve_exit()
                self._finish(reason, detail)
                log.info(
                    "tracer_exited",
                    pid=self._target_pid,
                    reason=reason.value,
                    returncode=returncode,
                    unique_syscalls=len(self.syscalls),
                )
        return added

    def _drain(self) -> list[str]:
        added: list[str] = []
        while True:
            try:
                name = self._queue.get_nowait()
            except Empty:
                return added
            if self.syscalls.add(name):
                added.append(name)

    def _resolve_exit(self) -> tuple[ExitReason, str]:
        pid = self._target_pid
        code = f"tracer exit code {self._returncode}"
        if self._kill_deadline is not None:
            return ExitReason.TARGET_KILLED, f"process {pid} killed"
        if self._permission_denied:
            return ExitReason.PERMISSION_DENIED, self._last_diagnostic or code
        if self._target_exit_seen or (pid is not None and not process_exists(pid)):
            return ExitReason.TARGET_EXITED, f"process {pid} exited"
        return ExitReason.TRACER_EXITED, self._last_diagnostic or code

    def kill(self) -> bool:
        """
        Send a fatal signal to the target process (not the tracer).

        The tracer is expected to report the death and exit on its own;
        poll() forces it down if it is still alive after kill_grace seconds.

        Returns:
            True if the signal was delivered. On False the session keeps
            running.

        Raises:
            SessionStateError: If the session is not RUNNING.
        """
        self._require(SessionState.RUNNING, "kill")
        assert self._target_pid is not None
        if not self._killer(self._target_pid):
            log.warning("tracer_kill_refused", pid=self._target_pid)
            return False
        if self._kill_deadline is None:
            self._kill_deadline = time.monotonic() + self._config.kill_grace
        log.info("tracer_kill_sent", pid=self._target_pid)
        return True

    def stop(self) -> None:
        """
        Terminate the tracer and end the session as USER_STOPPED.

        Raises:
            SessionStateError: If the session is not RUNNING.
        """
        self._require(SessionState.RUNNING, "stop")
        self._stop_event.set()
        self._terminate_tracer()
        self._join_pump()
        self._drain()
        assert self._process is not None
        self._returncode = self._process.returncode
        self._finish(ExitReason.USER_STOPPED, f"stopped tracing process {self._target_pid}")
        log.info("tracer_stopped", pid=self._target_pid, unique_syscalls=len(self.syscalls))

    def wait(self, timeout: float | None = None, interval: float = 0.05) -> bool:
        """
        Poll until the session has exited.

        Returns:
            True if the session is EXITED, False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._state is SessionState.RUNNING:
            self.poll()
            if self._state is not SessionState.RUNNING:
                break
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(interval)
        return self._state is SessionState.EXITED

    def close(self) -> None:
        """Stop the session if it is running. Safe to call in any state."""
        if self._state is SessionState.RUNNING:
            self.stop()

    def _terminate_tracer(self) -> None:
        """SIGTERM the tracer, escalating to SIGKILL after stop_timeout."""
        process = self._process
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=self._config.stop_timeout)
        except subprocess.TimeoutExpired:
            log.warning("tracer_terminate_timeout", pid=self._target_pid, tracer_pid=process.pid)
            process.kill()
            process.wait(timeout=self._config.stop_timeout)

    def _join_pump(self) -> None:
        if self._thread is None:
            return
        self._thread.join(timeout=_JOIN_TIMEOUT)
        if self._thread.is_alive():
            # Leave the stream to the daemon thread; closing it mid-read could block
            log.warning("tracer_pump_still_running", pid=self._target_pid)
        else:
            stream = self._process.stderr if self._process is not None else None
            if stream is not None:
                stream.close()
        self._thread = None

    def _finish(self, reason: ExitReason, detail: str) -> None:
        self._state = SessionState.EXITED
        self._exit_reason = reason
        self._exit_detail = detail
