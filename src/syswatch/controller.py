"""Screen state machine: process selection and syscall monitoring."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

from syswatch.config import Config
from syswatch.filtering import FilterableList
from syswatch.models import ExitReason, ProcessRecord
from syswatch.processes import list_processes
from syswatch.tracer import TracerSession, TracerSpawnError

log = structlog.get_logger()


class Screen(Enum):
    """The two screens of the application."""

    SELECTING = "selecting"
    MONITORING = "monitoring"


class Key(Enum):
    """Abstract input events the controller understands."""

    CHARACTER = "character"
    BACKSPACE = "backspace"
    UP = "up"
    DOWN = "down"
    ENTER = "enter"
    ESCAPE = "escape"
    KILL = "kill"
    BACK = "back"
    FILTER = "filter"
    QUIT = "quit"


@dataclass(slots=True, frozen=True)
class KeyEvent:
    """One input event; char is set for CHARACTER only."""

    key: Key
    char: str = ""


@dataclass(slots=True, frozen=True)
class Notice:
    """A non-fatal message for the user."""

    message: str
    severity: str = "information"  # information, warning, error


# Monitoring-mode letter commands
COMMAND_KEYS = {
    "k": Key.KILL,
    "b": Key.BACK,
    "q": Key.BACK,
    "f": Key.FILTER,
}

_NAMED_KEYS = {
    "backspace": Key.BACKSPACE,
    "up": Key.UP,
    "down": Key.DOWN,
    "enter": Key.ENTER,
    "escape": Key.ESCAPE,
    "ctrl+c": Key.QUIT,
}

_EXIT_SEVERITY = {
    ExitReason.SPAWN_FAILURE: "error",
    ExitReason.PERMISSION_DENIED: "error",
    ExitReason.TRACER_EXITED: "warning",
    ExitReason.TARGET_EXITED: "information",
    ExitReason.TARGET_KILLED: "information",
    ExitReason.USER_STOPPED: "information",
}


def process_search_text(record: ProcessRecord) -> str:
    """Text the process filter matches against."""
    return f"{record.name} {record.command} {record.pid}"


class ScreenController:
    """
    Owns all screen state and is driven by key events and UI ticks.

    Selecting shows a fuzzy-filterable process list. Selecting a process
    switches to Monitoring with a fresh TracerSession and a syscall list
    bound to that session's SyscallSet. Returning to Selecting discards the
    session entirely, so re-selecting a process starts from an empty set.
    """

    def __init__(
        self,
        config: Config | None = None,
        enumerate_processes: Callable[[], list[ProcessRecord]] = list_processes,
        session_factory: Callable[[], TracerSession] | None = None,
    ) -> None:
        """
        Initialize the ScreenController.

        Args:
            config: Application config. Defaults to Config().
            enumerate_processes: Returns the current process list.
            session_factory: Builds an unstarted TracerSession.
        """
        self.config = config or Config()
        self._enumerate = enumerate_processes
        self._session_factory = session_factory or (lambda: TracerSession(self.config.tracer))

        self.screen = Screen.SELECTING
        self.processes: FilterableList[ProcessRecord] = FilterableList(key=process_search_text)
        self.syscalls: FilterableList[str] = FilterableList()
        self.session: TracerSession | None = None
        self.target: ProcessRecord | None = None
        self.filter_typing = False
        self.enumeration_failed = False
        self.should_quit = False

        self._notices: list[Notice] = []
        self._last_refresh = 0.0

    # ─── Notices ────────────────────────────────────────────────────────────

    def notify(self, message: str, severity: str = "information") -> None:
        self._notices.append(Notice(message, severity))

    def take_notices(self) -> list[Notice]:
        """Return and clear pending notices."""
        notices, self._notices = self._notices, []
        return notices

    # ─── Selecting ──────────────────────────────────────────────────────────

    def enter_selection(self) -> None:
        """Switch to (or re-enter) the Selecting screen with a fresh list."""
        self.screen = Screen.SELECTING
        self.filter_typing = False
        self.processes.set_query("")
        self.processes.selected_index = 0
        self.refresh_processes(keep_selection=False)

    def refresh_processes(self, keep_selection: bool = True) -> bool:
        """
        Reload the process list from the enumeration collaborator.

        On failure the list is emptied and an error notice is raised.

        Returns:
            True if the process table was read.
        """
        selected = self.processes.selected_item() if keep_selection else None
        self._last_refresh = time.monotonic()
        try:
            records = self._enumerate()
        except OSError as e:
            # EnumerationError, or a plain I/O error from an injected collaborator
            self.enumeration_failed = True
            self.processes.set_items([])
            self.notify(f"Cannot list processes: {e}", "error")
            return False

        self.enumeration_failed = False
        self.processes.set_items(records)
        if selected is not None:
            self.processes.select_where(lambda record: record.pid == selected.pid)
        return True

    def select_pid(self, pid: int) -> bool:
        """Start monitoring pid directly, if it is in the process list."""
        for record in self.processes.items:
            if record.pid == pid:
                self._start_monitoring(record)
                return True
        self.notify(f"No process with PID {pid}", "warning")
        return False

    # ─── Monitoring ─────────────────────────────────────────────────────────

    def _start_monitoring(self, record: ProcessRecord) -> None:
        self.screen = Screen.MONITORING
        self.target = record
        self.filter_typing = False
        self.session = self._session_factory()
        self.syscalls = FilterableList()
        self.syscalls.bind(self.session.syscalls)
        log.info("monitoring_started", pid=record.pid, name=record.name)
        try:
            self.session.start(record.pid)
        except TracerSpawnError as e:
            self.notify(f"Cannot trace {record.name} ({record.pid}): {e}", "error")

    def _return_to_selection(self) -> None:
        if self.session is not None:
            self.session.close()
            log.info("monitoring_ended", pid=self.session.target_pid, unique_syscalls=len(self.session.syscalls))
        self.session = None
        self.target = None
        self.syscalls = FilterableList()
        self.enter_selection()

    def _kill_target(self) -> None:
        session = self.session
        if session is None or not session.is_running:
            self.notify("Tracing is not active", "warning")
            return
        if session.kill():
            self.notify(f"Sent SIGKILL to process {session.target_pid}")
        else:
            self.notify(f"Could not kill process {session.target_pid}", "warning")

    def tick(self) -> list[str]:
        """
        Advance time-driven state: apply queued syscalls and refresh lists.

        Returns:
            Syscall names newly added this tick.
        """
        if self.screen is Screen.SELECTING:
            interval = self.config.ui.process_refresh_seconds
            if interval > 0 and time.monotonic() - self._last_refresh >= interval:
                self.refresh_processes()
            return []

        session = self.session
        if session is None or not session.is_running:
            return []
        added = session.poll()
        if not session.is_running and session.exit_reason is not None:
            reason = session.exit_reason
            self.notify(f"{reason.label.capitalize()}: {session.exit_detail}", _EXIT_SEVERITY[reason])
        return added

    # ─── Input ──────────────────────────────────────────────────────────────

    @property
    def active_list(self) -> FilterableList:
        if self.screen is Screen.SELECTING:
            return self.processes
        return self.syscalls

    @property
    def accepts_text(self) -> bool:
        """Whether printable characters currently edit a query."""
        return self.screen is Screen.SELECTING or self.filter_typing

    def translate(self, key: str, character: str | None = None) -> KeyEvent | None:
        """Map a terminal key name and character to an abstract event."""
        if key in _NAMED_KEYS:
            return KeyEvent(_NAMED_KEYS[key])
        if character is None or not character.isprintable() or len(character) != 1:
            return None
        if self.accepts_text:
            return KeyEvent(Key.CHARACTER, character)
        command = COMMAND_KEYS.get(character)
        return KeyEvent(command) if command is not None else None

    def handle(self, event: KeyEvent) -> None:
        """Apply one input event to the active screen."""
        if event.key is Key.QUIT:
            self.quit()
            return
        if event.key is Key.UP:
            self.active_list.move_selection(-1)
            return
        if event.key is Key.DOWN:
            self.active_list.move_selection(1)
            return

        if self.screen is Screen.SELECTING:
            self._handle_selecting(event)
        elif self.filter_typing:
            self._handle_filter_typing(event)
        else:
            self._handle_monitoring(event)

    def _handle_selecting(self, event: KeyEvent) -> None:
        if event.key is Key.CHARACTER:
            self.processes.set_query(self.processes.query + event.char)
        elif event.key is Key.BACKSPACE:
            self.processes.set_query(self.processes.query[:-1])
        elif event.key is Key.ENTER:
            record = self.processes.selected_item()
            if record is not None:
                self._start_monitoring(record)
        elif event.key is Key.ESCAPE:
            self.quit()

    def _handle_filter_typing(self, event: KeyEvent) -> None:
        if event.key is Key.CHARACTER:
            self.syscalls.set_query(self.syscalls.query + event.char)
        elif event.key is Key.BACKSPACE:
            self.syscalls.set_query(self.syscalls.query[:-1])
        elif event.key is Key.ENTER:
            self.filter_typing = False
        elif event.key is Key.ESCAPE:
            self.filter_typing = False
            self.syscalls.set_query("")

    def _handle_monitoring(self, event: KeyEvent) -> None:
        if event.key is Key.KILL:
            self._kill_target()
        elif event.key is Key.BACK:
            self._return_to_selection()
        elif event.key is Key.FILTER:
            self.filter_typing = True
        elif event.key is Key.ESCAPE and self.syscalls.query:
            self.syscalls.set_query("")

    def quit(self) -> None:
        """Close any running session and request application exit."""
        if self.session is not None:
            self.session.close()
        self.should_quit = True
