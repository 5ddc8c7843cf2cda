"""syswatch - Main Textual application."""

import structlog
from rich.markup import escape
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Static

from syswatch.config import Config
from syswatch.controller import Screen, ScreenController
from syswatch.models import ProcessRecord

log = structlog.get_logger()

SELECTING_HELP = "Up/Down: Navigate | Type: Filter | Enter: Trace | Esc: Quit"
MONITORING_HELP = "f: Filter syscalls | k: Kill process | q or b: Back | Up/Down: Scroll"
TYPING_HELP = "Type to filter | Enter: Keep filter | Esc: Clear filter"


def truncate(text: str, length: int) -> str:
    """Shorten text to length, marking the cut with an ellipsis."""
    if len(text) <= length:
        return text
    return text[: max(length - 1, 0)] + "…"


class HeaderBar(Static):
    """One-line summary of the active screen."""

    DEFAULT_CSS = """
    HeaderBar {
        height: 3;
        border: solid $primary;
        padding: 0 1;
    }
    """


class FilterBar(Static):
    """Shows the current filter query."""

    DEFAULT_CSS = """
    FilterBar {
        height: 3;
        border: solid $secondary;
        padding: 0 1;
    }

    FilterBar.typing {
        border: solid $accent;
    }
    """

    def show_query(self, query: str, active: bool) -> None:
        """Render the query, with a cursor when it is being edited."""
        self.set_class(active, "typing")
        cursor = "[reverse] [/]" if active else ""
        self.update(f"Filter: {escape(query)}{cursor}" if (query or active) else "[dim]Filter: (none)[/dim]")


class ItemTable(DataTable, can_focus=False):
    """Row table driven entirely by the controller's selection."""


class ListPanel(Container):
    """Container for the process or syscall table."""

    DEFAULT_CSS = """
    ListPanel {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ListPanel."""
        super().__init__(*args, **kwargs)
        self._mode: Screen | None = None
        self._rows: tuple = ()

    def compose(self) -> ComposeResult:
        """Compose the list table."""
        yield ItemTable(id="items", cursor_type="row")

    def show_processes(self, view: list[ProcessRecord], selected: int, width: int) -> None:
        """Render the filtered process list."""
        table = self.query_one("#items", ItemTable)
        if self._mode is not Screen.SELECTING:
            table.clear(columns=True)
            table.add_column("PID", key="pid", width=8)
            table.add_column("Name", key="name", width=20)
            table.add_column("Command", key="command")
            self._mode = Screen.SELECTING
            self._rows = ()
        rows = tuple(view)
        if rows != self._rows:
            table.clear()
            for record in rows:
                table.add_row(str(record.pid), Text(record.name), Text(truncate(record.command, width)))
            self._rows = rows
        self._move_cursor(table, selected)

    def show_syscalls(self, view: list[str], positions: dict[str, int], selected: int) -> None:
        """Render the filtered syscall list with each name's discovery order."""
        table = self.query_one("#items", ItemTable)
        if self._mode is not Screen.MONITORING:
            table.clear(columns=True)
            table.add_column("#", key="order", width=6)
            table.add_column("Syscall", key="syscall")
            self._mode = Screen.MONITORING
            self._rows = ()
        rows = tuple(view)
        if rows != self._rows:
            table.clear()
            for name in rows:
                table.add_row(str(positions.get(name, 0) + 1), Text(name))
            self._rows = rows
        self._move_cursor(table, selected)

    def _move_cursor(self, table: DataTable, selected: int) -> None:
        if table.row_count:
            table.move_cursor(row=selected)

    @property
    def row_count(self) -> int:
        return len(self._rows)


class SyswatchApp(App):
    """Main syswatch application."""

    TITLE = "syswatch"
    SUB_TITLE = "Live syscall monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #help {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: Config | None = None,
        controller: ScreenController | None = None,
        initial_pid: int | None = None,
    ) -> None:
        """Initialize the SyswatchApp."""
        super().__init__()
        self.config = config or Config()
        self.controller = controller or ScreenController(self.config)
        self._initial_pid = initial_pid

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderBar(id="header")
        yield FilterBar(id="filter")
        yield ListPanel(id="list")
        yield Static(SELECTING_HELP, id="help")

    def on_mount(self) -> None:
        """Load the process list and start polling the tracer queue."""
        self.controller.enter_selection()
        if self._initial_pid is not None:
            self.controller.select_pid(self._initial_pid)
        self.set_interval(self.config.ui.tick_interval, self._on_tick)
        self._sync()

    def on_unmount(self) -> None:
        """Make sure no tracer outlives the UI."""
        if self.controller.session is not None:
            self.controller.session.close()

    def on_key(self, event: events.Key) -> None:
        """Route keys through the controller."""
        key_event = self.controller.translate(event.key, event.character)
        if key_event is None:
            return
        event.stop()
        event.prevent_default()
        self.controller.handle(key_event)
        self._sync()

    def _on_tick(self) -> None:
        """Apply queued syscalls and refresh the UI."""
        try:
            self.controller.tick()
        except OSError:
            # Transient process or pipe errors; anything else is a bug and propagates
            log.exception("tick_failed")
        self._sync()

    def _sync(self) -> None:
        """Push controller notices and state to the widgets."""
        for notice in self.controller.take_notices():
            self.notify(notice.message, severity=notice.severity)  # type: ignore[arg-type]
        if self.controller.should_quit:
            self.exit()
            return
        self._render_state()

    def _render_state(self) -> None:
        controller = self.controller
        header = self.query_one("#header", HeaderBar)
        filter_bar = self.query_one("#filter", FilterBar)
        panel = self.query_one("#list", ListPanel)
        help_bar = self.query_one("#help", Static)

        if controller.screen is Screen.SELECTING:
            processes = controller.processes
            view = processes.current_view()
            status = f"Processes {len(view)}/{len(processes.items)}"
            if controller.enumeration_failed:
                status += "  [red]process list unavailable[/red]"
            header.update(status)
            filter_bar.show_query(processes.query, active=True)
            panel.show_processes(view, processes.selected_index, self.config.ui.command_truncate_length)
            help_bar.update(SELECTING_HELP)
            return

        syscalls = controller.syscalls
        view = syscalls.current_view()
        header.update(self._monitoring_status(len(view)))
        filter_bar.show_query(syscalls.query, active=controller.filter_typing)
        positions = {name: index for index, name in enumerate(syscalls.items)}
        panel.show_syscalls(view, positions, syscalls.selected_index)
        help_bar.update(TYPING_HELP if controller.filter_typing else MONITORING_HELP)

    def _monitoring_status(self, shown: int) -> str:
        controller = self.controller
        target = controller.target
        session = controller.session
        label = f"PID {target.pid} ({escape(target.name)})" if target is not None else "PID ?"
        total = len(session.syscalls) if session is not None else 0
        if session is not None and session.is_running:
            state = "[green]tracing[/green]"
        elif session is not None and session.exit_reason is not None:
            state = f"[yellow]{session.exit_reason.label}[/yellow]"
        else:
            state = "[dim]idle[/dim]"
        return f"Monitoring {label}  {state}  unique syscalls: {shown}/{total}"

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self.controller.quit()
        self.exit()


def run_tui(config: Config | None = None, initial_pid: int | None = None) -> None:
    """Run the TUI application."""
    app = SyswatchApp(config, initial_pid=initial_pid)
    app.run()
