"""Tests for the syswatch Textual application."""

import pytest

from conftest import SessionRecorder, make_record
from syswatch.app import FilterBar, HeaderBar, ListPanel, SyswatchApp, truncate
from syswatch.controller import Screen, ScreenController
from syswatch.models import ExitReason

PROCESSES = [
    make_record(1, "init", "/sbin/init"),
    make_record(200, "bash", "/bin/bash -l"),
    make_record(300, "nginx", "nginx: master process"),
    make_record(400, "[kworker/0:1]", "[kworker/0:1]"),
]


def make_app(initial_pid=None, **session_kwargs):
    sessions = SessionRecorder(**session_kwargs)
    controller = ScreenController(enumerate_processes=lambda: list(PROCESSES), session_factory=sessions)
    return SyswatchApp(controller=controller, initial_pid=initial_pid), sessions


async def type_text(pilot, text: str) -> None:
    for char in text:
        await pilot.press(char)
    await pilot.pause()


def test_truncate_short_text():
    """Test text within the limit is unchanged."""
    assert truncate("abc", 5) == "abc"
    assert truncate("abcde", 5) == "abcde"


def test_truncate_long_text():
    """Test long text is cut to the limit with an ellipsis."""
    result = truncate("abcdefgh", 5)
    assert result == "abcd…"
    assert len(result) == 5


@pytest.mark.asyncio
async def test_app_creation():
    """Test SyswatchApp can be instantiated."""
    app, _ = make_app()
    assert app.title == "syswatch"
    assert app.sub_title == "Live syscall monitor"


@pytest.mark.asyncio
async def test_app_compose():
    """Test SyswatchApp composes correctly."""
    app, _ = make_app()
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#header", HeaderBar) is not None
        assert pilot.app.query_one("#filter", FilterBar) is not None
        assert pilot.app.query_one("#list", ListPanel) is not None
        assert pilot.app.query_one("#help") is not None


@pytest.mark.asyncio
async def test_process_list_shown_on_mount():
    """Test every process, including ones with markup-like names, is listed."""
    app, _ = make_app()
    async with app.run_test() as pilot:
        await pilot.pause()
        panel = pilot.app.query_one("#list", ListPanel)
        assert app.controller.screen is Screen.SELECTING
        assert panel.row_count == len(PROCESSES)


@pytest.mark.asyncio
async def test_typing_filters_processes():
    """Test typed characters narrow the process table."""
    app, _ = make_app()
    async with app.run_test() as pilot:
        await type_text(pilot, "ngx")
        panel = pilot.app.query_one("#list", ListPanel)
        assert app.controller.processes.query == "ngx"
        assert panel.row_count == 1


@pytest.mark.asyncio
async def test_enter_starts_monitoring():
    """Test Enter on a process switches to the syscall view."""
    app, sessions = make_app()
    async with app.run_test() as pilot:
        await type_text(pilot, "bash")
        await pilot.press("enter")
        await pilot.pause()

        assert app.controller.screen is Screen.MONITORING
        assert sessions.last.target_pid == 200
        assert pilot.app.query_one("#list", ListPanel).row_count == 0


@pytest.mark.asyncio
async def test_tick_shows_new_syscalls():
    """Test syscalls applied on a tick appear in the table."""
    app, sessions = make_app(initial_pid=300)
    async with app.run_test() as pilot:
        await pilot.pause()
        sessions.last.pending = ["epoll_wait", "accept4", "epoll_wait"]
        app._on_tick()
        await pilot.pause()

        assert pilot.app.query_one("#list", ListPanel).row_count == 2


@pytest.mark.asyncio
async def test_back_returns_to_selection():
    """Test 'q' while monitoring goes back rather than quitting."""
    app, sessions = make_app(initial_pid=200)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("q")
        await pilot.pause()

        assert app.controller.screen is Screen.SELECTING
        assert sessions.last.stopped
        assert not app.controller.should_quit
        assert pilot.app.query_one("#list", ListPanel).row_count == len(PROCESSES)


@pytest.mark.asyncio
async def test_filter_syscalls():
    """Test 'f' then typing filters the syscall table."""
    app, sessions = make_app(initial_pid=200)
    async with app.run_test() as pilot:
        await pilot.pause()
        sessions.last.pending = ["open", "close", "openat"]
        app._on_tick()

        await pilot.press("f")
        await type_text(pilot, "op")

        assert app.controller.filter_typing
        assert app.controller.syscalls.query == "op"
        assert pilot.app.query_one("#list", ListPanel).row_count == 2


@pytest.mark.asyncio
async def test_session_end_keeps_monitoring_screen():
    """Test the UI stays on the syscall view after the target exits."""
    app, sessions = make_app(initial_pid=200)
    async with app.run_test() as pilot:
        await pilot.pause()
        sessions.last.pending = ["read"]
        sessions.last.exit_on_poll = ExitReason.TARGET_EXITED
        app._on_tick()
        await pilot.pause()

        assert app.controller.screen is Screen.MONITORING
        assert not sessions.last.is_running
        assert pilot.app.query_one("#list", ListPanel).row_count == 1


@pytest.mark.asyncio
async def test_tick_os_error_does_not_crash():
    """Test a transient OS error inside a tick is logged and the UI keeps running."""
    app, _ = make_app()

    def broken_tick():
        raise OSError("pipe closed")

    async with app.run_test() as pilot:
        app.controller.tick = broken_tick  # type: ignore[method-assign]
        app._on_tick()
        await pilot.pause()
        assert app.is_running


@pytest.mark.asyncio
async def test_tick_programming_error_propagates():
    """Test errors other than OSError are not hidden by the tick handler."""
    app, _ = make_app()

    def broken_tick():
        raise IndexError("bad index")

    app.controller.tick = broken_tick  # type: ignore[method-assign]
    with pytest.raises(IndexError):
        app._on_tick()


@pytest.mark.asyncio
async def test_app_quit_binding():
    """Test ctrl+q quits and stops tracing."""
    app, sessions = make_app(initial_pid=200)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("ctrl+q")
        assert app.controller.should_quit
        assert sessions.last.stopped


@pytest.mark.asyncio
async def test_unmount_closes_session():
    """Test no session is left running after the app exits."""
    app, sessions = make_app(initial_pid=200)
    async with app.run_test() as pilot:
        await pilot.pause()
        assert sessions.last.is_running
    assert not sessions.last.is_running
