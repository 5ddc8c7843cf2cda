"""Line lexer for strace output.

Each line is classified on its own; there is no state carried between lines.
Anything that is not clearly a syscall entry is reported as a non-call kind,
never as an error, so truncated writes and unknown diagnostics are harmless.
"""

import re
from dataclasses import dataclass
from enum import Enum


class LineKind(Enum):
    """What a single tracer output line represents."""

    CALL = "call"  # name(args) = result
    UNFINISHED = "unfinished"  # name(args <unfinished ...>
    RESUMED = "resumed"  # <... name resumed> args) = result
    SIGNAL = "signal"  # --- SIGCHLD {...} ---
    EXIT = "exit"  # +++ exited with 0 +++ / +++ killed by SIGKILL +++
    DIAGNOSTIC = "diagnostic"  # strace: ...
    IGNORED = "ignored"  # empty, garbage, truncated fragments


@dataclass(slots=True, frozen=True)
class TraceLine:
    """Result of classifying one line of tracer output."""

    kind: LineKind
    syscall: str | None = None
    pid: int | None = None  # From a "[pid N]" or bare "N" prefix
    exit_status: int | None = None
    exit_signal: str | None = None
    permission_error: bool = False


# One prefix token at a time: "[pid  123]", "123", "12:34:56[.123456]", "1690000000.123456"
_PREFIX = re.compile(
    r"""
    \s*(?:
        \[pid\s+(?P<bracket_pid>\d+)\]
      | (?P<clock>\d{1,2}:\d{2}:\d{2}(?:\.\d+)?)(?=\s)
      | (?P<epoch>\d+\.\d+)(?=\s)
      | (?P<bare_pid>\d+)(?=\s)
    )\s*
    """,
    re.VERBOSE,
)
_CALL = re.compile(r"(?P<name>[A-Za-z_][A-Za-z0-9_]*)\(")
_EXITED = re.compile(r"\+\+\+ exited with (?P<status>-?\d+) \+\+\+")
_KILLED = re.compile(r"\+\+\+ killed by (?P<signal>SIG[A-Z0-9]+)")
_UNFINISHED_MARKER = "<unfinished ...>"
_PERMISSION_MARKERS = ("Operation not permitted", "Permission denied")

_IGNORED = TraceLine(LineKind.IGNORED)


def _strip_prefix(text: str) -> tuple[str, int | None]:
    """Remove leading PID and timestamp tokens, returning the rest and any PID seen."""
    pid = None
    while True:
        match = _PREFIX.match(text)
        if match is None or match.end() == 0:
            return text, pid
        found = match.group("bracket_pid") or match.group("bare_pid")
        if found is not None:
            pid = int(found)
        text = text[match.end() :]


def classify_line(raw: str | bytes) -> TraceLine:
    """Classify a raw tracer output line. Never raises for str or bytes input."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    elif not isinstance(raw, str):
        return _IGNORED

    text = raw.strip()
    if not text:
        return _IGNORED

    if text.startswith("strace:"):
        permission = any(marker in text for marker in _PERMISSION_MARKERS)
        return TraceLine(LineKind.DIAGNOSTIC, permission_error=permission)

    body, pid = _strip_prefix(text)

    if body.startswith("---"):
        return TraceLine(LineKind.SIGNAL, pid=pid)

    if body.startswith("+++"):
        exited = _EXITED.match(body)
        if exited:
            return TraceLine(LineKind.EXIT, pid=pid, exit_status=int(exited.group("status")))
        killed = _KILLED.match(body)
        if killed:
            return TraceLine(LineKind.EXIT, pid=pid, exit_signal=killed.group("signal"))
        return TraceLine(LineKind.IGNORED, pid=pid)

    if body.startswith("<..."):
        return TraceLine(LineKind.RESUMED, pid=pid)

    call = _CALL.match(body)
    if call is None:
        return TraceLine(LineKind.IGNORED, pid=pid)

    name = call.group("name")
    if body.endswith(_UNFINISHED_MARKER):
        return TraceLine(LineKind.UNFINISHED, syscall=name, pid=pid)
    return TraceLine(LineKind.CALL, syscall=name, pid=pid)


def parse_line(raw: str | bytes) -> str | None:
    """Extract the syscall name from a tracer output line, or None."""
    return classify_line(raw).syscall
