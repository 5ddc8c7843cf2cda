"""Data models for syswatch."""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of a process that can be traced."""

    pid: int
    name: str
    command: str  # Full command line, falls back to name


class SessionState(Enum):
    """Lifecycle states of a tracer session."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    EXITED = "exited"


class ExitReason(Enum):
    """Why a tracer session ended."""

    SPAWN_FAILURE = "spawn_failure"
    PERMISSION_DENIED = "permission_denied"
    TRACER_EXITED = "tracer_exited"
    TARGET_EXITED = "target_exited"
    TARGET_KILLED = "target_killed"
    USER_STOPPED = "user_stopped"

    @property
    def label(self) -> str:
        """Short human-readable description."""
        return _EXIT_LABELS[self]


_EXIT_LABELS = {
    ExitReason.SPAWN_FAILURE: "tracer failed to start",
    ExitReason.PERMISSION_DENIED: "permission denied",
    ExitReason.TRACER_EXITED: "tracer exited",
    ExitReason.TARGET_EXITED: "process exited",
    ExitReason.TARGET_KILLED: "process killed",
    ExitReason.USER_STOPPED: "tracing stopped",
}


class SyscallSet(Sequence[str]):
    """
    Insertion-ordered set of syscall names.

    Re-adding a known name is a no-op: length and positions of existing
    entries never change. Iteration order is first-insertion order.
    """

    __slots__ = ("_order", "_seen", "_generation")

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._order: list[str] = []
        self._seen: set[str] = set()
        self._generation = 0
        self.update(names)

    def add(self, name: str) -> bool:
        """Add a name, returning True if it was not already present."""
        if name in self._seen:
            return False
        self._seen.add(name)
        self._order.append(name)
        return True

    def update(self, names: Iterable[str]) -> list[str]:
        """Add several names in order and return the ones that were new."""
        return [name for name in names if self.add(name)]

    @property
    def generation(self) -> int:
        """Bumped by clear(), so equal lengths can still mean different contents."""
        return self._generation

    def clear(self) -> None:
        self._order.clear()
        self._seen.clear()
        self._generation += 1

    def __len__(self) -> int:
        return len(self._order)

    def __getitem__(self, index):  # type: ignore[override]
        return self._order[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)

    def __contains__(self, name: object) -> bool:
        return name in self._seen

    def __repr__(self) -> str:
        return f"SyscallSet({self._order!r})"
