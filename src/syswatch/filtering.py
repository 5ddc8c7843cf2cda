"""Fuzzy-filterable list with clamped selection."""

from collections.abc import Callable, Iterable, Sequence
from typing import Generic, TypeVar

from syswatch.fuzzy import score

T = TypeVar("T")


class FilterableList(Generic[T]):
    """
    Ordered backing items plus a live query, exposing a filtered view.

    The view keeps items whose key fuzzy-matches the query, ordered by
    descending score and then by backing order. The backing sequence is
    either a private tuple (set_items) or a live append-only sequence such
    as a SyscallSet (bind); the cached view is keyed on the query and the
    backing's identity, length and generation so it is never stale for either.
    """

    def __init__(self, items: Iterable[T] = (), key: Callable[[T], str] = str) -> None:
        """
        Initialize the FilterableList.

        Args:
            items: Initial backing items (copied).
            key: Maps an item to the text the query is matched against.
        """
        self._key = key
        self._backing: Sequence[T] = tuple(items)
        self._query = ""
        self._selected = 0
        self._cache_key: tuple[str, int, int, int] | None = None
        self._cache: list[T] = []

    @property
    def query(self) -> str:
        return self._query

    @property
    def items(self) -> Sequence[T]:
        """The backing sequence, unfiltered."""
        return self._backing

    def set_query(self, text: str) -> None:
        """Replace the query and re-clamp the selection."""
        self._query = text
        self._clamp()

    def set_items(self, items: Iterable[T]) -> None:
        """Replace the backing items with a private copy."""
        self._backing = tuple(items)
        self._cache_key = None
        self._clamp()

    def bind(self, backing: Sequence[T]) -> None:
        """Use a live append-only sequence as the backing collection."""
        self._backing = backing
        self._cache_key = None
        self._clamp()

    def current_view(self) -> list[T]:
        """Return the filtered, score-ordered view."""
        # generation: a cleared and refilled SyscallSet can keep its length
        generation = getattr(self._backing, "generation", 0)
        cache_key = (self._query, id(self._backing), len(self._backing), generation)
        if cache_key != self._cache_key:
            self._cache = self._compute_view()
            self._cache_key = cache_key
        return list(self._cache)

    def _compute_view(self) -> list[T]:
        if not self._query:
            return list(self._backing)
        scored = []
        for position, item in enumerate(self._backing):
            value = score(self._query, self._key(item))
            if value is not None:
                scored.append((-value, position, item))
        # Position as secondary key keeps ties in backing order
        scored.sort(key=lambda entry: (entry[0], entry[1]))
        return [item for _, _, item in scored]

    @property
    def selected_index(self) -> int:
        """Selection index, always within the current view (0 when empty)."""
        self._clamp()
        return self._selected

    @selected_index.setter
    def selected_index(self, value: int) -> None:
        self._selected = value
        self._clamp()

    def move_selection(self, delta: int) -> int:
        """Move the selection by delta, clamping at both ends."""
        self._selected += delta
        self._clamp()
        return self._selected

    def selected_item(self) -> T | None:
        view = self.current_view()
        if not view:
            return None
        return view[self.selected_index]

    def select_where(self, predicate: Callable[[T], bool]) -> bool:
        """Move the selection to the first visible item matching predicate."""
        for index, item in enumerate(self.current_view()):
            if predicate(item):
                self._selected = index
                return True
        return False

    def _clamp(self) -> None:
        size = len(self.current_view())
        if size == 0:
            self._selected = 0
        else:
            self._selected = max(0, min(self._selected, size - 1))

    def __len__(self) -> int:
        return len(self.current_view())
