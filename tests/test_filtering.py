"""Tests for FilterableList."""

from syswatch.filtering import FilterableList
from syswatch.models import ProcessRecord, SyscallSet


class TestFilterableListView:
    """Tests for filtering and ordering."""

    def test_empty_query_shows_all_in_order(self):
        """Test the view equals the backing order with no query."""
        items = FilterableList(["open", "openat", "close"])
        assert items.current_view() == ["open", "openat", "close"]

    def test_query_filters_and_orders(self):
        """Test matches are ordered by score and non-matches dropped."""
        items = FilterableList(["open", "openat", "close"])
        items.set_query("op")
        assert items.current_view() == ["open", "openat"]

    def test_no_match_gives_empty_view(self):
        """Test a query matching nothing yields an empty view."""
        items = FilterableList(["read", "write"])
        items.set_query("xyz")
        assert items.current_view() == []
        assert len(items) == 0

    def test_ties_keep_backing_order(self):
        """Test equal scores fall back to backing order."""
        items = FilterableList(["read_b", "read_a"])
        items.set_query("read")
        assert items.current_view() == ["read_b", "read_a"]

    def test_custom_key(self):
        """Test items are matched through the key function."""
        records = [
            ProcessRecord(10, "bash", "/bin/bash"),
            ProcessRecord(20, "nginx", "nginx: master"),
        ]
        items = FilterableList(records, key=lambda record: record.name)
        items.set_query("ngx")
        assert items.current_view() == [records[1]]

    def test_view_is_a_copy(self):
        """Test mutating the returned view does not affect the list."""
        items = FilterableList(["a", "b"])
        view = items.current_view()
        view.clear()
        assert items.current_view() == ["a", "b"]

    def test_set_items_copies(self):
        """Test set_items keeps a private copy of the items."""
        source = ["a", "b"]
        items = FilterableList()
        items.set_items(source)
        source.append("c")
        assert items.current_view() == ["a", "b"]

    def test_unicode_items_filter(self):
        """Test querying items whose lowercase form is longer than the original."""
        items = FilterableList(["İİsrv", "bash"])
        items.set_query("x")
        assert items.current_view() == []
        items.set_query("srv")
        assert items.current_view() == ["İİsrv"]


class TestFilterableListBinding:
    """Tests for binding to a live SyscallSet."""

    def test_bound_view_sees_appends(self):
        """Test the view reflects names added to the bound set."""
        syscalls = SyscallSet(["read"])
        items: FilterableList[str] = FilterableList()
        items.bind(syscalls)
        assert items.current_view() == ["read"]

        syscalls.add("write")
        assert items.current_view() == ["read", "write"]

    def test_bound_view_with_query(self):
        """Test filtering applies to names added after the query was set."""
        syscalls = SyscallSet()
        items: FilterableList[str] = FilterableList()
        items.bind(syscalls)
        items.set_query("op")

        syscalls.update(["openat", "read", "open"])
        assert items.current_view() == ["open", "openat"]

    def test_items_returns_backing(self):
        """Test items exposes the bound sequence itself."""
        syscalls = SyscallSet(["read"])
        items: FilterableList[str] = FilterableList()
        items.bind(syscalls)
        assert items.items is syscalls

    def test_cleared_and_refilled_set_is_not_stale(self):
        """Test a bound set refilled to the same length shows the new names."""
        syscalls = SyscallSet(["open", "read"])
        items: FilterableList[str] = FilterableList()
        items.bind(syscalls)
        assert items.current_view() == ["open", "read"]

        syscalls.clear()
        syscalls.update(["close", "mmap"])

        assert items.current_view() == ["close", "mmap"]


class TestFilterableListSelection:
    """Tests for selection clamping."""

    def test_selection_starts_at_zero(self):
        items = FilterableList(["a", "b", "c"])
        assert items.selected_index == 0
        assert items.selected_item() == "a"

    def test_move_selection_clamps_at_bounds(self):
        """Test moving past either end stays on the edge."""
        items = FilterableList(["a", "b", "c"])
        assert items.move_selection(1) == 1
        assert items.move_selection(10) == 2
        assert items.move_selection(-10) == 0

    def test_empty_list_selection(self):
        """Test selection is 0 and there is no item when empty."""
        items: FilterableList[str] = FilterableList()
        assert items.move_selection(1) == 0
        assert items.selected_item() is None

    def test_query_reclamps_selection(self):
        """Test narrowing the view pulls the selection back in range."""
        items = FilterableList(["open", "openat", "close", "read"])
        items.selected_index = 3
        items.set_query("op")
        assert items.selected_index == 1
        assert items.selected_item() == "openat"

    def test_setter_clamps(self):
        """Test assigning an out-of-range index clamps it."""
        items = FilterableList(["a", "b"])
        items.selected_index = 99
        assert items.selected_index == 1
        items.selected_index = -5
        assert items.selected_index == 0

    def test_select_where(self):
        """Test select_where moves to the first visible match."""
        items = FilterableList([1, 2, 3, 4], key=str)
        assert items.select_where(lambda item: item % 2 == 0) is True
        assert items.selected_item() == 2
        assert items.select_where(lambda item: item > 10) is False
        assert items.selected_item() == 2
