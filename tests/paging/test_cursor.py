"""
Tests for lazyrows.paging.cursor.WindowedCursor.

Covers:
- Lazy count resolution (one count query per epoch)
- Routing positions to windows, active window fast path
- Sequential scans against a direct read of the full result
- invalidate() / requery() epochs, including failure rollback
- Empty results and count queries that produce no value
- Observer cascading
- close() idempotence
"""

import pyarrow as pa
import pytest

from lazyrows.errors import CursorStateError, QueryExecutionError
from lazyrows.observers import CallbackDataSetObserver, ContentObserver, DataSetObserver
from lazyrows.paging.cursor import WindowedCursor
from lazyrows.paging.partition import PartitionConfig
from lazyrows.query.spec import QuerySpec

BASE10 = PartitionConfig(block_size=10)


@pytest.fixture
def cursor(source_5000, plain_spec):
    cursor = WindowedCursor(source_5000, plain_spec, BASE10)
    yield cursor
    cursor.close()


class RecordingObserver(DataSetObserver):
    def __init__(self):
        self.events = []

    def on_changed(self):
        self.events.append("changed")

    def on_invalidated(self):
        self.events.append("invalidated")


class RecordingContentObserver(ContentObserver):
    def __init__(self):
        self.changes = 0

    def on_change(self, self_change=False):
        self.changes += 1


class TestLazyCount:
    """Test count resolution."""

    def test_construction_runs_no_queries(self, source_5000, plain_spec):
        WindowedCursor(source_5000, plain_spec, BASE10)

        assert source_5000.count_calls == 0
        assert source_5000.fetch_calls == []

    def test_get_count_runs_count_once(self, cursor, source_5000):
        assert cursor.get_count() == 5000
        assert cursor.get_count() == 5000
        assert len(cursor) == 5000

        assert source_5000.count_calls == 1

    def test_partition_allocated_empty(self, cursor, source_5000):
        cursor.get_count()

        assert cursor.window_count() == 11
        assert cursor.materialized_windows() == []
        # only the zero-row column name fetch
        assert source_5000.fetch_calls == [(0, 0)]

    def test_count_respects_limit(self, source_5000):
        cursor = WindowedCursor(
            source_5000, QuerySpec(columns=("id",), limit="100,25"), BASE10
        )

        assert cursor.get_count() == 25
        assert cursor.move_to_position(24)
        assert cursor.get_int(0) == 124
        assert not cursor.move_to_position(25)

    def test_count_failure_propagates(self, source_5000, plain_spec):
        source_5000.fail_count = True
        cursor = WindowedCursor(source_5000, plain_spec, BASE10)

        with pytest.raises(QueryExecutionError):
            cursor.get_count()


class TestPositioning:
    """Test routing positions to windows."""

    def test_position_2300_routes_to_window_at_2294(self, cursor, source_5000):
        assert cursor.move_to_position(2300)

        assert cursor.get_int(0) == 2300
        assert source_5000.fetch_calls == [(2294, 1024)]
        [window] = cursor.materialized_windows()
        assert (window.index, window.offset, window.size) == (8, 2294, 1024)

    def test_active_window_reused_for_neighbours(self, cursor, source_5000):
        cursor.move_to_position(2300)
        cursor.move_to_position(2301)
        cursor.move_to_position(3317)

        assert len(source_5000.fetch_calls) == 1

    def test_out_of_range_positions_fail(self, cursor, source_5000):
        assert not cursor.move_to_position(5000)
        assert cursor.is_after_last()
        assert not cursor.move_to_position(-1)
        assert cursor.is_before_first()
        assert source_5000.fetch_calls == []

    def test_read_without_current_row_is_misuse(self, cursor):
        with pytest.raises(CursorStateError):
            cursor.get_string(0)

        cursor.move_to_position(5000)
        with pytest.raises(CursorStateError):
            cursor.get_int(0)

    def test_relative_moves(self, cursor):
        assert cursor.move_to_first()
        assert cursor.get_int(0) == 0
        assert cursor.move_to_next()
        assert cursor.get_int(0) == 1
        assert cursor.move(10)
        assert cursor.get_position() == 11
        assert cursor.move_to_previous()
        assert cursor.get_int(0) == 10
        assert cursor.move_to_last()
        assert cursor.get_int(0) == 4999
        assert not cursor.move_to_next()

    def test_random_access_fetches_only_owning_windows(self, cursor, source_5000):
        cursor.move_to_position(4999)
        cursor.move_to_position(5)

        assert sorted(source_5000.fetch_calls) == [(0, 10), (4342, 1024)]


class TestSequentialScan:
    def test_scan_matches_direct_read(self, source_5000, plain_spec):
        """Every index is visited once and matches the unwindowed table."""
        expected = source_5000.table.to_pylist()
        cursor = WindowedCursor(source_5000, plain_spec, BASE10)

        seen = []
        for position in range(cursor.get_count()):
            assert cursor.move_to_position(position)
            seen.append(
                {
                    "id": cursor.get_int(0),
                    "name": cursor.get_string(1),
                    "score": cursor.get_float(2),
                }
            )

        assert seen == expected
        assert [offset for offset, size in source_5000.fetch_calls if size] == [
            0, 10, 30, 70, 150, 310, 630, 1270, 2294, 3318, 4342,
        ]

    def test_iteration_yields_row_tuples(self, counting_source, plain_spec):
        source = counting_source(35)
        cursor = WindowedCursor(source, plain_spec, BASE10)

        rows = list(cursor)

        assert len(rows) == 35
        assert rows[34] == (34, "row-34", 17.0)


class TestColumnNames:
    def test_source_with_column_query_uses_zero_row_fetch(self, source_5000):
        cursor = WindowedCursor(source_5000, QuerySpec(columns=("id", "name label")))

        assert cursor.get_column_names() == ["id", "label"]
        assert source_5000.fetch_calls == [(0, 0)]

    def test_resolved_once(self, cursor, source_5000):
        cursor.get_column_names()
        cursor.get_column_names()
        cursor.requery()
        cursor.get_column_names()

        assert source_5000.fetch_calls.count((0, 0)) == 1

    def test_column_index(self, cursor):
        assert cursor.get_column_index("score") == 2
        assert cursor.get_column_index("missing") == -1


class TestInvalidate:
    """Test invalidation through source change notification."""

    def test_source_change_invalidates(self, cursor, source_5000):
        cursor.get_count()

        source_5000.notify_changed()
        cursor.get_count()
        cursor.get_count()

        assert source_5000.count_calls == 2

    def test_explicit_invalidate_reissues_one_count(self, cursor, source_5000):
        cursor.move_to_position(5)
        epoch = cursor.epoch

        cursor.invalidate()
        cursor.invalidate()

        assert cursor.get_position() == -1
        assert cursor.move_to_position(6)
        assert cursor.get_count() == 5000
        assert source_5000.count_calls == 2
        assert cursor.epoch == epoch + 1

    def test_windows_not_closed_until_count_resolves(self, cursor, source_5000):
        cursor.move_to_position(5)
        rows = source_5000.fetched[0]

        cursor.invalidate()
        assert not rows.is_closed()

        cursor.get_count()
        assert rows.is_closed()

    def test_replaced_table_visible_after_invalidation(self, cursor, source_5000):
        cursor.move_to_position(3)
        source_5000.replace_table(pa.table({"id": [7], "name": ["x"], "score": [1.0]}))

        assert cursor.get_count() == 1
        assert cursor.move_to_position(0)
        assert cursor.get_int(0) == 7


class TestRequery:
    """Test requery epochs."""

    def test_shrunk_dataset(self, cursor, source_5000):
        """Count drops to 3, far rows become unreachable, old windows released."""
        cursor.move_to_position(10)
        cursor.move_to_position(4000)
        old_rows = list(source_5000.fetched)
        source_5000.swap_table_silently(source_5000.table.slice(0, 3))

        assert cursor.requery()

        assert cursor.get_count() == 3
        assert cursor.window_count() == 1
        assert not cursor.move_to_position(3)
        assert not cursor.move_to_position(4000)
        assert all(rows.is_closed() for rows in old_rows)
        assert cursor.move_to_position(2)
        assert cursor.get_int(0) == 2

    def test_failed_requery_leaves_state_unchanged(self, cursor, source_5000):
        cursor.move_to_position(2300)
        before = (cursor.get_count(), cursor.get_string(1), cursor.get_position())
        windows = cursor.materialized_windows()
        epoch = cursor.epoch
        source_5000.fail_count = True

        assert not cursor.requery()

        assert (cursor.get_count(), cursor.get_string(1), cursor.get_position()) == before
        assert cursor.materialized_windows() == windows
        assert cursor.epoch == epoch
        assert not windows[0].is_closed()

    def test_failed_requery_before_first_count(self, source_5000, plain_spec):
        source_5000.fail_count = True
        cursor = WindowedCursor(source_5000, plain_spec, BASE10)

        assert not cursor.requery()

        source_5000.fail_count = False
        assert cursor.get_count() == 5000

    def test_requery_notifies_changed_after_reallocation(self, cursor):
        counts = []
        cursor.register_data_set_observer(
            CallbackDataSetObserver(on_changed=lambda: counts.append(cursor.get_count()))
        )
        cursor.get_count()

        assert cursor.requery()
        assert counts == [5000]

    def test_requery_on_closed_cursor(self, cursor):
        cursor.close()

        assert not cursor.requery()


class TestNoCountValue:
    """A count query that yields no value is treated as zero rows."""

    def test_first_resolution(self, source_5000, plain_spec):
        source_5000.no_count_value = True
        cursor = WindowedCursor(source_5000, plain_spec, BASE10)

        assert cursor.get_count() == 0
        assert not cursor.move_to_position(0)

    def test_requery_clears_partition(self, cursor, source_5000):
        cursor.move_to_position(100)
        old_rows = source_5000.fetched[-1]
        source_5000.no_count_value = True

        assert cursor.requery()

        assert cursor.get_count() == 0
        assert cursor.window_count() == 0
        assert old_rows.is_closed()


class TestEmptyResult:
    def test_zero_rows(self, counting_source, plain_spec):
        source = counting_source(0)
        cursor = WindowedCursor(source, plain_spec, BASE10)

        assert cursor.get_count() == 0
        assert cursor.window_count() == 0
        for position in (-1, 0, 1, 10):
            assert not cursor.move_to_position(position)
        assert list(cursor) == []


class TestObservers:
    """Test observer cascading."""

    def test_registration_cascades_to_materialized_windows(self, cursor, source_5000):
        cursor.move_to_position(0)
        observer = RecordingObserver()

        cursor.register_data_set_observer(observer)
        cursor.move_to_position(20)

        assert all(observer in rows.data_set_observers for rows in source_5000.fetched)

    def test_unregistration_cascades(self, cursor, source_5000):
        observer = RecordingObserver()
        cursor.register_data_set_observer(observer)
        cursor.move_to_position(0)

        cursor.unregister_data_set_observer(observer)

        assert observer not in source_5000.fetched[0].data_set_observers
        source_5000.notify_changed()
        assert observer.events == []

    def test_duplicates_ignored(self, cursor, source_5000):
        observer = RecordingObserver()
        cursor.register_data_set_observer(observer)
        cursor.register_data_set_observer(observer)
        cursor.get_count()

        source_5000.notify_changed()

        assert observer.events == ["invalidated"]

    def test_registered_before_count_reaches_count_resource(self, cursor, source_5000):
        observer = RecordingContentObserver()
        cursor.register_content_observer(observer)
        cursor.get_count()

        source_5000.notify_changed()

        assert observer.changes == 1

    def test_released_windows_notify_invalidated(self, cursor):
        observer = RecordingObserver()
        cursor.register_data_set_observer(observer)
        cursor.move_to_position(0)

        cursor.requery()

        assert observer.events == ["invalidated", "changed"]


class TestClose:
    def test_close_releases_everything(self, cursor, source_5000):
        cursor.move_to_position(0)
        cursor.move_to_position(500)

        cursor.close()

        assert all(rows.is_closed() for rows in source_5000.fetched)
        assert cursor.is_closed()
        with pytest.raises(CursorStateError):
            cursor.get_count()

    def test_close_is_idempotent(self, cursor):
        cursor.get_count()
        cursor.close()
        cursor.close()

        assert cursor.is_closed()

    def test_closed_cursor_ignores_source_changes(self, cursor, source_5000):
        cursor.get_count()
        cursor.close()

        source_5000.notify_changed()

        assert source_5000.count_calls == 1

    def test_context_manager(self, source_5000, plain_spec):
        with WindowedCursor(source_5000, plain_spec, BASE10) as cursor:
            cursor.move_to_position(1)

        assert cursor.is_closed()
        assert source_5000.fetched[0].is_closed()
