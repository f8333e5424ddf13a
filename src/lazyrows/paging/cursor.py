"""
WindowedCursor: a randomly addressable view over a query result that is only
ever fetched in windows.

================================================================================
DATA FLOW - POSITION TO CELL
================================================================================

    move_to_position(p)
        |
        v
    _ensure_count()        count query runs once per epoch; the window array
        |                  is allocated as empty slots sized by block_count()
        v
    active window?  --yes (covers p)-->  window.move_to_absolute(p)
        | no
        v
    scan slots 0..n        empty slots are filled with Window objects built
        |                  from block_offset()/block_size() as they are passed
        v
    covering window  -> becomes the active window -> move_to_absolute(p)
        |
        v
    Window.materialize()   one ranged fetch per window per epoch
        |
        v
    get_string(col) / get_int(col) / ...  delegate to the fetched row set

================================================================================
EPOCHS
================================================================================

An epoch is one resolved count plus its window partition.

- invalidate(): the source reported a change. The count becomes unknown and the
  active window is dropped. Windows are NOT closed here; they are closed when
  the next count resolves and the slots are reallocated.
- requery(): re-executes the count query immediately. On failure nothing
  changes and False is returned. On success every window of the old epoch is
  closed and a fresh, empty partition is installed.

A count query that produces no value is treated as an empty result (zero rows)
both on first resolution and on requery.

Not thread safe. Every call may block on the data source.
================================================================================
"""

import logging
from typing import Any, Iterator, List, Optional, Tuple

from lazyrows.errors import CursorStateError, QueryExecutionError
from lazyrows.observers import (
    CallbackDataSetObserver,
    ContentObserver,
    DataSetObserver,
    ObserverSet,
    notify_changed,
)
from lazyrows.paging.count import CountResource
from lazyrows.paging.partition import (
    DEFAULT_PARTITION,
    PartitionConfig,
    block_count,
    block_offset,
    block_size,
)
from lazyrows.paging.window import Window, WindowContext
from lazyrows.query.fingerprint import hash_query
from lazyrows.query.spec import QuerySpec, derive_column_names
from lazyrows.rows import RowSource
from lazyrows.sources.base import DataSource

logger = logging.getLogger(__name__)


class WindowedCursor(RowSource):
    """
    Lazily windowed cursor over a data source.

    Example:
        >>> source = SQLiteDataSource("app.db")
        >>> spec = QuerySpec(
        ...     columns=("id", "name"),
        ...     order_by="id",
        ...     operations=(tables("items"),),
        ... )
        >>> with WindowedCursor(source, spec) as cursor:
        ...     cursor.get_count()
        ...     if cursor.move_to_position(4000):
        ...         print(cursor.get_string(1))
    """

    def __init__(
        self,
        source: DataSource,
        spec: QuerySpec,
        partition: PartitionConfig = DEFAULT_PARTITION,
    ):
        """
        Args:
            source: Data source executing count and fetch queries
            spec: Query to page through; its operations are applied here, once
            partition: Window sizing
        """
        self._query = source.bind(spec)
        self._partition = partition
        self.fingerprint = hash_query(spec)

        self._counter: Optional[CountResource] = None
        self._count: Optional[int] = None
        self._windows: List[Optional[Window]] = []
        self._active: Optional[Window] = None
        self._position = -1
        self._epoch = 0
        self._column_names: Optional[Tuple[str, ...]] = None
        self._closed = False

        self._data_set_observers: ObserverSet[DataSetObserver] = ObserverSet()
        self._content_observers: ObserverSet[ContentObserver] = ObserverSet()
        self._invalidation_observer = CallbackDataSetObserver(
            on_invalidated=self.invalidate
        )
        self._context = WindowContext(
            query=self._query,
            column_names=self.get_column_names,
            data_set_observers=self._data_set_observers,
            content_observers=self._content_observers,
        )

    # ------------------------------------------------------------------
    # Count and partition lifecycle
    # ------------------------------------------------------------------

    @property
    def spec(self) -> QuerySpec:
        return self._query.spec

    @property
    def partition(self) -> PartitionConfig:
        return self._partition

    @property
    def epoch(self) -> int:
        """Number of times the count has been resolved."""
        return self._epoch

    def _check_open(self) -> None:
        if self._closed:
            raise CursorStateError("Cursor is closed")

    def _open_counter(self) -> CountResource:
        counter = CountResource(self._query, self._query.spec.limit)
        counter.register_data_set_observer(self._invalidation_observer)
        for observer in self._data_set_observers:
            counter.register_data_set_observer(observer)
        for observer in self._content_observers:
            counter.register_content_observer(observer)
        return counter

    def _ensure_count(self) -> None:
        self._check_open()
        if self._count is not None:
            return

        if self._counter is None:
            self._counter = self._open_counter()
        else:
            self._counter.refresh()
        self._reallocate(self._counter.value)

    def _reallocate(self, value: Optional[int]) -> None:
        count = 0 if value is None else value
        n_windows = block_count(
            count, self._partition.block_size, self._partition.max_block_size
        )
        stale = self._windows

        self._count = count
        self._windows = [None] * n_windows
        self._active = None
        self._epoch += 1

        for window in stale:
            if window is not None:
                window.close()

        logger.debug(
            "[%s] epoch %d: %d rows in %d windows",
            self.fingerprint[:8],
            self._epoch,
            count,
            n_windows,
        )

    def invalidate(self) -> None:
        """Forget the resolved count; the next access re-issues the count query."""
        if self._count is None:
            return
        logger.debug("[%s] invalidated at epoch %d", self.fingerprint[:8], self._epoch)
        self._count = None
        self._active = None
        self._position = -1

    def requery(self) -> bool:
        """
        Re-execute the count query and rebuild the window partition.

        Returns:
            True on success. False if the cursor is closed or the count query
            failed, in which case count, windows and current row are unchanged.
        """
        if self._closed:
            return False

        if self._counter is None:
            try:
                self._ensure_count()
            except QueryExecutionError as e:
                logger.warning("[%s] requery failed: %s", self.fingerprint[:8], e)
                return False
        else:
            if not self._counter.requery():
                return False
            self._reallocate(self._counter.value)

        self._position = -1
        notify_changed(self._data_set_observers)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        for window in self._windows:
            if window is not None:
                window.close()
        self._windows = []
        self._active = None
        self._position = -1

        if self._counter is not None:
            self._counter.close()
            self._counter = None
        logger.debug("[%s] closed", self.fingerprint[:8])

    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Counting and columns
    # ------------------------------------------------------------------

    def get_count(self) -> int:
        self._ensure_count()
        self.get_column_names()
        return self._count

    def __len__(self) -> int:
        return self.get_count()

    def get_column_names(self) -> List[str]:
        """
        Column names of the result, resolved once per cursor.

        Sources that support a column query are asked with a zero-row fetch.
        Otherwise names are derived from the projected columns; a query that
        projects every column (columns=None) falls back to the zero-row fetch.
        """
        if self._column_names is None:
            source = self._query.source
            names = None
            if not source.supports_column_query:
                names = derive_column_names(self._query.spec.columns)
            if names is None:
                names = source.query_column_names(self._query)
            self._column_names = tuple(names)
        return list(self._column_names)

    def get_column_count(self) -> int:
        return len(self.get_column_names())

    def get_column_index(self, name: str) -> int:
        """Index of a column by name, -1 if absent."""
        try:
            return self.get_column_names().index(name)
        except ValueError:
            return -1

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def window_count(self) -> int:
        self._ensure_count()
        return len(self._windows)

    def window_at(self, index: int) -> Window:
        """Window at a partition index, created empty on first request."""
        self._ensure_count()
        window = self._windows[index]
        if window is None:
            base = self._partition.block_size
            cap = self._partition.max_block_size
            window = Window(
                self._context,
                index,
                block_offset(base, index, cap),
                block_size(base, index, cap),
            )
            self._windows[index] = window
        return window

    def materialized_windows(self) -> List[Window]:
        return [w for w in self._windows if w is not None and w.is_materialized]

    def _on_move(self, position: int) -> bool:
        active = self._active
        if active is not None and active.covers(position):
            return active.move_to_absolute(position)

        for index in range(len(self._windows)):
            window = self.window_at(index)
            if window.covers(position):
                self._active = window
                return window.move_to_absolute(position)

        return False

    # ------------------------------------------------------------------
    # Positioning
    # ------------------------------------------------------------------

    def get_position(self) -> int:
        return self._position

    def move_to_position(self, position: int) -> bool:
        """
        Make the row at an absolute position current.

        Returns:
            False if position is outside [0, count) or the owning window
            cannot be positioned there.

        Raises:
            QueryExecutionError: If the count or the window fetch fails
        """
        self._ensure_count()

        count = self._count
        if position >= count:
            self._position = count
            return False
        if position < 0:
            self._position = -1
            return False

        if self._on_move(position):
            self._position = position
            return True
        self._position = -1
        return False

    def move(self, offset: int) -> bool:
        return self.move_to_position(self._position + offset)

    def move_to_first(self) -> bool:
        return self.move_to_position(0)

    def move_to_last(self) -> bool:
        return self.move_to_position(self.get_count() - 1)

    def move_to_next(self) -> bool:
        return self.move_to_position(self._position + 1)

    def move_to_previous(self) -> bool:
        return self.move_to_position(self._position - 1)

    def is_before_first(self) -> bool:
        self._ensure_count()
        return self._count == 0 or self._position == -1

    def is_after_last(self) -> bool:
        self._ensure_count()
        return self._count == 0 or self._position == self._count

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def _current(self) -> Window:
        self._check_open()
        if self._active is None or self._count is None:
            raise CursorStateError("No current row; call move_to_position() first")
        if self._position < 0 or self._position >= self._count:
            raise CursorStateError(
                f"No current row at position {self._position} (count {self._count})"
            )
        return self._active

    def get_value(self, column: int) -> Any:
        return self._current().get_value(column)

    def get_string(self, column: int) -> Optional[str]:
        return self._current().get_string(column)

    def get_int(self, column: int) -> int:
        return self._current().get_int(column)

    def get_float(self, column: int) -> float:
        return self._current().get_float(column)

    def get_blob(self, column: int) -> Optional[bytes]:
        return self._current().get_blob(column)

    def is_null(self, column: int) -> bool:
        return self._current().is_null(column)

    def get_row(self) -> Tuple[Any, ...]:
        window = self._current()
        return tuple(window.get_value(i) for i in range(self.get_column_count()))

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        """Yield every row as a tuple, scanning from the first position."""
        position = 0
        while self.move_to_position(position):
            yield self.get_row()
            position += 1

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def _live_windows(self) -> List[Window]:
        return [w for w in self._windows if w is not None]

    def register_data_set_observer(self, observer: DataSetObserver) -> None:
        self._data_set_observers.add(observer)
        for window in self._live_windows():
            window.register_data_set_observer(observer)
        if self._counter is not None:
            self._counter.register_data_set_observer(observer)

    def unregister_data_set_observer(self, observer: DataSetObserver) -> None:
        self._data_set_observers.discard(observer)
        for window in self._live_windows():
            window.unregister_data_set_observer(observer)
        if self._counter is not None:
            self._counter.unregister_data_set_observer(observer)

    def register_content_observer(self, observer: ContentObserver) -> None:
        self._content_observers.add(observer)
        for window in self._live_windows():
            window.register_content_observer(observer)
        if self._counter is not None:
            self._counter.register_content_observer(observer)

    def unregister_content_observer(self, observer: ContentObserver) -> None:
        self._content_observers.discard(observer)
        for window in self._live_windows():
            window.unregister_content_observer(observer)
        if self._counter is not None:
            self._counter.unregister_content_observer(observer)

    def __repr__(self) -> str:
        count = "?" if self._count is None else self._count
        return (
            f"WindowedCursor({self.fingerprint[:8]}, count={count}, "
            f"epoch={self._epoch}, windows={len(self._windows)})"
        )
