"""
Windows: contiguous slices of a cursor's result, fetched on first use.

A Window covers absolute positions [offset, offset + size). It is created empty
and issues exactly one fetch to its data source the first time it is
positioned. The fetched ArrowRowSet is kept until the window is closed, so
later moves inside the window cost no further queries.

Observers registered on the cursor before a window materializes are published
to the row set at materialization time; observers registered afterwards are
attached to it directly by the cursor.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import pyarrow as pa

from lazyrows.errors import CursorStateError, RowSetClosedError
from lazyrows.observers import ContentObserver, DataSetObserver, ObserverSet
from lazyrows.rows import ArrowRowSet, RowSource
from lazyrows.sources.base import BoundQuery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowContext:
    """
    State a cursor shares read-only with all of its windows.

    Attributes:
        query: Bound query every window fetches from
        column_names: Returns the cursor's resolved column names
        data_set_observers: The cursor's canonical data set observers
        content_observers: The cursor's canonical content observers
    """

    query: BoundQuery
    column_names: Callable[[], List[str]]
    data_set_observers: ObserverSet
    content_observers: ObserverSet


class Window(RowSource):
    """One lazily fetched slice of a windowed cursor."""

    def __init__(self, context: WindowContext, index: int, offset: int, size: int):
        self._context = context
        self._index = index
        self._offset = offset
        self._size = size
        self._rows: Optional[ArrowRowSet] = None
        self._closed = False

    @property
    def index(self) -> int:
        return self._index

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def size(self) -> int:
        return self._size

    @property
    def is_materialized(self) -> bool:
        return self._rows is not None

    def is_closed(self) -> bool:
        return self._closed

    def covers(self, position: int) -> bool:
        return self._offset <= position < self._offset + self._size

    def materialize(self) -> ArrowRowSet:
        """
        Fetch this window's rows if not fetched yet.

        Raises:
            QueryExecutionError: If the fetch cannot be executed
            RowSetClosedError: If the window was closed
        """
        if self._closed:
            raise RowSetClosedError(f"Window {self._index} is closed")
        if self._rows is not None:
            return self._rows

        query = self._context.query
        logger.debug(
            "Materializing window %d [%d, %d)",
            self._index,
            self._offset,
            self._offset + self._size,
        )
        rows = query.source.fetch(query, self._offset, self._size)

        for observer in self._context.content_observers:
            rows.register_content_observer(observer)
        for observer in self._context.data_set_observers:
            rows.register_data_set_observer(observer)

        self._rows = rows
        return rows

    @property
    def table(self) -> pa.Table:
        """Fetched rows of this window as an Arrow table."""
        return self.materialize().table

    def get_count(self) -> int:
        """Rows fetched once materialized, the nominal size before, 0 once closed."""
        if self._closed:
            return 0
        if self._rows is not None:
            return self._rows.get_count()
        return self._size

    def move_to_absolute(self, position: int) -> bool:
        return self.move_to_position(position - self._offset)

    def move_to_position(self, position: int) -> bool:
        """Move to a position local to this window, fetching on first use."""
        if self._closed:
            return False
        rows = self.materialize()
        try:
            return rows.move_to_position(position)
        except RowSetClosedError:
            return False

    def _current(self) -> ArrowRowSet:
        if self._rows is None:
            raise CursorStateError(
                f"Window {self._index} read before it was positioned"
            )
        return self._rows

    def get_column_names(self) -> List[str]:
        return self._context.column_names()

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

    def close(self) -> None:
        if self._rows is not None:
            self._rows.close()
            self._rows = None
        self._closed = True

    def register_data_set_observer(self, observer: DataSetObserver) -> None:
        if self._rows is not None:
            self._rows.register_data_set_observer(observer)

    def unregister_data_set_observer(self, observer: DataSetObserver) -> None:
        if self._rows is not None:
            self._rows.unregister_data_set_observer(observer)

    def register_content_observer(self, observer: ContentObserver) -> None:
        if self._rows is not None:
            self._rows.register_content_observer(observer)

    def unregister_content_observer(self, observer: ContentObserver) -> None:
        if self._rows is not None:
            self._rows.unregister_content_observer(observer)

    def __repr__(self) -> str:
        state = "materialized" if self._rows is not None else "empty"
        return f"Window({self._index}, [{self._offset}, {self._offset + self._size}), {state})"
