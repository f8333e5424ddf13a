"""
Positionable row sources.

RowSource is the capability set shared by everything a consumer can position
and read cells from:

    ArrowRowSet      one fetched result (a pyarrow.Table) returned by a source
    Window           a contiguous slice of the logical result, backed lazily by
                     one ArrowRowSet
    WindowedCursor   the whole logical result, routed to its Windows

Positions are zero based. A successful move_to_position() makes a row current;
cell accessors read from the current row by column index.

Typed accessors follow SQL cursor conventions for NULL:
    get_string / get_blob -> None
    get_int / get_float   -> 0 / 0.0
Use is_null() to tell a real zero from NULL.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import pyarrow as pa

from lazyrows.errors import CursorStateError, RowSetClosedError
from lazyrows.observers import (
    ContentObserver,
    DataSetObserver,
    ObserverSet,
    notify_invalidated,
)

logger = logging.getLogger(__name__)


class RowSource(ABC):
    """Interface for positionable, column indexed row sources."""

    @abstractmethod
    def get_count(self) -> int:
        """Number of rows addressable by move_to_position()."""

    @abstractmethod
    def move_to_position(self, position: int) -> bool:
        """Make the row at position current. Returns False if it does not exist."""

    @abstractmethod
    def get_column_names(self) -> List[str]:
        pass

    @abstractmethod
    def get_value(self, column: int) -> Any:
        """Raw Python value of a cell in the current row."""

    @abstractmethod
    def get_string(self, column: int) -> Optional[str]:
        pass

    @abstractmethod
    def get_int(self, column: int) -> int:
        pass

    @abstractmethod
    def get_float(self, column: int) -> float:
        pass

    @abstractmethod
    def get_blob(self, column: int) -> Optional[bytes]:
        pass

    @abstractmethod
    def is_null(self, column: int) -> bool:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @abstractmethod
    def register_data_set_observer(self, observer: DataSetObserver) -> None:
        pass

    @abstractmethod
    def unregister_data_set_observer(self, observer: DataSetObserver) -> None:
        pass

    @abstractmethod
    def register_content_observer(self, observer: ContentObserver) -> None:
        pass

    @abstractmethod
    def unregister_content_observer(self, observer: ContentObserver) -> None:
        pass


class ArrowRowSet(RowSource):
    """
    Row set over an in-memory pyarrow Table.

    Every data source returns its fetch results as an ArrowRowSet, so the paging
    layer only ever deals with one concrete result type.

    Example:
        >>> rows = ArrowRowSet(pa.table({"id": [1, 2], "name": ["a", None]}))
        >>> rows.move_to_position(1)
        True
        >>> rows.get_int(0), rows.get_string(1), rows.is_null(1)
        (2, None, True)
    """

    def __init__(self, table: pa.Table, column_names: Optional[List[str]] = None):
        """
        Args:
            table: Fetched rows
            column_names: Names reported to consumers. Defaults to the table's
                own column names.
        """
        self._table = table
        self._column_names = (
            list(column_names) if column_names is not None else list(table.column_names)
        )
        self._columns: Optional[List[List[Any]]] = None
        self._position = -1
        self._closed = False
        self._data_set_observers: ObserverSet[DataSetObserver] = ObserverSet()
        self._content_observers: ObserverSet[ContentObserver] = ObserverSet()

    @property
    def table(self) -> pa.Table:
        if self._closed:
            raise RowSetClosedError("Row set is closed")
        return self._table

    @property
    def data_set_observers(self) -> ObserverSet:
        return self._data_set_observers

    @property
    def content_observers(self) -> ObserverSet:
        return self._content_observers

    def get_count(self) -> int:
        if self._closed:
            return 0
        return self._table.num_rows

    def get_position(self) -> int:
        return self._position

    def is_closed(self) -> bool:
        return self._closed

    def move_to_position(self, position: int) -> bool:
        if self._closed:
            raise RowSetClosedError("Cannot move a closed row set")

        count = self._table.num_rows
        if position >= count:
            self._position = count
            return False
        if position < 0:
            self._position = -1
            return False

        self._position = position
        return True

    def get_column_names(self) -> List[str]:
        return self._column_names

    def _cell(self, column: int) -> Any:
        if self._closed:
            raise RowSetClosedError("Cannot read from a closed row set")
        if self._position < 0 or self._position >= self._table.num_rows:
            raise CursorStateError(
                f"No current row (position {self._position}, "
                f"count {self._table.num_rows})"
            )
        if self._columns is None:
            # Decode lazily, once per fetched window
            self._columns = [col.to_pylist() for col in self._table.columns]
        return self._columns[column][self._position]

    def get_value(self, column: int) -> Any:
        return self._cell(column)

    def get_string(self, column: int) -> Optional[str]:
        value = self._cell(column)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def get_int(self, column: int) -> int:
        value = self._cell(column)
        return 0 if value is None else int(value)

    def get_float(self, column: int) -> float:
        value = self._cell(column)
        return 0.0 if value is None else float(value)

    def get_blob(self, column: int) -> Optional[bytes]:
        value = self._cell(column)
        if value is None or isinstance(value, bytes):
            return value
        if isinstance(value, str):
            return value.encode("utf-8")
        raise TypeError(
            f"Column {column} holds {type(value).__name__}, not a blob"
        )

    def is_null(self, column: int) -> bool:
        return self._cell(column) is None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._columns = None
        self._table = self._table.schema.empty_table()
        notify_invalidated(self._data_set_observers)

    def register_data_set_observer(self, observer: DataSetObserver) -> None:
        self._data_set_observers.add(observer)

    def unregister_data_set_observer(self, observer: DataSetObserver) -> None:
        self._data_set_observers.discard(observer)

    def register_content_observer(self, observer: ContentObserver) -> None:
        self._content_observers.add(observer)

    def unregister_content_observer(self, observer: ContentObserver) -> None:
        self._content_observers.discard(observer)

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{self._table.num_rows} rows"
        return f"ArrowRowSet({state})"
