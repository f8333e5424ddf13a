"""
lazyrows: random access over huge query results, fetched in growing windows.

    from lazyrows import QuerySpec, WindowedCursor
    from lazyrows.sources.sqlite import SQLiteDataSource, tables

    source = SQLiteDataSource("app.db")
    cursor = WindowedCursor(source, QuerySpec(order_by="id", operations=(tables("items"),)))
    cursor.move_to_position(10_000)
    cursor.get_string(0)
"""

from lazyrows.errors import (
    CursorStateError,
    DataSourceError,
    LazyRowsError,
    QueryExecutionError,
    RowSetClosedError,
)
from lazyrows.export import iter_dataframe_batches, to_dataframe
from lazyrows.observers import CallbackDataSetObserver, ContentObserver, DataSetObserver
from lazyrows.paging import PartitionConfig, Window, WindowedCursor
from lazyrows.query import QuerySpec, hash_query
from lazyrows.rows import ArrowRowSet, RowSource
from lazyrows.sources import (
    ArrowDataSource,
    DataSource,
    MongoDataSource,
    SQLiteDataSource,
)

__version__ = "0.1.0"

__all__ = [
    "ArrowDataSource",
    "ArrowRowSet",
    "CallbackDataSetObserver",
    "ContentObserver",
    "CursorStateError",
    "DataSetObserver",
    "DataSource",
    "DataSourceError",
    "LazyRowsError",
    "MongoDataSource",
    "PartitionConfig",
    "QueryExecutionError",
    "QuerySpec",
    "RowSetClosedError",
    "RowSource",
    "SQLiteDataSource",
    "Window",
    "WindowedCursor",
    "hash_query",
    "iter_dataframe_batches",
    "to_dataframe",
]
