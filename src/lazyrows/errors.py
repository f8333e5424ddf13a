"""
Custom exceptions for lazyrows.

Purpose
- Give data sources one failure type to raise for query execution problems,
  so the paging layer can tell them apart from programming errors.
- Keep positioning failures out of the exception path: moving to a row that
  does not exist returns False, it does not raise.

Taxonomy
- QueryExecutionError: a count or fetch query could not be executed. Raised by
  data sources (wrapping sqlite3.Error, PyMongoError, ...). Propagated to the
  caller, never retried. WindowedCursor.requery() converts it to False.
- RowSetClosedError: a row set was used after close().
- CursorStateError: a cell was read without a current row.
"""

from __future__ import annotations


class LazyRowsError(Exception):
    """Base class for all lazyrows errors."""


class DataSourceError(LazyRowsError):
    """
    Base class for failures reported by a data source.

    Notes:
        Concrete sources chain the native driver exception with ``raise ... from``.
    """


class QueryExecutionError(DataSourceError):
    """
    Raised when a count or ranged fetch query cannot be executed.

    Examples:
        - SQL syntax error or missing table (sqlite3.OperationalError)
        - Server selection timeout (pymongo.errors.PyMongoError)
    """


class RowSetClosedError(LazyRowsError):
    """Raised when positioning or reading a row set that has been closed."""


class CursorStateError(LazyRowsError):
    """
    Raised when a cell is read while no row is current.

    Notes:
        Reading before a successful move is a programming error. Callers are
        expected to check the result of move_to_position() first.
    """
