"""
DataFrame export for windowed cursors.

Windows are natural batches: each one is a single fetched Arrow table. Export
reads them in partition order and converts with the chosen engine.

    iter_dataframe_batches(cursor)   one DataFrame per window, fetched lazily
    to_dataframe(cursor, start, stop)
                                     rows [start, stop) as one DataFrame; only the
                                     windows overlapping the range are fetched

Both engines go through PyArrow, so column types match what the source
produced.
"""

import logging
from typing import Iterator, Literal, Optional, Union

import pandas as pd
import polars as pl
import pyarrow as pa

from lazyrows.constants import DEFAULT_ENGINE
from lazyrows.paging.cursor import WindowedCursor

logger = logging.getLogger(__name__)

Engine = Literal["pandas", "polars"]


def _convert(table: pa.Table, engine: Engine) -> Union[pd.DataFrame, "pl.DataFrame"]:
    if engine == "pandas":
        return table.to_pandas()
    elif engine == "polars":
        return pl.from_arrow(table)
    raise ValueError(f"Unknown engine {engine!r}: expected 'pandas' or 'polars'")


def _named(table: pa.Table, cursor: WindowedCursor) -> pa.Table:
    names = cursor.get_column_names()
    if len(names) == table.num_columns and list(table.column_names) != names:
        return table.rename_columns(names)
    return table


def iter_tables(
    cursor: WindowedCursor, start: int = 0, stop: Optional[int] = None
) -> Iterator[pa.Table]:
    """
    Yield Arrow tables covering rows [start, stop) window by window.

    Args:
        cursor: Cursor to read
        start: First absolute position
        stop: End position (exclusive), None for the cursor's count
    """
    count = cursor.get_count()
    stop = count if stop is None else min(stop, count)
    if start < 0:
        raise ValueError(f"start must be >= 0, got {start}")

    for index in range(cursor.window_count()):
        window = cursor.window_at(index)
        lo = max(start, window.offset)
        hi = min(stop, window.offset + window.size)
        if window.offset >= stop:
            break
        if lo >= hi:
            continue
        table = window.table
        yield _named(table.slice(lo - window.offset, hi - lo), cursor)


def iter_dataframe_batches(
    cursor: WindowedCursor,
    engine: Engine = DEFAULT_ENGINE,
) -> Iterator[Union[pd.DataFrame, "pl.DataFrame"]]:
    """
    Stream the cursor's rows as one DataFrame per window.

    Example:
        >>> for df in iter_dataframe_batches(cursor):
        ...     process(df)
    """
    for table in iter_tables(cursor):
        yield _convert(table, engine)


def to_dataframe(
    cursor: WindowedCursor,
    engine: Engine = DEFAULT_ENGINE,
    start: int = 0,
    stop: Optional[int] = None,
) -> Union[pd.DataFrame, "pl.DataFrame"]:
    """
    Load rows [start, stop) of a cursor into a DataFrame.

    Args:
        cursor: Cursor to read
        engine: "pandas" or "polars"
        start: First absolute position
        stop: End position (exclusive), None for the cursor's count

    Returns:
        DataFrame with the cursor's column names; empty when no rows fall in
        the range
    """
    tables = list(iter_tables(cursor, start, stop))
    if not tables:
        names = cursor.get_column_names()
        empty = pa.table({name: pa.array([], type=pa.null()) for name in names})
        return _convert(empty, engine)

    logger.debug("Concatenating %d windows", len(tables))
    return _convert(pa.concat_tables(tables, promote_options="default"), engine)
