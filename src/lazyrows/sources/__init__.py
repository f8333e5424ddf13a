"""
Data sources for lazyrows.

- DataSource / BoundQuery: interface the paging layer queries
- SQLiteDataSource: sqlite3 databases
- MongoDataSource: pymongo collections
- ArrowDataSource: pyarrow Tables and Parquet files
"""

from .arrow import ArrowDataSource
from .base import BoundQuery, DataSource, window_bounds
from .mongo import MongoDataSource
from .sqlite import SQLiteDataSource

__all__ = [
    "ArrowDataSource",
    "BoundQuery",
    "DataSource",
    "MongoDataSource",
    "SQLiteDataSource",
    "window_bounds",
]
