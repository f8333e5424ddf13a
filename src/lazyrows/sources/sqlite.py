"""
SQLite data source.

Builds SELECT statements the way a query builder over a table expression does:

    SELECT [DISTINCT] <columns | *>
    FROM <tables>
    [WHERE (<appended where>) AND (<selection>)]
    [GROUP BY <group_by>] [HAVING <having>]
    [ORDER BY <order_by>]
    [LIMIT <offset>,<length>]

Counting wraps the query:

    SELECT COUNT('X') AS count FROM (<query with spec limit>) LIMIT 1

unless a custom count query builder is given. With a custom count query the
source also reports column names from a zero-row fetch (supports_column_query).

Usage:
    source = SQLiteDataSource("app.db")
    spec = QuerySpec(
        columns=("id", "upper(name) label"),
        selection="price > ?",
        selection_args=(10,),
        order_by="id",
        operations=(tables("items"),),
    )
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Union

import pyarrow as pa

from lazyrows.errors import QueryExecutionError
from lazyrows.query.spec import Operation, QuerySpec, format_limit
from lazyrows.rows import ArrowRowSet
from lazyrows.sources.base import BoundQuery, DataSource, window_bounds

logger = logging.getLogger(__name__)

# Builds the count SQL for a query: (spec, limit) -> sql. Bound with selection_args.
CountQueryBuilder = Callable[[QuerySpec, Optional[str]], str]


@dataclass
class SQLiteQueryBuilder:
    """Table expression and fixed clauses shaped by spec operations."""

    tables: Optional[str] = None
    distinct: bool = False
    where: List[str] = field(default_factory=list)

    def set_tables(self, tables: str) -> None:
        self.tables = tables

    def set_distinct(self, distinct: bool) -> None:
        self.distinct = distinct

    def append_where(self, clause: str) -> None:
        self.where.append(clause)

    def build_query(
        self,
        columns: Optional[Sequence[str]],
        selection: Optional[str],
        group_by: Optional[str] = None,
        having: Optional[str] = None,
        order_by: Optional[str] = None,
        limit: Optional[str] = None,
    ) -> str:
        if not self.tables:
            raise ValueError("No tables set; add a tables(...) operation to the spec")
        if having and not group_by:
            raise ValueError("HAVING clauses are only permitted when using a GROUP BY")

        parts = ["SELECT"]
        if self.distinct:
            parts.append("DISTINCT")
        parts.append(", ".join(columns) if columns else "*")
        parts.append(f"FROM {self.tables}")

        conditions = [f"({clause})" for clause in self.where]
        if selection:
            conditions.append(f"({selection})")
        if conditions:
            parts.append("WHERE " + " AND ".join(conditions))
        if group_by:
            parts.append(f"GROUP BY {group_by}")
        if having:
            parts.append(f"HAVING {having}")
        if order_by:
            parts.append(f"ORDER BY {order_by}")
        if limit:
            parts.append(f"LIMIT {limit}")
        return " ".join(parts)


# =============================================================================
# OPERATIONS
# =============================================================================


def tables(expression: str) -> Operation:
    """Operation selecting the FROM expression (a table name or a join)."""

    def apply(builder: SQLiteQueryBuilder) -> None:
        builder.set_tables(expression)

    apply.__qualname__ = f"tables({expression!r})"
    return apply


def distinct(enabled: bool = True) -> Operation:
    def apply(builder: SQLiteQueryBuilder) -> None:
        builder.set_distinct(enabled)

    apply.__qualname__ = f"distinct({enabled!r})"
    return apply


def append_where(clause: str) -> Operation:
    """Operation adding a fixed WHERE clause ANDed with the selection."""

    def apply(builder: SQLiteQueryBuilder) -> None:
        builder.append_where(clause)

    apply.__qualname__ = f"append_where({clause!r})"
    return apply


# =============================================================================
# SOURCE
# =============================================================================


def _column_array(values: List[Any]) -> pa.Array:
    try:
        return pa.array(values)
    except (pa.ArrowInvalid, pa.ArrowTypeError):
        # SQLite columns may mix storage classes; fall back to text
        logger.warning("Mixed value types in column, storing as strings")
        return pa.array([None if v is None else str(v) for v in values], pa.string())


def rows_to_table(names: List[str], rows: List[tuple]) -> pa.Table:
    """Convert DB-API rows to an Arrow table, keeping duplicate names."""
    if rows:
        columns = [_column_array(list(values)) for values in zip(*rows)]
    else:
        columns = [pa.array([], type=pa.null()) for _ in names]
    return pa.Table.from_arrays(columns, names=names)


class SQLiteDataSource(DataSource):
    """
    Data source over a sqlite3 database.

    Args:
        database: Open sqlite3 connection, or a path to open (owned and closed
            by close())
        count_query: Optional builder for a custom count statement
    """

    def __init__(
        self,
        database: Union[sqlite3.Connection, str, Path],
        count_query: Optional[CountQueryBuilder] = None,
    ):
        super().__init__()
        if isinstance(database, sqlite3.Connection):
            self._connection = database
            self._owns_connection = False
        else:
            self._connection = sqlite3.connect(str(database))
            self._owns_connection = True
        self._count_query = count_query

    @property
    def supports_column_query(self) -> bool:
        return self._count_query is not None

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def new_builder(self) -> SQLiteQueryBuilder:
        return SQLiteQueryBuilder()

    def _execute(self, sql: str, args: Sequence[Any]) -> sqlite3.Cursor:
        logger.debug("SQL: %s %s", sql, list(args))
        try:
            return self._connection.execute(sql, tuple(args))
        except sqlite3.Error as e:
            raise QueryExecutionError(f"SQLite query failed: {e}") from e

    def build_query(self, query: BoundQuery, limit: Optional[str]) -> str:
        spec = query.spec
        return query.builder.build_query(
            spec.columns,
            spec.selection,
            spec.group_by,
            spec.having,
            spec.order_by,
            limit,
        )

    def count(self, query: BoundQuery, limit: Optional[str]) -> Optional[int]:
        spec = query.spec
        if self._count_query is not None:
            sql = self._count_query(spec, limit)
        else:
            sql = "SELECT COUNT('X') AS count FROM ({}) LIMIT 1".format(
                self.build_query(query, limit)
            )
        cursor = self._execute(sql, spec.selection_args)
        try:
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise QueryExecutionError(f"SQLite count failed: {e}") from e
        finally:
            cursor.close()
        return None if row is None else row[0]

    def fetch(self, query: BoundQuery, offset: int, size: int) -> ArrowRowSet:
        spec = query.spec
        start, length = window_bounds(spec, offset, size)
        sql = self.build_query(query, format_limit(start, length))
        cursor = self._execute(sql, spec.selection_args)
        try:
            rows = cursor.fetchall()
            names = [d[0] for d in cursor.description]
        except sqlite3.Error as e:
            raise QueryExecutionError(f"SQLite fetch failed: {e}") from e
        finally:
            cursor.close()
        return ArrowRowSet(rows_to_table(names, rows))

    def close(self) -> None:
        if self._owns_connection:
            self._connection.close()
