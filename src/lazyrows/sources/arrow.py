"""
Arrow data source: page through an in-memory pyarrow Table or a Parquet file.

    columns    -> column selection; "<column> <alias>" renames
    selection  -> pyarrow.compute expression, e.g. pc.field("value") > 10
    order_by   -> column name or [(column, "ascending" | "descending"), ...]
    limit      -> "offset,length" slice of the filtered, sorted result

The filtered and sorted table is computed once per bound query and reused by
every window until the underlying table is replaced.

Usage:
    source = ArrowDataSource.from_parquet("readings.parquet")
    spec = QuerySpec(
        columns=("timestamp", "value reading"),
        selection=pc.field("value") > 10,
        order_by=[("timestamp", "ascending")],
    )
"""

import logging
import weakref
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.parquet as pq

from lazyrows.query.spec import Operation, QuerySpec, parse_limit, split_column
from lazyrows.rows import ArrowRowSet
from lazyrows.sources.base import BoundQuery, DataSource, window_bounds

logger = logging.getLogger(__name__)

TableTransform = Callable[[pa.Table], pa.Table]


@dataclass(eq=False)
class ArrowQueryBuilder:
    """Table transforms applied before selection, in order."""

    transforms: List[TableTransform] = field(default_factory=list)

    def add_transform(self, transform: TableTransform) -> None:
        self.transforms.append(transform)

    def apply(self, table: pa.Table) -> pa.Table:
        for transform in self.transforms:
            table = transform(table)
        return table


def transform(fn: TableTransform) -> Operation:
    """Operation applying fn to the source table before filtering."""

    def apply(builder: ArrowQueryBuilder) -> None:
        builder.add_transform(fn)

    apply.__qualname__ = f"transform({getattr(fn, '__qualname__', repr(fn))})"
    return apply


class ArrowDataSource(DataSource):
    """
    Data source over a pyarrow Table.

    Args:
        table: Rows to page through
    """

    supports_column_query = True

    def __init__(self, table: pa.Table):
        super().__init__()
        self._table = table
        self._version = 0
        self._resolved: "weakref.WeakKeyDictionary[ArrowQueryBuilder, Tuple[int, pa.Table]]" = (
            weakref.WeakKeyDictionary()
        )

    @classmethod
    def from_parquet(
        cls, path: Union[str, Path], columns: Optional[Sequence[str]] = None
    ) -> "ArrowDataSource":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Parquet file not found: {path}")
        return cls(pq.read_table(path, columns=list(columns) if columns else None))

    @classmethod
    def from_pandas(cls, df) -> "ArrowDataSource":
        return cls(pa.Table.from_pandas(df, preserve_index=False))

    @classmethod
    def from_polars(cls, df) -> "ArrowDataSource":
        return cls(df.to_arrow())

    @property
    def table(self) -> pa.Table:
        return self._table

    def replace_table(self, table: pa.Table) -> None:
        """Swap the underlying rows and notify cursors over this source."""
        self._table = table
        self._version += 1
        self.notify_changed()

    def new_builder(self) -> ArrowQueryBuilder:
        return ArrowQueryBuilder()

    def validate(self, spec: QuerySpec) -> None:
        if spec.group_by or spec.having:
            raise ValueError("ArrowDataSource does not support group_by/having")
        if spec.selection is not None and not isinstance(spec.selection, pc.Expression):
            raise ValueError(
                "Arrow selection must be a pyarrow.compute.Expression, "
                f"got {type(spec.selection).__name__}"
            )

    def resolve(self, query: BoundQuery) -> pa.Table:
        """Filtered, sorted and projected table for a query (before limit)."""
        cached = self._resolved.get(query.builder)
        if cached is not None and cached[0] == self._version:
            return cached[1]

        spec = query.spec
        table = query.builder.apply(self._table)
        if spec.selection is not None:
            table = table.filter(spec.selection)
        if spec.order_by:
            table = table.sort_by(spec.order_by)
        if spec.columns is not None:
            pairs = [split_column(each) for each in spec.columns]
            table = table.select([source for source, _ in pairs])
            table = table.rename_columns([alias for _, alias in pairs])

        logger.debug("Resolved arrow query: %d rows", table.num_rows)
        self._resolved[query.builder] = (self._version, table)
        return table

    def count(self, query: BoundQuery, limit: Optional[str]) -> Optional[int]:
        total = self.resolve(query).num_rows
        if limit is None:
            return total
        offset, length = parse_limit(limit)
        return max(0, min(length, total - offset))

    def fetch(self, query: BoundQuery, offset: int, size: int) -> ArrowRowSet:
        table = self.resolve(query)
        start, length = window_bounds(query.spec, offset, size)
        if start >= table.num_rows:
            return ArrowRowSet(table.slice(0, 0))
        return ArrowRowSet(table.slice(start, length))
