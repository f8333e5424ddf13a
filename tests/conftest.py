"""Shared fixtures: an Arrow-backed source that records every query it runs."""

from typing import List, Optional

import pyarrow as pa
import pytest

from lazyrows.errors import QueryExecutionError
from lazyrows.query.spec import QuerySpec
from lazyrows.rows import ArrowRowSet
from lazyrows.sources.arrow import ArrowDataSource
from lazyrows.sources.base import BoundQuery


def make_table(n: int) -> pa.Table:
    return pa.table(
        {
            "id": list(range(n)),
            "name": [f"row-{i}" for i in range(n)],
            "score": [i * 0.5 for i in range(n)],
        }
    )


class CountingSource(ArrowDataSource):
    """ArrowDataSource that counts queries and can be told to fail."""

    def __init__(self, table: pa.Table):
        super().__init__(table)
        self.count_calls = 0
        self.fetch_calls: List[tuple] = []
        self.fetched: List[ArrowRowSet] = []
        self.fail_count = False
        self.fail_fetch = False
        self.no_count_value = False

    def swap_table_silently(self, table: pa.Table) -> None:
        """Replace rows without notifying cursors, as an unobserved writer would."""
        self._table = table
        self._version += 1

    def count(self, query: BoundQuery, limit: Optional[str]) -> Optional[int]:
        self.count_calls += 1
        if self.fail_count:
            raise QueryExecutionError("count unavailable")
        if self.no_count_value:
            return None
        return super().count(query, limit)

    def fetch(self, query: BoundQuery, offset: int, size: int) -> ArrowRowSet:
        if self.fail_fetch:
            raise QueryExecutionError("fetch unavailable")
        self.fetch_calls.append((offset, size))
        rows = super().fetch(query, offset, size)
        self.fetched.append(rows)
        return rows


@pytest.fixture
def source_5000():
    return CountingSource(make_table(5000))


@pytest.fixture
def plain_spec():
    return QuerySpec(columns=("id", "name", "score"))


@pytest.fixture
def counting_source():
    """Factory building a CountingSource over n generated rows."""

    def build(n: int) -> CountingSource:
        return CountingSource(make_table(n))

    return build
