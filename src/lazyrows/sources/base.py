"""
Data source interface for lazyrows.

A data source executes the two queries the paging layer needs:

    count(query, limit)          -> total rows, or None when the count query
                                    produced no value
    fetch(query, offset, size)   -> ArrowRowSet holding rows [offset, offset+size)
                                    of the (limited) result

and optionally resolves column names by running a zero-row fetch
(supports_column_query = True).

BINDING
-------
DataSource.bind(spec) creates a fresh source specific builder, applies the
spec's operations to it once, in order, and returns a BoundQuery. The
BoundQuery is immutable and shared read-only by a cursor and all its windows.

CHANGE NOTIFICATION
-------------------
Sources hold a set of ContentObservers. notify_changed() tells every observer
that the underlying data changed; count resources listen here and invalidate
the cursors that own them.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from lazyrows.constants import EMPTY_LIMIT
from lazyrows.observers import ContentObserver, ObserverSet, notify_content_change
from lazyrows.query.spec import QuerySpec, parse_limit
from lazyrows.rows import ArrowRowSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundQuery:
    """A QuerySpec bound to a source, with its shaping operations applied."""

    source: "DataSource"
    spec: QuerySpec
    builder: Any


def window_bounds(spec: QuerySpec, offset: int, size: int) -> Tuple[int, int]:
    """
    Translate a window of the limited result into bounds on the full result.

    Args:
        spec: Query whose limit clause applies
        offset: Window offset within the limited result
        size: Nominal window size

    Returns:
        Tuple of (absolute_offset, size), size clipped to the limit

    Example:
        >>> window_bounds(QuerySpec(limit="100,50"), 40, 20)
        (140, 10)
    """
    bounds = spec.limit_bounds()
    if bounds is None:
        return offset, size
    limit_offset, limit_length = bounds
    return limit_offset + offset, max(0, min(size, limit_length - offset))


class DataSource(ABC):
    """
    Base class for data sources.

    Subclasses implement new_builder(), count() and fetch(). Sources that can
    report column names from a zero-row fetch set supports_column_query.
    """

    supports_column_query: bool = False

    def __init__(self) -> None:
        self._content_observers: ObserverSet[ContentObserver] = ObserverSet()

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    @abstractmethod
    def new_builder(self) -> Any:
        """Create an empty source specific builder for operations to shape."""

    def validate(self, spec: QuerySpec) -> None:
        """Reject clauses this source cannot execute. Raises ValueError."""

    def bind(self, spec: QuerySpec) -> BoundQuery:
        self.validate(spec)
        builder = self.new_builder()
        for operation in spec.operations:
            operation(builder)
        return BoundQuery(source=self, spec=spec, builder=builder)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @abstractmethod
    def count(self, query: BoundQuery, limit: Optional[str]) -> Optional[int]:
        """
        Count rows matching query, within limit when given.

        Raises:
            QueryExecutionError: If the count query cannot be executed
        """

    @abstractmethod
    def fetch(self, query: BoundQuery, offset: int, size: int) -> ArrowRowSet:
        """
        Fetch rows [offset, offset + size) of the query's (limited) result.

        Raises:
            QueryExecutionError: If the fetch cannot be executed
        """

    def query_column_names(self, query: BoundQuery) -> List[str]:
        """Resolve column names by executing a zero-row fetch."""
        offset, size = parse_limit(EMPTY_LIMIT)
        rows = self.fetch(query, offset, size)
        try:
            return list(rows.get_column_names())
        finally:
            rows.close()

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def register_content_observer(self, observer: ContentObserver) -> None:
        self._content_observers.add(observer)

    def unregister_content_observer(self, observer: ContentObserver) -> None:
        self._content_observers.discard(observer)

    def notify_changed(self, self_change: bool = False) -> None:
        """Report that the data behind this source changed."""
        logger.debug("%s changed", type(self).__name__)
        notify_content_change(self._content_observers, self_change)

    def close(self) -> None:
        """Release resources owned by the source."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
