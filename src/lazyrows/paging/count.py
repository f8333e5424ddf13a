"""
Count resource: the shared, re-executable count query behind a cursor.

The resource listens to its data source for changes. A change is published to
its data set observers as on_invalidated and to its content observers as
on_change. The owning cursor registers one internal observer here; that
notification is the only thing that invalidates the cursor.
"""

import logging
from typing import Optional

from lazyrows.errors import QueryExecutionError
from lazyrows.observers import (
    ContentObserver,
    DataSetObserver,
    ObserverSet,
    notify_content_change,
    notify_invalidated,
)
from lazyrows.sources.base import BoundQuery

logger = logging.getLogger(__name__)


class _SourceChangeObserver(ContentObserver):
    def __init__(self, resource: "CountResource"):
        self._resource = resource

    def on_change(self, self_change: bool = False) -> None:
        self._resource.on_source_changed(self_change)


class CountResource:
    """
    Executes and re-executes the count query for a bound query.

    The count query runs once on construction. value is None when the query
    produced no result row.

    Raises:
        QueryExecutionError: From the constructor and refresh() when the count
            query cannot be executed
    """

    def __init__(self, query: BoundQuery, limit: Optional[str] = None):
        self._query = query
        self._limit = limit
        self._closed = False
        self._data_set_observers: ObserverSet[DataSetObserver] = ObserverSet()
        self._content_observers: ObserverSet[ContentObserver] = ObserverSet()
        self._value: Optional[int] = self._execute()

        self._source_observer = _SourceChangeObserver(self)
        query.source.register_content_observer(self._source_observer)

    @property
    def value(self) -> Optional[int]:
        return self._value

    @property
    def has_value(self) -> bool:
        return self._value is not None

    def is_closed(self) -> bool:
        return self._closed

    def _execute(self) -> Optional[int]:
        value = self._query.source.count(self._query, self._limit)
        logger.debug("Count query returned %s (limit=%s)", value, self._limit)
        return None if value is None else int(value)

    def refresh(self) -> None:
        """Re-execute the count query, propagating failures."""
        self._value = self._execute()

    def requery(self) -> bool:
        """
        Re-execute the count query.

        Returns:
            True on success. False if closed or the query failed; the previous
            value is kept in that case.
        """
        if self._closed:
            return False
        try:
            value = self._execute()
        except QueryExecutionError as e:
            logger.warning("Count requery failed, keeping previous count: %s", e)
            return False
        self._value = value
        return True

    def on_source_changed(self, self_change: bool = False) -> None:
        if self._closed:
            return
        notify_content_change(self._content_observers, self_change)
        notify_invalidated(self._data_set_observers)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._query.source.unregister_content_observer(self._source_observer)
        self._data_set_observers.clear()
        self._content_observers.clear()

    def register_data_set_observer(self, observer: DataSetObserver) -> None:
        self._data_set_observers.add(observer)

    def unregister_data_set_observer(self, observer: DataSetObserver) -> None:
        self._data_set_observers.discard(observer)

    def register_content_observer(self, observer: ContentObserver) -> None:
        self._content_observers.add(observer)

    def unregister_content_observer(self, observer: ContentObserver) -> None:
        self._content_observers.discard(observer)
