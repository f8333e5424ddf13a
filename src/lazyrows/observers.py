"""
Observer types and fan-out for lazyrows.

Two observer kinds exist, mirroring what a presentation layer needs:

- DataSetObserver: told when the rows behind a cursor changed (on_changed,
  after a successful requery) or became invalid (on_invalidated, the source
  reported that data changed underneath it).
- ContentObserver: told when the content of the underlying source changed
  (on_change). It carries no information about which rows changed.

ObserverSet keeps registration order and ignores duplicates. Every object that
accepts observers (row sets, count resources, windows, cursors) keeps one set
per kind and calls notify_* to publish.
"""

import logging
from typing import Callable, Generic, Iterator, List, TypeVar

logger = logging.getLogger(__name__)


class DataSetObserver:
    """Receives dataset level notifications. Override the hooks you need."""

    def on_changed(self) -> None:
        pass

    def on_invalidated(self) -> None:
        pass


class ContentObserver:
    """Receives content change notifications from a data source."""

    def on_change(self, self_change: bool = False) -> None:
        pass


class CallbackDataSetObserver(DataSetObserver):
    """DataSetObserver that forwards to plain callables."""

    def __init__(
        self,
        on_changed: Callable[[], None] = None,
        on_invalidated: Callable[[], None] = None,
    ):
        self._on_changed = on_changed
        self._on_invalidated = on_invalidated

    def on_changed(self) -> None:
        if self._on_changed is not None:
            self._on_changed()

    def on_invalidated(self) -> None:
        if self._on_invalidated is not None:
            self._on_invalidated()


T = TypeVar("T")


class ObserverSet(Generic[T]):
    """Insertion ordered set of observers."""

    def __init__(self) -> None:
        self._observers: List[T] = []

    def add(self, observer: T) -> bool:
        """Register observer. Returns False if it was already registered."""
        if any(each is observer for each in self._observers):
            return False
        self._observers.append(observer)
        return True

    def discard(self, observer: T) -> bool:
        """Unregister observer. Returns False if it was not registered."""
        for i, each in enumerate(self._observers):
            if each is observer:
                del self._observers[i]
                return True
        return False

    def clear(self) -> None:
        self._observers.clear()

    def __iter__(self) -> Iterator[T]:
        # Snapshot so observers may unregister themselves while notified
        return iter(list(self._observers))

    def __len__(self) -> int:
        return len(self._observers)

    def __contains__(self, observer: object) -> bool:
        return any(each is observer for each in self._observers)


def notify_changed(observers: "ObserverSet[DataSetObserver]") -> None:
    for observer in observers:
        observer.on_changed()


def notify_invalidated(observers: "ObserverSet[DataSetObserver]") -> None:
    for observer in observers:
        observer.on_invalidated()


def notify_content_change(
    observers: "ObserverSet[ContentObserver]", self_change: bool = False
) -> None:
    logger.debug("Content change fan-out to %d observers", len(observers))
    for observer in observers:
        observer.on_change(self_change)
