"""
Windowed paging over query results.

- partition: geometric window sizing (block_size, block_count, block_offset)
- window: one lazily fetched slice of a result
- count: re-executable count query with change notification
- cursor: WindowedCursor, the consumer facing orchestrator
"""

from lazyrows.paging.count import CountResource
from lazyrows.paging.cursor import WindowedCursor
from lazyrows.paging.partition import (
    DEFAULT_PARTITION,
    PartitionConfig,
    block_count,
    block_offset,
    block_size,
    iter_partition,
    locate,
)
from lazyrows.paging.window import Window, WindowContext

__all__ = [
    "CountResource",
    "DEFAULT_PARTITION",
    "PartitionConfig",
    "Window",
    "WindowContext",
    "WindowedCursor",
    "block_count",
    "block_offset",
    "block_size",
    "iter_partition",
    "locate",
]
