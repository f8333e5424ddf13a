"""
Window partitioning for lazyrows.

================================================================================
GEOMETRIC WINDOWS
================================================================================

A result of N rows is split into contiguous windows whose sizes double until a
cap is reached:

    size(i)   = min(base * 2**i, max_block_size)
    offset(k) = size(0) + size(1) + ... + size(k-1)

With base=10 and the default cap of 1024:

    index   0   1   2   3    4    5    6     7     8     9   ...
    size   10  20  40  80  160  320  640  1024  1024  1024   ...
    offset  0  10  30  70  150  310  630  1270  2294  3318   ...

Small windows near the start keep the first access cheap; large windows further
out bound the number of fetches a long scan needs.

The last window is allowed to extend past N. Its fetch simply returns fewer
rows than its nominal size.

================================================================================
NON-POSITIVE BASE
================================================================================

A base <= 0 never grows the running sum, so no number of windows can cover a
non-empty result. All functions here raise ValueError for it instead of
reporting zero windows.
================================================================================
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from lazyrows.constants import DEFAULT_BLOCK_SIZE, MAX_BLOCK_SIZE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartitionConfig:
    """
    Window sizing for a cursor.

    Attributes:
        block_size: Rows in the first window
        max_block_size: Cap on rows in any window
    """

    block_size: int = DEFAULT_BLOCK_SIZE
    max_block_size: int = MAX_BLOCK_SIZE

    def __post_init__(self):
        _check_base(self.block_size)
        if self.max_block_size <= 0:
            raise ValueError(
                f"max_block_size must be positive, got {self.max_block_size}"
            )
        if self.block_size > self.max_block_size:
            raise ValueError(
                f"block_size ({self.block_size}) must not exceed "
                f"max_block_size ({self.max_block_size})"
            )


def _check_base(base: int) -> None:
    if base <= 0:
        raise ValueError(f"block size must be positive, got {base}")


DEFAULT_PARTITION = PartitionConfig()


def block_size(base: int, index: int, cap: int = MAX_BLOCK_SIZE) -> int:
    """
    Size of the window at index.

    Args:
        base: Size of window 0
        index: Window index (>= 0)
        cap: Maximum window size

    Returns:
        min(base * 2**index, cap)

    Example:
        >>> [block_size(10, i) for i in range(9)]
        [10, 20, 40, 80, 160, 320, 640, 1024, 1024]
    """
    _check_base(base)
    if index < 0:
        raise ValueError(f"window index must be >= 0, got {index}")
    # Past the cap the exact power is irrelevant, avoid building huge ints
    if index >= cap.bit_length():
        return cap
    return min(base << index, cap)


def block_count(total: int, base: int, cap: int = MAX_BLOCK_SIZE) -> int:
    """
    Number of windows needed to cover total rows.

    Returns the smallest k such that block_size(0) + ... + block_size(k-1) >= total,
    and 0 for an empty result.

    Example:
        >>> block_count(5000, 10)
        11
    """
    _check_base(base)
    if total < 0:
        raise ValueError(f"total must be >= 0, got {total}")
    if total == 0:
        return 0

    covered = 0
    index = 0
    while covered < total:
        size = block_size(base, index, cap)
        if size == cap:
            # Constant from here on
            remaining = total - covered
            return index + -(-remaining // cap)
        covered += size
        index += 1
    return index


def block_offset(base: int, index: int, cap: int = MAX_BLOCK_SIZE) -> int:
    """
    Absolute position of the first row of window index.

    Example:
        >>> [block_offset(10, k) for k in (0, 1, 7, 8)]
        [0, 10, 1270, 2294]
    """
    _check_base(base)
    if index < 0:
        raise ValueError(f"window index must be >= 0, got {index}")

    offset = 0
    for i in range(index):
        size = block_size(base, i, cap)
        if size == cap:
            return offset + (index - i) * cap
        offset += size
    return offset


def locate(position: int, base: int, cap: int = MAX_BLOCK_SIZE) -> Optional[int]:
    """
    Index of the window covering an absolute position, or None if negative.

    Does not know the total, so any non-negative position has a window.
    """
    _check_base(base)
    if position < 0:
        return None

    offset = 0
    index = 0
    while True:
        size = block_size(base, index, cap)
        if size == cap:
            return index + (position - offset) // cap
        if position < offset + size:
            return index
        offset += size
        index += 1


def iter_partition(
    total: int, base: int, cap: int = MAX_BLOCK_SIZE
) -> Iterator[Tuple[int, int, int]]:
    """
    Yield (index, offset, size) for every window of a total row result.

    Example:
        >>> list(iter_partition(25, 10))
        [(0, 0, 10), (1, 10, 20)]
    """
    offset = 0
    for index in range(block_count(total, base, cap)):
        size = block_size(base, index, cap)
        yield index, offset, size
        offset += size
