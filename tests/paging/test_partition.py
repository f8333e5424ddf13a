"""
Tests for lazyrows.paging.partition.

Covers:
- block_size geometric growth and cap
- block_count coverage (sum of first k-1 windows < total <= sum of k windows)
- block_offset as prefix sums
- locate / iter_partition agreeing with the partition
- Non-positive base sizes failing fast
"""

import pytest

from lazyrows.constants import DEFAULT_BLOCK_SIZE, MAX_BLOCK_SIZE
from lazyrows.paging.partition import (
    DEFAULT_PARTITION,
    PartitionConfig,
    block_count,
    block_offset,
    block_size,
    iter_partition,
    locate,
)


class TestBlockSize:
    """Test window size growth."""

    def test_doubles_until_cap(self):
        """Sizes double from the base and stay at the cap once reached."""
        sizes = [block_size(10, i) for i in range(10)]

        assert sizes == [10, 20, 40, 80, 160, 320, 640, 1024, 1024, 1024]

    def test_large_index_returns_cap(self):
        assert block_size(10, 10_000) == 1024

    def test_custom_cap(self):
        assert [block_size(3, i, cap=10) for i in range(4)] == [3, 6, 10, 10]

    def test_sizes_are_non_decreasing(self):
        sizes = [block_size(7, i) for i in range(20)]

        assert sizes == sorted(sizes)

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            block_size(10, -1)


class TestBlockOffset:
    """Test window offsets."""

    def test_offsets_are_prefix_sums(self):
        offsets = [block_offset(10, k) for k in range(10)]

        assert offsets == [0, 10, 30, 70, 150, 310, 630, 1270, 2294, 3318]

    def test_offset_matches_sum_of_sizes(self):
        for k in range(30):
            assert block_offset(5, k) == sum(block_size(5, i) for i in range(k))


class TestBlockCount:
    """Test number of windows needed to cover a total."""

    def test_zero_total_has_no_windows(self):
        assert block_count(0, 10) == 0

    def test_concrete_partition_of_5000_rows(self):
        """5000 rows with base 10 need 11 windows, the last starting at 4342."""
        assert block_count(5000, 10) == 11
        assert block_offset(10, 10) == 4342

    @pytest.mark.parametrize("base", [1, 3, 10, 64, 1024])
    @pytest.mark.parametrize("total", [1, 2, 9, 10, 11, 1270, 1271, 5000, 100_000])
    def test_windows_cover_total_minimally(self, total, base):
        """k windows reach total; k-1 windows do not."""
        k = block_count(total, base)
        sizes = [block_size(base, i) for i in range(k)]

        assert sum(sizes) >= total
        assert sum(sizes[:-1]) < total

    def test_negative_total_rejected(self):
        with pytest.raises(ValueError):
            block_count(-1, 10)


class TestNonPositiveBase:
    """Non-positive base sizes fail fast instead of reporting zero windows."""

    @pytest.mark.parametrize("base", [0, -1, -64])
    def test_block_count_rejects(self, base):
        with pytest.raises(ValueError, match="block size must be positive"):
            block_count(100, base)

    @pytest.mark.parametrize("base", [0, -5])
    def test_block_size_and_offset_reject(self, base):
        with pytest.raises(ValueError):
            block_size(base, 0)
        with pytest.raises(ValueError):
            block_offset(base, 3)

    def test_empty_total_still_rejects_bad_base(self):
        with pytest.raises(ValueError):
            block_count(0, 0)

    def test_partition_config_rejects(self):
        with pytest.raises(ValueError):
            PartitionConfig(block_size=0)
        with pytest.raises(ValueError):
            PartitionConfig(block_size=10, max_block_size=0)
        with pytest.raises(ValueError):
            PartitionConfig(block_size=2048, max_block_size=1024)


class TestLocate:
    """Test position to window lookup."""

    def test_position_in_capped_region(self):
        """Position 2300 lies in window 8 (offset 2294, size 1024)."""
        index = locate(2300, 10)

        assert index == 8
        assert block_offset(10, index) == 2294
        assert block_size(10, index) == 1024

    def test_negative_position(self):
        assert locate(-1, 10) is None

    @pytest.mark.parametrize("total,base", [(1, 1), (37, 4), (5000, 10), (3000, 64)])
    def test_every_position_in_exactly_one_window(self, total, base):
        windows = list(iter_partition(total, base))

        for p in range(total):
            owners = [i for i, off, size in windows if off <= p < off + size]
            assert owners == [locate(p, base)]


class TestIterPartition:
    def test_small_partition(self):
        assert list(iter_partition(25, 10)) == [(0, 0, 10), (1, 10, 20)]

    def test_empty(self):
        assert list(iter_partition(0, 10)) == []


class TestDefaultPartition:
    def test_module_default_uses_constants(self):
        assert DEFAULT_PARTITION == PartitionConfig()
        assert DEFAULT_PARTITION.block_size == DEFAULT_BLOCK_SIZE
        assert DEFAULT_PARTITION.max_block_size == MAX_BLOCK_SIZE
        assert block_count(1, DEFAULT_PARTITION.block_size) == 1
