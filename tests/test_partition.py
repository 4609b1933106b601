import math

import pytest

from mvsplit.errors import DegenerateIntervalError
from mvsplit.models import Interval
from mvsplit.partition import distribute_intervals_fixed_overlap, partition_dimension


def expected_num_center(length, overlap, target):
    n = (length - 2.0 * (target - overlap) - overlap) / (target - 2.0 * overlap + overlap)
    return 0 if n <= 0 else int(math.floor(n + 0.5))


def test_reference_example_1915():
    blocks = partition_dimension(0, 1914, 10, 500)
    assert blocks == [(0, 485), (476, 961), (953, 1438), (1429, 1914)]
    assert all(end - start + 1 == 486 for start, end in blocks)


def test_single_block_when_length_fits():
    assert partition_dimension(0, 499, 10, 500) == [(0, 499)]
    assert partition_dimension(37, 136, 10, 100) == [(37, 136)]


def test_exact_multiple_still_splits():
    # length 1000 with target 500 is larger than the target, so it is split
    blocks = partition_dimension(0, 999, 10, 500)
    assert len(blocks) == expected_num_center(1000, 10, 500) + 2


def test_offset_min_shifts_blocks():
    at_zero = partition_dimension(0, 1914, 10, 500)
    shifted = partition_dimension(100, 2014, 10, 500)
    assert shifted == [(a + 100, b + 100) for a, b in at_zero]


@pytest.mark.parametrize(
    "length, overlap, target",
    [
        (1915, 10, 500),
        (1000, 20, 300),
        (513, 4, 128),
        (100, 5, 30),
        (2048, 32, 512),
        (4000, 50, 333),
        (501, 2, 500),
    ],
)
def test_blocks_cover_extent_and_overlap(length, overlap, target):
    lo, hi = 0, length - 1
    blocks = partition_dimension(lo, hi, overlap, target)

    assert len(blocks) == expected_num_center(length, overlap, target) + 2
    assert blocks[0][0] == lo
    assert blocks[-1][1] == hi

    for (start, end), (next_start, next_end) in zip(blocks, blocks[1:]):
        assert start <= end
        assert next_start <= end + 1, "gap between consecutive blocks"
        assert end - next_start + 1 >= 0

    # the max-anchored seam is not forced to the requested overlap; measure it
    last_seam = blocks[-2][1] - blocks[-1][0] + 1
    assert abs(last_seam - overlap) <= 1


def test_zero_and_negative_overlap_are_accepted():
    assert len(partition_dimension(0, 999, 0, 300)) == expected_num_center(1000, 0, 300) + 2
    blocks = partition_dimension(0, 999, -10, 300)
    assert len(blocks) == expected_num_center(1000, -10, 300) + 2
    assert blocks[1][0] > blocks[0][1]


def test_cartesian_product_order_and_count():
    interval = Interval((0, 0, 0), (1914, 599, 99))
    intervals = distribute_intervals_fixed_overlap(interval, (10, 10, 10), (500, 500, 200))

    per_dim = [
        partition_dimension(0, 1914, 10, 500),
        partition_dimension(0, 599, 10, 500),
        partition_dimension(0, 99, 10, 200),
    ]
    assert len(intervals) == len(per_dim[0]) * len(per_dim[1]) * len(per_dim[2]) == 8

    # dimension 0 varies fastest
    assert [iv.min[0] for iv in intervals[:4]] == [b[0] for b in per_dim[0]]
    assert intervals[0].min[1] == intervals[3].min[1]
    assert intervals[4].min[1] == per_dim[1][1][0]
    assert all(iv.min[2] == 0 and iv.max[2] == 99 for iv in intervals)


def test_partition_is_deterministic():
    interval = Interval((5, 5), (2000, 1000))
    first = distribute_intervals_fixed_overlap(interval, (16, 8), (256, 300))
    second = distribute_intervals_fixed_overlap(interval, (16, 8), (256, 300))
    assert first == second


def test_whole_interval_when_everything_fits():
    interval = Interval((3, 4, 5), (10, 20, 30))
    assert distribute_intervals_fixed_overlap(interval, (1, 1, 1), (100, 100, 100)) == [interval]


def test_degenerate_blocks_are_reported():
    # overlap <= -length collapses the block size to zero
    assert partition_dimension(0, 99, -100, 50) == [(0, -1), (100, 99)]
    with pytest.raises(DegenerateIntervalError):
        distribute_intervals_fixed_overlap(Interval((0,), (99,)), (-100,), (50,))


def test_target_equal_to_overlap():
    with pytest.raises(DegenerateIntervalError):
        partition_dimension(0, 99, 10, 10)


def test_dimension_mismatch():
    with pytest.raises(ValueError):
        distribute_intervals_fixed_overlap(Interval((0, 0), (9, 9)), (1,), (5, 5))
