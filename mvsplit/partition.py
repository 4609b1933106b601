"""Partitioning of an integer interval into overlapping blocks.

Each dimension is split independently into a first block, ``n`` center blocks
and a last block anchored at the interval's max. All blocks of a dimension
share one size, chosen so the blocks step by ``size - overlap`` from the min.
The N-dimensional result is the cartesian product of the per-dimension blocks,
enumerated with dimension 0 varying fastest.

The seam between the last center block and the max-anchored last block is not
forced to the requested overlap; it is whatever the rounding produces.
"""

import itertools
import math
from typing import List, Sequence, Tuple

from loguru import logger

from mvsplit.errors import DegenerateIntervalError
from mvsplit.models import Interval


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def partition_dimension(
    lo: int, hi: int, overlap: int, target_size: int
) -> List[Tuple[int, int]]:
    """Split the closed range [lo, hi] into overlapping (from, to) blocks.

    Blocks are not validated; a target size that is small relative to the
    overlap can produce blocks with ``to < from``.
    """
    length = hi - lo + 1

    # can I use just 1 block?
    if length <= target_size:
        logger.debug(f"one block from {lo} to {hi}")
        return [(lo, hi)]

    l = float(length)
    s = float(target_size)
    o = float(overlap)

    if s - o == 0.0:
        raise DegenerateIntervalError(
            f"target size {target_size} equal to overlap {overlap} leaves no room between blocks"
        )

    num_center = (l - 2.0 * (s - o) - o) / (s - 2.0 * o + o)
    num_center_int = 0 if num_center <= 0.0 else _round_half_up(num_center)

    n = float(num_center_int)
    new_size = (l + o + n * o) / (2.0 + n)
    new_size_int = _round_half_up(new_size)

    logger.debug(
        f"numCenterBlocks={num_center:.4f} -> {num_center_int}, "
        f"numBlocks={num_center_int + 2}, newSize={new_size:.4f} -> {new_size_int}"
    )

    blocks = []
    for i in range(num_center_int + 1):
        start = _round_half_up(lo + i * new_size - i * o)
        blocks.append((start, start + new_size_int - 1))

    blocks.append((hi - new_size_int + 1, hi))

    for i, (start, end) in enumerate(blocks):
        logger.debug(f"block {i}: {start} {end}")

    return blocks


def distribute_intervals_fixed_overlap(
    interval: Interval, overlap: Sequence[int], target_size: Sequence[int]
) -> List[Interval]:
    """Cover ``interval`` with overlapping blocks of roughly ``target_size``.

    :param interval: Input extent
    :param overlap: Desired overlap per dimension
    :param target_size: Desired block size per dimension
    :return: Blocks in deterministic order, dimension 0 varying fastest
    :raises DegenerateIntervalError: If a block ends before it starts
    """
    n = interval.num_dimensions
    if len(overlap) != n or len(target_size) != n:
        raise ValueError(
            f"overlap ({len(overlap)}) and target size ({len(target_size)}) "
            f"must have {n} dimensions"
        )

    per_dimension = [
        partition_dimension(interval.min[d], interval.max[d], int(overlap[d]), int(target_size[d]))
        for d in range(n)
    ]

    intervals = []
    # product() varies its last argument fastest, so feed the dimensions reversed
    for combination in itertools.product(*reversed(per_dimension)):
        blocks = combination[::-1]
        intervals.append(
            Interval(tuple(b[0] for b in blocks), tuple(b[1] for b in blocks))
        )

    return intervals
