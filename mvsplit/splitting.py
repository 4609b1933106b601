"""Splitting every view of a dataset into overlapping sub-volume views.

Each old setup is partitioned into blocks; every block becomes a new setup
with a fresh setup id and tile id. A new view's registration is the old view's
transform list followed by a translation to the block's min corner, so the
block's local origin maps onto the same global position as before.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from mvsplit.dataset import SpimDataset
from mvsplit.errors import MissingSizeError
from mvsplit.models import Interval, Tile, ViewId, ViewSetup
from mvsplit.partition import distribute_intervals_fixed_overlap
from mvsplit.registration import ViewRegistration, ViewTransform, translation

SPLITTING_TRANSFORM = "Image Splitting"


@dataclass
class TileMapping:
    """New setup id -> (old setup id, block interval in old pixel coordinates)."""

    new_to_old: Dict[int, int] = field(default_factory=dict)
    intervals: Dict[int, Interval] = field(default_factory=dict)

    def add(self, new_setup: int, old_setup: int, interval: Interval) -> None:
        self.new_to_old[new_setup] = old_setup
        self.intervals[new_setup] = interval

    def old_setup(self, new_setup: int) -> int:
        return self.new_to_old[new_setup]

    def interval(self, new_setup: int) -> Interval:
        return self.intervals[new_setup]

    def new_setups(self, old_setup: int) -> List[int]:
        """New setup ids cut from ``old_setup``, ascending."""
        return sorted(n for n, o in self.new_to_old.items() if o == old_setup)

    def __len__(self):
        return len(self.new_to_old)


class SplitImageLoader:
    """Serves split views by cropping volumes of the original views."""

    def __init__(self, underlying, mapping: TileMapping):
        self.underlying = underlying
        self.mapping = mapping

    def load_volume(self, view: ViewId) -> Optional[np.ndarray]:
        """Load the (z, y, x) block of a new view from its old view."""
        if self.underlying is None:
            raise RuntimeError("No image loader to read original views from")

        old_view = ViewId(view.timepoint, self.mapping.old_setup(view.setup))
        volume = self.underlying.load_volume(old_view)
        if volume is None:
            return None

        interval = self.mapping.interval(view.setup)
        # interval is (x, y, z), volumes are (z, y, x)
        crop = tuple(
            slice(lo, hi + 1) for lo, hi in zip(reversed(interval.min), reversed(interval.max))
        )
        return volume[crop]


def split_images(
    dataset: SpimDataset, overlap: Sequence[int], target_size: Sequence[int]
) -> SpimDataset:
    """Return a new dataset with every setup split into overlapping blocks.

    The input dataset is not modified. Point spread functions, intensity
    adjustments and stitching results are reset; bounding boxes carry over.

    :param dataset: Dataset whose setups all declare a size
    :param overlap: Overlap per dimension in pixels
    :param target_size: Desired block size per dimension in pixels
    :raises MissingSizeError: If a setup has no size
    :raises DegenerateIntervalError: If a computed block is empty
    """
    timepoints = dataset.ordered_timepoints()
    mapping = TileMapping()
    new_setups: Dict[int, ViewSetup] = {}
    new_registrations = {}
    new_id = 0
    new_tile_id = 0

    for old_setup in dataset.ordered_setups():
        if not old_setup.has_size:
            raise MissingSizeError(old_setup.id)

        old_tile = old_setup.tile
        intervals = distribute_intervals_fixed_overlap(
            Interval.from_size(old_setup.size), overlap, target_size
        )
        logger.debug(f"setup {old_setup.id}: {len(intervals)} block(s)")

        for interval in intervals:
            mapping.add(new_id, old_setup.id, interval)

            if old_tile is None or old_tile.location is None:
                location = [0.0] * interval.num_dimensions
            else:
                location = [float(v) for v in old_tile.location]
            for d in range(interval.num_dimensions):
                location[d] += interval.min[d]

            new_tile = Tile(new_tile_id, str(new_tile_id), tuple(location))
            new_setup = ViewSetup(
                id=new_id,
                name=str(new_id),
                size=interval.dimensions,
                voxel_size=old_setup.voxel_size,
                angle=old_setup.angle,
                channel=old_setup.channel,
                illumination=old_setup.illumination,
                tile=new_tile,
            )
            new_setups[new_id] = new_setup

            for t in timepoints:
                old_view = ViewId(t.id, old_setup.id)
                try:
                    old_registration = dataset.registrations[old_view]
                except KeyError:
                    raise KeyError(f"No registration for view {old_view}") from None

                transforms = list(old_registration.transforms)
                transforms.append(ViewTransform(SPLITTING_TRANSFORM, translation(interval.min)))
                new_registrations[ViewId(t.id, new_id)] = ViewRegistration(
                    t.id, new_id, transforms
                )

            new_id += 1
            new_tile_id += 1

    missing_views = set()
    for missing in dataset.missing_views:
        for new_setup_id in mapping.new_setups(missing.setup):
            missing_views.add(ViewId(missing.timepoint, new_setup_id))

    interest_points = {
        ViewId(t.id, setup_id): {} for t in timepoints for setup_id in new_setups
    }

    logger.info(
        f"Split {len(dataset.setups)} setup(s) into {len(new_setups)} setup(s) "
        f"over {len(timepoints)} timepoint(s), {len(missing_views)} missing view(s)"
    )

    return SpimDataset(
        timepoints=list(timepoints),
        setups=new_setups,
        registrations=new_registrations,
        missing_views=missing_views,
        interest_points=interest_points,
        bounding_boxes=dict(dataset.bounding_boxes),
        image_loader=SplitImageLoader(dataset.image_loader, mapping),
        base_path=dataset.base_path,
    )
