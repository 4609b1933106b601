"""Overlap detection between views from their transformed bounding boxes."""

from typing import Mapping, Optional, Sequence, Tuple

import numpy as np

from mvsplit.errors import MissingSizeError
from mvsplit.models import ViewId, ViewSetup
from mvsplit.registration import ViewRegistration, ViewRegistrations, estimate_bounds

RealBox = Tuple[np.ndarray, np.ndarray]
IntBox = Tuple[Tuple[int, ...], Tuple[int, ...]]


def bounding_box_real(size: Sequence[int], model: np.ndarray) -> RealBox:
    """Global real bounds of a view of ``size`` pixels under ``model``."""
    real_min = [0.0, 0.0, 0.0]
    # one pixel inside the last pixel index (size - 1)
    real_max = [float(size[d]) - 2.0 for d in range(3)]
    return estimate_bounds(model, real_min, real_max)


def bounding_box(size: Sequence[int], model: np.ndarray) -> IntBox:
    """Integer bounds, rounded and widened by one pixel on each side."""
    real_min, real_max = bounding_box_real(size, model)
    return (
        tuple(int(np.floor(v + 0.5)) - 1 for v in real_min),
        tuple(int(np.floor(v + 0.5)) + 1 for v in real_max),
    )


def boxes_overlap(bb1: IntBox, bb2: IntBox) -> bool:
    """False only if the boxes are strictly disjoint along some dimension."""
    min1, max1 = bb1
    min2, max2 = bb2
    for d in range(len(min1)):
        if (min1[d] < min2[d] and max1[d] < min2[d]) or (
            min1[d] > max2[d] and max1[d] > max2[d]
        ):
            return False
    return True


class SimpleBoundingBoxOverlap:
    """Decides view overlap by intersecting registered bounding boxes."""

    def __init__(self, setups: Mapping[int, ViewSetup], registrations: ViewRegistrations):
        self.setups = setups
        self.registrations = registrations

    @classmethod
    def from_dataset(cls, dataset) -> "SimpleBoundingBoxOverlap":
        return cls(dataset.setups, dataset.registrations)

    def _setup_and_registration(self, view: ViewId) -> Tuple[ViewSetup, ViewRegistration]:
        setup = self.setups[view.setup]
        if not setup.has_size:
            raise MissingSizeError(setup.id)
        return setup, self.registrations[view]

    def bounding_box_real(self, view: ViewId) -> RealBox:
        setup, registration = self._setup_and_registration(view)
        return bounding_box_real(setup.size, registration.model())

    def bounding_box(self, view: ViewId) -> IntBox:
        setup, registration = self._setup_and_registration(view)
        return bounding_box(setup.size, registration.model())

    def overlaps(self, view1: ViewId, view2: ViewId) -> bool:
        return boxes_overlap(self.bounding_box(view1), self.bounding_box(view2))

    def overlap_interval(self, view1: ViewId, view2: ViewId) -> Optional[RealBox]:
        """Real intersection of two views' boxes, None if empty or flat."""
        min1, max1 = self.bounding_box_real(view1)
        min2, max2 = self.bounding_box_real(view2)

        if not self.overlaps(view1, view2):
            return None

        lo = np.maximum(min1, min2)
        hi = np.minimum(max1, max2)
        if np.any(hi <= lo):
            return None
        return lo, hi
