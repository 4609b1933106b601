"""In-memory multiview dataset: setups, timepoints, registrations and side registries."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set

import numpy as np

from mvsplit.models import (
    Angle,
    Channel,
    Illumination,
    Interval,
    Tile,
    TimePoint,
    ViewId,
    ViewSetup,
)
from mvsplit.readers import FileMetadata
from mvsplit.registration import ViewRegistration, ViewRegistrations, ViewTransform


@dataclass
class SpimDataset:
    """Views of one acquisition with their registrations.

    ``interest_points`` maps every view to its named interest point lists.
    ``bounding_boxes`` holds named boxes in global coordinates.
    ``image_loader`` is any object with ``load_volume(view_id)``.
    """

    timepoints: List[TimePoint]
    setups: Dict[int, ViewSetup]
    registrations: ViewRegistrations
    missing_views: Set[ViewId] = field(default_factory=set)
    interest_points: Dict[ViewId, Dict[str, list]] = field(default_factory=dict)
    bounding_boxes: Dict[str, Interval] = field(default_factory=dict)
    point_spread_functions: Dict[ViewId, Any] = field(default_factory=dict)
    stitching_results: Dict[Any, Any] = field(default_factory=dict)
    intensity_adjustments: Dict[ViewId, Any] = field(default_factory=dict)
    image_loader: Optional[Any] = None
    base_path: Optional[Path] = None

    def ordered_setups(self) -> List[ViewSetup]:
        return sorted(self.setups.values())

    def ordered_timepoints(self) -> List[TimePoint]:
        return sorted(self.timepoints)

    def view_ids(self, include_missing: bool = True) -> List[ViewId]:
        """All (timepoint, setup) pairs ordered by timepoint, then setup id."""
        views = [
            ViewId(t.id, s.id)
            for t in self.ordered_timepoints()
            for s in self.ordered_setups()
        ]
        if include_missing:
            return views
        return [v for v in views if v not in self.missing_views]

    def is_missing(self, view: ViewId) -> bool:
        return view in self.missing_views

    def registration(self, view: ViewId) -> ViewRegistration:
        return self.registrations[view]


def calibration(voxel_size: Optional[Sequence[float]]) -> np.ndarray:
    """Affine scaling y and z to the x voxel size."""
    affine = np.eye(3, 4, dtype=np.float64)
    if voxel_size:
        x = voxel_size[0]
        for d, s in enumerate(voxel_size[:3]):
            affine[d, d] = s / x
    return affine


def dataset_from_metadata(
    meta: FileMetadata, timepoints: Optional[Sequence[int]] = None
) -> SpimDataset:
    """Build a dataset describing every view stored in a probed source file.

    One setup is created per (series, illumination, channel) with series ``s``
    acting as both angle ``s`` and tile ``s``. Setup ids enumerate series,
    then illumination, then channel. Every view gets a calibration registration.
    """
    if timepoints is None:
        timepoints = range(meta.num_timepoints)
    tps = [TimePoint(t) for t in timepoints]

    setups = {}
    setup_id = 0
    for series in sorted(meta.image_sizes):
        for i in range(meta.num_illuminations):
            for c in range(meta.num_channels):
                setups[setup_id] = ViewSetup(
                    id=setup_id,
                    name=str(setup_id),
                    size=tuple(meta.image_sizes[series]),
                    voxel_size=meta.voxel_size,
                    angle=Angle(series),
                    channel=Channel(c),
                    illumination=Illumination(i),
                    tile=Tile(series),
                )
                setup_id += 1

    voxel = meta.voxel_size.size if meta.voxel_size is not None else None
    registrations = {}
    for t in tps:
        for setup in setups.values():
            registrations[ViewId(t.id, setup.id)] = ViewRegistration(
                t.id, setup.id, [ViewTransform("calibration", calibration(voxel))]
            )

    return SpimDataset(
        timepoints=tps,
        setups=setups,
        registrations=registrations,
        interest_points={view: {} for view in registrations},
        base_path=meta.path.parent,
    )
