"""Registration transforms mapping local pixel coordinates to global space.

Affines are stored as 3x4 numpy arrays (row-major ``[R | t]``) and composed as
4x4 homogeneous matrices.
"""

import itertools
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np

from mvsplit.models import ViewId


def identity() -> np.ndarray:
    return np.eye(3, 4, dtype=np.float64)


def translation(offset: Sequence[float]) -> np.ndarray:
    """Return the 3x4 affine translating by ``offset`` (x, y, z)."""
    affine = identity()
    for d in range(3):
        affine[d, 3] = float(offset[d]) if d < len(offset) else 0.0
    return affine


def to_homogeneous(affine: np.ndarray) -> np.ndarray:
    matrix = np.eye(4, dtype=np.float64)
    matrix[:3, :] = affine
    return matrix


def apply(affine: np.ndarray, point: Sequence[float]) -> np.ndarray:
    p = np.asarray(point, dtype=np.float64)
    return affine[:, :3] @ p + affine[:, 3]


def estimate_bounds(
    affine: np.ndarray, real_min: Sequence[float], real_max: Sequence[float]
) -> Tuple[np.ndarray, np.ndarray]:
    """Bounding box of the transformed corners of a real 3D box."""
    corners = np.array(
        [
            apply(affine, corner)
            for corner in itertools.product(*zip(real_min, real_max))
        ]
    )
    return corners.min(axis=0), corners.max(axis=0)


@dataclass
class ViewTransform:
    name: str
    affine: np.ndarray = field(default_factory=identity)

    def __post_init__(self):
        self.affine = np.array(self.affine, dtype=np.float64).reshape(3, 4)


@dataclass
class ViewRegistration:
    """Ordered list of named transforms for one view.

    The composed model is ``T[0] * T[1] * ... * T[n-1]``: the last transform in
    the list is applied to a pixel coordinate first.
    """

    timepoint: int
    setup: int
    transforms: List[ViewTransform] = field(default_factory=list)

    @property
    def view_id(self) -> ViewId:
        return ViewId(self.timepoint, self.setup)

    def append(self, transform: ViewTransform) -> None:
        self.transforms.append(transform)

    def model(self) -> np.ndarray:
        """Compose all transforms into one 3x4 affine."""
        matrix = np.eye(4, dtype=np.float64)
        for transform in self.transforms:
            matrix = matrix @ to_homogeneous(transform.affine)
        return matrix[:3, :]


ViewRegistrations = Dict[ViewId, ViewRegistration]
