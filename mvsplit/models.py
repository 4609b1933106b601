"""Data structures describing views, their setups and integer intervals."""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from mvsplit.errors import DegenerateIntervalError, MissingAttributeError


@dataclass(frozen=True, order=True)
class Entity:
    """An (id, name) attribute of a ViewSetup."""

    id: int
    name: str = ""

    def __post_init__(self):
        if not self.name:
            object.__setattr__(self, "name", str(self.id))


@dataclass(frozen=True, order=True)
class Angle(Entity):
    pass


@dataclass(frozen=True, order=True)
class Channel(Entity):
    pass


@dataclass(frozen=True, order=True)
class Illumination(Entity):
    pass


@dataclass(frozen=True, order=True)
class TimePoint(Entity):
    pass


@dataclass(frozen=True, order=True)
class Tile(Entity):
    """Tile attribute with an optional real-valued location (x, y, z)."""

    location: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class VoxelDimensions:
    unit: str
    size: Tuple[float, ...]


@dataclass(frozen=True, order=True)
class ViewId:
    """One acquisition unit: a timepoint combined with a view setup."""

    timepoint: int
    setup: int


@dataclass(frozen=True)
class ViewSetup:
    """Static description of one acquisition geometry.

    ``size`` is given per dimension in (x, y, z) order. Angle, channel,
    illumination and tile are optional here; consumers that need them go
    through the ``require_*`` accessors.
    """

    id: int
    name: str = ""
    size: Optional[Tuple[int, ...]] = None
    voxel_size: Optional[VoxelDimensions] = None
    angle: Optional[Angle] = None
    channel: Optional[Channel] = None
    illumination: Optional[Illumination] = None
    tile: Optional[Tile] = None

    def __lt__(self, other):
        return self.id < other.id

    @property
    def has_size(self):
        return self.size is not None

    def _require(self, attribute):
        value = getattr(self, attribute)
        if value is None:
            raise MissingAttributeError(attribute.capitalize(), self.id)
        return value

    def require_angle(self) -> Angle:
        return self._require("angle")

    def require_channel(self) -> Channel:
        return self._require("channel")

    def require_illumination(self) -> Illumination:
        return self._require("illumination")

    def require_tile(self) -> Tile:
        return self._require("tile")


@dataclass(frozen=True)
class Interval:
    """Closed integer box with independent min/max per dimension."""

    min: Tuple[int, ...]
    max: Tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, "min", tuple(int(v) for v in self.min))
        object.__setattr__(self, "max", tuple(int(v) for v in self.max))
        if len(self.min) != len(self.max):
            raise ValueError(
                f"min and max differ in dimensionality: {len(self.min)} != {len(self.max)}"
            )
        for d, (lo, hi) in enumerate(zip(self.min, self.max)):
            if hi < lo:
                raise DegenerateIntervalError(
                    f"dimension {d} has non-positive length: [{lo}, {hi}]"
                )

    @classmethod
    def from_size(cls, size):
        """Zero-min interval spanning ``size`` pixels per dimension."""
        return cls(tuple(0 for _ in size), tuple(int(s) - 1 for s in size))

    @property
    def num_dimensions(self) -> int:
        return len(self.min)

    @property
    def dimensions(self) -> Tuple[int, ...]:
        return tuple(hi - lo + 1 for lo, hi in zip(self.min, self.max))

    def dimension(self, d: int) -> int:
        return self.max[d] - self.min[d] + 1

    def __str__(self):
        ranges = ", ".join(f"{lo} -> {hi}" for lo, hi in zip(self.min, self.max))
        dims = " x ".join(str(s) for s in self.dimensions)
        return f"[{ranges}], dimensions ({dims})"


@dataclass
class Plane:
    """2D pixel plane with its position in the source file.

    :ivar xy_array: Decoded pixel data with Y (rows) and X (columns) dimensions
    :ivar series_idx: Series index in the source file (the view's tile id)
    :ivar z_depth: Z-stack position (0-based)
    :ivar c_channel: Raw channel ordinal in the file (illumination-interleaved)
    :ivar t_time: Time point index (0-based)
    """

    xy_array: np.ndarray
    series_idx: int
    z_depth: int
    c_channel: int
    t_time: int
    plane_index: int = field(default=-1)
