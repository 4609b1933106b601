"""Shared fixtures: an in-memory byte-plane reader and small datasets."""

from pathlib import Path

import numpy as np
import pytest

from mvsplit.dataset import SpimDataset
from mvsplit.encoding import PixelEncoding
from mvsplit.models import (
    Angle,
    Channel,
    Illumination,
    Tile,
    TimePoint,
    ViewId,
    ViewSetup,
    VoxelDimensions,
)
from mvsplit.readers import BytePlaneReader
from mvsplit.registration import ViewRegistration, ViewTransform, translation


def make_stack(t, c, z, y, x, dtype=np.uint16, offset=0):
    """Deterministic (T, C, Z, Y, X) stack with distinct values per pixel."""
    dtype = np.dtype(dtype)
    values = np.arange(t * c * z * y * x, dtype=np.int64) + offset
    if dtype.kind in "ui":
        values = values % (np.iinfo(dtype).max + 1 if dtype.kind == "u" else 32768)
    return values.reshape(t, c, z, y, x).astype(dtype)


class FakePlaneReader(BytePlaneReader):
    """BytePlaneReader serving planes from in-memory (T, C, Z, Y, X) stacks."""

    def __init__(self, stacks, little_endian=True, fail_open=False, fail_on_index=None):
        self.stacks = stacks
        self._little_endian = little_endian
        self.fail_open = fail_open
        self.fail_on_index = fail_on_index
        self.series = 0
        self.opened = False
        self.open_count = 0
        self.close_count = 0
        self.reads = []

    def open(self, path):
        if self.fail_open:
            raise IOError(f"cannot open {path}")
        self.path = Path(path)
        self.opened = True
        self.open_count += 1

    def close(self):
        self.opened = False
        self.close_count += 1

    @property
    def is_open(self):
        return self.opened

    @property
    def series_count(self):
        return len(self.stacks)

    def set_series(self, series):
        if not 0 <= series < len(self.stacks):
            raise IndexError(f"series {series}")
        self.series = series

    @property
    def _stack(self):
        return self.stacks[self.series]

    @property
    def size_x(self):
        return self._stack.shape[4]

    @property
    def size_y(self):
        return self._stack.shape[3]

    @property
    def size_z(self):
        return self._stack.shape[2]

    @property
    def size_c(self):
        return self._stack.shape[1]

    @property
    def size_t(self):
        return self._stack.shape[0]

    @property
    def pixel_encoding(self):
        return PixelEncoding.from_dtype(self._stack.dtype)

    @property
    def little_endian(self):
        return self._little_endian

    def read_plane_bytes(self, index):
        if self.fail_on_index is not None and index == self.fail_on_index:
            raise IOError(f"corrupt plane {index}")
        self.reads.append((self.series, index))
        z, c, t = self.plane_position(index)
        plane = self._stack[t, c, z]
        return plane.astype(self.pixel_encoding.dtype(self._little_endian)).tobytes()


class ReaderFactory:
    """Callable creating FakePlaneReaders, remembering every instance."""

    def __init__(self, stacks, **kwargs):
        self.stacks = stacks
        self.kwargs = kwargs
        self.created = []

    def __call__(self):
        reader = FakePlaneReader(self.stacks, **self.kwargs)
        self.created.append(reader)
        return reader


@pytest.fixture
def stacks():
    # two series, 1 timepoint, 2 illuminations x 3 channels, 4 z, 5 y, 6 x
    return [make_stack(1, 6, 4, 5, 6), make_stack(1, 6, 4, 5, 6, offset=1000)]


@pytest.fixture
def reader_factory(stacks):
    return ReaderFactory(stacks)


@pytest.fixture
def lightsheet_setups():
    """Setups for 2 tiles/angles x 2 illuminations x 3 channels, ids ordered by series, illum, channel."""
    setups = {}
    setup_id = 0
    for series in range(2):
        for i in range(2):
            for c in range(3):
                setups[setup_id] = ViewSetup(
                    id=setup_id,
                    size=(6, 5, 4),
                    angle=Angle(series),
                    channel=Channel(c),
                    illumination=Illumination(i),
                    tile=Tile(series),
                )
                setup_id += 1
    return setups


def make_dataset(sizes, timepoints=(0,), locations=None, missing=()):
    """Dataset with one setup per size and a translated registration per view."""
    setups = {}
    registrations = {}
    for setup_id, size in enumerate(sizes):
        location = locations[setup_id] if locations else None
        setups[setup_id] = ViewSetup(
            id=setup_id,
            size=size,
            voxel_size=VoxelDimensions("um", (0.5, 0.5, 2.0)),
            angle=Angle(0),
            channel=Channel(setup_id % 2),
            illumination=Illumination(0),
            tile=Tile(setup_id, location=location),
        )
        for t in timepoints:
            registrations[ViewId(t, setup_id)] = ViewRegistration(
                t,
                setup_id,
                [
                    ViewTransform("calibration", np.diag([1.0, 1.0, 4.0, 1.0])[:3]),
                    ViewTransform("tile", translation((100.0 * setup_id, 0.0, 0.0))),
                ],
            )
    return SpimDataset(
        timepoints=[TimePoint(t) for t in timepoints],
        setups=setups,
        registrations=registrations,
        missing_views=set(missing),
    )


@pytest.fixture
def dataset_factory():
    return make_dataset


@pytest.fixture
def stack_factory():
    return make_stack


@pytest.fixture
def factory_cls():
    return ReaderFactory
