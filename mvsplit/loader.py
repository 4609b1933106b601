"""Z-stack loading of single views from a multi-series light-sheet file.

One VolumeLoader owns one source file. Metadata is probed once and the reader
opened once, both reused by every view read from that file until ``close()``.
Reads against the reader are serialized.

Channel/illumination interleaving
---------------------------------
The acquisition hardware writes the illumination sides as the outer and the
channels as the inner interleave of the file's channel axis::

    i0(c0, c1, c2), i1(c0, c1, c2)

so the raw channel ordinal of (illumination, channel) is
``illumination * num_channels + channel``. This ordering is fixed.
"""

import threading
from pathlib import Path
from typing import Iterator, Mapping, Optional, Tuple, Union

import numpy as np
from loguru import logger

from mvsplit.errors import VolumeLoadError
from mvsplit.models import Plane, ViewId, ViewSetup
from mvsplit.planes import decode_plane
from mvsplit.readers import (
    BioioPlaneReader,
    BytePlaneReader,
    FileMetadata,
    ReaderFactory,
    probe_metadata,
)


def channel_ordinal(illumination_id: int, channel_id: int, num_channels: int) -> int:
    """Raw channel ordinal of (illumination, channel) in the source file."""
    return illumination_id * num_channels + channel_id


def plane_index(
    reader: BytePlaneReader,
    z: int,
    illumination_id: int,
    channel_id: int,
    timepoint_id: int,
    num_channels: int,
) -> int:
    """Reader plane index of one z-slice of (illumination, channel, timepoint)."""
    return reader.plane_index(
        z, channel_ordinal(illumination_id, channel_id, num_channels), timepoint_id
    )


class VolumeLoader:
    """Loads 3D volumes (z, y, x) of views stored in one source file.

    Usage::

        with VolumeLoader(path, dataset.setups) as loader:
            volume = loader.load_volume(ViewId(0, 3))

    :param path: Source file
    :param setups: ViewSetups by id, used to resolve attributes and sizes
    :param reader_factory: Creates the underlying BytePlaneReader
    :param metadata: Previously probed metadata, skips the probe if given
    :param num_illuminations: Illumination sides interleaved in the channel axis
    :param order: Memory order of returned volumes, ``"C"`` or ``"F"``
    """

    def __init__(
        self,
        path: Union[str, Path],
        setups: Mapping[int, ViewSetup],
        reader_factory: ReaderFactory = BioioPlaneReader,
        metadata: Optional[FileMetadata] = None,
        num_illuminations: int = 1,
        order: str = "C",
    ):
        if order not in ("C", "F"):
            raise ValueError(f"order must be 'C' or 'F', got {order!r}")
        self.path = Path(path)
        self.setups = setups
        self.order = order
        self._reader_factory = reader_factory
        self._num_illuminations = num_illuminations
        self._metadata = metadata
        self._probe_failed = False
        self._reader: Optional[BytePlaneReader] = None
        self._closed = False
        self._lock = threading.RLock()

    @property
    def metadata(self) -> Optional[FileMetadata]:
        return self._metadata

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_metadata(self, view: ViewId) -> Optional[FileMetadata]:
        with self._lock:
            if self._metadata is not None:
                return self._metadata

            logger.info(f"Investigating file '{self.path}' (loading metadata).")
            meta = probe_metadata(self.path, self._reader_factory, self._num_illuminations)

            if meta is None:
                if self._probe_failed:
                    raise VolumeLoadError(self.path, view, "could not analyze file")
                self._probe_failed = True
                return None

            self._metadata = meta
            return meta

    def _ensure_reader(self, meta: FileMetadata) -> BytePlaneReader:
        if self._reader is None:
            if meta.reader is not None and meta.reader.is_open:
                self._reader = meta.reader
            else:
                self._reader = self._reader_factory()
                logger.info(f"Opening '{self.path.name}' for reading image data.")
                self._reader.open(self.path)
        return self._reader

    def _release_reader(self) -> None:
        reader, self._reader = self._reader, None
        if self._metadata is not None:
            self._metadata.reader = None
        if reader is not None:
            try:
                reader.close()
            except Exception as e:
                logger.error(f"Failed to close reader for '{self.path}': {e}")

    def _setup(self, view: ViewId) -> ViewSetup:
        try:
            return self.setups[view.setup]
        except KeyError:
            raise VolumeLoadError(self.path, view, "unknown view setup") from None

    def volume_size(self, view: ViewId) -> Tuple[int, int, int]:
        """(x, y, z) size of a view: declared setup size, else probed per-angle size."""
        setup = self._setup(view)
        if setup.has_size:
            return tuple(int(s) for s in setup.size)

        meta = self._ensure_metadata(view)
        if meta is None:
            raise VolumeLoadError(self.path, view, "could not analyze file")
        angle = setup.require_angle()
        try:
            return meta.image_sizes[angle.id]
        except KeyError:
            raise VolumeLoadError(
                self.path, view, f"no image size known for angle {angle.name}"
            ) from None

    def iter_planes(self, view: ViewId, volume: Optional[np.ndarray] = None) -> Iterator[Plane]:
        """Yield the decoded z-slices of a view in Z order.

        If ``volume`` is given, slice ``z`` is decoded into ``volume[z]``.
        Any failure closes the reader and raises VolumeLoadError.
        """
        if self._closed:
            raise VolumeLoadError(self.path, view, "loader has been closed")

        meta = self._ensure_metadata(view)
        if meta is None:
            raise VolumeLoadError(self.path, view, "could not analyze file")

        setup = self._setup(view)
        angle = setup.require_angle()
        channel = setup.require_channel()
        illumination = setup.require_illumination()
        tile = setup.require_tile()
        width, height, depth = self.volume_size(view)
        ch = channel_ordinal(illumination.id, channel.id, meta.num_channels)

        logger.info(
            f"Reading image data from '{self.path.name}' [{width}x{height}x{depth} "
            f"angle={angle.name} ch={channel.name} illum={illumination.name} "
            f"tp={view.timepoint} type={meta.pixel_encoding.name}]"
        )

        for z in range(depth):
            # the reader is shared; every plane re-selects its series under the lock
            with self._lock:
                if self._closed:
                    raise VolumeLoadError(self.path, view, "loader has been closed")
                try:
                    reader = self._ensure_reader(meta)
                    reader.set_series(tile.id)
                    index = plane_index(
                        reader, z, illumination.id, channel.id, view.timepoint, meta.num_channels
                    )
                    buffer = reader.read_plane_bytes(index)
                    out = volume[z] if volume is not None else None
                    xy_array = decode_plane(
                        buffer, meta.pixel_encoding, meta.little_endian, width, height, out
                    )
                except Exception as e:
                    logger.error(f"File '{self.path}' could not be read: {e}")
                    self._release_reader()
                    raise VolumeLoadError(self.path, view, str(e)) from e

            logger.debug(f"{self.path.name} - z={z + 1}/{depth} plane={index}")
            yield Plane(
                xy_array=xy_array,
                series_idx=tile.id,
                z_depth=z,
                c_channel=ch,
                t_time=view.timepoint,
                plane_index=index,
            )

    def load_volume(self, view: ViewId) -> Optional[np.ndarray]:
        """Load the (z, y, x) volume of a view.

        Returns None if the very first metadata probe fails; a later failed
        probe, a missing attribute or a read error raise.

        :raises VolumeLoadError: If the volume could not be read
        :raises MissingAttributeError: If the view setup lacks angle/channel/illumination/tile
        """
        if self._closed:
            raise VolumeLoadError(self.path, view, "loader has been closed")

        meta = self._ensure_metadata(view)
        if meta is None:
            return None

        width, height, depth = self.volume_size(view)
        try:
            volume = np.empty(
                (depth, height, width), dtype=meta.pixel_encoding.output_dtype, order=self.order
            )
        except MemoryError as e:
            raise VolumeLoadError(self.path, view, "out of memory") from e

        for _ in self.iter_planes(view, volume):
            pass

        return volume

    def load_float_volume(self, view: ViewId, normalize: bool = False) -> Optional[np.ndarray]:
        """Load a view as float32, optionally min/max-scaled to [0, 1]."""
        volume = self.load_volume(view)
        if volume is None:
            return None

        volume = volume.astype(np.float32, copy=False)
        if normalize:
            lo, hi = float(volume.min()), float(volume.max())
            if hi > lo:
                volume = (volume - lo) / (hi - lo)
            else:
                volume = np.zeros_like(volume)
        return volume

    def close(self) -> None:
        """Release the reader. Safe to call repeatedly."""
        if self._closed:
            return
        if self._reader is None and self._metadata is not None:
            self._reader = self._metadata.reader
        if self._reader is not None:
            logger.info(f"Closing '{self.path}'")
        self._release_reader()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("open" if self._reader else "idle")
        return f"VolumeLoader('{self.path.name}', {state})"
