"""Byte-plane readers and source-file metadata probing.

A reader delivers raw plane buffers addressed by a linear plane index. Planes
within a series are rasterized in XYCZT order, i.e. the index of plane
(z, c, t) is ``c + size_c * (z + size_z * t)``.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np
from bioio import BioImage
from loguru import logger

from mvsplit.encoding import PixelEncoding
from mvsplit.models import VoxelDimensions
from mvsplit.utils import ensure_java_home


class BytePlaneReader:
    """Interface of a reader that delivers raw byte planes.

    Subclasses implement ``open``/``close``/``set_series``/``read_plane_bytes``
    and report the current series' sizes, pixel encoding and byte order.
    """

    path: Optional[Path] = None

    def open(self, path: Union[str, Path]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    @property
    def series_count(self) -> int:
        raise NotImplementedError

    def set_series(self, series: int) -> None:
        raise NotImplementedError

    @property
    def size_x(self) -> int:
        raise NotImplementedError

    @property
    def size_y(self) -> int:
        raise NotImplementedError

    @property
    def size_z(self) -> int:
        raise NotImplementedError

    @property
    def size_c(self) -> int:
        raise NotImplementedError

    @property
    def size_t(self) -> int:
        raise NotImplementedError

    @property
    def pixel_encoding(self) -> PixelEncoding:
        raise NotImplementedError

    @property
    def little_endian(self) -> bool:
        raise NotImplementedError

    @property
    def voxel_size(self) -> Optional[VoxelDimensions]:
        return None

    @property
    def plane_count(self) -> int:
        return self.size_z * self.size_c * self.size_t

    def plane_index(self, z: int, c: int, t: int) -> int:
        """Linear plane index of (z, c, t) within the current series."""
        if not (0 <= z < self.size_z and 0 <= c < self.size_c and 0 <= t < self.size_t):
            raise IndexError(
                f"Plane (z={z}, c={c}, t={t}) outside Z={self.size_z}, C={self.size_c}, T={self.size_t}"
            )
        return c + self.size_c * (z + self.size_z * t)

    def plane_position(self, index: int) -> Tuple[int, int, int]:
        """Inverse of :meth:`plane_index`, returns (z, c, t)."""
        if not 0 <= index < self.plane_count:
            raise IndexError(f"Plane index {index} outside 0..{self.plane_count - 1}")
        c = index % self.size_c
        z = (index // self.size_c) % self.size_z
        t = index // (self.size_c * self.size_z)
        return z, c, t

    def read_plane_bytes(self, index: int) -> bytes:
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class BioioPlaneReader(BytePlaneReader):
    """BytePlaneReader backed by bioio.

    Each bioio scene is one series. Planes are served in the requested byte
    order (native by default).
    """

    def __init__(self, little_endian: Optional[bool] = None):
        self._little_endian = np.little_endian if little_endian is None else little_endian
        self._image = None
        self.path = None

    def open(self, path):
        self.path = Path(path)
        ensure_java_home()
        self._image = BioImage(self.path)
        logger.debug(
            f"{self.path.name} - using {self._image._plugin.entrypoint.name} reader, "
            f"{len(self._image.scenes)} scene(s)"
        )

    def close(self):
        if self._image is not None:
            logger.debug(f"Closing {self.path}")
        self._image = None

    @property
    def is_open(self):
        return self._image is not None

    def _require_open(self) -> BioImage:
        if self._image is None:
            raise RuntimeError("Reader is not open")
        return self._image

    @property
    def series_count(self):
        return len(self._require_open().scenes)

    def set_series(self, series):
        image = self._require_open()
        if series != image.current_scene_index:
            image.set_scene(series)

    @property
    def size_x(self):
        return self._require_open().dims.X

    @property
    def size_y(self):
        return self._require_open().dims.Y

    @property
    def size_z(self):
        return self._require_open().dims.Z

    @property
    def size_c(self):
        return self._require_open().dims.C

    @property
    def size_t(self):
        return self._require_open().dims.T

    @property
    def pixel_encoding(self):
        return PixelEncoding.from_dtype(self._require_open().dtype)

    @property
    def little_endian(self):
        return self._little_endian

    @property
    def voxel_size(self):
        sizes = self._require_open().physical_pixel_sizes
        return VoxelDimensions(
            "um", tuple(s if s is not None else 1.0 for s in (sizes.X, sizes.Y, sizes.Z))
        )

    def read_plane_bytes(self, index):
        z, c, t = self.plane_position(index)
        plane = self._require_open().get_image_data("YX", Z=z, C=c, T=t)
        return np.ascontiguousarray(plane).astype(
            self.pixel_encoding.dtype(self._little_endian)
        ).tobytes()


ReaderFactory = Callable[[], BytePlaneReader]


@dataclass
class FileMetadata:
    """Metadata probed once per source file.

    ``image_sizes`` maps an angle id to its (x, y, z) size; the source stores
    one series per angle position. The channel axis of the file interleaves
    illuminations and channels, so ``size_c == num_channels * num_illuminations``.

    ``reader`` is the reader used for probing, left open for reuse.
    """

    path: Path
    series_count: int
    num_channels: int
    num_illuminations: int
    num_timepoints: int
    pixel_encoding: PixelEncoding
    little_endian: bool
    image_sizes: Dict[int, Tuple[int, int, int]] = field(default_factory=dict)
    voxel_size: Optional[VoxelDimensions] = None
    reader: Optional[BytePlaneReader] = field(default=None, repr=False)

    @property
    def bytes_per_pixel(self) -> int:
        return self.pixel_encoding.byte_width


def probe_metadata(
    path: Union[str, Path],
    reader_factory: ReaderFactory = BioioPlaneReader,
    num_illuminations: int = 1,
) -> Optional[FileMetadata]:
    """Analyze a source file and return its metadata.

    Failure is soft: it is logged and ``None`` is returned so the caller may
    retry against a different file.
    """
    path = Path(path)
    reader = reader_factory()

    try:
        reader.open(path)

        image_sizes = {}
        for series in range(reader.series_count):
            reader.set_series(series)
            image_sizes[series] = (reader.size_x, reader.size_y, reader.size_z)
        reader.set_series(0)

        size_c = reader.size_c
        if num_illuminations < 1 or size_c % num_illuminations:
            raise ValueError(
                f"{size_c} channel planes cannot hold {num_illuminations} illumination(s)"
            )

        meta = FileMetadata(
            path=path,
            series_count=reader.series_count,
            num_channels=size_c // num_illuminations,
            num_illuminations=num_illuminations,
            num_timepoints=reader.size_t,
            pixel_encoding=reader.pixel_encoding,
            little_endian=reader.little_endian,
            image_sizes=image_sizes,
            voxel_size=reader.voxel_size,
            reader=reader,
        )
    except Exception as e:
        logger.warning(f"Failed to analyze file: '{path}': {e}")
        try:
            reader.close()
        except Exception as close_error:
            logger.debug(f"Closing reader after failed probe raised: {close_error}")
        return None

    logger.info(
        f"{path.name}: {meta.series_count} series, {meta.num_channels} channel(s), "
        f"{meta.num_illuminations} illumination(s), {meta.num_timepoints} timepoint(s), "
        f"type={meta.pixel_encoding.name}, little_endian={meta.little_endian}"
    )
    return meta
