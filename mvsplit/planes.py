"""Decoding of raw 2D image planes into real-valued numpy arrays.

A plane buffer holds ``width * height`` pixels in row-major order (X fastest),
each ``encoding.byte_width`` bytes wide in the byte order of the source file.

Two addressing modes are supported. When the target array is C-contiguous the
buffer is reinterpreted in one go and pixel ``i`` lands at flat index ``i``.
Otherwise (e.g. a z-slice of a Fortran-ordered volume) the target is walked in
its own memory order and every pixel's source offset is computed from its
explicit (x, y) position as ``(x + y * width) * byte_width``.
"""

import struct
from typing import Optional, Union

import numpy as np
from loguru import logger

from mvsplit.encoding import PixelEncoding
from mvsplit.errors import MalformedPlaneError

Buffer = Union[bytes, bytearray, memoryview]


def decode_plane(
    buffer: Buffer,
    encoding: PixelEncoding,
    little_endian: bool,
    width: int,
    height: int,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Decode one plane into a (height, width) real-valued array.

    :param buffer: Raw plane bytes, read-only to the decoder
    :param encoding: Pixel encoding of the buffer
    :param little_endian: Byte order of multi-byte pixels
    :param width: Plane width (X)
    :param height: Plane height (Y)
    :param out: Optional target array of shape (height, width); allocated with
        ``encoding.output_dtype`` if omitted
    :return: The populated target array
    :raises MalformedPlaneError: If the buffer length does not match the plane size
    """
    # typed memoryviews count elements, not bytes
    buffer = memoryview(buffer).cast("B")
    expected = width * height * encoding.byte_width
    if buffer.nbytes != expected:
        raise MalformedPlaneError(
            f"Expected {expected} bytes for {width}x{height} {encoding.name} plane, "
            f"got {buffer.nbytes}"
        )

    if out is None:
        out = np.empty((height, width), dtype=encoding.output_dtype)
    elif out.shape != (height, width):
        raise ValueError(f"Target shape {out.shape} does not match plane ({height}, {width})")

    if out.flags.c_contiguous:
        _decode_contiguous(buffer, encoding, little_endian, out)
    else:
        _decode_strided(buffer, encoding, little_endian, width, out)

    return out


def _decode_contiguous(buffer, encoding, little_endian, out):
    values = np.frombuffer(buffer, dtype=encoding.dtype(little_endian))
    np.copyto(out, values.reshape(out.shape), casting="unsafe")


def _decode_strided(buffer, encoding, little_endian, width, out):
    logger.debug(f"Non-contiguous target {out.strides}, decoding by pixel position")

    fmt = encoding.struct_format(little_endian)
    byte_width = encoding.byte_width

    # order="K" follows the target's memory layout, not row-major order
    it = np.nditer(out, flags=["multi_index"], op_flags=[["writeonly"]], order="K")
    with it:
        for pixel in it:
            y, x = it.multi_index
            pixel[...] = struct.unpack_from(fmt, buffer, (x + y * width) * byte_width)[0]


def plane_to_bytes(plane: np.ndarray, encoding: PixelEncoding, little_endian: bool) -> bytes:
    """Encode a 2D plane back into a raw buffer.

    Flattens in C-order (row-major: Y then X) and casts to the source encoding
    in the requested byte order.

    :raises ValueError: If plane is not 2-dimensional
    """
    if plane.ndim != 2:
        raise ValueError(f"Expected 2D plane, got {plane.ndim}D")

    flat = plane.flatten(order="C")
    return flat.astype(encoding.dtype(little_endian)).tobytes()
