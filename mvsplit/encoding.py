"""Source pixel encodings understood by the plane decoder."""

from enum import Enum

import numpy as np


class PixelEncoding(Enum):
    """Pixel encoding of a raw plane buffer.

    Each member carries its byte width, the ``struct`` format character and
    the numpy type code. Byte order is a separate, per-file flag.
    """

    UINT8 = (1, "B", "u1")
    UINT16 = (2, "H", "u2")
    INT16 = (2, "h", "i2")
    UINT32 = (4, "I", "u4")
    FLOAT32 = (4, "f", "f4")

    def __init__(self, byte_width, struct_char, type_code):
        self.byte_width = byte_width
        self.struct_char = struct_char
        self.type_code = type_code

    def byte_order(self, little_endian: bool) -> str:
        if self is PixelEncoding.UINT8:
            return "|"
        return "<" if little_endian else ">"

    def dtype(self, little_endian: bool) -> np.dtype:
        """Numpy dtype of the raw source buffer."""
        return np.dtype(f"{self.byte_order(little_endian)}{self.type_code}")

    def struct_format(self, little_endian: bool) -> str:
        """``struct`` format for a single pixel."""
        prefix = "<" if little_endian else ">"
        return f"{prefix}{self.struct_char}"

    @property
    def output_dtype(self) -> np.dtype:
        """Real-valued container type able to hold every source value exactly.

        float32 has a 24-bit mantissa, which covers all 8 and 16-bit values and
        float32 itself; uint32 needs double precision.
        """
        if self is PixelEncoding.UINT32:
            return np.dtype(np.float64)
        return np.dtype(np.float32)

    @classmethod
    def from_dtype(cls, dtype) -> "PixelEncoding":
        """Map a numpy dtype (any byte order) to a PixelEncoding."""
        dtype = np.dtype(dtype)
        mapping = {
            ("u", 1): cls.UINT8,
            ("u", 2): cls.UINT16,
            ("i", 2): cls.INT16,
            ("u", 4): cls.UINT32,
            ("f", 4): cls.FLOAT32,
        }
        encoding = mapping.get((dtype.kind, dtype.itemsize))
        if encoding is None:
            raise ValueError(f"Unsupported dtype: {dtype}")
        return encoding

    @classmethod
    def from_name(cls, name: str) -> "PixelEncoding":
        """Map a pixel type name such as ``'uint16'`` or ``'float'``."""
        mapping = {
            "uint8": cls.UINT8,
            "uint16": cls.UINT16,
            "int16": cls.INT16,
            "uint32": cls.UINT32,
            "float": cls.FLOAT32,
            "float32": cls.FLOAT32,
        }
        encoding = mapping.get(name.lower())
        if encoding is None:
            raise ValueError(f"Unsupported pixel type: {name}")
        return encoding
