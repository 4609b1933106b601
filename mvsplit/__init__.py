from mvsplit.encoding import PixelEncoding
from mvsplit.errors import (
    DegenerateIntervalError,
    MalformedPlaneError,
    MissingAttributeError,
    MissingSizeError,
    MvSplitError,
    VolumeLoadError,
)
from mvsplit.loader import VolumeLoader
from mvsplit.models import Interval, ViewId, ViewSetup
from mvsplit.overlap import SimpleBoundingBoxOverlap
from mvsplit.partition import distribute_intervals_fixed_overlap
from mvsplit.planes import decode_plane
from mvsplit.splitting import split_images

__version__ = "0.1.0"
