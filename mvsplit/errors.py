"""Exception hierarchy for plane decoding, volume loading and tile splitting."""


class MvSplitError(Exception):
    """Base class for all mvsplit errors."""


class MalformedPlaneError(MvSplitError, ValueError):
    """Raised when a plane buffer does not match width * height * byte width."""


class MissingAttributeError(MvSplitError, LookupError):
    """Raised when a ViewSetup lacks a required Angle/Channel/Illumination/Tile."""

    def __init__(self, attribute, setup_id=None):
        self.attribute = attribute
        self.setup_id = setup_id
        super().__init__(
            f"ViewSetup {setup_id} does not have the '{attribute}' attribute. Cannot continue."
        )


class MissingSizeError(MvSplitError, ValueError):
    """Raised when a ViewSetup has no declared size but one is required."""

    def __init__(self, setup_id):
        self.setup_id = setup_id
        super().__init__(f"ViewSetup {setup_id} has no image size")


class DegenerateIntervalError(MvSplitError, ValueError):
    """Raised when a computed interval has non-positive length in some dimension."""


class VolumeLoadError(MvSplitError, RuntimeError):
    """Raised when a volume could not be read from its source file.

    :ivar path: Source file the volume was read from
    :ivar view: ViewId of the requested view
    """

    def __init__(self, path, view, reason=""):
        self.path = path
        self.view = view
        message = (
            f"Could not load '{path}' viewSetupId={view.setup}, tpId={view.timepoint}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
