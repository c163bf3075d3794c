"""Error types raised by the slicer core"""


class SpriteSlicerError(Exception):
    """Base class for all slicer errors"""


class InvalidGeometry(SpriteSlicerError):
    """Grid shape yields a frame with no pixels"""

    def __init__(self, image_size, cols, rows):
        width, height = image_size
        super().__init__(
            f"{cols}x{rows} grid does not fit a {width}x{height}px sheet"
        )
        self.image_size = image_size
        self.cols = cols
        self.rows = rows


class DecodeFailure(SpriteSlicerError):
    """Uploaded bytes are not a usable image"""


class ExportError(SpriteSlicerError):
    """Base class for errors surfaced to the user by an export job"""


class EncoderUnavailable(ExportError):
    """GIF encoder has not been initialized"""


class ArchiverUnavailable(ExportError):
    """Archive encoder has not been initialized"""


class ExportAborted(ExportError):
    """A per-frame step failed and the remaining frames were skipped"""
