"""
Image intake: decode uploaded bytes into an immutable RGBA source sheet
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from .errors import DecodeFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SourceImage:
    """Decoded spritesheet. The wrapped image is never modified after load."""

    image: Image.Image
    name: str = ""

    @property
    def width(self):
        return self.image.width

    @property
    def height(self):
        return self.image.height

    @property
    def size(self):
        return self.image.size

    def pixel(self, x, y):
        """RGBA tuple at (x, y)"""
        return self.image.getpixel((x, y))

    def crop(self, box):
        """Copy a region into a new image"""
        return self.image.crop(box)


def decode_image(data, name=""):
    """Decode raw PNG/JPEG/... bytes, raising DecodeFailure if unusable"""
    if not data:
        raise DecodeFailure("No image data")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            # Animated inputs contribute their first frame only
            rgba = img.convert("RGBA")
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeFailure(f"Could not decode image: {e}") from e

    if rgba.width <= 0 or rgba.height <= 0:
        raise DecodeFailure("Image has no pixels")
    return SourceImage(rgba, name)


def load_image_bytes(data, name=""):
    """Decode uploaded bytes; returns None for anything that is not an image"""
    try:
        source = decode_image(data, name)
    except DecodeFailure as e:
        logger.warning("Ignoring upload %r: %s", name or "<bytes>", e)
        return None
    logger.info("Loaded %s (%dx%d)", name or "image", source.width, source.height)
    return source


def load_image_file(path):
    """Read and decode an image file; returns None if it cannot be used"""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return None
    return load_image_bytes(data, path.name)
