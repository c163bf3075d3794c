"""
Frame extraction: copy one grid cell of the sheet into its own buffer
"""

import io

import numpy as np
from PIL import Image

from .config import ALPHA_THRESHOLD, SLICE_FILENAME


def normalize_alpha(frame):
    """Binarize transparency in place: alpha below the threshold becomes 0, the rest 255"""
    if frame.mode != "RGBA":
        frame = frame.convert("RGBA")
    alpha = np.asarray(frame.getchannel("A"))
    binary = np.where(alpha < ALPHA_THRESHOLD, 0, 255).astype(np.uint8)
    frame.putalpha(Image.fromarray(binary))
    return frame


def extract_frame(source, geometry, index, normalize=False):
    """
    Return a new frame_width x frame_height RGBA image holding one grid cell.

    ``index`` must already be inside [0, total_frames); wrap it with a
    modulo first when cycling. The source sheet is never modified.
    """
    frame = source.crop(geometry.box(index))
    if frame.mode != "RGBA":
        frame = frame.convert("RGBA")
    if normalize:
        normalize_alpha(frame)
    return frame


def iter_frames(source, geometry, normalize=False):
    """Yield (index, frame) in animation order, one buffer at a time"""
    for index in geometry.indices():
        yield index, extract_frame(source, geometry, index, normalize)


def encode_png(frame):
    buffer = io.BytesIO()
    frame.save(buffer, "PNG", optimize=False)
    return buffer.getvalue()


def slice_filename(index):
    """File name for a frame: numbering is 1-based"""
    return SLICE_FILENAME.format(number=index + 1)
