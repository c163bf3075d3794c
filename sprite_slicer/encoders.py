"""
Encoder services used by the export jobs.

Both encoders follow the same shape: ``start()`` once at application
startup, then build a handle, feed it entries, and collect the finished
bytes from a Future resolved on the encoder's own worker pool.
"""

import io
import logging
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from PIL import Image

from .config import GIF_QUALITY, GIF_WORKERS
from .errors import ArchiverUnavailable, EncoderUnavailable

logger = logging.getLogger(__name__)

# Last palette slot is reserved for fully transparent pixels
TRANSPARENT_INDEX = 255
PALETTE_COLORS = 255


@dataclass
class GifHandle:
    width: int
    height: int
    quality: int = GIF_QUALITY
    frames: list = field(default_factory=list)
    delays: list = field(default_factory=list)


class GifEncoder:
    """Builds looping GIFs from RGBA frames with binary transparency"""

    def __init__(self, workers=GIF_WORKERS):
        self.workers = workers
        self._executor = None

    @property
    def ready(self):
        return self._executor is not None

    def start(self):
        """Check that Pillow can write animated GIFs and spin up the worker pool"""
        if self.ready:
            return
        Image.init()
        if "GIF" not in Image.SAVE or "GIF" not in Image.SAVE_ALL:
            raise EncoderUnavailable("Pillow was built without animated GIF support")
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="gif-encoder"
        )
        logger.debug("GIF encoder started with %d workers", self.workers)

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def configure(self, width, height, quality=GIF_QUALITY):
        if not self.ready:
            raise EncoderUnavailable("GIF encoder is not initialized yet")
        return GifHandle(width, height, quality)

    def add_frame(self, handle, frame, delay_ms):
        """Quantize a frame to the GIF palette and queue it with its delay"""
        if frame.size != (handle.width, handle.height):
            raise ValueError(
                f"frame is {frame.width}x{frame.height}, "
                f"encoder expects {handle.width}x{handle.height}"
            )
        handle.frames.append(self._to_palette(frame, handle.quality))
        handle.delays.append(int(round(delay_ms)))

    def render(self, handle):
        """Encode all queued frames; returns a Future resolving to GIF bytes"""
        if not self.ready:
            raise EncoderUnavailable("GIF encoder is not initialized yet")
        return self._executor.submit(self._write, handle)

    def _to_palette(self, frame, quality):
        rgba = frame.convert("RGBA")
        alpha = rgba.getchannel("A")

        # Lower quality numbers spend more time on the palette
        if quality <= GIF_QUALITY:
            method = Image.Quantize.MEDIANCUT
        else:
            method = Image.Quantize.FASTOCTREE
        paletted = rgba.convert("RGB").quantize(
            colors=PALETTE_COLORS, method=method, dither=Image.Dither.NONE
        )
        # Pad to a full 256-entry table so the transparent index always exists
        palette = paletted.getpalette()
        paletted.putpalette(palette + [0] * (768 - len(palette)))

        transparent = alpha.point(lambda a: 255 if a == 0 else 0)
        paletted.paste(TRANSPARENT_INDEX, mask=transparent)
        paletted.info["transparency"] = TRANSPARENT_INDEX
        return paletted

    def _write(self, handle):
        if not handle.frames:
            raise ValueError("No frames to encode")
        buffer = io.BytesIO()
        first, rest = handle.frames[0], handle.frames[1:]
        first.save(
            buffer,
            "GIF",
            save_all=True,
            append_images=rest,
            duration=handle.delays,
            loop=0,  # Infinite loop
            disposal=2,  # Restore to background
            optimize=False,
        )
        logger.debug("Encoded %d GIF frames (%d bytes)", len(handle.frames), buffer.tell())
        return buffer.getvalue()


@dataclass
class ArchiveHandle:
    buffer: io.BytesIO
    archive: zipfile.ZipFile
    names: set = field(default_factory=set)


class ArchiveEncoder:
    """Packs named byte blobs into an in-memory ZIP"""

    def __init__(self):
        self._executor = None

    @property
    def ready(self):
        return self._executor is not None

    def start(self):
        if self.ready:
            return
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="archiver")
        logger.debug("Archive encoder started")

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def create_archive(self):
        if not self.ready:
            raise ArchiverUnavailable("Archive encoder is not initialized yet")
        buffer = io.BytesIO()
        return ArchiveHandle(buffer, zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED))

    def add_entry(self, handle, name, data):
        if name in handle.names:
            raise ValueError(f"Duplicate archive entry {name!r}")
        handle.archive.writestr(name, data)
        handle.names.add(name)

    def discard(self, handle):
        """Close an unfinished archive without producing bytes"""
        handle.archive.close()
        handle.buffer.close()

    def finalize(self, handle):
        """Close the archive; returns a Future resolving to the ZIP bytes"""
        if not self.ready:
            raise ArchiverUnavailable("Archive encoder is not initialized yet")
        return self._executor.submit(self._close, handle)

    def _close(self, handle):
        handle.archive.close()
        data = handle.buffer.getvalue()
        logger.debug("Finalized archive with %d entries (%d bytes)", len(handle.names), len(data))
        return data
