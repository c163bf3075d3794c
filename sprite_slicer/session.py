"""
Session state for one loaded spritesheet.

All changes go through ``SpriteSession.update`` so the invalidation rules
live in one place: a new sheet or grid restarts previews and resets the
animation cursor, a new sheet also drops the previous GIF result, and a
new rate restarts the playback loop. Running exports are never cancelled;
they finish with the snapshot they started from.
"""

import logging

from PySide6.QtCore import QObject, Signal

from .animation import AnimationLoop
from .config import DEFAULT_FPS, MAX_FPS, MIN_FPS, PREVIEW_DEBOUNCE_MS, clamp
from .encoders import ArchiveEncoder, GifEncoder
from .errors import InvalidGeometry
from .export import Artifact, ArchiveExport, GifExport, SheetSnapshot
from .extractor import slice_filename
from .geometry import GridShape, compute_geometry, require_geometry
from .image_source import load_image_bytes, load_image_file
from .preview import PreviewScheduler

logger = logging.getLogger(__name__)

_UNSET = object()


class SpriteSession(QObject):
    source_changed = Signal()
    geometry_changed = Signal()
    fps_changed = Signal(int)

    def __init__(
        self,
        surface=None,
        gif_encoder=None,
        archive_encoder=None,
        debounce_ms=PREVIEW_DEBOUNCE_MS,
        parent=None,
    ):
        super().__init__(parent)
        self.source = None
        self.grid = GridShape()
        self.fps = DEFAULT_FPS

        self.gif_encoder = gif_encoder if gif_encoder is not None else GifEncoder()
        self.archive_encoder = archive_encoder if archive_encoder is not None else ArchiveEncoder()

        self.previews = PreviewScheduler(debounce_ms, self)
        self.animation = AnimationLoop(surface, self.fps, self)
        self.gif_export = GifExport(self.gif_encoder, self)
        self.archive_export = ArchiveExport(self.archive_encoder, self)

        # Playback starts as soon as a sheet is loaded
        self.animation.play()

    @property
    def geometry(self):
        """Current frame geometry, or None when nothing can be sliced"""
        if self.source is None:
            return None
        return compute_geometry(self.source.size, self.grid)

    @property
    def playing(self):
        return self.animation.playing

    def start(self):
        """Initialize the encoder services"""
        self.gif_encoder.start()
        self.archive_encoder.start()

    def shutdown(self):
        self.animation.stop()
        self.previews.shutdown()
        self.gif_export.shutdown()
        self.archive_export.shutdown()
        self.gif_encoder.shutdown()
        self.archive_encoder.shutdown()

    def update(self, source=_UNSET, cols=None, rows=None, fps=None, playing=None):
        """Apply a configuration change and invalidate whatever depends on it"""
        source_changed = source is not _UNSET and source is not self.source
        if source_changed:
            if source is None:
                logger.debug("Ignoring empty source")
                source_changed = False
            else:
                self.source = source

        grid = GridShape.clamped(
            self.grid.cols if cols is None else cols,
            self.grid.rows if rows is None else rows,
        )
        grid_changed = grid != self.grid
        self.grid = grid

        if source_changed:
            self.previews.clear()
            self.gif_export.clear()
            self.source_changed.emit()

        if source_changed or grid_changed:
            geometry = self.geometry
            if geometry is None and self.source is not None:
                logger.debug(
                    "%dx%d grid does not fit %dx%d sheet",
                    grid.cols, grid.rows, self.source.width, self.source.height
                )
            self.previews.schedule(self.source, geometry)
            self.animation.configure(self.source, geometry)
            self.geometry_changed.emit()

        if fps is not None:
            fps = clamp(fps, MIN_FPS, MAX_FPS)
            if fps != self.fps:
                self.fps = fps
                self.animation.set_fps(fps)
                self.fps_changed.emit(fps)

        if playing is not None:
            if playing:
                self.animation.play()
            else:
                self.animation.pause()

    def load_bytes(self, data, name=""):
        """Load an uploaded image; invalid input leaves the session untouched"""
        source = load_image_bytes(data, name)
        if source is None:
            return False
        self.update(source=source)
        return True

    def load_file(self, path):
        source = load_image_file(path)
        if source is None:
            return False
        self.update(source=source)
        return True

    def snapshot(self):
        """Capture what an export needs; raises if nothing can be exported"""
        if self.source is None:
            raise RuntimeError("No spritesheet loaded")
        geometry = require_geometry(self.source.size, self.grid)
        return SheetSnapshot(self.source, geometry, self.fps)

    def export_gif(self):
        return self._start_export(self.gif_export)

    def export_archive(self):
        return self._start_export(self.archive_export)

    def _start_export(self, job):
        try:
            snapshot = self.snapshot()
        except (RuntimeError, InvalidGeometry) as e:
            logger.warning("%s not started: %s", job.label, e)
            return False
        return job.run(snapshot)

    def preview_artifact(self, index):
        """One published slice preview as a downloadable PNG"""
        data = self.previews.previews[index]
        return Artifact(slice_filename(index), data)
