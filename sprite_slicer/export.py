"""
GIF and ZIP export jobs.

Each job walks every frame of a snapshot of the sheet on its own worker
thread and hands the frames to an encoder service. A job runs at most
once at a time; asking it to run again while busy is ignored. The two
jobs are independent and may run side by side.
"""

import enum
import logging
from dataclasses import dataclass
from pathlib import Path

from PySide6.QtCore import QObject, QThread, Signal, Slot

from .config import (
    ARCHIVE_FILENAME, ARCHIVE_FOLDER, GIF_FILENAME, GIF_QUALITY, frame_delay_ms
)
from .errors import ArchiverUnavailable, EncoderUnavailable, ExportAborted, ExportError
from .extractor import encode_png, iter_frames, slice_filename

logger = logging.getLogger(__name__)


class ExportStatus(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Artifact:
    """Finished export: bytes plus the suggested file name"""

    filename: str
    data: bytes

    def save(self, path):
        """Write to path; a directory gets the suggested file name appended"""
        path = Path(path)
        if path.is_dir():
            path = path / self.filename
        path.write_bytes(self.data)
        logger.info("Saved %s (%.2f MB)", path, len(self.data) / (1024 * 1024))
        return path


@dataclass(frozen=True, eq=False)
class SheetSnapshot:
    """Sheet, geometry and rate captured when an export starts"""

    source: object
    geometry: object
    fps: int


class ExportWorker(QObject):
    """Base worker: runs export() on a thread and reports the outcome"""
    progress = Signal(int)
    finished = Signal(object)
    error = Signal(object)

    def __init__(self, encoder, snapshot):
        super().__init__()
        self.encoder = encoder
        self.snapshot = snapshot
        self._should_stop = False

    def stop(self):
        """Request the worker to stop between frames"""
        self._should_stop = True

    @Slot()
    def run(self):
        try:
            artifact = self.export()
        except ExportError as e:
            self.error.emit(e)
        except Exception as e:
            logger.exception("%s failed", type(self).__name__)
            self.error.emit(ExportAborted(str(e)))
        else:
            self.finished.emit(artifact)

    def export(self):
        raise NotImplementedError

    def _check_stop(self):
        if self._should_stop:
            raise ExportAborted("Export cancelled")

    def _report(self, index):
        total = self.snapshot.geometry.total_frames
        self.progress.emit(int(((index + 1) / total) * 100))


class GifExportWorker(ExportWorker):
    """Feeds alpha-binarized frames to the GIF encoder in animation order"""

    def export(self):
        geometry = self.snapshot.geometry
        delay = frame_delay_ms(self.snapshot.fps)
        handle = self.encoder.configure(
            geometry.frame_width, geometry.frame_height, GIF_QUALITY
        )

        for index, frame in iter_frames(self.snapshot.source, geometry, normalize=True):
            self._check_stop()
            self.encoder.add_frame(handle, frame, delay)
            self._report(index)

        data = self.encoder.render(handle).result()
        return Artifact(GIF_FILENAME, data)


class ArchiveExportWorker(ExportWorker):
    """Encodes each frame to PNG and stores it under slices/slice_<n>.png"""

    def export(self):
        handle = self.encoder.create_archive()
        try:
            for index, frame in iter_frames(self.snapshot.source, self.snapshot.geometry):
                self._check_stop()
                try:
                    data = encode_png(frame)
                except Exception as e:
                    raise ExportAborted(
                        f"Slice {index + 1} could not be encoded: {e}"
                    ) from e
                self.encoder.add_entry(handle, f"{ARCHIVE_FOLDER}/{slice_filename(index)}", data)
                self._report(index)

            data = self.encoder.finalize(handle).result()
        except Exception:
            # Never expose a partial archive
            self.encoder.discard(handle)
            raise
        return Artifact(ARCHIVE_FILENAME, data)


class ExportJob(QObject):
    """One export kind with its status, last artifact and last error"""
    started = Signal()
    progress = Signal(int)
    finished = Signal(object)
    failed = Signal(str)

    worker_class = ExportWorker
    unavailable_error = ExportError
    label = "Export"

    def __init__(self, encoder, parent=None):
        super().__init__(parent)
        self.encoder = encoder
        self.status = ExportStatus.IDLE
        self.artifact = None
        self.error = None
        self._thread = None
        self._worker = None

    @property
    def running(self):
        return self.status is ExportStatus.RUNNING

    def run(self, snapshot):
        """Start exporting; returns False if the request was not started"""
        if self.running:
            logger.info("%s already running, ignoring request", self.label)
            return False

        if not self.encoder.ready:
            error = self.unavailable_error(f"{self.label} is not available yet, try again shortly")
            logger.warning("%s", error)
            self.failed.emit(str(error))
            return False

        self.status = ExportStatus.RUNNING
        self.artifact = None
        self.error = None

        self._thread = QThread()
        self._worker = self.worker_class(self.encoder, snapshot)
        self._worker.moveToThread(self._thread)

        self._thread.started.connect(self._worker.run)
        self._worker.progress.connect(self._on_progress)
        self._worker.finished.connect(self._on_finished)
        self._worker.error.connect(self._on_error)

        logger.info(
            "%s started: %d frames at %d fps",
            self.label, snapshot.geometry.total_frames, snapshot.fps
        )
        self.started.emit()
        self._thread.start()
        return True

    def clear(self):
        """Forget a finished artifact or error"""
        if self.running:
            return
        self.status = ExportStatus.IDLE
        self.artifact = None
        self.error = None

    def shutdown(self):
        if self._worker:
            self._worker.stop()
        if self._thread and self._thread.isRunning():
            self._thread.quit()
            self._thread.wait(5000)

    def cleanup_worker(self):
        """Clean up worker and thread"""
        if self._thread:
            self._thread.quit()
            self._thread.wait()
        if self._worker:
            self._worker.deleteLater()
            self._worker = None
        if self._thread:
            self._thread.deleteLater()
            self._thread = None

    @Slot(int)
    def _on_progress(self, value):
        self.progress.emit(value)

    @Slot(object)
    def _on_finished(self, artifact):
        self.cleanup_worker()
        self.status = ExportStatus.DONE
        self.artifact = artifact
        logger.info("%s finished: %s (%d bytes)", self.label, artifact.filename, len(artifact.data))
        self.finished.emit(artifact)

    @Slot(object)
    def _on_error(self, error):
        self.cleanup_worker()
        self.status = ExportStatus.FAILED
        self.error = error
        logger.error("%s failed: %s", self.label, error)
        self.failed.emit(str(error))


class GifExport(ExportJob):
    worker_class = GifExportWorker
    unavailable_error = EncoderUnavailable
    label = "GIF export"


class ArchiveExport(ExportJob):
    worker_class = ArchiveExportWorker
    unavailable_error = ArchiverUnavailable
    label = "ZIP export"
