"""
Debounced slice-thumbnail generation.

Every change to the sheet or grid bumps a generation counter and restarts
a single-shot timer. Only when input has been quiet for the debounce
window does a worker thread render the thumbnails, and its results are
published only if no newer change arrived in the meantime. Consumers
always see a complete list, never a partially updated one.
"""

import logging

from PySide6.QtCore import QObject, QThread, QTimer, Signal, Slot

from .config import PREVIEW_DEBOUNCE_MS
from .extractor import encode_png, iter_frames

logger = logging.getLogger(__name__)


class PreviewWorker(QObject):
    """Renders every frame of one generation to PNG bytes"""
    finished = Signal(int, object)
    cancelled = Signal(int)
    error = Signal(int, str)

    def __init__(self, generation, source, geometry):
        super().__init__()
        self.generation = generation
        self.source = source
        self.geometry = geometry
        self._should_stop = False

    def stop(self):
        """Request the worker to stop between frames"""
        self._should_stop = True

    @Slot()
    def run(self):
        try:
            previews = []
            for _, frame in iter_frames(self.source, self.geometry):
                if self._should_stop:
                    self.cancelled.emit(self.generation)
                    return
                previews.append(encode_png(frame))
            self.finished.emit(self.generation, previews)
        except Exception as e:
            logger.exception("Preview generation %d failed", self.generation)
            self.error.emit(self.generation, str(e))


class PreviewScheduler(QObject):
    """Keeps an ordered list of PNG thumbnails in sync with the sheet and grid"""
    previews_ready = Signal(list)
    loading_changed = Signal(bool)

    def __init__(self, debounce_ms=PREVIEW_DEBOUNCE_MS, parent=None):
        super().__init__(parent)
        self.previews = []
        self.loading = False

        self._generation = 0
        self._source = None
        self._geometry = None
        self._runs = {}

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(debounce_ms)
        self._timer.timeout.connect(self._start_run)

    @property
    def generation(self):
        return self._generation

    @property
    def debounce_ms(self):
        return self._timer.interval()

    def schedule(self, source, geometry):
        """Queue a regeneration; restarts the debounce window"""
        self._generation += 1
        self._source = source
        self._geometry = geometry
        self._stop_runs()

        if source is None:
            self._timer.stop()
            self._set_loading(False)
            return

        self._set_loading(True)
        self._timer.start()
        logger.debug("Preview generation %d scheduled", self._generation)

    def clear(self):
        """Drop pending work and publish an empty list"""
        self._generation += 1
        self._timer.stop()
        self._stop_runs()
        self._publish([])

    def shutdown(self):
        self._timer.stop()
        for thread, worker in list(self._runs.values()):
            worker.stop()
            thread.quit()
            thread.wait(2000)
        self._runs.clear()

    def _start_run(self):
        generation = self._generation
        if self._geometry is None:
            # Grid does not fit the sheet: nothing to slice
            self._publish([])
            return

        thread = QThread()
        worker = PreviewWorker(generation, self._source, self._geometry)
        worker.moveToThread(thread)

        thread.started.connect(worker.run)
        worker.finished.connect(self._on_worker_finished)
        worker.cancelled.connect(self._on_worker_cancelled)
        worker.error.connect(self._on_worker_error)

        self._runs[generation] = (thread, worker)
        logger.debug(
            "Rendering %d previews for generation %d",
            self._geometry.total_frames, generation
        )
        thread.start()

    def _stop_runs(self):
        for _, worker in self._runs.values():
            worker.stop()

    def _retire(self, generation):
        thread, worker = self._runs.pop(generation, (None, None))
        if thread is None:
            return
        thread.quit()
        thread.wait()
        worker.deleteLater()
        thread.deleteLater()

    @Slot(int, object)
    def _on_worker_finished(self, generation, previews):
        self._retire(generation)
        if generation != self._generation:
            logger.debug("Discarding stale preview generation %d", generation)
            return
        self._publish(previews)

    @Slot(int)
    def _on_worker_cancelled(self, generation):
        self._retire(generation)

    @Slot(int, str)
    def _on_worker_error(self, generation, message):
        self._retire(generation)
        if generation == self._generation:
            self._publish([])

    def _publish(self, previews):
        self.previews = list(previews)
        self.previews_ready.emit(self.previews)
        self._set_loading(False)

    def _set_loading(self, loading):
        if loading != self.loading:
            self.loading = loading
            self.loading_changed.emit(loading)
