"""
Animation playback: cycle through the grid cells on a timer
"""

import logging
from typing import Protocol, Tuple

from PySide6.QtCore import QObject, Qt, QTimer, Signal

from .config import DEFAULT_FPS, MAX_FPS, MIN_FPS, clamp, frame_delay_ms
from .extractor import extract_frame

logger = logging.getLogger(__name__)


class DisplaySurface(Protocol):
    """Where the loop draws frames"""

    def size(self) -> Tuple[int, int]: ...

    def resize(self, width: int, height: int) -> None: ...

    def draw(self, frame) -> None: ...


class NullSurface:
    """Surface that only tracks its size"""

    def __init__(self):
        self._size = (0, 0)

    def size(self):
        return self._size

    def resize(self, width, height):
        self._size = (width, height)

    def draw(self, frame):
        pass


class AnimationLoop(QObject):
    """
    Draws the frame under the cursor, waits 1000/fps ms, advances, repeats.

    Any change to the sheet or grid starts a new session with the cursor
    back at 0. Pausing keeps the cursor so playback resumes where it
    stopped.
    """
    frame_drawn = Signal(int)
    playing_changed = Signal(bool)

    def __init__(self, surface=None, fps=DEFAULT_FPS, parent=None):
        super().__init__(parent)
        self.surface = surface if surface is not None else NullSurface()
        self.source = None
        self.geometry = None
        self.fps = clamp(fps, MIN_FPS, MAX_FPS)
        self.cursor = 0
        self.playing = False

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setTimerType(Qt.PreciseTimer)
        self._timer.timeout.connect(self.next_frame)

    @property
    def interval_ms(self):
        return int(round(frame_delay_ms(self.fps)))

    def is_active(self):
        """True while a frame advance is scheduled"""
        return self._timer.isActive()

    def configure(self, source, geometry):
        """Start a new session for a new sheet or grid"""
        self._timer.stop()
        self.source = source
        self.geometry = geometry
        self.cursor = 0
        if self.playing:
            self.render()

    def set_fps(self, fps):
        """Change the rate; the running loop restarts from the current frame"""
        fps = clamp(fps, MIN_FPS, MAX_FPS)
        if fps == self.fps:
            return
        self.fps = fps
        if self.playing:
            self.render()

    def play(self):
        """Start animation playback"""
        if self.playing:
            return
        self.playing = True
        self.playing_changed.emit(True)
        self.render()

    def pause(self):
        """Stop animation playback, keeping the last drawn frame"""
        self._timer.stop()
        if not self.playing:
            return
        self.playing = False
        self.playing_changed.emit(False)

    def toggle(self):
        """Toggle animation playback"""
        if self.playing:
            self.pause()
        else:
            self.play()

    def stop(self):
        self.pause()

    def render(self):
        """Draw the frame under the cursor and schedule the next one"""
        self._timer.stop()
        if not self.playing or self.source is None or self.geometry is None:
            return

        total = self.geometry.total_frames
        self.cursor %= total
        frame = extract_frame(self.source, self.geometry, self.cursor)

        # Resizing clears the surface, so only do it when the frame size changed
        if tuple(self.surface.size()) != self.geometry.frame_size:
            self.surface.resize(*self.geometry.frame_size)
        self.surface.draw(frame)
        self.frame_drawn.emit(self.cursor)

        self._timer.start(self.interval_ms)

    def next_frame(self):
        """Advance to the next frame"""
        if self.geometry is None:
            return
        self.cursor = (self.cursor + 1) % self.geometry.total_frames
        self.render()
