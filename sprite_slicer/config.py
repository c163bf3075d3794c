"""
Application constants and persisted user settings
"""

import logging
from dataclasses import dataclass

from PySide6.QtCore import QSettings

logger = logging.getLogger(__name__)

ORGANIZATION_NAME = "SpriteTools"
APPLICATION_NAME = "Sprite Slicer"

# Grid bounds
MIN_GRID = 1
MAX_GRID = 50
DEFAULT_COLS = 4
DEFAULT_ROWS = 1

# Playback
MIN_FPS = 1
MAX_FPS = 60
DEFAULT_FPS = 10

# Slice previews are regenerated once input has been quiet this long
PREVIEW_DEBOUNCE_MS = 500

# Palette-based GIF frames only support on/off transparency
ALPHA_THRESHOLD = 128

# GIF encoder: quality 1 is best, worker count is a concurrency hint
GIF_QUALITY = 1
GIF_WORKERS = 2

GIF_FILENAME = "sprite-animation.gif"
ARCHIVE_FILENAME = "slices.zip"
ARCHIVE_FOLDER = "slices"
SLICE_FILENAME = "slice_{number}.png"


def clamp(value, low, high):
    """Clamp value into [low, high]"""
    return max(low, min(high, int(value)))


def frame_delay_ms(fps):
    """Milliseconds each frame stays on screen at the given rate"""
    return 1000.0 / fps


@dataclass
class SlicerSettings:
    """Grid and playback values restored between runs"""

    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS
    fps: int = DEFAULT_FPS

    def clamped(self):
        return SlicerSettings(
            cols=clamp(self.cols, MIN_GRID, MAX_GRID),
            rows=clamp(self.rows, MIN_GRID, MAX_GRID),
            fps=clamp(self.fps, MIN_FPS, MAX_FPS),
        )


def _settings_store(store):
    if store is not None:
        return store
    return QSettings(ORGANIZATION_NAME, APPLICATION_NAME)


def load_settings(store=None):
    """Load the last used grid and fps, falling back to defaults"""
    store = _settings_store(store)
    defaults = SlicerSettings()
    try:
        settings = SlicerSettings(
            cols=int(store.value("grid/cols", defaults.cols)),
            rows=int(store.value("grid/rows", defaults.rows)),
            fps=int(store.value("playback/fps", defaults.fps)),
        )
    except (TypeError, ValueError) as e:
        logger.warning("Ignoring unreadable settings: %s", e)
        return defaults
    return settings.clamped()


def save_settings(settings, store=None):
    """Persist grid and fps for the next run"""
    store = _settings_store(store)
    settings = settings.clamped()
    store.setValue("grid/cols", settings.cols)
    store.setValue("grid/rows", settings.rows)
    store.setValue("playback/fps", settings.fps)
    store.sync()
    logger.debug("Saved settings %s", settings)
