"""Shared pytest fixtures for Sprite Slicer tests."""

import os
import time

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PIL import Image
from PySide6.QtCore import QCoreApplication

from sprite_slicer.encoders import ArchiveEncoder, GifEncoder
from sprite_slicer.image_source import SourceImage


def cell_color(index):
    """Distinct opaque color for each grid cell"""
    return (40 + (index * 37) % 200, (index * 91) % 256, 255 - index % 200, 255)


def make_sheet(cols, rows, cell_width, cell_height, extra=(0, 0)):
    """Spritesheet whose cells are each filled with cell_color(index)"""
    width = cols * cell_width + extra[0]
    height = rows * cell_height + extra[1]
    image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    for row in range(rows):
        for col in range(cols):
            index = row * cols + col
            left, top = col * cell_width, row * cell_height
            image.paste(cell_color(index), (left, top, left + cell_width, top + cell_height))
    return SourceImage(image, "sheet.png")


class RecordingSurface:
    """Display surface that remembers what was drawn and when"""

    def __init__(self):
        self._size = (0, 0)
        self.resizes = []
        self.frames = []
        self.times = []

    def size(self):
        return self._size

    def resize(self, width, height):
        self._size = (width, height)
        self.resizes.append((width, height))

    def draw(self, frame):
        self.frames.append(frame)
        self.times.append(time.monotonic())


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def wait_until(qapp):
    """Pump the Qt event loop until predicate() is true or the timeout expires"""
    def wait(predicate, timeout=5.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            qapp.processEvents()
            if predicate():
                return True
            time.sleep(0.002)
        qapp.processEvents()
        return predicate()
    return wait


@pytest.fixture
def pump(qapp):
    """Pump the Qt event loop for a fixed time"""
    def run(seconds):
        deadline = time.monotonic() + seconds
        while time.monotonic() < deadline:
            qapp.processEvents()
            time.sleep(0.002)
    return run


@pytest.fixture
def sheet_factory():
    return make_sheet


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def gif_encoder():
    encoder = GifEncoder()
    encoder.start()
    yield encoder
    encoder.shutdown()


@pytest.fixture
def archive_encoder():
    encoder = ArchiveEncoder()
    encoder.start()
    yield encoder
    encoder.shutdown()
