"""Tests for debounced slice preview generation."""

import io
import time

import pytest
from PIL import Image

from conftest import cell_color
from sprite_slicer.geometry import GridShape, compute_geometry
from sprite_slicer.preview import PreviewScheduler

DEBOUNCE_MS = 40


@pytest.fixture
def scheduler(qapp):
    scheduler = PreviewScheduler(debounce_ms=DEBOUNCE_MS)
    published = []
    loading = []
    scheduler.previews_ready.connect(lambda previews: published.append(list(previews)))
    scheduler.loading_changed.connect(lambda value: loading.append(value))
    scheduler.published = published
    scheduler.loading_log = loading
    yield scheduler
    scheduler.shutdown()


def decode(data):
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        return img.convert("RGBA")


def test_publishes_one_png_per_frame(scheduler, sheet_factory, wait_until):
    sheet = sheet_factory(3, 2, 10, 10)
    scheduler.schedule(sheet, compute_geometry(sheet.size, GridShape(3, 2)))

    assert scheduler.loading
    assert wait_until(lambda: scheduler.published)

    previews = scheduler.published[-1]
    assert len(previews) == 6
    for index, data in enumerate(previews):
        image = decode(data)
        assert image.size == (10, 10)
        assert image.getpixel((5, 5)) == cell_color(index)
    assert scheduler.previews == previews
    assert not scheduler.loading
    assert scheduler.loading_log == [True, False]


def test_rapid_changes_are_coalesced(scheduler, sheet_factory, wait_until, pump):
    sheet = sheet_factory(4, 1, 8, 8)
    start = time.monotonic()
    for cols in (1, 2, 3, 4):
        scheduler.schedule(sheet, compute_geometry(sheet.size, GridShape(cols, 1)))
        pump(0.01)

    assert wait_until(lambda: scheduler.published)
    elapsed = time.monotonic() - start
    pump(0.15)

    assert len(scheduler.published) == 1
    assert len(scheduler.published[0]) == 4
    assert elapsed >= DEBOUNCE_MS / 1000.0


def test_nothing_is_published_before_the_window(qapp, sheet_factory, pump):
    scheduler = PreviewScheduler(debounce_ms=500)
    published = []
    scheduler.previews_ready.connect(lambda previews: published.append(previews))
    sheet = sheet_factory(2, 1, 8, 8)

    scheduler.schedule(sheet, compute_geometry(sheet.size, GridShape(2, 1)))
    pump(0.1)

    assert published == []
    assert scheduler.loading
    scheduler.shutdown()


def test_identical_inputs_give_identical_previews(scheduler, sheet_factory, wait_until):
    sheet = sheet_factory(2, 2, 6, 6)
    geometry = compute_geometry(sheet.size, GridShape(2, 2))

    scheduler.schedule(sheet, geometry)
    assert wait_until(lambda: len(scheduler.published) == 1)
    scheduler.schedule(sheet, geometry)
    assert wait_until(lambda: len(scheduler.published) == 2)

    assert scheduler.published[0] == scheduler.published[1]


def test_stale_results_are_discarded(scheduler, sheet_factory, wait_until):
    sheet = sheet_factory(2, 1, 8, 8)
    scheduler.schedule(sheet, compute_geometry(sheet.size, GridShape(2, 1)))
    assert wait_until(lambda: scheduler.published)
    before = list(scheduler.previews)

    scheduler._on_worker_finished(scheduler.generation - 1, [b"stale"])

    assert scheduler.previews == before
    assert len(scheduler.published) == 1


def test_invalid_geometry_publishes_empty_list(scheduler, sheet_factory, wait_until):
    sheet = sheet_factory(1, 1, 10, 10)
    scheduler.schedule(sheet, compute_geometry(sheet.size, GridShape(50, 50)))

    assert wait_until(lambda: scheduler.published)
    assert scheduler.published == [[]]
    assert not scheduler.loading


def test_missing_source_cancels_pending_work(scheduler, sheet_factory, pump):
    sheet = sheet_factory(2, 1, 8, 8)
    scheduler.schedule(sheet, compute_geometry(sheet.size, GridShape(2, 1)))
    scheduler.schedule(None, None)
    pump(0.15)

    assert scheduler.published == []
    assert not scheduler.loading


def test_clear_publishes_empty_list(scheduler, sheet_factory, wait_until, pump):
    sheet = sheet_factory(2, 1, 8, 8)
    scheduler.schedule(sheet, compute_geometry(sheet.size, GridShape(2, 1)))
    assert wait_until(lambda: scheduler.published)

    scheduler.clear()
    pump(0.1)

    assert scheduler.previews == []
    assert scheduler.published[-1] == []
    assert len(scheduler.published) == 2
