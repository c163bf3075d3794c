"""Tests for the GIF and ZIP export jobs."""

import io
import zipfile

import pytest
from PIL import Image

from conftest import cell_color
from sprite_slicer.encoders import ArchiveEncoder, GifEncoder
from sprite_slicer.errors import ExportAborted
from sprite_slicer.export import (
    ArchiveExport,
    Artifact,
    ExportStatus,
    GifExport,
    SheetSnapshot,
)
from sprite_slicer.geometry import GridShape, compute_geometry
from sprite_slicer.image_source import SourceImage


def snapshot_of(sheet, cols, rows, fps=10):
    return SheetSnapshot(sheet, compute_geometry(sheet.size, GridShape(cols, rows)), fps)


def record(job):
    events = {"started": 0, "progress": [], "finished": [], "failed": []}
    job.started.connect(lambda: events.__setitem__("started", events["started"] + 1))
    job.progress.connect(lambda value: events["progress"].append(value))
    job.finished.connect(lambda artifact: events["finished"].append(artifact))
    job.failed.connect(lambda message: events["failed"].append(message))
    return events


@pytest.fixture
def gif_job(qapp, gif_encoder):
    job = GifExport(gif_encoder)
    yield job
    job.shutdown()


@pytest.fixture
def archive_job(qapp, archive_encoder):
    job = ArchiveExport(archive_encoder)
    yield job
    job.shutdown()


def settled(job):
    return lambda: job.status in (ExportStatus.DONE, ExportStatus.FAILED)


class TestArchiveExport:
    def test_six_slices(self, archive_job, sheet_factory, wait_until):
        events = record(archive_job)
        sheet = sheet_factory(3, 2, 12, 9)

        assert archive_job.run(snapshot_of(sheet, 3, 2))
        assert archive_job.status is ExportStatus.RUNNING
        assert wait_until(settled(archive_job))

        assert archive_job.status is ExportStatus.DONE
        artifact = archive_job.artifact
        assert artifact.filename == "slices.zip"
        assert events["started"] == 1
        assert events["progress"][-1] == 100
        assert events["finished"] == [artifact]

        with zipfile.ZipFile(io.BytesIO(artifact.data)) as archive:
            names = archive.namelist()
            assert names == [f"slices/slice_{n}.png" for n in range(1, 7)]
            for index, name in enumerate(names):
                with Image.open(io.BytesIO(archive.read(name))) as slice_image:
                    assert slice_image.size == (12, 9)
                    assert slice_image.convert("RGBA").getpixel((0, 0)) == cell_color(index)

    def test_slices_keep_partial_alpha(self, archive_job, wait_until):
        sheet = SourceImage(Image.new("RGBA", (8, 8), (90, 90, 90, 100)))

        assert archive_job.run(snapshot_of(sheet, 2, 1))
        assert wait_until(settled(archive_job))

        with zipfile.ZipFile(io.BytesIO(archive_job.artifact.data)) as archive:
            data = archive.read("slices/slice_1.png")
        with Image.open(io.BytesIO(data)) as slice_image:
            assert slice_image.convert("RGBA").getpixel((1, 1))[3] == 100

    def test_encoding_failure_then_retry(self, archive_job, sheet_factory, wait_until, monkeypatch):
        events = record(archive_job)
        sheet = sheet_factory(2, 1, 8, 8)

        def broken(frame):
            raise OSError("disk on fire")

        monkeypatch.setattr("sprite_slicer.export.encode_png", broken)
        assert archive_job.run(snapshot_of(sheet, 2, 1))
        assert wait_until(settled(archive_job))

        assert archive_job.status is ExportStatus.FAILED
        assert archive_job.artifact is None
        assert isinstance(archive_job.error, ExportAborted)
        assert "Slice 1" in events["failed"][0]

        monkeypatch.undo()
        assert archive_job.run(snapshot_of(sheet, 2, 1))
        assert wait_until(settled(archive_job))
        assert archive_job.status is ExportStatus.DONE
        assert archive_job.error is None

    def test_unavailable_encoder(self, qapp, sheet_factory):
        job = ArchiveExport(ArchiveEncoder())
        events = record(job)

        assert not job.run(snapshot_of(sheet_factory(2, 1, 8, 8), 2, 1))
        assert job.status is ExportStatus.IDLE
        assert len(events["failed"]) == 1
        assert events["started"] == 0


class TestGifExport:
    def test_gif_frames_and_timing(self, gif_job, sheet_factory, wait_until):
        sheet = sheet_factory(4, 1, 10, 10)

        assert gif_job.run(snapshot_of(sheet, 4, 1, fps=10))
        assert wait_until(settled(gif_job))

        artifact = gif_job.artifact
        assert artifact.filename == "sprite-animation.gif"
        with Image.open(io.BytesIO(artifact.data)) as gif:
            assert gif.size == (10, 10)
            assert gif.n_frames == 4
            assert gif.info["loop"] == 0
            assert gif.info["duration"] == 100

    def test_gif_alpha_is_binarized(self, gif_job, wait_until):
        image = Image.new("RGBA", (20, 10), (250, 10, 10, 100))
        image.paste((10, 250, 10, 200), (10, 0, 20, 10))
        sheet = SourceImage(image)

        assert gif_job.run(snapshot_of(sheet, 2, 1))
        assert wait_until(settled(gif_job))

        with Image.open(io.BytesIO(gif_job.artifact.data)) as gif:
            assert gif.n_frames == 2
            assert gif.convert("RGBA").getpixel((5, 5))[3] == 0

    def test_second_request_while_running_is_ignored(self, gif_job, sheet_factory, wait_until, pump):
        events = record(gif_job)
        snapshot = snapshot_of(sheet_factory(8, 4, 16, 16), 8, 4)

        assert gif_job.run(snapshot)
        assert not gif_job.run(snapshot)
        assert wait_until(settled(gif_job))
        pump(0.1)

        assert gif_job.status is ExportStatus.DONE
        assert events["started"] == 1
        assert len(events["finished"]) == 1

    def test_unavailable_encoder(self, qapp, sheet_factory):
        job = GifExport(GifEncoder())
        events = record(job)

        assert not job.run(snapshot_of(sheet_factory(2, 1, 8, 8), 2, 1))
        assert job.status is ExportStatus.IDLE
        assert job.artifact is None
        assert "not available" in events["failed"][0]

    def test_clear_forgets_result(self, gif_job, sheet_factory, wait_until):
        assert gif_job.run(snapshot_of(sheet_factory(2, 1, 8, 8), 2, 1))
        assert wait_until(settled(gif_job))

        gif_job.clear()
        assert gif_job.status is ExportStatus.IDLE
        assert gif_job.artifact is None


def test_exports_run_side_by_side(gif_job, archive_job, sheet_factory, wait_until):
    sheet = sheet_factory(5, 5, 12, 12)
    snapshot = snapshot_of(sheet, 5, 5)

    assert gif_job.run(snapshot)
    assert archive_job.run(snapshot)
    assert gif_job.running and archive_job.running
    assert wait_until(lambda: settled(gif_job)() and settled(archive_job)(), timeout=15)

    assert gif_job.status is ExportStatus.DONE
    assert archive_job.status is ExportStatus.DONE


def test_artifact_save_into_directory(tmp_path):
    artifact = Artifact("slices.zip", b"PK")

    saved = artifact.save(tmp_path)

    assert saved == tmp_path / "slices.zip"
    assert saved.read_bytes() == b"PK"
    assert artifact.save(tmp_path / "other.zip").read_bytes() == b"PK"
