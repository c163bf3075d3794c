"""
Desktop front end: load a spritesheet, set the grid, watch the animation,
export a GIF or a ZIP of slices
"""

import argparse
import logging
import sys
from pathlib import Path

from PIL import ImageQt
from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QSize, Qt
from PySide6.QtGui import QColor, QIcon, QMovie, QPainter, QPen, QPixmap
from PySide6.QtWidgets import (
    QApplication, QFileDialog, QFrame, QGridLayout, QGroupBox, QHBoxLayout,
    QLabel, QListWidget, QListWidgetItem, QMainWindow, QMessageBox,
    QProgressBar, QPushButton, QSlider, QSpinBox, QVBoxLayout, QWidget
)

from . import __version__
from .config import (
    APPLICATION_NAME, ARCHIVE_FILENAME, GIF_FILENAME, MAX_FPS, MAX_GRID,
    MIN_FPS, MIN_GRID, ORGANIZATION_NAME, SlicerSettings, load_settings,
    save_settings
)
from .errors import EncoderUnavailable
from .session import SpriteSession

logger = logging.getLogger(__name__)

IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.bmp *.gif *.webp);;All Files (*.*)"
ACCENT = QColor(34, 211, 238, 170)


class LabelSurface:
    """Draws animation frames into a QLabel, scaled without smoothing"""

    def __init__(self, label):
        self.label = label
        self._size = (0, 0)
        self._pixmap = None

    def size(self):
        return self._size

    def resize(self, width, height):
        self._size = (width, height)
        self._pixmap = None
        self.label.clear()

    def draw(self, frame):
        self._pixmap = QPixmap.fromImage(ImageQt.ImageQt(frame))
        self.refresh()

    def refresh(self):
        if self._pixmap is None:
            return
        self.label.setPixmap(
            self._pixmap.scaled(
                self.label.size(),
                Qt.KeepAspectRatio,
                Qt.FastTransformation
            )
        )


class SheetView(QLabel):
    """Source sheet with the cutting grid drawn on top"""

    def __init__(self):
        super().__init__("Load a spritesheet to see the grid")
        self.setAlignment(Qt.AlignCenter)
        self.setMinimumSize(420, 260)
        self.setObjectName("sheetView")
        self._sheet = None
        self._geometry = None

    def set_sheet(self, source, geometry):
        self._sheet = QPixmap.fromImage(ImageQt.ImageQt(source.image)) if source else None
        self._geometry = geometry
        self.redraw()

    def set_geometry(self, geometry):
        self._geometry = geometry
        self.redraw()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.redraw()

    def redraw(self):
        if self._sheet is None:
            return
        scaled = self._sheet.scaled(self.size(), Qt.KeepAspectRatio, Qt.FastTransformation)
        if self._geometry is not None:
            scale_x = scaled.width() / self._sheet.width()
            scale_y = scaled.height() / self._sheet.height()
            grid_w = self._geometry.frame_width * self._geometry.cols * scale_x
            grid_h = self._geometry.frame_height * self._geometry.rows * scale_y

            painter = QPainter(scaled)
            pen = QPen(ACCENT)
            pen.setWidth(1)
            painter.setPen(pen)
            for col in range(self._geometry.cols + 1):
                x = int(col * self._geometry.frame_width * scale_x)
                painter.drawLine(x, 0, x, int(grid_h))
            for row in range(self._geometry.rows + 1):
                y = int(row * self._geometry.frame_height * scale_y)
                painter.drawLine(0, y, int(grid_w), y)
            painter.end()
        self.setPixmap(scaled)


class SpriteSlicerWindow(QMainWindow):
    """Main application window"""

    def __init__(self, settings=None):
        super().__init__()
        self.setWindowTitle(f"{APPLICATION_NAME} - Spritesheet to GIF & Slices")
        self.setMinimumSize(1100, 750)
        self.setAcceptDrops(True)

        self.settings = settings or load_settings()
        self._gif_bytes = None
        self._gif_buffer = None
        self._gif_movie = None

        self.init_ui()
        self.apply_styles()

        self.surface = LabelSurface(self.preview)
        self.session = SpriteSession(surface=self.surface, parent=self)
        self.connect_session()

        try:
            self.session.start()
        except EncoderUnavailable as e:
            logger.error("GIF export disabled: %s", e)

        self.session.update(
            cols=self.settings.cols, rows=self.settings.rows, fps=self.settings.fps
        )
        self.refresh_controls()

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------
    def init_ui(self):
        central = QWidget()
        self.setCentralWidget(central)

        layout = QHBoxLayout(central)
        layout.setSpacing(20)
        layout.setContentsMargins(20, 20, 20, 20)

        layout.addWidget(self.create_controls(), 2)
        layout.addWidget(self.create_workspace(), 3)

    def create_controls(self):
        """Create the controls panel"""
        controls = QFrame()
        controls.setFrameStyle(QFrame.StyledPanel)
        controls.setObjectName("panel")

        controls_layout = QVBoxLayout(controls)
        controls_layout.setSpacing(15)
        controls_layout.setContentsMargins(15, 15, 15, 15)

        load_btn = QPushButton("📁 Load Spritesheet")
        load_btn.clicked.connect(self.open_image)
        controls_layout.addWidget(load_btn)

        hint = QLabel("…or drop a PNG / JPG onto the window")
        hint.setStyleSheet("color: #888; font-style: italic;")
        controls_layout.addWidget(hint)

        # Grid Settings Group
        grid_group = QGroupBox("Grid")
        grid_layout = QGridLayout()

        grid_layout.addWidget(QLabel("Columns:"), 0, 0)
        self.cols_spinbox = QSpinBox()
        self.cols_spinbox.setRange(MIN_GRID, MAX_GRID)
        self.cols_spinbox.setValue(self.settings.cols)
        self.cols_spinbox.valueChanged.connect(self.update_cols)
        grid_layout.addWidget(self.cols_spinbox, 0, 1)

        grid_layout.addWidget(QLabel("Rows:"), 1, 0)
        self.rows_spinbox = QSpinBox()
        self.rows_spinbox.setRange(MIN_GRID, MAX_GRID)
        self.rows_spinbox.setValue(self.settings.rows)
        self.rows_spinbox.valueChanged.connect(self.update_rows)
        grid_layout.addWidget(self.rows_spinbox, 1, 1)

        grid_group.setLayout(grid_layout)
        controls_layout.addWidget(grid_group)

        self.info_label = QLabel("No spritesheet loaded")
        self.info_label.setStyleSheet("color: #22d3ee;")
        self.info_label.setWordWrap(True)
        controls_layout.addWidget(self.info_label)

        # Animation Group
        anim_group = QGroupBox("Animation Preview")
        anim_layout = QVBoxLayout()

        fps_layout = QGridLayout()
        fps_layout.addWidget(QLabel("Speed:"), 0, 0)
        self.fps_label = QLabel(f"{self.settings.fps} FPS")
        self.fps_label.setStyleSheet("color: #22d3ee; font-weight: bold;")
        fps_layout.addWidget(self.fps_label, 0, 1, Qt.AlignRight)

        self.fps_slider = QSlider(Qt.Horizontal)
        self.fps_slider.setRange(MIN_FPS, MAX_FPS)
        self.fps_slider.setValue(self.settings.fps)
        self.fps_slider.valueChanged.connect(self.update_fps)
        fps_layout.addWidget(self.fps_slider, 1, 0, 1, 2)
        anim_layout.addLayout(fps_layout)

        self.preview = QLabel()
        self.preview.setAlignment(Qt.AlignCenter)
        self.preview.setMinimumSize(240, 200)
        self.preview.setObjectName("preview")
        anim_layout.addWidget(self.preview)

        self.play_pause_btn = QPushButton("⏸ Pause")
        self.play_pause_btn.clicked.connect(self.toggle_playback)
        anim_layout.addWidget(self.play_pause_btn)

        anim_group.setLayout(anim_layout)
        controls_layout.addWidget(anim_group)

        controls_layout.addStretch()
        return controls

    def create_workspace(self):
        """Sheet view, slice list, export actions and results"""
        workspace = QFrame()
        workspace.setFrameStyle(QFrame.StyledPanel)
        workspace.setObjectName("panel")

        layout = QVBoxLayout(workspace)
        layout.setSpacing(12)
        layout.setContentsMargins(15, 15, 15, 15)

        self.sheet_view = SheetView()
        layout.addWidget(self.sheet_view, 3)

        # Slices header
        header = QHBoxLayout()
        header.addWidget(QLabel("Slices"))
        self.loading_label = QLabel("⟳ Updating…")
        self.loading_label.setStyleSheet("color: orange;")
        self.loading_label.setVisible(False)
        header.addWidget(self.loading_label)
        header.addStretch()
        self.count_label = QLabel("0 slices")
        self.count_label.setStyleSheet("color: #888;")
        header.addWidget(self.count_label)
        layout.addLayout(header)

        self.slice_list = QListWidget()
        self.slice_list.setViewMode(QListWidget.IconMode)
        self.slice_list.setIconSize(QSize(72, 72))
        self.slice_list.setResizeMode(QListWidget.Adjust)
        self.slice_list.setMovement(QListWidget.Static)
        self.slice_list.setToolTip("Double-click a slice to save it")
        self.slice_list.itemDoubleClicked.connect(self.save_slice)
        layout.addWidget(self.slice_list, 2)

        # Export buttons
        export_layout = QGridLayout()
        self.export_gif_btn = QPushButton("🎬 Generate GIF")
        self.export_gif_btn.clicked.connect(self.export_gif)
        export_layout.addWidget(self.export_gif_btn, 0, 0)

        self.export_zip_btn = QPushButton("📦 Download All Slices (ZIP)")
        self.export_zip_btn.clicked.connect(self.export_archive)
        export_layout.addWidget(self.export_zip_btn, 0, 1)

        self.gif_progress = QProgressBar()
        self.gif_progress.setRange(0, 100)
        export_layout.addWidget(self.gif_progress, 1, 0)

        self.zip_progress = QProgressBar()
        self.zip_progress.setRange(0, 100)
        export_layout.addWidget(self.zip_progress, 1, 1)
        layout.addLayout(export_layout)

        # GIF result
        result_group = QGroupBox("GIF Result")
        result_layout = QHBoxLayout()
        self.gif_result = QLabel("Generate a GIF to see it here")
        self.gif_result.setAlignment(Qt.AlignCenter)
        self.gif_result.setMinimumHeight(120)
        result_layout.addWidget(self.gif_result, 1)

        self.save_gif_btn = QPushButton("💾 Save GIF")
        self.save_gif_btn.clicked.connect(self.save_gif)
        self.save_gif_btn.setEnabled(False)
        result_layout.addWidget(self.save_gif_btn)
        result_group.setLayout(result_layout)
        layout.addWidget(result_group, 1)

        return workspace

    def connect_session(self):
        session = self.session
        session.source_changed.connect(self.on_source_changed)
        session.geometry_changed.connect(self.refresh_controls)
        session.previews.previews_ready.connect(self.show_previews)
        session.previews.loading_changed.connect(self.loading_label.setVisible)
        session.animation.playing_changed.connect(self.on_playing_changed)

        session.gif_export.started.connect(self.refresh_controls)
        session.gif_export.progress.connect(self.gif_progress.setValue)
        session.gif_export.finished.connect(self.gif_finished)
        session.gif_export.failed.connect(self.export_failed)

        session.archive_export.started.connect(self.refresh_controls)
        session.archive_export.progress.connect(self.zip_progress.setValue)
        session.archive_export.finished.connect(self.archive_finished)
        session.archive_export.failed.connect(self.export_failed)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    def open_image(self):
        """Load a spritesheet image"""
        path, _ = QFileDialog.getOpenFileName(self, "Load Spritesheet", "", IMAGE_FILTER)
        if path:
            self.session.load_file(path)

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):
        urls = [url for url in event.mimeData().urls() if url.isLocalFile()]
        if not urls:
            return
        # One sheet at a time: extra files are ignored
        self.session.load_file(urls[0].toLocalFile())
        event.acceptProposedAction()

    def update_cols(self, value):
        self.session.update(cols=value)

    def update_rows(self, value):
        self.session.update(rows=value)

    def update_fps(self, value):
        self.fps_label.setText(f"{value} FPS")
        self.session.update(fps=value)

    def toggle_playback(self):
        """Toggle animation playback"""
        self.session.update(playing=not self.session.playing)

    # ------------------------------------------------------------------
    # Session updates
    # ------------------------------------------------------------------
    def on_source_changed(self):
        self.sheet_view.set_sheet(self.session.source, self.session.geometry)
        self.clear_gif_result()

    def on_playing_changed(self, playing):
        self.play_pause_btn.setText("⏸ Pause" if playing else "▶ Play")

    def refresh_controls(self):
        """Sync labels and button states with the session"""
        session = self.session
        geometry = session.geometry
        self.sheet_view.set_geometry(geometry)

        if session.source is None:
            self.info_label.setText("No spritesheet loaded")
        elif geometry is None:
            self.info_label.setText(
                f"Sheet: {session.source.width}×{session.source.height}px\n"
                f"⚠ A {session.grid.cols}×{session.grid.rows} grid does not fit this sheet"
            )
        else:
            info = (
                f"Sheet: {session.source.width}×{session.source.height}px\n"
                f"Slice: {geometry.frame_width}×{geometry.frame_height}px\n"
                f"Slices: {geometry.total_frames}"
            )
            unused_w, unused_h = geometry.unused_pixels(session.source.size)
            if unused_w > 0 or unused_h > 0:
                info += f"\n⚠ {unused_w}px width and {unused_h}px height will be unused"
            self.info_label.setText(info)

        can_export = geometry is not None
        self.play_pause_btn.setEnabled(can_export)
        self.export_gif_btn.setEnabled(can_export and not session.gif_export.running)
        self.export_zip_btn.setEnabled(can_export and not session.archive_export.running)
        self.export_gif_btn.setText(
            "⏳ Generating GIF…" if session.gif_export.running else "🎬 Generate GIF"
        )
        self.export_zip_btn.setText(
            "⏳ Packing…" if session.archive_export.running else "📦 Download All Slices (ZIP)"
        )

    def show_previews(self, previews):
        self.slice_list.clear()
        for index, data in enumerate(previews):
            pixmap = QPixmap()
            pixmap.loadFromData(data, "PNG")
            item = QListWidgetItem(QIcon(pixmap), str(index + 1))
            item.setData(Qt.UserRole, index)
            self.slice_list.addItem(item)
        self.count_label.setText(f"{len(previews)} slices")

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.surface.refresh()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def export_gif(self):
        self.gif_progress.setValue(0)
        self.session.export_gif()

    def export_archive(self):
        self.zip_progress.setValue(0)
        self.session.export_archive()

    def gif_finished(self, artifact):
        self.refresh_controls()
        self.gif_progress.setValue(100)

        # QMovie reads lazily, so the buffer must outlive it
        self._gif_bytes = QByteArray(artifact.data)
        self._gif_buffer = QBuffer(self._gif_bytes)
        self._gif_buffer.open(QIODevice.ReadOnly)
        self._gif_movie = QMovie(self._gif_buffer, QByteArray(b"gif"))
        self.gif_result.setMovie(self._gif_movie)
        self._gif_movie.start()
        self.save_gif_btn.setEnabled(True)

    def archive_finished(self, artifact):
        self.refresh_controls()
        self.zip_progress.setValue(100)
        self.save_artifact(artifact, "Save Slices", "ZIP (*.zip)")

    def export_failed(self, message):
        self.refresh_controls()
        QMessageBox.critical(self, "Error", f"Export failed:\n{message}")

    def clear_gif_result(self):
        if self._gif_movie:
            self._gif_movie.stop()
        self._gif_movie = None
        self._gif_buffer = None
        self._gif_bytes = None
        self.gif_result.clear()
        self.gif_result.setText("Generate a GIF to see it here")
        self.save_gif_btn.setEnabled(False)
        self.gif_progress.setValue(0)

    def save_gif(self):
        artifact = self.session.gif_export.artifact
        if artifact is None:
            QMessageBox.warning(self, "No GIF", "Please generate a GIF first!")
            return
        self.save_artifact(artifact, "Save GIF", "GIF (*.gif)")

    def save_slice(self, item):
        index = item.data(Qt.UserRole)
        artifact = self.session.preview_artifact(index)
        self.save_artifact(artifact, "Save Slice", "PNG (*.png)")

    def save_artifact(self, artifact, title, file_filter):
        path, _ = QFileDialog.getSaveFileName(self, title, artifact.filename, file_filter)
        if not path:
            return

        # Normalize extension
        suffix = Path(artifact.filename).suffix
        if not path.lower().endswith(suffix):
            path += suffix

        try:
            saved = artifact.save(path)
        except OSError as e:
            QMessageBox.critical(self, "Error", f"Failed to save {artifact.filename}:\n{e}")
            return
        size_mb = len(artifact.data) / (1024 * 1024)
        QMessageBox.information(
            self, "✓ Saved",
            f"{saved.name} saved successfully!\n\nFile size: {size_mb:.2f} MB"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def closeEvent(self, event):
        """Persist settings and stop timers and workers"""
        save_settings(SlicerSettings(
            cols=self.session.grid.cols,
            rows=self.session.grid.rows,
            fps=self.session.fps,
        ))
        self.clear_gif_result()
        self.session.shutdown()
        event.accept()

    def apply_styles(self):
        """Apply global stylesheet"""
        self.setStyleSheet("""
            QMainWindow, QWidget {
                background: #0f172a;
                color: #e2e8f0;
                font-family: 'Segoe UI', Arial, sans-serif;
                font-size: 12px;
            }
            QFrame#panel {
                background: #1e293b;
                border-radius: 10px;
            }
            QLabel#preview, QLabel#sheetView {
                background: #020617;
                color: #64748b;
                border-radius: 8px;
            }
            QPushButton {
                background: #334155;
                color: #22d3ee;
                border: 1px solid #155e75;
                border-radius: 6px;
                padding: 10px;
                font-size: 13px;
                font-weight: bold;
            }
            QPushButton:hover {
                background: #475569;
            }
            QPushButton:disabled {
                background: #1e293b;
                color: #64748b;
            }
            QGroupBox {
                font-weight: bold;
                border: 2px solid #334155;
                border-radius: 6px;
                margin-top: 10px;
                padding-top: 10px;
            }
            QGroupBox::title {
                subcontrol-origin: margin;
                left: 10px;
                padding: 0 5px;
            }
            QSpinBox {
                background: #334155;
                border: 1px solid #475569;
                border-radius: 4px;
                padding: 5px;
            }
            QSlider::groove:horizontal {
                background: #334155;
                height: 8px;
                border-radius: 4px;
            }
            QSlider::handle:horizontal {
                background: #22d3ee;
                width: 18px;
                margin: -5px 0;
                border-radius: 9px;
            }
            QListWidget {
                background: #020617;
                border: 1px solid #334155;
                border-radius: 6px;
            }
            QProgressBar {
                background: #1e293b;
                border: 1px solid #334155;
                border-radius: 4px;
                text-align: center;
            }
            QProgressBar::chunk {
                background: #0891b2;
                border-radius: 3px;
            }
        """)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="sprite-slicer",
        description="Slice a spritesheet into frames and export them as a GIF or ZIP",
    )
    parser.add_argument("image", nargs="?", help="spritesheet to open at startup")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point"""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv[:1])

    # Set application metadata (also keys the QSettings store)
    app.setApplicationName(APPLICATION_NAME)
    app.setOrganizationName(ORGANIZATION_NAME)
    app.setApplicationVersion(__version__)

    window = SpriteSlicerWindow()
    if args.image:
        window.session.load_file(args.image)
    window.show()

    return app.exec()
