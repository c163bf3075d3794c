"""
Grid math: frame size, frame count and per-index pixel offsets.

Frames are addressed row-major, so index 0 is the top-left cell and
index ``cols`` starts the second row. Partial cells at the right and
bottom edges (when the sheet does not divide evenly) are never used.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .config import DEFAULT_COLS, DEFAULT_ROWS, MAX_GRID, MIN_GRID, clamp
from .errors import InvalidGeometry


@dataclass(frozen=True)
class GridShape:
    """Number of columns and rows the sheet is cut into"""

    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS

    def __post_init__(self):
        for name, value in (("cols", self.cols), ("rows", self.rows)):
            if not MIN_GRID <= value <= MAX_GRID:
                raise ValueError(
                    f"{name} must be between {MIN_GRID} and {MAX_GRID}, got {value}"
                )

    @classmethod
    def clamped(cls, cols, rows):
        """Build a shape from raw user input"""
        return cls(clamp(cols, MIN_GRID, MAX_GRID), clamp(rows, MIN_GRID, MAX_GRID))

    @property
    def total_frames(self):
        return self.cols * self.rows


@dataclass(frozen=True)
class FrameGeometry:
    """Frame size and layout derived from a sheet size and a grid shape"""

    frame_width: int
    frame_height: int
    cols: int
    rows: int

    @property
    def total_frames(self) -> int:
        return self.cols * self.rows

    @property
    def frame_size(self) -> Tuple[int, int]:
        return self.frame_width, self.frame_height

    def indices(self):
        return range(self.total_frames)

    def cell(self, index: int) -> Tuple[int, int]:
        """Column and row of a frame index"""
        if not 0 <= index < self.total_frames:
            raise IndexError(
                f"frame index {index} out of range for {self.total_frames} frames"
            )
        return index % self.cols, index // self.cols

    def index_of(self, col: int, row: int) -> int:
        if not (0 <= col < self.cols and 0 <= row < self.rows):
            raise IndexError(f"cell ({col}, {row}) outside {self.cols}x{self.rows} grid")
        return row * self.cols + col

    def offset(self, index: int) -> Tuple[int, int]:
        """Top-left source pixel of a frame"""
        col, row = self.cell(index)
        return col * self.frame_width, row * self.frame_height

    def box(self, index: int) -> Tuple[int, int, int, int]:
        """Crop box (left, top, right, bottom) of a frame"""
        left, top = self.offset(index)
        return left, top, left + self.frame_width, top + self.frame_height

    def unused_pixels(self, image_size) -> Tuple[int, int]:
        """Width and height left over at the right and bottom edges"""
        width, height = image_size
        return width - self.frame_width * self.cols, height - self.frame_height * self.rows


def compute_geometry(image_size, grid: GridShape) -> Optional[FrameGeometry]:
    """Return the frame geometry, or None when a frame would have no pixels"""
    width, height = image_size
    frame_width = width // grid.cols
    frame_height = height // grid.rows
    if frame_width <= 0 or frame_height <= 0:
        return None
    return FrameGeometry(frame_width, frame_height, grid.cols, grid.rows)


def require_geometry(image_size, grid: GridShape) -> FrameGeometry:
    """Like compute_geometry, but raise InvalidGeometry instead of returning None"""
    geometry = compute_geometry(image_size, grid)
    if geometry is None:
        raise InvalidGeometry(image_size, grid.cols, grid.rows)
    return geometry
