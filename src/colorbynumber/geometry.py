"""
Tiling geometry for the four supported grid types.

Every cell is addressed by integer (x, y) = (column, row). A Tiling knows how
to place a cell (center, radius, outline), how large the whole grid is, which
block of source pixels feeds the cell, and how to map a point back to the cell
that contains it.

Staggered grids (diamond, honeycomb, pentagon) shift odd rows right by half a
cell and pack rows closer than the cell size, so they need more rows than a
square grid to cover the same image height.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, NamedTuple, Optional, Tuple

SQRT2 = math.sqrt(2.0)
SQRT3 = math.sqrt(3.0)

# Pointy-top hexagon, drawn for the "pentagon" grid
HEX_ANGLES_DEG = (-90.0, -30.0, 30.0, 90.0, 150.0, 210.0)

DIAMOND_ROW_STEP_FACTOR = 1.0
HONEYCOMB_ROW_STEP_FACTOR = SQRT3
PENTAGON_ROW_STEP_FACTOR = 1.5


class GridType(str, Enum):
    SQUARE = "square"
    DIAMOND = "diamond"
    HONEYCOMB = "honeycomb"
    PENTAGON = "pentagon"

    @classmethod
    def parse(cls, value) -> "GridType":
        """Accept a GridType or its name; "standard" is an alias of square."""
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower()
        if name == "standard":
            return cls.SQUARE
        try:
            return cls(name)
        except ValueError:
            choices = ", ".join(t.value for t in cls)
            raise ValueError(f"Unknown grid type '{value}'. Available: {choices}") from None

    @property
    def staggered(self) -> bool:
        return self is not GridType.SQUARE


class CellLayout(NamedTuple):
    """Center, radius and outline kind of one cell in grid pixel space."""
    cx: float
    cy: float
    r: float
    shape: str


_SHAPES = {
    GridType.SQUARE: "square",
    GridType.DIAMOND: "diamond",
    GridType.HONEYCOMB: "circle",
    GridType.PENTAGON: "hexagon",
}


def point_in_polygon(px: float, py: float, vertices: List[Tuple[float, float]]) -> bool:
    """Even-odd ray casting test."""
    inside = False
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i]
        xj, yj = vertices[j]
        if (yi > py) != (yj > py):
            x_cross = (xj - xi) * (py - yi) / (yj - yi) + xi
            if px < x_cross:
                inside = not inside
        j = i
    return inside


@dataclass(frozen=True)
class Tiling:
    """Geometry of one grid: type, cell size in pixels and cell counts."""
    grid_type: GridType
    cell_size: float
    cols: int
    rows: int

    def __post_init__(self):
        object.__setattr__(self, "grid_type", GridType.parse(self.grid_type))
        if self.cell_size <= 0:
            raise ValueError("Cell size must be positive")
        if self.cols < 0 or self.rows < 0:
            raise ValueError("Grid dimensions must be non-negative")

    @classmethod
    def for_image(cls, grid_type, cell_size: int, width: int, height: int) -> "Tiling":
        """
        Size a grid for an image of width x height pixels.

        Columns always cover the width in whole cells. Staggered grids scale
        the row count by cell_size / row_step so the rows span the same
        height a square grid would; the caller resamples the image to
        target_size() to fill those rows.
        """
        if cell_size <= 0:
            raise ValueError("Cell size must be positive")
        if width <= 0 or height <= 0:
            raise ValueError(f"Image must have a positive area, got {width}x{height}")
        cols = math.ceil(width / cell_size)
        rows = math.ceil(height / cell_size)
        tiling = cls(grid_type, cell_size, cols, rows)
        if tiling.grid_type.staggered:
            rows = math.ceil(round(rows * cell_size / tiling.row_step, 9))
            tiling = cls(tiling.grid_type, cell_size, cols, rows)
        return tiling

    @property
    def radius(self) -> float:
        if self.grid_type is GridType.PENTAGON:
            return self.cell_size / SQRT3
        return self.cell_size / 2

    @property
    def row_step(self) -> float:
        r = self.radius
        if self.grid_type is GridType.DIAMOND:
            return DIAMOND_ROW_STEP_FACTOR * r
        if self.grid_type is GridType.HONEYCOMB:
            return HONEYCOMB_ROW_STEP_FACTOR * r
        if self.grid_type is GridType.PENTAGON:
            return PENTAGON_ROW_STEP_FACTOR * r
        return self.cell_size

    @property
    def total_cells(self) -> int:
        return self.cols * self.rows

    def row_offset(self, y: int) -> float:
        """Horizontal shift of row y: half a cell on odd rows of staggered grids."""
        if self.grid_type.staggered and y % 2 == 1:
            return self.cell_size / 2
        return 0.0

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.cols and 0 <= y < self.rows

    def iter_cells(self) -> Iterator[Tuple[int, int]]:
        """All (x, y) in row-major order."""
        for y in range(self.rows):
            for x in range(self.cols):
                yield x, y

    def cell_layout(self, x: int, y: int) -> CellLayout:
        s = self.cell_size
        cx = x * s + s / 2 + self.row_offset(y)
        cy = (y + 0.5) * self.row_step
        return CellLayout(cx, cy, self.radius, _SHAPES[self.grid_type])

    def cell_center(self, x: int, y: int) -> Tuple[float, float]:
        layout = self.cell_layout(x, y)
        return layout.cx, layout.cy

    def extent(self) -> Tuple[float, float]:
        """Overall (width, height) of the grid in pixels, before any rotation."""
        s = self.cell_size
        if self.grid_type is GridType.SQUARE:
            return self.cols * s, self.rows * s

        width = self.cols * s + (s / 2 if self.rows > 1 else 0.0)
        height = self.rows * self.row_step
        if self.grid_type is GridType.PENTAGON:
            # hexagon tips overhang the row bands by r/4 at the top and bottom;
            # bounds() places the extent at y = -r/4
            height += self.radius / 2
        return width, height

    def half_size(self) -> Tuple[float, float]:
        """Half width and half height of one cell's shape around its center."""
        r = self.radius
        if self.grid_type is GridType.DIAMOND:
            return r * SQRT2, r * SQRT2
        if self.grid_type is GridType.PENTAGON:
            return r * SQRT3 / 2, r
        return r, r

    def bounds(self) -> Tuple[float, float, float, float]:
        """Exact (min_x, min_y, max_x, max_y) covered by all cell shapes."""
        if self.cols == 0 or self.rows == 0:
            return 0.0, 0.0, 0.0, 0.0
        hw, hh = self.half_size()
        s = self.cell_size
        stagger = s / 2 if self.grid_type.staggered and self.rows > 1 else 0.0
        first_cx = s / 2
        last_cx = (self.cols - 1) * s + s / 2 + stagger
        first_cy = 0.5 * self.row_step
        last_cy = (self.rows - 0.5) * self.row_step
        return first_cx - hw, first_cy - hh, last_cx + hw, last_cy + hh

    def polygon(self, x: int, y: int) -> List[Tuple[float, float]]:
        """Outline vertices of a cell. Honeycomb cells are circles and have none."""
        cx, cy, r, _ = self.cell_layout(x, y)
        if self.grid_type is GridType.SQUARE:
            return [(cx - r, cy - r), (cx + r, cy - r), (cx + r, cy + r), (cx - r, cy + r)]
        if self.grid_type is GridType.DIAMOND:
            d = r * SQRT2
            return [(cx, cy - d), (cx + d, cy), (cx, cy + d), (cx - d, cy)]
        if self.grid_type is GridType.PENTAGON:
            return [
                (cx + r * math.cos(math.radians(a)), cy + r * math.sin(math.radians(a)))
                for a in HEX_ANGLES_DEG
            ]
        raise ValueError("Honeycomb cells are circles; use cell_layout() instead")

    def contains(self, x: int, y: int, px: float, py: float) -> bool:
        """Exact shape test: does cell (x, y) cover point (px, py)?"""
        cx, cy, r, _ = self.cell_layout(x, y)
        dx = px - cx
        dy = py - cy
        if self.grid_type is GridType.SQUARE:
            return abs(dx) <= r and abs(dy) <= r
        if self.grid_type is GridType.DIAMOND:
            return abs(dx) + abs(dy) <= r * SQRT2
        if self.grid_type is GridType.HONEYCOMB:
            return dx * dx + dy * dy <= r * r
        return point_in_polygon(px, py, self.polygon(x, y))

    def candidate_rows(self, py: float) -> List[int]:
        """
        Rows that may contain a point at height py.

        Hexagon rows overlap their neighbours by r/2, so the pentagon grid
        searches row - 1 .. row + 1; the others resolve to a single row.
        """
        row = math.floor(py / self.row_step)
        if self.grid_type is GridType.PENTAGON:
            window = (row - 1, row, row + 1)
        else:
            window = (row,)
        return [r for r in window if 0 <= r < self.rows]

    def hit_test(self, px: float, py: float) -> Optional[Tuple[int, int]]:
        """Cell (x, y) whose shape contains (px, py), or None."""
        for row in self.candidate_rows(py):
            col = math.floor((px - self.row_offset(row)) / self.cell_size)
            if not self.in_bounds(col, row):
                continue
            if self.grid_type is GridType.SQUARE or self.contains(col, row, px, py):
                return col, row
        return None

    def pixel_window(self, x: int, y: int) -> Tuple[int, int, int, int]:
        """Source pixel block (x0, y0, x1, y1), end-exclusive and unclipped."""
        s = int(self.cell_size)
        return x * s, y * s, (x + 1) * s, (y + 1) * s

    def target_size(self) -> Tuple[int, int]:
        """Pixel size the source image is resampled to so every window is filled."""
        s = int(self.cell_size)
        return self.cols * s, self.rows * s
