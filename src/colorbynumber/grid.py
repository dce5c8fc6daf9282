"""
Immutable color-by-number grid: cells, palette, codes and geometry metadata.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .color_math import Color
from .geometry import CellLayout, GridType, Tiling


@dataclass(frozen=True)
class Cell:
    """Represents a single cell of the template."""
    x: int
    y: int
    color: Color
    code: str
    palette_index: int

    @property
    def hex(self) -> str:
        return self.color.hex

    @property
    def numbered(self) -> bool:
        return bool(self.code)


@dataclass(frozen=True)
class Grid:
    """A complete template. Regenerate rather than mutate."""
    grid_type: GridType
    cell_size: int
    width: int
    height: int
    cells: Tuple[Cell, ...]
    palette: Tuple[Color, ...]
    codes: Tuple[str, ...]
    color_names: Tuple[str, ...]
    cell_gap: float = 0.0
    rotation_deg: float = 0.0
    grid_hash: str = field(default="", compare=False)

    def __post_init__(self):
        """Validate dense, in-range coverage and compute the grid hash."""
        object.__setattr__(self, "grid_type", GridType.parse(self.grid_type))
        if len(self.cells) != self.width * self.height:
            raise ValueError(
                f"Grid {self.width}x{self.height} needs {self.width * self.height} cells, "
                f"got {len(self.cells)}"
            )
        for i, cell in enumerate(self.cells):
            expected = (i % self.width, i // self.width)
            if (cell.x, cell.y) != expected:
                raise ValueError(f"Cell {i} at ({cell.x}, {cell.y}), expected {expected}")
        if not (len(self.palette) == len(self.codes) == len(self.color_names)):
            raise ValueError("Palette, codes and names must have equal length")
        object.__setattr__(self, "grid_hash", self._calculate_hash())

    def _calculate_hash(self) -> str:
        """SHA-256 over geometry, palette and cell indices, for determinism checks."""
        indices = np.array([cell.palette_index for cell in self.cells], dtype=np.int32)
        hash_input = (
            f"{self.grid_type.value}|{self.cell_size}|{self.width}x{self.height}|"
            f"{'|'.join(color.hex for color in self.palette)}|"
            f"{'|'.join(self.codes)}|"
            f"{indices.tobytes().hex()}"
        )
        return hashlib.sha256(hash_input.encode()).hexdigest()[:16]

    @property
    def tiling(self) -> Tiling:
        return Tiling(self.grid_type, self.cell_size, self.width, self.height)

    @property
    def total_cells(self) -> int:
        return self.width * self.height

    def cell_at(self, x: int, y: int) -> Cell:
        """Get cell at specified coordinates."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Coordinates ({x}, {y}) outside grid bounds")
        return self.cells[y * self.width + x]

    def cell_layout(self, x: int, y: int) -> CellLayout:
        return self.tiling.cell_layout(x, y)

    def cell_center(self, x: int, y: int) -> Tuple[float, float]:
        return self.tiling.cell_center(x, y)

    def hit_test(self, px: float, py: float) -> Optional[Cell]:
        """Cell under a point in grid pixel coordinates, or None."""
        hit = self.tiling.hit_test(px, py)
        if hit is None:
            return None
        return self.cell_at(*hit)

    def extent(self) -> Tuple[float, float]:
        return self.tiling.extent()

    def index_array(self) -> np.ndarray:
        """(height, width) array of palette indices."""
        indices = np.array([cell.palette_index for cell in self.cells], dtype=np.int64)
        return indices.reshape(self.height, self.width)

    def color_counts(self) -> Dict[int, int]:
        counts = np.bincount(self.index_array().ravel(), minlength=len(self.palette))
        return {index: int(count) for index, count in enumerate(counts)}

    def get_color_legend(self) -> List[Dict[str, Any]]:
        """Legend entries in palette order."""
        counts = self.color_counts()
        legend = []
        for index, color in enumerate(self.palette):
            count = counts.get(index, 0)
            legend.append({
                'palette_index': index,
                'code': self.codes[index],
                'name': self.color_names[index],
                'rgb': color.rgb,
                'hex': color.hex,
                'count': count,
                'percentage': (count / self.total_cells) * 100 if self.total_cells else 0.0,
            })
        return legend

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form for JSON export."""
        width_px, height_px = self.extent()
        return {
            'grid_type': self.grid_type.value,
            'cell_size': self.cell_size,
            'width': self.width,
            'height': self.height,
            'cell_gap': self.cell_gap,
            'rotation_deg': self.rotation_deg,
            'extent_px': [round(width_px, 3), round(height_px, 3)],
            'bounds_px': [round(v, 3) for v in self.tiling.bounds()],
            'grid_hash': self.grid_hash,
            'palette': [
                {key: entry[key] for key in ('palette_index', 'code', 'name', 'hex', 'count')}
                for entry in self.get_color_legend()
            ],
            'cells': [
                {
                    'x': cell.x,
                    'y': cell.y,
                    'code': cell.code,
                    'color': cell.hex,
                    'palette_index': cell.palette_index,
                }
                for cell in self.cells
            ],
        }
