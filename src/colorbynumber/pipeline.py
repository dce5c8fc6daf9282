"""
End-to-end color-by-number generation.
Source pixels -> palette -> per-cell assignment -> pruning -> labels -> Grid.
"""

from typing import Optional

import numpy as np

from .assign import CellAssigner
from .color_math import LabCache
from .config import Config
from .errors import ConfigurationError
from .geometry import GridType, Tiling
from .grid import Cell, Grid
from .image_io import ImageLoader, resize_pixels
from .labels import LabelAssigner
from .palette import PaletteBuilder
from .quantize import KMeansQuantizer, Quantizer

HONEYCOMB_CELL_GAP = 2.0
DIAMOND_ROTATION_DEG = 45.0


class ColorByNumberGenerator:
    """Turns an image into a numbered template grid."""

    def __init__(self, config: Optional[Config] = None, quantizer: Optional[Quantizer] = None):
        self.config = config or Config()
        self.config.validate()
        self.quantizer = quantizer

    @property
    def verbose(self) -> bool:
        return self.config.processing.verbose

    def generate_from_file(self, image_path: str) -> Grid:
        loader = ImageLoader(self.config.grid.max_width, verbose=self.verbose)
        pixels, _ = loader.load_image(image_path)
        return self.generate(pixels)

    def generate(self, pixels: np.ndarray) -> Grid:
        """
        Build a grid from an (H, W, 4) RGBA or (H, W, 3) RGB uint8 array.

        Every run uses a fresh LabCache, so generators can be reused
        without carrying state between images.
        """
        pixels = self._check_pixels(pixels)
        grid_cfg = self.config.grid
        grid_type = GridType.parse(grid_cfg.grid_type)
        height, width = pixels.shape[:2]

        tiling = Tiling.for_image(grid_type, grid_cfg.cell_size, width, height)
        if grid_type.staggered:
            target_w, target_h = tiling.target_size()
            pixels = resize_pixels(pixels, target_w, target_h)

        if self.verbose:
            print(f"Generating {grid_type.value} grid: {tiling.cols}x{tiling.rows} cells "
                  f"of {grid_cfg.cell_size}px from {width}x{height} image")

        lab_cache = LabCache()
        assign_cfg = self.config.assign
        palette_builder = PaletteBuilder(
            max_colors=self.config.palette.max_colors,
            dedup_threshold=self.config.palette.dedup_threshold,
            min_cell_count=self.config.palette.min_cell_count,
            min_cell_fraction=self.config.palette.min_cell_fraction,
            quantizer=self.quantizer or KMeansQuantizer(
                seed=self.config.processing.seed, verbose=self.verbose
            ),
            lab_cache=lab_cache,
            verbose=self.verbose,
        )
        palette = palette_builder.build(self._opaque_rgb(pixels))

        assigner = CellAssigner(
            palette,
            block_average=assign_cfg.block_average,
            alpha_threshold=assign_cfg.alpha_threshold,
            tie_ratio=assign_cfg.tie_ratio,
            lab_cache=lab_cache,
            verbose=self.verbose,
        )
        cell_indices = assigner.assign(pixels, tiling)
        palette, cell_indices, _ = palette_builder.prune(cell_indices, palette)

        labels = LabelAssigner().assign(palette, np.unique(cell_indices))
        cells = tuple(
            Cell(x, y, palette[index], labels.code(index), index)
            for (x, y), index in zip(tiling.iter_cells(), (int(i) for i in cell_indices.ravel()))
        )

        grid = Grid(
            grid_type=grid_type,
            cell_size=grid_cfg.cell_size,
            width=tiling.cols,
            height=tiling.rows,
            cells=cells,
            palette=tuple(palette),
            codes=tuple(labels.code(i) for i in range(len(palette))),
            color_names=tuple(labels.names[i] for i in range(len(palette))),
            cell_gap=HONEYCOMB_CELL_GAP if grid_type is GridType.HONEYCOMB else 0.0,
            rotation_deg=DIAMOND_ROTATION_DEG if grid_type is GridType.DIAMOND else 0.0,
        )

        if self.verbose:
            print(f"Grid created with {grid.total_cells} cells, {len(palette)} colors "
                  f"({len(labels.numbered)} numbered), hash {grid.grid_hash}")
        return grid

    def _check_pixels(self, pixels) -> np.ndarray:
        pixels = np.asarray(pixels)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ConfigurationError(f"Expected an (H, W, 3|4) pixel array, got shape {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ConfigurationError(
                f"Image must have a positive area, got {pixels.shape[1]}x{pixels.shape[0]}"
            )
        if not np.issubdtype(pixels.dtype, np.integer):
            raise ConfigurationError(f"Pixel channels must be integers 0-255, got dtype {pixels.dtype}")
        low, high = int(pixels.min()), int(pixels.max())
        if low < 0 or high > 255:
            raise ConfigurationError(f"Pixel channels must be in 0-255, got range {low}-{high}")
        return pixels.astype(np.uint8, copy=False)

    def _opaque_rgb(self, pixels: np.ndarray) -> np.ndarray:
        rgb = pixels[..., :3].reshape(-1, 3)
        if pixels.shape[2] == 4:
            rgb = rgb[pixels[..., 3].ravel() >= self.config.assign.alpha_threshold]
        return rgb


def convert_pixels(pixels: np.ndarray, config: Optional[Config] = None,
                   quantizer: Optional[Quantizer] = None) -> Grid:
    """
    Convenience function to build a grid from an in-memory image.

    Args:
        pixels: (H, W, 4) RGBA uint8 array; (H, W, 3) is treated as opaque
        config: Generator configuration (defaults when None)
        quantizer: Replacement for the default k-means palette extraction

    Returns:
        Immutable Grid
    """
    return ColorByNumberGenerator(config, quantizer).generate(pixels)


def convert_image(image_path: str, config: Optional[Config] = None) -> Grid:
    """Convenience function to build a grid from an image file."""
    return ColorByNumberGenerator(config).generate_from_file(image_path)
