"""
Palette post-processing: near-duplicate merging, minor color pruning and
reduction to the colors the grid actually uses.

All functions are pure. They take a palette (sequence of Color) plus an array
of per-cell palette indices and return new objects.
"""

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .color_math import Color, LabCache, delta_e2000
from .errors import PaletteInvariantError
from .quantize import KMeansQuantizer, Quantizer

FALLBACK_COLOR = Color(255, 255, 255)


def _checked_indices(cell_indices, palette_size: int) -> np.ndarray:
    indices = np.array(cell_indices, dtype=np.int64, copy=True)
    if indices.size and (indices.min() < 0 or indices.max() >= palette_size):
        raise PaletteInvariantError(
            f"Cell palette index out of range [0, {palette_size}): "
            f"min={indices.min()}, max={indices.max()}"
        )
    return indices


def deduplicate_palette(palette: Sequence[Color], threshold: float,
                        lab_cache: Optional[LabCache] = None) -> Tuple[List[Color], List[int]]:
    """
    Merge near-identical colors, keeping the first of each group.

    Colors are visited in order. Each one is compared against the unique
    entries accepted so far, also in order, and merges into the FIRST entry
    closer than `threshold` (CIEDE2000), not the closest one. Which shade
    survives therefore depends on input order; that is intended.

    Returns:
        (unique palette, index_map) with index_map[old_index] == new_index
    """
    cache = lab_cache or LabCache()
    unique: List[Color] = []
    unique_lab = []
    index_map: List[int] = []

    for color in palette:
        lab = cache.lab(color)
        found = -1
        for j, existing_lab in enumerate(unique_lab):
            if unique[j] == color or float(delta_e2000(lab, existing_lab)) < threshold:
                found = j
                break
        if found >= 0:
            index_map.append(found)
        else:
            index_map.append(len(unique))
            unique.append(color)
            unique_lab.append(lab)

    return unique, index_map


def merge_minor_colors(cell_indices, palette: Sequence[Color], min_cell_count: int,
                       lab_cache: Optional[LabCache] = None) -> np.ndarray:
    """
    Reassign colors used by fewer than `min_cell_count` cells.

    Each minor index maps to the perceptually nearest major index (used by at
    least `min_cell_count` cells). Without any major index the input is
    returned unchanged, which keeps tiny or uniform images intact.
    """
    indices = _checked_indices(cell_indices, len(palette))
    if indices.size == 0:
        return indices

    counts = np.bincount(indices.ravel(), minlength=len(palette))
    major = np.flatnonzero(counts >= min_cell_count)
    minor = np.flatnonzero((counts > 0) & (counts < min_cell_count))
    if major.size == 0 or minor.size == 0:
        return indices

    palette_lab = (lab_cache or LabCache()).palette_lab(palette)
    distances = delta_e2000(palette_lab[minor][:, np.newaxis, :],
                            palette_lab[major][np.newaxis, :, :])
    remap = np.arange(len(palette))
    remap[minor] = major[np.argmin(distances, axis=1)]
    return remap[indices]


def reduce_to_used_palette(cell_indices, palette: Sequence[Color]
                           ) -> Tuple[List[Color], np.ndarray, List[int]]:
    """
    Keep only palette entries referenced by cells, in ascending old-index order.

    Returns:
        (reduced palette, remapped cell indices, source_indices) where
        source_indices[new_index] is the entry's index in the input palette
    """
    indices = _checked_indices(cell_indices, len(palette))
    used = np.unique(indices)
    remap = np.full(len(palette), -1, dtype=np.int64)
    remap[used] = np.arange(len(used))
    reduced = [palette[int(i)] for i in used]
    return reduced, remap[indices], [int(i) for i in used]


class PaletteBuilder:
    """Builds the working palette and prunes it once cells are assigned."""

    def __init__(self, max_colors: int, dedup_threshold: float = 3.0,
                 min_cell_count: Optional[int] = None, min_cell_fraction: float = 0.002,
                 quantizer: Optional[Quantizer] = None,
                 lab_cache: Optional[LabCache] = None, verbose: bool = False):
        self.max_colors = max_colors
        self.dedup_threshold = dedup_threshold
        self.min_cell_count = min_cell_count
        self.min_cell_fraction = min_cell_fraction
        self.quantizer = quantizer or KMeansQuantizer(verbose=verbose)
        self.lab_cache = lab_cache or LabCache()
        self.verbose = verbose

    def build(self, rgb_pixels: np.ndarray) -> List[Color]:
        """Quantize opaque (N, 3) pixels and merge near-duplicates."""
        if self.verbose:
            print(f"Quantizing to {self.max_colors} colors...")
        initial = list(self.quantizer(rgb_pixels, self.max_colors))[:self.max_colors]
        if not initial:
            # fully transparent source: a lone white entry keeps every cell code-free
            initial = [FALLBACK_COLOR]

        palette, _ = deduplicate_palette(initial, self.dedup_threshold, self.lab_cache)
        if self.verbose:
            merged = len(initial) - len(palette)
            print(f"Palette: {len(palette)} colors ({merged} near-duplicates merged)")
        return palette

    def resolve_min_cell_count(self, total_cells: int) -> int:
        if self.min_cell_count is not None:
            return self.min_cell_count
        return max(1, math.floor(total_cells * self.min_cell_fraction))

    def prune(self, cell_indices, palette: Sequence[Color]
              ) -> Tuple[List[Color], np.ndarray, List[int]]:
        """Merge minor colors, then drop unused entries."""
        indices = np.asarray(cell_indices)
        min_count = self.resolve_min_cell_count(indices.size)
        merged = merge_minor_colors(indices, palette, min_count, self.lab_cache)
        reduced, remapped, source = reduce_to_used_palette(merged, palette)
        if self.verbose:
            print(f"Pruned palette to {len(reduced)} used colors (min {min_count} cells each)")
        return reduced, remapped.reshape(indices.shape), source
