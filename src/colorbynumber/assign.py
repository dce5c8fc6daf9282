"""
Per-cell palette selection.

Two strategies:
    vote           every opaque pixel votes for its nearest palette color
                   (CIEDE2000); the plurality wins, lowest index on ties
    block average  the palette color with the smallest summed CIEDE2000 over
                   the cell's pixels wins, with a hue tie-break between
                   near-equal candidates

Distances are computed once per distinct source color and then aggregated
per cell window, so large flat regions cost almost nothing.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from .color_math import Color, LabCache, delta_e2000, hue_angle, hue_distance
from .errors import ConfigurationError, PaletteInvariantError
from .geometry import Tiling

DEFAULT_ALPHA_THRESHOLD = 128
DEFAULT_TIE_RATIO = 1.05
DISTANCE_BATCH_SIZE = 50000


def select_block_candidate(totals: np.ndarray, candidate_hues: np.ndarray,
                           block_hue: float, tie_ratio: float = DEFAULT_TIE_RATIO) -> int:
    """
    Pick the palette index with the smallest total error.

    If the runner-up is within `tie_ratio` of the best total and its hue is
    circularly closer to the block's mean hue, the runner-up wins. This keeps
    neighbouring cells of a nearly uniform region from flickering between two
    similar hues.
    """
    order = np.argsort(totals, kind="stable")
    best = int(order[0])
    if len(order) < 2:
        return best
    second = int(order[1])
    if totals[second] <= totals[best] * tie_ratio:
        if hue_distance(candidate_hues[second], block_hue) < hue_distance(candidate_hues[best], block_hue):
            return second
    return best


class CellAssigner:
    """Assigns one palette index to each cell of a tiling."""

    def __init__(self, palette: Sequence[Color], block_average: bool = True,
                 alpha_threshold: int = DEFAULT_ALPHA_THRESHOLD,
                 tie_ratio: float = DEFAULT_TIE_RATIO,
                 lab_cache: Optional[LabCache] = None, verbose: bool = False):
        if len(palette) == 0:
            raise ConfigurationError("Cannot assign cells with an empty palette")
        self.palette = list(palette)
        self.block_average = block_average
        self.alpha_threshold = alpha_threshold
        self.tie_ratio = tie_ratio
        self.lab_cache = lab_cache or LabCache()
        self.verbose = verbose

        self.palette_lab = self.lab_cache.palette_lab(self.palette)
        self.palette_hues = hue_angle(self.palette_lab)

    def assign(self, pixels: np.ndarray, tiling: Tiling) -> np.ndarray:
        """
        Select a palette index for every cell.

        Args:
            pixels: (H, W, 4) RGBA or (H, W, 3) RGB uint8 source image
            tiling: grid whose pixel windows index into `pixels`

        Returns:
            (rows, cols) int array of palette indices
        """
        rgb, opaque = self._split_alpha(pixels)
        h, w = opaque.shape
        mode = "block average" if self.block_average else "per-pixel vote"
        if self.verbose:
            print(f"Assigning {tiling.cols}x{tiling.rows} cells ({mode}, {len(self.palette)} colors)...")

        _, distinct_lab, inverse = self.lab_cache.distinct_lab(rgb.reshape(-1, 3))
        inverse = inverse.reshape(h, w)
        distances = self._distance_table(distinct_lab)
        nearest = np.argmin(distances, axis=1)

        grid = np.zeros((tiling.rows, tiling.cols), dtype=np.int64)
        for x, y in tiling.iter_cells():
            x0, y0, x1, y1 = tiling.pixel_window(x, y)
            x0, y0 = max(x0, 0), max(y0, 0)
            x1, y1 = min(x1, w), min(y1, h)
            if x1 <= x0 or y1 <= y0:
                grid[y, x] = 0
                continue

            window = inverse[y0:y1, x0:x1][opaque[y0:y1, x0:x1]]
            if window.size == 0:
                grid[y, x] = 0
            elif self.block_average:
                grid[y, x] = self._checked(self._select_block(window, distances, distinct_lab))
            else:
                votes = np.bincount(nearest[window], minlength=len(self.palette))
                grid[y, x] = self._checked(int(np.argmax(votes)))

        return grid

    def _split_alpha(self, pixels: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        pixels = np.asarray(pixels)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ConfigurationError(f"Expected an (H, W, 3|4) pixel array, got shape {pixels.shape}")
        rgb = pixels[..., :3].astype(np.uint8)
        if pixels.shape[2] == 4:
            opaque = pixels[..., 3] >= self.alpha_threshold
        else:
            opaque = np.ones(pixels.shape[:2], dtype=bool)
        return rgb, opaque

    def _distance_table(self, distinct_lab: np.ndarray) -> np.ndarray:
        """(U, K) CIEDE2000 from every distinct source color to every palette entry."""
        table = np.empty((len(distinct_lab), len(self.palette)), dtype=np.float64)
        for start in range(0, len(distinct_lab), DISTANCE_BATCH_SIZE):
            batch = distinct_lab[start:start + DISTANCE_BATCH_SIZE]
            table[start:start + len(batch)] = delta_e2000(
                batch[:, np.newaxis, :], self.palette_lab[np.newaxis, :, :]
            )
        return table

    def _select_block(self, window: np.ndarray, distances: np.ndarray,
                      distinct_lab: np.ndarray) -> int:
        totals = distances[window].sum(axis=0)
        mean_lab = distinct_lab[window].mean(axis=0)
        block_hue = float(hue_angle(mean_lab))
        return select_block_candidate(totals, self.palette_hues, block_hue, self.tie_ratio)

    def _checked(self, index: int) -> int:
        if not 0 <= index < len(self.palette):
            raise PaletteInvariantError(
                f"Palette index {index} outside palette of {len(self.palette)} colors"
            )
        return index
