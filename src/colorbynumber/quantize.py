"""
Broad-palette extraction with k-means in Lab space.

The pipeline only needs "some" initial color list from the source pixels;
any callable with the Quantizer signature can replace KMeansQuantizer.
"""

from typing import Callable, List, Optional

import numpy as np
from sklearn.cluster import KMeans

from .color_math import Color, lab_to_rgb, pack_rgb, rgb_to_lab, unpack_rgb

Quantizer = Callable[[np.ndarray, int], List[Color]]


def distinct_colors(rgb_pixels: np.ndarray) -> List[Color]:
    """Distinct colors of an (N, 3) array in first-appearance order."""
    keys = pack_rgb(np.asarray(rgb_pixels, dtype=np.uint8).reshape(-1, 3))
    if keys.size == 0:
        return []
    uniq, first_index = np.unique(keys, return_index=True)
    ordered = uniq[np.argsort(first_index, kind="stable")]
    return [Color(*(int(c) for c in rgb)) for rgb in unpack_rgb(ordered)]


class KMeansQuantizer:
    """Extracts up to `count` representative colors from raw pixels."""

    def __init__(self, seed: Optional[int] = 42, target_pixels: int = 15000,
                 verbose: bool = False):
        self.seed = seed
        self.target_pixels = target_pixels
        self.verbose = verbose

    def __call__(self, rgb_pixels: np.ndarray, count: int) -> List[Color]:
        """
        Quantize pixels to at most `count` colors.

        Args:
            rgb_pixels: (N, 3) uint8 opaque pixels
            count: color budget

        Returns:
            Colors ordered by cluster population, largest first
        """
        pixels = np.asarray(rgb_pixels, dtype=np.uint8).reshape(-1, 3)
        distinct = distinct_colors(pixels)
        if len(distinct) <= count:
            # Nothing to cluster: the image already fits the budget
            return distinct

        total_pixels = len(pixels)
        downsample_factor = max(1, int(np.sqrt(total_pixels / self.target_pixels)))
        sample = pixels[::downsample_factor]
        if self.verbose:
            print(f"  K-means on {len(sample):,} of {total_pixels:,} pixels for {count} colors...")

        kmeans = KMeans(
            n_clusters=count,
            init='k-means++',
            n_init=3,
            max_iter=100,
            random_state=self.seed,
            algorithm='elkan',
            tol=1e-4,
        )
        kmeans.fit(rgb_to_lab(sample.astype(np.float64)))
        if self.verbose:
            print(f"  Converged in {kmeans.n_iter_} iterations")

        populations = np.bincount(kmeans.labels_, minlength=count)
        order = np.argsort(-populations, kind="stable")
        centers_rgb = lab_to_rgb(kmeans.cluster_centers_[order])
        return [Color(*(int(c) for c in rgb)) for rgb in centers_rgb]
