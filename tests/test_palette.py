import numpy as np
import pytest
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from colorbynumber.color_math import Color
from colorbynumber.errors import PaletteInvariantError
from colorbynumber.palette import (
    FALLBACK_COLOR,
    PaletteBuilder,
    deduplicate_palette,
    merge_minor_colors,
    reduce_to_used_palette,
)
from colorbynumber.quantize import KMeansQuantizer, distinct_colors

RED = Color(255, 0, 0)
BLUE = Color(0, 0, 255)
WHITE = Color(255, 255, 255)
GRAY_100 = Color(100, 100, 100)
GRAY_112 = Color(112, 112, 112)
GRAY_120 = Color(120, 120, 120)


def test_dedup_merges_into_first_match_not_nearest():
    # GRAY_112 is closer to GRAY_120 but GRAY_100 was accepted first
    unique, index_map = deduplicate_palette([GRAY_100, GRAY_120, GRAY_112], threshold=6.0)
    assert unique == [GRAY_100, GRAY_120]
    assert index_map == [0, 1, 0]


def test_dedup_result_depends_on_input_order():
    unique, index_map = deduplicate_palette([GRAY_120, GRAY_100, GRAY_112], threshold=6.0)
    assert unique == [GRAY_120, GRAY_100]
    assert index_map == [0, 1, 0]


def test_dedup_is_idempotent():
    palette = [RED, Color(254, 1, 0), BLUE, Color(0, 0, 250), WHITE]
    once, _ = deduplicate_palette(palette, threshold=3.0)
    twice, index_map = deduplicate_palette(once, threshold=3.0)
    assert twice == once
    assert index_map == list(range(len(once)))


def test_dedup_always_merges_identical_colors():
    unique, index_map = deduplicate_palette([RED, BLUE, RED], threshold=0.0)
    assert unique == [RED, BLUE]
    assert index_map == [0, 1, 0]


def test_merge_minor_colors_moves_to_nearest_major():
    palette = [RED, Color(200, 0, 0), BLUE]
    cells = np.array([[0, 0, 0], [0, 1, 2], [2, 2, 2]])
    merged = merge_minor_colors(cells, palette, min_cell_count=2)
    assert merged.tolist() == [[0, 0, 0], [0, 0, 2], [2, 2, 2]]


def test_merge_minor_colors_without_major_is_noop():
    cells = np.array([0, 1, 2])
    merged = merge_minor_colors(cells, [RED, BLUE, WHITE], min_cell_count=5)
    assert merged.tolist() == [0, 1, 2]


def test_merge_minor_colors_does_not_mutate_input():
    cells = np.array([0, 0, 0, 1])
    merge_minor_colors(cells, [RED, Color(200, 0, 0)], min_cell_count=2)
    assert cells.tolist() == [0, 0, 0, 1]


def test_merge_rejects_out_of_range_indices():
    with pytest.raises(PaletteInvariantError):
        merge_minor_colors(np.array([0, 3]), [RED, BLUE], min_cell_count=1)


def test_reduce_to_used_palette_keeps_ascending_order():
    reduced, remapped, source = reduce_to_used_palette(np.array([2, 2, 0]), [RED, BLUE, WHITE])
    assert reduced == [RED, WHITE]
    assert remapped.tolist() == [1, 1, 0]
    assert source == [0, 2]


def test_builder_prune_resolves_min_count_from_fraction():
    builder = PaletteBuilder(max_colors=4, min_cell_fraction=0.25)
    assert builder.resolve_min_cell_count(4) == 1
    assert builder.resolve_min_cell_count(100) == 25
    assert PaletteBuilder(max_colors=4, min_cell_count=7).resolve_min_cell_count(100) == 7

    cells = np.array([[0, 0], [0, 1], [2, 2], [2, 2]])
    palette, remapped, source = builder.prune(cells, [RED, Color(200, 0, 0), BLUE])
    assert palette == [RED, BLUE]
    assert remapped.shape == (4, 2)
    assert remapped.tolist() == [[0, 0], [0, 0], [1, 1], [1, 1]]
    assert source == [0, 2]


def test_builder_falls_back_to_white_without_pixels():
    builder = PaletteBuilder(max_colors=4, quantizer=lambda rgb, count: [])
    assert builder.build(np.zeros((0, 3), dtype=np.uint8)) == [FALLBACK_COLOR]


def test_builder_caps_quantizer_output():
    colors = [Color(i * 40, 0, 0) for i in range(6)]
    builder = PaletteBuilder(max_colors=3, quantizer=lambda rgb, count: colors)
    palette = builder.build(np.zeros((1, 3), dtype=np.uint8))
    assert len(palette) <= 3


def test_distinct_colors_in_first_appearance_order():
    rgb = np.array([[0, 0, 255], [255, 0, 0], [0, 0, 255], [255, 255, 255]], dtype=np.uint8)
    assert distinct_colors(rgb) == [BLUE, RED, WHITE]


def test_kmeans_quantizer_returns_distinct_colors_within_budget():
    rgb = np.array([[0, 0, 255], [255, 0, 0]] * 10, dtype=np.uint8)
    assert KMeansQuantizer()(rgb, 4) == [BLUE, RED]


def test_kmeans_quantizer_is_deterministic_and_bounded():
    rng = np.random.default_rng(3)
    rgb = rng.integers(0, 256, size=(5000, 3)).astype(np.uint8)
    first = KMeansQuantizer(seed=42)(rgb, 6)
    second = KMeansQuantizer(seed=42)(rgb, 6)
    assert len(first) == 6
    assert first == second
