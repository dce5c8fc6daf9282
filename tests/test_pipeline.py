import json
import numpy as np
import pytest
from pathlib import Path
import sys

from PIL import Image

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from colorbynumber.cli import main as cli_main
from colorbynumber.color_math import Color
from colorbynumber.config import Config
from colorbynumber.errors import ConfigurationError
from colorbynumber.geometry import GridType
from colorbynumber.grid import Cell, Grid
from colorbynumber.labels import code_for_sequence
from colorbynumber.pipeline import ColorByNumberGenerator, convert_image, convert_pixels

RED = Color(255, 0, 0)
BLUE = Color(0, 0, 255)
WHITE = Color(255, 255, 255)


def _quiet_config(**overrides) -> Config:
    config = Config()
    config.processing.verbose = False
    config.apply_overrides(**overrides)
    return config


def _quadrant_image(size: int = 40) -> np.ndarray:
    half = size // 2
    image = np.zeros((size, size, 4), dtype=np.uint8)
    image[..., 3] = 255
    image[:half, :, :3] = RED.rgb
    image[half:, :half, :3] = BLUE.rgb
    image[half:, half:, :3] = WHITE.rgb
    return image


def _gradient_image(width: int = 120, height: int = 80) -> np.ndarray:
    yy, xx = np.mgrid[0:height, 0:width]
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[..., 0] = (xx * 255 // (width - 1)).astype(np.uint8)
    image[..., 1] = (yy * 255 // (height - 1)).astype(np.uint8)
    image[..., 2] = ((xx + yy) * 3 % 256).astype(np.uint8)
    image[..., 3] = 255
    return image


def test_quadrant_scenario():
    grid = convert_pixels(_quadrant_image(), _quiet_config(cell_size=20))
    assert (grid.width, grid.height) == (2, 2)
    assert grid.palette == (RED, BLUE, WHITE)
    assert grid.codes == ("1", "2", "")
    assert [cell.code for cell in grid.cells] == ["1", "1", "2", ""]
    assert grid.cell_at(1, 1).color == WHITE
    assert grid.color_names == ("Red", "Blue", "White")


def test_quadrant_scenario_with_vote_mode():
    grid = convert_pixels(_quadrant_image(), _quiet_config(cell_size=20, block_average=False))
    assert [cell.code for cell in grid.cells] == ["1", "1", "2", ""]


def test_generation_is_deterministic():
    config = _quiet_config(cell_size=10, max_colors=6)
    first = convert_pixels(_gradient_image(), config)
    second = convert_pixels(_gradient_image(), config)
    assert first.grid_hash == second.grid_hash
    assert first == second


def test_palette_is_bounded_and_fully_used():
    grid = convert_pixels(_gradient_image(), _quiet_config(cell_size=10, max_colors=5))
    assert 1 <= len(grid.palette) <= 5
    counts = grid.color_counts()
    assert all(count > 0 for count in counts.values())
    assert sum(counts.values()) == grid.total_cells


def test_numbered_codes_are_contiguous():
    grid = convert_pixels(_gradient_image(), _quiet_config(cell_size=10, max_colors=8))
    numbered = [code for code in grid.codes if code]
    assert numbered == [code_for_sequence(n) for n in range(len(numbered))]
    for cell in grid.cells:
        assert cell.code == grid.codes[cell.palette_index]
        assert cell.color == grid.palette[cell.palette_index]


def test_uniform_image_gives_single_color():
    image = np.full((30, 30, 4), 255, dtype=np.uint8)
    image[..., :3] = (30, 120, 60)
    grid = convert_pixels(image, _quiet_config(cell_size=10))
    assert grid.palette == (Color(30, 120, 60),)
    assert grid.codes == ("1",)


def test_fully_transparent_image_is_white_and_unnumbered():
    image = np.zeros((20, 20, 4), dtype=np.uint8)
    grid = convert_pixels(image, _quiet_config(cell_size=10))
    assert grid.palette == (WHITE,)
    assert grid.codes == ("",)


def test_custom_quantizer_is_used():
    calls = []

    def two_tone(rgb, count):
        calls.append(count)
        return [BLUE, RED]

    grid = convert_pixels(_quadrant_image(), _quiet_config(cell_size=20, max_colors=3), two_tone)
    assert calls == [3]
    # white cell snaps to the nearer of red and blue
    assert set(grid.palette) <= {RED, BLUE}


@pytest.mark.parametrize("grid_type, rows, gap, rotation", [
    ("honeycomb", 3, 2.0, 0.0),
    ("diamond", 4, 0.0, 45.0),
    ("pentagon", 3, 0.0, 0.0),
    ("standard", 2, 0.0, 0.0),
])
def test_staggered_grids_add_rows(grid_type, rows, gap, rotation):
    grid = convert_pixels(_quadrant_image(), _quiet_config(cell_size=20, grid_type=grid_type))
    assert grid.width == 2
    assert grid.height == rows
    assert grid.cell_gap == gap
    assert grid.rotation_deg == rotation
    assert len(grid.cells) == grid.width * grid.height


def test_invalid_inputs_raise_configuration_error():
    with pytest.raises(ConfigurationError):
        convert_pixels(_quadrant_image(), _quiet_config(cell_size=0))
    with pytest.raises(ConfigurationError):
        convert_pixels(_quadrant_image(), _quiet_config(cell_size=2.5))
    with pytest.raises(ConfigurationError):
        convert_pixels(_quadrant_image(), _quiet_config(max_colors=0))
    with pytest.raises(ConfigurationError):
        convert_pixels(_quadrant_image(), _quiet_config(grid_type="triangle"))
    with pytest.raises(ConfigurationError):
        convert_pixels(np.zeros((0, 10, 4), dtype=np.uint8), _quiet_config())
    with pytest.raises(ConfigurationError):
        convert_pixels(np.zeros((10, 10), dtype=np.uint8), _quiet_config())


def test_out_of_range_or_float_pixels_are_rejected():
    wide = _quadrant_image().astype(np.int64)
    wide[0, 0, 0] = 300
    with pytest.raises(ConfigurationError, match="0-255"):
        convert_pixels(wide, _quiet_config(cell_size=20))

    negative = _quadrant_image().astype(np.int16)
    negative[5, 5, 2] = -1
    with pytest.raises(ConfigurationError):
        convert_pixels(negative, _quiet_config(cell_size=20))

    with pytest.raises(ConfigurationError, match="integers"):
        convert_pixels(np.full((20, 20, 4), 0.8), _quiet_config(cell_size=10))


def test_wider_integer_dtypes_in_range_are_accepted():
    grid = convert_pixels(_quadrant_image().astype(np.int64), _quiet_config(cell_size=20))
    assert grid.codes == ("1", "2", "")


def test_convert_image_caps_width(tmp_path):
    path = tmp_path / "quadrants.png"
    Image.fromarray(_quadrant_image(80)).save(path)

    grid = convert_image(str(path), _quiet_config(cell_size=20, max_width=40))
    assert (grid.width, grid.height) == (2, 2)
    assert grid.cell_at(0, 0).code == grid.cell_at(1, 0).code == "1"
    assert grid.cell_at(1, 1).code == ""


def test_convert_image_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        convert_image(str(tmp_path / "missing.png"), _quiet_config())


def test_generator_can_be_reused():
    generator = ColorByNumberGenerator(_quiet_config(cell_size=20))
    first = generator.generate(_quadrant_image())
    generator.generate(_gradient_image())
    assert generator.generate(_quadrant_image()).grid_hash == first.grid_hash


def test_grid_queries_and_export():
    grid = convert_pixels(_quadrant_image(), _quiet_config(cell_size=20))
    assert grid.hit_test(5, 5).code == "1"
    assert grid.hit_test(30, 30).color == WHITE
    assert grid.hit_test(100, 5) is None
    assert grid.hit_test(*grid.cell_center(0, 1)).code == "2"
    with pytest.raises(IndexError):
        grid.cell_at(2, 0)

    data = grid.to_dict()
    assert data["grid_type"] == "square"
    assert data["grid_hash"] == grid.grid_hash
    assert data["bounds_px"] == [0.0, 0.0, 40.0, 40.0]
    assert [entry["code"] for entry in data["palette"]] == ["1", "2", ""]
    assert data["palette"][0]["count"] == 2
    assert data["cells"][2] == {"x": 0, "y": 1, "code": "2", "color": "#0000ff", "palette_index": 1}
    json.dumps(data)


def test_grid_rejects_sparse_cells():
    with pytest.raises(ValueError):
        Grid(
            grid_type=GridType.SQUARE, cell_size=10, width=2, height=1,
            cells=(Cell(0, 0, RED, "1", 0),),
            palette=(RED,), codes=("1",), color_names=("Red",),
        )


def test_cli_writes_json(tmp_path, capsys):
    image_path = tmp_path / "input.png"
    output_path = tmp_path / "out" / "template.json"
    Image.fromarray(_quadrant_image()).save(image_path)

    with pytest.raises(SystemExit) as exit_info:
        cli_main([
            str(image_path), str(output_path),
            "--cell-size", "20", "--mode", "vote",
            "--config", str(tmp_path / "none.yaml"),
        ])
    assert exit_info.value.code == 0

    data = json.loads(output_path.read_text(encoding="utf-8"))
    assert data["width"] == 2
    assert [cell["code"] for cell in data["cells"]] == ["1", "1", "2", ""]
    assert "TEMPLATE GENERATED" in capsys.readouterr().out


def test_cli_reports_errors(tmp_path, capsys):
    image_path = tmp_path / "input.png"
    Image.fromarray(_quadrant_image()).save(image_path)

    with pytest.raises(SystemExit) as exit_info:
        cli_main([str(image_path), str(tmp_path / "t.json"), "--grid-type", "triangle",
                  "--config", str(tmp_path / "none.yaml")])
    assert exit_info.value.code == 1
    assert "[X] Error" in capsys.readouterr().out


def test_cli_lists_grid_types(capsys):
    cli_main(["--list-grid-types"])
    out = capsys.readouterr().out
    for grid_type in GridType:
        assert grid_type.value in out
