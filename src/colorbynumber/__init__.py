"""
Color-by-Number Template Generator

Converts images into numbered templates on square, diamond, honeycomb or
pentagon grids, with a perceptually deduplicated palette and human-readable
color codes.
"""

__version__ = "1.0.0"
__author__ = "Color-by-Number Generator"

from .color_math import Color, delta_e2000
from .config import Config
from .errors import ConfigurationError, PaletteInvariantError
from .geometry import GridType, Tiling
from .grid import Cell, Grid
from .image_io import ImageLoader
from .labels import LabelAssigner, LabelMap
from .palette import PaletteBuilder
from .quantize import KMeansQuantizer
from .assign import CellAssigner
from .pipeline import ColorByNumberGenerator, convert_image, convert_pixels
from . import cli

__all__ = [
    "Color",
    "delta_e2000",
    "Config",
    "ConfigurationError",
    "PaletteInvariantError",
    "GridType",
    "Tiling",
    "Cell",
    "Grid",
    "ImageLoader",
    "LabelAssigner",
    "LabelMap",
    "PaletteBuilder",
    "KMeansQuantizer",
    "CellAssigner",
    "ColorByNumberGenerator",
    "convert_image",
    "convert_pixels",
    "cli"
]
