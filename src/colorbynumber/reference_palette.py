"""
Fixed palette of everyday color names used to label grid colors for display.
The names are cosmetic: they never influence codes or cell assignment.
"""

from dataclasses import dataclass
from typing import List, Tuple

from .color_math import Color


@dataclass(frozen=True)
class NamedColor:
    """A reference color with its display name."""
    name: str
    rgb: Tuple[int, int, int]

    @property
    def color(self) -> Color:
        return Color(*self.rgb)


REFERENCE_COLORS: Tuple[NamedColor, ...] = (
    NamedColor("White", (255, 255, 255)),
    NamedColor("Black", (0, 0, 0)),
    NamedColor("Gray", (128, 128, 128)),
    NamedColor("Light gray", (192, 192, 192)),
    NamedColor("Red", (255, 0, 0)),
    NamedColor("Tomato", (255, 99, 71)),
    NamedColor("Dark red", (178, 34, 34)),
    NamedColor("Orange", (255, 165, 0)),
    NamedColor("Gold", (255, 215, 0)),
    NamedColor("Yellow", (255, 255, 0)),
    NamedColor("Yellow green", (154, 205, 50)),
    NamedColor("Green", (0, 128, 0)),
    NamedColor("Lime", (0, 255, 0)),
    NamedColor("Spring green", (0, 255, 127)),
    NamedColor("Cyan", (0, 206, 209)),
    NamedColor("Blue", (0, 0, 255)),
    NamedColor("Royal blue", (65, 105, 225)),
    NamedColor("Dark blue", (0, 0, 139)),
    NamedColor("Purple", (128, 0, 128)),
    NamedColor("Magenta", (255, 0, 255)),
    NamedColor("Pink", (255, 192, 203)),
    NamedColor("Brown", (139, 69, 19)),
    NamedColor("Tan", (210, 180, 140)),
    NamedColor("Beige", (245, 245, 220)),
)


def nearest_named_color(color: Color) -> NamedColor:
    """Closest reference entry by squared RGB distance; first entry wins ties."""
    best = REFERENCE_COLORS[0]
    best_distance = None
    for entry in REFERENCE_COLORS:
        dr = color.r - entry.rgb[0]
        dg = color.g - entry.rgb[1]
        db = color.b - entry.rgb[2]
        distance = dr * dr + dg * dg + db * db
        if best_distance is None or distance < best_distance:
            best = entry
            best_distance = distance
    return best


def nearest_color_name(color: Color) -> str:
    return nearest_named_color(color).name


def list_reference_names() -> List[str]:
    return [entry.name for entry in REFERENCE_COLORS]
