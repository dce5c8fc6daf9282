"""
Human-readable codes for grid colors.

Codes run 1..9, then A..Z, then AA, AB, ... Near-white colors are left
unnumbered (empty code) because they are the paper color.
"""

import string
from dataclasses import dataclass, field
from typing import Dict, Iterable, Sequence

from .color_math import Color
from .reference_palette import nearest_color_name

WHITE_BRIGHTNESS = 250
DIGIT_CODES = 9


def is_near_white(color: Color) -> bool:
    return color.brightness >= WHITE_BRIGHTNESS


def code_for_sequence(n: int) -> str:
    """Code for the n-th numbered color (0-based)."""
    if n < 0:
        raise ValueError("Sequence number must be non-negative")
    if n < DIGIT_CODES:
        return str(n + 1)

    # bijective base-26: A..Z, AA..AZ, BA..
    n -= DIGIT_CODES
    letters = ""
    n += 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = string.ascii_uppercase[rem] + letters
    return letters


@dataclass
class LabelMap:
    """Palette index → code and palette index → reference color name."""
    codes: Dict[int, str] = field(default_factory=dict)
    names: Dict[int, str] = field(default_factory=dict)

    def code(self, palette_index: int) -> str:
        return self.codes.get(palette_index, "")

    @property
    def numbered(self) -> Dict[int, str]:
        return {index: code for index, code in self.codes.items() if code}


class LabelAssigner:
    """Assigns codes and display names to the colors a grid uses."""

    def assign(self, palette: Sequence[Color], used_indices: Iterable[int]) -> LabelMap:
        """
        Walk used palette indices in ascending order, numbering non-white
        colors consecutively. White colors get "" and do not consume a code.
        """
        labels = LabelMap()
        sequence = 0
        for index in sorted(set(int(i) for i in used_indices)):
            color = palette[index]
            if is_near_white(color):
                labels.codes[index] = ""
            else:
                labels.codes[index] = code_for_sequence(sequence)
                sequence += 1
            labels.names[index] = nearest_color_name(color)
        return labels
