"""
Low-level color science utilities shared across the color-by-number pipeline.

Provides:
    - Color / LabColor value types
    - sRGB ↔ Lab conversion helpers (D65 white point, IEC 61966-2-1 profile)
    - ΔE76 and a vectorised CIEDE2000 implementation
    - Hue helpers used by the cell assigner tie-break

All array functions accept NumPy arrays so callers can operate on entire
images, yet they also work with plain Python iterables for single colors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, NamedTuple, Tuple

import numpy as np

SRGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ],
    dtype=np.float64,
)

XYZ_TO_SRGB = np.array(
    [
        [3.2404542, -1.5371385, -0.4985314],
        [-0.9692660, 1.8760108, 0.0415560],
        [0.0556434, -0.2040259, 1.0572252],
    ],
    dtype=np.float64,
)

D65_WHITE = np.array([0.95047, 1.0, 1.08883], dtype=np.float64)
DELTA = 6 / 29
POW25_7 = 25.0**7
# Hue pairs exactly 180 degrees apart stay on the unwrapped branch for both the
# hue difference and the hue mean, whatever the rounding noise
HUE_WRAP_TOLERANCE = 1e-9


@dataclass(frozen=True)
class Color:
    """An 8-bit sRGB color."""
    r: int
    g: int
    b: int

    def __post_init__(self):
        for name in ("r", "g", "b"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise ValueError(f"Channel {name} must be an integer, got {value!r}")
            if not 0 <= value <= 255:
                raise ValueError(f"Channel {name}={value} outside 0-255")
            object.__setattr__(self, name, int(value))

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        value = value.lstrip("#")
        if len(value) != 6:
            raise ValueError(f"Expected #rrggbb, got {value!r}")
        return cls(int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))

    @property
    def rgb(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)

    @property
    def hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    @property
    def brightness(self) -> float:
        """Perceived brightness (ITU-R BT.601 weights), 0-255."""
        return (self.r * 299 + self.g * 587 + self.b * 114) / 1000


class LabColor(NamedTuple):
    L: float
    a: float
    b: float


def _to_ndarray(color) -> np.ndarray:
    arr = np.asarray(color, dtype=np.float64)
    if arr.shape[-1] != 3:
        raise ValueError("Input color must have three channels")
    return arr


def srgb_to_linear(rgb) -> np.ndarray:
    """Convert sRGB (0-255) to linear RGB (0-1)."""
    rgb = _to_ndarray(rgb) / 255.0
    mask = rgb <= 0.04045
    return np.where(mask, rgb / 12.92, ((rgb + 0.055) / 1.055) ** 2.4)


def linear_to_srgb(linear_rgb) -> np.ndarray:
    """Convert linear RGB (0-1) back to sRGB in 0-255 range."""
    linear_rgb = np.clip(_to_ndarray(linear_rgb), 0.0, 1.0)
    mask = linear_rgb <= 0.0031308
    srgb = np.where(
        mask,
        12.92 * linear_rgb,
        1.055 * np.power(linear_rgb, 1 / 2.4) - 0.055,
    )
    return np.clip(srgb * 255.0, 0.0, 255.0)


def rgb_to_xyz(rgb) -> np.ndarray:
    """Convert sRGB to CIE XYZ (D65)."""
    linear = srgb_to_linear(rgb)
    flat = linear.reshape(-1, 3)
    xyz = flat @ SRGB_TO_XYZ.T
    return xyz.reshape(linear.shape)


def xyz_to_lab(xyz) -> np.ndarray:
    """Convert XYZ to Lab (D65)."""
    xyz = _to_ndarray(xyz) / D65_WHITE

    def f(t):
        return np.where(t > DELTA**3, np.cbrt(t), t / (3 * DELTA**2) + 4 / 29)

    fx = f(xyz[..., 0])
    fy = f(xyz[..., 1])
    fz = f(xyz[..., 2])

    L = (116 * fy) - 16
    a = 500 * (fx - fy)
    b = 200 * (fy - fz)
    return np.stack([L, a, b], axis=-1)


def lab_to_xyz(lab) -> np.ndarray:
    """Convert Lab (D65) back to XYZ."""
    lab = _to_ndarray(lab)
    L, a, b = lab[..., 0], lab[..., 1], lab[..., 2]

    fy = (L + 16) / 116
    fx = fy + (a / 500)
    fz = fy - (b / 200)

    def finv(t):
        return np.where(t > DELTA, t**3, (t - 4 / 29) * (3 * DELTA**2))

    xyz = np.stack([finv(fx), finv(fy), finv(fz)], axis=-1)
    return xyz * D65_WHITE


def rgb_to_lab(rgb) -> np.ndarray:
    """Convenience helper for sRGB → Lab."""
    return xyz_to_lab(rgb_to_xyz(rgb))


def lab_to_rgb(lab) -> np.ndarray:
    """Lab → sRGB convenience helper."""
    xyz = lab_to_xyz(lab)
    linear = xyz.reshape(-1, 3) @ XYZ_TO_SRGB.T
    linear = linear.reshape(xyz.shape)
    return np.round(linear_to_srgb(linear)).astype(np.uint8)


def to_lab(color: Color) -> LabColor:
    """Lab coordinates of a single Color."""
    L, a, b = rgb_to_lab(np.array(color.rgb, dtype=np.float64))
    return LabColor(float(L), float(a), float(b))


def delta_e76(lab1, lab2) -> np.ndarray:
    """Euclidean distance in Lab (CIE76), with numpy broadcasting."""
    diff = _to_ndarray(lab1) - _to_ndarray(lab2)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def delta_e2000(lab1, lab2) -> np.ndarray:
    """
    CIEDE2000 color difference with numpy broadcasting.

    lab1 and lab2 may be:
        - matching shapes (...,3)
        - lab1 shape (N,1,3) and lab2 shape (K,3) for an N x K distance table
    Returns an array with the broadcasted leading dimensions.

    Achromatic inputs (C' == 0) take hue 0 and skip the hue difference, so
    the result is never NaN.
    """

    lab1 = _to_ndarray(lab1)
    lab2 = _to_ndarray(lab2)

    L1, a1, b1 = lab1[..., 0], lab1[..., 1], lab1[..., 2]
    L2, a2, b2 = lab2[..., 0], lab2[..., 1], lab2[..., 2]

    C1 = np.sqrt(a1**2 + b1**2)
    C2 = np.sqrt(a2**2 + b2**2)
    C_mean = (C1 + C2) / 2

    G = 0.5 * (1 - np.sqrt((C_mean**7) / (C_mean**7 + POW25_7)))
    a1_prime = (1 + G) * a1
    a2_prime = (1 + G) * a2
    C1_prime = np.sqrt(a1_prime**2 + b1**2)
    C2_prime = np.sqrt(a2_prime**2 + b2**2)
    C_mean_prime = (C1_prime + C2_prime) / 2

    def h_func(a_component, b_component, chroma):
        angle = np.degrees(np.arctan2(b_component, a_component))
        angle = np.where(angle < 0, angle + 360, angle)
        return np.where(chroma == 0, 0.0, angle)

    h1_prime = h_func(a1_prime, b1, C1_prime)
    h2_prime = h_func(a2_prime, b2, C2_prime)
    achromatic = (C1_prime * C2_prime) == 0

    hue_diff = h2_prime - h1_prime
    wrapped = np.abs(hue_diff) > 180 + HUE_WRAP_TOLERANCE
    delta_h_prime = np.where(wrapped, hue_diff - np.sign(hue_diff) * 360, hue_diff)
    delta_h_prime = np.where(achromatic, 0.0, delta_h_prime)

    delta_L_prime = L2 - L1
    delta_C_prime = C2_prime - C1_prime
    delta_H_prime = 2 * np.sqrt(C1_prime * C2_prime) * np.sin(
        np.radians(delta_h_prime / 2)
    )

    L_mean = (L1 + L2) / 2
    H_sum = h1_prime + h2_prime
    H_mean_prime = np.where(
        ~wrapped,
        H_sum / 2,
        np.where(H_sum < 360, (H_sum + 360) / 2, (H_sum - 360) / 2),
    )
    H_mean_prime = np.where(achromatic, H_sum, H_mean_prime)

    T = (
        1
        - 0.17 * np.cos(np.radians(H_mean_prime - 30))
        + 0.24 * np.cos(np.radians(2 * H_mean_prime))
        + 0.32 * np.cos(np.radians(3 * H_mean_prime + 6))
        - 0.20 * np.cos(np.radians(4 * H_mean_prime - 63))
    )

    delta_theta = 30 * np.exp(-(((H_mean_prime - 275) / 25) ** 2))
    R_C = 2 * np.sqrt((C_mean_prime**7) / (C_mean_prime**7 + POW25_7))
    R_T = -np.sin(np.radians(2 * delta_theta)) * R_C

    S_L = 1 + ((0.015 * (L_mean - 50) ** 2) / np.sqrt(20 + (L_mean - 50) ** 2))
    S_C = 1 + 0.045 * C_mean_prime
    S_H = 1 + 0.015 * C_mean_prime * T

    delta_E = np.sqrt(
        (delta_L_prime / S_L) ** 2
        + (delta_C_prime / S_C) ** 2
        + (delta_H_prime / S_H) ** 2
        + R_T * (delta_C_prime / S_C) * (delta_H_prime / S_H)
    )

    return delta_E


def hue_angle(lab) -> np.ndarray:
    """Hue of a Lab color in degrees, atan2(b, a) mapped to [0, 360)."""
    lab = _to_ndarray(lab)
    angle = np.degrees(np.arctan2(lab[..., 2], lab[..., 1]))
    return np.mod(angle, 360.0)


def hue_distance(h1, h2) -> np.ndarray:
    """Circular distance between two hue angles, in [0, 180]."""
    diff = np.abs(np.asarray(h1, dtype=np.float64) - np.asarray(h2, dtype=np.float64))
    diff = np.mod(diff, 360.0)
    return np.minimum(diff, 360.0 - diff)


def pack_rgb(rgb: np.ndarray) -> np.ndarray:
    """Pack (..., 3) uint8 RGB into (...) uint32 keys 0xRRGGBB."""
    rgb = np.asarray(rgb).astype(np.uint32)
    return (rgb[..., 0] << 16) | (rgb[..., 1] << 8) | rgb[..., 2]


def unpack_rgb(keys: np.ndarray) -> np.ndarray:
    """Inverse of pack_rgb."""
    keys = np.asarray(keys, dtype=np.uint32)
    return np.stack([(keys >> 16) & 0xFF, (keys >> 8) & 0xFF, keys & 0xFF], axis=-1).astype(np.uint8)


class LabCache:
    """Per-conversion memo of sRGB → Lab, keyed by distinct color."""

    def __init__(self):
        self._cache: Dict[Color, LabColor] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def lab(self, color: Color) -> LabColor:
        cached = self._cache.get(color)
        if cached is None:
            cached = to_lab(color)
            self._cache[color] = cached
        return cached

    def palette_lab(self, palette) -> np.ndarray:
        """(K, 3) Lab array for a sequence of Colors."""
        return np.array([self.lab(color) for color in palette], dtype=np.float64).reshape(-1, 3)

    def distinct_lab(self, rgb: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Convert an (N, 3) RGB array through its distinct colors.

        Returns (distinct_rgb (U,3) uint8, distinct_lab (U,3), inverse (N,))
        where distinct_rgb[inverse] reproduces the input.
        """
        keys = pack_rgb(np.asarray(rgb).reshape(-1, 3))
        distinct, inverse = np.unique(keys, return_inverse=True)
        distinct_rgb = unpack_rgb(distinct)
        distinct_lab = rgb_to_lab(distinct_rgb.astype(np.float64)).reshape(-1, 3)
        return distinct_rgb, distinct_lab, inverse.reshape(-1)
