"""
Image loading and resampling for the color-by-number pipeline.
"""

import os
from typing import Tuple

import numpy as np
from PIL import Image, ImageOps


class ImageLoader:
    """Loads images as RGBA pixel buffers and resamples them to grid sizes."""

    def __init__(self, max_width: int = 800, verbose: bool = False):
        self.max_width = max_width
        self.verbose = verbose

    def load_image(self, image_path: str) -> Tuple[np.ndarray, dict]:
        """
        Load an image file as an RGBA buffer, width capped at max_width.

        Returns:
            Tuple of ((H, W, 4) uint8 pixels, metadata)
        """
        if self.verbose:
            print(f"Loading image: {image_path}")

        if not os.path.exists(image_path):
            raise FileNotFoundError(f"Image not found: {image_path}")

        with Image.open(image_path) as pil_image:
            metadata = {
                'original_size': pil_image.size,
                'original_mode': pil_image.mode,
                'filename': os.path.basename(image_path),
            }
            pil_image = ImageOps.exif_transpose(pil_image)
            rgba = pil_image.convert('RGBA')

        pixels = self.cap_width(np.array(rgba))
        metadata['processed_size'] = (pixels.shape[1], pixels.shape[0])

        if self.verbose:
            print(f"Image processed: {pixels.shape[1]}×{pixels.shape[0]} pixels")
        return pixels, metadata

    def cap_width(self, pixels: np.ndarray) -> np.ndarray:
        """Downscale so width <= max_width, preserving aspect ratio."""
        h, w = pixels.shape[:2]
        scale = min(1.0, self.max_width / w)
        if scale >= 1.0:
            return pixels
        new_w = max(1, round(w * scale))
        new_h = max(1, round(h * scale))
        return resize_pixels(pixels, new_w, new_h)


def resize_pixels(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resample an (H, W, 3|4) uint8 buffer to width x height."""
    h, w = pixels.shape[:2]
    if (w, h) == (width, height):
        return pixels
    pil_image = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
    resized = pil_image.resize((width, height), Image.LANCZOS)
    return np.array(resized)
