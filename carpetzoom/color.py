# color.py

import numpy as np

HOLE_RGB = (16, 18, 24)
BACKGROUND_LEVEL = 235
OPAQUE = 255
CHANNELS = 4  # RGBA


def background_row(width: int, y: int) -> np.ndarray:
    """
    Returns a (width, 4) RGBA row of light grey with a 4-level dither keyed on
    ``(x ^ y) & 3`` so that large flat areas do not band.
    """
    xs = np.arange(width, dtype=np.int64)
    shade = np.clip(BACKGROUND_LEVEL + ((xs ^ y) & 3) - 1, 0, 255).astype(np.uint8)
    row = np.empty((width, CHANNELS), dtype=np.uint8)
    row[:, 0] = shade
    row[:, 1] = shade
    row[:, 2] = shade
    row[:, 3] = OPAQUE
    return row


def paint_holes(row: np.ndarray, mask: np.ndarray) -> None:
    row[mask, 0] = HOLE_RGB[0]
    row[mask, 1] = HOLE_RGB[1]
    row[mask, 2] = HOLE_RGB[2]
