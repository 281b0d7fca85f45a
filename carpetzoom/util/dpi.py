from typing import Tuple


def to_pixel_point(x: float, y: float, scaling: float = 1.0) -> Tuple[int, int]:
    return int(round(x * scaling)), int(round(y * scaling))


def to_pixel_size(width: float, height: float, scaling: float = 1.0) -> Tuple[int, int]:
    # A collapsed layout still yields a 1x1 raster; callers treat <= 1 as "nothing to draw".
    return max(1, int(round(width * scaling))), max(1, int(round(height * scaling)))
