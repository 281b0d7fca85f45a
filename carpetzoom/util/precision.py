from __future__ import annotations

import math

from mpmath import mp, mpf, log10

from carpetzoom.util.logging_setup import get_logger

DEFAULT_MIN_DIGITS = 50
# Each subdivision level multiplies rounding error by 3.
_DIGITS_PER_LEVEL = math.log10(3)
_GUARD_DIGITS = 20


def precision_digits(scale, levels: int, minimum: int = DEFAULT_MIN_DIGITS) -> int:
    """Decimal digits needed to resolve ``levels`` subdivisions at ``scale`` world units per pixel."""
    scale = mpf(scale)
    zoom_digits = 0
    if scale > 0:
        zoom_digits = max(0, int(mp.ceil(-log10(scale))))
    depth_digits = int(math.ceil(max(0, levels) * _DIGITS_PER_LEVEL))
    return max(int(minimum), zoom_digits + depth_digits + _GUARD_DIGITS)


def set_precision(scale, levels: int, minimum: int = DEFAULT_MIN_DIGITS) -> int:
    digits = precision_digits(scale, levels, minimum)
    if mp.dps != digits:
        mp.dps = digits
        get_logger().debug("Precision set to %s decimal places for scale=%s levels=%s",
                           digits, mp.nstr(mpf(scale), 5), levels)
    return digits
