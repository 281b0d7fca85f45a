from __future__ import annotations

from mpmath import mpf, floor, log

MIN_LEVELS = 1
MAX_LEVELS = 60


def clamp_levels(levels: int) -> int:
    return max(MIN_LEVELS, min(MAX_LEVELS, int(levels)))


def effective_levels(scale, requested: int) -> int:
    """Recursion depth worth computing at ``scale`` world units per pixel.

    Sub-cells at depth ``floor(log_3(1/scale)) + 1`` are already smaller than a
    pixel, so anything deeper is invisible. The result is within ``[1, requested]``.
    """
    requested = clamp_levels(requested)
    scale = mpf(scale)
    if scale <= 0:
        return requested
    visible = int(floor(log(1 / scale, 3))) + 1
    return max(MIN_LEVELS, min(requested, visible))
