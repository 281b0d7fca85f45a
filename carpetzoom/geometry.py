"""World coordinates of the carpet plane.

The top level of the carpet tiles the plane with period 3 on both axes, so any
coordinate can be folded into ``[-1.5, 1.5)`` without changing what is drawn
there. Folding keeps magnitudes bounded while panning forever and while the
membership test keeps multiplying by 3.
"""
from __future__ import annotations

from typing import NamedTuple

from mpmath import mpf, floor

PERIOD = mpf(3)
HALF_PERIOD = mpf("1.5")


def wrap(v) -> mpf:
    """Map ``v`` into ``[-1.5, 1.5)`` by subtracting the nearest multiple of 3."""
    v = mpf(v)
    r = v - PERIOD * floor((v + HALF_PERIOD) / PERIOD)
    # Division can round across a period boundary.
    if r >= HALF_PERIOD:
        r -= PERIOD
    elif r < -HALF_PERIOD:
        r += PERIOD
    return r


class WorldCoordinate(NamedTuple):
    x: mpf
    y: mpf

    @classmethod
    def of(cls, x, y) -> "WorldCoordinate":
        return cls(mpf(x), mpf(y))

    def wrapped(self) -> "WorldCoordinate":
        return WorldCoordinate(wrap(self.x), wrap(self.y))
