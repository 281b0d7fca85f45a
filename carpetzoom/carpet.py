from __future__ import annotations

from typing import Optional

from mpmath import mpf

from carpetzoom.geometry import wrap

SUBDIVISION = mpf(3)
# The removed centre ninth of a 3x3 tile spans |x| < 0.5 and |y| < 0.5.
HOLE_HALF_WIDTH = mpf("0.5")


def hole_depth(x, y, depth_budget: int) -> Optional[int]:
    """Depth of the hole containing ``(x, y)``, or ``None`` if no hole is found within the budget.

    Depth 0 is the centre square of the top-level tile; each further level looks
    at the 3x magnified remainder. A budget of 0 never reports a hole.
    """
    depth = 0
    while depth_budget > 0:
        x = wrap(x)
        y = wrap(y)
        if abs(x) < HOLE_HALF_WIDTH and abs(y) < HOLE_HALF_WIDTH:
            return depth
        x *= SUBDIVISION
        y *= SUBDIVISION
        depth += 1
        depth_budget -= 1
    return None


def is_hole(x, y, depth_budget: int) -> bool:
    return hole_depth(x, y, depth_budget) is not None
