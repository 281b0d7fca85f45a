from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st
from mpmath import mpf

from carpetzoom.geometry import HALF_PERIOD, WorldCoordinate, wrap

# Values as integer millionths keep hypothesis inputs exactly reproducible.
MICROS = st.integers(min_value=-10**12, max_value=10**12)


def _periodic_distance(a, b) -> mpf:
    d = abs(a - b) % 3
    return min(d, 3 - d)


@given(micros=MICROS)
def test_wrap_lands_in_canonical_range(micros: int) -> None:
    r = wrap(mpf(micros) / 10**6)
    assert -HALF_PERIOD <= r < HALF_PERIOD


@given(micros=MICROS, k=st.integers(min_value=-10**6, max_value=10**6))
def test_wrap_is_periodic(micros: int, k: int) -> None:
    v = mpf(micros) / 10**6
    assert _periodic_distance(wrap(v), wrap(v + 3 * k)) < mpf("1e-30")


def test_wrap_known_values() -> None:
    assert wrap(4) == 1
    assert wrap(-2) == 1
    assert wrap(3) == 0
    assert wrap(mpf("1.5")) == mpf("-1.5")
    assert wrap(mpf("-1.5")) == mpf("-1.5")


def test_wrap_keeps_in_range_values_exact() -> None:
    tiny = mpf("1e-45")
    assert wrap(tiny) == tiny
    assert wrap(-tiny) == -tiny
    assert wrap(mpf("1.4999")) == mpf("1.4999")


def test_wrap_keeps_small_offsets_far_from_origin() -> None:
    offset = mpf("1e-25")
    assert abs(wrap(mpf(3 * 10**9) + offset) - offset) < mpf("1e-35")


def test_world_coordinate_wrapped_applies_per_axis() -> None:
    c = WorldCoordinate.of(4, "-2.25").wrapped()
    assert c == (mpf(1), mpf("0.75"))
    assert isinstance(c, WorldCoordinate)
