from __future__ import annotations

import sys
from pathlib import Path

import pytest
from mpmath import mp

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


@pytest.fixture(autouse=True, scope="session")
def _precision():
    # Renders only ever raise precision above this floor.
    saved = mp.dps
    mp.dps = 50
    yield
    mp.dps = saved
