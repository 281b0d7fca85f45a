from __future__ import annotations

import threading

import numpy as np
import pytest
from PIL import Image

from carpetzoom.model import RenderFailed, RenderResult
from carpetzoom.sinks import FrameDirectorySink, LatestFrameSink


def _frame(generation: int) -> RenderResult:
    pixels = np.full((3, 4, 4), 200, dtype=np.uint8)
    return RenderResult(generation=generation, width_px=4, height_px=3, levels=1, pixels=pixels)


def test_wait_for_returns_frame_presented_from_another_thread() -> None:
    sink = LatestFrameSink()
    t = threading.Timer(0.05, sink.present, args=(_frame(3),))
    t.start()
    try:
        assert sink.wait_for(3, timeout=10).generation == 3
    finally:
        t.join()


def test_wait_for_times_out() -> None:
    sink = LatestFrameSink()
    sink.present(_frame(1))
    with pytest.raises(TimeoutError):
        sink.wait_for(2, timeout=0.01)


def test_wait_for_raises_reported_failure() -> None:
    sink = LatestFrameSink()
    sink.failed(4, "Render failed: boom")
    with pytest.raises(RenderFailed, match="boom"):
        sink.wait_for(4, timeout=1)


def test_frame_directory_sink_writes_numbered_pngs(tmp_path) -> None:
    sink = FrameDirectorySink(str(tmp_path / "frames"))
    sink.present(_frame(1))
    sink.present(_frame(2))

    files = sorted(p.name for p in (tmp_path / "frames").iterdir())
    assert files == ["frame_000000.png", "frame_000001.png"]
    with Image.open(tmp_path / "frames" / "frame_000001.png") as img:
        assert img.size == (4, 3)
        assert img.mode == "RGBA"
    assert sink.presented == 2
    assert sink.latest.generation == 2
