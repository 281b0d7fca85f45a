from __future__ import annotations

import json

import pytest
from PIL import Image

from carpetzoom.cli import main
from carpetzoom.util.logging_setup import get_logger


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    logger = get_logger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = True


def test_render_writes_png_and_manifest(in_tmp) -> None:
    out = in_tmp / "still.png"
    rc = main(["--log-file", "", "render", "--width", "12", "--height", "9", "--levels", "2",
               "--center", "0", "0", "--output", str(out)])

    assert rc == 0
    with Image.open(out) as img:
        assert img.size == (12, 9)
        assert img.getpixel((6, 4)) == (16, 18, 24, 255)
    manifest = json.loads((in_tmp / "artifacts" / "run.json").read_text())
    assert manifest["config"]["width"] == 12
    assert manifest["renderer"]["backend"] == "thread"
    assert "mpmath" in manifest["packages"]


def test_render_reads_config_file(in_tmp) -> None:
    cfg = in_tmp / "view.json"
    cfg.write_text(json.dumps({"width": 6, "height": 4, "levels": 1, "output": "from_config.png"}))
    assert main(["--config", str(cfg), "--log-file", "", "render"]) == 0
    with Image.open(in_tmp / "from_config.png") as img:
        assert img.size == (6, 4)


def test_zoom_writes_one_frame_per_step(in_tmp) -> None:
    frames = in_tmp / "frames"
    rc = main(["--log-file", "zoom.log", "zoom", "--width", "9", "--height", "6", "--levels", "3",
               "--steps", "2", "--anchor", "2", "3", "--frames-dir", str(frames)])

    assert rc == 0
    assert sorted(p.name for p in frames.iterdir()) == [
        "frame_000000.png",
        "frame_000001.png",
        "frame_000002.png",
    ]
    assert (in_tmp / "zoom.log").read_text()


def test_invalid_config_is_reported(in_tmp) -> None:
    with pytest.raises(ValueError, match="levels"):
        main(["--log-file", "", "render", "--width", "4", "--height", "4", "--levels", "99"])
