from __future__ import annotations

import json

import pytest

from carpetzoom.config import DEFAULTS, load_config, normalise_config


def test_defaults_normalise() -> None:
    cfg = normalise_config(load_config(None))
    assert cfg["width"] == 800
    assert cfg["height"] == 600
    assert cfg["center"] == ["0", "0"]
    assert cfg["scale"] is None
    assert cfg["zoom_anchor"] is None
    assert cfg["backend"] == "thread"


def test_load_config_merges_file_over_defaults(tmp_path) -> None:
    path = tmp_path / "view.json"
    path.write_text(json.dumps({"width": 64, "center": [0.25, "-1.000000000000000000000000001"], "scale": "1e-30"}))

    cfg = normalise_config(load_config(str(path)))

    assert cfg["width"] == 64
    assert cfg["height"] == DEFAULTS["height"]
    assert cfg["center"] == ["0.25", "-1.000000000000000000000000001"]
    assert cfg["scale"] == "1e-30"


def test_load_config_rejects_non_objects_and_unknown_fields(tmp_path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="object"):
        load_config(str(path))

    path.write_text(json.dumps({"zoom": 3}))
    with pytest.raises(ValueError, match="Unknown"):
        load_config(str(path))


@pytest.mark.parametrize(
    "override,message",
    [
        ({"width": 0}, "positive"),
        ({"levels": 61}, "levels"),
        ({"center": [1]}, "center"),
        ({"center": ["x", "0"]}, "center"),
        ({"scale": "-1"}, "scale"),
        ({"zoom_in_factor": "0"}, "zoom_in_factor"),
        ({"backend": "gpu"}, "backend"),
        ({"workers": 0}, "workers"),
        ({"band_height": 0}, "band_height"),
        ({"zoom_steps": -1}, "zoom_steps"),
        ({"zoom_anchor": [1, 2, 3]}, "zoom_anchor"),
        ({"render_scaling": 0}, "render_scaling"),
    ],
)
def test_normalise_config_rejects_invalid_values(override, message) -> None:
    cfg = dict(DEFAULTS)
    cfg.update(override)
    with pytest.raises(ValueError, match=message):
        normalise_config(cfg)


def test_normalise_config_requires_core_fields() -> None:
    cfg = dict(DEFAULTS)
    del cfg["levels"]
    with pytest.raises(ValueError, match="Missing config field: levels"):
        normalise_config(cfg)
