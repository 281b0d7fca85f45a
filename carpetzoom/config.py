import json
from typing import Any, Dict, Optional

from mpmath import mpf

from carpetzoom.lod import MAX_LEVELS, MIN_LEVELS
from carpetzoom.renderers.cpu_mpmath import BACKENDS

DEFAULTS: Dict[str, Any] = {
    "width": 800,
    "height": 600,
    "center": ["0", "0"],
    "scale": None,
    "levels": 6,
    "zoom_in_factor": "0.8",
    "zoom_out_factor": "1.25",
    "backend": "thread",
    "workers": None,
    "band_height": 16,
    "min_precision_digits": 50,
    "output": "carpet.png",
    "frames_dir": "frames",
    "zoom_steps": 30,
    "zoom_anchor": None,
    "render_scaling": 1.0,
}


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    if not config_path:
        return dict(DEFAULTS)
    with open(config_path, "r", encoding="utf-8") as f:
        cfg = json.load(f)
    if not isinstance(cfg, dict):
        raise ValueError("Config JSON must be an object.")
    unknown = sorted(set(cfg) - set(DEFAULTS))
    if unknown:
        raise ValueError(f"Unknown config field(s): {', '.join(unknown)}")
    out = dict(DEFAULTS)
    out.update(cfg)
    return out


def _decimal_str(value: Any, field: str) -> str:
    # Keep decimals as text so no precision is lost before mpmath parses them.
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"{field} must be a number or decimal string.")
    text = str(value).strip()
    try:
        mpf(text)
    except ValueError as e:
        raise ValueError(f"{field} is not a valid decimal: {value!r}") from e
    return text


def _pair(value: Any, field: str) -> list:
    if not (isinstance(value, (list, tuple)) and len(value) == 2):
        raise ValueError(f"{field} must be [x, y].")
    return list(value)


def normalise_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    required = ["width", "height", "center", "levels"]
    for r in required:
        if r not in cfg:
            raise ValueError(f"Missing config field: {r}")

    width = int(cfg["width"])
    height = int(cfg["height"])
    if width <= 0 or height <= 0:
        raise ValueError("width/height must be positive.")

    levels = int(cfg["levels"])
    if not MIN_LEVELS <= levels <= MAX_LEVELS:
        raise ValueError(f"levels must be within [{MIN_LEVELS}, {MAX_LEVELS}].")

    out = dict(DEFAULTS)
    out.update(cfg)
    out["width"] = width
    out["height"] = height
    out["levels"] = levels
    out["center"] = [_decimal_str(v, "center") for v in _pair(cfg["center"], "center")]

    scale = cfg.get("scale")
    out["scale"] = None if scale is None else _decimal_str(scale, "scale")
    if out["scale"] is not None and mpf(out["scale"]) <= 0:
        raise ValueError("scale must be > 0.")

    for key in ("zoom_in_factor", "zoom_out_factor"):
        out[key] = _decimal_str(out[key], key)
        if mpf(out[key]) <= 0:
            raise ValueError(f"{key} must be > 0.")

    backend = str(out["backend"])
    if backend not in BACKENDS:
        raise ValueError(f"backend must be one of: {', '.join(BACKENDS)}")
    out["backend"] = backend

    out["workers"] = None if out["workers"] is None else int(out["workers"])
    if out["workers"] is not None and out["workers"] <= 0:
        raise ValueError("workers must be > 0.")
    out["band_height"] = int(out["band_height"])
    if out["band_height"] <= 0:
        raise ValueError("band_height must be > 0.")
    out["min_precision_digits"] = int(out["min_precision_digits"])
    out["output"] = str(out["output"])
    out["frames_dir"] = str(out["frames_dir"])
    out["zoom_steps"] = int(out["zoom_steps"])
    if out["zoom_steps"] < 0:
        raise ValueError("zoom_steps must be >= 0.")

    anchor = out["zoom_anchor"]
    if anchor is not None:
        out["zoom_anchor"] = [int(v) for v in _pair(anchor, "zoom_anchor")]

    out["render_scaling"] = float(out["render_scaling"])
    if out["render_scaling"] <= 0:
        raise ValueError("render_scaling must be > 0.")
    return out
