from __future__ import annotations

import logging
import os
from typing import Any, Dict

from mpmath import mpf
from tqdm import tqdm

from carpetzoom.controller import ViewController
from carpetzoom.geometry import PERIOD, WorldCoordinate
from carpetzoom.model import RenderRequest, RenderResult
from carpetzoom.renderers.cpu_mpmath import Rasterizer
from carpetzoom.sinks import FrameDirectorySink
from carpetzoom.util.logging_setup import get_logger
from carpetzoom.util.precision import set_precision


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def _scale_of(cfg: Dict[str, Any]) -> mpf:
    return mpf(cfg["scale"]) if cfg["scale"] is not None else PERIOD / cfg["width"]


def build_rasterizer(cfg: Dict[str, Any], *, log_queue=None, log_level: int = logging.INFO) -> Rasterizer:
    return Rasterizer(
        backend=cfg["backend"],
        workers=cfg["workers"],
        band_height=cfg["band_height"],
        min_precision_digits=cfg["min_precision_digits"],
        log_queue=log_queue,
        log_level=log_level,
    )


def render_still(*, cfg: Dict[str, Any], log_queue=None, log_level: int = logging.INFO) -> RenderResult:
    logger = get_logger()

    width = cfg["width"]
    height = cfg["height"]
    levels = cfg["levels"]
    dps = set_precision(_scale_of(cfg), levels, cfg["min_precision_digits"])
    scale = _scale_of(cfg)
    center = WorldCoordinate.of(*cfg["center"]).wrapped()

    logger.info("Render start size=%sx%s center=(%s, %s) scale=%s levels=%s backend=%s",
                width, height, cfg["center"][0], cfg["center"][1], cfg["scale"] or "3/width",
                levels, cfg["backend"])

    request = RenderRequest(center=center, scale=scale, levels=levels,
                            width_px=width, height_px=height, dps=dps)
    with build_rasterizer(cfg, log_queue=log_queue, log_level=log_level) as rasterizer:
        result = rasterizer.render(request).result()

    output = cfg["output"]
    _ensure_parent(output)
    result.to_image().save(output, format="PNG", optimize=True)
    logger.info("Saved %s (effective levels=%s)", output, result.levels)
    return result


def render_zoom_sequence(
    *,
    cfg: Dict[str, Any],
    log_queue=None,
    log_level: int = logging.INFO,
    progress: bool = True,
) -> Dict[str, Any]:
    """Zoom in ``zoom_steps`` times at ``zoom_anchor`` through a controller, keeping every presented frame."""
    logger = get_logger()
    frames_dir = cfg["frames_dir"]
    steps = cfg["zoom_steps"]

    with build_rasterizer(cfg, log_queue=log_queue, log_level=log_level) as rasterizer:
        sink = FrameDirectorySink(frames_dir)
        controller = ViewController(
            rasterizer,
            sink,
            width=cfg["width"],
            height=cfg["height"],
            levels=cfg["levels"],
            render_scaling=cfg["render_scaling"],
            zoom_in_factor=cfg["zoom_in_factor"],
            zoom_out_factor=cfg["zoom_out_factor"],
            min_precision_digits=cfg["min_precision_digits"],
        )
        try:
            state = controller.state
            if state.width_px <= 1 or state.height_px <= 1:
                raise ValueError("Viewport must be larger than 1x1 pixels.")
            ax, ay = cfg["zoom_anchor"] or (state.width_px // 2, state.height_px // 2)
            if not controller.contains(ax, ay):
                raise ValueError(f"zoom_anchor ({ax}, {ay}) is outside the {state.width_px}x{state.height_px} viewport.")

            logger.info("Zoom sequence start steps=%s anchor=(%s, %s) %s", steps, ax, ay, controller.describe())
            gen = controller.go_to(cfg["center"][0], cfg["center"][1], cfg["scale"])
            sink.wait_for(gen)
            for _ in tqdm(range(steps), desc="zoom", unit="frame", disable=not progress):
                gen = controller.zoom(ax, ay, 1)
                sink.wait_for(gen)
            logger.info("Zoom sequence complete frames_dir=%s %s", frames_dir, controller.describe())
        finally:
            controller.close()

    return {
        "frames_dir": frames_dir,
        "frames": sink.presented,
        "width": state.width_px,
        "height": state.height_px,
        "final_scale": str(state.scale),
    }
