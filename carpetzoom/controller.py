"""Pan/zoom state and the render supersession protocol.

All mutators are meant to be called from a single interaction thread and take
positions already resolved to raster pixels (see ``dip_to_pixel`` for the
conversion from device-independent units). Pixel ``(0, 0)`` is the top-left
corner and world ``y`` grows downwards, matching the rasterizer.

Every dispatched render gets a new generation number. Dispatching cancels the
previous generation's token, and only a result carrying the current generation
is handed to the sink, so late completions of superseded renders are dropped.
"""
from __future__ import annotations

import functools
import threading
from concurrent.futures import CancelledError, Future
from typing import Optional, Tuple

from mpmath import mp, mpf

from carpetzoom.geometry import PERIOD, WorldCoordinate
from carpetzoom.lod import clamp_levels
from carpetzoom.model import RenderCancelled, RenderFailed, RenderRequest, ViewState
from carpetzoom.sinks import DisplaySink
from carpetzoom.util.dpi import to_pixel_point, to_pixel_size
from carpetzoom.util.logging_setup import get_logger
from carpetzoom.util.precision import DEFAULT_MIN_DIGITS, set_precision

ZOOM_IN_FACTOR = "0.8"
ZOOM_OUT_FACTOR = "1.25"
DEFAULT_LEVELS = 6


class ViewController:
    def __init__(
        self,
        rasterizer,
        sink: DisplaySink,
        *,
        width: float = 800,
        height: float = 600,
        levels: int = DEFAULT_LEVELS,
        render_scaling: float = 1.0,
        zoom_in_factor: str = ZOOM_IN_FACTOR,
        zoom_out_factor: str = ZOOM_OUT_FACTOR,
        min_precision_digits: int = DEFAULT_MIN_DIGITS,
    ):
        if mpf(zoom_in_factor) <= 0 or mpf(zoom_out_factor) <= 0:
            raise ValueError("zoom factors must be > 0")
        self._rasterizer = rasterizer
        self._sink = sink
        self.levels = clamp_levels(levels)
        self.render_scaling = render_scaling
        self.zoom_in_factor = str(zoom_in_factor)
        self.zoom_out_factor = str(zoom_out_factor)
        self.min_precision_digits = min_precision_digits

        width_px, height_px = to_pixel_size(width, height, render_scaling)
        self.state = ViewState(
            center=WorldCoordinate.of(0, 0),
            scale=self._fit_scale(width_px),
            width_px=width_px,
            height_px=height_px,
        )

        # _lock guards the generation and cancel token only; the sink is called under _deliver_lock
        # so a slow sink never holds up dispatch.
        self._lock = threading.Lock()
        self._deliver_lock = threading.RLock()
        self._generation = 0
        self._cancel = None
        self._closed = False
        self._pan_anchor: Optional[Tuple[int, int]] = None

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def describe(self) -> str:
        s = self.state
        return (f"center=({mp.nstr(s.center.x, 8)}, {mp.nstr(s.center.y, 8)}) "
                f"scale={mp.nstr(s.scale, 3)} levels={self.levels} {s.width_px}x{s.height_px}px")

    # -- pixel <-> world ----------------------------------------------------

    def dip_to_pixel(self, x: float, y: float) -> Tuple[int, int]:
        return to_pixel_point(x, y, self.render_scaling)

    def contains(self, px, py) -> bool:
        s = self.state
        return 0 <= px < s.width_px and 0 <= py < s.height_px

    def _offset(self, px, py) -> Tuple[mpf, mpf]:
        s = self.state
        return mpf(px) - mpf(s.width_px) / 2, mpf(py) - mpf(s.height_px) / 2

    def pixel_to_world(self, px, py) -> WorldCoordinate:
        s = self.state
        ox, oy = self._offset(px, py)
        return WorldCoordinate(s.center.x + ox * s.scale, s.center.y + oy * s.scale)

    def world_to_pixel(self, wx, wy) -> Tuple[float, float]:
        s = self.state
        px = (mpf(wx) - s.center.x) / s.scale + mpf(s.width_px) / 2
        py = (mpf(wy) - s.center.y) / s.scale + mpf(s.height_px) / 2
        return float(px), float(py)

    # -- view mutators ------------------------------------------------------

    def _ensure_precision(self, scale=None) -> int:
        return set_precision(self.state.scale if scale is None else scale, self.levels, self.min_precision_digits)

    def _fit_scale(self, width_px: int) -> mpf:
        # Base tile spans the full width; precision first so the division is done at it.
        set_precision(PERIOD / width_px, self.levels, self.min_precision_digits)
        return PERIOD / width_px

    def reset_view(self) -> Optional[int]:
        s = self.state
        s.center = WorldCoordinate.of(0, 0)
        s.scale = self._fit_scale(s.width_px)
        return self.request_render()

    def go_to(self, x, y, scale=None) -> Optional[int]:
        s = self.state
        if scale is not None:
            scale = mpf(scale)
            if scale <= 0:
                raise ValueError("scale must be > 0.")
            s.scale = scale
        self._ensure_precision()
        s.center = WorldCoordinate.of(x, y).wrapped()
        return self.request_render()

    def set_levels(self, levels) -> Optional[int]:
        self.levels = clamp_levels(round(levels))
        return self.request_render()

    def resize(self, width: float, height: float, scaling: Optional[float] = None) -> Optional[int]:
        if scaling is not None:
            self.render_scaling = scaling
        s = self.state
        s.width_px, s.height_px = to_pixel_size(width, height, self.render_scaling)
        return self.request_render()

    def pan(self, dx, dy) -> Optional[int]:
        """Move the content by ``(dx, dy)`` pixels, i.e. the centre by the opposite world delta."""
        s = self.state
        self._ensure_precision()
        s.center = WorldCoordinate(s.center.x - mpf(dx) * s.scale, s.center.y - mpf(dy) * s.scale).wrapped()
        return self.request_render()

    def begin_pan(self, px: int, py: int) -> bool:
        if not self.contains(px, py):
            return False
        self._pan_anchor = (px, py)
        return True

    def drag_to(self, px: int, py: int) -> Optional[int]:
        if self._pan_anchor is None:
            return None
        ax, ay = self._pan_anchor
        self._pan_anchor = (px, py)
        return self.pan(px - ax, py - ay)

    def end_pan(self) -> None:
        self._pan_anchor = None

    @property
    def panning(self) -> bool:
        return self._pan_anchor is not None

    def zoom(self, px, py, delta) -> Optional[int]:
        """Zoom in (``delta > 0``) or out (``delta < 0``) keeping the world point under ``(px, py)`` fixed."""
        if delta == 0 or not self.contains(px, py):
            return None
        s = self.state
        factor = mpf(self.zoom_in_factor if delta > 0 else self.zoom_out_factor)
        new_scale = s.scale * factor
        self._ensure_precision(new_scale)

        anchor = self.pixel_to_world(px, py)
        ox, oy = self._offset(px, py)
        s.center = WorldCoordinate(anchor.x - ox * new_scale, anchor.y - oy * new_scale).wrapped()
        s.scale = new_scale
        return self.request_render()

    # -- render dispatch ----------------------------------------------------

    def request_render(self) -> Optional[int]:
        logger = get_logger()
        s = self.state
        if s.width_px <= 1 or s.height_px <= 1:
            logger.debug("Skipping render for %sx%s viewport", s.width_px, s.height_px)
            return None
        dps = self._ensure_precision()

        with self._lock:
            if self._closed:
                return None
            if self._cancel is not None:
                self._cancel.set()
            self._generation += 1
            gen = self._generation
            cancel = self._cancel = self._rasterizer.new_cancel_token()

        request = RenderRequest(
            center=s.center,
            scale=s.scale,
            levels=self.levels,
            width_px=s.width_px,
            height_px=s.height_px,
            generation=gen,
            dps=dps,
        )
        logger.debug("[Gen %s] dispatch %s", gen, self.describe())
        try:
            future = self._rasterizer.render(request, cancel)
        except Exception as e:
            logger.exception("[Gen %s] Render dispatch failed", gen)
            self._report_failure(gen, f"Render failed: {e}")
            return gen
        future.add_done_callback(functools.partial(self._on_render_done, gen))
        return gen

    def _on_render_done(self, gen: int, future: Future) -> None:
        logger = get_logger()
        try:
            result = future.result()
        except (RenderCancelled, CancelledError):
            logger.debug("[Gen %s] Render superseded", gen)
            return
        except RenderFailed as e:
            logger.error("[Gen %s] %s", gen, e.message)
            self._report_failure(gen, e.message)
            return
        except Exception as e:
            logger.exception("[Gen %s] Render failed", gen)
            self._report_failure(gen, f"Render failed: {e}")
            return

        with self._deliver_lock:
            if not self._is_current(result.generation):
                logger.debug("[Gen %s] Dropping stale result (current=%s)", gen, self.generation)
                return
            try:
                self._sink.present(result)
            except Exception:
                logger.exception("[Gen %s] Display sink rejected frame", gen)

    def _is_current(self, gen: int) -> bool:
        with self._lock:
            return not self._closed and gen == self._generation

    def _report_failure(self, gen: int, message: str) -> None:
        with self._deliver_lock:
            if not self._is_current(gen):
                return
            try:
                self._sink.failed(gen, message)
            except Exception:
                get_logger().exception("[Gen %s] Display sink rejected failure report", gen)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._cancel is not None:
                self._cancel.set()
                self._cancel = None
