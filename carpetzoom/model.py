from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from mpmath import mpf
from PIL import Image

from carpetzoom.geometry import WorldCoordinate


class RenderCancelled(Exception):
    """A render was superseded or cancelled before it completed."""

    def __init__(self, generation: int):
        super().__init__(f"render generation {generation} cancelled")
        self.generation = generation

    def __reduce__(self):
        return type(self), (self.generation,)


class RenderFailed(RuntimeError):
    def __init__(self, generation: int, message: str):
        super().__init__(message)
        self.generation = generation
        self.message = message

    def __reduce__(self):
        return type(self), (self.generation, self.message)


@dataclass
class ViewState:
    center: WorldCoordinate
    scale: mpf
    width_px: int
    height_px: int


@dataclass(frozen=True)
class RenderRequest:
    center: WorldCoordinate
    scale: mpf
    levels: int
    width_px: int
    height_px: int
    generation: int = 0
    dps: Optional[int] = None


@dataclass(frozen=True)
class RenderResult:
    generation: int
    width_px: int
    height_px: int
    levels: int
    pixels: np.ndarray  # (height, width, 4) uint8, RGBA

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)
