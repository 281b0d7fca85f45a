from __future__ import annotations

import os
import threading
from typing import Optional, Protocol, Tuple

from carpetzoom.model import RenderFailed, RenderResult
from carpetzoom.util.logging_setup import get_logger


class DisplaySink(Protocol):
    def present(self, result: RenderResult) -> None: ...

    def failed(self, generation: int, message: str) -> None: ...


class LatestFrameSink:
    """Keeps the most recently presented frame and lets other threads wait for a generation."""

    def __init__(self):
        self._cond = threading.Condition()
        self.latest: Optional[RenderResult] = None
        self.error: Optional[Tuple[int, str]] = None
        self.presented = 0

    def present(self, result: RenderResult) -> None:
        with self._cond:
            self.latest = result
            self.error = None
            self.presented += 1
            self._cond.notify_all()

    def failed(self, generation: int, message: str) -> None:
        with self._cond:
            self.error = (generation, message)
            self._cond.notify_all()

    def wait_for(self, generation: int, timeout: Optional[float] = None) -> RenderResult:
        def ready() -> bool:
            if self.latest is not None and self.latest.generation >= generation:
                return True
            return self.error is not None and self.error[0] >= generation

        with self._cond:
            if not self._cond.wait_for(ready, timeout=timeout):
                raise TimeoutError(f"No frame for generation {generation} within {timeout}s")
            if self.latest is not None and self.latest.generation >= generation:
                return self.latest
            gen, message = self.error
            raise RenderFailed(gen, message)


class FrameDirectorySink(LatestFrameSink):
    def __init__(self, frames_dir: str):
        super().__init__()
        self.frames_dir = frames_dir
        self._index = 0
        os.makedirs(frames_dir, exist_ok=True)

    def present(self, result: RenderResult) -> None:
        path = os.path.join(self.frames_dir, f"frame_{self._index:06d}.png")
        result.to_image().save(path, format="PNG", optimize=True)
        get_logger().info("Saved frame %s -> %s (generation=%s levels=%s)",
                          self._index, path, result.generation, result.levels)
        self._index += 1
        super().present(result)
