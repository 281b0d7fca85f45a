"""Logging for the renderer, the CLI and process band workers.

Everything logs under the ``carpetzoom`` logger. Process workers have no
handlers of their own: their records travel over a multiprocessing queue and
are written by a listener thread in the parent.
"""
import contextlib
import logging
import logging.handlers
import multiprocessing as mp
from typing import Iterator, List, Optional, Union

_LOGGER_NAME = "carpetzoom"
LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR")

_FORMAT = "%(asctime)s.%(msecs)03dZ %(processName)s/%(threadName)s %(levelname)s %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S"


def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)


def parse_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    if name not in LEVEL_NAMES:
        raise ValueError(f"log level must be one of: {', '.join(LEVEL_NAMES)}")
    return logging.getLevelName(name)


def _detach_all(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def _handlers(level: int, console: bool, log_file: Optional[str], rotate_bytes: int, rotate_count: int) -> List[logging.Handler]:
    out: List[logging.Handler] = []
    if console:
        out.append(logging.StreamHandler())
    if log_file:
        out.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=rotate_bytes, backupCount=rotate_count, encoding="utf-8"
        ))
    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    for h in out:
        h.setLevel(level)
        h.setFormatter(fmt)
    return out


def configure_root_logging(
    *,
    level: Union[str, int] = logging.INFO,
    console: bool = True,
    log_file: Optional[str] = "carpetzoom.log",
    rotate_bytes: int = 5 * 1024 * 1024,
    rotate_count: int = 5,
) -> logging.Logger:
    """Send ``carpetzoom`` records to the console and/or a rotating log file.

    Calling it again replaces the previous handlers, so the CLI and tests can
    reconfigure freely.
    """
    level = parse_level(level)
    logger = get_logger()
    _detach_all(logger, level)
    for h in _handlers(level, console, log_file, rotate_bytes, rotate_count):
        logger.addHandler(h)
    return logger


@contextlib.contextmanager
def queue_logging(listener_logger: logging.Logger, *, enabled: bool = True) -> Iterator[Optional["mp.Queue"]]:
    """Yield a queue that process workers log into, drained onto ``listener_logger``'s handlers.

    Yields ``None`` when ``enabled`` is false (thread backend), since thread
    workers log straight through the parent's handlers.
    """
    if not enabled:
        yield None
        return
    queue = mp.Queue(-1)
    listener = logging.handlers.QueueListener(queue, *listener_logger.handlers, respect_handler_level=True)
    listener.start()
    try:
        yield queue
    finally:
        listener.stop()
        queue.close()
        queue.join_thread()


def configure_worker_logging(queue: "mp.Queue", *, level: int = logging.INFO) -> None:
    """Route a band worker process' records through ``queue`` to the parent's handlers."""
    logger = get_logger()
    _detach_all(logger, level)
    qh = logging.handlers.QueueHandler(queue)
    qh.setLevel(level)
    logger.addHandler(qh)
