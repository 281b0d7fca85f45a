from __future__ import annotations

import logging
import logging.handlers

import pytest

from carpetzoom.util.logging_setup import (
    configure_root_logging,
    configure_worker_logging,
    get_logger,
    parse_level,
    queue_logging,
)


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger = get_logger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def test_parse_level_accepts_names_and_numbers() -> None:
    assert parse_level("debug") == logging.DEBUG
    assert parse_level(" WARNING ") == logging.WARNING
    assert parse_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError, match="log level"):
        parse_level("chatty")


def test_records_go_to_the_rotating_file(tmp_path) -> None:
    path = tmp_path / "carpet.log"
    logger = configure_root_logging(level="INFO", console=False, log_file=str(path))

    assert [type(h) for h in logger.handlers] == [logging.handlers.RotatingFileHandler]
    logger.debug("hidden detail")
    logger.info("[Gen %s] render done", 3)
    for h in logger.handlers:
        h.flush()

    text = path.read_text(encoding="utf-8")
    assert "INFO carpetzoom - [Gen 3] render done" in text
    assert "hidden detail" not in text


def test_reconfiguring_replaces_handlers(tmp_path) -> None:
    configure_root_logging(console=True, log_file=str(tmp_path / "a.log"))
    logger = configure_root_logging(console=False, log_file=None)
    assert logger.handlers == []
    assert logger.propagate is False


def test_queue_logging_is_a_no_op_when_disabled() -> None:
    with queue_logging(get_logger(), enabled=False) as queue:
        assert queue is None


class _Collect(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_worker_records_reach_the_listener_handlers() -> None:
    collected = _Collect()
    listener_logger = logging.getLogger("carpetzoom-listener")
    listener_logger.addHandler(collected)

    with queue_logging(listener_logger) as queue:
        # Same calls a process worker makes from its pool initializer.
        configure_worker_logging(queue, level=logging.INFO)
        assert [type(h) for h in get_logger().handlers] == [logging.handlers.QueueHandler]
        get_logger().info("band 0..16 done")
    listener_logger.removeHandler(collected)

    # The listener drains the queue before it stops.
    assert [r.getMessage() for r in collected.records] == ["band 0..16 done"]
