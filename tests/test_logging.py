import logging
import sys

import pytest

from core.logging import configure_logging, log_with_context, request_id_var


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    root.handlers = []
    yield root
    root.handlers = handlers
    root.setLevel(level)


def test_configure_logging_adds_one_stdout_handler(root_logger):
    assert configure_logging(log_level="debug") == logging.DEBUG
    configure_logging(log_level="debug")

    assert len(root_logger.handlers) == 1
    assert root_logger.handlers[0].stream is sys.stdout
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_unknown_level_falls_back_to_info(root_logger):
    assert configure_logging(log_level="loud") == logging.INFO


def test_log_with_context_renders_request_id_and_skips_none(caplog):
    logger = logging.getLogger("core.cache.test")
    token = request_id_var.set("ab12cd34")
    try:
        with caplog.at_level(logging.WARNING, logger="core.cache.test"):
            log_with_context(logger, logging.WARNING, "CACHE_DEGRADED", op="get", key=None)
    finally:
        request_id_var.reset(token)

    assert caplog.messages == ["CACHE_DEGRADED | id=ab12cd34 | op=get"]
