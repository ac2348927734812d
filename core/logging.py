"""Centralized logging setup."""

import logging
import sys
from contextvars import ContextVar


request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def configure_logging(*, log_level: str) -> int:
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(level)

    if not any(isinstance(handler, logging.StreamHandler) for handler in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s.%(msecs)03d] [%(levelname)-5s] [%(name)-20s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)

    # Per-statement SQL and scheduler chatter.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True
        uv_logger.setLevel(level)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return level


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **kwargs,
):
    """
    Log a message with structured context.

    Renders as ``message | id=<request id> | key=value | ...``; ``None`` values
    are skipped.
    """
    context_parts = []
    request_id = request_id_var.get("")
    if request_id:
        context_parts.append(f"id={request_id}")

    for key, value in kwargs.items():
        if value is not None:
            context_parts.append(f"{key}={value}")

    context_str = " | ".join(context_parts)
    full_message = f"{message} | {context_str}" if context_str else message

    logger.log(level, full_message)
