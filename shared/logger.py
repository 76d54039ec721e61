import logging
from collections.abc import Sequence
from typing import Any

from rich.logging import RichHandler

from shared.logging.common import LogEntry


def configure_logger(
    logger_name: str,
    log_level: int = logging.INFO,
    effect_handlers: Sequence[logging.Handler] | None = None,
) -> logging.Logger:
    """
    Return the named logger with a rich console handler attached.
    Calling it again for the same name only adjusts the level.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)
    logger.propagate = False

    if logger.hasHandlers():
        for handler in logger.handlers:
            handler.setLevel(log_level)
        return logger

    console_handler = RichHandler(
        rich_tracebacks=True,
    )
    console_handler.setLevel(log_level)

    logger.addHandler(console_handler)
    if effect_handlers is None:
        effect_handlers = []
    for effect_handler in effect_handlers:
        logger.addHandler(effect_handler)

    return logger


def log(
    logger: logging.Logger, log_entry: LogEntry[Any], log_level: int = logging.INFO
) -> None:
    logger.log(log_level, log_entry.model_dump_json())
