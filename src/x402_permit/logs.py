"""
Logging - console logging setup for applications embedding the payment layer.

Library modules only create ``logging.getLogger(__name__)`` loggers; this
helper is for scripts and services that have no logging configured yet.
"""

import logging


def configure_logging(level: int = logging.INFO) -> None:
    """
    Attach a console handler to the root logger.

    Does nothing if the root logger already has handlers.

    Args:
        level: Logging level (default: INFO)
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    root_logger.setLevel(level)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    ))
    root_logger.addHandler(console_handler)
