import logging
from unittest.mock import patch

from x402_permit.logs import configure_logging


def test_console_handler_added_once():
    root = logging.getLogger()
    level = root.level
    try:
        with patch.object(root, "handlers", []):
            configure_logging(logging.DEBUG)
            configure_logging(logging.INFO)

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0], logging.StreamHandler)
            assert root.level == logging.DEBUG
    finally:
        root.setLevel(level)


def test_existing_configuration_left_alone():
    root = logging.getLogger()
    existing = logging.NullHandler()
    with patch.object(root, "handlers", [existing]):
        configure_logging()
        assert root.handlers == [existing]
