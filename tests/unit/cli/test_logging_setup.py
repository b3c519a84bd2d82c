"""Tests for logging setup."""

from __future__ import annotations

import logging
from typing import Iterator

import pytest
from rich.logging import RichHandler

from awsweeper.utils.logging import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    """Restore root logger handlers and level after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_installs_single_rich_handler(self) -> None:
        """Test that repeated setup does not stack handlers."""
        setup_logging("INFO")
        setup_logging("DEBUG")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], RichHandler)
        assert root.level == logging.DEBUG

    def test_quiets_aws_sdk_loggers(self) -> None:
        """Test that botocore is quiet unless verbose."""
        setup_logging("DEBUG")
        assert logging.getLogger("botocore").level == logging.WARNING

        setup_logging("DEBUG", verbose=True)
        assert logging.getLogger("botocore").level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self) -> None:
        """Test handling of an invalid level name."""
        setup_logging("LOUD")

        assert logging.getLogger().level == logging.INFO
