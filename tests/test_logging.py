"""Tests for logging setup."""

import pytest

from research_pipeline.logging import configure_logging, get_logger


def test_configure_logging_accepts_level_names() -> None:
    configure_logging("debug")
    get_logger("research_pipeline.tests").debug("test_event", value=1)


def test_configure_logging_rejects_unknown_level() -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        configure_logging("loud")
