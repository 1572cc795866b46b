"""Tests for argus.logging module."""

import re
from collections.abc import Iterator
from io import StringIO
from unittest import mock

import pytest
from loguru import logger

from argus.logging import configure_logging


def _strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text."""
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


@pytest.fixture
def stderr() -> Iterator[StringIO]:
    with mock.patch("sys.stderr", new_callable=StringIO) as mock_stderr:
        yield mock_stderr
    logger.remove()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_renders_extra_fields(self, stderr: StringIO) -> None:
        configure_logging("DEBUG")

        logger.info("Tool call succeeded", tool="read_file", execution_time_ms=12)

        output = _strip_ansi(stderr.getvalue())
        assert "Tool call succeeded" in output
        assert "tool='read_file'" in output
        assert "execution_time_ms=12" in output

    def test_respects_level(self, stderr: StringIO) -> None:
        configure_logging("warning")

        logger.info("hidden")
        logger.warning("shown")

        output = _strip_ansi(stderr.getvalue())
        assert "hidden" not in output
        assert "shown" in output

    def test_braces_in_extras_are_escaped(self, stderr: StringIO) -> None:
        configure_logging()

        logger.info("Parsed", params={"path": "<src>"})

        assert "params={'path': '<src>'}" in _strip_ansi(stderr.getvalue())
