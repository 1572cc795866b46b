"""Logging configuration for the console.

Levels are coloured and structured ``extra`` fields are rendered as
``key=value`` pairs after the message.
"""

import sys
from typing import TYPE_CHECKING

from loguru import logger


if TYPE_CHECKING:
    from loguru import Record


COLORS = {
    "amber": "#E0A43C",  # Warnings
    "green": "#4F9D69",  # Success
    "slate": "#7D8A96",  # Timestamps, debug, extra fields
    "faint": "#4B5560",  # Separators, trace
    "paper": "#ECEFF1",  # Message text
    "red": "#C0392B",  # Errors
    "blue": "#4A90C2",  # Info
}


def _log_format(record: "Record") -> str:
    """Build the loguru format string for one record.

    Args:
        record: Loguru record containing log metadata, message, and level.

    Returns:
        Format string with loguru color tags.
    """
    level_colors = {
        "TRACE": f"<fg {COLORS['faint']}>",
        "DEBUG": f"<fg {COLORS['slate']}>",
        "INFO": f"<fg {COLORS['blue']}>",
        "SUCCESS": f"<fg {COLORS['green']}>",
        "WARNING": f"<fg {COLORS['amber']}>",
        "ERROR": f"<fg {COLORS['red']}>",
        "CRITICAL": f"<fg {COLORS['red']}><bold>",
    }
    color = level_colors.get(record["level"].name, f"<fg {COLORS['paper']}>")
    close = "</>"

    fmt = (
        f"<fg {COLORS['slate']}>{{time:HH:mm:ss}}{close}"
        f" <fg {COLORS['faint']}>│{close} "
        f"{color}{{level: <8}}{close}"
        f"<fg {COLORS['faint']}>│{close} "
        f"<fg {COLORS['slate']}>{{name}}{close}"
        f"<fg {COLORS['faint']}>:{close}"
        f"<fg {COLORS['paper']}>{{message}}{close}"
    )

    extra = record["extra"]
    if extra:
        extra_str = " ".join(f"{k}={v!r}" for k, v in extra.items())
        # Escape braces to prevent loguru format string injection
        extra_str = extra_str.replace("{", "{{").replace("}", "}}").replace("<", r"\<")
        fmt += f" <fg {COLORS['slate']}>│ {extra_str}{close}"

    fmt += "\n"
    if record["exception"]:
        fmt += "{exception}\n"
    return fmt


def configure_logging(level: str = "INFO") -> None:
    """Replace the default loguru sink with the coloured stderr sink.

    Args:
        level: Minimum log level to display (e.g., "DEBUG", "INFO", "WARNING").
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=_log_format,
        colorize=True,
    )
