"""Parser for tag-delimited tool calls embedded in model free text.

The mini-language looks like::

    <read_file><path>src/app.ts</path><line_range>1-40</line_range></read_file>

A tool tag may carry a ``functions.`` namespace prefix. Parameters are the
first-level child tags; their text is trimmed and empty values are dropped.
Tags that do not name a known tool are treated as plain text, and the scan
continues inside them so a tool call wrapped in an unrelated tag is still
found.
"""
import re
from collections.abc import Collection

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field


TOOL_TAG_PATTERN = re.compile(r"<(?:functions\.)?(\w+)>([\s\S]*?)</(?:functions\.)?\1>")
PARAM_TAG_PATTERN = re.compile(r"<(\w+)>([\s\S]*?)</\1>")


class TagToolCall(BaseModel):
    """A tool call recovered from free text.

    Attributes:
        name: Tool name.
        params: Trimmed, non-empty parameter values.
        span: (start, end) offsets of the markup in the source text.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    params: dict[str, str] = Field(default_factory=dict)
    span: tuple[int, int]


def parse_parameters(content: str) -> dict[str, str]:
    """Extract first-level ``<name>value</name>`` pairs.

    Args:
        content: Inner text of a tool tag.

    Returns:
        Parameter mapping; later duplicates overwrite earlier ones.
    """
    params: dict[str, str] = {}
    for match in PARAM_TAG_PATTERN.finditer(content):
        value = match.group(2).strip()
        if value:
            params[match.group(1)] = value
    return params


def parse_tool_calls(text: str, known_tools: Collection[str]) -> list[TagToolCall]:
    """Find every known tool call in text, in order of appearance.

    Args:
        text: Model output.
        known_tools: Tool names to recognise.

    Returns:
        Parsed calls. Calls with no non-empty parameters are skipped.
    """
    calls: list[TagToolCall] = []
    position = 0
    while True:
        match = TOOL_TAG_PATTERN.search(text, position)
        if match is None:
            break
        name = match.group(1)
        if name not in known_tools:
            # Resume just inside the unknown tag so nested calls are still found
            position = match.start() + 1
            continue
        params = parse_parameters(match.group(2))
        if params:
            calls.append(TagToolCall(name=name, params=params, span=match.span()))
        else:
            logger.debug("Skipping tag tool call without parameters", tool=name)
        position = match.end()

    if calls:
        logger.info("Parsed tag tool calls", tools=[c.name for c in calls])
    return calls


def strip_tool_calls(text: str, known_tools: Collection[str]) -> str:
    """Remove known tool-call markup from text.

    Args:
        text: Model output.
        known_tools: Tool names whose markup is removed.

    Returns:
        The remaining natural-language text, trimmed.
    """
    pieces: list[str] = []
    position = 0
    cursor = 0
    while True:
        match = TOOL_TAG_PATTERN.search(text, position)
        if match is None:
            break
        if match.group(1) not in known_tools:
            position = match.start() + 1
            continue
        pieces.append(text[cursor:match.start()])
        cursor = position = match.end()
    pieces.append(text[cursor:])
    return "".join(pieces).strip()


def has_tool_calls(text: str, known_tools: Collection[str]) -> bool:
    return bool(parse_tool_calls(text, known_tools))
