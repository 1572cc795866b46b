"""Extraction and bookkeeping of structured findings in model output.

The model reports findings as a JSON object with an ``issues`` list. A fenced
```json block is preferred; otherwise the object enclosing the first
``"issues"`` key is located by brace matching that skips braces inside
string literals.
"""
import json
import re
from collections import Counter
from collections.abc import Iterable
from typing import Any

from loguru import logger
from pydantic import ValidationError

from argus.core.exceptions import FindingParseError
from argus.core.types import AccumulatedIssue


_FENCED_JSON = re.compile(r"```json\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_ISSUES_KEY = '"issues"'


def _matching_brace(text: str, start: int) -> int | None:
    """Index of the ``}`` closing the ``{`` at ``start``, skipping string literals."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def find_enclosing_object(text: str, anchor: int) -> str | None:
    """Return the innermost ``{...}`` span that encloses ``anchor``.

    Opening braces before the anchor are tried from nearest to farthest; the
    first whose matching close brace lies past the anchor wins, so sibling
    objects that close before the anchor are passed over. Braces inside
    double-quoted strings are ignored and backslash escapes are honoured.

    Args:
        text: Text to scan.
        anchor: Index inside the object, typically of a known key.

    Returns:
        The object text, or None if no balanced object encloses the anchor.
    """
    start = text.rfind("{", 0, anchor)
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None and end > anchor:
            return text[start : end + 1]
        start = text.rfind("{", 0, start)
    return None


def _load_issue_payload(raw: str) -> list[Any]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise FindingParseError(f"Malformed findings JSON: {e}") from e

    if isinstance(payload, dict) and isinstance(payload.get("issues"), list):
        return payload["issues"]
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and "path" in payload and "message" in payload:
        return [payload]
    raise FindingParseError("Findings JSON has no issues list")


def parse_issues(raw: str) -> list[AccumulatedIssue]:
    """Parse a findings payload into issues.

    Entries that are not objects or fail validation are skipped.

    Args:
        raw: JSON text of an ``{"issues": [...]}`` object, a bare list, or a
            single finding object.

    Returns:
        The valid issues in payload order.

    Raises:
        FindingParseError: If the text is not JSON or carries no issues.
    """
    issues: list[AccumulatedIssue] = []
    for entry in _load_issue_payload(raw):
        if not isinstance(entry, dict):
            logger.debug("Skipping non-object finding", entry=entry)
            continue
        try:
            issues.append(AccumulatedIssue.model_validate(entry))
        except ValidationError as e:
            logger.debug("Skipping invalid finding", error=str(e), entry=entry)
    return issues


def extract_issues(text: str) -> list[AccumulatedIssue]:
    """Extract findings from a model response.

    Malformed payloads are logged and yield no findings; extraction never
    raises.

    Args:
        text: Assistant text with tool-call markup already removed.

    Returns:
        Findings found in the text, possibly empty.
    """
    if not text:
        return []

    candidates: list[str] = []
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    anchor = text.find(_ISSUES_KEY)
    if anchor != -1:
        enclosing = find_enclosing_object(text, anchor)
        if enclosing:
            candidates.append(enclosing)

    for candidate in candidates:
        try:
            return parse_issues(candidate)
        except FindingParseError as e:
            logger.warning("Failed to parse findings", error=str(e))
    return []


def dedupe_issues(issues: Iterable[AccumulatedIssue]) -> list[AccumulatedIssue]:
    """Drop repeats of ``(path, line, code_smell_type)``, keeping the first."""
    seen: set[tuple[str | None, int | None, str | None]] = set()
    unique: list[AccumulatedIssue] = []
    for issue in issues:
        if issue.key in seen:
            continue
        seen.add(issue.key)
        unique.append(issue)
    return unique


def issues_by_type(issues: Iterable[AccumulatedIssue]) -> dict[str, int]:
    return dict(Counter(issue.code_smell_type or "other" for issue in issues))
