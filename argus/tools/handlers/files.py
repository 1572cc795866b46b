"""Handlers for the workspace file tools.

Each handler reads its parameters from the tool use, calls the workspace
accessor and pushes a JSON-serialisable payload. Problems the model can fix
(bad line ranges, missing collaborators) are pushed as ``{"error": ...}``
payloads; unexpected failures go to the error sink.
"""
import re
from typing import Any

from loguru import logger

from argus.core.constants import ToolName
from argus.core.types import ToolUse
from argus.tools.capabilities import ErrorSink, ResultSink, ToolCapabilities


NO_WORKSPACE_ERROR = "Workspace accessor not available"
LINE_RANGE_PATTERN = re.compile(r"^(\d+)-(\d+)$")
DEFAULT_CODEBASE_LIMIT = 50

_DEFINITION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^(?:async\s+)?def\s+([A-Za-z_][A-Za-z0-9_]*)\s*\("), "function"),
    (re.compile(r"function\s+([A-Za-z0-9_$]+)\s*\("), "function"),
    (re.compile(r"const\s+([A-Za-z0-9_$]+)\s*=\s*(?:async\s*)?\([^)]*\)\s*=>"), "function"),
    (re.compile(r"const\s+([A-Za-z0-9_$]+)\s*=\s*function"), "function"),
    (re.compile(r"^func\s+(?:\([^)]*\)\s*)?([A-Za-z0-9_]+)\s*\("), "function"),
    (re.compile(r"^(?:pub\s+)?fn\s+([A-Za-z0-9_]+)"), "function"),
    (re.compile(r"class\s+([A-Za-z0-9_$]+)"), "class"),
    (re.compile(r"interface\s+([A-Za-z0-9_$]+)"), "interface"),
    (re.compile(r"(?:^|\s)type\s+([A-Za-z0-9_$]+)\s*="), "type"),
    (re.compile(r"enum\s+([A-Za-z0-9_$]+)"), "enum"),
)

_COMMENT_PREFIXES = ("//", "/*", "*", "#")


def _format_lines(lines: list[str], first_line: int) -> str:
    return "\n".join(f"{first_line + index} | {line}" for index, line in enumerate(lines))


def parse_line_range(line_range: str) -> tuple[int, int] | None:
    """Parse a ``start-end`` range of positive integers.

    Args:
        line_range: Raw range string.

    Returns:
        (start, end) with start > 0 and end >= start, or None if invalid.
    """
    match = LINE_RANGE_PATTERN.match(line_range.strip())
    if not match:
        return None
    start, end = int(match.group(1)), int(match.group(2))
    if start <= 0 or end < start:
        return None
    return start, end


def parse_code_definitions(content: str) -> list[dict[str, Any]]:
    """Find symbol definitions in source text with per-line regexes.

    Only the first matching pattern per line counts. Comment and blank
    lines are skipped.

    Args:
        content: Source file text.

    Returns:
        List of ``{"name", "kind", "startLine", "endLine"}`` dicts.
    """
    definitions: list[dict[str, Any]] = []
    for number, raw in enumerate(content.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(_COMMENT_PREFIXES):
            continue
        for pattern, kind in _DEFINITION_PATTERNS:
            match = pattern.search(line)
            if match:
                definitions.append(
                    {"name": match.group(1), "kind": kind, "startLine": number, "endLine": number}
                )
                break
    return definitions


async def read_file(
    tool_use: ToolUse,
    caps: ToolCapabilities,
    push_result: ResultSink,
    handle_error: ErrorSink,
) -> None:
    path = tool_use.params.get("path")
    line_range = tool_use.params.get("line_range")
    try:
        if caps.workspace is None:
            push_result({"error": NO_WORKSPACE_ERROR})
            return

        bounds = None
        if line_range:
            bounds = parse_line_range(str(line_range))
            if bounds is None:
                push_result({
                    "error": (
                        f"Invalid line_range format: {line_range}. Expected format: "
                        '"start-end" with positive integers (e.g., "1-50")'
                    )
                })
                return

        text = await caps.workspace.read_file(path)
        if not text:
            push_result({"error": "File content is empty"})
            return

        lines = text.split("\n")
        if bounds:
            start = bounds[0] - 1
            end = min(len(lines), bounds[1])
            content = _format_lines(lines[start:end], start + 1)
        else:
            content = _format_lines(lines, 1)

        push_result({
            "filePath": path,
            "content": content,
            "lineCount": len(content.split("\n")),
        })
    except Exception as e:
        await handle_error(ToolName.READ_FILE, e)


async def list_files(
    tool_use: ToolUse,
    caps: ToolCapabilities,
    push_result: ResultSink,
    handle_error: ErrorSink,
) -> None:
    path = tool_use.params.get("path")
    recursive = str(tool_use.params.get("recursive", "false")).lower() == "true"
    limit = tool_use.params.get("limit")
    try:
        if caps.workspace is None:
            push_result({"error": NO_WORKSPACE_ERROR})
            return

        entries = await caps.workspace.list_files(path, recursive=recursive)
        if limit is not None:
            entries = entries[: int(float(limit))]
        files = [entry.model_dump() for entry in entries]
        push_result({
            "directory": path,
            "recursive": recursive,
            "files": files,
            "totalFiles": len(files),
        })
    except Exception as e:
        await handle_error(ToolName.LIST_FILES, e)


async def search_files(
    tool_use: ToolUse,
    caps: ToolCapabilities,
    push_result: ResultSink,
    handle_error: ErrorSink,
) -> None:
    path = tool_use.params.get("path")
    regex = tool_use.params.get("regex")
    file_pattern = tool_use.params.get("file_pattern")
    try:
        if caps.workspace is None:
            push_result({"error": NO_WORKSPACE_ERROR})
            return

        matches = await caps.workspace.search_files(path, regex, file_pattern)
        results = [match.model_dump() for match in matches]
        push_result({
            "searchPath": path,
            "regex": regex,
            "filePattern": file_pattern,
            "results": results,
            "totalMatches": sum(match.matches for match in matches),
        })
    except Exception as e:
        await handle_error(ToolName.SEARCH_FILES, e)


async def codebase_search(
    tool_use: ToolUse,
    caps: ToolCapabilities,
    push_result: ResultSink,
    handle_error: ErrorSink,
) -> None:
    query = tool_use.params.get("query")
    prefix = tool_use.params.get("path")
    limit = tool_use.params.get("limit")
    try:
        if caps.workspace is None:
            push_result({"error": NO_WORKSPACE_ERROR})
            return

        snippets = await caps.workspace.search_code(
            query, limit=int(float(limit)) if limit is not None else DEFAULT_CODEBASE_LIMIT
        )
        if prefix:
            normalized = str(prefix).lstrip("/")
            snippets = [s for s in snippets if s.file_path.startswith(normalized)]

        if not snippets:
            where = f' in path: "{prefix}"' if prefix else ""
            push_result({
                "message": f'No relevant code snippets found{where} for the query: "{query}"',
                "query": query,
            })
            return

        logger.debug("Codebase search finished", query=query, results=len(snippets))
        push_result({
            "query": query,
            "results": [
                {
                    "filePath": s.file_path,
                    "score": s.score,
                    "startLine": s.start_line,
                    "endLine": s.end_line,
                    "codeChunk": s.content,
                }
                for s in snippets
            ],
        })
    except Exception as e:
        await handle_error(ToolName.CODEBASE_SEARCH, e)


async def list_code_definition_names(
    tool_use: ToolUse,
    caps: ToolCapabilities,
    push_result: ResultSink,
    handle_error: ErrorSink,
) -> None:
    path = tool_use.params.get("path")
    try:
        if caps.workspace is None:
            push_result({"error": NO_WORKSPACE_ERROR})
            return

        text = await caps.workspace.read_file(path)
        if not text:
            push_result({"error": "File content is empty"})
            return

        definitions = parse_code_definitions(text)
        push_result({
            "filePath": path,
            "definitions": definitions,
            "totalDefinitions": len(definitions),
        })
    except Exception as e:
        await handle_error(ToolName.LIST_CODE_DEFINITION_NAMES, e)
