# argus/tools/errors.py
"""Classification and reporting of tool failures."""
import asyncio
from enum import StrEnum

import httpx
import pydantic
from loguru import logger

from argus.core.exceptions import (
    FileSystemError,
    NetworkError,
    PathTraversalError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolValidationError,
)


class ErrorKind(StrEnum):
    """Coarse taxonomy for tool failures."""

    VALIDATION = "validation"
    FILE_SYSTEM = "file_system"
    NETWORK = "network"
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_EXECUTION = "tool_execution"
    GENERIC = "generic"


# Checked before OSError: ConnectionError and TimeoutError subclass it
NETWORK_EXCEPTIONS: tuple[type[BaseException], ...] = (
    NetworkError,
    httpx.HTTPError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)

FILE_SYSTEM_EXCEPTIONS: tuple[type[BaseException], ...] = (
    FileSystemError,
    PathTraversalError,
    OSError,
)

_PREFIXES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Validation error",
    ErrorKind.FILE_SYSTEM: "File system error",
    ErrorKind.NETWORK: "Network error",
    ErrorKind.TOOL_NOT_FOUND: "Tool not found",
    ErrorKind.TOOL_EXECUTION: "Execution error",
    ErrorKind.GENERIC: "Error",
}


def classify(error: BaseException) -> ErrorKind:
    """Map an exception to an ErrorKind.

    Args:
        error: The raised exception.

    Returns:
        The matching ErrorKind, GENERIC when nothing more specific applies.
    """
    if isinstance(error, ToolNotFoundError):
        return ErrorKind.TOOL_NOT_FOUND
    if isinstance(error, (ToolValidationError, pydantic.ValidationError)):
        return ErrorKind.VALIDATION
    if isinstance(error, ToolExecutionError):
        return ErrorKind.TOOL_EXECUTION
    if isinstance(error, NETWORK_EXCEPTIONS):
        return ErrorKind.NETWORK
    if isinstance(error, FILE_SYSTEM_EXCEPTIONS):
        return ErrorKind.FILE_SYSTEM
    return ErrorKind.GENERIC


def create_error_response(error: BaseException, tool_name: str) -> str:
    """Build the short user-facing message for a failure.

    Args:
        error: The raised exception.
        tool_name: Tool the failure relates to.

    Returns:
        A string of the form ``"<Kind> in <tool>: <message>"``.
    """
    return f"{_PREFIXES[classify(error)]} in {tool_name}: {error}"


def handle_error(
    error: BaseException,
    tool_name: str,
    action: str,
    user_id: int | None = None,
    repository_id: int | None = None,
) -> str:
    """Log a tool failure with context and return its user-facing message.

    Never raises.

    Args:
        error: The raised exception.
        tool_name: Tool the failure relates to.
        action: What was being attempted (e.g. "execute").
        user_id: Optional requester identity for the log entry.
        repository_id: Optional repository id for the log entry.

    Returns:
        The user-facing message from create_error_response.
    """
    kind = classify(error)
    log = logger.warning if kind == ErrorKind.VALIDATION else logger.error
    log(
        f"Tool error [{tool_name}]: {action}",
        tool=tool_name,
        action=action,
        kind=str(kind),
        error=str(error),
        error_type=type(error).__name__,
        user_id=user_id,
        repository_id=repository_id,
    )
    return create_error_response(error, tool_name)


def missing_parameter_error(tool_name: str, param_name: str) -> ToolValidationError:
    return ToolValidationError(
        f"Missing required parameter '{param_name}' for tool '{tool_name}'",
        tool_name=tool_name,
    )


def invalid_parameter_error(tool_name: str, param_name: str, reason: str) -> ToolValidationError:
    return ToolValidationError(
        f"Invalid parameter '{param_name}' for tool '{tool_name}': {reason}",
        tool_name=tool_name,
    )


def tool_not_found_error(tool_name: str) -> ToolNotFoundError:
    return ToolNotFoundError(tool_name)


def execution_error(tool_name: str, reason: str) -> ToolExecutionError:
    return ToolExecutionError(tool_name, reason)
