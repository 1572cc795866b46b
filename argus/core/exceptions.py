# argus/core/exceptions.py
"""Custom exceptions for Argus."""


class ArgusError(Exception):
    """Base exception for all Argus errors."""

    pass


class ConfigurationError(ArgusError):
    """Raised when required configuration is missing or invalid."""

    pass


class PathTraversalError(ArgusError):
    """Raised when a path escapes the workspace root."""

    pass


class ToolError(ArgusError):
    """Base class for failures while dispatching a tool call.

    Attributes:
        tool_name: Name of the tool the failure relates to.
    """

    def __init__(self, message: str, tool_name: str | None = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ToolValidationError(ToolError):
    """Raised when a tool use fails parameter validation."""

    pass


class ToolNotFoundError(ToolError):
    """Raised when a tool use names a tool that is not registered."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool '{tool_name}' not found", tool_name=tool_name)


class ToolExecutionError(ToolError):
    """Raised when a tool handler fails while executing.

    Attributes:
        reason: Underlying failure description.
    """

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"Tool '{tool_name}' execution failed: {reason}", tool_name=tool_name)
        self.reason = reason


class FileSystemError(ArgusError):
    """Raised when a workspace file operation fails."""

    pass


class ContextNotFoundError(ArgusError):
    """Raised when a conversation context id is unknown to the store."""

    def __init__(self, context_id: str) -> None:
        super().__init__(f"Conversation context not found: {context_id}")
        self.context_id = context_id


class NetworkError(ArgusError):
    """Raised when a call to the LLM endpoint or a remote collaborator fails."""

    pass


class FindingParseError(ArgusError):
    """Raised when model output contains malformed findings JSON."""

    pass


class WorkflowError(ArgusError):
    """Base class for workflow engine failures."""

    pass


class StepTimeoutError(WorkflowError):
    """Raised when a workflow step exceeds its timeout."""

    pass
