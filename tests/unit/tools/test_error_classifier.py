"""Tests for tool failure classification."""
import httpx
import pytest

from argus.core.exceptions import (
    FileSystemError,
    NetworkError,
    PathTraversalError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolValidationError,
)
from argus.tools.errors import (
    ErrorKind,
    classify,
    create_error_response,
    execution_error,
    handle_error,
    invalid_parameter_error,
    missing_parameter_error,
    tool_not_found_error,
)


class TestClassify:
    """Tests for classify."""

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (ToolNotFoundError("x"), ErrorKind.TOOL_NOT_FOUND),
            (ToolValidationError("bad"), ErrorKind.VALIDATION),
            (ToolExecutionError("x", "crashed"), ErrorKind.TOOL_EXECUTION),
            (NetworkError("down"), ErrorKind.NETWORK),
            (httpx.ConnectError("refused"), ErrorKind.NETWORK),
            (TimeoutError(), ErrorKind.NETWORK),
            (ConnectionResetError(), ErrorKind.NETWORK),
            (FileNotFoundError("a.py"), ErrorKind.FILE_SYSTEM),
            (PathTraversalError("../x"), ErrorKind.FILE_SYSTEM),
            (FileSystemError("gone"), ErrorKind.FILE_SYSTEM),
            (ValueError("odd"), ErrorKind.GENERIC),
        ],
    )
    def test_kinds(self, error: BaseException, kind: ErrorKind) -> None:
        assert classify(error) == kind


class TestMessages:
    """Tests for user-facing messages."""

    def test_create_error_response(self) -> None:
        message = create_error_response(FileSystemError("File not found: a.py"), "read_file")

        assert message == "File system error in read_file: File not found: a.py"

    def test_handle_error_returns_message(self) -> None:
        message = handle_error(NetworkError("timeout"), "codebase_search", "execute", user_id=1)

        assert message == "Network error in codebase_search: timeout"

    def test_parameter_error_factories(self) -> None:
        missing = missing_parameter_error("read_file", "path")
        invalid = invalid_parameter_error("list_files", "limit", "must be a number")

        assert str(missing) == "Missing required parameter 'path' for tool 'read_file'"
        assert str(invalid) == "Invalid parameter 'limit' for tool 'list_files': must be a number"
        assert missing.tool_name == "read_file"

    def test_tool_error_factories(self) -> None:
        not_found = tool_not_found_error("shell")
        failed = execution_error("read_file", "disk gone")

        assert isinstance(not_found, ToolNotFoundError)
        assert str(not_found) == "Tool 'shell' not found"
        assert str(failed) == "Tool 'read_file' execution failed: disk gone"
        assert classify(failed) == ErrorKind.TOOL_EXECUTION
