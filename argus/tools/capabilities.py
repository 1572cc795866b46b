"""Capabilities handed to tool handlers and the workspace accessor contract."""
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict

from argus.core.types import ToolUse


class FileEntry(BaseModel):
    """A file or directory returned by a listing.

    Attributes:
        name: Base name.
        path: Path relative to the workspace root.
        type: "file" or "dir".
        size: Size in bytes for files.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    type: str
    size: int | None = None


class SearchMatch(BaseModel):
    """Regex search hits within one file.

    Attributes:
        file: Path relative to the workspace root.
        matches: Number of matching lines.
        content: Matching lines with line numbers.
    """

    model_config = ConfigDict(frozen=True)

    file: str
    matches: int
    content: str = ""


class CodeSnippet(BaseModel):
    """A ranked code chunk returned by a codebase query."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    score: float
    start_line: int
    end_line: int
    content: str


class WorkspaceAccessor(Protocol):
    """Read-only access to the source tree under review.

    Implementations raise FileSystemError (or an OSError) for missing paths
    and NetworkError for remote transport failures.
    """

    async def read_file(self, path: str) -> str:
        """Return the full text of a file."""
        ...

    async def list_files(self, path: str, recursive: bool = False) -> list[FileEntry]:
        """List entries below a directory."""
        ...

    async def search_files(self, path: str, regex: str, file_pattern: str | None = None) -> list[SearchMatch]:
        """Search files below a directory for a regex."""
        ...

    async def search_code(self, query: str, limit: int = 50) -> list[CodeSnippet]:
        """Return code chunks relevant to a free-text query."""
        ...


@dataclass(frozen=True)
class ToolCapabilities:
    """Closed set of collaborators a tool handler may use.

    Attributes:
        cwd: Working directory of the review.
        user_id: Requester identity.
        repository_id: Repository under review.
        workspace: Source tree accessor.
        access_token: Bearer credential for the source-control host.
    """

    cwd: str
    user_id: int | None = None
    repository_id: int | None = None
    workspace: WorkspaceAccessor | None = None
    access_token: str | None = None


# Handlers report through exactly one of these sinks before returning
ResultSink = Callable[[Any], None]
ErrorSink = Callable[[str, BaseException], Awaitable[None]]
ToolHandler = Callable[[ToolUse, ToolCapabilities, ResultSink, ErrorSink], Awaitable[None]]
