"""Shared type definitions for the Argus review agent.

Contains the conversation message models (Role, ToolCallRequest, Message),
tool dispatch records (ToolUse, ToolCallRecord), structured findings
(IssueRange, AccumulatedIssue) and the ConversationContext that owns a
single review's state.
"""
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Role(StrEnum):
    """Role of a message author in a chat conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCallRequest(BaseModel):
    """A structured tool call requested by an assistant message.

    Attributes:
        id: Correlation id echoed by the matching tool-result message.
        name: Name of the requested tool.
        arguments: JSON-encoded arguments, as carried by the chat API.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: str = "{}"


class Message(BaseModel):
    """A single chat message.

    Attributes:
        role: Author role.
        content: Text content, if any.
        tool_calls: Tool calls requested by an assistant message.
        tool_call_id: For tool messages, the id of the request being answered.
    """

    role: Role
    content: str | None = None
    tool_calls: list[ToolCallRequest] | None = None
    tool_call_id: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        """Whether this is an assistant message carrying tool-call requests."""
        return self.role == Role.ASSISTANT and bool(self.tool_calls)

    def to_chat(self) -> dict[str, Any]:
        """Render the message in OpenAI chat-completion wire format."""
        data: dict[str, Any] = {"role": str(self.role), "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data


class ToolUse(BaseModel):
    """A request to run one tool with the given parameters.

    Attributes:
        name: Tool name.
        params: Raw parameters as supplied by the model.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    params: dict[str, Any] = Field(default_factory=dict)


class ToolCallRecord(BaseModel):
    """Audit record of a completed tool call. Never mutated once written.

    Attributes:
        id: Correlation id of the call.
        tool_name: Name of the tool that ran.
        parameters: Arguments the tool ran with.
        result: Result payload on success.
        error: Error string on failure.
        timestamp: When the call finished.
        execution_time_ms: Wall-clock duration in milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    tool_name: str
    parameters: dict[str, Any]
    result: Any = None
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    execution_time_ms: int = 0


class IssueRange(BaseModel):
    """Line range a finding spans."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    start_line: int | None = Field(default=None, alias="startLine")
    end_line: int | None = Field(default=None, alias="endLine")


class AccumulatedIssue(BaseModel):
    """A structured finding extracted from model output.

    Findings arrive as camelCase JSON from the model; both spellings are
    accepted, and ``improvement`` is read as the suggested fix. Unknown keys
    are preserved.

    Attributes:
        path: File the finding refers to.
        line: Primary line number.
        range: Optional line span.
        code_smell_type: Finding category.
        severity: Severity label (e.g. "high").
        message: Evidence and explanation.
        suggested_fix: Proposed remediation.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    path: str | None = None
    line: int | None = None
    range: IssueRange | None = None
    code_smell_type: str | None = Field(default=None, alias="codeSmellType")
    severity: str | None = None
    message: str | None = None
    suggested_fix: str | None = Field(
        default=None,
        validation_alias=AliasChoices("suggestedFix", "improvement", "suggested_fix"),
        serialization_alias="suggestedFix",
    )

    @property
    def key(self) -> tuple[str | None, int | None, str | None]:
        """Uniqueness key used for deduplication."""
        return (self.path, self.line, self.code_smell_type)


class ConversationContext(BaseModel):
    """State of one review conversation.

    Task metadata and the findings accumulator are typed fields so their
    ownership is explicit. The accumulator lives outside ``messages`` and is
    never touched by trimming or compaction.

    Attributes:
        id: Opaque context id.
        messages: Ordered message history (system message excluded).
        tool_call_history: Append-only tool call audit log.
        workspace_path: Root of the workspace under review.
        repository_id: Optional repository identifier.
        user_id: Optional requester identity.
        access_token: Optional bearer credential for collaborators.
        workspace: Workspace accessor handed to tool handlers.
        task_id: Task identifier used for event channels.
        owner: Repository owner for finding posting.
        repo: Repository name for finding posting.
        pr_number: Pull request number for finding posting.
        accumulated_issues: Findings collected across all turns.
        metadata: Free-form metadata.
        created_at: Creation time.
        updated_at: Last mutation time.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    messages: list[Message] = Field(default_factory=list)
    tool_call_history: list[ToolCallRecord] = Field(default_factory=list)
    workspace_path: str
    repository_id: int | None = None
    user_id: int | None = None
    access_token: str | None = Field(default=None, exclude=True)
    workspace: Any = Field(default=None, exclude=True)
    task_id: str | None = None
    owner: str | None = None
    repo: str | None = None
    pr_number: int | None = None
    accumulated_issues: list[AccumulatedIssue] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def touch(self) -> None:
        """Mark the context as updated now."""
        self.updated_at = datetime.now(UTC)
