from argus.core.constants import ToolName as ToolName
from argus.core.exceptions import (
    ArgusError as ArgusError,
    ConfigurationError as ConfigurationError,
    ToolError as ToolError,
)
from argus.core.types import (
    AccumulatedIssue as AccumulatedIssue,
    ConversationContext as ConversationContext,
    Message as Message,
    Role as Role,
    ToolCallRecord as ToolCallRecord,
    ToolCallRequest as ToolCallRequest,
    ToolUse as ToolUse,
)
