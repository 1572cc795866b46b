"""Event models for task progress tracking."""
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventType(StrEnum):
    """Event types published while a review runs.

    Events are categorized into:
    - Workflow: start, complete, fail of a workflow execution
    - Steps: per-step progress inside a workflow
    - Conversation: model input/output and text deltas
    - Tools: tool call start and end
    - Findings: accumulator growth and the final summary
    - Memory: context compaction
    """

    # Workflow
    WORKFLOW_STARTED = "workflow_started"
    WORKFLOW_COMPLETED = "workflow_completed"
    WORKFLOW_FAILED = "workflow_failed"
    WORKFLOW_CANCELLED = "workflow_cancelled"

    # Steps
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"

    # Conversation
    LLM_INPUT = "llm_input"
    LLM_OUTPUT = "llm_output"
    ASSISTANT_DELTA = "assistant_delta"
    ASSISTANT_COMPLETED = "assistant_completed"
    THINKING_CHECKPOINT = "thinking_checkpoint"

    # Tools
    TOOL_CALL_STARTED = "tool_call_started"
    TOOL_CALL_COMPLETED = "tool_call_completed"

    # Findings
    CODE_SMELLS_ACCUMULATED = "code_smells_accumulated"
    FINAL_CODE_SMELLS_SUMMARY = "final_code_smells_summary"
    FINDINGS_POSTED = "findings_posted"

    # Memory
    SLIDING_WINDOW_APPLIED = "sliding_window_applied"

    # System
    REVIEW_ERROR = "review_error"


class TaskEvent(BaseModel):
    """Event published on a task channel.

    Attributes:
        type: Event category.
        task_id: Task the event belongs to, if any.
        step_id: Workflow step the event belongs to, if any.
        message: Optional human-readable summary.
        data: Structured payload.
        timestamp: Publication time, stamped by the bus.
    """

    model_config = ConfigDict(frozen=True)

    type: EventType
    task_id: str | None = None
    step_id: str | None = None
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime | None = None
