"""Workflow type definitions.

Contains the status enums, step and workflow definitions, stop criteria,
aggregation settings, the runtime WorkflowExecution record and the
WorkflowResult returned to callers.
"""
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


AggregationType = Literal["summary", "detailed", "structured"]
OutputFormat = Literal["json", "text", "markdown"]


def _now() -> datetime:
    return datetime.now(UTC)


class StepStatus(StrEnum):
    """Lifecycle of a workflow step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkflowStatus(StrEnum):
    """Lifecycle of a workflow execution."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DecisionCriteria(BaseModel):
    """Stop and success rules for a workflow.

    Attributes:
        max_steps: Stop once this many steps have completed.
        max_errors: Stop once this many steps have failed.
        max_execution_time_ms: Stop once the workflow has run this long.
        success_threshold: Completed/total ratio required for success.
        stop_on_first_error: Halt after the first failed step.
        require_all_steps: Success requires every step to complete.
    """

    model_config = ConfigDict(frozen=True)

    max_steps: int = Field(default=20, ge=1)
    max_errors: int = Field(default=5, ge=1)
    max_execution_time_ms: int = Field(default=600_000, gt=0)
    success_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    stop_on_first_error: bool = False
    require_all_steps: bool = False


class ResultAggregation(BaseModel):
    """How a workflow result is rendered.

    Attributes:
        type: Level of detail.
        include_metadata: Attach workflow metadata.
        include_errors: Attach error messages.
        include_timing: Attach timing figures.
        format: Output format of the rendered summary.
    """

    model_config = ConfigDict(frozen=True)

    type: AggregationType = "detailed"
    include_metadata: bool = True
    include_errors: bool = True
    include_timing: bool = True
    format: OutputFormat = "markdown"


class WorkflowContext(BaseModel):
    """Inputs shared by every step of one workflow run.

    Attributes:
        workspace_path: Root of the workspace under review.
        repository_id: Optional repository identifier.
        user_id: Requester identity.
        task_id: Task id used for event channels.
        owner: Repository owner.
        repo: Repository name.
        pr_number: Pull request number.
        results: Step results keyed by step id.
        metadata: Free-form metadata.
        workspace: Workspace accessor handed to tools.
        access_token: Bearer credential for collaborators.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    workspace_path: str
    repository_id: int | None = None
    user_id: int | None = None
    task_id: str | None = None
    owner: str | None = None
    repo: str | None = None
    pr_number: int | None = None
    results: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    workspace: Any = Field(default=None, exclude=True)
    access_token: str | None = Field(default=None, exclude=True)


StepCondition = Callable[[WorkflowContext], bool]


class StepDefinition(BaseModel):
    """Declarative description of a step.

    Attributes:
        name: Display name.
        tool_name: Tool to run, or the review-loop step type.
        parameters: Tool parameters.
        dependencies: Names of steps this one builds on (informational).
        condition: Optional predicate; the step is skipped when it is false.
        max_retries: Maximum attempts.
        timeout_ms: Per-attempt timeout.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    dependencies: list[str] = Field(default_factory=list)
    condition: StepCondition | None = Field(default=None, exclude=True)
    max_retries: int = Field(default=3, ge=1)
    timeout_ms: int = Field(default=30_000, gt=0)


class WorkflowStep(StepDefinition):
    """A step inside a running workflow.

    Invariant: ``retry_count <= max_retries``.
    """

    id: str
    retry_count: int = 0
    status: StepStatus = StepStatus.PENDING
    result: Any = None
    error: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class WorkflowDefinition(BaseModel):
    """A named, ordered list of steps plus its rules."""

    name: str
    description: str = ""
    steps: list[StepDefinition]
    decision_criteria: DecisionCriteria = Field(default_factory=DecisionCriteria)
    result_aggregation: ResultAggregation = Field(default_factory=ResultAggregation)
    metadata: dict[str, Any] = Field(default_factory=dict)


class WorkflowExecution(BaseModel):
    """Runtime state of a workflow.

    Attributes:
        id: Workflow id.
        name: Workflow name.
        steps: Steps with their live status.
        context: Shared step inputs and results.
        status: Overall status.
        start_time: When execution began.
        end_time: When execution ended.
        current_step_index: Index of the step being run.
        total_steps: Number of steps.
        completed_steps: Steps that completed.
        failed_steps: Steps that exhausted their retries.
    """

    id: str
    name: str
    steps: list[WorkflowStep]
    context: WorkflowContext
    status: WorkflowStatus = WorkflowStatus.PENDING
    start_time: datetime = Field(default_factory=_now)
    end_time: datetime | None = None
    current_step_index: int = 0
    total_steps: int = 0
    completed_steps: int = 0
    failed_steps: int = 0

    def elapsed_ms(self) -> int:
        end = self.end_time or _now()
        return int((end - self.start_time).total_seconds() * 1000)


class WorkflowResult(BaseModel):
    """Outcome of a workflow run.

    Attributes:
        success: Whether the success rule was met.
        workflow_id: Id of the execution.
        execution_time_ms: Wall-clock duration.
        steps_completed: Number of completed steps.
        steps_total: Number of steps.
        results: Step results keyed by step id.
        errors: ``"name: error"`` entries for failed steps.
        summary: One-line human summary.
        name: Workflow name.
        status: Final workflow status.
        steps: Steps with their final status, results and timings.
        metadata: Workflow metadata plus name, description and counters.
    """

    success: bool
    workflow_id: str
    name: str = ""
    status: WorkflowStatus = WorkflowStatus.COMPLETED
    execution_time_ms: int
    steps_completed: int
    steps_total: int
    results: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    summary: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    steps: list[WorkflowStep] = Field(default_factory=list)
