# argus/orchestration/orchestrator.py
"""Entry point that runs review workflows on behalf of users.

Tracks one AgentState per user so a running workflow can be inspected or
cancelled by user id.
"""
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field

from argus.core.constants import ToolName
from argus.orchestration.aggregator import (
    CODE_REVIEW_AGGREGATION,
    FILE_ANALYSIS_AGGREGATION,
    QUICK_TASK_AGGREGATION,
    AggregatedResult,
    ResultAggregator,
)
from argus.orchestration.types import (
    DecisionCriteria,
    ResultAggregation,
    StepDefinition,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowResult,
)
from argus.orchestration.workflow import (
    WorkflowEngine,
    create_code_review_workflow,
    create_file_analysis_workflow,
    new_workflow_id,
)


AnalysisType = Literal["comprehensive", "quick", "security"]

_ANALYSIS_SEARCHES: dict[str, tuple[str, str]] = {
    "comprehensive": ("Search for patterns", "(TODO|FIXME|BUG|HACK|XXX)"),
    "security": ("Security analysis", "(password|secret|key|token|auth)"),
}


def with_criteria_overrides(definition: WorkflowDefinition, overrides: dict[str, Any]) -> WorkflowDefinition:
    """Copy of ``definition`` whose decision criteria carry ``overrides``.

    The definition's own criteria are the base; shared criteria are not touched.
    """
    criteria = DecisionCriteria.model_validate({**definition.decision_criteria.model_dump(), **overrides})
    return definition.model_copy(update={"decision_criteria": criteria})


class AgentState(BaseModel):
    """Per-user bookkeeping of workflow runs.

    Attributes:
        user_id: Owner of the state.
        workspace_path: Workspace of the latest run.
        current_workflow_id: Workflow currently running, if any.
        is_processing: Whether a workflow is running.
        success_count: Successful runs.
        error_count: Failed runs.
        last_activity: Time of the last change.
    """

    user_id: int
    workspace_path: str
    current_workflow_id: str | None = None
    is_processing: bool = False
    success_count: int = 0
    error_count: int = 0
    last_activity: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AgentOrchestrator:
    """Runs code review, file analysis and custom workflows.

    Attributes:
        engine: Workflow engine executing the definitions.
        decisions: Decision rules shared with the engine.
        aggregator: Result aggregator for presentation.
    """

    def __init__(
        self,
        engine: WorkflowEngine,
        aggregator: ResultAggregator | None = None,
    ) -> None:
        self.engine = engine
        self.decisions = engine.decisions
        self.aggregator = aggregator or ResultAggregator()
        self._states: dict[int, AgentState] = {}

    async def execute_code_review(
        self,
        user_id: int,
        context: WorkflowContext,
        custom_criteria: dict[str, Any] | None = None,
    ) -> WorkflowResult:
        """Run the single-step review workflow.

        Args:
            user_id: Requesting user.
            context: Workflow inputs, including owner, repo and pull request.
            custom_criteria: Overrides applied to a copy of the workflow's criteria.

        Returns:
            WorkflowResult whose review step result is the ReviewOutcome.
        """
        logger.info("Starting code review workflow", user_id=user_id, workspace_path=context.workspace_path)
        definition = create_code_review_workflow(context)
        if custom_criteria:
            definition = with_criteria_overrides(definition, custom_criteria)
        return await self._run(user_id, definition, context)

    async def execute_file_analysis(
        self,
        user_id: int,
        file_path: str,
        context: WorkflowContext,
        custom_criteria: dict[str, Any] | None = None,
    ) -> WorkflowResult:
        logger.info("Starting file analysis workflow", user_id=user_id, file_path=file_path)
        definition = create_file_analysis_workflow(file_path)
        if custom_criteria:
            definition = with_criteria_overrides(definition, custom_criteria)
        return await self._run(user_id, definition, context)

    async def execute_custom_workflow(
        self,
        user_id: int,
        definition: WorkflowDefinition,
        context: WorkflowContext,
        custom_criteria: dict[str, Any] | None = None,
    ) -> WorkflowResult:
        logger.info("Starting custom workflow", user_id=user_id, workflow_name=definition.name)
        if custom_criteria:
            definition = with_criteria_overrides(definition, custom_criteria)
        return await self._run(user_id, definition, context)

    async def _run(self, user_id: int, definition: WorkflowDefinition, context: WorkflowContext) -> WorkflowResult:
        workflow_id = new_workflow_id()
        state = AgentState(
            user_id=user_id,
            workspace_path=context.workspace_path,
            current_workflow_id=workflow_id,
            is_processing=True,
        )
        previous = self._states.get(user_id)
        if previous is not None:
            state.success_count = previous.success_count
            state.error_count = previous.error_count
        self._states[user_id] = state

        try:
            result = await self.engine.execute_workflow(definition, context, workflow_id=workflow_id)
        except Exception:
            state.error_count += 1
            raise
        else:
            if result.success:
                state.success_count += 1
            else:
                state.error_count += 1
            return result
        finally:
            state.is_processing = False
            state.current_workflow_id = None
            state.last_activity = datetime.now(UTC)

    def get_agent_state(self, user_id: int) -> AgentState | None:
        return self._states.get(user_id)

    def is_agent_processing(self, user_id: int) -> bool:
        state = self._states.get(user_id)
        return state.is_processing if state else False

    def cancel_agent_workflow(self, user_id: int) -> bool:
        """Cancel the workflow the user is running, if any."""
        state = self._states.get(user_id)
        if state is None or state.current_workflow_id is None:
            return False
        cancelled = self.engine.cancel_workflow(state.current_workflow_id)
        if cancelled:
            logger.info("Agent workflow cancelled", user_id=user_id, workflow_id=state.current_workflow_id)
        return cancelled

    def reset_agent_state(self, user_id: int) -> None:
        self._states.pop(user_id, None)

    def cleanup_inactive_agents(self, max_inactive: timedelta = timedelta(minutes=30)) -> int:
        """Drop idle states older than ``max_inactive``; returns how many were dropped."""
        cutoff = datetime.now(UTC) - max_inactive
        stale = [
            user_id
            for user_id, state in self._states.items()
            if not state.is_processing and state.last_activity < cutoff
        ]
        for user_id in stale:
            del self._states[user_id]
        if stale:
            logger.info("Cleaned up inactive agents", count=len(stale))
        return len(stale)

    def system_statistics(self) -> dict[str, int]:
        return {
            "active_workflows": len(self.engine.get_active_workflows()),
            "total_agents": len(self._states),
            "processing_agents": sum(1 for s in self._states.values() if s.is_processing),
        }

    @staticmethod
    def get_result_aggregation(workflow_type: str) -> ResultAggregation:
        match workflow_type:
            case "file_analysis":
                return FILE_ANALYSIS_AGGREGATION
            case "quick_task":
                return QUICK_TASK_AGGREGATION
            case _:
                return CODE_REVIEW_AGGREGATION

    def aggregate(self, result: WorkflowResult, workflow_type: str = "code_review") -> AggregatedResult:
        return self.aggregator.aggregate(result, self.get_result_aggregation(workflow_type))


def create_custom_workflow(
    name: str,
    description: str,
    steps: Sequence[StepDefinition],
    criteria: dict[str, Any] | None = None,
    aggregation: dict[str, Any] | None = None,
) -> WorkflowDefinition:
    """Assemble a workflow from steps, with optional rule overrides."""
    return WorkflowDefinition(
        name=name,
        description=description,
        steps=list(steps),
        decision_criteria=DecisionCriteria.model_validate(criteria or {}),
        result_aggregation=ResultAggregation.model_validate(aggregation or {}),
        metadata={"type": "custom", "version": "1.0.0", "created_at": datetime.now(UTC).isoformat()},
    )


def create_multi_step_code_analysis_workflow(
    file_paths: Sequence[str],
    analysis_type: AnalysisType,
) -> WorkflowDefinition:
    """Read each file in turn, then run a pattern search for the analysis type.

    Args:
        file_paths: Files to read, in order.
        analysis_type: ``comprehensive`` adds a TODO/FIXME search, ``security``
            a credential keyword search, ``quick`` neither.

    Returns:
        The workflow definition.
    """
    steps = [
        StepDefinition(
            name=f"Analyze {path}",
            tool_name=ToolName.READ_FILE,
            parameters={"path": path},
            dependencies=[f"Analyze {file_paths[index - 1]}"] if index else [],
            max_retries=2,
            timeout_ms=30_000,
        )
        for index, path in enumerate(file_paths)
    ]
    if analysis_type in _ANALYSIS_SEARCHES:
        step_name, regex = _ANALYSIS_SEARCHES[analysis_type]
        steps.append(
            StepDefinition(
                name=step_name,
                tool_name=ToolName.SEARCH_FILES,
                parameters={"path": ".", "regex": regex},
                max_retries=2,
                timeout_ms=60_000,
            )
        )

    return create_custom_workflow(
        f"{analysis_type.capitalize()} Code Analysis",
        f"Multi-step {analysis_type} code analysis for {len(file_paths)} files",
        steps,
        criteria={
            "max_steps": len(steps) + 5,
            "max_errors": 2,
            "max_execution_time_ms": 300_000,
            "success_threshold": 0.9,
            "require_all_steps": True,
        },
        aggregation={"type": "detailed", "format": "markdown"},
    )
