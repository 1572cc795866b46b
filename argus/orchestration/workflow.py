# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Step-based workflow engine.

Steps run strictly in order. Before each step the stop rules are checked;
a step whose condition is false is skipped; a failing step is retried
with a linear backoff until it has made ``max_retries`` attempts. Stop,
retry and success rules come from the DecisionEngine.

Cancellation is cooperative: it is observed before the next step, before
a retry, and by the review loop before its next turn.
"""
import asyncio
import secrets
import string
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel

from argus.core.constants import REVIEW_STEP_NAME, REVIEW_STEP_TOOL, ToolName, channel_for
from argus.core.exceptions import StepTimeoutError, ToolExecutionError
from argus.core.types import ToolUse
from argus.events.bus import EventBus
from argus.events.models import EventType, TaskEvent
from argus.orchestration.decisions import DecisionEngine
from argus.orchestration.review_loop import ReviewOutcome
from argus.orchestration.types import (
    DecisionCriteria,
    ResultAggregation,
    StepDefinition,
    StepStatus,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowResult,
    WorkflowStatus,
    WorkflowStep,
)
from argus.tools.capabilities import ToolCapabilities
from argus.tools.errors import classify
from argus.tools.executor import ToolExecutor


CancelCheck = Callable[[], bool]
ReviewRunner = Callable[[WorkflowContext, CancelCheck], Awaitable[Any]]

RETRY_DELAY_SECONDS = 1.0
_ID_ALPHABET = string.ascii_lowercase + string.digits


def _generate_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def new_workflow_id() -> str:
    return _generate_id("workflow")


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def _success_rate(completed: int, total: int) -> float:
    return completed / total * 100 if total else 0.0


class WorkflowEngine:
    """Executes workflow definitions and tracks the ones in flight.

    Attributes:
        executor: Tool executor used for ordinary tool steps.
        bus: Event bus receiving workflow and step events.
        review_runner: Coroutine run for review-loop steps. It receives the
            workflow context and a callable reporting whether the workflow
            was cancelled.
        decisions: Stop, retry and success rules.
    """

    def __init__(
        self,
        executor: ToolExecutor,
        bus: EventBus,
        review_runner: ReviewRunner | None = None,
        decisions: DecisionEngine | None = None,
    ) -> None:
        self.executor = executor
        self.bus = bus
        self.review_runner = review_runner
        self.decisions = decisions or DecisionEngine()
        self._active: dict[str, WorkflowExecution] = {}

    def _publish(
        self,
        context: WorkflowContext,
        event_type: EventType,
        data: dict[str, Any],
        step_id: str | None = None,
    ) -> None:
        self.bus.publish(
            channel_for(context.task_id),
            TaskEvent(type=event_type, task_id=context.task_id, step_id=step_id, data=data),
        )

    async def execute_workflow(
        self,
        definition: WorkflowDefinition,
        context: WorkflowContext,
        workflow_id: str | None = None,
    ) -> WorkflowResult:
        """Run a workflow to completion.

        Args:
            definition: Steps and rules.
            context: Shared inputs; step results are written to ``context.results``.
            workflow_id: Id to run under; generated when omitted.

        Returns:
            WorkflowResult for the run.

        Raises:
            Exception: Anything raised outside step execution is published as
                workflow_failed and re-raised.
        """
        workflow_id = workflow_id or new_workflow_id()
        execution = WorkflowExecution(
            id=workflow_id,
            name=definition.name,
            steps=[
                WorkflowStep(id=_generate_id("step"), **step.model_dump(), condition=step.condition)
                for step in definition.steps
            ],
            context=context,
            total_steps=len(definition.steps),
        )
        self._active[workflow_id] = execution
        logger.info("Workflow started", workflow_id=workflow_id, name=definition.name, steps=execution.total_steps)
        self._publish(context, EventType.WORKFLOW_STARTED, {"workflowId": workflow_id, "name": definition.name})

        try:
            execution.status = WorkflowStatus.RUNNING
            result = await self._execute_steps(execution, definition)

            if execution.status == WorkflowStatus.CANCELLED:
                self._publish(context, EventType.WORKFLOW_CANCELLED, {"workflowId": workflow_id})
            else:
                execution.status = WorkflowStatus.COMPLETED if result.success else WorkflowStatus.FAILED
                execution.end_time = datetime.now(UTC)
                result = result.model_copy(update={"status": execution.status})
                self._publish(
                    context,
                    EventType.WORKFLOW_COMPLETED,
                    {"workflowId": workflow_id, "success": result.success, "summary": result.summary},
                )
            logger.info(
                "Workflow finished",
                workflow_id=workflow_id,
                status=str(execution.status),
                success=result.success,
            )
            return result
        except Exception as e:
            execution.status = WorkflowStatus.FAILED
            execution.end_time = datetime.now(UTC)
            logger.error("Workflow failed", workflow_id=workflow_id, error=str(e))
            self._publish(context, EventType.WORKFLOW_FAILED, {"workflowId": workflow_id, "error": str(e)})
            raise
        finally:
            self._active.pop(workflow_id, None)

    async def _execute_steps(self, execution: WorkflowExecution, definition: WorkflowDefinition) -> WorkflowResult:
        criteria = definition.decision_criteria
        started = time.monotonic()

        for index, step in enumerate(execution.steps):
            stop_reason = self._stop_reason(execution, criteria)
            if stop_reason:
                logger.info("Workflow stopping", workflow_id=execution.id, reason=stop_reason)
                break

            if step.condition is not None and not step.condition(execution.context):
                step.status = StepStatus.SKIPPED
                logger.debug("Step skipped", step=step.name)
                continue

            execution.current_step_index = index
            try:
                await self._execute_step(step, execution)
                execution.completed_steps += 1
                execution.current_step_index = index + 1
            except Exception as e:
                step.status = StepStatus.FAILED
                step.error = str(e) or type(e).__name__
                execution.failed_steps += 1
                logger.warning("Step failed permanently", step=step.name, attempts=step.retry_count, error=step.error)
                if criteria.stop_on_first_error:
                    break

        if execution.status != WorkflowStatus.CANCELLED:
            execution.end_time = datetime.now(UTC)
        success = execution.status != WorkflowStatus.CANCELLED and self.decisions.meets_success_criteria(
            execution, criteria
        )
        evaluation = self.decisions.evaluate_workflow_success(execution, criteria)
        return WorkflowResult(
            success=success,
            workflow_id=execution.id,
            name=execution.name,
            status=execution.status,
            execution_time_ms=int((time.monotonic() - started) * 1000),
            steps_completed=execution.completed_steps,
            steps_total=execution.total_steps,
            results=dict(execution.context.results),
            errors=[
                f"{step.name}: {step.error or 'Unknown error'}"
                for step in execution.steps
                if step.status == StepStatus.FAILED
            ],
            summary=self._summary(execution),
            metadata={
                **definition.metadata,
                "name": definition.name,
                "description": definition.description,
                "status": str(execution.status),
                "start_time": execution.start_time.isoformat(),
                "end_time": execution.end_time.isoformat() if execution.end_time else None,
                "total_steps": execution.total_steps,
                "completed_steps": execution.completed_steps,
                "failed_steps": execution.failed_steps,
                "skipped_steps": sum(1 for s in execution.steps if s.status == StepStatus.SKIPPED),
                "score": round(evaluation.score, 3),
                "score_reasons": evaluation.reasons,
            },
            steps=[step.model_copy() for step in execution.steps],
        )

    async def _execute_step(self, step: WorkflowStep, execution: WorkflowExecution) -> None:
        """Run one step, retrying until ``max_retries`` attempts have been made.

        Raises:
            Exception: The last attempt's error once retries are exhausted,
                the error is not retryable, or the workflow was cancelled.
        """
        context = execution.context
        while True:
            step.status = StepStatus.RUNNING
            step.start_time = datetime.now(UTC)
            step.retry_count += 1
            self._publish(
                context,
                EventType.STEP_STARTED,
                {"name": step.name, "toolName": step.tool_name, "attempt": step.retry_count},
                step_id=step.id,
            )
            try:
                result = await asyncio.wait_for(self._run_step(step, execution), timeout=step.timeout_ms / 1000)
            except TimeoutError:
                error: Exception = StepTimeoutError(f"Step '{step.name}' timed out after {step.timeout_ms}ms")
            except Exception as e:
                error = e
            else:
                step.status = StepStatus.COMPLETED
                step.result = result
                step.error = None
                step.end_time = datetime.now(UTC)
                context.results[step.id] = result
                self._publish(
                    context,
                    EventType.STEP_COMPLETED,
                    {"name": step.name, "toolName": step.tool_name, "result": _jsonable(result)},
                    step_id=step.id,
                )
                return

            step.status = StepStatus.FAILED
            step.error = str(error) or type(error).__name__
            step.end_time = datetime.now(UTC)
            self._publish(
                context,
                EventType.STEP_FAILED,
                {"name": step.name, "toolName": step.tool_name, "error": step.error},
                step_id=step.id,
            )
            if execution.status == WorkflowStatus.CANCELLED:
                logger.info("Not retrying step of cancelled workflow", step=step.name)
                raise error
            decision = self.decisions.should_retry_step(step.retry_count, step.max_retries, classify(error))
            if not decision.retry:
                logger.debug("Step not retried", step=step.name, reason=decision.reason)
                raise error

            logger.info(
                "Retrying step",
                step=step.name,
                attempt=step.retry_count + 1,
                max_retries=step.max_retries,
            )
            await asyncio.sleep(RETRY_DELAY_SECONDS * step.retry_count)

    async def _run_step(self, step: WorkflowStep, execution: WorkflowExecution) -> Any:
        context = execution.context
        if step.tool_name == REVIEW_STEP_TOOL:
            if self.review_runner is None:
                raise ToolExecutionError(step.tool_name, "no review runner configured")
            outcome = await self.review_runner(context, lambda: execution.status == WorkflowStatus.CANCELLED)
            if isinstance(outcome, ReviewOutcome) and outcome.error:
                # Partial findings stay available to the caller of a failed review.
                step.result = outcome
                context.results[step.id] = outcome
                raise ToolExecutionError(step.tool_name, outcome.error)
            return outcome

        outcome = await self.executor.execute(
            ToolUse(name=step.tool_name, params=step.parameters),
            ToolCapabilities(
                cwd=context.workspace_path,
                user_id=context.user_id,
                repository_id=context.repository_id,
                workspace=context.workspace,
                access_token=context.access_token,
            ),
        )
        if not outcome.success:
            raise ToolExecutionError(step.tool_name, outcome.error or "Unknown error")
        return outcome.result

    def _stop_reason(self, execution: WorkflowExecution, criteria: DecisionCriteria) -> str | None:
        if execution.status == WorkflowStatus.CANCELLED:
            return "cancelled"
        return self.decisions.limit_reason(execution, criteria)

    @staticmethod
    def _summary(execution: WorkflowExecution) -> str:
        rate = _success_rate(execution.completed_steps, execution.total_steps)
        return (
            f'Workflow "{execution.name}" completed: {execution.completed_steps}/{execution.total_steps} '
            f"steps ({rate:.1f}% success rate). {execution.failed_steps} steps failed."
        )

    def get_active_workflows(self) -> list[WorkflowExecution]:
        return list(self._active.values())

    def get_workflow(self, workflow_id: str) -> WorkflowExecution | None:
        return self._active.get(workflow_id)

    def cancel_workflow(self, workflow_id: str) -> bool:
        """Cancel a running workflow before its next step.

        Returns:
            True if the workflow was running and is now cancelled.
        """
        execution = self._active.get(workflow_id)
        if execution is None or execution.status != WorkflowStatus.RUNNING:
            return False
        execution.status = WorkflowStatus.CANCELLED
        execution.end_time = datetime.now(UTC)
        logger.info("Workflow cancelled", workflow_id=workflow_id)
        return True


def create_code_review_workflow(context: WorkflowContext) -> WorkflowDefinition:
    """Single-step workflow that runs the review loop."""
    return WorkflowDefinition(
        name="Code Review Workflow",
        description="LLM-orchestrated PR code review",
        steps=[
            StepDefinition(
                name=REVIEW_STEP_NAME,
                tool_name=REVIEW_STEP_TOOL,
                parameters={
                    "task_id": context.task_id,
                    "owner": context.owner,
                    "repo": context.repo,
                    "pr_number": context.pr_number,
                },
                max_retries=1,
                timeout_ms=300_000,
            )
        ],
        decision_criteria=DecisionCriteria(
            max_steps=1,
            max_errors=1,
            max_execution_time_ms=900_000,
            success_threshold=1.0,
            stop_on_first_error=True,
            require_all_steps=True,
        ),
        result_aggregation=ResultAggregation(type="detailed", format="markdown"),
        metadata={"type": "code_review", "version": "1.0.0"},
    )


def create_file_analysis_workflow(file_path: str) -> WorkflowDefinition:
    """Read a file, then search it for declarations."""
    return WorkflowDefinition(
        name="File Analysis Workflow",
        description="Analyze a specific file",
        steps=[
            StepDefinition(
                name="Read File",
                tool_name=ToolName.READ_FILE,
                parameters={"path": file_path},
                max_retries=3,
                timeout_ms=30_000,
            ),
            StepDefinition(
                name="Search for Patterns",
                tool_name=ToolName.SEARCH_FILES,
                parameters={"path": file_path, "regex": "(function|class|interface|type)"},
                dependencies=[ToolName.READ_FILE],
                max_retries=2,
                timeout_ms=30_000,
            ),
        ],
        decision_criteria=DecisionCriteria(
            max_steps=5,
            max_errors=2,
            max_execution_time_ms=120_000,
            success_threshold=0.8,
            stop_on_first_error=True,
            require_all_steps=True,
        ),
        result_aggregation=ResultAggregation(type="summary", include_timing=False, format="json"),
        metadata={"type": "file_analysis", "file_path": file_path, "version": "1.0.0"},
    )
