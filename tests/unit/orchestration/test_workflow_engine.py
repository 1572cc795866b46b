"""Tests for WorkflowEngine."""
import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from argus.core.constants import REVIEW_STEP_TOOL, channel_for
from argus.core.exceptions import NetworkError, ToolValidationError
from argus.core.types import AccumulatedIssue
from argus.events.bus import EventBus
from argus.events.models import EventType
from argus.llm.client import ChatResponse
from argus.llm.context import ContextStore
from argus.orchestration.review_loop import ReviewLoop, ReviewOutcome
from argus.orchestration.types import (
    DecisionCriteria,
    StepDefinition,
    StepStatus,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowStatus,
)
from argus.orchestration.workflow import (
    WorkflowEngine,
    create_code_review_workflow,
    create_file_analysis_workflow,
)
from argus.tools.executor import ToolExecutor
from argus.tools.workspace import LocalWorkspace


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("argus.orchestration.workflow.RETRY_DELAY_SECONDS", 0)


@pytest.fixture
def context(workspace: LocalWorkspace, workspace_dir: Path) -> WorkflowContext:
    return WorkflowContext(workspace_path=str(workspace_dir), user_id=1, task_id="wf", workspace=workspace)


@pytest.fixture
def engine(executor: ToolExecutor, bus: EventBus) -> WorkflowEngine:
    return WorkflowEngine(executor, bus)


def _definition(*steps: StepDefinition, **criteria: Any) -> WorkflowDefinition:
    return WorkflowDefinition(name="Test", steps=list(steps), decision_criteria=DecisionCriteria(**criteria))


def _read(path: str, **kwargs: Any) -> StepDefinition:
    return StepDefinition(name=f"Read {path}", tool_name="read_file", parameters={"path": path}, **kwargs)


class TestExecuteWorkflow:
    """Tests for WorkflowEngine.execute_workflow."""

    async def test_runs_steps_in_order(self, engine: WorkflowEngine, context: WorkflowContext) -> None:
        result = await engine.execute_workflow(_definition(_read("src/app.py"), _read("src/util.py")), context)

        assert result.success is True
        assert result.status == WorkflowStatus.COMPLETED
        assert result.steps_completed == 2
        assert [s.status for s in result.steps] == [StepStatus.COMPLETED, StepStatus.COMPLETED]
        assert context.results[result.steps[1].id]["filePath"] == "src/util.py"
        assert result.summary.startswith('Workflow "Test" completed: 2/2 steps (100.0% success rate)')

    async def test_failing_step_makes_exactly_max_retries_attempts(
        self, engine: WorkflowEngine, context: WorkflowContext, captured_events: Callable
    ) -> None:
        events = captured_events(channel_for("wf"))

        result = await engine.execute_workflow(_definition(_read("missing.py", max_retries=3)), context)

        step = result.steps[0]
        assert step.status == StepStatus.FAILED
        assert step.retry_count == 3
        assert sum(1 for e in events if e.type == EventType.STEP_STARTED) == 3
        assert sum(1 for e in events if e.type == EventType.STEP_FAILED) == 3
        assert result.errors[0].startswith("Read missing.py: Tool 'read_file' execution failed")
        assert result.success is False

    async def test_step_succeeding_on_retry(self, bus: EventBus, context: WorkflowContext) -> None:
        runner = AsyncMock(side_effect=[RuntimeError("flaky"), {"loops": 1}])
        engine = WorkflowEngine(AsyncMock(), bus, review_runner=runner)
        step = StepDefinition(name="Review", tool_name=REVIEW_STEP_TOOL, max_retries=2)

        result = await engine.execute_workflow(_definition(step), context)

        assert result.success is True
        assert result.steps[0].retry_count == 2
        assert runner.await_count == 2

    async def test_condition_false_skips_step(self, engine: WorkflowEngine, context: WorkflowContext) -> None:
        skipped = _read("src/app.py").model_copy(update={"condition": lambda ctx: False})

        result = await engine.execute_workflow(_definition(skipped, _read("src/util.py")), context)

        assert [s.status for s in result.steps] == [StepStatus.SKIPPED, StepStatus.COMPLETED]
        assert result.metadata["skipped_steps"] == 1

    async def test_stop_on_first_error(self, engine: WorkflowEngine, context: WorkflowContext) -> None:
        definition = _definition(_read("missing.py", max_retries=1), _read("src/app.py"), stop_on_first_error=True)

        result = await engine.execute_workflow(definition, context)

        assert [s.status for s in result.steps] == [StepStatus.FAILED, StepStatus.PENDING]
        assert result.steps_completed == 0

    async def test_max_steps_stops_execution(self, engine: WorkflowEngine, context: WorkflowContext) -> None:
        definition = _definition(_read("src/app.py"), _read("src/util.py"), max_steps=1, success_threshold=0.5)

        result = await engine.execute_workflow(definition, context)

        assert result.steps_completed == 1
        assert result.steps[1].status == StepStatus.PENDING
        assert result.success is True

    async def test_timeout_counts_as_failure(self, bus: EventBus, context: WorkflowContext) -> None:
        async def slow(_: WorkflowContext, __: Callable[[], bool]) -> None:
            await asyncio.sleep(1)

        engine = WorkflowEngine(AsyncMock(), bus, review_runner=slow)
        step = StepDefinition(name="Review", tool_name=REVIEW_STEP_TOOL, max_retries=1, timeout_ms=10)

        result = await engine.execute_workflow(_definition(step), context)

        assert "timed out after 10ms" in result.steps[0].error

    async def test_review_step_without_runner_fails(self, engine: WorkflowEngine, context: WorkflowContext) -> None:
        step = StepDefinition(name="Review", tool_name=REVIEW_STEP_TOOL, max_retries=1)

        result = await engine.execute_workflow(_definition(step), context)

        assert "no review runner configured" in result.steps[0].error

    async def test_cancel_before_next_step(
        self, bus: EventBus, context: WorkflowContext, captured_events: Callable, executor: ToolExecutor
    ) -> None:
        events = captured_events(channel_for("wf"))
        engine: WorkflowEngine

        async def cancel(_: WorkflowContext, is_cancelled: Callable[[], bool]) -> str:
            assert is_cancelled() is False
            assert engine.cancel_workflow("workflow_fixed") is True
            assert is_cancelled() is True
            return "done"

        engine = WorkflowEngine(executor, bus, review_runner=cancel)
        definition = _definition(StepDefinition(name="Review", tool_name=REVIEW_STEP_TOOL), _read("src/app.py"))

        result = await engine.execute_workflow(definition, context, workflow_id="workflow_fixed")

        assert result.success is False
        assert result.status == WorkflowStatus.CANCELLED
        assert result.steps[1].status == StepStatus.PENDING
        assert EventType.WORKFLOW_CANCELLED in [e.type for e in events]
        assert engine.get_workflow("workflow_fixed") is None

    def test_cancel_unknown_workflow(self, engine: WorkflowEngine) -> None:
        assert engine.cancel_workflow("nope") is False

    async def test_cancel_during_review_turn_stops_the_review(
        self,
        executor: ToolExecutor,
        bus: EventBus,
        store: ContextStore,
        driver_factory: Callable,
        context: WorkflowContext,
    ) -> None:
        driver, client = driver_factory([ChatResponse(content="Still looking.")])
        scripted_chat = client.chat
        engine: WorkflowEngine

        async def cancelling_chat(request: Any) -> ChatResponse:
            engine.cancel_workflow("workflow_fixed")
            return await scripted_chat(request)

        client.chat = cancelling_chat
        loop = ReviewLoop(driver, store, bus, max_loops=4)
        engine = WorkflowEngine(executor, bus, review_runner=loop.run_for_workflow)

        result = await engine.execute_workflow(
            create_code_review_workflow(context), context, workflow_id="workflow_fixed"
        )

        assert len(client.requests) == 1
        assert result.status == WorkflowStatus.CANCELLED
        assert result.success is False
        outcome = result.results[result.steps[0].id]
        assert outcome.cancelled is True

    async def test_cancel_prevents_retry(self, bus: EventBus, context: WorkflowContext) -> None:
        engine: WorkflowEngine

        async def cancel_then_fail(_: WorkflowContext, __: Callable[[], bool]) -> None:
            engine.cancel_workflow("workflow_fixed")
            raise RuntimeError("interrupted")

        runner = AsyncMock(side_effect=cancel_then_fail)
        engine = WorkflowEngine(AsyncMock(), bus, review_runner=runner)
        step = StepDefinition(name="Review", tool_name=REVIEW_STEP_TOOL, max_retries=3)

        result = await engine.execute_workflow(_definition(step), context, workflow_id="workflow_fixed")

        assert runner.await_count == 1
        assert result.status == WorkflowStatus.CANCELLED
        assert result.steps[0].status == StepStatus.FAILED


class TestReviewStepFailure:
    """Tests for how review errors reach the workflow result."""

    async def test_review_error_fails_the_step_and_keeps_findings(
        self, bus: EventBus, context: WorkflowContext
    ) -> None:
        issue = AccumulatedIssue(path="src/util.py", line=2, code_smell_type="HARDCODED_SECRETS", message="m")
        runner = AsyncMock(return_value=ReviewOutcome(response="", loops=0, issues=[issue], error="provider down"))
        engine = WorkflowEngine(AsyncMock(), bus, review_runner=runner)

        result = await engine.execute_workflow(create_code_review_workflow(context), context)

        step = result.steps[0]
        assert result.success is False
        assert result.status == WorkflowStatus.FAILED
        assert step.status == StepStatus.FAILED
        assert "provider down" in result.errors[0]
        assert result.results[step.id].issues == [issue]
        assert runner.await_count == 1

    async def test_failing_llm_calls_fail_the_workflow(
        self,
        executor: ToolExecutor,
        bus: EventBus,
        store: ContextStore,
        driver_factory: Callable,
        context: WorkflowContext,
    ) -> None:
        driver, client = driver_factory([NetworkError("connection refused")])
        loop = ReviewLoop(driver, store, bus)
        engine = WorkflowEngine(executor, bus, review_runner=loop.run_for_workflow)

        result = await engine.execute_workflow(create_code_review_workflow(context), context)

        assert result.success is False
        assert result.errors and "connection refused" in result.errors[0]
        assert len(client.requests) == 1


class TestRetryRules:
    """Tests for retry decisions delegated to the DecisionEngine."""

    async def test_validation_error_is_not_retried(self, bus: EventBus, context: WorkflowContext) -> None:
        runner = AsyncMock(side_effect=ToolValidationError("bad input"))
        engine = WorkflowEngine(AsyncMock(), bus, review_runner=runner)
        step = StepDefinition(name="Review", tool_name=REVIEW_STEP_TOOL, max_retries=3)

        result = await engine.execute_workflow(_definition(step), context)

        assert runner.await_count == 1
        assert result.steps[0].retry_count == 1

    async def test_result_carries_success_score(self, engine: WorkflowEngine, context: WorkflowContext) -> None:
        result = await engine.execute_workflow(_definition(_read("src/app.py")), context)

        assert result.metadata["score"] >= 0.7
        assert "Success threshold met: 100.0%" in result.metadata["score_reasons"]


class TestFactories:
    """Tests for the built-in workflow definitions."""

    def test_code_review_workflow(self, context: WorkflowContext) -> None:
        definition = create_code_review_workflow(context.model_copy(update={"owner": "acme", "pr_number": 4}))

        step = definition.steps[0]
        assert step.tool_name == REVIEW_STEP_TOOL
        assert step.max_retries == 1
        assert step.parameters["pr_number"] == 4
        assert definition.decision_criteria.require_all_steps is True

    def test_file_analysis_workflow(self) -> None:
        definition = create_file_analysis_workflow("src/app.py")

        assert [s.tool_name for s in definition.steps] == ["read_file", "search_files"]
        assert definition.metadata["file_path"] == "src/app.py"
