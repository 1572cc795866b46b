"""Tests for DecisionEngine."""
import pytest

from argus.orchestration.decisions import CODE_REVIEW_CRITERIA, DecisionEngine
from argus.orchestration.types import DecisionCriteria, WorkflowContext, WorkflowExecution
from argus.tools.errors import ErrorKind, classify


@pytest.fixture
def decisions() -> DecisionEngine:
    return DecisionEngine()


def _execution(total: int, completed: int, failed: int = 0) -> WorkflowExecution:
    return WorkflowExecution(
        id="workflow_1",
        name="Test",
        steps=[],
        context=WorkflowContext(workspace_path="/w"),
        total_steps=total,
        completed_steps=completed,
        failed_steps=failed,
    )


class TestCriteria:
    """Tests for criteria lookup."""

    def test_unknown_type_falls_back_to_default(self, decisions: DecisionEngine) -> None:
        assert decisions.get_decision_criteria("mystery") == DecisionCriteria()
        assert decisions.get_decision_criteria("code_review") == CODE_REVIEW_CRITERIA

    def test_set_criteria(self, decisions: DecisionEngine) -> None:
        custom = DecisionCriteria(max_steps=2)

        decisions.set_decision_criteria("custom", custom)

        assert decisions.criteria_summary()["custom"] == custom


class TestShouldContinue:
    """Tests for should_continue_execution."""

    @pytest.mark.parametrize(
        ("execution", "criteria", "reason"),
        [
            (_execution(10, 5), DecisionCriteria(max_steps=5), "Maximum steps reached: 5"),
            (_execution(10, 1, failed=2), DecisionCriteria(max_errors=2), "Maximum errors reached: 2"),
            (_execution(2, 2), DecisionCriteria(require_all_steps=True), "All required steps completed"),
            (_execution(10, 8), DecisionCriteria(), "Success threshold reached: 80%"),
        ],
    )
    def test_stop_reasons(
        self, decisions: DecisionEngine, execution: WorkflowExecution, criteria: DecisionCriteria, reason: str
    ) -> None:
        decision = decisions.should_continue_execution(execution, criteria)

        assert decision.proceed is False
        assert decision.reason == reason

    def test_proceeds_otherwise(self, decisions: DecisionEngine) -> None:
        assert decisions.should_continue_execution(_execution(10, 2), DecisionCriteria()).proceed is True


class TestLimitReason:
    """Tests for limit_reason."""

    def test_no_limit_hit(self) -> None:
        assert DecisionEngine.limit_reason(_execution(10, 2), DecisionCriteria()) is None

    def test_error_limit(self) -> None:
        reason = DecisionEngine.limit_reason(_execution(10, 0, failed=5), DecisionCriteria())

        assert reason == "Maximum errors reached: 5"

    def test_threshold_alone_is_not_a_limit(self) -> None:
        assert DecisionEngine.limit_reason(_execution(10, 8), DecisionCriteria()) is None


class TestShouldRetry:
    """Tests for should_retry_step."""

    def test_exponential_backoff_is_capped(self, decisions: DecisionEngine) -> None:
        assert decisions.should_retry_step(0, 3, ErrorKind.NETWORK).delay_ms == 1000
        assert decisions.should_retry_step(2, 3, ErrorKind.TOOL_EXECUTION).delay_ms == 4000
        assert decisions.should_retry_step(6, 10, ErrorKind.GENERIC).delay_ms == 30_000

    def test_retries_exhausted(self, decisions: DecisionEngine) -> None:
        decision = decisions.should_retry_step(3, 3, ErrorKind.NETWORK)

        assert decision.retry is False
        assert decision.reason == "Maximum retries reached: 3"

    @pytest.mark.parametrize("kind", [ErrorKind.VALIDATION, ErrorKind.FILE_SYSTEM, ErrorKind.TOOL_NOT_FOUND])
    def test_non_retryable_kind(self, decisions: DecisionEngine, kind: ErrorKind) -> None:
        assert decisions.should_retry_step(0, 3, kind).retry is False

    def test_classified_errors_are_retryable(self, decisions: DecisionEngine) -> None:
        assert decisions.should_retry_step(0, 3, classify(ConnectionError("reset"))).retry is True
        assert decisions.should_retry_step(0, 3, classify(RuntimeError("boom"))).retry is True


class TestMeetsSuccessCriteria:
    """Tests for meets_success_criteria."""

    @pytest.mark.parametrize(
        ("execution", "criteria", "expected"),
        [
            (_execution(2, 2), DecisionCriteria(require_all_steps=True), True),
            (_execution(2, 1, failed=1), DecisionCriteria(require_all_steps=True), False),
            (_execution(1, 1, failed=1), DecisionCriteria(require_all_steps=True), False),
            (_execution(10, 8, failed=2), DecisionCriteria(), True),
            (_execution(10, 7, failed=3), DecisionCriteria(), False),
            (_execution(0, 0), DecisionCriteria(), True),
        ],
    )
    def test_rules(self, execution: WorkflowExecution, criteria: DecisionCriteria, expected: bool) -> None:
        assert DecisionEngine.meets_success_criteria(execution, criteria) is expected


class TestEvaluateSuccess:
    """Tests for evaluate_workflow_success."""

    def test_clean_run_succeeds(self, decisions: DecisionEngine) -> None:
        evaluation = decisions.evaluate_workflow_success(_execution(10, 10), DecisionCriteria())

        assert evaluation.success is True
        assert "Low error rate" in evaluation.reasons

    def test_mostly_failed_run(self, decisions: DecisionEngine) -> None:
        evaluation = decisions.evaluate_workflow_success(_execution(10, 2, failed=8), DecisionCriteria())

        assert evaluation.success is False
        assert "High error rate: 80.0%" in evaluation.reasons
