"""Decision engine: stop, retry and success rules for workflows."""
from loguru import logger
from pydantic import BaseModel, Field

from argus.orchestration.types import DecisionCriteria, WorkflowExecution
from argus.tools.errors import ErrorKind


DEFAULT_CRITERIA = DecisionCriteria()
CODE_REVIEW_CRITERIA = DecisionCriteria(max_steps=15, max_errors=3, max_execution_time_ms=300_000)
FILE_ANALYSIS_CRITERIA = DecisionCriteria(
    max_steps=8,
    max_errors=2,
    max_execution_time_ms=120_000,
    success_threshold=0.9,
    stop_on_first_error=True,
    require_all_steps=True,
)

RETRYABLE_ERROR_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.TOOL_EXECUTION, ErrorKind.GENERIC})
BASE_RETRY_DELAY_MS = 1000
MAX_RETRY_DELAY_MS = 30_000


class ContinueDecision(BaseModel):
    proceed: bool
    reason: str | None = None


class RetryDecision(BaseModel):
    retry: bool
    reason: str | None = None
    delay_ms: int | None = None


class SuccessEvaluation(BaseModel):
    """Weighted success score of a finished workflow.

    Attributes:
        success: Whether the score reached 0.7.
        score: Weighted score in [0, 1].
        reasons: Human-readable contributing factors.
    """

    success: bool
    score: float
    reasons: list[str] = Field(default_factory=list)


class DecisionEngine:
    """Holds decision criteria per workflow type and applies them.

    Unknown workflow types fall back to the ``"default"`` criteria.
    """

    def __init__(self) -> None:
        self._criteria: dict[str, DecisionCriteria] = {
            "default": DEFAULT_CRITERIA,
            "code_review": CODE_REVIEW_CRITERIA,
            "file_analysis": FILE_ANALYSIS_CRITERIA,
        }

    def set_decision_criteria(self, workflow_type: str, criteria: DecisionCriteria) -> None:
        self._criteria[workflow_type] = criteria
        logger.info("Decision criteria set", workflow_type=workflow_type, criteria=criteria.model_dump())

    def get_decision_criteria(self, workflow_type: str) -> DecisionCriteria:
        return self._criteria.get(workflow_type, self._criteria["default"])

    def criteria_summary(self) -> dict[str, DecisionCriteria]:
        return dict(self._criteria)

    @staticmethod
    def limit_reason(execution: WorkflowExecution, criteria: DecisionCriteria) -> str | None:
        """Why the step, error or time limit stops the workflow, or None."""
        if execution.completed_steps >= criteria.max_steps:
            return f"Maximum steps reached: {criteria.max_steps}"
        if execution.failed_steps >= criteria.max_errors:
            return f"Maximum errors reached: {criteria.max_errors}"
        if execution.elapsed_ms() >= criteria.max_execution_time_ms:
            return f"Maximum execution time reached: {criteria.max_execution_time_ms}ms"
        return None

    def should_continue_execution(
        self, execution: WorkflowExecution, criteria: DecisionCriteria
    ) -> ContinueDecision:
        """Decide whether a workflow should keep running.

        Beyond the hard limits, a workflow is also done once every required
        step completed or the success threshold was reached.

        Args:
            execution: Live execution state.
            criteria: Rules to apply.

        Returns:
            ContinueDecision with the stop reason when ``proceed`` is False.
        """
        reason = self.limit_reason(execution, criteria)
        if reason:
            return ContinueDecision(proceed=False, reason=reason)
        if criteria.require_all_steps and execution.completed_steps == execution.total_steps:
            return ContinueDecision(proceed=False, reason="All required steps completed")

        if execution.total_steps and execution.completed_steps > 0:
            rate = execution.completed_steps / execution.total_steps
            if rate >= criteria.success_threshold:
                return ContinueDecision(
                    proceed=False,
                    reason=f"Success threshold reached: {criteria.success_threshold * 100:g}%",
                )
        return ContinueDecision(proceed=True)

    def should_retry_step(self, retry_count: int, max_retries: int, error_kind: str) -> RetryDecision:
        """Decide whether a failed step is retried, with exponential backoff.

        Args:
            retry_count: Attempts made so far.
            max_retries: Attempt ceiling.
            error_kind: Failure category as returned by ``classify``.

        Returns:
            RetryDecision; ``delay_ms`` is ``min(1000 * 2**retry_count, 30000)``.
        """
        if retry_count >= max_retries:
            return RetryDecision(retry=False, reason=f"Maximum retries reached: {max_retries}")
        if error_kind not in RETRYABLE_ERROR_KINDS:
            return RetryDecision(retry=False, reason=f"Error type not retryable: {error_kind}")
        delay = min(BASE_RETRY_DELAY_MS * 2**retry_count, MAX_RETRY_DELAY_MS)
        return RetryDecision(retry=True, delay_ms=delay)

    @staticmethod
    def meets_success_criteria(execution: WorkflowExecution, criteria: DecisionCriteria) -> bool:
        """Pass/fail rule for a finished workflow.

        With ``require_all_steps`` every step must complete and none fail;
        otherwise the completion rate must reach ``success_threshold``.
        """
        if criteria.require_all_steps:
            return execution.failed_steps == 0 and execution.completed_steps == execution.total_steps
        if not execution.total_steps:
            return True
        return execution.completed_steps / execution.total_steps >= criteria.success_threshold

    def evaluate_workflow_success(
        self, execution: WorkflowExecution, criteria: DecisionCriteria
    ) -> SuccessEvaluation:
        """Score a workflow.

        Weights: success rate 40%, threshold or all-steps 30%, error rate up
        to 20%, time efficiency 10%. A score of 0.7 or more is a success.
        """
        reasons: list[str] = []
        total = execution.total_steps or 1
        success_rate = execution.completed_steps / total
        score = success_rate * 0.4

        if criteria.require_all_steps and execution.completed_steps == execution.total_steps:
            score += 0.3
            reasons.append("All required steps completed")
        elif success_rate >= criteria.success_threshold:
            score += 0.3
            reasons.append(f"Success threshold met: {success_rate * 100:.1f}%")

        error_rate = execution.failed_steps / total
        if error_rate <= 0.1:
            score += 0.2
            reasons.append("Low error rate")
        elif error_rate <= 0.3:
            score += 0.1
            reasons.append("Acceptable error rate")
        else:
            reasons.append(f"High error rate: {error_rate * 100:.1f}%")

        efficiency = max(0.0, 1 - execution.elapsed_ms() / criteria.max_execution_time_ms)
        score += efficiency * 0.1
        if efficiency > 0.8:
            reasons.append("Efficient execution time")

        return SuccessEvaluation(success=score >= 0.7, score=score, reasons=reasons)
