from argus.orchestration.aggregator import (
    AggregatedResult as AggregatedResult,
    ResultAggregator as ResultAggregator,
)
from argus.orchestration.decisions import DecisionEngine as DecisionEngine
from argus.orchestration.orchestrator import AgentOrchestrator as AgentOrchestrator
from argus.orchestration.posting import (
    FindingPoster as FindingPoster,
    GitHubReviewCommentClient as GitHubReviewCommentClient,
)
from argus.orchestration.review_loop import ReviewLoop as ReviewLoop, ReviewOutcome as ReviewOutcome
from argus.orchestration.workflow import WorkflowEngine as WorkflowEngine
