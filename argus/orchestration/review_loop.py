# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""The review loop: bounded turns over the conversation driver.

Turn 0 sends the task prompt. Each following turn sends a continuation
prompt chosen from the review stage and the previous turn's tool calls.
Findings are extracted from every turn into the context's accumulator, which
lives outside the message history and survives compaction. A turn carrying
the completion marker ends the loop; reaching the turn ceiling forces one
final summary turn.

Errors raised during turns are caught; the accumulated findings are still
deduplicated, optionally posted, and returned with the error recorded.
A cancelled review stops before its next turn and returns what it has.
"""
import json
import re
from collections.abc import Callable, Sequence
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from argus.core.constants import (
    COMPLETION_MARKER,
    DEFAULT_BREVITY_THRESHOLD,
    DEFAULT_COMPACTION_KEEP_RECENT,
    DEFAULT_COMPACTION_MIN_MESSAGES,
    DEFAULT_COMPACTION_TOKEN_THRESHOLD,
    DEFAULT_MAX_LOOPS,
    channel_for,
)
from argus.core.exceptions import ContextNotFoundError
from argus.core.types import AccumulatedIssue, ConversationContext, Message, Role
from argus.events.bus import EventBus
from argus.events.models import EventType, TaskEvent
from argus.llm.context import ContextStore
from argus.llm.conversation import ConversationDriver, TurnResult
from argus.llm.prompts import PromptSettings
from argus.orchestration.findings import dedupe_issues, extract_issues, issues_by_type
from argus.orchestration.posting import FindingPoster, PostingResult
from argus.orchestration.prompts import (
    BREVITY_PROMPT,
    FINAL_PROMPT,
    ReviewStage,
    build_initial_prompt,
    continuation_prompt,
    detect_stage,
)
from argus.orchestration.types import WorkflowContext


_TAG_BLOCK = re.compile(r"<[^>]+>.*?</[^>]+>", re.DOTALL)


class ReviewOutcome(BaseModel):
    """What a review returns, even when it ended in error.

    Attributes:
        response: Concatenated assistant text with the completion marker removed.
        loops: Continuation turns taken.
        issues: Deduplicated findings.
        posting: Result of posting findings, when posting was attempted.
        error: Error that ended the review early, if any.
        cancelled: Whether the review stopped because it was cancelled.
    """

    response: str
    loops: int
    issues: list[AccumulatedIssue] = Field(default_factory=list)
    posting: PostingResult | None = None
    error: str | None = None
    cancelled: bool = False


def _never_cancelled() -> bool:
    return False


def has_finished(text: str) -> bool:
    return COMPLETION_MARKER in text


def remove_finish_marker(text: str) -> str:
    return text.replace(COMPLETION_MARKER, "").strip()


def is_too_long(text: str, threshold: int = DEFAULT_BREVITY_THRESHOLD) -> bool:
    """Whether the text outside tag blocks exceeds ``threshold`` characters."""
    return len(_TAG_BLOCK.sub("", text).strip()) > threshold


def estimate_history_tokens(messages: Sequence[Message]) -> int:
    """Token proxy for a message list: serialized characters divided by four."""
    return len(json.dumps([m.to_chat() for m in messages])) // 4


def compact_messages(messages: Sequence[Message], keep_recent: int) -> list[Message]:
    """Keep the system message plus the most recent messages.

    The window starts ``keep_recent`` messages from the end and moves
    forward past any tool-result messages whose assistant request fell
    outside it. Every assistant tool-call message inside the window is
    followed by all of its results, since the window is a suffix.

    Args:
        messages: Full message history.
        keep_recent: Number of trailing messages to keep.

    Returns:
        The compacted history.
    """
    head = [messages[0]] if messages and messages[0].role == Role.SYSTEM else []
    body = list(messages[len(head):])
    if len(body) <= keep_recent:
        return [*head, *body]

    start = len(body) - keep_recent
    while start < len(body) and body[start].role == Role.TOOL:
        start += 1
    return [*head, *body[start:]]


class ReviewLoop:
    """Drives one review conversation to completion.

    Attributes:
        driver: Conversation driver running single turns.
        store: Context store owning the conversation.
        bus: Event bus for progress events.
        poster: Optional finding poster; findings are posted when the
            context carries owner, repo, pull request and credential.
        max_loops: Continuation turn ceiling.
        brevity_threshold: Characters of prose that trigger a brevity turn.
        compaction_threshold: Estimated tokens that trigger compaction.
        keep_recent: Messages kept by compaction.
        min_messages: Compaction never runs at or below this many messages.
        prompt_settings: System prompt section toggles for every turn.
    """

    def __init__(
        self,
        driver: ConversationDriver,
        store: ContextStore,
        bus: EventBus,
        poster: FindingPoster | None = None,
        *,
        max_loops: int = DEFAULT_MAX_LOOPS,
        brevity_threshold: int = DEFAULT_BREVITY_THRESHOLD,
        compaction_threshold: int = DEFAULT_COMPACTION_TOKEN_THRESHOLD,
        keep_recent: int = DEFAULT_COMPACTION_KEEP_RECENT,
        min_messages: int = DEFAULT_COMPACTION_MIN_MESSAGES,
        prompt_settings: PromptSettings | None = None,
    ) -> None:
        self.driver = driver
        self.store = store
        self.bus = bus
        self.poster = poster
        self.max_loops = max_loops
        self.brevity_threshold = brevity_threshold
        self.compaction_threshold = compaction_threshold
        self.keep_recent = keep_recent
        self.min_messages = min_messages
        self.prompt_settings = prompt_settings

    def _publish(self, context: ConversationContext, event_type: EventType, data: dict[str, Any]) -> None:
        self.bus.publish(
            channel_for(context.task_id),
            TaskEvent(type=event_type, task_id=context.task_id, data=data),
        )

    def _checkpoint(self, context: ConversationContext, checkpoint: str, loop: int, **data: Any) -> None:
        self._publish(context, EventType.THINKING_CHECKPOINT, {"checkpoint": checkpoint, "loop": loop, **data})

    async def run(
        self,
        context_id: str,
        changed_files: Sequence[str] = (),
        is_cancelled: Callable[[], bool] = _never_cancelled,
    ) -> ReviewOutcome:
        """Run a review on an existing context.

        Args:
            context_id: Conversation to drive.
            changed_files: Paths changed by the pull request, listed in the
                task prompt.
            is_cancelled: Checked before every turn after the first; once it
                returns True no further turn is sent.

        Returns:
            ReviewOutcome with the deduplicated findings. Turn errors are
            reported in ``error`` rather than raised.

        Raises:
            ContextNotFoundError: If the context does not exist.
        """
        context = self.store.get(context_id)
        if context is None:
            raise ContextNotFoundError(context_id)

        async with self.store.lock(context_id):
            return await self._run(context, changed_files, is_cancelled)

    async def run_for_workflow(
        self,
        workflow_context: WorkflowContext,
        is_cancelled: Callable[[], bool] = _never_cancelled,
    ) -> ReviewOutcome:
        """Review step entry point for the workflow engine.

        Creates a conversation from the workflow inputs and runs the loop.
        ``changed_files`` in the workflow metadata is passed to the task prompt.
        """
        context_id = self.store.create(
            workflow_context.workspace_path,
            workflow_context.repository_id,
            workflow_context.user_id,
            task_id=workflow_context.task_id,
            owner=workflow_context.owner,
            repo=workflow_context.repo,
            pr_number=workflow_context.pr_number,
            access_token=workflow_context.access_token,
            workspace=workflow_context.workspace,
            initial_task="code_review",
        )
        changed_files = workflow_context.metadata.get("changed_files") or ()
        return await self.run(context_id, changed_files, is_cancelled)

    async def _run(
        self,
        context: ConversationContext,
        changed_files: Sequence[str],
        is_cancelled: Callable[[], bool],
    ) -> ReviewOutcome:
        responses: list[str] = []
        loops = 0
        error: str | None = None

        try:
            turn = await self._ask(
                context, build_initial_prompt(context.owner, context.repo, context.pr_number, changed_files)
            )
            turn, finished = await self._handle_turn(context, turn, loops, responses, is_cancelled)

            stage: ReviewStage | None = ReviewStage.INITIAL
            if not finished:
                detected = detect_stage(turn.clean_response, stage, allow_final=False)
                if detected == stage:
                    self._checkpoint(context, "analysis_started", loops)
                stage = detected

            while not finished and loops < self.max_loops and not is_cancelled():
                loops += 1
                if turn.tool_calls:
                    self._report_tool_calls(context, turn, loops)
                turn = await self._ask(context, continuation_prompt(stage, turn.tool_calls))
                self._compact(context, loops)

                turn, finished = await self._handle_turn(context, turn, loops, responses, is_cancelled)
                if not finished:
                    previous = stage
                    stage = detect_stage(turn.clean_response, stage)
                    if stage == ReviewStage.INVESTIGATION and previous != stage:
                        self._checkpoint(context, "strategic_reasoning", loops)

            if not finished and not is_cancelled():
                logger.warning("Review reached loop ceiling", context_id=context.id, max_loops=self.max_loops)
                self._checkpoint(context, "max_loops_reached", loops)
                turn = await self._ask(context, FINAL_PROMPT)
                await self._handle_turn(context, turn, loops, responses, is_cancelled, allow_brevity=False)
        except Exception as e:
            logger.exception("Review loop failed", context_id=context.id, loops=loops)
            error = str(e)
            self._checkpoint(context, "review_error", loops, error=error)
            self._publish(context, EventType.REVIEW_ERROR, {"error": error, "loop": loops})

        cancelled = is_cancelled()
        if cancelled:
            logger.info("Review cancelled", context_id=context.id, loops=loops)
            self._checkpoint(context, "review_cancelled", loops)
        return await self._finalize(context, "\n\n".join(responses), loops, error, cancelled)

    async def _ask(self, context: ConversationContext, prompt: str) -> TurnResult:
        return await self.driver.process_message(context.id, prompt, self.prompt_settings)

    async def _handle_turn(
        self,
        context: ConversationContext,
        turn: TurnResult,
        loop: int,
        responses: list[str],
        is_cancelled: Callable[[], bool],
        *,
        allow_brevity: bool = True,
    ) -> tuple[TurnResult, bool]:
        """Emit text, accumulate findings and apply the brevity rule.

        Returns:
            The turn the loop should continue from (the brevity turn, when
            one was inserted) and whether the completion marker was seen.
        """
        text = remove_finish_marker(turn.clean_response)
        if text:
            responses.append(text)
            self._publish(context, EventType.ASSISTANT_DELTA, {"text": text, "loop": loop})

        new_issues = extract_issues(text)
        if new_issues:
            total = self.store.add_issues(context.id, new_issues)
            logger.info("Findings accumulated", context_id=context.id, new=len(new_issues), total=total)
            self._publish(
                context,
                EventType.CODE_SMELLS_ACCUMULATED,
                {"newIssues": len(new_issues), "totalIssues": total, "loop": loop},
            )

        if has_finished(turn.response):
            logger.info("Completion marker received", context_id=context.id, loop=loop)
            return turn, True

        if allow_brevity and not is_cancelled() and is_too_long(turn.response, self.brevity_threshold):
            logger.debug("Response too long, asking for brevity", context_id=context.id, loop=loop)
            brief = await self._ask(context, BREVITY_PROMPT)
            return await self._handle_turn(context, brief, loop, responses, is_cancelled, allow_brevity=False)

        return turn, False

    def _report_tool_calls(self, context: ConversationContext, turn: TurnResult, loop: int) -> None:
        self._checkpoint(context, "tool_usage", loop, tools=[record.tool_name for record in turn.tool_calls])
        for record in turn.tool_calls:
            self._publish(
                context, EventType.TOOL_CALL_STARTED, {"name": record.tool_name, "params": record.parameters}
            )
            self._publish(
                context,
                EventType.TOOL_CALL_COMPLETED,
                {"name": record.tool_name, "result": record.result, "error": record.error},
            )

    def _compact(self, context: ConversationContext, loop: int) -> None:
        """Compact the history when it is large, leaving findings untouched."""
        before = estimate_history_tokens(context.messages)
        if before <= self.compaction_threshold or len(context.messages) <= self.min_messages:
            if loop % 5 == 0:
                logger.debug("Sliding window not needed", context_id=context.id, estimated_tokens=before)
            return

        compacted = compact_messages(context.messages, self.keep_recent)
        removed = len(context.messages) - len(compacted)
        self.store.replace_messages(context.id, compacted)
        after = estimate_history_tokens(compacted)
        logger.info(
            "Sliding window applied",
            context_id=context.id,
            messages_removed=removed,
            estimated_tokens_before=before,
            estimated_tokens_after=after,
        )
        self._publish(
            context,
            EventType.SLIDING_WINDOW_APPLIED,
            {
                "loop": loop,
                "messagesRemoved": removed,
                "messagesKept": len(compacted),
                "estimatedTokensBefore": before,
                "estimatedTokensAfter": after,
            },
        )

    async def _finalize(
        self,
        context: ConversationContext,
        response: str,
        loops: int,
        error: str | None,
        cancelled: bool = False,
    ) -> ReviewOutcome:
        unique = dedupe_issues(context.accumulated_issues)
        self._publish(context, EventType.ASSISTANT_COMPLETED, {"text": response})
        self._publish(
            context,
            EventType.FINAL_CODE_SMELLS_SUMMARY,
            {"totalIssues": len(unique), "loops": loops, "issuesByType": issues_by_type(unique)},
        )
        posting = await self._post(context, unique)
        logger.info(
            "Review finished",
            context_id=context.id,
            loops=loops,
            issues=len(unique),
            error=error,
            cancelled=cancelled,
        )
        return ReviewOutcome(
            response=response.strip(),
            loops=loops,
            issues=unique,
            posting=posting,
            error=error,
            cancelled=cancelled,
        )

    async def _post(self, context: ConversationContext, issues: list[AccumulatedIssue]) -> PostingResult | None:
        if (
            self.poster is None
            or not issues
            or not context.access_token
            or not context.owner
            or not context.repo
            or context.pr_number is None
        ):
            return None

        try:
            result = await self.poster.post(issues, context.owner, context.repo, context.pr_number, context.access_token)
        except Exception as e:
            logger.exception("Posting findings failed", context_id=context.id)
            result = PostingResult(success=False, total_issues=len(issues), errors=[str(e)])
        self._publish(context, EventType.FINDINGS_POSTED, result.model_dump())
        return result
