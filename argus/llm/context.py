# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""In-memory store of conversation contexts."""
import asyncio
import hashlib
import json
import math
import uuid
from datetime import UTC, datetime
from typing import Any

import pydantic
from loguru import logger
from pydantic import BaseModel

from argus.core.constants import (
    DEFAULT_MAX_CONTEXTS,
    DEFAULT_MAX_MESSAGES,
    DEFAULT_MAX_TOOL_CALLS,
)
from argus.core.exceptions import ContextNotFoundError
from argus.core.types import AccumulatedIssue, ConversationContext, Message, Role, ToolCallRecord


class ContextStats(BaseModel):
    """Aggregate counters across every stored context."""

    total_contexts: int
    active_contexts: int
    total_messages: int
    total_tool_calls: int
    average_messages_per_context: float
    average_tool_calls_per_context: float


def drop_orphan_tool_results(messages: list[Message]) -> list[Message]:
    """Drop leading tool-result messages whose assistant request is gone.

    Args:
        messages: Message list that may start mid tool-call group.

    Returns:
        The list without leading tool messages.
    """
    start = 0
    while start < len(messages) and messages[start].role == Role.TOOL:
        start += 1
    return messages[start:] if start else messages


def estimate_tokens(messages: list[Message]) -> int:
    """Rough token count: one token per four characters of content."""
    return math.ceil(sum(len(m.content or "") for m in messages) / 4)


class ContextStore:
    """Process-wide registry of conversation contexts.

    Mutations are synchronous and happen on the event loop thread, so a
    single append can never interleave with another. Reviews that need to
    hold a context across awaits take ``lock(context_id)``.

    Capacity policy: on every create, if the number of contexts exceeds
    ``max_contexts``, the least recently updated contexts are evicted. This
    is the only eviction path.

    Attributes:
        max_contexts: Global context ceiling.
        max_messages: Per-context message ceiling.
        max_tool_calls: Per-context tool call record ceiling.
    """

    def __init__(
        self,
        max_contexts: int = DEFAULT_MAX_CONTEXTS,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        max_tool_calls: int = DEFAULT_MAX_TOOL_CALLS,
    ) -> None:
        self.max_contexts = max_contexts
        self.max_messages = max_messages
        self.max_tool_calls = max_tool_calls
        self._contexts: dict[str, ConversationContext] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, context_id: object) -> bool:
        return context_id in self._contexts

    @staticmethod
    def _generate_id(workspace_path: str, repository_id: int | None, user_id: int | None) -> str:
        digest = hashlib.sha1(workspace_path.encode("utf-8")).hexdigest()[:8]
        repo_part = f"-repo{repository_id}" if repository_id else ""
        user_part = f"-user{user_id}" if user_id else ""
        return f"ctx-{digest}{repo_part}{user_part}-{uuid.uuid4().hex[:12]}"

    def create(
        self,
        workspace_path: str,
        repository_id: int | None = None,
        user_id: int | None = None,
        *,
        task_id: str | None = None,
        owner: str | None = None,
        repo: str | None = None,
        pr_number: int | None = None,
        access_token: str | None = None,
        workspace: Any = None,
        initial_task: str | None = None,
    ) -> str:
        """Create a context and return its id.

        Args:
            workspace_path: Root of the workspace under review.
            repository_id: Optional repository identifier.
            user_id: Optional requester identity.
            task_id: Task id used for event channels.
            owner: Repository owner for finding posting.
            repo: Repository name for finding posting.
            pr_number: Pull request number for finding posting.
            access_token: Bearer credential for collaborators.
            workspace: Workspace accessor handed to tools.
            initial_task: Optional description stored in metadata.

        Returns:
            The new context id.
        """
        context_id = self._generate_id(workspace_path, repository_id, user_id)
        metadata: dict[str, Any] = {"current_task": initial_task} if initial_task else {}
        self._contexts[context_id] = ConversationContext(
            id=context_id,
            workspace_path=workspace_path,
            repository_id=repository_id,
            user_id=user_id,
            task_id=task_id,
            owner=owner,
            repo=repo,
            pr_number=pr_number,
            access_token=access_token,
            workspace=workspace,
            metadata=metadata,
        )
        self._evict_oldest()
        logger.info(
            "Context created",
            context_id=context_id,
            workspace_path=workspace_path,
            repository_id=repository_id,
            user_id=user_id,
        )
        return context_id

    def get(self, context_id: str) -> ConversationContext | None:
        return self._contexts.get(context_id)

    def lock(self, context_id: str) -> asyncio.Lock:
        """Return the mutex guarding a context, creating it on first use."""
        if context_id not in self._locks:
            self._locks[context_id] = asyncio.Lock()
        return self._locks[context_id]

    def append_message(self, context_id: str, message: Message) -> bool:
        """Append a message, trimming the oldest entries past the ceiling.

        Trimming never leaves a tool-result message at the front without
        its assistant request.

        Args:
            context_id: Target context.
            message: Message to append.

        Returns:
            False if the context does not exist.
        """
        context = self._contexts.get(context_id)
        if context is None:
            logger.warning("Attempted to add message to non-existent context", context_id=context_id)
            return False

        context.messages.append(message)
        if len(context.messages) > self.max_messages:
            context.messages = drop_orphan_tool_results(context.messages[-self.max_messages:])
            logger.warning(
                "Context messages trimmed due to limit",
                context_id=context_id,
                max_messages=self.max_messages,
            )
        context.touch()
        return True

    def append_tool_call(self, context_id: str, record: ToolCallRecord) -> bool:
        """Append a tool call record, trimming the oldest entries past the ceiling."""
        context = self._contexts.get(context_id)
        if context is None:
            logger.warning("Attempted to add tool call to non-existent context", context_id=context_id)
            return False

        context.tool_call_history.append(record)
        if len(context.tool_call_history) > self.max_tool_calls:
            context.tool_call_history = context.tool_call_history[-self.max_tool_calls:]
            logger.warning(
                "Context tool calls trimmed due to limit",
                context_id=context_id,
                max_tool_calls=self.max_tool_calls,
            )
        context.touch()
        return True

    def replace_messages(self, context_id: str, messages: list[Message]) -> bool:
        """Swap in a compacted message list."""
        context = self._contexts.get(context_id)
        if context is None:
            return False
        context.messages = messages
        context.touch()
        return True

    def add_issues(self, context_id: str, issues: list[AccumulatedIssue]) -> int:
        """Append findings to a context's accumulator.

        Returns:
            Accumulator size after the append.

        Raises:
            ContextNotFoundError: If the context does not exist.
        """
        context = self._contexts.get(context_id)
        if context is None:
            raise ContextNotFoundError(context_id)
        context.accumulated_issues.extend(issues)
        context.touch()
        return len(context.accumulated_issues)

    def update_metadata(self, context_id: str, **values: Any) -> bool:
        context = self._contexts.get(context_id)
        if context is None:
            return False
        context.metadata.update(values)
        context.touch()
        return True

    def list_by_repository(self, repository_id: int) -> list[ConversationContext]:
        return [c for c in self._contexts.values() if c.repository_id == repository_id]

    def list_by_user(self, user_id: int) -> list[ConversationContext]:
        return [c for c in self._contexts.values() if c.user_id == user_id]

    def delete(self, context_id: str) -> bool:
        if self._contexts.pop(context_id, None) is None:
            logger.warning("Attempted to delete non-existent context", context_id=context_id)
            return False
        self._locks.pop(context_id, None)
        logger.info("Context deleted", context_id=context_id)
        return True

    def clear_all(self) -> None:
        count = len(self._contexts)
        self._contexts.clear()
        self._locks.clear()
        logger.info("All contexts cleared", count=count)

    def estimate_tokens(self, context_id: str) -> int:
        context = self._contexts.get(context_id)
        return estimate_tokens(context.messages) if context else 0

    def stats(self) -> ContextStats:
        contexts = list(self._contexts.values())
        total = len(contexts)
        total_messages = sum(len(c.messages) for c in contexts)
        total_tool_calls = sum(len(c.tool_call_history) for c in contexts)
        return ContextStats(
            total_contexts=total,
            active_contexts=sum(1 for c in contexts if c.messages),
            total_messages=total_messages,
            total_tool_calls=total_tool_calls,
            average_messages_per_context=total_messages / total if total else 0.0,
            average_tool_calls_per_context=total_tool_calls / total if total else 0.0,
        )

    def export_context(self, context_id: str) -> str | None:
        """Serialise a context to JSON. Credentials and accessors are excluded."""
        context = self._contexts.get(context_id)
        if context is None:
            return None
        return json.dumps(
            {
                "context_id": context_id,
                "context": context.model_dump(mode="json"),
                "exported_at": datetime.now(UTC).isoformat(),
            },
            indent=2,
        )

    def import_context(self, exported: str) -> str | None:
        """Load a context exported by ``export_context`` under a fresh id.

        Args:
            exported: JSON produced by export_context.

        Returns:
            The new context id, or None if the payload is malformed.
        """
        try:
            data = json.loads(exported)
            original_id = data["context_id"]
            payload = data["context"]
            new_id = self._generate_id(
                payload["workspace_path"], payload.get("repository_id"), payload.get("user_id")
            )
            context = ConversationContext.model_validate({**payload, "id": new_id})
        except (json.JSONDecodeError, KeyError, TypeError, pydantic.ValidationError) as e:
            logger.error("Failed to import context", error=str(e))
            return None

        self._contexts[new_id] = context
        self._evict_oldest()
        logger.info(
            "Context imported",
            original_context_id=original_id,
            context_id=new_id,
            message_count=len(context.messages),
        )
        return new_id

    def set_limits(self, max_contexts: int, max_messages: int, max_tool_calls: int) -> None:
        self.max_contexts = max_contexts
        self.max_messages = max_messages
        self.max_tool_calls = max_tool_calls
        logger.info(
            "Context limits updated",
            max_contexts=max_contexts,
            max_messages=max_messages,
            max_tool_calls=max_tool_calls,
        )

    def _evict_oldest(self) -> None:
        excess = len(self._contexts) - self.max_contexts
        if excess <= 0:
            return
        oldest = sorted(self._contexts.values(), key=lambda c: c.updated_at)[:excess]
        for context in oldest:
            del self._contexts[context.id]
            self._locks.pop(context.id, None)
        logger.info("Cleaned up old contexts", removed=len(oldest), remaining=len(self._contexts))
