# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Conversation driver: one model turn plus the tool calls it requests.

A turn appends the user message, asks the model for one response, records
the assistant message and then executes every requested tool call, native
calls first and tag calls second. Each assistant message that carries tool
calls is followed immediately by one tool-result message per call, in
request order.
"""
import json
import time
from collections import Counter
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from argus.core.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, channel_for
from argus.core.exceptions import ContextNotFoundError
from argus.core.types import ConversationContext, Message, Role, ToolCallRecord, ToolCallRequest, ToolUse
from argus.events.bus import EventBus
from argus.events.models import EventType, TaskEvent
from argus.llm.client import ChatClient, ChatRequest
from argus.llm.context import ContextStore
from argus.llm.prompts import PromptSettings, build_system_prompt
from argus.llm.schemas import generate_tool_schemas
from argus.llm.tag_parser import parse_tool_calls, strip_tool_calls
from argus.tools.capabilities import ToolCapabilities
from argus.tools.definitions import PromptMode, get_definitions
from argus.tools.executor import ToolExecutor


class TurnResult(BaseModel):
    """Outcome of one conversation turn.

    Attributes:
        response: Raw assistant text, tag markup included.
        clean_response: Assistant text with known tool-call markup removed.
        tool_calls: Records of every tool call executed this turn.
        context: The conversation after the turn.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    response: str
    clean_response: str = ""
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)
    context: ConversationContext


def tool_result_content(record: ToolCallRecord) -> str:
    """Content of the tool-result message answering a call."""
    if record.result:
        return json.dumps(record.result, default=str)
    return record.error or "No result"


def capabilities_for(context: ConversationContext) -> ToolCapabilities:
    return ToolCapabilities(
        cwd=context.workspace_path,
        user_id=context.user_id,
        repository_id=context.repository_id,
        workspace=context.workspace,
        access_token=context.access_token,
    )


class ConversationDriver:
    """Runs single turns against a chat client.

    Attributes:
        client: Chat-completion client.
        executor: Tool executor for requested calls.
        store: Context store owning the conversations.
        bus: Event bus for llm_input / llm_output events.
        model: Model identifier sent with each request.
        temperature: Sampling temperature.
        max_tokens: Completion token ceiling.
        mode: Prompt mode selecting the offered tools.
    """

    def __init__(
        self,
        client: ChatClient,
        executor: ToolExecutor,
        store: ContextStore,
        bus: EventBus,
        model: str,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        mode: PromptMode = PromptMode.CODE_REVIEW,
    ) -> None:
        self.client = client
        self.executor = executor
        self.store = store
        self.bus = bus
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.mode = mode
        self._definitions = get_definitions(mode)
        self._schemas = generate_tool_schemas(self._definitions)
        self._known_tools = frozenset(str(d.name) for d in self._definitions)

    def _require_context(self, context_id: str) -> ConversationContext:
        context = self.store.get(context_id)
        if context is None:
            raise ContextNotFoundError(context_id)
        return context

    def _publish(self, context: ConversationContext, event_type: EventType, data: dict[str, Any]) -> None:
        self.bus.publish(
            channel_for(context.task_id),
            TaskEvent(type=event_type, task_id=context.task_id, data=data),
        )

    async def process_message(
        self,
        context_id: str,
        user_message: str,
        prompt_settings: PromptSettings | None = None,
    ) -> TurnResult:
        """Run one turn.

        Args:
            context_id: Conversation to continue.
            user_message: Text of the user turn.
            prompt_settings: Optional system prompt section toggles.

        Returns:
            TurnResult carrying the raw response and executed tool calls.

        Raises:
            ContextNotFoundError: If the context does not exist.
            NetworkError: If the chat call fails.
        """
        started = time.monotonic()
        context = self._require_context(context_id)
        self.store.append_message(context_id, Message(role=Role.USER, content=user_message))

        system_prompt = build_system_prompt(context, self._definitions, prompt_settings)
        request = ChatRequest(
            model=self.model,
            messages=[Message(role=Role.SYSTEM, content=system_prompt), *context.messages],
            tools=self._schemas,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        self._publish(context, EventType.LLM_INPUT, request.to_event_data())

        response = await self.client.chat(request)
        self._publish(
            context,
            EventType.LLM_OUTPUT,
            {
                "model": self.model,
                "usage": response.usage,
                "finish_reason": response.finish_reason,
                "response": {
                    "content": response.content,
                    "tool_calls": [call.model_dump() for call in response.tool_calls],
                },
            },
        )

        raw = response.content or ""
        tag_calls = parse_tool_calls(raw, self._known_tools)
        clean = strip_tool_calls(raw, self._known_tools)
        logger.info(
            "Processing model response",
            context_id=context_id,
            native_tool_calls=len(response.tool_calls),
            tag_tool_calls=[c.name for c in tag_calls],
            response_length=len(raw),
        )

        if clean or response.tool_calls:
            self.store.append_message(
                context_id,
                Message(role=Role.ASSISTANT, content=clean, tool_calls=response.tool_calls or None),
            )
        else:
            logger.debug("Empty assistant message not stored", context_id=context_id)

        records: list[ToolCallRecord] = []
        for call in response.tool_calls:
            record = await self._execute_native(context, call)
            records.append(record)
            self.store.append_message(
                context_id,
                Message(role=Role.TOOL, content=tool_result_content(record), tool_call_id=call.id),
            )

        if tag_calls:
            stamp = int(time.time() * 1000)
            synthetic = [
                ToolCallRequest(id=f"xml_{stamp}_{index}", name=call.name, arguments=json.dumps(call.params))
                for index, call in enumerate(tag_calls)
            ]
            self.store.append_message(
                context_id, Message(role=Role.ASSISTANT, content="", tool_calls=synthetic)
            )
            for request_call, tag_call in zip(synthetic, tag_calls, strict=True):
                record = await self._execute(context, request_call.id, tag_call.name, dict(tag_call.params))
                records.append(record)
                self.store.append_message(
                    context_id,
                    Message(role=Role.TOOL, content=tool_result_content(record), tool_call_id=request_call.id),
                )

        logger.info(
            "Message processed",
            context_id=context_id,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            tool_calls_executed=len(records),
        )
        return TurnResult(response=raw, clean_response=clean, tool_calls=records, context=context)

    async def _execute_native(self, context: ConversationContext, call: ToolCallRequest) -> ToolCallRecord:
        try:
            parameters = json.loads(call.arguments or "{}")
        except json.JSONDecodeError as e:
            return self._record(
                context,
                ToolCallRecord(
                    id=call.id,
                    tool_name=call.name,
                    parameters={},
                    error=f"Invalid tool arguments for {call.name}: {e}",
                ),
            )
        if not isinstance(parameters, dict):
            return self._record(
                context,
                ToolCallRecord(
                    id=call.id,
                    tool_name=call.name,
                    parameters={},
                    error=f"Invalid tool arguments for {call.name}: expected an object",
                ),
            )
        return await self._execute(context, call.id, call.name, parameters)

    async def _execute(
        self,
        context: ConversationContext,
        call_id: str,
        tool_name: str,
        parameters: dict[str, Any],
    ) -> ToolCallRecord:
        outcome = await self.executor.execute(
            ToolUse(name=tool_name, params=parameters), capabilities_for(context)
        )
        if outcome.success:
            logger.info("Tool call succeeded", tool=tool_name, execution_time_ms=outcome.execution_time_ms)
        else:
            logger.warning("Tool call failed", tool=tool_name, error=outcome.error)
        return self._record(
            context,
            ToolCallRecord(
                id=call_id,
                tool_name=tool_name,
                parameters=parameters,
                result=outcome.result if outcome.success else None,
                error=None if outcome.success else (outcome.error or "Unknown error"),
                execution_time_ms=outcome.execution_time_ms,
            ),
        )

    def _record(self, context: ConversationContext, record: ToolCallRecord) -> ToolCallRecord:
        self.store.append_tool_call(context.id, record)
        return record

    def tool_usage_stats(self, context_id: str) -> dict[str, int]:
        """Number of calls per tool name in a conversation."""
        context = self._require_context(context_id)
        return dict(Counter(record.tool_name for record in context.tool_call_history))

    def average_execution_time(self, context_id: str) -> float:
        """Mean tool execution time in milliseconds, 0 if no calls ran."""
        history = self._require_context(context_id).tool_call_history
        if not history:
            return 0.0
        return sum(record.execution_time_ms for record in history) / len(history)

    def conversation_summary(self, context_id: str) -> dict[str, Any]:
        context = self._require_context(context_id)
        return {
            "context_id": context.id,
            "message_count": len(context.messages),
            "tool_call_count": len(context.tool_call_history),
            "estimated_tokens": self.store.estimate_tokens(context_id),
            "tool_usage": self.tool_usage_stats(context_id),
            "average_execution_time_ms": self.average_execution_time(context_id),
            "issues_accumulated": len(context.accumulated_issues),
            "created_at": context.created_at.isoformat(),
            "updated_at": context.updated_at.isoformat(),
        }
