# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Chat-completion client seam.

The conversation driver talks to a ``ChatClient``. The production
implementation runs single model requests through pydantic-ai against
OpenRouter; tool execution stays with the driver, so the model is only
ever asked for one response at a time.
"""
import os
from typing import Any, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, Field
from pydantic_ai.direct import model_request
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelRequestPart,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters
from pydantic_ai.models.openrouter import OpenRouterModel
from pydantic_ai.providers.openrouter import OpenRouterProvider
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import ToolDefinition as ModelToolDefinition

from argus.core.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from argus.core.exceptions import ConfigurationError, NetworkError
from argus.core.types import Message, Role, ToolCallRequest


# OpenRouter app attribution
OPENROUTER_APP_URL = "https://github.com/argus-review/argus"
OPENROUTER_APP_TITLE = "Argus"


class ChatRequest(BaseModel):
    """One chat-completion request.

    Attributes:
        model: Model identifier.
        messages: System prompt followed by the conversation history.
        tools: Function schemas offered to the model.
        tool_choice: Tool choice mode; only "auto" is used.
        temperature: Sampling temperature.
        max_tokens: Completion token ceiling.
    """

    model: str
    messages: list[Message]
    tools: list[dict[str, Any]] = Field(default_factory=list)
    tool_choice: str = "auto"
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    def to_event_data(self) -> dict[str, Any]:
        """Wire-format view published with llm_input events."""
        return {
            "model": self.model,
            "messages": [m.to_chat() for m in self.messages],
            "tools": self.tools,
            "tool_choice": self.tool_choice,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


class ChatResponse(BaseModel):
    """The first choice of a chat-completion response.

    Attributes:
        content: Raw assistant text, possibly containing tag tool calls.
        tool_calls: Native tool calls.
        finish_reason: Provider finish reason, if reported.
        usage: Token usage counters.
    """

    content: str = ""
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    finish_reason: str | None = None
    usage: dict[str, int] = Field(default_factory=dict)


class ChatClient(Protocol):
    """Anything that can answer a ChatRequest."""

    async def chat(self, request: ChatRequest) -> ChatResponse:
        ...


def _tool_names_by_call_id(messages: list[Message]) -> dict[str, str]:
    names: dict[str, str] = {}
    for message in messages:
        for call in message.tool_calls or []:
            names[call.id] = call.name
    return names


def to_model_messages(messages: list[Message]) -> list[ModelMessage]:
    """Convert chat messages to pydantic-ai message history.

    Consecutive system, user and tool messages are merged into a single
    request; each assistant message becomes one response.

    Args:
        messages: Conversation in chat order.

    Returns:
        pydantic-ai messages in the same order.
    """
    call_names = _tool_names_by_call_id(messages)
    history: list[ModelMessage] = []
    pending: list[ModelRequestPart] = []

    for message in messages:
        if message.role == Role.ASSISTANT:
            parts: list[TextPart | ToolCallPart] = []
            if message.content:
                parts.append(TextPart(content=message.content))
            for call in message.tool_calls or []:
                parts.append(ToolCallPart(tool_name=call.name, args=call.arguments, tool_call_id=call.id))
            if not parts:
                continue
            if pending:
                history.append(ModelRequest(parts=pending))
                pending = []
            history.append(ModelResponse(parts=parts))
        elif message.role == Role.SYSTEM:
            pending.append(SystemPromptPart(content=message.content or ""))
        elif message.role == Role.USER:
            pending.append(UserPromptPart(content=message.content or ""))
        else:
            call_id = message.tool_call_id or ""
            pending.append(
                ToolReturnPart(
                    tool_name=call_names.get(call_id, "unknown"),
                    content=message.content or "",
                    tool_call_id=call_id,
                )
            )

    if pending:
        history.append(ModelRequest(parts=pending))
    return history


def to_tool_definitions(schemas: list[dict[str, Any]]) -> list[ModelToolDefinition]:
    """Convert function schemas to pydantic-ai tool definitions."""
    return [
        ModelToolDefinition(
            name=schema["function"]["name"],
            description=schema["function"].get("description"),
            parameters_json_schema=schema["function"]["parameters"],
        )
        for schema in schemas
    ]


def from_model_response(response: ModelResponse) -> ChatResponse:
    """Flatten a pydantic-ai response into text plus native tool calls."""
    texts: list[str] = []
    calls: list[ToolCallRequest] = []
    for part in response.parts:
        if isinstance(part, TextPart):
            texts.append(part.content)
        elif isinstance(part, ToolCallPart):
            calls.append(
                ToolCallRequest(id=part.tool_call_id, name=part.tool_name, arguments=part.args_as_json_str())
            )
    usage = response.usage
    return ChatResponse(
        content="".join(texts),
        tool_calls=calls,
        finish_reason=response.finish_reason,
        usage={
            "prompt_tokens": usage.input_tokens,
            "completion_tokens": usage.output_tokens,
            "total_tokens": usage.input_tokens + usage.output_tokens,
        },
    )


class OpenRouterChatClient:
    """ChatClient backed by an OpenRouter model through pydantic-ai.

    Attributes:
        model_name: OpenRouter model identifier.
        timeout_seconds: Per-request timeout.
    """

    def __init__(
        self,
        model_name: str,
        api_key_env: str = "OPENROUTER_API_KEY",
        timeout_seconds: float = 120.0,
    ) -> None:
        self.model_name = model_name
        self.api_key_env = api_key_env
        self.timeout_seconds = timeout_seconds
        self._model: Model | None = None

    def _build_model(self) -> Model:
        """Build the OpenRouter model with app attribution.

        Raises:
            ConfigurationError: If the API key environment variable is unset.
        """
        api_key = os.environ.get(self.api_key_env, "")
        if not api_key:
            raise ConfigurationError(f"{self.api_key_env} environment variable not set.")
        provider = OpenRouterProvider(
            api_key=api_key,
            app_url=OPENROUTER_APP_URL,
            app_title=OPENROUTER_APP_TITLE,
        )
        return OpenRouterModel(self.model_name, provider=provider)

    @property
    def model(self) -> Model:
        if self._model is None:
            self._model = self._build_model()
        return self._model

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send one request and return the first choice.

        Raises:
            NetworkError: If the provider call fails in transport or returns
                an unusable response.
        """
        settings = ModelSettings(
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            timeout=self.timeout_seconds,
        )
        parameters = ModelRequestParameters(
            function_tools=to_tool_definitions(request.tools),
            allow_text_output=True,
        )
        try:
            response = await model_request(
                self.model,
                to_model_messages(request.messages),
                model_settings=settings,
                model_request_parameters=parameters,
            )
        except (ModelHTTPError, UnexpectedModelBehavior, httpx.HTTPError) as e:
            raise NetworkError(f"Chat request to {self.model_name} failed: {e}") from e

        chat_response = from_model_response(response)
        logger.debug(
            "Chat request completed",
            model=self.model_name,
            finish_reason=chat_response.finish_reason,
            tool_calls=len(chat_response.tool_calls),
            usage=chat_response.usage,
        )
        return chat_response
