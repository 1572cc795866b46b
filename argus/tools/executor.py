# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Tool execution: resolve, validate, invoke, classify."""
import time
from typing import Any

from loguru import logger
from pydantic import BaseModel

from argus.core.exceptions import ToolNotFoundError, ToolValidationError
from argus.core.types import ToolUse
from argus.tools.capabilities import ToolCapabilities
from argus.tools.errors import handle_error
from argus.tools.registry import ToolRegistry


class ToolExecutionOutcome(BaseModel):
    """Result of one tool execution.

    Attributes:
        success: Whether the handler pushed a result without error.
        result: Payload pushed by the handler.
        error: User-facing error message on failure.
        tool_name: Tool that ran.
        execution_time_ms: Wall-clock duration in milliseconds.
    """

    success: bool
    result: Any = None
    error: str | None = None
    tool_name: str
    execution_time_ms: int = 0


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class ToolExecutor:
    """Runs tool uses through the registry.

    Failures never escape ``execute``: unknown tools, invalid parameters and
    handler errors all come back as unsuccessful outcomes carrying a
    classified, user-facing message.

    Attributes:
        registry: Registry used to resolve and validate tools.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    async def execute(self, tool_use: ToolUse, capabilities: ToolCapabilities) -> ToolExecutionOutcome:
        """Execute one tool use.

        Args:
            tool_use: Tool name and parameters.
            capabilities: Collaborators exposed to the handler.

        Returns:
            ToolExecutionOutcome describing the result or the failure.
        """
        started = time.monotonic()
        logger.info(
            "Executing tool",
            tool=tool_use.name,
            params=list(tool_use.params),
            repository_id=capabilities.repository_id,
            user_id=capabilities.user_id,
        )

        result: Any = None
        error: str | None = None

        try:
            handler = self.registry.resolve(tool_use.name)
            if handler is None:
                raise ToolNotFoundError(tool_use.name)

            validation = self.registry.validate(tool_use)
            if not validation.valid:
                raise ToolValidationError(
                    f"Parameter validation failed: {'; '.join(validation.errors)}",
                    tool_name=tool_use.name,
                )

            def push_result(content: Any) -> None:
                nonlocal result
                result = content

            async def report_error(action: str, err: BaseException) -> None:
                nonlocal error
                error = handle_error(
                    err,
                    tool_use.name,
                    action,
                    user_id=capabilities.user_id,
                    repository_id=capabilities.repository_id,
                )

            await handler(tool_use, capabilities, push_result, report_error)
        except Exception as e:
            message = handle_error(
                e,
                tool_use.name,
                "tool_execution",
                user_id=capabilities.user_id,
                repository_id=capabilities.repository_id,
            )
            return ToolExecutionOutcome(
                success=False,
                error=message,
                tool_name=tool_use.name,
                execution_time_ms=_elapsed_ms(started),
            )

        duration = _elapsed_ms(started)
        if error is not None:
            return ToolExecutionOutcome(
                success=False, error=error, tool_name=tool_use.name, execution_time_ms=duration
            )

        logger.info(
            "Tool execution completed",
            tool=tool_use.name,
            duration_ms=duration,
            has_result=result is not None,
        )
        return ToolExecutionOutcome(
            success=True, result=result, tool_name=tool_use.name, execution_time_ms=duration
        )

    async def execute_batch(
        self,
        tool_uses: list[ToolUse],
        capabilities: ToolCapabilities,
    ) -> list[ToolExecutionOutcome]:
        """Execute tool uses sequentially, continuing past failures.

        Args:
            tool_uses: Tool uses in execution order.
            capabilities: Collaborators exposed to every handler.

        Returns:
            One outcome per tool use, in the same order.
        """
        outcomes: list[ToolExecutionOutcome] = []
        for tool_use in tool_uses:
            outcome = await self.execute(tool_use, capabilities)
            if not outcome.success:
                logger.warning(
                    "Tool failed, continuing with remaining tools",
                    tool=tool_use.name,
                    error=outcome.error,
                )
            outcomes.append(outcome)
        return outcomes

    def is_tool_available(self, name: str) -> bool:
        return self.registry.is_valid_tool(name)
