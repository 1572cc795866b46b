# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared fixtures and helpers for all tests.

This module provides factory fixtures for building the tool, conversation
and review layers against a scripted chat client and a temporary workspace.
"""
from collections.abc import Callable
from pathlib import Path

import pytest

from argus.events.bus import EventBus
from argus.events.models import TaskEvent
from argus.llm.client import ChatRequest, ChatResponse
from argus.llm.context import ContextStore
from argus.llm.conversation import ConversationDriver
from argus.tools.executor import ToolExecutor
from argus.tools.registry import ToolRegistry
from argus.tools.workspace import LocalWorkspace


class ScriptedChatClient:
    """ChatClient that replays canned responses and records every request.

    Once the script is exhausted the last response is repeated.
    """

    def __init__(self, responses: list[ChatResponse | Exception]) -> None:
        self.responses = responses
        self.requests: list[ChatRequest] = []

    async def chat(self, request: ChatRequest) -> ChatResponse:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def workspace_dir(tmp_path: Path) -> Path:
    """A small source tree with a couple of Python files."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "app.py").write_text(
        "import os\n"
        "\n"
        "TIMEOUT = 42\n"
        "\n"
        "def handler(event):\n"
        "    return event * 42\n"
        "\n"
        "class Service:\n"
        "    pass\n"
    )
    (src / "util.py").write_text("def helper():\n    password = 'hunter2'\n    return password\n")
    (tmp_path / "README.md").write_text("# demo\n")
    return tmp_path


@pytest.fixture
def workspace(workspace_dir: Path) -> LocalWorkspace:
    return LocalWorkspace(workspace_dir)


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry()


@pytest.fixture
def executor(registry: ToolRegistry) -> ToolExecutor:
    return ToolExecutor(registry)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store() -> ContextStore:
    return ContextStore()


@pytest.fixture
def captured_events(bus: EventBus) -> Callable[[str], list[TaskEvent]]:
    """Factory subscribing a list collector to a channel."""
    def _capture(channel: str) -> list[TaskEvent]:
        events: list[TaskEvent] = []
        bus.subscribe(channel, events.append)
        return events
    return _capture


@pytest.fixture
def driver_factory(
    executor: ToolExecutor,
    store: ContextStore,
    bus: EventBus,
) -> Callable[[list[ChatResponse | Exception]], tuple[ConversationDriver, ScriptedChatClient]]:
    """Factory for a ConversationDriver over a scripted client."""
    def _create(responses: list[ChatResponse | Exception]) -> tuple[ConversationDriver, ScriptedChatClient]:
        client = ScriptedChatClient(responses)
        driver = ConversationDriver(client, executor, store, bus, model="test/model")
        return driver, client
    return _create
