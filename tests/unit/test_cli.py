"""Tests for the typer CLI."""
from pathlib import Path

import pytest
from typer.testing import CliRunner

from argus.core.constants import COMPLETION_MARKER
from argus.llm.client import ChatRequest, ChatResponse
from argus.main import app


runner = CliRunner()


class FinishingClient:
    """Chat client whose every answer ends the review."""

    def __init__(self, *args: object, **kwargs: object) -> None:
        self.requests: list[ChatRequest] = []

    async def chat(self, request: ChatRequest) -> ChatResponse:
        self.requests.append(request)
        return ChatResponse(content=f"No problems found. {COMPLETION_MARKER}")


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ARGUS_SETTINGS", raising=False)


def test_tools_lists_every_tool() -> None:
    result = runner.invoke(app, ["tools"])

    assert result.exit_code == 0
    assert "read_file" in result.output
    assert "pattern_recognition" in result.output


def test_tools_file_analysis_mode() -> None:
    result = runner.invoke(app, ["tools", "--mode", "file_analysis"])

    assert result.exit_code == 0
    assert "identify_risks" not in result.output


def test_review_runs_to_completion(monkeypatch: pytest.MonkeyPatch, workspace_dir: Path) -> None:
    monkeypatch.setattr("argus.main.OpenRouterChatClient", FinishingClient)

    result = runner.invoke(app, ["review", str(workspace_dir), "--changed", "src/app.py"])

    assert result.exit_code == 0, result.output
    assert "Workflow Execution Summary" in result.output


def test_post_requires_pull_request(monkeypatch: pytest.MonkeyPatch, workspace_dir: Path) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "tok")

    result = runner.invoke(app, ["review", str(workspace_dir), "--post"])

    assert result.exit_code == 1


def test_review_rejects_missing_path(tmp_path: Path) -> None:
    result = runner.invoke(app, ["review", str(tmp_path / "missing")])

    assert result.exit_code != 0
