"""Tests for review loop turn prompts."""
from argus.core.constants import COMPLETION_MARKER
from argus.core.types import ToolCallRecord
from argus.orchestration.prompts import (
    ADVANCED_TOOLS_HINT,
    CODE_SMELL_CHECK,
    STAGE_PROMPTS,
    TOOL_CONTINUATION_PROMPT,
    TOOL_ENCOURAGEMENT,
    ReviewStage,
    build_initial_prompt,
    continuation_prompt,
    detect_stage,
)


def _record(tool_name: str) -> ToolCallRecord:
    return ToolCallRecord(id="1", tool_name=tool_name, parameters={})


class TestBuildInitialPrompt:
    """Tests for build_initial_prompt."""

    def test_pull_request_target(self) -> None:
        prompt = build_initial_prompt("acme", "api", 12, ["src/app.py", "src/util.py"])

        assert "PR #12 in acme/api" in prompt
        assert "Changed files:\n- src/app.py\n- src/util.py" in prompt
        assert prompt.rstrip().endswith(f"end with {COMPLETION_MARKER}.")

    def test_workspace_target(self) -> None:
        prompt = build_initial_prompt(None, None, None)

        assert "the code in this workspace" in prompt
        assert "Changed files" not in prompt


class TestDetectStage:
    """Tests for detect_stage."""

    def test_cues(self) -> None:
        assert detect_stage("Let me read the handler.", ReviewStage.INITIAL) == ReviewStage.INVESTIGATION
        assert detect_stage("I found a leak.", ReviewStage.INVESTIGATION) == ReviewStage.ANALYSIS
        assert detect_stage("In conclusion, two issues.", ReviewStage.ANALYSIS) == ReviewStage.FINAL

    def test_investigation_wins_over_final(self) -> None:
        assert detect_stage("Based on this, I should look deeper.", ReviewStage.ANALYSIS) == ReviewStage.INVESTIGATION

    def test_final_cues_can_be_suppressed(self) -> None:
        assert detect_stage("Summary of the PR", ReviewStage.INITIAL, allow_final=False) == ReviewStage.INITIAL

    def test_no_cue_keeps_stage(self) -> None:
        assert detect_stage("Hmm.", ReviewStage.ANALYSIS) == ReviewStage.ANALYSIS


class TestContinuationPrompt:
    """Tests for continuation_prompt."""

    def test_after_basic_tools_hints_advanced_tools(self) -> None:
        prompt = continuation_prompt(ReviewStage.INVESTIGATION, [_record("read_file")])

        assert prompt.startswith(TOOL_CONTINUATION_PROMPT)
        assert ADVANCED_TOOLS_HINT in prompt
        assert CODE_SMELL_CHECK in prompt

    def test_after_advanced_tools_no_hint(self) -> None:
        prompt = continuation_prompt(ReviewStage.INVESTIGATION, [_record("codebase_search")])

        assert ADVANCED_TOOLS_HINT not in prompt

    def test_without_tools_uses_stage_prompt(self) -> None:
        prompt = continuation_prompt(ReviewStage.ANALYSIS, [])

        assert prompt.startswith(STAGE_PROMPTS[ReviewStage.ANALYSIS])
        assert TOOL_ENCOURAGEMENT in prompt

    def test_final_stage_has_no_tool_encouragement(self) -> None:
        prompt = continuation_prompt(ReviewStage.FINAL, [])

        assert TOOL_ENCOURAGEMENT not in prompt
        assert COMPLETION_MARKER in prompt
