"""Tests for the reasoning-capture tool handlers."""
from typing import Any

from argus.core.exceptions import ToolValidationError
from argus.core.types import ToolUse
from argus.tools.capabilities import ToolCapabilities
from argus.tools.handlers import reasoning


async def _run(handler: Any, params: dict[str, str]) -> tuple[list[Any], list[tuple[str, BaseException]]]:
    results: list[Any] = []
    errors: list[tuple[str, BaseException]] = []

    async def on_error(action: str, err: BaseException) -> None:
        errors.append((action, err))

    tool_use = ToolUse(name=handler.__name__, params=params)
    await handler(tool_use, ToolCapabilities(cwd="."), results.append, on_error)
    return results, errors


class TestIdentifyRisks:
    """Tests for identify_risks."""

    async def test_echoes_input_with_validation(self) -> None:
        results, errors = await _run(
            reasoning.identify_risks,
            {
                "component_type": "authentication middleware",
                "patterns_found": "tokens compared with == and logged at debug level",
                "reasoning": "short",
            },
        )

        assert errors == []
        result = results[0]
        assert result["component_type"] == "authentication middleware"
        assert result["validation"] == {
            "has_component_understanding": True,
            "has_pattern_analysis": True,
            "has_risk_reasoning": False,
        }
        assert "critical" in result["risk_assessment"]["severity_levels"]

    async def test_missing_parameter_goes_to_error_sink(self) -> None:
        results, errors = await _run(reasoning.identify_risks, {"component_type": "db"})

        assert results == []
        assert errors[0][0] == "identify_risks"
        assert isinstance(errors[0][1], ToolValidationError)


class TestOtherReasoningTools:
    """Tests for analyze_architecture, strategic_analysis and pattern_recognition."""

    async def test_analyze_architecture(self) -> None:
        results, _ = await _run(
            reasoning.analyze_architecture,
            {
                "analysis_focus": "x",
                "current_understanding": "y",
                "strategic_question": "Why does the cache bypass invalidation on writes?",
            },
        )

        validation = results[0]["validation"]
        assert validation["has_strategic_reasoning"] is True
        assert validation["has_specific_focus"] is False
        assert results[0]["recommendations"]["next_steps"]

    async def test_strategic_analysis_requires_all_fields(self) -> None:
        results, errors = await _run(
            reasoning.strategic_analysis,
            {"analysis_stage": "investigation", "current_understanding": "a", "reasoning": "b"},
        )

        assert results == []
        assert "potential_issues" in str(errors[0][1])

    async def test_pattern_recognition(self) -> None:
        results, _ = await _run(
            reasoning.pattern_recognition,
            {"patterns_found": "p", "analysis_focus": "error handling", "reasoning": "r"},
        )

        assert results[0]["analysis_focus"] == "error handling"
        assert "timestamp" in results[0]
        assert results[0]["pattern_analysis"]["anti_patterns_to_watch"]
