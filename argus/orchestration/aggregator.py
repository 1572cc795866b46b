"""Result aggregation: render a workflow result as JSON, Markdown or text."""
import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from argus.core.constants import REVIEW_STEP_TOOL, ToolName
from argus.orchestration.types import ResultAggregation, StepStatus, WorkflowResult, WorkflowStep


CODE_REVIEW_AGGREGATION = ResultAggregation(type="detailed", format="markdown")
FILE_ANALYSIS_AGGREGATION = ResultAggregation(type="structured", include_timing=False, format="json")
QUICK_TASK_AGGREGATION = ResultAggregation(
    type="summary", include_metadata=False, include_timing=False, format="text"
)

SUCCESS_THRESHOLDS = {"summary": 0.8, "detailed": 0.9, "structured": 0.85}


class AggregatedResult(BaseModel):
    """A workflow result shaped for presentation.

    Attributes:
        success: Aggregation-level success verdict.
        summary: Rendered summary in the requested format.
        details: Per-step results keyed by step name.
        metadata: Workflow metadata, if requested.
        errors: Step errors, if requested.
        timing: Timing figures, if requested.
    """

    success: bool
    summary: str
    details: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    timing: dict[str, Any] = Field(default_factory=dict)


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value


def _duration_ms(step: WorkflowStep) -> int:
    if step.start_time is None or step.end_time is None:
        return 0
    return int((step.end_time - step.start_time).total_seconds() * 1000)


def _rate(result: WorkflowResult) -> float:
    return result.steps_completed / result.steps_total if result.steps_total else 0.0


def summarize_step_result(step: WorkflowStep) -> dict[str, Any] | None:
    """Key figures of a step result, chosen by tool."""
    result = _jsonable(step.result)
    if not result:
        return None
    if not isinstance(result, dict):
        return {"toolName": step.tool_name, "success": True, "resultType": type(result).__name__}

    match step.tool_name:
        case ToolName.READ_FILE:
            return {"filePath": step.parameters.get("path"), "lineCount": result.get("lineCount", 0)}
        case ToolName.SEARCH_FILES:
            return {
                "searchPath": result.get("searchPath"),
                "totalMatches": result.get("totalMatches", 0),
                "filesSearched": len(result.get("results", [])),
            }
        case ToolName.LIST_FILES:
            return {
                "directory": result.get("directory"),
                "totalFiles": result.get("totalFiles", 0),
                "recursive": result.get("recursive", False),
            }
        case ToolName.CODEBASE_SEARCH:
            return {"query": result.get("query"), "resultsCount": len(result.get("results", []))}
        case _ if step.tool_name == REVIEW_STEP_TOOL:
            return {
                "loops": result.get("loops", 0),
                "totalIssues": len(result.get("issues", [])),
                "error": result.get("error"),
            }
        case _:
            return {"toolName": step.tool_name, "success": True, "resultType": type(result).__name__}


class ResultAggregator:
    """Shapes WorkflowResults according to a ResultAggregation."""

    def aggregate(self, result: WorkflowResult, aggregation: ResultAggregation) -> AggregatedResult:
        """Aggregate a workflow result.

        Args:
            result: Result returned by the workflow engine.
            aggregation: Detail level, inclusions and format.

        Returns:
            AggregatedResult with the summary rendered in ``aggregation.format``.
        """
        details = self.collect_results(result, aggregation)
        errors = self.collect_errors(result, aggregation)
        timing: dict[str, Any] = {}
        if aggregation.include_timing:
            timing = {
                "execution_time_ms": result.execution_time_ms,
                "steps": {step.name: _duration_ms(step) for step in result.steps},
            }

        match aggregation.format:
            case "json":
                summary = self.json_summary(result, details, errors)
            case "markdown":
                summary = self.markdown_summary(result, details, errors)
            case _:
                summary = self.text_summary(result, details, errors)

        return AggregatedResult(
            success=self.determine_success(result, aggregation),
            summary=summary,
            details=details,
            metadata=self.collect_metadata(result, aggregation),
            errors=errors,
            timing=timing,
        )

    def collect_results(self, result: WorkflowResult, aggregation: ResultAggregation) -> dict[str, Any]:
        details: dict[str, Any] = {}
        for step in result.steps:
            if step.status != StepStatus.COMPLETED or step.result is None:
                continue
            if aggregation.type == "summary":
                details[step.name] = summarize_step_result(step)
            elif aggregation.type == "detailed":
                entry: dict[str, Any] = {
                    "result": _jsonable(step.result),
                    "execution_time_ms": _duration_ms(step),
                    "retry_count": step.retry_count,
                }
                if aggregation.include_metadata:
                    entry["metadata"] = {
                        "tool_name": step.tool_name,
                        "parameters": step.parameters,
                        "start_time": step.start_time.isoformat() if step.start_time else None,
                        "end_time": step.end_time.isoformat() if step.end_time else None,
                    }
                details[step.name] = entry
            else:
                details[step.name] = self.structure_step_result(step, aggregation)
        return details

    @staticmethod
    def structure_step_result(step: WorkflowStep, aggregation: ResultAggregation) -> dict[str, Any]:
        structured: dict[str, Any] = {
            "step_name": step.name,
            "tool_name": step.tool_name,
            "status": str(step.status),
            "result": _jsonable(step.result),
        }
        if aggregation.include_timing:
            structured["execution_time_ms"] = _duration_ms(step)
        if aggregation.include_metadata:
            structured["metadata"] = {
                "parameters": step.parameters,
                "retry_count": step.retry_count,
                "max_retries": step.max_retries,
            }
        return structured

    @staticmethod
    def collect_errors(result: WorkflowResult, aggregation: ResultAggregation) -> list[str]:
        if not aggregation.include_errors:
            return []
        errors: list[str] = []
        for step in result.steps:
            if step.status != StepStatus.FAILED or not step.error:
                continue
            if aggregation.type == "detailed":
                errors.append(f"{step.name}: {step.error} (retry {step.retry_count}/{step.max_retries})")
            else:
                errors.append(f"{step.name}: {step.error}")
        return errors

    @staticmethod
    def collect_metadata(result: WorkflowResult, aggregation: ResultAggregation) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "workflow_id": result.workflow_id,
            "workflow_name": result.name,
            "total_steps": result.steps_total,
            "completed_steps": result.steps_completed,
        }
        if aggregation.include_timing:
            metadata["execution_time_ms"] = result.execution_time_ms
        if aggregation.include_metadata:
            metadata.update(result.metadata)
            metadata["step_details"] = [
                {
                    "name": step.name,
                    "tool_name": step.tool_name,
                    "status": str(step.status),
                    "retry_count": step.retry_count,
                    "execution_time_ms": _duration_ms(step),
                }
                for step in result.steps
            ]
        return metadata

    @staticmethod
    def determine_success(result: WorkflowResult, aggregation: ResultAggregation) -> bool:
        """Aggregation-level verdict.

        The completed/total rate must reach the threshold for the
        aggregation type, and any failed step requires a rate of 0.9.
        """
        rate = _rate(result)
        has_errors = any(step.status == StepStatus.FAILED for step in result.steps)
        threshold = SUCCESS_THRESHOLDS[aggregation.type]
        return rate >= threshold and (not has_errors or rate >= 0.9)

    @staticmethod
    def json_summary(result: WorkflowResult, details: dict[str, Any], errors: list[str]) -> str:
        return json.dumps(
            {
                "workflow": {
                    "id": result.workflow_id,
                    "name": result.name,
                    "status": str(result.status),
                    "duration_ms": result.execution_time_ms,
                },
                "steps": {
                    "total": result.steps_total,
                    "completed": result.steps_completed,
                    "failed": sum(1 for s in result.steps if s.status == StepStatus.FAILED),
                    "success_rate": _rate(result),
                },
                "results": details,
                "errors": errors,
                "timestamp": datetime.now(UTC).isoformat(),
            },
            indent=2,
            default=str,
        )

    @staticmethod
    def markdown_summary(result: WorkflowResult, details: dict[str, Any], errors: list[str]) -> str:
        failed = sum(1 for s in result.steps if s.status == StepStatus.FAILED)
        lines = [
            "# Workflow Execution Summary",
            "",
            f"**Workflow:** {result.name}",
            f"**ID:** {result.workflow_id}",
            f"**Status:** {result.status}",
            f"**Duration:** {result.execution_time_ms}ms",
            "",
            "## Steps",
            "",
            f"- **Total:** {result.steps_total}",
            f"- **Completed:** {result.steps_completed}",
            f"- **Failed:** {failed}",
            f"- **Success Rate:** {_rate(result) * 100:.1f}%",
            "",
        ]
        if details:
            lines += ["## Results", ""]
            for name, value in details.items():
                lines += [f"### {name}", "```json", json.dumps(value, indent=2, default=str), "```", ""]
        if errors:
            lines += ["## Errors", ""]
            lines += [f"- {error}" for error in errors]
        return "\n".join(lines) + "\n"

    @staticmethod
    def text_summary(result: WorkflowResult, details: dict[str, Any], errors: list[str]) -> str:
        lines = [
            f'Workflow "{result.name}" completed:',
            f"- Steps: {result.steps_completed}/{result.steps_total} ({_rate(result) * 100:.1f}% success)",
            f"- Duration: {result.execution_time_ms}ms",
        ]
        if errors:
            lines.append(f"- Errors: {len(errors)}")
        if details:
            lines.append(f"- Results: {len(details)} steps completed successfully")
        return "\n".join(lines) + "\n"
