# argus/orchestration/prompts.py
"""Turn prompts for the review loop.

The loop tracks a conversational stage (initial, investigation, analysis,
final) inferred from phrases in the model's own text, and picks the next
continuation prompt from it.
"""
from collections.abc import Iterable, Sequence
from enum import StrEnum

from argus.core.constants import COMPLETION_MARKER, ToolName
from argus.core.types import ToolCallRecord


class ReviewStage(StrEnum):
    """Conversational stage of a review."""

    INITIAL = "initial"
    INVESTIGATION = "investigation"
    ANALYSIS = "analysis"
    FINAL = "final"


CODE_SMELLS: tuple[tuple[str, str], ...] = (
    ("MAGIC_NUMBERS", "unexplained numeric literals in logic"),
    ("DUPLICATE_CODE", "repeated blocks that should be shared"),
    ("OVERLY_COMPLEX", "deep nesting or tangled control flow"),
    ("GLOBAL_VARIABLES", "module-level mutable state used across functions"),
    ("MUTABLE_SHARED_STATE", "state mutated from several places without ownership"),
    ("MISSING_ERROR_HANDLING", "failures ignored or swallowed"),
    ("LONG_METHOD", "functions doing too many things"),
    ("TIGHT_COUPLING", "components depending on each other's internals"),
    ("HARDCODED_SECRETS", "credentials, tokens or keys in source"),
    ("GOD_CLASS", "classes with too many responsibilities"),
    ("DEAD_CODE", "unreachable or unused code"),
)

ADVANCED_TOOLS = frozenset(
    {
        ToolName.CODEBASE_SEARCH,
        ToolName.SEARCH_FILES,
        ToolName.ANALYZE_ARCHITECTURE,
        ToolName.IDENTIFY_RISKS,
        ToolName.STRATEGIC_ANALYSIS,
        ToolName.PATTERN_RECOGNITION,
    }
)

FINDING_FORMAT = """Report every finding as JSON inside a ```json fenced block:

```json
{
  "issues": [
    {
      "path": "src/module.py",
      "line": 42,
      "severity": "high",
      "codeSmellType": "MAGIC_NUMBERS",
      "message": "What is wrong and the evidence for it",
      "suggestedFix": "Concrete change that fixes it",
      "range": {"startLine": 40, "endLine": 45}
    }
  ]
}
```"""

BREVITY_PROMPT = (
    "Please keep your responses concise (2-4 sentences). Focus on one key point at a time. "
    "What's the most important thing you want to investigate next?"
)

TOOL_CONTINUATION_PROMPT = (
    "Continue your analysis based on the tool results. What NEW code smells did you find? "
    "Report each one in the JSON findings format, then decide what to investigate next."
)

ADVANCED_TOOLS_HINT = (
    "Consider using more advanced analysis tools: codebase_search to find related code, "
    "search_files to trace usages, and analyze_architecture, identify_risks, "
    "strategic_analysis or pattern_recognition to record your reasoning."
)

CODE_SMELL_CHECK = (
    "CODE SMELL CHECK: before moving on, re-check the code you just examined for magic numbers, "
    "duplicate code, missing error handling, hardcoded secrets and overly complex logic."
)

TOOL_ENCOURAGEMENT = """Use the available tools to gather evidence:
- list_files to map the changed areas
- read_file to examine specific code
- search_files and codebase_search to follow usages
- analyze_architecture, identify_risks, strategic_analysis, pattern_recognition to structure your reasoning"""

STAGE_PROMPTS: dict[ReviewStage | None, str] = {
    ReviewStage.INITIAL: (
        "Start by exploring the changed files. Which files matter most for this change, "
        "and what will you examine first?"
    ),
    ReviewStage.INVESTIGATION: (
        "Continue investigating. Read the code you identified and look for code smells. "
        "What did you find?"
    ),
    ReviewStage.ANALYSIS: (
        "Analyze what you found. Which issues are real problems, how severe are they, and "
        "how should they be fixed? Report them in the JSON findings format."
    ),
    ReviewStage.FINAL: (
        "Wrap up the review. List every confirmed finding in the mandatory format below, "
        f"then end with {COMPLETION_MARKER}.\n\n{FINDING_FORMAT}"
    ),
    None: "Continue the review. What is the next thing to investigate?",
}

FINAL_PROMPT = (
    "Provide your final comprehensive review now. Summarize the most important findings, "
    f"include every finding in the JSON findings format, and end with {COMPLETION_MARKER}."
    f"\n\n{FINDING_FORMAT}"
)

_INVESTIGATION_CUES = ("I need to", "I should", "Let me")
_ANALYSIS_CUES = ("I found", "This reveals", "Interesting")
_FINAL_CUES = ("Based on", "In conclusion", "Summary")


def build_initial_prompt(
    owner: str | None,
    repo: str | None,
    pr_number: int | None,
    changed_files: Sequence[str] = (),
) -> str:
    """The task prompt sent on the first turn.

    Args:
        owner: Repository owner.
        repo: Repository name.
        pr_number: Pull request number.
        changed_files: Paths changed by the pull request, if known.

    Returns:
        Prompt text.
    """
    if owner and repo and pr_number is not None:
        target = f"PR #{pr_number} in {owner}/{repo}"
    else:
        target = "the code in this workspace"

    smells = "\n".join(f"- {name}: {description}" for name, description in CODE_SMELLS)
    sections = [
        f"You are an expert code reviewer conducting a strategic analysis of {target}.",
        "Investigate the code with the available tools. Form a hypothesis, gather evidence, "
        "and only report issues you have confirmed in the code.",
        f"Look for these code smells:\n{smells}",
        FINDING_FORMAT,
        f"Report findings as you confirm them. When the review is complete, give a short "
        f"summary, repeat every finding in one final JSON block, and end with {COMPLETION_MARKER}.",
    ]
    if changed_files:
        listing = "\n".join(f"- {path}" for path in changed_files)
        sections.insert(1, f"Changed files:\n{listing}")
    return "\n\n".join(sections)


def detect_stage(text: str, current: ReviewStage | None, *, allow_final: bool = True) -> ReviewStage | None:
    """Advance the stage from cue phrases in the model's text.

    Args:
        text: Assistant text of the last turn.
        current: Stage before this turn.
        allow_final: Whether final-stage cues are honored.

    Returns:
        The new stage, or ``current`` when no cue matches.
    """
    if any(cue in text for cue in _INVESTIGATION_CUES):
        return ReviewStage.INVESTIGATION
    if any(cue in text for cue in _ANALYSIS_CUES):
        return ReviewStage.ANALYSIS
    if allow_final and any(cue in text for cue in _FINAL_CUES):
        return ReviewStage.FINAL
    return current


def used_advanced_tools(records: Iterable[ToolCallRecord]) -> bool:
    return any(record.tool_name in ADVANCED_TOOLS for record in records)


def continuation_prompt(stage: ReviewStage | None, tool_calls: Sequence[ToolCallRecord]) -> str:
    """The prompt for the next turn.

    After a turn that ran tools the model is asked to report what the results
    showed, with a nudge toward the advanced tools when it used none. Without
    tools the stage prompt is used, plus tool suggestions unless the review
    is wrapping up.

    Args:
        stage: Current stage.
        tool_calls: Tool calls executed in the previous turn.

    Returns:
        Prompt text.
    """
    if tool_calls:
        parts = [TOOL_CONTINUATION_PROMPT]
        if not used_advanced_tools(tool_calls):
            parts.append(ADVANCED_TOOLS_HINT)
        parts.append(CODE_SMELL_CHECK)
        return "\n\n".join(parts)

    prompt = STAGE_PROMPTS.get(stage, STAGE_PROMPTS[None])
    if stage != ReviewStage.FINAL:
        prompt = f"{prompt}\n\n{TOOL_ENCOURAGEMENT}"
    return prompt
