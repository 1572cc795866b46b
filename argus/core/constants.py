# argus/core/constants.py
"""Constants used across the Argus codebase."""

from enum import StrEnum


class ToolName(StrEnum):
    """Closed set of tools the review agent can call."""

    SEARCH_FILES = "search_files"
    CODEBASE_SEARCH = "codebase_search"
    READ_FILE = "read_file"
    LIST_FILES = "list_files"
    LIST_CODE_DEFINITION_NAMES = "list_code_definition_names"
    ANALYZE_ARCHITECTURE = "analyze_architecture"
    IDENTIFY_RISKS = "identify_risks"
    STRATEGIC_ANALYSIS = "strategic_analysis"
    PATTERN_RECOGNITION = "pattern_recognition"


# Special workflow step type that runs the review loop instead of a tool
REVIEW_STEP_TOOL = "llm_orchestrated_review"
REVIEW_STEP_NAME = "LLM Orchestrated Review"

# Marker the model emits when it has finished the review
COMPLETION_MARKER = "<finish></finish>"

# Channel used when an event has no task id
GLOBAL_CHANNEL = "task:global"

# Context store defaults
DEFAULT_MAX_CONTEXTS = 100
DEFAULT_MAX_MESSAGES = 1000
DEFAULT_MAX_TOOL_CALLS = 500

# Review loop defaults
DEFAULT_MAX_LOOPS = 20
DEFAULT_BREVITY_THRESHOLD = 600
DEFAULT_COMPACTION_TOKEN_THRESHOLD = 100_000
DEFAULT_COMPACTION_KEEP_RECENT = 10
DEFAULT_COMPACTION_MIN_MESSAGES = 15

# LLM sampling defaults
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000


def channel_for(task_id: str | None) -> str:
    """Return the event channel for a task.

    Args:
        task_id: Task identifier, or None for untracked work.

    Returns:
        Channel name in the form ``task:{task_id}``.
    """
    return f"task:{task_id}" if task_id else GLOBAL_CHANNEL
