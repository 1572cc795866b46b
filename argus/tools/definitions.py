# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Static catalogue of tool definitions.

The catalogue is built at import time and never mutated. Parameter order
is significant: it drives prompt rendering and schema generation.
"""
from enum import StrEnum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

from argus.core.constants import ToolName


class ParameterType(StrEnum):
    """Primitive parameter types understood by the validator."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


class ToolParameter(BaseModel):
    """One declared tool parameter.

    Attributes:
        name: Parameter name.
        type: Primitive type.
        required: Whether the parameter must be supplied.
        description: Human description shown to the model.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: ParameterType = ParameterType.STRING
    required: bool = False
    description: str = ""


class ToolDefinition(BaseModel):
    """A tool the agent may call.

    Attributes:
        name: Tool name from the closed ToolName set.
        description: Human description shown to the model.
        parameters: Ordered parameter schema.
    """

    model_config = ConfigDict(frozen=True)

    name: ToolName
    description: str
    parameters: tuple[ToolParameter, ...] = ()

    def get_parameter(self, name: str) -> ToolParameter | None:
        """Return the declared parameter with the given name, if any."""
        for param in self.parameters:
            if param.name == name:
                return param
        return None


def _required(name: str, description: str) -> ToolParameter:
    return ToolParameter(name=name, required=True, description=description)


def _optional(name: str, description: str, type: ParameterType = ParameterType.STRING) -> ToolParameter:
    return ToolParameter(name=name, type=type, required=False, description=description)


_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name=ToolName.SEARCH_FILES,
        description="Search for text patterns in files using regex",
        parameters=(
            _required("path", "Directory path to search in"),
            _required("regex", "Regex pattern to search for"),
            _optional("file_pattern", "File pattern filter (e.g., *.ts)"),
        ),
    ),
    ToolDefinition(
        name=ToolName.CODEBASE_SEARCH,
        description="Semantic search across the codebase using vector embeddings",
        parameters=(
            _required("query", "Semantic search query"),
            _optional("path", "Optional directory prefix to limit search"),
            _optional("limit", "Maximum number of results", ParameterType.NUMBER),
        ),
    ),
    ToolDefinition(
        name=ToolName.READ_FILE,
        description="Read file contents with optional line range",
        parameters=(
            _required("path", "File path to read"),
            _optional("line_range", "Line range in format 'start-end' (e.g., '1-50')"),
        ),
    ),
    ToolDefinition(
        name=ToolName.LIST_FILES,
        description="List files and directories in a path",
        parameters=(
            _required("path", "Directory path to list"),
            _optional("recursive", "Whether to list recursively", ParameterType.BOOLEAN),
            _optional("limit", "Maximum number of files to return", ParameterType.NUMBER),
        ),
    ),
    ToolDefinition(
        name=ToolName.LIST_CODE_DEFINITION_NAMES,
        description="List code symbols (functions, classes, etc.) in a file",
        parameters=(_required("path", "File path to analyze for symbols"),),
    ),
    ToolDefinition(
        name=ToolName.ANALYZE_ARCHITECTURE,
        description=(
            "Analyze the overall architecture and identify key patterns based on "
            "your strategic understanding"
        ),
        parameters=(
            _required(
                "analysis_focus",
                "What aspect of architecture to analyze "
                "(data_flow, component_structure, state_management, security_patterns)",
            ),
            _required("current_understanding", "Your current understanding of the codebase"),
            _required("strategic_question", "The strategic question you're trying to answer"),
        ),
    ),
    ToolDefinition(
        name=ToolName.IDENTIFY_RISKS,
        description="Identify potential risks and issues based on code patterns you've discovered",
        parameters=(
            _required("component_type", "Type of component or pattern you're analyzing"),
            _required("patterns_found", "Patterns you've identified that could be risky"),
            _required("reasoning", "Your reasoning for why these patterns are concerning"),
        ),
    ),
    ToolDefinition(
        name=ToolName.STRATEGIC_ANALYSIS,
        description=(
            "Perform strategic analysis of your current understanding and plan "
            "next investigation steps"
        ),
        parameters=(
            _required(
                "analysis_stage",
                "Current stage of analysis (context, investigation, pattern_recognition, finalization)",
            ),
            _required("current_understanding", "What you understand so far"),
            _required("potential_issues", "Potential issues you've identified"),
            _required("next_investigation", "What you should investigate next and why"),
            _required("reasoning", "Your strategic reasoning for the next steps"),
        ),
    ),
    ToolDefinition(
        name=ToolName.PATTERN_RECOGNITION,
        description="Recognize and analyze patterns across the codebase for quality assessment",
        parameters=(
            _required("patterns_found", "Patterns you've identified across the codebase"),
            _required("analysis_focus", "What you're looking for in these patterns"),
            _required("reasoning", "Why these patterns matter for code quality"),
        ),
    ),
)

TOOL_DEFINITIONS: MappingProxyType[str, ToolDefinition] = MappingProxyType(
    {str(definition.name): definition for definition in _DEFINITIONS}
)

FILE_TOOLS: tuple[ToolName, ...] = (
    ToolName.SEARCH_FILES,
    ToolName.CODEBASE_SEARCH,
    ToolName.READ_FILE,
    ToolName.LIST_FILES,
    ToolName.LIST_CODE_DEFINITION_NAMES,
)

REASONING_TOOLS: tuple[ToolName, ...] = (
    ToolName.ANALYZE_ARCHITECTURE,
    ToolName.IDENTIFY_RISKS,
    ToolName.STRATEGIC_ANALYSIS,
    ToolName.PATTERN_RECOGNITION,
)


class PromptMode(StrEnum):
    """Which subset of the catalogue is offered to the model."""

    CODE_REVIEW = "code_review"
    FILE_ANALYSIS = "file_analysis"


def get_definitions(mode: PromptMode = PromptMode.CODE_REVIEW) -> list[ToolDefinition]:
    """Return the tool definitions offered in a prompt mode.

    Args:
        mode: Prompt mode selecting the tool subset.

    Returns:
        Definitions in catalogue order.
    """
    if mode == PromptMode.FILE_ANALYSIS:
        return [TOOL_DEFINITIONS[name] for name in FILE_TOOLS]
    return list(_DEFINITIONS)
