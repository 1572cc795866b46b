"""Built-in tool handlers keyed by tool name."""
from types import MappingProxyType

from argus.core.constants import ToolName
from argus.tools.capabilities import ToolHandler
from argus.tools.handlers import files, reasoning


DEFAULT_HANDLERS: MappingProxyType[str, ToolHandler] = MappingProxyType({
    ToolName.SEARCH_FILES: files.search_files,
    ToolName.CODEBASE_SEARCH: files.codebase_search,
    ToolName.READ_FILE: files.read_file,
    ToolName.LIST_FILES: files.list_files,
    ToolName.LIST_CODE_DEFINITION_NAMES: files.list_code_definition_names,
    ToolName.ANALYZE_ARCHITECTURE: reasoning.analyze_architecture,
    ToolName.IDENTIFY_RISKS: reasoning.identify_risks,
    ToolName.STRATEGIC_ANALYSIS: reasoning.strategic_analysis,
    ToolName.PATTERN_RECOGNITION: reasoning.pattern_recognition,
})

__all__ = ["DEFAULT_HANDLERS"]
