# argus/tools/registry.py
"""Registry mapping tool names to handlers and definitions."""
from collections.abc import Mapping
from types import MappingProxyType

from argus.core.exceptions import ConfigurationError
from argus.core.types import ToolUse
from argus.tools.capabilities import ToolHandler
from argus.tools.definitions import TOOL_DEFINITIONS, ToolDefinition, ToolParameter
from argus.tools.handlers import DEFAULT_HANDLERS
from argus.tools.validator import ParameterValidator, ValidationResult


class ToolRegistry:
    """Immutable catalogue of callable tools.

    Built once at startup and shared by reference. Lookups never mutate
    state, so concurrent reviews can read it without locking.

    Attributes:
        validator: Validator bound to the same definitions.
    """

    def __init__(
        self,
        definitions: Mapping[str, ToolDefinition] = TOOL_DEFINITIONS,
        handlers: Mapping[str, ToolHandler] = DEFAULT_HANDLERS,
    ) -> None:
        """Build the registry.

        Args:
            definitions: Tool definitions keyed by name.
            handlers: Tool handlers keyed by name.

        Raises:
            ConfigurationError: If a handler has no matching definition.
        """
        undefined = sorted(set(handlers) - set(definitions))
        if undefined:
            raise ConfigurationError(f"Handlers registered without definitions: {', '.join(undefined)}")
        self._definitions = MappingProxyType({str(k): v for k, v in definitions.items()})
        self._handlers = MappingProxyType({str(k): v for k, v in handlers.items()})
        self.validator = ParameterValidator(self._definitions)

    def resolve(self, name: str) -> ToolHandler | None:
        """Return the handler for a tool, or None when it is not registered."""
        return self._handlers.get(name)

    def get_definition(self, name: str) -> ToolDefinition | None:
        return self._definitions.get(name)

    def get_definitions(self) -> list[ToolDefinition]:
        """Return definitions for every tool that has a handler, in catalogue order."""
        return [d for name, d in self._definitions.items() if name in self._handlers]

    def get_tool_names(self) -> list[str]:
        return list(self._handlers)

    def is_valid_tool(self, name: str) -> bool:
        return name in self._handlers

    def get_description(self, name: str) -> str:
        definition = self._definitions.get(name)
        return definition.description if definition else "Unknown tool"

    def get_parameters(self, name: str) -> tuple[ToolParameter, ...]:
        definition = self._definitions.get(name)
        return definition.parameters if definition else ()

    def validate(self, tool_use: ToolUse) -> ValidationResult:
        return self.validator.validate(tool_use)
