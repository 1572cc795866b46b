# argus/tools/validator.py
"""Parameter validation for tool uses."""
import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from argus.core.types import ToolUse
from argus.tools.definitions import ParameterType, ToolDefinition


class ValidationResult(BaseModel):
    """Outcome of validating a tool use.

    Attributes:
        valid: True when no errors were found.
        errors: Every problem found, in discovery order.
        missing_params: Required parameters that were absent or blank.
        invalid_params: Parameters that were undeclared or of the wrong type.
    """

    valid: bool
    errors: list[str] = Field(default_factory=list)
    missing_params: list[str] = Field(default_factory=list)
    invalid_params: list[str] = Field(default_factory=list)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _check_value(name: str, value: Any, expected: ParameterType) -> str | None:
    """Return an error message if value does not match the expected type."""
    if expected == ParameterType.STRING:
        if not isinstance(value, str):
            return f"Parameter {name} must be a string"
    elif expected == ParameterType.NUMBER:
        if isinstance(value, bool):
            return f"Parameter {name} must be a valid number"
        try:
            number = float(value)
        except (TypeError, ValueError):
            return f"Parameter {name} must be a valid number"
        if math.isnan(number):
            return f"Parameter {name} must be a valid number"
        if number < 0:
            return f"Parameter {name} must be a positive number"
    elif expected == ParameterType.BOOLEAN:
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            if value.lower() not in ("true", "false"):
                return f"Parameter {name} must be 'true' or 'false'"
        else:
            return f"Parameter {name} must be a boolean"
    return None


class ParameterValidator:
    """Validates tool uses against the tool definition catalogue.

    All problems are collected in one pass so the caller can report every
    issue at once. Checks run in a fixed order: tool existence, required
    parameters, undeclared parameters, then value types.

    Attributes:
        definitions: Tool definitions keyed by tool name.
    """

    def __init__(self, definitions: Mapping[str, ToolDefinition]) -> None:
        self.definitions = definitions

    def validate(self, tool_use: ToolUse) -> ValidationResult:
        """Validate a tool use.

        Args:
            tool_use: The tool use to check.

        Returns:
            ValidationResult with every error found.
        """
        definition = self.definitions.get(tool_use.name)
        if definition is None:
            return ValidationResult(valid=False, errors=[f"Unknown tool: {tool_use.name}"])

        errors: list[str] = []
        missing: list[str] = []
        invalid: list[str] = []

        for param in definition.parameters:
            if param.required and _is_blank(tool_use.params.get(param.name)):
                missing.append(param.name)
                errors.append(f"Missing required parameter: {param.name}")

        for name, value in tool_use.params.items():
            param = definition.get_parameter(name)
            if param is None:
                invalid.append(name)
                errors.append(f"Unknown parameter: {name}")
                continue
            if value is None:
                continue
            error = _check_value(name, value, param.type)
            if error:
                invalid.append(name)
                errors.append(error)

        return ValidationResult(
            valid=not errors,
            errors=errors,
            missing_params=missing,
            invalid_params=invalid,
        )

    def get_required_parameters(self, tool_name: str) -> list[str]:
        definition = self.definitions.get(tool_name)
        if definition is None:
            return []
        return [p.name for p in definition.parameters if p.required]

    def get_optional_parameters(self, tool_name: str) -> list[str]:
        definition = self.definitions.get(tool_name)
        if definition is None:
            return []
        return [p.name for p in definition.parameters if not p.required]

    def get_parameter_description(self, tool_name: str, param_name: str) -> str | None:
        """Return the description of a declared parameter, or None."""
        definition = self.definitions.get(tool_name)
        if definition is None:
            return None
        param = definition.get_parameter(param_name)
        return param.description if param else None
