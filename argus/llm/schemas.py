"""Function-calling schemas for the chat API, generated from the tool catalogue."""
from collections.abc import Iterable
from typing import Any

from loguru import logger

from argus.tools.definitions import PromptMode, ToolDefinition, get_definitions


def generate_tool_schema(definition: ToolDefinition) -> dict[str, Any]:
    """Render one tool definition as an OpenAI-style function schema.

    Args:
        definition: Tool definition from the catalogue.

    Returns:
        ``{"type": "function", "function": {name, description, parameters}}``.
    """
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param in definition.parameters:
        properties[param.name] = {"type": str(param.type), "description": param.description}
        if param.required:
            required.append(param.name)

    return {
        "type": "function",
        "function": {
            "name": str(definition.name),
            "description": definition.description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


def generate_tool_schemas(definitions: Iterable[ToolDefinition]) -> list[dict[str, Any]]:
    schemas = [generate_tool_schema(d) for d in definitions]
    logger.debug("Generated tool schemas", count=len(schemas))
    return schemas


def for_mode(mode: PromptMode = PromptMode.CODE_REVIEW) -> list[dict[str, Any]]:
    """Schemas for the tools offered in a prompt mode."""
    return generate_tool_schemas(get_definitions(mode))


def validate_tool_schema(schema: dict[str, Any]) -> bool:
    """Check the structural shape of a function schema.

    Args:
        schema: Candidate schema.

    Returns:
        True if the schema names a function with an object parameter block
        whose required keys are all declared properties.
    """
    if schema.get("type") != "function":
        return False
    function = schema.get("function")
    if not isinstance(function, dict) or not function.get("name") or not function.get("description"):
        return False
    parameters = function.get("parameters")
    if not isinstance(parameters, dict) or parameters.get("type") != "object":
        return False
    properties = parameters.get("properties")
    required = parameters.get("required")
    if not isinstance(properties, dict) or not isinstance(required, list):
        return False
    return all(name in properties for name in required)


def schema_summary(schemas: Iterable[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Per-tool parameter counts, keyed by tool name."""
    summary: dict[str, dict[str, Any]] = {}
    for schema in schemas:
        function = schema["function"]
        params = function["parameters"]
        summary[function["name"]] = {
            "description": function["description"],
            "parameter_count": len(params["properties"]),
            "required_parameters": list(params["required"]),
        }
    return summary
