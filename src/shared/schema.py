"""JSON Schema helpers for operation arguments."""

from typing import Any

from jsonschema import Draft7Validator

from shared.models import ToolParameter

TYPE_MAPPING = {
    "string": "string",
    "str": "string",
    "integer": "integer",
    "int": "integer",
    "number": "number",
    "float": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "array": "array",
    "list": "array",
    "object": "object",
    "dict": "object",
}


def validate_schema(data: Any, schema: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate data against a JSON Schema.

    Args:
        data: The data to validate
        schema: JSON Schema to validate against

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    if not schema:
        return True, []

    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))

    if not errors:
        return True, []

    error_messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]

    return False, error_messages


def missing_required(arguments: dict[str, Any], schema: dict[str, Any]) -> list[str]:
    """Return required keys absent from ``arguments``, in declaration order."""
    return [name for name in schema.get("required", []) if name not in arguments]


def create_tool_schema(parameters: list[ToolParameter]) -> dict[str, Any]:
    """
    Create a JSON Schema object from parameter declarations.

    Extra keys are permitted; callers may pass arguments the schema does
    not declare.
    """
    properties: dict[str, Any] = {}

    for param in parameters:
        param_schema: dict[str, Any] = {
            "type": TYPE_MAPPING.get(param.type, "string"),
            "description": param.description,
        }
        if param.enum:
            param_schema["enum"] = param.enum
        if param.default is not None:
            param_schema["default"] = param.default
        properties[param.name] = param_schema

    return {
        "type": "object",
        "properties": properties,
        "required": [p.name for p in parameters if p.required],
    }
