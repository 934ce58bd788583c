from typing import Any, Dict


def convert_schema(schema: Any) -> Any:
    """
    Normalise a tool input schema to a plain JSON schema.

    Schemas that already look like JSON schema are returned as-is. Legacy
    function-style definitions ({"description", "parameters": {...}}) are
    unwrapped into an object schema.

    Args:
        schema (Any): Tool input schema supplied by the host.

    Returns:
        Any: A JSON schema suitable for toolSpec.inputSchema.json.
    """
    if not isinstance(schema, dict):
        return schema

    if "type" in schema or "properties" in schema or "items" in schema:
        return schema

    result: Dict[str, Any] = {}
    if schema.get("description"):
        result["description"] = schema["description"]

    parameters = schema.get("parameters")
    if isinstance(parameters, dict):
        result["type"] = "object"
        result["properties"] = parameters.get("properties") or {}
        if parameters.get("required"):
            result["required"] = parameters["required"]

    return result or schema
