import logging
from typing import Any, Dict, List, Optional

from ..profiles import get_model_profile
from ..types import ToolDefinition, ToolMode
from .schema import convert_schema

logger = logging.getLogger(__name__)

CACHE_POINT = {"cachePoint": {"type": "default"}}

# Bedrock rejects requests with more tools than this
MAX_TOOLS_PER_REQUEST = 128


def convert_tools(
    tools: Optional[List[ToolDefinition]],
    tool_mode: Optional[ToolMode],
    model_id: str,
    caching_enabled: bool = True,
    reasoning_enabled: bool = False,
) -> Optional[Dict[str, Any]]:
    """
    Build the Converse toolConfig for a request.

    A cache point follows the tool definitions when the model supports prompt
    caching. Tool choice is only sent to models that accept it; "required"
    becomes {"any": {}} except while extended thinking is on, where Claude
    only accepts automatic tool choice.

    Args:
        tools (List[ToolDefinition], optional): Host tool definitions.
        tool_mode (ToolMode, optional): "auto", "required" or "none".
        model_id (str): Base model id used for capability lookup.
        caching_enabled (bool): Whether prompt caching is turned on.
        reasoning_enabled (bool): Whether extended thinking is on for this request.

    Returns:
        Optional[Dict[str, Any]]: The toolConfig dict, or None without tools.
    """
    if not tools:
        return None

    logger.debug("Converting %d tools for model %s", len(tools), model_id)
    profile = get_model_profile(model_id)

    converted: List[Dict[str, Any]] = [
        {
            "toolSpec": {
                "name": tool.get("name", ""),
                "description": tool.get("description") or tool.get("name", ""),
                "inputSchema": {
                    "json": convert_schema(tool.get("input_schema") or {"type": "object", "properties": {}}),
                },
            }
        }
        for tool in tools
    ]

    if caching_enabled and profile.supports_prompt_caching:
        converted.append(dict(CACHE_POINT))

    config: Dict[str, Any] = {"tools": converted}

    if profile.supports_tool_choice and tool_mode:
        if tool_mode == "required" and not reasoning_enabled:
            config["toolChoice"] = {"any": {}}
        elif tool_mode in ("auto", "required"):
            config["toolChoice"] = {"auto": {}}

    return config
