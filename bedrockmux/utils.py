from pathlib import Path
from typing import Union, List, Optional, Dict, Any, Tuple

from .types import (
    ChatMessage, DataPart, Part, Role, TextPart, ThinkingPart,
    ToolCallPart, ToolDefinition, ToolResultPart,
)

# =============================================================================
# Image Helpers
# =============================================================================

def encode_image_file(image_path: Union[str, Path]) -> Tuple[bytes, str]:
    """
    Read a local image file for use as a message part.

    Reads the file from the given path and determines its MIME type based on
    extension. Bedrock takes raw image bytes, so no base64 encoding is done.

    Args:
        image_path (Union[str, Path]): Path to the image file.

    Returns:
        Tuple[bytes, str]: A tuple containing:
            - data (bytes): The raw image content.
            - mime_type (str): The MIME type (e.g., 'image/png').

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    # Map file extensions to MIME types
    mime_types = {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".gif": "image/gif",
        ".webp": "image/webp",
    }
    mime_type = mime_types.get(path.suffix.lower(), "image/jpeg")

    with open(path, "rb") as f:
        data = f.read()

    return data, mime_type


def create_image_part(
    source: Union[str, Path, bytes],
    *,
    mime_type: Optional[str] = None,
) -> DataPart:
    """
    Create an image part for multimodal user messages.

    Args:
        source: A local file path, or raw image bytes (requires `mime_type`).
        mime_type (str, optional): Required if `source` is raw bytes.

    Returns:
        DataPart: {"type": "data", "data": ..., "mime_type": ...}

    Raises:
        ValueError: If raw bytes are given without a MIME type.
    """
    if isinstance(source, bytes):
        if not mime_type:
            raise ValueError("mime_type is required for raw image bytes.")
        return {"type": "data", "data": source, "mime_type": mime_type}

    data, detected_mime = encode_image_file(source)
    return {"type": "data", "data": data, "mime_type": mime_type or detected_mime}


# =============================================================================
# Message Helpers
# =============================================================================

def create_text_part(text: str) -> TextPart:
    """
    Create a simple text part.

    Args:
        text (str): The text content.

    Returns:
        TextPart: A dictionary {"type": "text", "value": text}.
    """
    return {"type": "text", "value": text}


def create_thinking_part(text: str, signature: Optional[str] = None) -> ThinkingPart:
    part: ThinkingPart = {"type": "thinking", "value": text}
    if signature:
        part["signature"] = signature
    return part


def create_message(
    role: Role,
    content: Union[str, List[Union[str, Part]]],
) -> ChatMessage:
    """
    Create a ChatMessage.

    Handles both simple string content and lists of parts. String elements
    within a list are normalized to text parts.

    Args:
        role (str): The role of the message sender ('system', 'user', 'assistant').
        content (Union[str, List]): The content of the message.

    Returns:
        ChatMessage: A dictionary matching the ChatMessage type definition.
    """
    if isinstance(content, str):
        return {"role": role, "content": [create_text_part(content)]}

    normalized: List[Part] = []
    for item in content:
        if isinstance(item, str):
            normalized.append(create_text_part(item))
        else:
            normalized.append(item)

    return {"role": role, "content": normalized}


# =============================================================================
# Tool Calling Helpers
# =============================================================================

def create_tool(
    name: str,
    description: str,
    parameters: Dict[str, Any],
    required: Optional[List[str]] = None,
) -> ToolDefinition:
    """
    Create a tool definition for function calling.

    Args:
        name (str): The name of the tool.
        description (str): A clear description of what the tool does.
        parameters (Dict): JSON Schema properties for the tool's arguments.
        required (List[str], optional): Names of required arguments.

    Returns:
        ToolDefinition: A dictionary with name, description and input_schema.
    """
    return {
        "name": name,
        "description": description,
        "input_schema": {
            "type": "object",
            "properties": parameters,
            "required": required or [],
        },
    }


def create_tool_call_part(call_id: str, name: str, arguments: Any) -> ToolCallPart:
    return {"type": "tool_call", "call_id": call_id, "name": name, "input": arguments}


def create_tool_result_part(call_id: str, content: Any) -> ToolResultPart:
    """
    Create a tool result part to send back to the model on a user turn.

    Args:
        call_id (str): The id of the tool call this result answers.
        content: A string, a JSON-like value, or a list of parts.

    Returns:
        ToolResultPart: The result part.
    """
    if isinstance(content, str):
        content = [create_text_part(content)]
    return {"type": "tool_result", "call_id": call_id, "content": content}


def create_assistant_message_with_tool_calls(
    content: str,
    tool_calls: List[ToolCallPart],
    thinking: Optional[ThinkingPart] = None,
) -> ChatMessage:
    """
    Create an assistant message that includes tool calls.

    Args:
        content (str): Text accompanying the tool calls (can be empty).
        tool_calls (List[ToolCallPart]): Tool calls requested by the model.
        thinking (ThinkingPart, optional): Signed reasoning to replay first.

    Returns:
        ChatMessage: A message with role='assistant'.
    """
    parts: List[Part] = []
    if thinking is not None:
        parts.append(thinking)
    if content:
        parts.append(create_text_part(content))
    parts.extend(tool_calls)
    return {"role": "assistant", "content": parts}
