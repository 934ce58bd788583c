from typing import List, Optional

from .converters.tools import MAX_TOOLS_PER_REQUEST
from .types import ToolDefinition, WireMessage


def validate_request(messages: List[WireMessage], tools: Optional[List[ToolDefinition]] = None) -> None:
    """
    Check a converted request against the Converse sequencing rules.

    - There must be at least one message.
    - The first message must have the user role.
    - Roles must alternate between user and assistant.
    - At most 128 tools may be sent.

    Args:
        messages (List[WireMessage]): Converted wire messages.
        tools (List[ToolDefinition], optional): Host tool definitions.

    Raises:
        ValueError: If any rule is violated.
    """
    if not messages:
        raise ValueError("Messages array cannot be empty")

    if messages[0]["role"] != "user":
        raise ValueError("First message must be User role")

    last_role = None
    for message in messages:
        if message["role"] == last_role:
            raise ValueError(f"Invalid message sequence: consecutive {last_role} messages")
        if not message["content"]:
            raise ValueError(f"Invalid message: empty {message['role']} message")
        last_role = message["role"]

    if tools and len(tools) > MAX_TOOLS_PER_REQUEST:
        raise ValueError(f"Cannot have more than {MAX_TOOLS_PER_REQUEST} tools per request.")
