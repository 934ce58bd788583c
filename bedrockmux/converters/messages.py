import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..profiles import CapabilityProfile, get_model_profile
from ..types import (
    ChatMessage,
    ContentBlock,
    ReasoningBlock,
    SystemBlock,
    WireMessage,
)
from .tools import CACHE_POINT

logger = logging.getLogger(__name__)

# Cache points placed on conversation messages; system and tools take one each
MAX_MESSAGE_CACHE_POINTS = 2

# Inserted when the history opens with an assistant turn
LEADING_USER_PLACEHOLDER = "Continue."

_IMAGE_FORMATS = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/gif": "gif",
    "image/webp": "webp",
}

# Heuristic markers for failed tool runs. The host does not flag errors on
# tool results, so the text is inspected instead.
TOOL_ERROR_PREFIXES = ("error", "error while calling tool:")
TOOL_ERROR_PHRASES = (
    "error while calling tool",
    "tool execution failed",
    "failed to execute tool",
    "command failed with exit code",
)


@dataclass
class ConversionOptions:
    reasoning_enabled: bool = False
    prior_reasoning: Optional[ReasoningBlock] = None
    caching_enabled: bool = True


@dataclass
class ConvertedMessages:
    messages: List[WireMessage] = field(default_factory=list)
    system: List[SystemBlock] = field(default_factory=list)


def looks_like_tool_error(text: str) -> bool:
    """
    Decide whether a tool result's text reports a failure.

    Args:
        text (str): Stringified tool result.

    Returns:
        bool: True when the text starts with or contains a known error phrase.
    """
    lowered = text.strip().lower()
    if lowered.startswith(TOOL_ERROR_PREFIXES):
        return True
    return any(phrase in lowered for phrase in TOOL_ERROR_PHRASES)


def is_deepseek_model(model_id: str) -> bool:
    return "deepseek" in model_id.lower()


# =============================================================================
# Block Builders
# =============================================================================

def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


def _tool_result_text(content: Any) -> str:
    """Flatten tool result content (part list or raw value) into text."""
    if not isinstance(content, list):
        return _stringify(content)

    pieces = []
    for item in content:
        if isinstance(item, dict) and item.get("type") == "text":
            pieces.append(item.get("value", ""))
        elif isinstance(item, dict) and item.get("type") == "data":
            mime_type = item.get("mime_type", "")
            if mime_type.startswith("text/") or mime_type == "application/json":
                pieces.append(_stringify(item.get("data")))
        else:
            pieces.append(_stringify(item))
    return "".join(pieces)


def _tool_result_block(part: Dict[str, Any], profile: CapabilityProfile) -> ContentBlock:
    content = part.get("content")
    text = _tool_result_text(content)

    if profile.tool_result_format == "json" and isinstance(content, dict):
        result_content: List[Dict[str, Any]] = [{"json": content}]
    else:
        # Blank text fields are rejected by the backend
        result_content = [{"text": text if text.strip() else "(no output)"}]

    tool_result: Dict[str, Any] = {
        "toolUseId": part.get("call_id", ""),
        "content": result_content,
    }
    if profile.supports_tool_result_status and looks_like_tool_error(text):
        tool_result["status"] = "error"
    return {"toolResult": tool_result}


def _image_block(part: Dict[str, Any]) -> Optional[ContentBlock]:
    image_format = _IMAGE_FORMATS.get(part.get("mime_type", "").lower())
    if image_format is None or not part.get("data"):
        return None
    return {"image": {"format": image_format, "source": {"bytes": part["data"]}}}


def reasoning_content_block(text: str, signature: Optional[str]) -> ContentBlock:
    reasoning_text: Dict[str, Any] = {"text": text}
    if signature:
        reasoning_text["signature"] = signature
    return {"reasoningContent": {"reasoningText": reasoning_text}}


def _user_blocks(msg: ChatMessage, profile: CapabilityProfile) -> List[ContentBlock]:
    blocks: List[ContentBlock] = []
    for part in msg.get("content", []):
        part_type = part.get("type")
        if part_type == "text":
            if part.get("value", "").strip():
                blocks.append({"text": part["value"]})
        elif part_type == "tool_result":
            blocks.append(_tool_result_block(part, profile))
        elif part_type == "data":
            image = _image_block(part)
            if image is not None:
                blocks.append(image)
            else:
                logger.debug("Skipping unsupported data part (%s)", part.get("mime_type"))
    return blocks


def _assistant_blocks(msg: ChatMessage) -> List[ContentBlock]:
    blocks: List[ContentBlock] = []
    for part in msg.get("content", []):
        part_type = part.get("type")
        if part_type == "text":
            if part.get("value", "").strip():
                blocks.append({"text": part["value"]})
        elif part_type == "tool_call":
            blocks.append({
                "toolUse": {
                    "toolUseId": part.get("call_id", ""),
                    "name": part.get("name", ""),
                    "input": part.get("input") if part.get("input") is not None else {},
                }
            })
        elif part_type == "thinking":
            # Unsigned reasoning cannot be replayed
            if part.get("signature") and part.get("value"):
                blocks.append(reasoning_content_block(part["value"], part["signature"]))
    return blocks


# =============================================================================
# Sequence Rules
# =============================================================================

def _has_block(message: WireMessage, key: str) -> bool:
    return any(key in block for block in message["content"])


def merge_consecutive_roles(messages: List[WireMessage]) -> List[WireMessage]:
    """
    Merge adjacent messages with the same role and drop empty ones.

    Args:
        messages (List[WireMessage]): Wire messages in conversation order.

    Returns:
        List[WireMessage]: New list with strictly alternating roles.
    """
    merged: List[WireMessage] = []
    for message in messages:
        if not message["content"]:
            continue
        if merged and merged[-1]["role"] == message["role"]:
            merged[-1]["content"].extend(message["content"])
        else:
            merged.append({"role": message["role"], "content": list(message["content"])})
    return merged


def _inject_reasoning(messages: List[WireMessage], prior: Optional[ReasoningBlock]) -> None:
    if prior is None:
        return
    if not prior.signature:
        logger.debug("Dropping prior reasoning block without signature")
        return
    for message in messages:
        if message["role"] == "assistant" and not _has_block(message, "reasoningContent"):
            message["content"].insert(0, reasoning_content_block(prior.text, prior.signature))


def _strip_reasoning(messages: List[WireMessage]) -> List[WireMessage]:
    stripped: List[WireMessage] = [
        {
            "role": message["role"],
            "content": [block for block in message["content"] if "reasoningContent" not in block],
        }
        for message in messages
    ]
    return merge_consecutive_roles(stripped)


def _place_message_cache_points(messages: List[WireMessage], profile: CapabilityProfile) -> None:
    user_messages = [message for message in messages if message["role"] == "user"]
    with_results = [message for message in user_messages if _has_block(message, "toolResult")]
    without_results = [message for message in user_messages if not _has_block(message, "toolResult")]

    if profile.supports_caching_with_tool_results:
        chosen = with_results[-MAX_MESSAGE_CACHE_POINTS:]
        # Top up from plain user turns when there are too few tool-result turns
        missing = MAX_MESSAGE_CACHE_POINTS - len(chosen)
        if missing > 0:
            chosen += without_results[-missing:]
    else:
        chosen = without_results[-MAX_MESSAGE_CACHE_POINTS:]

    for message in chosen:
        message["content"].append(dict(CACHE_POINT))


# =============================================================================
# Public API
# =============================================================================

def convert_messages(
    messages: List[ChatMessage],
    model_id: str,
    options: Optional[ConversionOptions] = None,
) -> ConvertedMessages:
    """
    Convert host chat history to Converse messages and system blocks.

    Applies the backend's sequencing rules: consecutive same-role turns are
    merged, blank text and empty messages are dropped, and the conversation
    always opens with a user turn. Depending on the model's profile it also
    adds cache points (at most one after the system prompt and two on recent
    user turns) and replays the previous turn's signed reasoning in front of
    every assistant turn.

    Args:
        messages (List[ChatMessage]): Host message history.
        model_id (str): Base model id used for capability lookup.
        options (ConversionOptions, optional): Reasoning and caching switches.

    Returns:
        ConvertedMessages: Wire messages and system blocks.
    """
    options = options or ConversionOptions()
    profile = get_model_profile(model_id)

    wire: List[WireMessage] = []
    system: List[SystemBlock] = []

    for msg in messages:
        role = msg.get("role")
        if role == "user":
            wire.append({"role": "user", "content": _user_blocks(msg, profile)})
        elif role == "assistant":
            wire.append({"role": "assistant", "content": _assistant_blocks(msg)})
        else:
            for part in msg.get("content", []):
                if part.get("type") == "text" and part.get("value", "").strip():
                    system.append({"text": part["value"]})

    wire = merge_consecutive_roles(wire)

    if options.reasoning_enabled:
        _inject_reasoning(wire, options.prior_reasoning)

    if is_deepseek_model(model_id):
        wire = _strip_reasoning(wire)

    if wire and wire[0]["role"] == "assistant":
        wire.insert(0, {"role": "user", "content": [{"text": LEADING_USER_PLACEHOLDER}]})

    if options.caching_enabled and profile.supports_prompt_caching:
        if system:
            system.append(dict(CACHE_POINT))
        _place_message_cache_points(wire, profile)

    return ConvertedMessages(messages=wire, system=system)
