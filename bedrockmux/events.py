"""
Typed variants of the Converse stream events.

boto3 yields each stream event as a single-key dict ({"contentBlockDelta": {...}}).
`parse_event` maps those dicts onto a closed set of dataclasses so the stream
processor can dispatch with a `match` statement. Shapes the adapter does not
know about become `UnknownEvent` / `UnknownDelta` instead of failing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union


# =============================================================================
# Block Starts
# =============================================================================

@dataclass(frozen=True)
class ToolUseStart:
    tool_use_id: str
    name: str


@dataclass(frozen=True)
class ReasoningStart:
    signature: Optional[str] = None


# =============================================================================
# Deltas
# =============================================================================

@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolUseDelta:
    input: str


@dataclass(frozen=True)
class ReasoningDelta:
    """
    Reasoning text and/or signature.

    Carried either by a "reasoningContent" delta or by a "thinking" delta;
    both shapes mean the same thing.
    """
    text: str = ""
    signature: Optional[str] = None
    redacted: bool = False


@dataclass(frozen=True)
class UnknownDelta:
    keys: Tuple[str, ...]


Delta = Union[TextDelta, ToolUseDelta, ReasoningDelta, UnknownDelta]


# =============================================================================
# Events
# =============================================================================

@dataclass(frozen=True)
class MessageStartEvent:
    role: Optional[str] = None


@dataclass(frozen=True)
class ContentBlockStartEvent:
    index: int
    tool_use: Optional[ToolUseStart] = None
    reasoning: Optional[ReasoningStart] = None


@dataclass(frozen=True)
class ContentBlockDeltaEvent:
    index: int
    delta: Delta


@dataclass(frozen=True)
class ContentBlockStopEvent:
    index: int


@dataclass(frozen=True)
class MessageStopEvent:
    stop_reason: Optional[str] = None


@dataclass(frozen=True)
class ReasoningSegment:
    text: str = ""
    signature: Optional[str] = None


@dataclass(frozen=True)
class MetadataEvent:
    usage: Dict[str, Any] = field(default_factory=dict)
    metrics: Dict[str, Any] = field(default_factory=dict)
    reasoning: Tuple[ReasoningSegment, ...] = ()


@dataclass(frozen=True)
class UnknownEvent:
    keys: Tuple[str, ...]


StreamEvent = Union[
    MessageStartEvent,
    ContentBlockStartEvent,
    ContentBlockDeltaEvent,
    ContentBlockStopEvent,
    MessageStopEvent,
    MetadataEvent,
    UnknownEvent,
]


# =============================================================================
# Parsing
# =============================================================================

def _index(payload: Dict[str, Any]) -> int:
    index = payload.get("contentBlockIndex")
    return index if isinstance(index, int) else 0


def _parse_reasoning_payload(payload: Any) -> ReasoningDelta:
    # "thinking" may be a bare string or {"thinking"/"text": ..., "signature": ...}
    if isinstance(payload, str):
        return ReasoningDelta(text=payload)
    if not isinstance(payload, dict):
        return ReasoningDelta()

    reasoning_text = payload.get("reasoningText")
    if isinstance(reasoning_text, dict):
        payload = reasoning_text

    text = payload.get("text") or payload.get("thinking") or ""
    signature = payload.get("signature") or None
    redacted = bool(payload.get("redactedContent"))
    return ReasoningDelta(text=text, signature=signature, redacted=redacted)


def parse_delta(delta: Dict[str, Any]) -> Delta:
    """
    Classify a contentBlockDelta payload.

    Args:
        delta (Dict[str, Any]): The "delta" object of a contentBlockDelta event.

    Returns:
        Delta: One of the known delta variants, or UnknownDelta.
    """
    if not isinstance(delta, dict):
        return UnknownDelta(keys=())
    if isinstance(delta.get("text"), str):
        return TextDelta(text=delta["text"])
    tool_use = delta.get("toolUse")
    if isinstance(tool_use, dict):
        return ToolUseDelta(input=tool_use.get("input") or "")
    if "reasoningContent" in delta:
        return _parse_reasoning_payload(delta["reasoningContent"])
    if "thinking" in delta:
        thinking = delta["thinking"]
        if isinstance(thinking, str):
            return ReasoningDelta(text=thinking, signature=delta.get("signature") or None)
        return _parse_reasoning_payload(thinking)
    if isinstance(delta.get("signature"), str):
        return ReasoningDelta(signature=delta["signature"])
    return UnknownDelta(keys=tuple(delta.keys()))


def _parse_reasoning_segments(metadata: Dict[str, Any]) -> Tuple[ReasoningSegment, ...]:
    raw_segments = metadata.get("reasoningContent") or metadata.get("reasoning") or []
    if isinstance(raw_segments, dict):
        raw_segments = [raw_segments]

    segments: List[ReasoningSegment] = []
    for raw in raw_segments:
        parsed = _parse_reasoning_payload(raw)
        if parsed.text or parsed.signature:
            segments.append(ReasoningSegment(text=parsed.text, signature=parsed.signature))
    return tuple(segments)


def parse_event(raw: Dict[str, Any]) -> StreamEvent:
    """
    Convert a raw Converse stream event into a typed variant.

    Args:
        raw (Dict[str, Any]): One event as yielded by boto3's EventStream.

    Returns:
        StreamEvent: The typed event; UnknownEvent for unrecognized shapes.
    """
    if not isinstance(raw, dict):
        return UnknownEvent(keys=())

    if "messageStart" in raw:
        return MessageStartEvent(role=(raw["messageStart"] or {}).get("role"))

    if "contentBlockStart" in raw:
        payload = raw["contentBlockStart"] or {}
        start = payload.get("start") or {}
        tool_use = None
        reasoning = None
        if isinstance(start.get("toolUse"), dict):
            tool_use = ToolUseStart(
                tool_use_id=start["toolUse"].get("toolUseId", ""),
                name=start["toolUse"].get("name", ""),
            )
        for key in ("reasoningContent", "thinking"):
            if key in start:
                reasoning = ReasoningStart(signature=_parse_reasoning_payload(start[key]).signature)
                break
        return ContentBlockStartEvent(index=_index(payload), tool_use=tool_use, reasoning=reasoning)

    if "contentBlockDelta" in raw:
        payload = raw["contentBlockDelta"] or {}
        return ContentBlockDeltaEvent(index=_index(payload), delta=parse_delta(payload.get("delta") or {}))

    if "contentBlockStop" in raw:
        return ContentBlockStopEvent(index=_index(raw["contentBlockStop"] or {}))

    if "messageStop" in raw:
        return MessageStopEvent(stop_reason=(raw["messageStop"] or {}).get("stopReason"))

    if "metadata" in raw:
        metadata = raw["metadata"] or {}
        return MetadataEvent(
            usage=dict(metadata.get("usage") or {}),
            metrics=dict(metadata.get("metrics") or {}),
            reasoning=_parse_reasoning_segments(metadata),
        )

    return UnknownEvent(keys=tuple(raw.keys()))
