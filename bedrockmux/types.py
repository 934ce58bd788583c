from dataclasses import dataclass
from typing import Literal, List, Dict, Any, Union, TypedDict, Optional, Protocol

# =============================================================================
# Host Message Parts
# =============================================================================

# Roles the host chat surface can attach to a message
Role = Literal["system", "user", "assistant"]

# Tool selection modes supplied by the host
ToolMode = Literal["auto", "required", "none"]


class TextPart(TypedDict):
    """
    Plain text part of a host message or a streamed response.
    """
    type: Literal["text"]
    value: str


class ToolCallPart(TypedDict):
    """
    A tool invocation requested by the model.
    """
    type: Literal["tool_call"]
    call_id: str
    name: str
    input: Any  # Parsed JSON arguments


class ToolResultPart(TypedDict):
    """
    The result of running a tool, sent back on a user turn.

    `content` is either a list of text/data parts or an arbitrary value
    (for example a dict) returned by the tool.
    """
    type: Literal["tool_result"]
    call_id: str
    content: Any


class DataPart(TypedDict):
    """
    Opaque binary payload (images, or anything the adapter does not model).
    """
    type: Literal["data"]
    data: bytes
    mime_type: str


class ThinkingPart(TypedDict, total=False):
    """
    Reasoning ("thinking") output, streamed or replayed from history.
    """
    type: Literal["thinking"]
    value: str
    signature: Optional[str]


Part = Union[TextPart, ToolCallPart, ToolResultPart, DataPart, ThinkingPart]


class ChatMessage(TypedDict):
    """
    One message of the host's chat history.
    """
    role: Role
    content: List[Part]


class Progress(Protocol):
    """
    Sink that receives response parts as soon as they are produced.
    """

    def report(self, part: Part) -> None: ...


# =============================================================================
# Tool Definitions
# =============================================================================

class ToolDefinition(TypedDict, total=False):
    """
    Tool definition supplied by the host.
    """
    name: str
    description: str
    input_schema: Dict[str, Any]


class ModelOptions(TypedDict, total=False):
    """
    Per-request sampling options.
    """
    max_tokens: int
    temperature: float
    top_p: float
    stop: Union[str, List[str]]


class ChatRequestOptions(TypedDict, total=False):
    """
    Options accompanying a chat request.
    """
    tools: List[ToolDefinition]
    tool_mode: ToolMode
    model_options: ModelOptions


# =============================================================================
# Wire Format (Bedrock Converse)
# =============================================================================

# Content blocks are plain Converse dicts, e.g. {"text": ...}, {"toolUse": ...},
# {"toolResult": ...}, {"reasoningContent": ...}, {"cachePoint": ...}
ContentBlock = Dict[str, Any]


class WireMessage(TypedDict):
    """
    One turn in the Converse conversation format.
    """
    role: Literal["user", "assistant"]
    content: List[ContentBlock]


class SystemBlock(TypedDict, total=False):
    """
    System prompt block (text or cache marker).
    """
    text: str
    cachePoint: Dict[str, str]


@dataclass
class ReasoningBlock:
    """
    Reasoning accumulated over one response.

    Only blocks with a signature can be replayed to the backend on the
    next turn.
    """
    text: str = ""
    signature: Optional[str] = None

    @property
    def is_replayable(self) -> bool:
        return bool(self.signature)


# =============================================================================
# Model Catalog
# =============================================================================

class CatalogModel(TypedDict, total=False):
    """
    Foundation model summary, normalised from ListFoundationModels.
    """
    model_arn: str
    model_id: str
    model_name: str
    provider_name: str
    input_modalities: List[str]
    output_modalities: List[str]
    response_streaming_supported: bool
    inference_types_supported: List[str]
    lifecycle_status: Optional[str]


class ApplicationProfile(TypedDict, total=False):
    """
    Custom deployment alias (application inference profile).
    """
    id: str
    arn: str
    name: str
    base_model_id: Optional[str]


class ModelCapabilities(TypedDict):
    image_input: bool
    tool_calling: bool


class ModelEntry(TypedDict):
    """
    A selectable model, as exposed to the host.
    """
    id: str
    name: str
    family: str
    version: str
    detail: str
    provider_name: str
    base_model_id: str
    max_input_tokens: int
    max_output_tokens: int
    capabilities: ModelCapabilities
