"""
Exceptions raised by bedrockmux.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .types import ReasoningBlock

# Substrings Bedrock uses when a request does not fit the model's context window
CONTEXT_OVERFLOW_MARKERS = (
    "input is too long",
    "too many input tokens",
    "prompt is too long",
    "context length",
    "maximum context",
    "exceeds the maximum number of tokens",
    "too many total text bytes",
)


class BedrockMuxError(Exception):
    """Base class for all bedrockmux errors."""


class EmptyResponseError(BedrockMuxError):
    """
    The stream finished without producing any text, tool call or reasoning.

    Attributes:
        stop_reason: Stop reason reported by the backend, if any.
        reasoning: Reasoning accumulated before the stream ended.
    """

    default_message = "The model did not return any content."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        stop_reason: Optional[str] = None,
        reasoning: Optional["ReasoningBlock"] = None,
    ):
        super().__init__(message or self.default_message)
        self.stop_reason = stop_reason
        self.reasoning = reasoning


class ThinkingBudgetExceededError(EmptyResponseError):
    default_message = (
        "The model ran out of output tokens while reasoning. "
        "Increase max tokens or lower the thinking budget."
    )


class ContentFilteredError(EmptyResponseError):
    default_message = "The response was blocked by a content filter or guardrail."


class NoContentError(EmptyResponseError):
    default_message = "The model did not return any content."


class ContextWindowExceededError(BedrockMuxError):
    """The conversation does not fit the model's context window."""

    def __init__(self, message: str = "Message exceeds token limit.", *, model_id: Optional[str] = None):
        super().__init__(message)
        self.model_id = model_id


def is_context_overflow_error(error: BaseException) -> bool:
    """
    Check whether a backend error reports a context-window overflow.

    Args:
        error (BaseException): Any exception raised by the transport.

    Returns:
        bool: True if the message matches a known overflow phrase.
    """
    message = str(error).lower()
    return any(marker in message for marker in CONTEXT_OVERFLOW_MARKERS)
