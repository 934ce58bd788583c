from .cancellation import CancellationToken, CancellationTokenSource
from .client import BedrockChatClient
from .errors import (
    BedrockMuxError,
    ContentFilteredError,
    ContextWindowExceededError,
    EmptyResponseError,
    NoContentError,
    ThinkingBudgetExceededError,
)
from .logger import setup_logging
from .providers import BaseChatProvider, BedrockChatProvider
from .rich_llm_printer import RichPrinter, RichStreamPrinter
from .settings import BedrockSettings, get_bedrock_settings
from .types import ChatMessage, ModelEntry, Part, ToolDefinition

__all__ = [
    "BedrockChatClient",
    "BaseChatProvider",
    "BedrockChatProvider",
    "BedrockSettings",
    "get_bedrock_settings",
    "CancellationToken",
    "CancellationTokenSource",
    "ChatMessage",
    "ModelEntry",
    "Part",
    "ToolDefinition",
    "BedrockMuxError",
    "EmptyResponseError",
    "ThinkingBudgetExceededError",
    "ContentFilteredError",
    "NoContentError",
    "ContextWindowExceededError",
    "setup_logging",
    "RichPrinter",
    "RichStreamPrinter",
]
