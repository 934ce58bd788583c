from .messages import ConversionOptions, ConvertedMessages, convert_messages, looks_like_tool_error
from .schema import convert_schema
from .tools import convert_tools

__all__ = [
    "ConversionOptions",
    "ConvertedMessages",
    "convert_messages",
    "convert_schema",
    "convert_tools",
    "looks_like_tool_error",
]
