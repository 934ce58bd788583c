from .base import BaseChatProvider
from .bedrock import BedrockChatProvider

__all__ = ["BaseChatProvider", "BedrockChatProvider"]
