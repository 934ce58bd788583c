from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Union

from ..cancellation import CancellationToken
from ..types import ChatMessage, ChatRequestOptions, ModelEntry, Progress


class BaseChatProvider(ABC):
    """
    Abstract base class for chat providers plugged into a host chat surface.
    """

    @abstractmethod
    async def provide_model_information(
        self,
        silent: bool = False,
        token: Optional[CancellationToken] = None,
    ) -> List[ModelEntry]:
        """
        List the models this provider can serve.

        Args:
            silent (bool): Suppress error logging when the catalog is unavailable.
            token (CancellationToken, optional): Cancellation signal.

        Returns:
            List[ModelEntry]: Selectable models.
        """
        pass

    @abstractmethod
    async def provide_chat_response(
        self,
        model: ModelEntry,
        messages: List[ChatMessage],
        options: ChatRequestOptions,
        progress: Progress,
        token: Optional[CancellationToken] = None,
    ) -> None:
        """
        Stream a response for the conversation into `progress`.

        Args:
            model (ModelEntry): Model selected by the host.
            messages (List[ChatMessage]): Conversation history.
            options (ChatRequestOptions): Tools, tool mode and sampling options.
            progress (Progress): Sink receiving response parts.
            token (CancellationToken, optional): Cancellation signal.
        """
        pass

    @abstractmethod
    async def provide_token_count(
        self,
        model: ModelEntry,
        text: Union[str, ChatMessage],
        token: Optional[CancellationToken] = None,
    ) -> int:
        """
        Estimate the number of tokens in a string or message.
        """
        pass

    @staticmethod
    def normalize_usage(
        provider: str,
        *,
        input_tokens: Optional[int],
        output_tokens: Optional[int],
        total_tokens: Optional[int],
        raw: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Normalize token usage information.

        Creates a standardized dictionary structure for token usage statistics,
        optionally calculating totals if missing.

        Args:
            provider (str): Name of the provider.
            input_tokens (int, optional): Number of prompt tokens.
            output_tokens (int, optional): Number of generated tokens.
            total_tokens (int, optional): Total token count.
            raw (dict, optional): Raw usage data from the provider response.

        Returns:
            Dict[str, Any]: Standardized usage dictionary.
        """
        # Calculate total if not provided
        if total_tokens is None and input_tokens is not None and output_tokens is not None:
            total_tokens = input_tokens + output_tokens

        return {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": total_tokens,
            "raw": {
                "provider": provider,
                **(raw or {}),
            } if raw is not None else None,
        }
