import asyncio
import logging
import time
from pathlib import Path
from typing import Optional, Dict, List, Any, Callable, AsyncIterator, Union

from .cancellation import CancellationToken
from .providers.base import BaseChatProvider
from .providers.bedrock import PROVIDER_NAME, BedrockChatProvider
from .settings import BedrockSettings, get_bedrock_settings
from .types import (
    ChatMessage, ChatRequestOptions, DataPart, ModelEntry, ModelOptions, Part,
    Role, TextPart, ToolCallPart, ToolDefinition, ToolMode, ToolResultPart,
)
from .utils import (
    create_message, create_image_part, create_text_part, create_tool,
    create_tool_result_part,
    create_assistant_message_with_tool_calls,
)

logger = logging.getLogger(__name__)

_MODEL_OPTION_KEYS = ("max_tokens", "temperature", "top_p", "stop")


class _CollectingProgress:
    """Progress sink that keeps every reported part."""

    def __init__(self):
        self.parts: List[Part] = []

    def report(self, part: Part) -> None:
        self.parts.append(part)


class _QueueProgress:
    """Progress sink that hands parts to an asyncio queue."""

    def __init__(self, queue: "asyncio.Queue[Part]"):
        self._queue = queue

    def report(self, part: Part) -> None:
        self._queue.put_nowait(part)


class BedrockChatClient:
    """
    Convenience client around the Bedrock chat provider.

    The provider speaks the host protocol (progress sinks, model entries);
    this client adds the usual chat / stream / tool-loop entry points on top.
    """

    def __init__(
        self,
        settings: Optional[BedrockSettings] = None,
        provider: Optional[BedrockChatProvider] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Adapter settings. Defaults to the environment (and `.env`).
            provider: Chat provider. Defaults to a BedrockChatProvider built
                from `settings`.
        """
        self.settings = settings or get_bedrock_settings()
        self.provider = provider or BedrockChatProvider(self.settings)
        self._models: List[ModelEntry] = []

    def update_settings(self, settings: BedrockSettings) -> None:
        """Apply new settings. The cached model list is dropped since region and limits may change."""
        self.settings = settings
        self.provider.update_settings(settings)
        self._models = []

    # ==========================================================================
    # Message Helpers - Re-exported from utils
    # ==========================================================================

    @staticmethod
    def create_text_part(text: str) -> TextPart:
        return create_text_part(text)

    @staticmethod
    def create_image_part(source: Union[str, Path, bytes], *, mime_type: Optional[str] = None) -> DataPart:
        return create_image_part(source, mime_type=mime_type)

    @classmethod
    def create_message(
        cls,
        role: Role,
        content: Union[str, List[Union[str, Part]]],
    ) -> ChatMessage:
        return create_message(role, content)

    @staticmethod
    def create_tool(
        name: str,
        description: str,
        parameters: Dict[str, Any],
        required: Optional[List[str]] = None,
    ) -> ToolDefinition:
        return create_tool(name, description, parameters, required)

    @staticmethod
    def create_tool_result_part(call_id: str, content: Any) -> ToolResultPart:
        return create_tool_result_part(call_id, content)

    @staticmethod
    def create_assistant_message_with_tool_calls(
        content: str,
        tool_calls: List[ToolCallPart],
    ) -> ChatMessage:
        return create_assistant_message_with_tool_calls(content, tool_calls)

    # ==========================================================================
    # Models
    # ==========================================================================

    async def list_models(
        self,
        refresh: bool = False,
        silent: bool = False,
        token: Optional[CancellationToken] = None,
    ) -> List[ModelEntry]:
        """
        Get the models accessible with the configured credentials and region.

        The list is cached after the first successful call.

        Args:
            refresh (bool): Ignore the cached list.
            silent (bool): Do not log catalog errors.
            token (CancellationToken, optional): Cancellation signal.

        Returns:
            List[ModelEntry]: Selectable models.
        """
        if refresh or not self._models:
            self._models = await self.provider.provide_model_information(silent=silent, token=token)
        return self._models

    async def get_model(self, model: Optional[Union[str, ModelEntry]] = None) -> ModelEntry:
        """
        Resolve a model id (or the preferred model from settings) to its entry.

        Accepts either the exposed id (which may be an inference profile) or
        the base model id.

        Raises:
            ValueError: If no matching model is available.
        """
        if isinstance(model, dict):
            return model

        models = await self.list_models()
        target = model or self.settings.preferred_model
        if target:
            for entry in models:
                if target in (entry["id"], entry["base_model_id"]):
                    return entry
            raise ValueError(f"Model '{target}' is not available in {self.settings.region}.")

        if not models:
            raise ValueError("No Bedrock models available. Check your AWS profile and region.")
        return models[0]

    # ==========================================================================
    # Chat Methods
    # ==========================================================================

    @staticmethod
    def _build_options(
        tools: Optional[List[ToolDefinition]],
        tool_mode: ToolMode,
        opts: Dict[str, Any],
    ) -> ChatRequestOptions:
        unknown = set(opts) - set(_MODEL_OPTION_KEYS)
        if unknown:
            raise TypeError(f"Unsupported chat options: {', '.join(sorted(unknown))}")

        model_options: ModelOptions = {k: v for k, v in opts.items() if v is not None}
        options: ChatRequestOptions = {"tool_mode": tool_mode, "model_options": model_options}
        if tools:
            options["tools"] = list(tools)
        return options

    def _build_response(self, model: ModelEntry, parts: List[Part], latency_ms: float) -> Dict[str, Any]:
        text = "".join(p["value"] for p in parts if p.get("type") == "text")
        thinking = "".join(p["value"] for p in parts if p.get("type") == "thinking")
        tool_calls = [p for p in parts if p.get("type") == "tool_call"]

        stats = getattr(self.provider, "last_stats", None)
        usage = stats.usage if stats is not None else {}
        response: Dict[str, Any] = {
            "text": text,
            "provider": PROVIDER_NAME,
            "meta": {
                "model": model["id"],
                "usage": BaseChatProvider.normalize_usage(
                    PROVIDER_NAME,
                    input_tokens=usage.get("inputTokens"),
                    output_tokens=usage.get("outputTokens"),
                    total_tokens=usage.get("totalTokens"),
                    raw=usage or None,
                ),
                "stop_reason": stats.stop_reason if stats is not None else None,
                "latency_ms": latency_ms,
            },
        }
        if thinking:
            response["thinking"] = thinking
        if tool_calls:
            response["tool_calls"] = tool_calls
        return response

    async def chat(
        self,
        messages: List[ChatMessage],
        model: Optional[Union[str, ModelEntry]] = None,
        tools: Optional[List[ToolDefinition]] = None,
        tool_mode: ToolMode = "auto",
        token: Optional[CancellationToken] = None,
        **opts,
    ) -> Dict[str, Any]:
        """
        Send a chat request and wait for the complete response.

        Args:
            messages (List[ChatMessage]): Conversation history.
            model: Model id or entry. Defaults to the preferred model.
            tools (List[ToolDefinition], optional): Tools the model may call.
            tool_mode (str): 'auto', 'required' or 'none'.
            token (CancellationToken, optional): Cancellation signal.
            **opts: Sampling options: max_tokens, temperature, top_p, stop.

        Returns:
            Dict[str, Any]: A response dictionary containing:
                - text (str): The generated text.
                - provider (str): Always 'bedrock'.
                - meta (dict): model, usage, stop_reason, latency_ms.
                - thinking (str, optional): Reasoning text, if any.
                - tool_calls (list, optional): Requested tool calls.

        Raises:
            ValueError: Invalid conversation or unknown model.
            EmptyResponseError: The model produced nothing.
            ContextWindowExceededError: The request is too large for the model.
        """
        entry = await self.get_model(model)
        options = self._build_options(tools, tool_mode, opts)
        progress = _CollectingProgress()

        start = time.perf_counter()
        await self.provider.provide_chat_response(entry, messages, options, progress, token)
        latency_ms = (time.perf_counter() - start) * 1000

        return self._build_response(entry, progress.parts, latency_ms)

    async def astream(
        self,
        messages: List[ChatMessage],
        model: Optional[Union[str, ModelEntry]] = None,
        tools: Optional[List[ToolDefinition]] = None,
        tool_mode: ToolMode = "auto",
        token: Optional[CancellationToken] = None,
        **opts,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream the response in real time.

        Yields:
            Dict[str, Any]: An event dictionary:
                - type='token': a chunk of text in 'text'.
                - type='thinking': a chunk of reasoning in 'text'.
                - type='tool_call': a complete tool call in 'tool_call'.
                - type='done': the aggregated response (same shape as `chat`).

        Raises:
            Whatever the provider raises, after the events already produced.
        """
        entry = await self.get_model(model)
        options = self._build_options(tools, tool_mode, opts)
        queue: "asyncio.Queue[Part]" = asyncio.Queue()
        parts: List[Part] = []

        start = time.perf_counter()
        task = asyncio.create_task(
            self.provider.provide_chat_response(entry, messages, options, _QueueProgress(queue), token)
        )
        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    part = getter.result()
                    parts.append(part)
                    yield self._stream_event(part)
                    continue
                getter.cancel()
                break

            while not queue.empty():
                part = queue.get_nowait()
                parts.append(part)
                yield self._stream_event(part)

            # Re-raise provider errors
            task.result()
        finally:
            if not task.done():
                task.cancel()

        latency_ms = (time.perf_counter() - start) * 1000
        final = self._build_response(entry, parts, latency_ms)
        final["type"] = "done"
        yield final

    @staticmethod
    def _stream_event(part: Part) -> Dict[str, Any]:
        match part.get("type"):
            case "text":
                return {"type": "token", "text": part["value"], "provider": PROVIDER_NAME}
            case "thinking":
                return {"type": "thinking", "text": part["value"], "provider": PROVIDER_NAME}
            case "tool_call":
                return {"type": "tool_call", "tool_call": part, "provider": PROVIDER_NAME}
            case _:
                return {"type": "part", "part": part, "provider": PROVIDER_NAME}

    async def chat_with_tools(
        self,
        messages: List[ChatMessage],
        tools: List[ToolDefinition],
        tool_handlers: Dict[str, Callable],
        model: Optional[Union[str, ModelEntry]] = None,
        tool_mode: ToolMode = "auto",
        auto_execute: bool = True,
        max_iterations: int = 10,
        token: Optional[CancellationToken] = None,
        **opts,
    ) -> Dict[str, Any]:
        """
        Chat with a model while running requested tools in a loop.

        1. Send the conversation and tool definitions.
        2. If the model requests tool calls, run them (if auto_execute=True).
        3. Send all results back on one user turn.
        4. Repeat until the model answers without tool calls or
           max_iterations is reached.

        Args:
            messages (List[ChatMessage]): Conversation history.
            tools (List[ToolDefinition]): Tool definitions, see `create_tool()`.
            tool_handlers (Dict[str, Callable]): Tool name to sync or async
                function taking the parsed arguments.
            model: Model id or entry.
            tool_mode (str): Tool selection mode for every round.
            auto_execute (bool): If False, return after the first response.
            max_iterations (int): Safety limit for the loop. Defaults to 10.
            token (CancellationToken, optional): Cancellation signal.
            **opts: Sampling options passed to `chat()`.

        Returns:
            Dict[str, Any]: The final response. If tools were run, includes a
                "tool_history" list of {tool, arguments, result}.
        """
        current_messages = list(messages)
        tool_history: List[Dict[str, Any]] = []
        entry = await self.get_model(model)
        response: Dict[str, Any] = {}

        for _ in range(max_iterations):
            response = await self.chat(
                current_messages,
                model=entry,
                tools=tools,
                tool_mode=tool_mode,
                token=token,
                **opts,
            )

            tool_calls = response.get("tool_calls")
            if not tool_calls or not auto_execute:
                break

            current_messages.append(
                self.create_assistant_message_with_tool_calls(response.get("text", ""), tool_calls)
            )

            results: List[Part] = []
            for tc in tool_calls:
                result_part = await self._execute_tool_call(tc, tool_handlers)
                results.append(result_part)
                tool_history.append({
                    "tool": tc["name"],
                    "arguments": tc["input"],
                    "result": result_part["content"],
                })
            current_messages.append({"role": "user", "content": results})
        else:
            logger.warning("[Bedrock Chat Client] Tool loop stopped after %d iterations", max_iterations)

        if tool_history:
            response["tool_history"] = tool_history
        response["messages"] = current_messages
        return response

    async def _execute_tool_call(
        self,
        tool_call: ToolCallPart,
        tool_handlers: Dict[str, Callable],
    ) -> ToolResultPart:
        """
        Run a single tool call and wrap its output as a tool result part.

        Handler failures are reported back to the model as an error result
        rather than raised.
        """
        tool_name = tool_call["name"]
        handler = tool_handlers.get(tool_name)
        if handler is None:
            return create_tool_result_part(tool_call["call_id"], f"Error: No handler for tool '{tool_name}'")

        try:
            result = handler(tool_call["input"])
            if asyncio.iscoroutine(result):
                result = await result
        except Exception as e:
            logger.warning("[Bedrock Chat Client] Tool '%s' failed: %s", tool_name, e)
            return create_tool_result_part(
                tool_call["call_id"], f"Error executing tool '{tool_name}': {e}"
            )

        return create_tool_result_part(tool_call["call_id"], result)
