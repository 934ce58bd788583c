import json
import logging
import math
from typing import Any, Dict, List, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from ..bedrock_api import BedrockAPIClient
from ..cancellation import CancellationToken
from ..converters import ConversionOptions, ConvertedMessages, convert_messages, convert_tools
from ..errors import ContextWindowExceededError, is_context_overflow_error
from ..models import ModelResolver
from ..profiles import CapabilityProfile, get_model_profile
from ..settings import BedrockSettings, get_bedrock_settings
from ..stream_processor import StreamProcessor, StreamStats
from ..types import (
    ChatMessage,
    ChatRequestOptions,
    ModelEntry,
    ModelOptions,
    Part,
    Progress,
    ReasoningBlock,
)
from ..validation import validate_request
from .base import BaseChatProvider

logger = logging.getLogger(__name__)

PROVIDER_NAME = "bedrock"
DEFAULT_MAX_OUTPUT_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7

INTERLEAVED_THINKING_BETA = "interleaved-thinking-2025-05-14"
CONTEXT_1M_BETA = "context-1m-2025-08-07"


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(text) / 4)


class _TrackingProgress:
    """Forwards parts to the host sink; a failing sink must not abort the stream."""

    def __init__(self, progress: Progress, model_id: str):
        self._progress = progress
        self._model_id = model_id

    def report(self, part: Part) -> None:
        try:
            self._progress.report(part)
        except Exception as e:
            logger.error(
                "[Bedrock Model Provider] Progress.report failed for %s: %s",
                self._model_id, e,
            )


class BedrockChatProvider(BaseChatProvider):
    """
    Chat provider backed by the Bedrock Converse streaming API.

    Holds the per-session state that must survive between turns: the models
    from the last refresh and the most recent signed reasoning block.
    """

    def __init__(
        self,
        settings: Optional[BedrockSettings] = None,
        api: Optional[BedrockAPIClient] = None,
    ):
        self.settings = settings or get_bedrock_settings()
        self.api = api or BedrockAPIClient(self.settings.region, self.settings.profile)
        self.resolver = ModelResolver(self.api)
        self.last_reasoning: Optional[ReasoningBlock] = None
        self.last_stats: Optional[StreamStats] = None
        self._models: Dict[str, ModelEntry] = {}

    def update_settings(self, settings: BedrockSettings) -> None:
        self.settings = settings
        self._models = {}
        self.api.set_region(settings.region)
        self.api.set_profile(settings.profile)

    # =========================================================================
    # Models
    # =========================================================================

    async def provide_model_information(
        self,
        silent: bool = False,
        token: Optional[CancellationToken] = None,
    ) -> List[ModelEntry]:
        """
        Refresh and return the accessible model list.

        Catalog failures are logged (unless `silent`) and produce an empty list.
        """
        try:
            self.api.set_region(self.settings.region)
            self.api.set_profile(self.settings.profile)
            entries = await self.resolver.refresh(
                self.settings.region,
                token=token,
                enable_1m_context=self.settings.context_1m_enabled,
            )
        except (ClientError, BotoCoreError) as e:
            if not silent:
                logger.error(
                    "[Bedrock Model Provider] Failed to fetch models. "
                    "Check your AWS profile and region settings. Error: %s", e,
                )
            return []

        self._models = {entry["id"]: entry for entry in entries}
        return entries

    def _base_model_id(self, model: ModelEntry) -> str:
        known = self._models.get(model["id"])
        if known is not None:
            return known["base_model_id"]
        return model.get("base_model_id") or model["id"]

    # =========================================================================
    # Chat
    # =========================================================================

    async def provide_chat_response(
        self,
        model: ModelEntry,
        messages: List[ChatMessage],
        options: ChatRequestOptions,
        progress: Progress,
        token: Optional[CancellationToken] = None,
    ) -> None:
        """
        Convert the conversation, open a Converse stream and report its parts.

        Raises:
            ValueError: The conversation or tool list is invalid.
            ContextWindowExceededError: The request does not fit the model.
            EmptyResponseError: The model produced nothing.
        """
        base_model_id = self._base_model_id(model)
        profile = get_model_profile(base_model_id)
        reasoning_enabled = self.settings.thinking_enabled and profile.supports_reasoning
        tools = options.get("tools") or []

        logger.debug("[Bedrock Model Provider] Converting %d messages for %s", len(messages), model["id"])
        converted = convert_messages(
            messages,
            base_model_id,
            ConversionOptions(
                reasoning_enabled=reasoning_enabled,
                prior_reasoning=self.last_reasoning,
                caching_enabled=self.settings.prompt_caching_enabled,
            ),
        )
        validate_request(converted.messages, tools)

        tool_config = convert_tools(
            tools,
            options.get("tool_mode"),
            base_model_id,
            caching_enabled=self.settings.prompt_caching_enabled,
            reasoning_enabled=reasoning_enabled,
        )
        self._check_token_limit(model, messages, tool_config)

        request = self.build_request(
            model,
            converted,
            tool_config,
            options.get("model_options") or {},
            profile,
            reasoning_enabled,
        )

        processor = StreamProcessor()
        try:
            logger.debug("[Bedrock Model Provider] Starting streaming request")
            stream = await self.api.start_conversation_stream(request)
            await processor.process_stream(stream, _TrackingProgress(progress, model["id"]), token)
        except (ClientError, BotoCoreError) as e:
            if is_context_overflow_error(e):
                raise ContextWindowExceededError(str(e), model_id=model["id"]) from e
            logger.error("[Bedrock Model Provider] Chat request failed for %s: %s", model["id"], e)
            raise
        finally:
            self.last_stats = processor.stats
            self._remember_reasoning(processor.reasoning)

    def _remember_reasoning(self, reasoning: ReasoningBlock) -> None:
        # Unsigned reasoning cannot be replayed, so it is not kept
        self.last_reasoning = reasoning if reasoning.is_replayable else None

    def build_request(
        self,
        model: ModelEntry,
        converted: ConvertedMessages,
        tool_config: Optional[Dict[str, Any]],
        model_options: ModelOptions,
        profile: CapabilityProfile,
        reasoning_enabled: bool,
    ) -> Dict[str, Any]:
        """
        Assemble the keyword arguments for `converse_stream`.

        With extended thinking the temperature is left at the backend default
        (Claude requires 1.0) and the output budget is raised so it exceeds the
        thinking budget.
        """
        model_max_output = max(1, model["max_output_tokens"])
        max_tokens = min(model_options.get("max_tokens") or DEFAULT_MAX_OUTPUT_TOKENS, model_max_output)

        inference_config: Dict[str, Any] = {}
        additional_fields: Dict[str, Any] = {}
        betas: List[str] = []

        if reasoning_enabled:
            budget = self.settings.thinking_budget_tokens
            if budget >= max_tokens:
                max_tokens = min(budget + DEFAULT_MAX_OUTPUT_TOKENS, model_max_output)
            budget = min(budget, max_tokens - 1)
            additional_fields["thinking"] = {"type": "enabled", "budget_tokens": budget}
            if profile.requires_continuity_header:
                betas.append(INTERLEAVED_THINKING_BETA)
        else:
            temperature = model_options.get("temperature")
            inference_config["temperature"] = DEFAULT_TEMPERATURE if temperature is None else temperature
            if isinstance(model_options.get("top_p"), (int, float)):
                inference_config["topP"] = model_options["top_p"]

        inference_config["maxTokens"] = max_tokens

        stop = model_options.get("stop")
        if isinstance(stop, str):
            inference_config["stopSequences"] = [stop]
        elif isinstance(stop, list):
            inference_config["stopSequences"] = stop

        if self.settings.context_1m_enabled and profile.supports_1m_context:
            betas.append(CONTEXT_1M_BETA)
        if betas:
            additional_fields["anthropic_beta"] = betas

        request: Dict[str, Any] = {
            "modelId": model["id"],
            "messages": converted.messages,
            "inferenceConfig": inference_config,
        }
        if converted.system:
            request["system"] = converted.system
        if tool_config:
            request["toolConfig"] = tool_config
        if additional_fields:
            request["additionalModelRequestFields"] = additional_fields
        return request

    def _check_token_limit(
        self,
        model: ModelEntry,
        messages: List[ChatMessage],
        tool_config: Optional[Dict[str, Any]],
    ) -> None:
        total = sum(self._estimate_message_tokens(msg) for msg in messages)
        if tool_config:
            total += estimate_tokens(json.dumps(tool_config, default=str))

        limit = max(1, model["max_input_tokens"])
        if total > limit:
            logger.error(
                "[Bedrock Model Provider] Message exceeds token limit: total=%d limit=%d",
                total, limit,
            )
            raise ContextWindowExceededError(model_id=model["id"])

    # =========================================================================
    # Token Counting
    # =========================================================================

    @staticmethod
    def _estimate_message_tokens(message: ChatMessage) -> int:
        total = 0
        for part in message.get("content", []):
            if part.get("type") in ("text", "thinking"):
                total += estimate_tokens(part.get("value", ""))
            elif part.get("type") == "tool_result":
                total += estimate_tokens(json.dumps(part.get("content"), default=str))
            elif part.get("type") == "tool_call":
                total += estimate_tokens(json.dumps(part.get("input"), default=str))
        return total

    async def provide_token_count(
        self,
        model: ModelEntry,
        text: Union[str, ChatMessage],
        token: Optional[CancellationToken] = None,
    ) -> int:
        if isinstance(text, str):
            return estimate_tokens(text)
        return self._estimate_message_tokens(text)

    async def count_request_tokens(self, model: ModelEntry, messages: List[ChatMessage]) -> int:
        """
        Count input tokens with the CountTokens API, falling back to the estimate.
        """
        base_model_id = self._base_model_id(model)
        converted = convert_messages(messages, base_model_id, ConversionOptions(caching_enabled=False))
        try:
            return await self.api.count_tokens(model["id"], converted.messages, converted.system)
        except (ClientError, BotoCoreError) as e:
            logger.debug("[Bedrock Model Provider] CountTokens unavailable for %s: %s", model["id"], e)
            return sum(self._estimate_message_tokens(msg) for msg in messages)
