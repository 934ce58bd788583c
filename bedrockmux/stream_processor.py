import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Dict, Optional

from .cancellation import CancellationToken
from .errors import (
    ContentFilteredError,
    EmptyResponseError,
    NoContentError,
    ThinkingBudgetExceededError,
)
from .events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    Delta,
    MessageStartEvent,
    MessageStopEvent,
    MetadataEvent,
    ReasoningDelta,
    StreamEvent,
    TextDelta,
    ToolUseDelta,
    UnknownDelta,
    UnknownEvent,
    parse_event,
)
from .tool_buffer import ToolBuffer, ToolCall
from .types import Progress, ReasoningBlock

logger = logging.getLogger(__name__)

# Stop reasons that explain an empty response
_TOKEN_LIMIT_STOP_REASONS = ("max_tokens", "model_context_window_exceeded")
_FILTERED_STOP_REASONS = ("content_filtered", "guardrail_intervened")


async def _close_stream(stream: AsyncIterable[Dict[str, Any]]) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


@dataclass
class StreamStats:
    text_chunks: int = 0
    tool_calls: int = 0
    reasoning_chunks: int = 0
    stop_reason: Optional[str] = None
    usage: Dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def has_emitted_content(self) -> bool:
        return (self.text_chunks + self.tool_calls + self.reasoning_chunks) > 0


class StreamProcessor:
    """
    Drives one Converse stream and reports response parts to a progress sink.

    Text is forwarded as it arrives, tool calls are emitted exactly once (as
    soon as their arguments parse, or at block stop), and reasoning deltas are
    both surfaced as thinking parts and accumulated into a ReasoningBlock that
    the caller keeps for the next turn.
    """

    def __init__(self):
        self.stats = StreamStats()
        self.reasoning = ReasoningBlock()
        self._tool_buffer = ToolBuffer()

    async def process_stream(
        self,
        stream: AsyncIterable[Dict[str, Any]],
        progress: Progress,
        token: Optional[CancellationToken] = None,
    ) -> ReasoningBlock:
        """
        Consume the stream until it ends or cancellation is requested.

        Args:
            stream: Async iterable of raw Converse events (or parsed variants).
            progress: Sink receiving text, thinking and tool_call parts.
            token: Optional cancellation token, checked before every event.

        Returns:
            ReasoningBlock: Reasoning text and signature (possibly empty).

        Raises:
            EmptyResponseError: The stream ended without emitting anything and
                was not cancelled. The subclass reflects the stop reason.
        """
        self.stats = StreamStats()
        self.reasoning = ReasoningBlock()
        self._tool_buffer.clear()
        logger.debug("[Stream Processor] Starting stream processing")

        try:
            async for raw_event in stream:
                if token is not None and token.is_cancellation_requested:
                    logger.debug("[Stream Processor] Cancellation requested")
                    self.stats.cancelled = True
                    break

                event = raw_event if not isinstance(raw_event, dict) else parse_event(raw_event)
                self._handle_event(event, progress)
        finally:
            await _close_stream(stream)

        if token is not None and token.is_cancellation_requested:
            self.stats.cancelled = True

        logger.debug(
            "[Stream Processor] Stream processing completed: text_chunks=%d tool_calls=%d "
            "reasoning_chunks=%d stop_reason=%s",
            self.stats.text_chunks,
            self.stats.tool_calls,
            self.stats.reasoning_chunks,
            self.stats.stop_reason,
        )

        if not self.stats.has_emitted_content and not self.stats.cancelled:
            raise self._empty_response_error()

        return self.reasoning

    # =========================================================================
    # Event Dispatch
    # =========================================================================

    def _handle_event(self, event: StreamEvent, progress: Progress) -> None:
        match event:
            case MessageStartEvent(role=role):
                logger.debug("[Stream Processor] Message start: %s", role)

            case ContentBlockStartEvent(index=index, tool_use=tool_use, reasoning=reasoning):
                if tool_use is not None and tool_use.tool_use_id and tool_use.name:
                    self._tool_buffer.start(index, tool_use.tool_use_id, tool_use.name)
                    logger.debug(
                        "[Stream Processor] Tool call started: id=%s name=%s index=%d",
                        tool_use.tool_use_id, tool_use.name, index,
                    )
                if reasoning is not None and reasoning.signature and not self.reasoning.signature:
                    self.reasoning.signature = reasoning.signature

            case ContentBlockDeltaEvent(index=index, delta=delta):
                self._handle_delta(index, delta, progress)

            case ContentBlockStopEvent(index=index):
                self._finalize_tool(index, progress)

            case MessageStopEvent(stop_reason=stop_reason):
                self.stats.stop_reason = stop_reason
                logger.debug("[Stream Processor] Message stop: %s", stop_reason)

            case MetadataEvent(usage=usage, reasoning=segments):
                self.stats.usage = usage
                for segment in segments:
                    self.reasoning.text += segment.text
                    if segment.signature and not self.reasoning.signature:
                        self.reasoning.signature = segment.signature
                logger.debug("[Stream Processor] Metadata received: usage=%s", usage)

            case UnknownEvent(keys=keys):
                logger.debug("[Stream Processor] Unknown event type: %s", keys)

    def _handle_delta(self, index: int, delta: Delta, progress: Progress) -> None:
        match delta:
            case TextDelta(text=text):
                if text:
                    self.stats.text_chunks += 1
                    progress.report({"type": "text", "value": text})

            case ToolUseDelta(input=chunk):
                self._tool_buffer.append(index, chunk)
                self._try_emit_early(index, progress)

            case ReasoningDelta(text=text, signature=signature, redacted=redacted):
                if text:
                    self.reasoning.text += text
                    self.stats.reasoning_chunks += 1
                    progress.report({"type": "thinking", "value": text})
                if signature and not self.reasoning.signature:
                    self.reasoning.signature = signature
                if redacted:
                    logger.debug("[Stream Processor] Redacted reasoning content received")

            case UnknownDelta(keys=keys):
                logger.warning("[Stream Processor] Unknown delta type: %s", keys)

    # =========================================================================
    # Tool Calls
    # =========================================================================

    def _try_emit_early(self, index: int, progress: Progress) -> None:
        if self._tool_buffer.is_emitted(index):
            return
        tool = self._tool_buffer.try_validate(index)
        if tool is None:
            return
        logger.debug("[Stream Processor] Tool call emitted early (valid JSON): %s", tool["name"])
        self._emit_tool(index, tool, progress)
        self._tool_buffer.discard(index)

    def _finalize_tool(self, index: int, progress: Progress) -> None:
        if self._tool_buffer.is_emitted(index):
            logger.debug("[Stream Processor] Tool call already emitted, skipping duplicate")
            return
        tool = self._tool_buffer.finalize(index)
        if tool is None:
            return
        logger.debug("[Stream Processor] Tool call finalized at stop: %s", tool["name"])
        self._emit_tool(index, tool, progress)

    def _emit_tool(self, index: int, tool: ToolCall, progress: Progress) -> None:
        self._tool_buffer.mark_emitted(index)
        self.stats.tool_calls += 1
        progress.report({
            "type": "tool_call",
            "call_id": tool["id"],
            "name": tool["name"],
            "input": tool["input"],
        })

    # =========================================================================
    # Completion
    # =========================================================================

    def _empty_response_error(self) -> EmptyResponseError:
        stop_reason = self.stats.stop_reason
        error_cls = NoContentError
        if stop_reason in _TOKEN_LIMIT_STOP_REASONS:
            error_cls = ThinkingBudgetExceededError
        elif stop_reason in _FILTERED_STOP_REASONS:
            error_cls = ContentFilteredError

        logger.error("[Stream Processor] No content emitted (stop reason: %s)", stop_reason)
        return error_cls(stop_reason=stop_reason, reasoning=self.reasoning)
