import pytest

from bedrockmux.cancellation import CancellationToken
from bedrockmux.errors import (
    ContentFilteredError,
    EmptyResponseError,
    NoContentError,
    ThinkingBudgetExceededError,
)
from bedrockmux.events import ContentBlockDeltaEvent, TextDelta
from bedrockmux.stream_processor import StreamProcessor

from conftest import aiter_events, text_stream


def tool_events(index, tool_id, name, *chunks):
    events = [{"contentBlockStart": {"contentBlockIndex": index, "start": {"toolUse": {"toolUseId": tool_id, "name": name}}}}]
    events += [
        {"contentBlockDelta": {"contentBlockIndex": index, "delta": {"toolUse": {"input": chunk}}}}
        for chunk in chunks
    ]
    events.append({"contentBlockStop": {"contentBlockIndex": index}})
    return events


def reasoning_events(index, *texts, signature=None):
    events = [{"contentBlockDelta": {"contentBlockIndex": index, "delta": {"reasoningContent": {"text": t}}}} for t in texts]
    if signature:
        events.append({"contentBlockDelta": {"contentBlockIndex": index, "delta": {"reasoningContent": {"signature": signature}}}})
    events.append({"contentBlockStop": {"contentBlockIndex": index}})
    return events


class TestTextAndTools:
    @pytest.mark.asyncio
    async def test_text_and_tool_emitted_once(self, progress):
        events = [
            {"messageStart": {"role": "assistant"}},
            {"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"text": "hello"}}},
            {"contentBlockStop": {"contentBlockIndex": 0}},
            *tool_events(1, "t1", "f", '{"a":', "1}"),
            {"messageStop": {"stopReason": "tool_use"}},
        ]
        processor = StreamProcessor()
        await processor.process_stream(aiter_events(events), progress)

        assert progress.of_type("text") == [{"type": "text", "value": "hello"}]
        assert progress.of_type("tool_call") == [
            {"type": "tool_call", "call_id": "t1", "name": "f", "input": {"a": 1}}
        ]
        assert processor.stats.tool_calls == 1
        assert processor.stats.stop_reason == "tool_use"

    @pytest.mark.asyncio
    async def test_tool_emitted_as_soon_as_json_is_valid(self, progress):
        events = [
            *tool_events(0, "t1", "f", '{"a": 1', "}"),
            {"messageStop": {"stopReason": "tool_use"}},
        ]
        seen_before_stop = []

        class Watch:
            def report(self, part):
                progress.report(part)
                seen_before_stop.append(part)

        async def stream():
            for event in events:
                if "contentBlockStop" in event:
                    # The call must already have been reported
                    assert [p["type"] for p in seen_before_stop] == ["tool_call"]
                yield event

        await StreamProcessor().process_stream(stream(), Watch())
        assert len(progress.of_type("tool_call")) == 1

    @pytest.mark.asyncio
    async def test_invalid_tool_json_reported_raw_at_stop(self, progress):
        events = tool_events(0, "t1", "f", '{"a": ')
        await StreamProcessor().process_stream(aiter_events(events), progress)

        assert progress.of_type("tool_call")[0]["input"] == {"raw": '{"a": '}

    @pytest.mark.asyncio
    async def test_tool_without_input_gets_empty_object(self, progress):
        await StreamProcessor().process_stream(aiter_events(tool_events(0, "t1", "now")), progress)
        assert progress.of_type("tool_call")[0]["input"] == {}

    @pytest.mark.asyncio
    async def test_parallel_tools(self, progress):
        events = [
            {"contentBlockStart": {"contentBlockIndex": 1, "start": {"toolUse": {"toolUseId": "a", "name": "x"}}}},
            {"contentBlockStart": {"contentBlockIndex": 2, "start": {"toolUse": {"toolUseId": "b", "name": "y"}}}},
            {"contentBlockDelta": {"contentBlockIndex": 2, "delta": {"toolUse": {"input": '{"n": 2}'}}}},
            {"contentBlockDelta": {"contentBlockIndex": 1, "delta": {"toolUse": {"input": '{"n": 1}'}}}},
            {"contentBlockStop": {"contentBlockIndex": 1}},
            {"contentBlockStop": {"contentBlockIndex": 2}},
        ]
        await StreamProcessor().process_stream(aiter_events(events), progress)

        calls = progress.of_type("tool_call")
        assert [(c["call_id"], c["input"]) for c in calls] == [("b", {"n": 2}), ("a", {"n": 1})]

    @pytest.mark.asyncio
    async def test_accepts_parsed_events(self, progress):
        events = [ContentBlockDeltaEvent(index=0, delta=TextDelta(text="typed"))]
        await StreamProcessor().process_stream(aiter_events(events), progress)
        assert progress.parts == [{"type": "text", "value": "typed"}]

    @pytest.mark.asyncio
    async def test_unknown_events_are_ignored(self, progress):
        events = [
            {"somethingNew": {}},
            {"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"citation": {"x": 1}}}},
            *text_stream("ok"),
        ]
        await StreamProcessor().process_stream(aiter_events(events), progress)
        assert progress.parts == [{"type": "text", "value": "ok"}]

    @pytest.mark.asyncio
    async def test_usage_recorded(self, progress):
        processor = StreamProcessor()
        await processor.process_stream(aiter_events(text_stream("a", "b")), progress)

        assert processor.stats.usage["totalTokens"] == 15
        assert processor.stats.text_chunks == 2


class TestReasoning:
    @pytest.mark.asyncio
    async def test_reasoning_accumulated_and_reported(self, progress):
        events = reasoning_events(0, "Let me ", "think.", signature="sig-1") + text_stream("Answer")[1:]
        reasoning = await StreamProcessor().process_stream(aiter_events(events), progress)

        assert reasoning.text == "Let me think."
        assert reasoning.signature == "sig-1"
        assert reasoning.is_replayable
        assert [p["value"] for p in progress.of_type("thinking")] == ["Let me ", "think."]

    @pytest.mark.asyncio
    async def test_first_signature_wins(self, progress):
        events = [
            {"contentBlockStart": {"contentBlockIndex": 0, "start": {"reasoningContent": {"signature": "first"}}}},
            *reasoning_events(0, "x", signature="second"),
        ]
        reasoning = await StreamProcessor().process_stream(aiter_events(events), progress)
        assert reasoning.signature == "first"

    @pytest.mark.asyncio
    async def test_reasoning_only_response_is_not_empty(self, progress):
        reasoning = await StreamProcessor().process_stream(aiter_events(reasoning_events(0, "hmm")), progress)
        assert reasoning.text == "hmm"
        assert not reasoning.is_replayable

    @pytest.mark.asyncio
    async def test_reasoning_from_metadata(self, progress):
        events = text_stream("hi")[:-1] + [
            {"metadata": {"usage": {}, "reasoningContent": {"reasoningText": {"text": "meta", "signature": "ms"}}}}
        ]
        reasoning = await StreamProcessor().process_stream(aiter_events(events), progress)
        assert reasoning.text == "meta"
        assert reasoning.signature == "ms"


class TestEmptyResponses:
    @pytest.mark.asyncio
    async def test_max_tokens_raises_budget_error(self, progress):
        events = [{"messageStart": {"role": "assistant"}}, {"messageStop": {"stopReason": "max_tokens"}}]
        with pytest.raises(ThinkingBudgetExceededError) as exc_info:
            await StreamProcessor().process_stream(aiter_events(events), progress)
        assert exc_info.value.stop_reason == "max_tokens"

    @pytest.mark.asyncio
    async def test_content_filtered(self, progress):
        events = [{"messageStop": {"stopReason": "guardrail_intervened"}}]
        with pytest.raises(ContentFilteredError):
            await StreamProcessor().process_stream(aiter_events(events), progress)

    @pytest.mark.asyncio
    async def test_no_stop_reason_raises_generic_error(self, progress):
        with pytest.raises(NoContentError):
            await StreamProcessor().process_stream(aiter_events([{"messageStart": {}}]), progress)

    @pytest.mark.asyncio
    async def test_empty_error_carries_reasoning(self, progress):
        events = [
            {"contentBlockStart": {"contentBlockIndex": 0, "start": {"reasoningContent": {"signature": "s"}}}},
            {"messageStop": {"stopReason": "max_tokens"}},
        ]
        with pytest.raises(EmptyResponseError) as exc_info:
            await StreamProcessor().process_stream(aiter_events(events), progress)
        assert exc_info.value.reasoning.signature == "s"

    @pytest.mark.asyncio
    async def test_cancellation_suppresses_error(self, progress):
        token = CancellationToken()
        token.cancel()
        events = [{"messageStart": {}}, {"messageStop": {"stopReason": "max_tokens"}}]

        processor = StreamProcessor()
        await processor.process_stream(aiter_events(events), progress, token)

        assert processor.stats.cancelled
        assert progress.parts == []

    @pytest.mark.asyncio
    async def test_cancellation_mid_stream_stops_reporting(self, progress):
        token = CancellationToken()

        class CancelAfterFirst:
            def report(self, part):
                progress.report(part)
                token.cancel()

        await StreamProcessor().process_stream(aiter_events(text_stream("a", "b", "c")), CancelAfterFirst(), token)
        assert [p["value"] for p in progress.parts] == ["a"]

    @pytest.mark.asyncio
    async def test_stream_closed_after_cancellation(self, progress):
        token = CancellationToken()
        state = {"closed": False}

        async def stream():
            try:
                for event in text_stream("a", "b", "c"):
                    yield event
            finally:
                state["closed"] = True

        class CancelAfterFirst:
            def report(self, part):
                progress.report(part)
                token.cancel()

        await StreamProcessor().process_stream(stream(), CancelAfterFirst(), token)

        assert state["closed"]

    @pytest.mark.asyncio
    async def test_stream_closed_when_sink_raises(self):
        state = {"closed": False}

        async def stream():
            try:
                for event in text_stream("a", "b"):
                    yield event
            finally:
                state["closed"] = True

        class Broken:
            def report(self, part):
                raise RuntimeError("sink gone")

        with pytest.raises(RuntimeError):
            await StreamProcessor().process_stream(stream(), Broken())
        assert state["closed"]
