from bedrockmux.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    MessageStartEvent,
    MessageStopEvent,
    MetadataEvent,
    ReasoningDelta,
    TextDelta,
    ToolUseDelta,
    UnknownDelta,
    UnknownEvent,
    parse_delta,
    parse_event,
)


class TestParseDelta:
    def test_text(self):
        assert parse_delta({"text": "hi"}) == TextDelta(text="hi")

    def test_tool_use_input(self):
        assert parse_delta({"toolUse": {"input": '{"a"'}}) == ToolUseDelta(input='{"a"')

    def test_reasoning_text(self):
        delta = parse_delta({"reasoningContent": {"text": "hmm"}})
        assert delta == ReasoningDelta(text="hmm")

    def test_reasoning_signature(self):
        delta = parse_delta({"reasoningContent": {"signature": "sig"}})
        assert delta.signature == "sig"
        assert delta.text == ""

    def test_reasoning_redacted(self):
        assert parse_delta({"reasoningContent": {"redactedContent": b"xx"}}).redacted

    def test_thinking_shapes_are_equivalent(self):
        assert parse_delta({"thinking": "step"}) == ReasoningDelta(text="step")
        assert parse_delta({"thinking": {"thinking": "step", "signature": "s"}}) == ReasoningDelta(
            text="step", signature="s"
        )

    def test_unknown(self):
        assert parse_delta({"citation": {}}) == UnknownDelta(keys=("citation",))


class TestParseEvent:
    def test_message_start(self):
        assert parse_event({"messageStart": {"role": "assistant"}}) == MessageStartEvent(role="assistant")

    def test_tool_use_block_start(self):
        event = parse_event({
            "contentBlockStart": {
                "contentBlockIndex": 2,
                "start": {"toolUse": {"toolUseId": "t1", "name": "search"}},
            }
        })
        assert isinstance(event, ContentBlockStartEvent)
        assert event.index == 2
        assert event.tool_use.tool_use_id == "t1"
        assert event.tool_use.name == "search"
        assert event.reasoning is None

    def test_reasoning_block_start(self):
        event = parse_event({
            "contentBlockStart": {"contentBlockIndex": 0, "start": {"reasoningContent": {"signature": "s"}}}
        })
        assert event.reasoning.signature == "s"

    def test_delta_missing_index_defaults_to_zero(self):
        event = parse_event({"contentBlockDelta": {"delta": {"text": "x"}}})
        assert event == ContentBlockDeltaEvent(index=0, delta=TextDelta(text="x"))

    def test_stop_events(self):
        assert parse_event({"contentBlockStop": {"contentBlockIndex": 3}}) == ContentBlockStopEvent(index=3)
        assert parse_event({"messageStop": {"stopReason": "tool_use"}}) == MessageStopEvent(stop_reason="tool_use")

    def test_metadata_with_reasoning_segments(self):
        event = parse_event({
            "metadata": {
                "usage": {"inputTokens": 3},
                "metrics": {"latencyMs": 12},
                "reasoningContent": [{"reasoningText": {"text": "why", "signature": "sig"}}],
            }
        })
        assert isinstance(event, MetadataEvent)
        assert event.usage == {"inputTokens": 3}
        assert event.metrics == {"latencyMs": 12}
        assert len(event.reasoning) == 1
        assert event.reasoning[0].text == "why"
        assert event.reasoning[0].signature == "sig"

    def test_unknown_event(self):
        assert parse_event({"internalServerException": {}}) == UnknownEvent(keys=("internalServerException",))
