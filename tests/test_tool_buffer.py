from bedrockmux.tool_buffer import ToolBuffer


class TestToolBuffer:
    def test_validate_incomplete_json_returns_none(self):
        buffer = ToolBuffer()
        buffer.start(1, "t1", "get_weather")
        buffer.append(1, '{"location": "Par')

        assert buffer.try_validate(1) is None
        assert buffer.has_pending(1)

    def test_validate_complete_json_does_not_consume(self):
        buffer = ToolBuffer()
        buffer.start(1, "t1", "get_weather")
        buffer.append(1, '{"location": ')
        buffer.append(1, '"Paris"}')

        tool = buffer.try_validate(1)
        assert tool == {"id": "t1", "name": "get_weather", "input": {"location": "Paris"}}
        assert buffer.has_pending(1)

    def test_validate_empty_buffer(self):
        buffer = ToolBuffer()
        buffer.start(0, "t1", "noop")
        assert buffer.try_validate(0) is None

    def test_finalize_parses_and_removes(self):
        buffer = ToolBuffer()
        buffer.start(2, "t2", "calc")
        buffer.append(2, '{"x": 1}')

        assert buffer.finalize(2) == {"id": "t2", "name": "calc", "input": {"x": 1}}
        assert not buffer.has_pending(2)
        assert buffer.finalize(2) is None

    def test_finalize_without_input_gives_empty_object(self):
        buffer = ToolBuffer()
        buffer.start(0, "t1", "list_files")
        assert buffer.finalize(0)["input"] == {}

    def test_finalize_invalid_json_keeps_raw(self):
        buffer = ToolBuffer()
        buffer.start(0, "t1", "broken")
        buffer.append(0, '{"a": ')

        assert buffer.finalize(0)["input"] == {"raw": '{"a": '}

    def test_append_to_unknown_index_is_ignored(self):
        buffer = ToolBuffer()
        buffer.append(5, '{"a": 1}')
        assert not buffer.has_pending(5)
        assert buffer.finalize(5) is None

    def test_emitted_tracking(self):
        buffer = ToolBuffer()
        buffer.start(1, "t1", "a")
        assert not buffer.is_emitted(1)

        buffer.mark_emitted(1)
        buffer.discard(1)
        assert buffer.is_emitted(1)
        assert not buffer.has_pending(1)

    def test_restart_overwrites_entry_and_emitted_state(self):
        buffer = ToolBuffer()
        buffer.start(1, "t1", "a")
        buffer.append(1, '{"old": true}')
        buffer.mark_emitted(1)

        buffer.start(1, "t9", "b")
        assert not buffer.is_emitted(1)
        assert buffer.finalize(1) == {"id": "t9", "name": "b", "input": {}}

    def test_indices_are_independent(self):
        buffer = ToolBuffer()
        buffer.start(1, "t1", "a")
        buffer.start(2, "t2", "b")
        buffer.append(1, '{"n": 1}')
        buffer.append(2, '{"n": 2}')

        assert buffer.finalize(2)["input"] == {"n": 2}
        assert buffer.finalize(1)["input"] == {"n": 1}

    def test_clear(self):
        buffer = ToolBuffer()
        buffer.start(1, "t1", "a")
        buffer.mark_emitted(1)
        buffer.clear()
        assert not buffer.has_pending(1)
        assert not buffer.is_emitted(1)
