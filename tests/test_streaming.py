"""Tests for the response event protocol and the ResponseEmitter."""

import json

import pytest

from chat_orchestrator.application.exceptions import StreamProtocolError
from chat_orchestrator.application.streaming import (
    SSE_DONE,
    ResponseEmitter,
    TextDeltaEvent,
    ToolInputAvailableEvent,
    ToolOutputErrorEvent,
)


def _active_emitter() -> ResponseEmitter:
    emitter = ResponseEmitter()
    emitter.start()
    return emitter


class TestEventEncoding:
    """Events serialize to AI SDK UI message stream frames."""

    def test_text_delta_frame(self):
        frame = TextDeltaEvent(id="text-1", delta="hi").to_sse()
        assert frame == 'data: {"type":"text-delta","id":"text-1","delta":"hi"}\n\n'

    def test_tool_input_uses_camel_case_keys(self):
        frame = ToolInputAvailableEvent(
            tool_call_id="call_1", tool_name="web_search", input={"query": "pumps"}
        ).to_sse()
        payload = json.loads(frame.removeprefix("data: ").strip())
        assert payload == {
            "type": "tool-input-available",
            "toolCallId": "call_1",
            "toolName": "web_search",
            "input": {"query": "pumps"},
        }

    def test_tool_error_uses_camel_case_keys(self):
        payload = json.loads(
            ToolOutputErrorEvent(tool_call_id="c", error_text="boom").to_sse()[len("data: ") :]
        )
        assert payload["errorText"] == "boom"

    def test_done_sentinel(self):
        assert SSE_DONE == "data: [DONE]\n\n"


class TestResponseEmitter:
    """The emitter enforces one bracket and non-overlapping blocks."""

    def test_message_is_one_bracketed_block(self):
        events = ResponseEmitter().message("Hello", "greeting")
        assert [e.type for e in events] == [
            "start",
            "text-start",
            "text-delta",
            "text-end",
            "finish",
        ]
        assert {e.id for e in events[1:4]} == {"greeting"}
        assert events[2].delta == "Hello"

    def test_generated_ids_are_unique(self):
        emitter = ResponseEmitter()
        assert emitter.next_id() != emitter.next_id()
        assert emitter.next_id("reasoning").startswith("reasoning-")

    def test_double_start_raises(self):
        emitter = _active_emitter()
        with pytest.raises(StreamProtocolError):
            emitter.start()

    def test_block_before_start_raises(self):
        with pytest.raises(StreamProtocolError):
            ResponseEmitter().text_start("t")

    def test_overlapping_blocks_raise(self):
        emitter = _active_emitter()
        emitter.text_start("a")
        with pytest.raises(StreamProtocolError):
            emitter.reasoning_start("b")

    def test_delta_for_wrong_block_raises(self):
        emitter = _active_emitter()
        emitter.text_start("a")
        with pytest.raises(StreamProtocolError):
            emitter.text_delta("b", "x")

    def test_finish_with_open_block_raises(self):
        emitter = _active_emitter()
        emitter.text_start("a")
        with pytest.raises(StreamProtocolError):
            emitter.finish()

    def test_events_after_finish_raise(self):
        emitter = _active_emitter()
        emitter.finish()
        with pytest.raises(StreamProtocolError):
            emitter.text_block("late")

    def test_tool_events_between_blocks_only(self):
        emitter = _active_emitter()
        emitter.reasoning_start("r")
        with pytest.raises(StreamProtocolError):
            emitter.tool_input("c", "web_search", {})

    def test_close_open_block(self):
        emitter = _active_emitter()
        assert emitter.close_open_block() == []
        emitter.reasoning_start("r")
        closed = emitter.close_open_block()
        assert [e.type for e in closed] == ["reasoning-end"]
        assert emitter.open_block is None
        emitter.finish()
        assert emitter.finished
