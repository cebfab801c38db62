"""Tests for the conversation completion engine."""

from chat_orchestrator.application.completion import (
    COMPLETION_FAILURE_MESSAGE,
    CONTENT_FILTER_REFUSAL,
    MAX_STEPS,
    STEP_LIMIT_MESSAGE,
    TOOL_NAMES,
    ConversationCompletionEngine,
)
from chat_orchestrator.application.exceptions import (
    ContentFilterError,
    ExternalServiceError,
    StepLimitExceededError,
)
from chat_orchestrator.application.prompts import SYSTEM_PROMPT
from chat_orchestrator.application.streaming import ResponseEmitter
from helpers import ScriptedBackend, assistant_turn, collect, event_types, streamed_text, user_turn

HISTORY = [user_turn("What is P-101?"), assistant_turn("A pump."), user_turn("Its flow rate?")]


async def _run(engine: ConversationCompletionEngine):
    emitter = ResponseEmitter()
    events = [emitter.start()]
    events += await collect(engine.stream(HISTORY, emitter))
    events.append(emitter.finish())
    return events


class TestBuildRequest:
    def test_request_parameters(self):
        request = ConversationCompletionEngine(ScriptedBackend(), "gpt-5-mini").build_request(HISTORY)

        assert request.model == "gpt-5-mini"
        assert request.system_prompt == SYSTEM_PROMPT
        assert request.messages == tuple(HISTORY)
        assert request.tools == TOOL_NAMES == ("web_search", "vector_database_search")
        assert request.max_steps == MAX_STEPS == 10
        assert request.provider_options == {
            "reasoning_effort": "low",
            "reasoning_summary": "auto",
            "parallel_tool_calls": False,
        }


class TestStream:
    async def test_forwards_backend_events(self):
        backend = ScriptedBackend(
            ("Flow is ", "120 m3/h."),
            tool_call=("call_1", "vector_database_search", {"query": "P-101 flow"}, "120 m3/h"),
        )
        events = await _run(ConversationCompletionEngine(backend, "m"))

        assert event_types(events) == [
            "start",
            "tool-input-available",
            "tool-output-available",
            "text-start",
            "text-delta",
            "text-delta",
            "text-end",
            "finish",
        ]
        assert streamed_text(events) == "Flow is 120 m3/h."
        assert backend.requests[0].messages[-1].text == "Its flow rate?"

    async def test_mid_stream_failure_closes_block_and_explains(self):
        backend = ScriptedBackend(("Partial",), error=ExternalServiceError("language model", "HTTP 500"))
        events = await _run(ConversationCompletionEngine(backend, "m"))

        types = event_types(events)
        assert types == [
            "start",
            "text-start",
            "text-delta",
            "text-end",
            "text-start",
            "text-delta",
            "text-end",
            "finish",
        ]
        assert events[3].id == events[1].id
        assert events[5].delta == COMPLETION_FAILURE_MESSAGE.format(detail="HTTP 500")

    async def test_content_filter_refusal(self):
        backend = ScriptedBackend((), error=ContentFilterError("language model", "content filter"))
        events = await _run(ConversationCompletionEngine(backend, "m"))
        assert events[-3].delta == CONTENT_FILTER_REFUSAL

    async def test_step_limit_message(self):
        backend = ScriptedBackend(("x",), error=StepLimitExceededError("language model", "limit"))
        events = await _run(ConversationCompletionEngine(backend, "m"))
        assert events[-3].delta == STEP_LIMIT_MESSAGE
