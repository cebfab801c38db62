"""Incremental response protocol shared by every pipeline branch.

Events follow the AI-SDK UI message stream (v1): a response is one
``start`` … ``finish`` bracket holding non-overlapping text blocks
(``text-start`` / ``text-delta`` / ``text-end``).  The completion branch may
also forward reasoning blocks and tool input/output events.

``ResponseEmitter`` is the only way to create events.  It tracks the
bracket and the single open block, and raises ``StreamProtocolError`` on
any out-of-order emission, so a malformed stream never reaches a client.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from chat_orchestrator.application.exceptions import StreamProtocolError

SSE_DONE = "data: [DONE]\n\n"
STREAM_PROTOCOL_HEADER = {"x-vercel-ai-ui-message-stream": "v1"}

# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class StreamEvent(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    type: str

    def to_sse(self) -> str:
        """Encode as one server-sent-events frame."""
        return f"data: {self.model_dump_json(by_alias=True)}\n\n"


class StartEvent(StreamEvent):
    type: Literal["start"] = "start"


class FinishEvent(StreamEvent):
    type: Literal["finish"] = "finish"


class TextStartEvent(StreamEvent):
    type: Literal["text-start"] = "text-start"
    id: str


class TextDeltaEvent(StreamEvent):
    type: Literal["text-delta"] = "text-delta"
    id: str
    delta: str


class TextEndEvent(StreamEvent):
    type: Literal["text-end"] = "text-end"
    id: str


class ReasoningStartEvent(StreamEvent):
    type: Literal["reasoning-start"] = "reasoning-start"
    id: str


class ReasoningDeltaEvent(StreamEvent):
    type: Literal["reasoning-delta"] = "reasoning-delta"
    id: str
    delta: str


class ReasoningEndEvent(StreamEvent):
    type: Literal["reasoning-end"] = "reasoning-end"
    id: str


class ToolInputAvailableEvent(StreamEvent):
    type: Literal["tool-input-available"] = "tool-input-available"
    tool_call_id: str
    tool_name: str
    input: Any = None


class ToolOutputAvailableEvent(StreamEvent):
    type: Literal["tool-output-available"] = "tool-output-available"
    tool_call_id: str
    output: Any = None


class ToolOutputErrorEvent(StreamEvent):
    type: Literal["tool-output-error"] = "tool-output-error"
    tool_call_id: str
    error_text: str


_BLOCK_EVENTS = {
    "text": (TextStartEvent, TextDeltaEvent, TextEndEvent),
    "reasoning": (ReasoningStartEvent, ReasoningDeltaEvent, ReasoningEndEvent),
}


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------


class ResponseEmitter:
    """Per-request event factory that enforces valid nesting."""

    def __init__(self) -> None:
        self._started = False
        self._finished = False
        self._open: tuple[str, str] | None = None
        self._counter = 0

    @property
    def started(self) -> bool:
        return self._started

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def open_block(self) -> tuple[str, str] | None:
        """``(kind, id)`` of the block currently open, if any."""
        return self._open

    def next_id(self, kind: str = "text") -> str:
        self._counter += 1
        return f"{kind}-{self._counter}"

    # ------------------------------------------------------------------
    # Bracket
    # ------------------------------------------------------------------

    def start(self) -> StartEvent:
        if self._started:
            raise StreamProtocolError("start already emitted")
        self._started = True
        return StartEvent()

    def finish(self) -> FinishEvent:
        self._require_active()
        if self._open is not None:
            kind, block_id = self._open
            raise StreamProtocolError(f"cannot finish while {kind} block {block_id!r} is open")
        self._finished = True
        return FinishEvent()

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def text_start(self, block_id: str) -> TextStartEvent:
        return self._block_start("text", block_id)

    def text_delta(self, block_id: str, delta: str) -> TextDeltaEvent:
        return self._block_delta("text", block_id, delta)

    def text_end(self, block_id: str) -> TextEndEvent:
        return self._block_end("text", block_id)

    def reasoning_start(self, block_id: str) -> ReasoningStartEvent:
        return self._block_start("reasoning", block_id)

    def reasoning_delta(self, block_id: str, delta: str) -> ReasoningDeltaEvent:
        return self._block_delta("reasoning", block_id, delta)

    def reasoning_end(self, block_id: str) -> ReasoningEndEvent:
        return self._block_end("reasoning", block_id)

    def close_open_block(self) -> list[StreamEvent]:
        """Close whichever block is open; returns ``[]`` when none is."""
        if self._open is None:
            return []
        kind, block_id = self._open
        return [self._block_end(kind, block_id)]

    # ------------------------------------------------------------------
    # Tool events (between blocks only)
    # ------------------------------------------------------------------

    def tool_input(
        self, tool_call_id: str, tool_name: str, tool_input: Any
    ) -> ToolInputAvailableEvent:
        self._require_between_blocks()
        return ToolInputAvailableEvent(
            tool_call_id=tool_call_id, tool_name=tool_name, input=tool_input
        )

    def tool_output(self, tool_call_id: str, output: Any) -> ToolOutputAvailableEvent:
        self._require_between_blocks()
        return ToolOutputAvailableEvent(tool_call_id=tool_call_id, output=output)

    def tool_error(self, tool_call_id: str, error_text: str) -> ToolOutputErrorEvent:
        self._require_between_blocks()
        return ToolOutputErrorEvent(tool_call_id=tool_call_id, error_text=error_text)

    # ------------------------------------------------------------------
    # Synthesized messages
    # ------------------------------------------------------------------

    def text_block(self, text: str, block_id: str | None = None) -> list[StreamEvent]:
        """One complete text block: start, a single delta, end."""
        block_id = block_id or self.next_id("text")
        return [
            self.text_start(block_id),
            self.text_delta(block_id, text),
            self.text_end(block_id),
        ]

    def message(self, text: str, block_id: str | None = None) -> list[StreamEvent]:
        """A whole response made of exactly one text block."""
        return [self.start(), *self.text_block(text, block_id), self.finish()]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_active(self) -> None:
        if not self._started:
            raise StreamProtocolError("start must be emitted first")
        if self._finished:
            raise StreamProtocolError("stream already finished")

    def _require_between_blocks(self) -> None:
        self._require_active()
        if self._open is not None:
            raise StreamProtocolError(f"{self._open[0]} block {self._open[1]!r} is still open")

    def _block_start(self, kind: str, block_id: str):
        self._require_between_blocks()
        self._open = (kind, block_id)
        return _BLOCK_EVENTS[kind][0](id=block_id)

    def _block_delta(self, kind: str, block_id: str, delta: str):
        self._require_active()
        if self._open != (kind, block_id):
            raise StreamProtocolError(f"{kind}-delta for {block_id!r} which is not the open block")
        return _BLOCK_EVENTS[kind][1](id=block_id, delta=delta)

    def _block_end(self, kind: str, block_id: str):
        self._require_active()
        if self._open != (kind, block_id):
            raise StreamProtocolError(f"{kind}-end for {block_id!r} which is not the open block")
        self._open = None
        return _BLOCK_EVENTS[kind][2](id=block_id)
