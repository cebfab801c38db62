"""Conversation completion engine, the fall-through path of every turn.

Sends the full history to a tool-augmented language model and forwards
its streamed output (text, reasoning, tool calls) through the response
emitter.  It has **no dependency on any model SDK**: the streaming backend
port does the provider-specific shaping.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger

from chat_orchestrator.application.exceptions import (
    ContentFilterError,
    ExternalServiceError,
    StepLimitExceededError,
)
from chat_orchestrator.application.prompts import SYSTEM_PROMPT
from chat_orchestrator.application.streaming import ResponseEmitter, StreamEvent
from chat_orchestrator.domain.models import Turn

MAX_STEPS = 10
TOOL_NAMES = ("web_search", "vector_database_search")
PROVIDER_OPTIONS: Mapping[str, Any] = {
    "reasoning_effort": "low",
    "reasoning_summary": "auto",
    "parallel_tool_calls": False,
}

CONTENT_FILTER_REFUSAL = (
    "I'm sorry, but I can't comply with that request. "
    "I'm not able to share my system prompt, API keys, "
    "or any other internal configuration details."
)
STEP_LIMIT_MESSAGE = (
    "I stopped before finishing because this question needed more research steps "
    "than I'm allowed per answer. Try narrowing the question."
)
COMPLETION_FAILURE_MESSAGE = (
    "I couldn't finish the answer because the language model request failed ({detail}). "
    "Please try again."
)


@dataclass(frozen=True)
class CompletionRequest:
    """Everything the streaming backend needs for one model run."""

    model: str
    system_prompt: str
    messages: tuple[Turn, ...]
    tools: tuple[str, ...] = TOOL_NAMES
    max_steps: int = MAX_STEPS
    provider_options: Mapping[str, Any] = field(default_factory=lambda: dict(PROVIDER_OPTIONS))


class IStreamingCompletionBackend(Protocol):
    """Runs a completion and yields events created through *emitter*.

    Implementations emit only blocks and tool events; the caller owns the
    ``start`` / ``finish`` bracket.  Provider failures are raised as
    ``ExternalServiceError`` subclasses.
    """

    def stream(
        self, request: CompletionRequest, emitter: ResponseEmitter
    ) -> AsyncIterator[StreamEvent]: ...


class ConversationCompletionEngine:
    """Builds the completion request and streams the backend's answer."""

    def __init__(
        self,
        backend: IStreamingCompletionBackend,
        model: str,
        *,
        system_prompt: str = SYSTEM_PROMPT,
        max_steps: int = MAX_STEPS,
    ) -> None:
        self.backend = backend
        self.model = model
        self.system_prompt = system_prompt
        self.max_steps = max_steps

    def build_request(self, history: list[Turn]) -> CompletionRequest:
        return CompletionRequest(
            model=self.model,
            system_prompt=self.system_prompt,
            messages=tuple(history),
            tools=TOOL_NAMES,
            max_steps=self.max_steps,
        )

    async def stream(
        self, history: list[Turn], emitter: ResponseEmitter
    ) -> AsyncIterator[StreamEvent]:
        """Yield the model's events; failures become a closing text block."""
        request = self.build_request(history)
        t0 = time.perf_counter()

        try:
            async for event in self.backend.stream(request, emitter):
                yield event
        except ContentFilterError:
            logger.warning("Provider content filter blocked request (jailbreak detection)")
            failure_text = CONTENT_FILTER_REFUSAL
        except StepLimitExceededError as exc:
            logger.warning("Completion hit step limit | max_steps={} | {}", request.max_steps, exc)
            failure_text = STEP_LIMIT_MESSAGE
        except ExternalServiceError as exc:
            logger.error("Completion failed | {}", exc)
            failure_text = COMPLETION_FAILURE_MESSAGE.format(detail=exc.detail)
        else:
            latency = int((time.perf_counter() - t0) * 1000)
            logger.info("Completion streamed | latency={}ms | turns={}", latency, len(history))
            return

        for event in emitter.close_open_block():
            yield event
        for event in emitter.text_block(failure_text):
            yield event
