"""PydanticAI agent with web and internal document search, plus the
streaming backend that shapes its run into response events."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any

import openai
from loguru import logger
from pydantic_ai import Agent, RunContext
from pydantic_ai.exceptions import (
    AgentRunError,
    ModelHTTPError,
    UsageLimitExceeded,
)
from pydantic_ai.messages import (
    FunctionToolCallEvent,
    FunctionToolResultEvent,
    ModelMessage,
    ModelRequest,
    ModelResponse,
    PartDeltaEvent,
    PartStartEvent,
    TextPartDelta,
    ThinkingPart,
    ThinkingPartDelta,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.messages import TextPart as ModelTextPart
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIResponsesModel, OpenAIResponsesModelSettings
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.tools import ToolDefinition
from pydantic_ai.usage import UsageLimits

from chat_orchestrator.application.completion import TOOL_NAMES, CompletionRequest
from chat_orchestrator.application.exceptions import (
    ContentFilterError,
    ExternalServiceError,
    StepLimitExceededError,
)
from chat_orchestrator.application.prompts import SYSTEM_PROMPT
from chat_orchestrator.application.streaming import ResponseEmitter, StreamEvent
from chat_orchestrator.config import Settings, get_settings
from chat_orchestrator.domain.models import TextPart, ToolInvocationPart, Turn
from chat_orchestrator.domain.protocols import IVectorSearchService, IWebSearchService
from chat_orchestrator.infrastructure.openai_backends import (
    create_openai_client,
    describe_api_error,
)

EMPTY_PROMPT_PLACEHOLDER = "(empty message)"


@dataclass
class AgentDeps:
    """Dependencies injected into every agent tool call."""

    web_search: IWebSearchService
    vector_search: IVectorSearchService
    system_prompt: str = SYSTEM_PROMPT
    tools: tuple[str, ...] = TOOL_NAMES
    vector_search_limit: int = 5


# ---------------------------------------------------------------------------
# Tool result formatting
# ---------------------------------------------------------------------------


def format_web_results(results: list) -> str:
    if not results:
        return "No web results found for this query."
    return "\n---\n".join(
        f"[Result {i}]\nTitle: {r.title}\nURL: {r.url}\nContent:\n{r.content}\n"
        for i, r in enumerate(results, 1)
    )


def format_vector_results(results: list) -> str:
    if not results:
        return "No relevant documents found in the internal document store for this query."
    return "\n---\n".join(
        f"[Result {i}]\n"
        f"Document: {r.document_name}\n"
        f"Section: {r.section_header or 'N/A'}\n"
        f"Distance: {r.distance:.4f}\n"
        f"Content:\n{r.content}\n"
        for i, r in enumerate(results, 1)
    )


# ---------------------------------------------------------------------------
# Agent factory
# ---------------------------------------------------------------------------


async def _only_requested_tools(
    ctx: RunContext[AgentDeps], tool_def: ToolDefinition
) -> ToolDefinition | None:
    return tool_def if tool_def.name in ctx.deps.tools else None


def create_model(settings: Settings) -> OpenAIResponsesModel:
    client = create_openai_client(settings)
    return OpenAIResponsesModel(
        settings.chat_model,
        provider=OpenAIProvider(openai_client=client),
    )


def create_agent(
    settings: Settings | None = None,
    *,
    model: Model | None = None,
    instrument: bool | None = None,
) -> Agent[AgentDeps, str]:
    """Create and return the configured PydanticAI agent.

    Args:
        settings: Optional Settings override (defaults to get_settings()).
        model: Optional model override; built from settings when omitted.
        instrument: Emit OpenTelemetry / Logfire spans for agent runs.
    """
    s = settings or get_settings()

    agent = Agent(
        model=model or create_model(s),
        deps_type=AgentDeps,
        output_type=str,
        instrument=instrument,
    )

    # Instructions are re-sent on every request, including ones that
    # continue an existing message history.
    @agent.instructions
    def completion_instructions(ctx: RunContext[AgentDeps]) -> str:
        return ctx.deps.system_prompt

    # ------------------------------------------------------------------
    # Tool 1: Web search (Tavily)
    # ------------------------------------------------------------------

    @agent.tool(prepare=_only_requested_tools)
    async def web_search(ctx: RunContext[AgentDeps], query: str) -> str:
        """Search the public web for current, external information.

        Use this for vendor documentation, regulations, standards, or
        anything that is not in the internal document store.

        Args:
            query: A standalone search query.
        """
        try:
            results = await ctx.deps.web_search.search(query)
        except ExternalServiceError as exc:
            logger.warning("web_search tool failed | {}", exc)
            return f"Web search failed: {exc.detail}"
        return format_web_results(results)

    # ------------------------------------------------------------------
    # Tool 2: Internal document store (vector search)
    # ------------------------------------------------------------------

    @agent.tool(prepare=_only_requested_tools)
    def vector_database_search(ctx: RunContext[AgentDeps], query: str) -> str:
        """Search the internal document store (P&IDs, SOPs, incident reports).

        Always formulate the query as a clear, standalone question that does
        not rely on prior conversation context.

        Args:
            query: A standalone search question (rewrite from context if needed).
        """
        try:
            results = ctx.deps.vector_search.search(query, ctx.deps.vector_search_limit)
        except ExternalServiceError as exc:
            logger.warning("vector_database_search tool failed | {}", exc)
            return f"Document search failed: {exc.detail}"
        return format_vector_results(results)

    return agent


# ---------------------------------------------------------------------------
# History conversion
# ---------------------------------------------------------------------------


def _assistant_messages(turn: Turn) -> list[ModelMessage]:
    messages: list[ModelMessage] = []
    pending: list[Any] = []
    for part in turn.parts:
        if isinstance(part, TextPart) and part.text:
            pending.append(ModelTextPart(content=part.text))
        elif isinstance(part, ToolInvocationPart) and part.resolved and part.tool_call_id:
            args = part.input if isinstance(part.input, dict) else {}
            pending.append(
                ToolCallPart(tool_name=part.name, args=args, tool_call_id=part.tool_call_id)
            )
            messages.append(ModelResponse(parts=pending))
            messages.append(
                ModelRequest(
                    parts=[
                        ToolReturnPart(
                            tool_name=part.name,
                            content=part.output,
                            tool_call_id=part.tool_call_id,
                        )
                    ]
                )
            )
            pending = []
    if pending:
        messages.append(ModelResponse(parts=pending))
    return messages


def to_model_messages(turns: list[Turn] | tuple[Turn, ...]) -> list[ModelMessage]:
    """Convert conversation turns into PydanticAI message-history objects.

    System turns and reasoning parts are dropped; unresolved tool
    invocations are skipped.
    """
    history: list[ModelMessage] = []
    for turn in turns:
        if turn.role == "user":
            if turn.text:
                history.append(ModelRequest(parts=[UserPromptPart(content=turn.text)]))
        elif turn.role == "assistant":
            history.extend(_assistant_messages(turn))
    return history


def split_prompt(turns: tuple[Turn, ...]) -> tuple[str | None, list[ModelMessage]]:
    """Return ``(prompt, history)`` where *prompt* is the trailing user turn."""
    if turns and turns[-1].role == "user":
        return turns[-1].text or EMPTY_PROMPT_PLACEHOLDER, to_model_messages(turns[:-1])
    return None, to_model_messages(turns)


def model_settings(options: Mapping[str, Any]) -> OpenAIResponsesModelSettings:
    return OpenAIResponsesModelSettings(
        openai_reasoning_effort=options.get("reasoning_effort", "low"),
        openai_reasoning_summary=options.get("reasoning_summary", "auto"),
        parallel_tool_calls=options.get("parallel_tool_calls", False),
    )


def is_jailbreak_filter(exc: ModelHTTPError) -> bool:
    """Return True if the error was caused by Azure's jailbreak content filter."""
    body = getattr(exc, "body", None) or {}
    if not isinstance(body, dict):
        return False
    inner = body.get("innererror", {})
    cfr = inner.get("content_filter_result", {})
    return cfr.get("jailbreak", {}).get("filtered", False)


# ---------------------------------------------------------------------------
# Stream shaping
# ---------------------------------------------------------------------------


class _EventShaper:
    """Maps PydanticAI node events onto emitter blocks and tool events."""

    def __init__(self, emitter: ResponseEmitter) -> None:
        self.emitter = emitter
        self._part_index: int | None = None

    def _open(self, kind: str, index: int, initial: str) -> list[StreamEvent]:
        events = self.close()
        block_id = self.emitter.next_id(kind)
        if kind == "text":
            events.append(self.emitter.text_start(block_id))
            if initial:
                events.append(self.emitter.text_delta(block_id, initial))
        else:
            events.append(self.emitter.reasoning_start(block_id))
            if initial:
                events.append(self.emitter.reasoning_delta(block_id, initial))
        self._part_index = index
        return events

    def _delta(self, kind: str, index: int, delta: str) -> list[StreamEvent]:
        block = self.emitter.open_block
        if block is None or block[0] != kind or self._part_index != index:
            return self._open(kind, index, delta)
        if kind == "text":
            return [self.emitter.text_delta(block[1], delta)]
        return [self.emitter.reasoning_delta(block[1], delta)]

    def model_event(self, event: Any) -> list[StreamEvent]:
        if isinstance(event, PartStartEvent):
            part = event.part
            if isinstance(part, ModelTextPart):
                return self._open("text", event.index, part.content)
            if isinstance(part, ThinkingPart):
                return self._open("reasoning", event.index, part.content)
            # Tool call parts surface through the call-tools node.
            return self.close()
        if isinstance(event, PartDeltaEvent):
            delta = event.delta
            if isinstance(delta, TextPartDelta) and delta.content_delta:
                return self._delta("text", event.index, delta.content_delta)
            if isinstance(delta, ThinkingPartDelta) and delta.content_delta:
                return self._delta("reasoning", event.index, delta.content_delta)
        return []

    def tool_event(self, event: Any) -> list[StreamEvent]:
        events = self.close()
        if isinstance(event, FunctionToolCallEvent):
            part = event.part
            events.append(
                self.emitter.tool_input(part.tool_call_id, part.tool_name, part.args_as_dict())
            )
        elif isinstance(event, FunctionToolResultEvent):
            result = event.result
            if isinstance(result, ToolReturnPart):
                content = result.content
                output = content if isinstance(content, str) else result.model_response_str()
                events.append(self.emitter.tool_output(result.tool_call_id, output))
            else:
                events.append(
                    self.emitter.tool_error(result.tool_call_id, str(result.model_response()))
                )
        return events

    def close(self) -> list[StreamEvent]:
        self._part_index = None
        return self.emitter.close_open_block()


class PydanticAIStreamingBackend:
    """Streaming completion backend running a PydanticAI agent graph."""

    def __init__(
        self,
        agent: Agent[AgentDeps, str],
        web_search: IWebSearchService,
        vector_search: IVectorSearchService,
        *,
        vector_search_limit: int = 5,
    ) -> None:
        self.agent = agent
        self.web_search = web_search
        self.vector_search = vector_search
        self.vector_search_limit = vector_search_limit

    async def stream(
        self, request: CompletionRequest, emitter: ResponseEmitter
    ) -> AsyncIterator[StreamEvent]:
        deps = AgentDeps(
            web_search=self.web_search,
            vector_search=self.vector_search,
            system_prompt=request.system_prompt,
            tools=tuple(request.tools),
            vector_search_limit=self.vector_search_limit,
        )
        prompt, history = split_prompt(request.messages)
        shaper = _EventShaper(emitter)

        try:
            async with self.agent.iter(
                prompt,
                deps=deps,
                message_history=history or None,
                model_settings=model_settings(request.provider_options),
                usage_limits=UsageLimits(request_limit=request.max_steps),
            ) as run:
                async for node in run:
                    if Agent.is_model_request_node(node):
                        async with node.stream(run.ctx) as request_stream:
                            async for event in request_stream:
                                for out in shaper.model_event(event):
                                    yield out
                        for out in shaper.close():
                            yield out
                    elif Agent.is_call_tools_node(node):
                        async with node.stream(run.ctx) as tool_stream:
                            async for event in tool_stream:
                                for out in shaper.tool_event(event):
                                    yield out
        except UsageLimitExceeded as exc:
            raise StepLimitExceededError("language model", str(exc)) from exc
        except ModelHTTPError as exc:
            if is_jailbreak_filter(exc):
                raise ContentFilterError("language model", "content filter") from exc
            raise ExternalServiceError("language model", f"HTTP {exc.status_code}") from exc
        except AgentRunError as exc:
            raise ExternalServiceError("language model", str(exc)) from exc
        except openai.APIError as exc:
            raise ExternalServiceError("language model", describe_api_error(exc)) from exc
        except ExternalServiceError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure during agent run")
            raise ExternalServiceError("language model", type(exc).__name__) from exc

        for out in shaper.close():
            yield out
