"""Chat use case: the per-turn decision pipeline.

moderate → detect attachment → acknowledge or analyze → model completion.

Each stage runs only after the previous one has decided, and every
terminal branch produces exactly one ``start`` … ``finish`` bracket.  The
use case keeps no state between calls; it has **no dependency on
FastAPI** and can be driven from any transport.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from loguru import logger

from chat_orchestrator.application.analysis import ContentAnalyzer
from chat_orchestrator.application.attachments import (
    AttachmentAction,
    acknowledgment_prompt,
    track_attachment,
)
from chat_orchestrator.application.completion import ConversationCompletionEngine
from chat_orchestrator.application.exceptions import EmptyConversationError
from chat_orchestrator.application.moderation import ModerationGate, denial_text
from chat_orchestrator.application.streaming import ResponseEmitter, StreamEvent
from chat_orchestrator.domain.models import Turn

MODERATION_TEXT_ID = "moderation-denial-text"
ACKNOWLEDGMENT_TEXT_ID = "file-received-text"
ANALYSIS_TEXT_ID = "file-analysis-text"


class ChatUseCase:
    """Orchestrates a single chat turn.

    Parameters
    ----------
    moderation_gate:
        Screens the latest user turn.
    analyzer:
        Content analyzer dispatch for attachments.
    completion_engine:
        Tool-augmented model completion (fall-through path).
    """

    def __init__(
        self,
        moderation_gate: ModerationGate,
        analyzer: ContentAnalyzer,
        completion_engine: ConversationCompletionEngine,
    ) -> None:
        self.moderation_gate = moderation_gate
        self.analyzer = analyzer
        self.completion_engine = completion_engine

    async def execute_stream(self, messages: list[Turn]) -> AsyncIterator[StreamEvent]:
        """Run one turn and yield its response events.

        Raises:
            EmptyConversationError: If *messages* is empty.
        """
        if not messages:
            raise EmptyConversationError("messages list must not be empty")

        emitter = ResponseEmitter()

        verdict = await self.moderation_gate.screen(messages)
        if verdict.flagged:
            for event in emitter.message(denial_text(verdict), MODERATION_TEXT_ID):
                yield event
            return

        decision = track_attachment(messages)
        logger.info(
            "Attachment decision | action={} | anchor={} | acknowledged={} | analysis_requested={}",
            decision.action.value,
            decision.anchor_index,
            decision.acknowledged,
            decision.analysis_requested,
        )

        if decision.action is AttachmentAction.ACKNOWLEDGE:
            prompt = acknowledgment_prompt(decision.metadata)
            for event in emitter.message(prompt, ACKNOWLEDGMENT_TEXT_ID):
                yield event
            return

        if decision.action is AttachmentAction.ANALYZE:
            analysis = await self.analyzer.analyze(decision.metadata)
            for event in emitter.message(analysis, ANALYSIS_TEXT_ID):
                yield event
            return

        yield emitter.start()
        async for event in self.completion_engine.stream(messages, emitter):
            yield event
        yield emitter.finish()
