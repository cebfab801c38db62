"""Chat routes: health and the streaming chat endpoint."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from loguru import logger

from chat_orchestrator.application.exceptions import EmptyConversationError
from chat_orchestrator.application.streaming import SSE_DONE, STREAM_PROTOCOL_HEADER
from chat_orchestrator.application.use_cases.chat import ChatUseCase
from chat_orchestrator.presentation.schemas import ChatRequest

router = APIRouter(tags=["chat"])


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health")
async def health():
    """Simple liveness / readiness check."""
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Chat (streaming, AI SDK UI message stream over SSE)
# ---------------------------------------------------------------------------


@router.post("/api/chat")
async def chat(request: ChatRequest, raw_request: Request):
    """Run one chat turn and stream the assistant's response.

    Every event is a ``data: {json}`` SSE frame; the stream ends with
    ``data: [DONE]``.
    """
    uc: ChatUseCase = raw_request.app.state.chat_uc
    latest = request.messages[-1]

    logger.info(
        "POST /api/chat | chat={} turns={} trigger={} last_role={}",
        request.id,
        len(request.messages),
        request.trigger,
        latest.role,
    )

    events = uc.execute_stream(request.messages)
    try:
        first = await anext(events)
    except EmptyConversationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    async def event_generator():
        yield first.to_sse()
        async for event in events:
            yield event.to_sse()
        yield SSE_DONE

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            **STREAM_PROTOCOL_HEADER,
        },
    )
