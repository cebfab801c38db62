"""HTTP request schemas (Pydantic models) for the REST API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from chat_orchestrator.domain.models import Turn


class ChatRequest(BaseModel):
    """Request body for POST /api/chat.

    The client owns the conversation: every request carries the full
    history, newest turn last.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, description="Client-side conversation ID")
    messages: list[Turn] = Field(min_length=1, description="Conversation history, oldest first")
    trigger: str | None = Field(
        default=None,
        description="Client trigger, e.g. 'submit-message' or 'regenerate-message'",
    )
