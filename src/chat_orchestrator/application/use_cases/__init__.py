"""Use-case layer: business logic decoupled from the HTTP transport."""

from chat_orchestrator.application.use_cases.chat import ChatUseCase

__all__ = ["ChatUseCase"]
