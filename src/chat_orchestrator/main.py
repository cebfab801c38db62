"""FastAPI backend for the chat orchestrator.

This module is the composition root: it builds the infrastructure adapters,
wires them into the ``ChatUseCase`` and mounts the HTTP routes.  All
decision logic lives in the ``application`` package.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from chat_orchestrator import __version__
from chat_orchestrator.application.analysis import ContentAnalyzer
from chat_orchestrator.application.completion import ConversationCompletionEngine
from chat_orchestrator.application.moderation import ModerationGate
from chat_orchestrator.application.use_cases.chat import ChatUseCase
from chat_orchestrator.config import get_settings
from chat_orchestrator.infrastructure.agent import PydanticAIStreamingBackend, create_agent
from chat_orchestrator.infrastructure.openai_backends import (
    OpenAICompletionBackend,
    OpenAIModerationClassifier,
    OpenAIVisionBackend,
    create_embedding_client,
    create_moderation_client,
    create_openai_client,
)
from chat_orchestrator.infrastructure.pdf_extractor import PypdfTextExtractor
from chat_orchestrator.infrastructure.vector_search import VectorSearchService
from chat_orchestrator.infrastructure.web_search import TavilyWebSearch
from chat_orchestrator.logging_config import setup_logging
from chat_orchestrator.presentation.routes.chat import router as chat_router
from chat_orchestrator.telemetry import is_observability_active, setup_telemetry

# Configure loguru before anything else
_boot_settings = get_settings()
setup_logging(level=_boot_settings.log_level, json=_boot_settings.log_json)


# ---------------------------------------------------------------------------
# Lifespan: initialise shared resources once at startup
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Set up and tear down services around the application lifetime."""
    settings = get_settings()
    settings.validate_runtime()

    client = create_openai_client(settings)
    moderation_client = create_moderation_client(settings)

    vector_search = VectorSearchService(
        db_path=settings.vector_db_path,
        embedding_client=create_embedding_client(settings),
        embedding_model=settings.embedding_model,
        embedding_dimensions=settings.embedding_dimensions,
    )
    vector_search.connect()

    web_search = TavilyWebSearch(
        settings.tavily_api_key,
        endpoint=settings.tavily_endpoint,
        max_results=settings.web_search_max_results,
        timeout=settings.request_timeout_s,
    )

    agent = create_agent(settings, instrument=is_observability_active(settings))

    # Wire up the use case with all its dependencies
    app.state.settings = settings
    app.state.chat_uc = ChatUseCase(
        moderation_gate=ModerationGate(
            OpenAIModerationClassifier(moderation_client, settings.moderation_model)
        ),
        analyzer=ContentAnalyzer(
            completion=OpenAICompletionBackend(client, settings.analysis_model),
            vision=OpenAIVisionBackend(client, settings.vision_model),
            extractor=PypdfTextExtractor(),
            chunk_size=settings.document_chunk_size,
            max_chunks=settings.document_max_chunks,
            summary_lines=settings.text_summary_lines,
        ),
        completion_engine=ConversationCompletionEngine(
            PydanticAIStreamingBackend(
                agent,
                web_search,
                vector_search,
                vector_search_limit=settings.vector_search_limit,
            ),
            settings.chat_model,
        ),
    )

    logger.info(
        "Application startup complete | chat_model={} | azure={}",
        settings.chat_model,
        bool(settings.azure_openai_endpoint),
    )
    yield

    await web_search.close()
    vector_search.close()
    await client.close()
    await moderation_client.close()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Chat Orchestrator",
    description="Moderated, attachment-aware, tool-augmented chat over an AI SDK UI stream.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_boot_settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-vercel-ai-ui-message-stream"],
)

# Instrument FastAPI with observability (no-op when OBSERVABILITY=off)
setup_telemetry(app, _boot_settings)

app.include_router(chat_router)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("chat_orchestrator.main:app", host="0.0.0.0", port=8000, reload=True)
