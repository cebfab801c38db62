"""Domain service interfaces (ports).

These protocols define the contracts that infrastructure implementations
must satisfy.  The application layer depends on these abstractions,
not on concrete classes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from chat_orchestrator.domain.models import ModerationVerdict, VectorSearchResult, WebSearchResult

# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


@runtime_checkable
class IModerationClassifier(Protocol):
    """Classifies user text against the content policy.

    Implementations: OpenAIModerationClassifier.
    """

    async def classify(self, text: str) -> ModerationVerdict: ...


# ---------------------------------------------------------------------------
# Attachment analysis backends
# ---------------------------------------------------------------------------


@runtime_checkable
class ICompletionBackend(Protocol):
    """One-shot, tool-less text completion used by the analyzers.

    Implementations return the model output already normalized to a plain
    string, whatever shape the provider response had.
    """

    async def complete(self, instructions: str, prompt: str) -> str: ...


@runtime_checkable
class IVisionBackend(Protocol):
    """Vision-capable completion over a single base64-encoded image."""

    async def describe(self, prompt: str, image_base64: str, mime_type: str) -> str: ...


@runtime_checkable
class IDocumentTextExtractor(Protocol):
    """Extracts machine-readable text from a document; may return ``""``."""

    async def extract_text(self, data: bytes) -> str: ...


# ---------------------------------------------------------------------------
# Completion tools
# ---------------------------------------------------------------------------


@runtime_checkable
class IWebSearchService(Protocol):
    async def search(self, query: str) -> list[WebSearchResult]: ...


@runtime_checkable
class IVectorSearchService(Protocol):
    def search(self, query: str, limit: int = 5) -> list[VectorSearchResult]: ...

    def connect(self) -> None: ...

    def close(self) -> None: ...
