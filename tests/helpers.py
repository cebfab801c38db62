"""Builders and in-memory fakes shared by the test modules."""

from __future__ import annotations

import base64
import io
from pathlib import Path

from pypdf import PdfWriter

from chat_orchestrator.application.streaming import StreamEvent
from chat_orchestrator.config import Settings
from chat_orchestrator.domain.models import (
    ModerationVerdict,
    Turn,
    VectorSearchResult,
    WebSearchResult,
)


def make_test_settings(tmp_path: Path, **overrides) -> Settings:
    """Settings that never read the real .env file."""
    values = {
        "openai_api_key": "test-key",
        "tavily_api_key": "tvly-test",
        "vector_db_path": tmp_path / "missing_vector_store.sqlite",
        "observability": "off",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ---------------------------------------------------------------------------
# Turn builders (AI-SDK UIMessage wire shape)
# ---------------------------------------------------------------------------


def data_url(mime: str, data: bytes) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def attachment(
    name: str | None = "report.pdf",
    mime: str | None = "application/pdf",
    data: bytes = b"%PDF-1.4 placeholder",
    size: int | None = None,
) -> dict:
    meta: dict = {"fileContent": data_url(mime or "application/octet-stream", data)}
    if name is not None:
        meta["fileName"] = name
    if mime is not None:
        meta["fileType"] = mime
    meta["fileSize"] = len(data) if size is None else size
    return meta


def user_turn(text: str = "", *, metadata: dict | None = None, turn_id: str = "") -> Turn:
    payload: dict = {"id": turn_id, "role": "user", "parts": []}
    if text:
        payload["parts"].append({"type": "text", "text": text})
    if metadata is not None:
        payload["metadata"] = metadata
    return Turn.model_validate(payload)


def upload_turn(meta: dict) -> Turn:
    name = meta.get("fileName", "file")
    return user_turn(f'I uploaded a file named "{name}". Please analyze it.', metadata=meta)


def assistant_turn(text: str, *, turn_id: str = "") -> Turn:
    return Turn.model_validate(
        {"id": turn_id, "role": "assistant", "parts": [{"type": "text", "text": text}]}
    )


# ---------------------------------------------------------------------------
# Event helpers
# ---------------------------------------------------------------------------


async def collect(stream) -> list[StreamEvent]:
    return [event async for event in stream]


def event_types(events: list[StreamEvent]) -> list[str]:
    return [event.type for event in events]


def streamed_text(events: list[StreamEvent]) -> str:
    return "".join(event.delta for event in events if event.type == "text-delta")


# ---------------------------------------------------------------------------
# PDF builders
# ---------------------------------------------------------------------------


def make_pdf(*page_texts: str) -> bytes:
    """Minimal single-font PDF with one line of text per page."""
    page_ids = [4 + 2 * i for i in range(len(page_texts))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(page_texts)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for page_id, text in zip(page_ids, page_texts):
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_id + 1} 0 R >>"
            ).encode()
        )
        escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        stream = f"BT /F1 12 Tf 72 720 Td ({escaped}) Tj ET".encode("latin-1")
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_offset,
    )
    return bytes(out)


def make_blank_pdf() -> bytes:
    """A PDF with one page and no text layer (what a scan looks like)."""
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Fakes for the collaborator ports
# ---------------------------------------------------------------------------


class FakeClassifier:
    def __init__(self, verdict: ModerationVerdict | None = None, error: Exception | None = None):
        self.verdict = verdict or ModerationVerdict(flagged=False)
        self.error = error
        self.calls: list[str] = []

    async def classify(self, text: str) -> ModerationVerdict:
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.verdict


class FakeCompletion:
    def __init__(self, replies: list[str] | None = None, error: Exception | None = None):
        self.replies = list(replies or [])
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def complete(self, instructions: str, prompt: str) -> str:
        self.calls.append((instructions, prompt))
        if self.error:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return f"Summary {len(self.calls)}"


class FakeVision:
    def __init__(self, reply: str = "**Extracted text**\nPUMP P-101", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str, str]] = []

    async def describe(self, prompt: str, image_base64: str, mime_type: str) -> str:
        self.calls.append((prompt, image_base64, mime_type))
        if self.error:
            raise self.error
        return self.reply


class FakeExtractor:
    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls = 0

    async def extract_text(self, data: bytes) -> str:
        self.calls += 1
        if self.error:
            raise self.error
        return self.text


class FakeWebSearch:
    def __init__(self, results: list[WebSearchResult] | None = None, error: Exception | None = None):
        self.results = results if results is not None else [
            WebSearchResult(
                title="API 610 centrifugal pumps",
                url="https://example.com/api-610",
                content="API 610 covers centrifugal pumps for petroleum service.",
            )
        ]
        self.error = error
        self.queries: list[str] = []

    async def search(self, query: str) -> list[WebSearchResult]:
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.results


class FakeVectorSearch:
    def __init__(self, results: list[VectorSearchResult] | None = None, error: Exception | None = None):
        self.results = results if results is not None else [
            VectorSearchResult(
                chunk_id="sop-12",
                document_name="sop_handbook.md",
                section_header="Pump start-up",
                content="Open the suction valve fully before starting P-101.",
                distance=0.12,
            )
        ]
        self.error = error
        self.queries: list[tuple[str, int]] = []

    def search(self, query: str, limit: int = 5) -> list[VectorSearchResult]:
        self.queries.append((query, limit))
        if self.error:
            raise self.error
        return self.results

    def connect(self) -> None:
        pass

    def close(self) -> None:
        pass


class ScriptedBackend:
    """Streaming backend that replays fixed text deltas, optionally failing mid-block."""

    def __init__(
        self,
        deltas: tuple[str, ...] = ("Hello", " world"),
        *,
        tool_call: tuple[str, str, dict, str] | None = None,
        error: Exception | None = None,
    ):
        self.deltas = deltas
        self.tool_call = tool_call
        self.error = error
        self.requests: list = []

    async def stream(self, request, emitter):
        self.requests.append(request)
        if self.tool_call:
            call_id, name, args, output = self.tool_call
            yield emitter.tool_input(call_id, name, args)
            yield emitter.tool_output(call_id, output)
        block_id = emitter.next_id("text")
        yield emitter.text_start(block_id)
        for delta in self.deltas:
            yield emitter.text_delta(block_id, delta)
        if self.error:
            raise self.error
        yield emitter.text_end(block_id)
