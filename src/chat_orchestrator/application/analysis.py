"""Content analyzer dispatch for uploaded attachments.

The attachment's data URI is decoded and routed by declared MIME type and
file extension to one of three branches (document, image, plain text).
Each branch returns a single string prefixed with an attribution line;
collaborator failures come back as explanatory text instead of raising.
"""

from __future__ import annotations

import base64
import binascii
import mimetypes
from enum import Enum

from loguru import logger

from chat_orchestrator.application import prompts
from chat_orchestrator.application.exceptions import (
    ExternalServiceError,
    UnsupportedAttachmentError,
)
from chat_orchestrator.domain.models import AttachmentMetadata
from chat_orchestrator.domain.protocols import (
    ICompletionBackend,
    IDocumentTextExtractor,
    IVisionBackend,
)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tif", ".tiff")
TEXT_EXTENSIONS = (".txt", ".csv", ".md", ".json", ".log")

DOCUMENT_ATTRIBUTION = 'Document summary for "{file_name}":'
IMAGE_ATTRIBUTION = 'Image analysis for "{file_name}":'
TEXT_ATTRIBUTION = 'Text summary for "{file_name}":'

OCR_ADVICE_MESSAGE = (
    'I couldn\'t find any machine-readable text in "{file_name}". It looks like a '
    "scanned or image-only document. Upload the pages as images (PNG or JPG) and "
    "ask me to run OCR on them instead."
)
EMPTY_TEXT_MESSAGE = 'The file "{file_name}" is empty, so there is nothing to summarize.'
UNSUPPORTED_MESSAGE = (
    'I can\'t analyze "{file_name}" ({mime_type}) because the file type is not supported. '
    "I can read PDF documents, images, and plain-text files."
)
UNDECODABLE_MESSAGE = (
    'I couldn\'t read "{file_name}" because the uploaded data is not valid base64.'
)
FAILURE_MESSAGE = 'I couldn\'t analyze "{file_name}": {reason}'


class AttachmentKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
    TEXT = "text"
    UNSUPPORTED = "unsupported"


# ---------------------------------------------------------------------------
# Decoding and classification
# ---------------------------------------------------------------------------


def decode_payload(content: str) -> bytes:
    """Decode a ``data:<mime>;base64,<payload>`` URI (or bare base64) to bytes."""
    payload = content
    if content.startswith("data:") and "," in content:
        payload = content.split(",", 1)[1]
    try:
        return base64.b64decode(payload)
    except (binascii.Error, ValueError) as exc:
        raise UnsupportedAttachmentError(f"invalid base64 payload: {exc}") from exc


def classify_attachment(
    file_name: str | None, mime_type: str | None, data: bytes
) -> AttachmentKind:
    """Pick the analyzer branch: PDF, then image, then text, else unsupported."""
    name = (file_name or "").lower()
    mime = (mime_type or "").lower()

    if mime == "application/pdf" or name.endswith(".pdf"):
        return AttachmentKind.PDF
    if mime.startswith("image/") or name.endswith(IMAGE_EXTENSIONS):
        return AttachmentKind.IMAGE
    if mime.startswith("text/") or name.endswith(TEXT_EXTENSIONS):
        return AttachmentKind.TEXT

    try:
        decoded = data.decode("utf-8")
    except UnicodeDecodeError:
        return AttachmentKind.UNSUPPORTED
    return AttachmentKind.TEXT if decoded.strip() else AttachmentKind.UNSUPPORTED


def chunk_text(text: str, size: int) -> list[str]:
    """Split *text* into consecutive chunks of at most *size* characters."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [text[i : i + size] for i in range(0, len(text), size)]


def with_attribution(attribution: str, body: str) -> str:
    return f"{attribution}\n\n{body.strip()}"


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class ContentAnalyzer:
    """Routes an attachment to the document, image, or plain-text analyzer.

    Parameters
    ----------
    completion:
        One-shot text backend used for summaries.
    vision:
        Vision backend used for OCR on images.
    extractor:
        Document text extractor (PDF).
    chunk_size:
        Characters per chunk when a document is too long for one call.
    max_chunks:
        Upper bound on chunk summaries per document.
    summary_lines:
        Line budget given to the plain-text summary.
    """

    def __init__(
        self,
        completion: ICompletionBackend,
        vision: IVisionBackend,
        extractor: IDocumentTextExtractor,
        *,
        chunk_size: int = 12_000,
        max_chunks: int = 20,
        summary_lines: int = 5,
    ) -> None:
        self.completion = completion
        self.vision = vision
        self.extractor = extractor
        self.chunk_size = chunk_size
        self.max_chunks = max_chunks
        self.summary_lines = summary_lines

    async def analyze(self, metadata: AttachmentMetadata) -> str:
        """Analyze the attachment and return user-facing text. Never raises for backend failures."""
        file_name = metadata.display_name

        try:
            data = decode_payload(metadata.file_content or "")
        except UnsupportedAttachmentError:
            logger.warning("Attachment payload not decodable | file={}", file_name)
            return UNDECODABLE_MESSAGE.format(file_name=file_name)

        kind = classify_attachment(metadata.file_name, metadata.file_type, data)
        logger.info(
            "Analyzing attachment | file={} | kind={} | bytes={}",
            file_name,
            kind.value,
            len(data),
        )

        try:
            if kind is AttachmentKind.PDF:
                return await self._analyze_document(file_name, data)
            if kind is AttachmentKind.IMAGE:
                return await self._analyze_image(file_name, metadata.file_type, data)
            if kind is AttachmentKind.TEXT:
                return await self._analyze_text(file_name, data)
        except (ExternalServiceError, UnsupportedAttachmentError) as exc:
            logger.warning("Attachment analysis failed | file={} | error={}", file_name, exc)
            return FAILURE_MESSAGE.format(file_name=file_name, reason=exc)

        return UNSUPPORTED_MESSAGE.format(file_name=file_name, mime_type=metadata.mime_type)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def _analyze_document(self, file_name: str, data: bytes) -> str:
        text = (await self.extractor.extract_text(data)).strip()
        if not text:
            return OCR_ADVICE_MESSAGE.format(file_name=file_name)

        if len(text) <= self.chunk_size:
            summary = await self.completion.complete(
                prompts.ANALYZER_INSTRUCTIONS,
                prompts.DOCUMENT_SUMMARY_PROMPT.format(file_name=file_name, text=text),
            )
            return with_attribution(DOCUMENT_ATTRIBUTION.format(file_name=file_name), summary)

        summary = await self._summarize_chunked(file_name, text)
        return with_attribution(DOCUMENT_ATTRIBUTION.format(file_name=file_name), summary)

    async def _summarize_chunked(self, file_name: str, text: str) -> str:
        chunks = chunk_text(text, self.chunk_size)
        total = len(chunks)
        selected = chunks[: self.max_chunks]
        logger.info(
            "Chunked summarization | file={} | chunks={} | summarized={}",
            file_name,
            total,
            len(selected),
        )

        partials: list[str] = []
        for index, chunk in enumerate(selected, 1):
            partial = await self.completion.complete(
                prompts.ANALYZER_INSTRUCTIONS,
                prompts.DOCUMENT_CHUNK_PROMPT.format(
                    index=index, total=total, file_name=file_name, text=chunk
                ),
            )
            partials.append(f"[Part {index}]\n{partial.strip()}")

        truncation_note = ""
        if len(selected) < total:
            truncation_note = prompts.DOCUMENT_TRUNCATION_NOTE.format(
                summarized=len(selected), total=total
            )

        return await self.completion.complete(
            prompts.ANALYZER_INSTRUCTIONS,
            prompts.DOCUMENT_SYNTHESIS_PROMPT.format(
                file_name=file_name,
                truncation_note=truncation_note,
                summaries="\n\n".join(partials),
            ),
        )

    async def _analyze_image(self, file_name: str, mime_type: str | None, data: bytes) -> str:
        if not mime_type or not mime_type.startswith("image/"):
            mime_type = mimetypes.guess_type(file_name)[0] or "image/png"

        description = await self.vision.describe(
            prompts.IMAGE_ANALYSIS_PROMPT.format(file_name=file_name),
            base64.b64encode(data).decode("ascii"),
            mime_type,
        )
        return with_attribution(IMAGE_ATTRIBUTION.format(file_name=file_name), description)

    async def _analyze_text(self, file_name: str, data: bytes) -> str:
        text = data.decode("utf-8-sig", errors="replace").strip()
        if not text:
            return EMPTY_TEXT_MESSAGE.format(file_name=file_name)

        if len(text) > self.chunk_size:
            logger.info("Truncating text attachment | file={} | chars={}", file_name, len(text))
            text = text[: self.chunk_size]

        summary = await self.completion.complete(
            prompts.ANALYZER_INSTRUCTIONS,
            prompts.TEXT_SUMMARY_PROMPT.format(
                file_name=file_name, lines=self.summary_lines, text=text
            ),
        )
        return with_attribution(TEXT_ATTRIBUTION.format(file_name=file_name), summary)
