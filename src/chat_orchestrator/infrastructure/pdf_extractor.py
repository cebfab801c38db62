"""PDF text extraction with pypdf."""

from __future__ import annotations

import asyncio
import io

from loguru import logger
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from chat_orchestrator.application.exceptions import UnsupportedAttachmentError


def extract_pdf_text(data: bytes) -> str:
    """Concatenate the text layer of every page; ``""`` for image-only PDFs."""
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted and not reader.decrypt(""):
            raise UnsupportedAttachmentError("the PDF is password-protected")
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError) as exc:
        if isinstance(exc, UnsupportedAttachmentError):
            raise
        raise UnsupportedAttachmentError(f"the PDF could not be parsed ({exc})") from exc

    logger.debug("Extracted PDF text | pages={}", len(pages))
    return "\n\n".join(text.strip() for text in pages if text.strip())


class PypdfTextExtractor:
    """Runs pypdf off the event loop."""

    async def extract_text(self, data: bytes) -> str:
        return await asyncio.to_thread(extract_pdf_text, data)
