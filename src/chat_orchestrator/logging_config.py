"""Loguru setup for the orchestrator.

``setup_logging()`` runs once when ``main`` is imported. It installs a
single stderr sink (coloured text, or JSON lines for log shippers), routes
stdlib ``logging`` from uvicorn, openai, httpx and pydantic_ai through
loguru, and shortens base64 data URLs before any record is written.
Attachments travel inline as data URLs and would otherwise flood the log.
"""

from __future__ import annotations

import logging
import re
import sys

from loguru import logger

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Floor per third-party logger; httpx logs every Tavily and embedding request at INFO.
_STDLIB_LEVELS: dict[str, int] = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.INFO,
    "fastapi": logging.INFO,
    "pydantic_ai": logging.INFO,
    "openai": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

_DATA_URL = re.compile(r"data:([\w.+-]+/[\w.+-]+);base64,([A-Za-z0-9+/=]{64,})")


def shorten_data_urls(text: str) -> str:
    """Replace the payload of long base64 data URLs with its length."""
    return _DATA_URL.sub(lambda m: f"data:{m.group(1)};base64,<{len(m.group(2))} chars>", text)


def _patch_record(record) -> None:
    record["message"] = shorten_data_urls(record["message"])


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(*, level: str = "INFO", json: bool = False) -> None:
    """Make loguru the only logging backend.

    Args:
        level: Minimum level for the orchestrator's own records.
        json: Emit one serialized JSON object per record instead of text.
    """
    sink: dict = {"sink": sys.stderr, "level": level.upper()}
    if json:
        sink["serialize"] = True
    else:
        sink.update(format=TEXT_FORMAT, colorize=True)
    logger.configure(handlers=[sink], patcher=_patch_record)

    intercept = InterceptHandler()
    for name, floor in _STDLIB_LEVELS.items():
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [intercept]
        stdlib_logger.setLevel(floor)
        stdlib_logger.propagate = False

    logging.basicConfig(handlers=[intercept], level=0, force=True)
