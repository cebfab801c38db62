"""Normalize model responses to plain text.

Providers answer either with a flat text field (``output_text`` / ``text``)
or with a list of content blocks, possibly nested (Responses API ``output``
items holding ``content`` blocks).  Adapters run every response through
``normalize_response_text`` so callers only ever see a string.
"""

from __future__ import annotations

from typing import Any


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _block_text(block: Any) -> str:
    if isinstance(block, str):
        return block
    text = _field(block, "text")
    if isinstance(text, str):
        return text
    nested = _field(block, "content")
    if isinstance(nested, list):
        return "".join(_block_text(item) for item in nested)
    return ""


def normalize_response_text(response: Any) -> str:
    """Return the text carried by *response*, whatever its shape."""
    if response is None:
        return ""
    if isinstance(response, str):
        return response

    for flat_field in ("output_text", "text"):
        flat = _field(response, flat_field)
        if isinstance(flat, str) and flat:
            return flat

    for list_field in ("output", "content"):
        blocks = _field(response, list_field)
        if isinstance(blocks, list):
            return "".join(_block_text(block) for block in blocks)

    return ""
