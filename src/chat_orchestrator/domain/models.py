"""Domain entities and value objects.

Turns arrive in the AI-SDK ``UIMessage`` shape (camelCase keys, tagged
content parts).  They are parsed once at the HTTP boundary and are
immutable afterwards; every decision the core makes is recomputed from
this snapshot.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

UNKNOWN_FILE_NAME = "uploaded-file"
UNKNOWN_LABEL = "unknown"

# ---------------------------------------------------------------------------
# Content parts (tagged union on ``type``)
# ---------------------------------------------------------------------------


class _Part(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")


class TextPart(_Part):
    type: Literal["text"] = "text"
    text: str = ""


class ReasoningPart(_Part):
    """Model reasoning trace; shown by the client, never used for decisions."""

    type: Literal["reasoning"] = "reasoning"
    text: str = ""


class ToolInvocationPart(_Part):
    """A tool call, typed ``tool-<name>`` (static tools) or ``dynamic-tool``."""

    type: str
    tool_call_id: str | None = Field(default=None, alias="toolCallId")
    tool_name: str | None = Field(default=None, alias="toolName")
    state: str | None = None
    input: Any = None
    output: Any = None
    error_text: str | None = Field(default=None, alias="errorText")

    @property
    def name(self) -> str:
        if self.type.startswith("tool-"):
            return self.type[len("tool-") :]
        return self.tool_name or UNKNOWN_LABEL

    @property
    def resolved(self) -> bool:
        return self.state == "output-available"


class OtherPart(_Part):
    """Client bookkeeping parts (``step-start``, ``source-url``, ...)."""

    type: str


def _part_kind(value: Any) -> str:
    if isinstance(value, dict):
        part_type = value.get("type")
    else:
        part_type = getattr(value, "type", None)
    part_type = part_type if isinstance(part_type, str) else ""

    if part_type in ("text", "reasoning"):
        return part_type
    if part_type.startswith("tool-") or part_type == "dynamic-tool":
        return "tool"
    return "other"


ContentPart = Annotated[
    Union[
        Annotated[TextPart, Tag("text")],
        Annotated[ReasoningPart, Tag("reasoning")],
        Annotated[ToolInvocationPart, Tag("tool")],
        Annotated[OtherPart, Tag("other")],
    ],
    Discriminator(_part_kind),
]


# ---------------------------------------------------------------------------
# Attachment metadata
# ---------------------------------------------------------------------------


class AttachmentMetadata(BaseModel):
    """File data sent alongside a user turn.

    Only ``file_content`` (a ``data:<mime>;base64,...`` URI) matters for
    deciding that a turn carries an attachment; the other fields are
    advisory.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    file_name: str | None = Field(default=None, alias="fileName")
    file_type: str | None = Field(default=None, alias="fileType")
    file_size: int | None = Field(default=None, alias="fileSize")
    file_content: str | None = Field(default=None, alias="fileContent")

    @property
    def display_name(self) -> str:
        return self.file_name or UNKNOWN_FILE_NAME

    @property
    def mime_type(self) -> str:
        return self.file_type or UNKNOWN_LABEL

    @property
    def size_kb(self) -> int | str:
        """Size in KiB rounded half-up, or ``"unknown"`` when not declared."""
        if not self.file_size:
            return UNKNOWN_LABEL
        return math.floor(self.file_size / 1024 + 0.5)


# ---------------------------------------------------------------------------
# Turn
# ---------------------------------------------------------------------------


class Turn(BaseModel):
    """One message of the conversation history."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = ""
    role: Literal["system", "user", "assistant"]
    parts: list[ContentPart] = Field(default_factory=list)
    metadata: AttachmentMetadata | None = None

    @property
    def text(self) -> str:
        """Text parts concatenated in order, with no separator."""
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))

    @property
    def has_attachment(self) -> bool:
        return self.metadata is not None and bool(self.metadata.file_content)


def latest_user_turn(history: list[Turn]) -> Turn | None:
    for turn in reversed(history):
        if turn.role == "user":
            return turn
    return None


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModerationVerdict:
    flagged: bool
    denial_message: str | None = None


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------


@dataclass
class WebSearchResult:
    title: str
    url: str
    content: str
    score: float | None = None


@dataclass
class VectorSearchResult:
    """A single chunk returned by the vector store, with source metadata."""

    chunk_id: str
    document_name: str
    section_header: str | None
    content: str
    distance: float
