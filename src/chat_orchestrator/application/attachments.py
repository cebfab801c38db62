"""Attachment tracking: find the pending file and decide what to do with it.

Everything here is a pure function of the conversation history.  Whether a
file was already acknowledged is answered by scanning the assistant turns
that follow it, so the decision is the same however many times the same
history is submitted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from chat_orchestrator.domain.models import AttachmentMetadata, TextPart, Turn

# Loose substring heuristic.  The bare "3" is the menu choice for
# "analyze images" and also matches unrelated numbers.
ANALYSIS_INTENT_PATTERN = re.compile(r"analyz|analyze|analysis|\bocr\b|\b3\b", re.IGNORECASE)

ACKNOWLEDGMENT_MARKER = 'Received "{file_name}"'

ACKNOWLEDGMENT_TEMPLATE = (
    'Received "{file_name}" ({size_kb} KB, {mime_type}). '
    "I can (1) summarize text, (2) run OCR, (3) analyze images, or (4) extract tables. "
    "What would you like me to do with this file?"
)


class AttachmentAction(str, Enum):
    NONE = "none"  # no attachment anywhere in the history
    ACKNOWLEDGE = "acknowledge"
    ANALYZE = "analyze"
    COMPLETE = "complete"  # attachment resolved; continue with the model


@dataclass(frozen=True)
class AttachmentDecision:
    action: AttachmentAction
    anchor_index: int = -1
    anchor: Turn | None = None
    acknowledged: bool = False
    follow_up: Turn | None = None
    analysis_requested: bool = False

    @property
    def metadata(self) -> AttachmentMetadata:
        if self.anchor is None or self.anchor.metadata is None:
            raise ValueError("decision has no attachment")
        return self.anchor.metadata


def wants_analysis(text: str) -> bool:
    return ANALYSIS_INTENT_PATTERN.search(text) is not None


def find_anchor(history: list[Turn]) -> int:
    """Index of the newest turn carrying file content, or -1."""
    for index in range(len(history) - 1, -1, -1):
        if history[index].has_attachment:
            return index
    return -1


def is_acknowledged(history: list[Turn], anchor_index: int, file_name: str) -> bool:
    marker = ACKNOWLEDGMENT_MARKER.format(file_name=file_name)
    return any(
        turn.role == "assistant"
        and any(isinstance(part, TextPart) and marker in part.text for part in turn.parts)
        for turn in history[anchor_index + 1 :]
    )


def latest_follow_up(history: list[Turn], anchor_index: int) -> Turn | None:
    for turn in reversed(history[anchor_index + 1 :]):
        if turn.role == "user":
            return turn
    return None


def track_attachment(history: list[Turn]) -> AttachmentDecision:
    """Decide between acknowledging, analyzing, or handing over to the model.

    ======================  ===========  ==========  ===========
    acknowledged            follow-up    intent      action
    ======================  ===========  ==========  ===========
    no                      no           -           ACKNOWLEDGE
    no                      yes          no          ACKNOWLEDGE
    no / yes                yes          yes         ANALYZE
    yes                     yes          no          COMPLETE
    yes                     no           -           COMPLETE
    ======================  ===========  ==========  ===========
    """
    anchor_index = find_anchor(history)
    if anchor_index < 0:
        return AttachmentDecision(action=AttachmentAction.NONE)

    anchor = history[anchor_index]
    acknowledged = is_acknowledged(history, anchor_index, anchor.metadata.display_name)
    follow_up = latest_follow_up(history, anchor_index)
    analysis_requested = follow_up is not None and wants_analysis(follow_up.text)

    if analysis_requested:
        action = AttachmentAction.ANALYZE
    elif acknowledged:
        action = AttachmentAction.COMPLETE
    else:
        action = AttachmentAction.ACKNOWLEDGE

    return AttachmentDecision(
        action=action,
        anchor_index=anchor_index,
        anchor=anchor,
        acknowledged=acknowledged,
        follow_up=follow_up,
        analysis_requested=analysis_requested,
    )


def acknowledgment_prompt(metadata: AttachmentMetadata) -> str:
    return ACKNOWLEDGMENT_TEMPLATE.format(
        file_name=metadata.display_name,
        size_kb=metadata.size_kb,
        mime_type=metadata.mime_type,
    )
