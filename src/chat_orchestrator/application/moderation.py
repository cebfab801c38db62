"""Moderation gate: screens the newest user turn before anything else runs."""

from __future__ import annotations

from loguru import logger

from chat_orchestrator.application.exceptions import ExternalServiceError
from chat_orchestrator.domain.models import ModerationVerdict, Turn, latest_user_turn
from chat_orchestrator.domain.protocols import IModerationClassifier

DEFAULT_DENIAL_MESSAGE = "Your message violates our guidelines. I can't answer that."

MODERATION_UNAVAILABLE_MESSAGE = (
    "I couldn't run the safety check on your message because the moderation "
    "service is unavailable ({detail}). Please try again in a moment."
)

_PASS = ModerationVerdict(flagged=False)


class ModerationGate:
    """Runs the moderation classifier on the latest user turn's text."""

    def __init__(self, classifier: IModerationClassifier) -> None:
        self.classifier = classifier

    async def screen(self, history: list[Turn]) -> ModerationVerdict:
        """Return the verdict for *history*; unflagged means "continue".

        Histories without a user turn, or whose latest user turn has no
        text, pass without calling the classifier.  A classifier failure
        yields a flagged verdict explaining that the check could not run.
        """
        turn = latest_user_turn(history)
        if turn is None:
            return _PASS

        text = turn.text
        if not text:
            return _PASS

        try:
            verdict = await self.classifier.classify(text)
        except ExternalServiceError as exc:
            logger.warning("Moderation unavailable | turn={} | error={}", turn.id, exc)
            return ModerationVerdict(
                flagged=True,
                denial_message=MODERATION_UNAVAILABLE_MESSAGE.format(detail=exc.detail),
            )

        if verdict.flagged:
            logger.info("Moderation flagged turn {}", turn.id)
        return verdict


def denial_text(verdict: ModerationVerdict) -> str:
    return verdict.denial_message or DEFAULT_DENIAL_MESSAGE
