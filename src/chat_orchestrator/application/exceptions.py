"""Application-level exceptions.

These are business-logic errors, not HTTP errors. The presentation layer
(e.g. FastAPI routes) translates them into appropriate HTTP responses; the
orchestrator turns external failures into ordinary assistant text.
"""


class EmptyConversationError(ValueError):
    """Raised when the caller provides an empty messages list."""


class StreamProtocolError(RuntimeError):
    """Raised when response events would be emitted out of order."""


class ExternalServiceError(Exception):
    """A collaborator (classifier, analyzer, model backend) failed or was unreachable."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(f"{service}: {detail}")
        self.service = service
        self.detail = detail


class ContentFilterError(ExternalServiceError):
    """The model provider refused the request through its content filter."""


class StepLimitExceededError(ExternalServiceError):
    """The model used up its reasoning/tool-call step budget without answering."""


class UnsupportedAttachmentError(ValueError):
    """The attachment payload cannot be decoded or has no usable content."""
