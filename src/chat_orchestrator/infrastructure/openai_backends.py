"""OpenAI-backed collaborators: moderation, one-shot text, and vision.

All three translate ``openai.APIError`` into ``ExternalServiceError`` and
return plain strings; response-shape handling lives in ``responses``.
"""

from __future__ import annotations

import openai
from loguru import logger
from openai import AsyncAzureOpenAI, AsyncOpenAI, AzureOpenAI, OpenAI

from chat_orchestrator.application.exceptions import ExternalServiceError
from chat_orchestrator.config import Settings
from chat_orchestrator.domain.models import ModerationVerdict
from chat_orchestrator.infrastructure.responses import normalize_response_text

# Keyed by the category family (text before "/").
CATEGORY_DENIALS = {
    "self-harm": (
        "I can't help with that. If you're thinking about harming yourself, please reach "
        "out to someone you trust or a local crisis line right away."
    ),
    "violence": "I can't help with requests that describe or promote violence.",
    "harassment": "I can't help with content that harasses or threatens others.",
    "hate": "I can't help with content that attacks people based on who they are.",
    "sexual": "I can't help with sexual content.",
    "illicit": "I can't help with requests to carry out illegal or dangerous activities.",
}


def create_openai_client(settings: Settings) -> AsyncOpenAI:
    """Async client for api.openai.com, or Azure OpenAI when an endpoint is configured."""
    if settings.azure_openai_endpoint:
        return AsyncAzureOpenAI(
            api_key=settings.openai_api_key,
            azure_endpoint=settings.azure_openai_endpoint,
            api_version=settings.azure_openai_api_version,
            timeout=settings.request_timeout_s,
        )
    return AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.request_timeout_s)


def create_embedding_client(settings: Settings) -> OpenAI:
    """Sync client for query embeddings (vector search runs in a worker thread)."""
    if settings.azure_openai_endpoint:
        return AzureOpenAI(
            api_key=settings.openai_api_key,
            azure_endpoint=settings.azure_openai_endpoint,
            api_version=settings.azure_openai_api_version,
            timeout=settings.request_timeout_s,
        )
    return OpenAI(api_key=settings.openai_api_key, timeout=settings.request_timeout_s)


def create_moderation_client(settings: Settings) -> AsyncOpenAI:
    """Moderation always targets api.openai.com (Azure has no moderation endpoint)."""
    return AsyncOpenAI(
        api_key=settings.moderation_api_key or settings.openai_api_key,
        timeout=settings.request_timeout_s,
    )


def describe_api_error(exc: openai.APIError) -> str:
    """Short, user-presentable description of an OpenAI SDK error."""
    if isinstance(exc, openai.APIStatusError):
        return f"HTTP {exc.status_code}"
    if isinstance(exc, openai.APITimeoutError):
        return "request timed out"
    if isinstance(exc, openai.APIConnectionError):
        return "connection error"
    return type(exc).__name__


def denial_for_categories(categories: list[str]) -> str | None:
    for category in categories:
        message = CATEGORY_DENIALS.get(category.split("/", 1)[0])
        if message:
            return message
    return None


class OpenAIModerationClassifier:
    """Moderation classifier backed by the OpenAI moderation endpoint."""

    def __init__(self, client: AsyncOpenAI, model: str = "omni-moderation-latest") -> None:
        self.client = client
        self.model = model

    async def classify(self, text: str) -> ModerationVerdict:
        try:
            response = await self.client.moderations.create(model=self.model, input=text)
        except openai.APIError as exc:
            raise ExternalServiceError("moderation", describe_api_error(exc)) from exc

        result = response.results[0]
        if not result.flagged:
            return ModerationVerdict(flagged=False)

        categories = [
            name for name, hit in result.categories.model_dump(by_alias=True).items() if hit
        ]
        logger.info("Moderation categories flagged: {}", categories)
        return ModerationVerdict(flagged=True, denial_message=denial_for_categories(categories))


class OpenAICompletionBackend:
    """One-shot text completion through the Responses API (no tools)."""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self.client = client
        self.model = model

    async def complete(self, instructions: str, prompt: str) -> str:
        try:
            response = await self.client.responses.create(
                model=self.model,
                instructions=instructions,
                input=prompt,
            )
        except openai.APIError as exc:
            raise ExternalServiceError("text analysis", describe_api_error(exc)) from exc

        text = normalize_response_text(response)
        if not text.strip():
            raise ExternalServiceError("text analysis", "the model returned no text")
        return text


class OpenAIVisionBackend:
    """Vision completion over an inline base64 image."""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self.client = client
        self.model = model

    async def describe(self, prompt: str, image_base64: str, mime_type: str) -> str:
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "input_text", "text": prompt},
                            {
                                "type": "input_image",
                                "image_url": f"data:{mime_type};base64,{image_base64}",
                            },
                        ],
                    }
                ],
            )
        except openai.APIError as exc:
            raise ExternalServiceError("image analysis", describe_api_error(exc)) from exc

        text = normalize_response_text(response)
        if not text.strip():
            raise ExternalServiceError("image analysis", "the model returned no text")
        return text
