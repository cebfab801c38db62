"""Web search over the Tavily search API."""

from __future__ import annotations

import httpx
from loguru import logger

from chat_orchestrator.application.exceptions import ExternalServiceError
from chat_orchestrator.domain.models import WebSearchResult


class TavilyWebSearch:
    """Thin async client for Tavily's ``/search`` endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = "https://api.tavily.com/search",
        max_results: int = 5,
        timeout: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.max_results = max_results
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def search(self, query: str) -> list[WebSearchResult]:
        if not self.api_key:
            raise ExternalServiceError("web search", "TAVILY_API_KEY is not configured")

        try:
            response = await self._client.post(
                self.endpoint,
                json={
                    "query": query,
                    "max_results": self.max_results,
                    "search_depth": "basic",
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                "web search", f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError("web search", str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise ExternalServiceError("web search", "invalid JSON response") from exc

        if not isinstance(payload, dict):
            raise ExternalServiceError("web search", "invalid JSON response")
        items = payload.get("results") or []
        logger.debug("Web search | query={} | results={}", query[:80], len(items))
        return [
            WebSearchResult(
                title=item.get("title") or "",
                url=item.get("url") or "",
                content=item.get("content") or "",
                score=item.get("score"),
            )
            for item in items
        ]

    async def close(self) -> None:
        await self._client.aclose()
