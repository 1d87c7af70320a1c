from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from .config import Settings
from .models import WebResult

logger = logging.getLogger("vivaah.websearch")

TAVILY_URL = "https://api.tavily.com/search"


class WebSearchClient:
    """Tavily search over httpx; unconfigured clients return no results."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(timeout=15.0, transport=self._transport)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def search(self, query: str, max_results: int = 3) -> List[WebResult]:
        """Purpose: Fetch web snippets for a query.
        Inputs/Outputs: Inputs are query text and a result cap; output is a list of WebResult.
        Side Effects / State: One HTTP request when an API key is configured.
        Dependencies: Tavily REST API via httpx.
        Failure Modes: httpx.HTTPError propagates; missing API key returns [].
        If Removed: Details/reviews for unknown vendors end in "not found".
        Testing Notes: MockTransport returning {"results": [...]} yields WebResult items.
        """
        if not self._settings.tavily_api_key or not query.strip():
            logger.debug("Web search skipped (no key or empty query)")
            return []
        if self._client is None:
            await self.connect()
        response = await self._client.post(
            TAVILY_URL,
            json={
                "api_key": self._settings.tavily_api_key,
                "query": query,
                "max_results": max_results,
                "search_depth": "basic",
            },
        )
        response.raise_for_status()
        results = response.json().get("results") or []
        return [
            WebResult(
                title=str(item.get("title") or ""),
                url=str(item.get("url") or ""),
                content=str(item.get("content") or ""),
            )
            for item in results[:max_results]
            if isinstance(item, dict)
        ]
