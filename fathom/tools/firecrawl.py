from __future__ import annotations

from typing import Any, Protocol, Sequence

import httpx

from fathom.config import settings
from fathom.models.schemas import SearchHit
from fathom.services.env_safety import sanitize_ssl_keylogfile

# Extra seconds on top of the Firecrawl-side timeout before httpx gives up.
HTTP_TIMEOUT_SLACK_S = 5.0


class ContentFetcher(Protocol):
    async def search(
        self, query: str, *, timeout_ms: int | None = None, max_results: int | None = None
    ) -> list[SearchHit]: ...

    async def crawl(
        self, url: str, *, timeout_ms: int | None = None, formats: Sequence[str] | None = None
    ) -> None: ...

    async def aclose(self) -> None: ...


class FirecrawlClient:
    """Search and crawl through the Firecrawl REST API.

    ``search`` returns ranked hits with page Markdown; ``crawl`` only submits a
    crawl job and never waits for its output.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_ms: int | None = None,
        max_results: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = (api_key or settings.firecrawl_api_key or "").strip()
        self.base_url = (base_url or settings.firecrawl_base_url).strip().rstrip("/")
        self.timeout_ms = max(int(timeout_ms or settings.search_timeout_ms), 1000)
        self.max_results = max(int(max_results or settings.search_max_results), 1)
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            sanitize_ssl_keylogfile()
            self._http = httpx.AsyncClient(
                headers=self._headers(),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http

    @staticmethod
    def _http_timeout(timeout_ms: int) -> float:
        return max(timeout_ms / 1000.0, 1.0) + HTTP_TIMEOUT_SLACK_S

    async def search(
        self,
        query: str,
        *,
        timeout_ms: int | None = None,
        max_results: int | None = None,
    ) -> list[SearchHit]:
        """Run a Firecrawl search and return hits with scraped Markdown."""
        if not self.base_url:
            raise RuntimeError("Firecrawl base URL not configured")

        timeout_ms = timeout_ms or self.timeout_ms
        payload = {
            "query": query,
            "limit": max_results or self.max_results,
            "timeout": timeout_ms,
            "scrapeOptions": {"formats": ["markdown"]},
        }
        response = await self._client().post(
            f"{self.base_url}/v1/search",
            json=payload,
            timeout=self._http_timeout(timeout_ms),
        )
        response.raise_for_status()
        return parse_search_response(response.json())

    async def crawl(
        self,
        url: str,
        *,
        timeout_ms: int | None = None,
        formats: Sequence[str] | None = None,
    ) -> None:
        """Submit a crawl job for ``url``; failures raise."""
        if not self.base_url:
            raise RuntimeError("Firecrawl base URL not configured")

        timeout_ms = timeout_ms or self.timeout_ms
        payload = {
            "url": url,
            "scrapeOptions": {
                "timeout": timeout_ms,
                "formats": list(formats or settings.crawl_formats),
            },
        }
        response = await self._client().post(
            f"{self.base_url}/v1/crawl",
            json=payload,
            timeout=self._http_timeout(timeout_ms),
        )
        response.raise_for_status()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None


def parse_search_response(data: Any) -> list[SearchHit]:
    """Map a Firecrawl search body to hits; unknown shapes yield no hits."""
    if not isinstance(data, dict):
        return []
    items = data.get("data")
    if isinstance(items, dict):
        # v2 responses group results by source type
        items = items.get("web")
    if not isinstance(items, list):
        return []

    hits: list[SearchHit] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        url = item.get("url")
        content = item.get("markdown")
        hits.append(
            SearchHit(
                url=url if isinstance(url, str) and url.strip() else None,
                content=content if isinstance(content, str) and content.strip() else None,
            )
        )
    return hits
