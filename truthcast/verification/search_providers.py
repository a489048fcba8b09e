"""Search provider adapters for the source gateway.

Each provider answers ``search(query, limit)`` with raw results for one
source type. Providers raise ProviderUnavailable or ProviderTimeout; they
never score credibility (the gateway does, from reputation tables).

Providers:
- NewsApiProvider: newsapi.org "everything" endpoint (news)
- SerperProvider: google.serper.dev web search with a site filter
  (academic or government)
- StaticSearchProvider: fixed in-memory results for offline runs and tests

Usage:
    from truthcast.verification.search_providers import NewsApiProvider

    provider = NewsApiProvider(api_key="...")
    results = await provider.search("global temperature rise", limit=5)
    await provider.close()
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

import httpx
from loguru import logger

from truthcast.data_management.schemas import SourceType
from truthcast.verification.errors import ProviderTimeout, ProviderUnavailable

USER_AGENT = "TruthCast-SourceGateway/1.0"


@dataclass
class RawSearchResult:
    """Provider result before normalization into a Source.

    Attributes:
        title: Result title
        url: Result URL as returned by the provider
        snippet: Description or snippet text
        outlet: Outlet name reported by the provider (NewsAPI source.name)
        published_at: Publication timestamp string, if any
    """

    title: str
    url: str
    snippet: str = ""
    outlet: Optional[str] = None
    published_at: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class SearchProvider(Protocol):
    """Capability: search by query for one source type."""

    name: str
    source_type: SourceType

    async def search(self, query: str, limit: int) -> list[RawSearchResult]:
        ...


class _HttpProvider:
    """Shared httpx client lifecycle for HTTP-backed providers."""

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_connections=20),
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, name: str, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise ProviderTimeout(name, f"request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailable(name, f"HTTP error {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise ProviderUnavailable(name, f"request failed: {e}") from e
        except ValueError as e:
            raise ProviderUnavailable(name, f"invalid JSON response: {e}") from e


class NewsApiProvider(_HttpProvider):
    """News search via NewsAPI.org."""

    source_type = SourceType.NEWS

    def __init__(
        self,
        api_key: Optional[str],
        name: str = "newsapi",
        base_url: str = "https://newsapi.org/v2/everything",
        language: str = "en",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self.name = name
        self.api_key = api_key
        self.base_url = base_url
        self.language = language

    async def search(self, query: str, limit: int) -> list[RawSearchResult]:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "NEWS_API_KEY not configured")

        data = await self._request(
            self.name,
            "GET",
            self.base_url,
            params={
                "q": query,
                "sortBy": "relevancy",
                "pageSize": limit,
                "language": self.language,
            },
            headers={"X-Api-Key": self.api_key},
        )

        results = []
        for article in data.get("articles", [])[:limit]:
            url = article.get("url")
            if not url:
                continue
            results.append(
                RawSearchResult(
                    title=article.get("title") or "",
                    url=url,
                    snippet=article.get("description") or article.get("content") or "",
                    outlet=(article.get("source") or {}).get("name"),
                    published_at=article.get("publishedAt"),
                )
            )
        logger.bind(component="NewsApiProvider").debug(
            f"NewsAPI returned {len(results)} results", query=query[:80]
        )
        return results


# Site filters appended to Serper queries per source type
SERPER_SITE_FILTERS: dict[SourceType, str] = {
    SourceType.ACADEMIC: "(site:.edu OR site:ncbi.nlm.nih.gov OR site:nature.com OR site:science.org)",
    SourceType.GOVERNMENT: "(site:.gov OR site:who.int OR site:europa.eu OR site:ipcc.ch)",
    SourceType.NEWS: "",
    SourceType.OTHER: "",
}


class SerperProvider(_HttpProvider):
    """Web search via google.serper.dev restricted to one source type."""

    def __init__(
        self,
        api_key: Optional[str],
        source_type: SourceType,
        name: Optional[str] = None,
        base_url: str = "https://google.serper.dev/search",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self.api_key = api_key
        self.source_type = source_type
        self.name = name or f"serper_{source_type.value}"
        self.base_url = base_url
        self.site_filter = SERPER_SITE_FILTERS.get(source_type, "")

    async def search(self, query: str, limit: int) -> list[RawSearchResult]:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "SERPER_API_KEY not configured")

        q = f"{query} {self.site_filter}".strip()
        data = await self._request(
            self.name,
            "POST",
            self.base_url,
            json={"q": q, "num": limit},
            headers={"X-API-KEY": self.api_key},
        )

        return [
            RawSearchResult(
                title=item.get("title", ""),
                url=item["link"],
                snippet=item.get("snippet", ""),
                published_at=item.get("date"),
            )
            for item in data.get("organic", [])[:limit]
            if item.get("link")
        ]


class StaticSearchProvider:
    """Provider answering every query with a fixed result list.

    Useful for offline runs and tests. ``delay`` simulates latency and
    ``error`` makes every call raise.
    """

    def __init__(
        self,
        name: str,
        source_type: SourceType,
        results: Optional[list[RawSearchResult]] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ) -> None:
        self.name = name
        self.source_type = source_type
        self.results = list(results or [])
        self.delay = delay
        self.error = error
        self.calls: list[str] = []

    async def search(self, query: str, limit: int) -> list[RawSearchResult]:
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.results[:limit]

    async def close(self) -> None:
        return None
