"""Source provider gateway: concurrent fan-out, normalization and ranking.

One sub-query per registered provider of a requested type runs concurrently,
each bounded by a per-provider timeout. A failing provider only reduces the
number of sources; it never aborts the claim check.

Outbound concurrency is capped by a semaphore owned by the gateway. The
gateway is built once per process and shared by every session, so the cap
protects third-party providers from aggregate load across all sessions.

Ranking: credibility desc, relevance desc, truncated to ``limit``.

Usage:
    from truthcast.verification.source_gateway import SourceGateway

    gateway = SourceGateway(providers=[news_provider, gov_provider])
    sources = await gateway.search("global temperature 1.1C", limit=10)
"""

import asyncio
import hashlib
import re
from typing import Iterable, Optional

import structlog
from yarl import URL

from truthcast.data_management.schemas import Source, SourceType
from truthcast.verification.credibility import CredibilityScorer, extract_domain
from truthcast.verification.errors import ProviderError, ProviderTimeout
from truthcast.verification.search_providers import RawSearchResult, SearchProvider

DEFAULT_PROVIDER_TIMEOUT = 3.0
DEFAULT_SOURCE_LIMIT = 10
DEFAULT_MAX_CONCURRENCY = 8

_TRACKING_PARAM_PREFIXES = ("utm_",)
_TRACKING_PARAMS = {"fbclid", "gclid", "ref", "ref_src", "cmpid"}
_TOKEN = re.compile(r"[a-z0-9]+")
_STOPWORDS = {
    "the", "a", "an", "and", "or", "of", "to", "in", "on", "for", "by", "with",
    "is", "are", "was", "were", "be", "been", "has", "have", "had", "that",
    "this", "it", "its", "as", "at", "from", "since", "than",
}


def normalize_url(url: str) -> str:
    """Canonical form used for de-duplication.

    Lowercase scheme/host, www. stripped, fragment and tracking params
    removed, trailing slash trimmed.
    """
    try:
        parsed = URL(url.strip())
    except (ValueError, TypeError):
        return url.strip().lower()
    if not parsed.host:
        return url.strip().lower()

    host = parsed.host.lower()
    if host.startswith("www."):
        host = host[4:]
    query = {
        k: v
        for k, v in parsed.query.items()
        if k.lower() not in _TRACKING_PARAMS and not k.lower().startswith(_TRACKING_PARAM_PREFIXES)
    }
    path = parsed.path.rstrip("/") or "/"
    normalized = URL.build(
        scheme=(parsed.scheme or "https").lower(),
        host=host,
        path=path,
        query=sorted(query.items()),
    )
    return str(normalized)


def content_tokens(text: str) -> set[str]:
    """Lowercase alphanumeric tokens minus stopwords."""
    return {t for t in _TOKEN.findall(text.lower()) if t not in _STOPWORDS}


def keyword_relevance(query: str, text: str) -> int:
    """Share of query terms present in the result text, scaled 0-100."""
    terms = content_tokens(query)
    if not terms or not text:
        return 0
    found = content_tokens(text)
    return round(100 * len(terms & found) / len(terms))


class SourceGateway:
    """Fans a query out to search providers and returns ranked Sources."""

    def __init__(
        self,
        providers: Iterable[SearchProvider] = (),
        scorer: Optional[CredibilityScorer] = None,
        provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        default_limit: int = DEFAULT_SOURCE_LIMIT,
    ) -> None:
        """Initialize SourceGateway.

        Args:
            providers: Search providers, each tagged with its source type.
            scorer: Credibility scorer. Default tables if not provided.
            provider_timeout: Seconds allowed per provider call.
            max_concurrency: Global cap on concurrent provider calls.
            default_limit: Result count when search() gets no limit.
        """
        self.providers = list(providers)
        self.scorer = scorer or CredibilityScorer()
        self.provider_timeout = provider_timeout
        self.default_limit = default_limit
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._logger = structlog.get_logger().bind(component="SourceGateway")

    async def search(
        self,
        query: str,
        types: Optional[set[SourceType]] = None,
        limit: Optional[int] = None,
    ) -> list[Source]:
        """Search every provider of the requested types concurrently.

        Args:
            query: Claim text or search query.
            types: Source types to consult. All registered types if None.
            limit: Maximum sources returned; the gateway default (10) if None.
                Zero returns no sources without querying providers.

        Returns:
            De-duplicated Sources ranked by credibility then relevance.
            Empty if every provider failed or none matched the types.
        """
        if limit is None:
            limit = self.default_limit
        if limit <= 0:
            return []
        selected = [
            p for p in self.providers if types is None or p.source_type in types
        ]
        if not selected:
            self._logger.debug("no_providers_for_types", types=sorted(t.value for t in types or ()))
            return []

        batches = await asyncio.gather(
            *[self._query_provider(p, query, limit) for p in selected]
        )

        by_url: dict[str, Source] = {}
        for provider, raw_results in zip(selected, batches):
            for raw in raw_results or []:
                source = self._normalize(raw, provider, query)
                if source is None:
                    continue
                existing = by_url.get(source.url)
                if existing is None or self._rank_key(source) < self._rank_key(existing):
                    by_url[source.url] = source

        ranked = sorted(by_url.values(), key=self._rank_key)[:limit]
        self._logger.info(
            "sources_ranked",
            query=query[:80],
            providers=len(selected),
            failed=sum(1 for b in batches if b is None),
            results=len(ranked),
        )
        return ranked

    async def _query_provider(
        self,
        provider: SearchProvider,
        query: str,
        limit: int,
    ) -> Optional[list[RawSearchResult]]:
        """Run one provider call under the global cap and per-call timeout.

        Provider failures are logged and yield None.
        """
        async with self._semaphore:
            try:
                return await asyncio.wait_for(
                    provider.search(query, limit), timeout=self.provider_timeout
                )
            except asyncio.TimeoutError:
                error = ProviderTimeout(provider.name, f"no answer within {self.provider_timeout}s")
                self._logger.warning("provider_timeout", provider=provider.name, error=str(error))
            except ProviderError as e:
                self._logger.warning(
                    "provider_unavailable",
                    provider=provider.name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            except Exception as e:
                self._logger.error(
                    "provider_failed",
                    provider=provider.name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
        return None

    def _normalize(
        self,
        raw: RawSearchResult,
        provider: SearchProvider,
        query: str,
    ) -> Optional[Source]:
        """Convert a raw result into a Source with credibility and relevance."""
        url = normalize_url(raw.url)
        domain = extract_domain(url)
        if not domain:
            return None

        source_type = self.scorer.infer_source_type(domain)
        if source_type == SourceType.OTHER:
            source_type = provider.source_type

        return Source(
            id=f"src-{hashlib.sha1(url.encode('utf-8')).hexdigest()[:12]}",
            title=raw.title,
            url=url,
            domain=domain,
            source_type=source_type,
            credibility_score=self.scorer.score(domain, raw.outlet),
            relevance_score=keyword_relevance(query, f"{raw.title} {raw.snippet}"),
            excerpt=raw.snippet or raw.title,
            provider=provider.name,
        )

    @staticmethod
    def _rank_key(source: Source) -> tuple[int, int]:
        return (-source.credibility_score, -source.relevance_score)

    async def close(self) -> None:
        """Close providers that hold network clients."""
        for provider in self.providers:
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
