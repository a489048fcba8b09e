"""Deterministic source credibility scoring.

Credibility depends only on the reputation tables in
``truthcast.config.source_credibility`` and never on the claim being
checked, so scoring can be tested without any network calls.
"""

from typing import Dict, Optional

from loguru import logger
from yarl import URL

from truthcast.config.source_credibility import (
    ACADEMIC_DOMAINS,
    ACADEMIC_SUFFIXES,
    DOMAIN_PATTERN_DEFAULTS,
    GOVERNMENT_DOMAINS,
    GOVERNMENT_SUFFIXES,
    NEWS_DOMAINS,
    PROVIDER_BASELINES,
    SOURCE_BASELINES,
    UNKNOWN_DOMAIN_CREDIBILITY,
)
from truthcast.data_management.schemas import SourceType


def extract_domain(url: str) -> str:
    """Lowercase host with any www. prefix stripped, or '' if unparseable."""
    try:
        host = URL(url).host or ""
    except (ValueError, TypeError):
        return ""
    host = host.lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


class CredibilityScorer:
    """
    Computes a 0-100 credibility score for a source domain.

    Lookup order: exact domain, parent domains, provider outlet name,
    TLD pattern, unknown default.

    Usage:
        scorer = CredibilityScorer()
        scorer.score("www.reuters.com")      # 95
        scorer.score("example.blog")         # 60

    Attributes:
        baselines: Domain -> score table
        provider_baselines: Outlet name -> score table
        pattern_defaults: TLD suffix -> score table
        unknown_default: Score for domains matching nothing
    """

    def __init__(
        self,
        baselines: Optional[Dict[str, int]] = None,
        provider_baselines: Optional[Dict[str, int]] = None,
        pattern_defaults: Optional[Dict[str, int]] = None,
        unknown_default: int = UNKNOWN_DOMAIN_CREDIBILITY,
    ):
        self.baselines = baselines or SOURCE_BASELINES
        self.provider_baselines = provider_baselines or PROVIDER_BASELINES
        self.pattern_defaults = pattern_defaults or DOMAIN_PATTERN_DEFAULTS
        self.unknown_default = unknown_default
        self.logger = logger.bind(component="CredibilityScorer")

    def score(self, domain: str, provider_name: Optional[str] = None) -> int:
        """
        Score a domain, falling back to the provider-reported outlet name.

        Args:
            domain: Host name or full URL
            provider_name: Outlet name reported by the search API, if any

        Returns:
            Credibility 0-100
        """
        host = self._normalize(domain)

        for candidate in self._parent_domains(host):
            if candidate in self.baselines:
                return self._clamp(self.baselines[candidate])

        if provider_name:
            outlet = provider_name.strip().lower()
            if outlet in self.provider_baselines:
                return self._clamp(self.provider_baselines[outlet])

        # Longest suffix first so .gov.uk beats .uk-level patterns
        for pattern in sorted(self.pattern_defaults, key=len, reverse=True):
            if host.endswith(pattern):
                return self._clamp(self.pattern_defaults[pattern])

        self.logger.debug(f"Unknown domain, using default {self.unknown_default}", domain=host)
        return self._clamp(self.unknown_default)

    def infer_source_type(self, domain: str) -> SourceType:
        """Classify a domain as news, academic, government or other."""
        host = self._normalize(domain)
        parents = self._parent_domains(host)

        if any(p in GOVERNMENT_DOMAINS for p in parents) or host.endswith(GOVERNMENT_SUFFIXES):
            return SourceType.GOVERNMENT
        if any(p in ACADEMIC_DOMAINS for p in parents) or host.endswith(ACADEMIC_SUFFIXES):
            return SourceType.ACADEMIC
        if any(p in NEWS_DOMAINS for p in parents):
            return SourceType.NEWS
        return SourceType.OTHER

    def _normalize(self, domain: str) -> str:
        if "://" in domain:
            return extract_domain(domain)
        host = domain.strip().lower().rstrip(".")
        host = host.split(":", 1)[0]
        return host[4:] if host.startswith("www.") else host

    @staticmethod
    def _parent_domains(host: str) -> list[str]:
        """news.bbc.co.uk -> [news.bbc.co.uk, bbc.co.uk, co.uk]"""
        labels = host.split(".")
        return [".".join(labels[i:]) for i in range(len(labels) - 1)] or [host]

    @staticmethod
    def _clamp(value: int) -> int:
        return max(0, min(100, int(value)))
