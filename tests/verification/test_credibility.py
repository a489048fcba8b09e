"""Tests for CredibilityScorer and domain extraction."""

import pytest

from truthcast.data_management.schemas import SourceType
from truthcast.verification.credibility import CredibilityScorer, extract_domain


@pytest.fixture
def scorer() -> CredibilityScorer:
    return CredibilityScorer()


class TestScore:
    @pytest.mark.parametrize(
        "domain,expected",
        [
            ("reuters.com", 95),
            ("www.reuters.com", 95),
            ("REUTERS.COM", 95),
            ("news.bbc.co.uk", 90),
            ("https://www.nasa.gov/missions/climate", 93),
        ],
    )
    def test_known_domains(self, scorer, domain, expected):
        assert scorer.score(domain) == expected

    @pytest.mark.parametrize(
        "domain,expected",
        [
            ("someagency.gov", 90),
            ("physics.example.edu", 85),
            ("ox.ac.uk", 85),
            ("charity.org", 65),
        ],
    )
    def test_tld_patterns(self, scorer, domain, expected):
        assert scorer.score(domain) == expected

    def test_unknown_domain_default(self, scorer):
        assert scorer.score("randomblog.xyz") == 60

    def test_provider_outlet_name_fallback(self, scorer):
        assert scorer.score("feeds.example-cdn.net", provider_name="Reuters") == 95

    def test_custom_tables(self):
        scorer = CredibilityScorer(
            baselines={"trusted.example": 150},
            pattern_defaults={".test": 10},
            unknown_default=42,
        )
        assert scorer.score("trusted.example") == 100
        assert scorer.score("site.test") == 10
        assert scorer.score("other.example") == 42


class TestSourceType:
    @pytest.mark.parametrize(
        "domain,expected",
        [
            ("nasa.gov", SourceType.GOVERNMENT),
            ("unknown-office.gov", SourceType.GOVERNMENT),
            ("mit.edu", SourceType.ACADEMIC),
            ("nature.com", SourceType.ACADEMIC),
            ("reuters.com", SourceType.NEWS),
            ("randomblog.xyz", SourceType.OTHER),
        ],
    )
    def test_infer_source_type(self, scorer, domain, expected):
        assert scorer.infer_source_type(domain) == expected


class TestExtractDomain:
    def test_strips_www_and_lowercases(self):
        assert extract_domain("https://www.BBC.co.uk/news/science") == "bbc.co.uk"

    def test_unparseable_returns_empty(self):
        assert extract_domain("not a url") == ""
