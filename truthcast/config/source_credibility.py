"""Source credibility tables for the source provider gateway.

Credibility is a per-source trust weight on a 0-100 scale. It is looked up
from these reputation tables only, never from the claim being checked, so
the same domain always receives the same score.

Lookup order (first hit wins):
1. Exact domain in SOURCE_BASELINES
2. Parent domain in SOURCE_BASELINES (news.bbc.co.uk -> bbc.co.uk)
3. Provider-reported outlet name in PROVIDER_BASELINES ("Reuters")
4. TLD pattern in DOMAIN_PATTERN_DEFAULTS (.gov, .edu, ...)
5. UNKNOWN_DOMAIN_CREDIBILITY

Source hierarchy (from most to least credible):
1. Peer-reviewed/academic indexes (PubMed, Nature): 95-98
2. Wire services (Reuters, AP, AFP): 95
3. Official government sources (.gov): 90
4. Major news outlets (BBC, NYT): 85-90
5. Dedicated fact-checkers (Snopes, PolitiFact): 85
6. Unknown domains: 60
7. Social media: 30
"""

from typing import Dict

UNKNOWN_DOMAIN_CREDIBILITY: int = 60

# Key: domain (lowercase, no www.)
# Value: credibility score 0-100
SOURCE_BASELINES: Dict[str, int] = {
    # Wire services
    "reuters.com": 95,
    "apnews.com": 95,
    "afp.com": 92,

    # Major news outlets
    "bbc.com": 90,
    "bbc.co.uk": 90,
    "nytimes.com": 85,
    "washingtonpost.com": 85,
    "theguardian.com": 85,
    "npr.org": 85,
    "economist.com": 85,
    "ft.com": 85,
    "wsj.com": 85,
    "bloomberg.com": 85,
    "cnn.com": 75,
    "foxnews.com": 70,
    "aljazeera.com": 75,

    # Fact-checking organisations
    "snopes.com": 85,
    "politifact.com": 85,
    "factcheck.org": 88,
    "fullfact.org": 85,

    # Academic / research
    "ncbi.nlm.nih.gov": 98,
    "pubmed.ncbi.nlm.nih.gov": 98,
    "nature.com": 95,
    "science.org": 95,
    "thelancet.com": 95,
    "nejm.org": 95,
    "arxiv.org": 80,
    "sciencedirect.com": 88,
    "scholar.google.com": 80,

    # Government / intergovernmental
    "cdc.gov": 93,
    "nih.gov": 93,
    "nasa.gov": 93,
    "noaa.gov": 93,
    "who.int": 90,
    "ipcc.ch": 92,
    "europa.eu": 88,

    # Known lower-credibility sources
    "rt.com": 35,
    "sputniknews.com": 35,
    "breitbart.com": 45,
    "infowars.com": 10,

    # Social media platforms (user-generated content)
    "twitter.com": 30,
    "x.com": 30,
    "reddit.com": 30,
    "facebook.com": 30,
    "youtube.com": 35,
    "tiktok.com": 25,
}

# Outlet names as reported by news APIs (e.g. NewsAPI "source.name")
PROVIDER_BASELINES: Dict[str, int] = {
    "reuters": 95,
    "associated press": 95,
    "bbc news": 90,
    "the guardian": 85,
    "the new york times": 85,
    "the washington post": 85,
    "npr": 85,
    "bloomberg": 85,
    "cnn": 75,
    "fox news": 70,
    "al jazeera english": 75,
}

# TLD-based defaults for domains missing from SOURCE_BASELINES
DOMAIN_PATTERN_DEFAULTS: Dict[str, int] = {
    ".gov": 90,
    ".mil": 85,
    ".edu": 85,
    ".int": 85,
    ".ac.uk": 85,
    ".gov.uk": 90,
    ".org": 65,
}

# Source type inference
ACADEMIC_DOMAINS = frozenset({
    "ncbi.nlm.nih.gov",
    "pubmed.ncbi.nlm.nih.gov",
    "nature.com",
    "science.org",
    "thelancet.com",
    "nejm.org",
    "arxiv.org",
    "sciencedirect.com",
    "scholar.google.com",
})

GOVERNMENT_DOMAINS = frozenset({
    "cdc.gov",
    "nih.gov",
    "nasa.gov",
    "noaa.gov",
    "who.int",
    "ipcc.ch",
    "europa.eu",
})

NEWS_DOMAINS = frozenset({
    "reuters.com",
    "apnews.com",
    "afp.com",
    "bbc.com",
    "bbc.co.uk",
    "nytimes.com",
    "washingtonpost.com",
    "theguardian.com",
    "npr.org",
    "economist.com",
    "ft.com",
    "wsj.com",
    "bloomberg.com",
    "cnn.com",
    "foxnews.com",
    "aljazeera.com",
    "snopes.com",
    "politifact.com",
    "factcheck.org",
    "fullfact.org",
})

ACADEMIC_SUFFIXES = (".edu", ".ac.uk")
GOVERNMENT_SUFFIXES = (".gov", ".mil", ".int", ".gov.uk")
