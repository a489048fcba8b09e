"""Claim verification components.

Primary exports:
- HeuristicClaimExtractor: Transcript text -> scored ClaimCandidates
- SourceGateway: Concurrent, timeout-bounded multi-provider search
- CredibilityScorer: Domain reputation lookup
- VerdictSynthesizer: Sources + stance judgments -> Verdict
- LexicalStanceJudge / GeminiStanceJudge: Reasoning collaborators

Usage:
    from truthcast.verification import SourceGateway, VerdictSynthesizer
    sources = await gateway.search(claim.text)
    verdict = await synthesizer.synthesize(claim, sources, parent_work_id=work.id)
"""

from truthcast.verification.errors import (
    ExtractionFailure,
    InvalidTransition,
    PersistenceFailure,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
    SessionClosed,
    SynthesisUnavailable,
    TruthCastError,
    WorkNotFound,
)
from truthcast.verification.claim_extractor import ClaimExtractor, HeuristicClaimExtractor
from truthcast.verification.credibility import CredibilityScorer, extract_domain
from truthcast.verification.search_providers import (
    NewsApiProvider,
    RawSearchResult,
    SearchProvider,
    SerperProvider,
    StaticSearchProvider,
)
from truthcast.verification.source_gateway import SourceGateway
from truthcast.verification.stance_judge import (
    GeminiStanceJudge,
    LexicalStanceJudge,
    StanceJudge,
    StanceJudgement,
)
from truthcast.verification.verdict_synthesizer import VerdictSynthesizer, uncertain_verdict

__all__ = [
    "ExtractionFailure",
    "InvalidTransition",
    "PersistenceFailure",
    "ProviderError",
    "ProviderTimeout",
    "ProviderUnavailable",
    "SessionClosed",
    "SynthesisUnavailable",
    "TruthCastError",
    "WorkNotFound",
    "ClaimExtractor",
    "HeuristicClaimExtractor",
    "CredibilityScorer",
    "extract_domain",
    "NewsApiProvider",
    "RawSearchResult",
    "SearchProvider",
    "SerperProvider",
    "StaticSearchProvider",
    "SourceGateway",
    "GeminiStanceJudge",
    "LexicalStanceJudge",
    "StanceJudge",
    "StanceJudgement",
    "VerdictSynthesizer",
    "uncertain_verdict",
]
