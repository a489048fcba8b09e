"""Schema package for transcript, claim, source, verdict and work records.

Primary exports:
- TranscriptUnit: Immutable speech-to-text chunk
- ClaimCandidate: Checkable claim with importance score
- Source / Perspective: Evidence and per-source stance
- Verdict: Synthesized outcome for one claim
- PodcastWork / LiveSessionWork: ParentWork tagged union

Usage:
    from truthcast.data_management.schemas import ClaimCandidate, Verdict
    claim = ClaimCandidate.from_text("The Paris Agreement was signed in 2015.", importance=8)
"""

from truthcast.data_management.schemas.transcript_schema import TranscriptUnit
from truthcast.data_management.schemas.claim_schema import (
    ClaimCandidate,
    claim_hash,
    normalize_claim_text,
)
from truthcast.data_management.schemas.source_schema import (
    Perspective,
    Source,
    SourceType,
    Stance,
)
from truthcast.data_management.schemas.verdict_schema import (
    DEFAULT_FLAG_THRESHOLD,
    FLAGGED_LABELS,
    Verdict,
    VerdictLabel,
    derive_flag,
)
from truthcast.data_management.schemas.work_schema import (
    LiveSessionWork,
    OwnerSummary,
    ParentWork,
    ParentWorkBase,
    PodcastWork,
    StatusReport,
    WorkStats,
    WorkStatus,
    parent_work_adapter,
)

__all__ = [
    "TranscriptUnit",
    "ClaimCandidate",
    "claim_hash",
    "normalize_claim_text",
    "Perspective",
    "Source",
    "SourceType",
    "Stance",
    "DEFAULT_FLAG_THRESHOLD",
    "FLAGGED_LABELS",
    "Verdict",
    "VerdictLabel",
    "derive_flag",
    "LiveSessionWork",
    "OwnerSummary",
    "ParentWork",
    "ParentWorkBase",
    "PodcastWork",
    "StatusReport",
    "WorkStats",
    "WorkStatus",
    "parent_work_adapter",
]
