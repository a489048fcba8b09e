"""Claim candidate schema and claim text normalization.

The claim hash is the natural key for idempotence: a ParentWork never holds
two verdicts for claims whose normalized text is equal.
"""

import hashlib
import re

from pydantic import BaseModel, Field, field_validator

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_claim_text(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = _PUNCTUATION.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def claim_hash(text: str) -> str:
    """SHA-256 of the normalized claim text."""
    return hashlib.sha256(normalize_claim_text(text).encode("utf-8")).hexdigest()


class ClaimCandidate(BaseModel):
    """A checkable factual assertion extracted from transcript text.

    Importance is a checkability heuristic (1-10). Only candidates at or
    above the configured threshold are verified.
    """

    id: str = Field(..., description="Stable claim identifier derived from claim_hash")
    text: str = Field(..., description="Claim sentence as spoken")
    context: str = Field(default="", description="Neighbouring transcript text")
    importance: int = Field(
        ..., description="Checkability/relevance score (1-10)"
    )
    origin_offset_ms: int = Field(
        default=0, ge=0, description="Approximate audio offset where the claim was made"
    )
    claim_hash: str = Field(..., description="SHA-256 of the normalized claim text")

    @field_validator("importance", mode="before")
    @classmethod
    def clamp_importance(cls, value: int) -> int:
        return max(1, min(10, int(value)))

    @classmethod
    def from_text(
        cls,
        text: str,
        importance: int,
        context: str = "",
        origin_offset_ms: int = 0,
    ) -> "ClaimCandidate":
        """Build a candidate whose id and hash derive from the text."""
        digest = claim_hash(text)
        return cls(
            id=f"claim-{digest[:12]}",
            text=text,
            context=context,
            importance=importance,
            origin_offset_ms=origin_offset_ms,
            claim_hash=digest,
        )
