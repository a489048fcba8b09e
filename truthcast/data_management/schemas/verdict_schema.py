"""Verdict schema.

A Verdict is the synthesized outcome for one claim within one ParentWork.
Flagging is derived from label and confidence, never set independently:

    is_flagged = label in {false, disputed} or confidence < flag threshold

The threshold is configuration (default 70). When a Verdict is built
without an explicit is_flagged value the default threshold applies.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from truthcast.data_management.schemas.source_schema import Perspective

DEFAULT_FLAG_THRESHOLD = 70


class VerdictLabel(str, Enum):
    """Outcome label for a verified claim.

    VERIFIED: Relevant sources agree the claim is accurate.
    FALSE: Relevant sources agree the claim is inaccurate.
    PARTIAL: The claim is partly accurate, or evidence leans without consensus.
    DISPUTED: Credible sources genuinely conflict.
    UNCERTAIN: No usable evidence, or the reasoning collaborator was unavailable.
    """

    VERIFIED = "verified"
    FALSE = "false"
    PARTIAL = "partial"
    DISPUTED = "disputed"
    UNCERTAIN = "uncertain"


FLAGGED_LABELS = frozenset({VerdictLabel.FALSE, VerdictLabel.DISPUTED})


def derive_flag(
    label: VerdictLabel,
    confidence: int,
    threshold: int = DEFAULT_FLAG_THRESHOLD,
) -> bool:
    """Flag rule shared by the synthesizer and the schema."""
    return VerdictLabel(label) in FLAGGED_LABELS or confidence < threshold


class Verdict(BaseModel):
    """Synthesized, explainable fact-check result for one claim."""

    id: str = Field(default_factory=lambda: f"verdict-{uuid.uuid4().hex[:12]}")
    claim_id: str = Field(..., description="ClaimCandidate this verdict resolves")
    parent_work_id: str = Field(..., description="Podcast or live session that owns the claim")
    claim_text: str = Field(..., description="Claim text as extracted")
    claim_hash: str = Field(..., description="Natural key with parent_work_id")
    origin_offset_ms: int = Field(default=0, ge=0)
    label: VerdictLabel = Field(..., description="Outcome label")
    confidence: int = Field(..., ge=0, le=100, description="Confidence in the label (0-100)")
    explanation: str = Field(default="", description="Which perspectives drove the label")
    perspectives: list[Perspective] = Field(default_factory=list)
    is_flagged: bool = Field(default=False, description="Signal consumed by the dashboard")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="before")
    @classmethod
    def clamp_and_flag(cls, data: dict) -> dict:
        """Clamp confidence to 0-100 and derive is_flagged.

        An explicit is_flagged carries the caller's confidence threshold, but
        false and disputed labels are always flagged.
        """
        if isinstance(data, dict):
            confidence = data.get("confidence", 0)
            data["confidence"] = int(max(0, min(100, round(float(confidence)))))
            if "label" in data:
                if VerdictLabel(data["label"]) in FLAGGED_LABELS:
                    data["is_flagged"] = True
                elif data.get("is_flagged") is None:
                    data["is_flagged"] = derive_flag(data["label"], data["confidence"])
        return data

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.parent_work_id, self.claim_hash)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "claim_id": "claim-4b1d0e6f2a9c",
                    "parent_work_id": "podcast-001",
                    "claim_text": "Global temperatures have risen by 1.1°C since pre-industrial times.",
                    "claim_hash": "4b1d0e6f2a9c...",
                    "origin_offset_ms": 5000,
                    "label": "verified",
                    "confidence": 91,
                    "explanation": "Verified: 2 of 2 relevant sources support the claim.",
                    "perspectives": [],
                    "is_flagged": False,
                }
            ]
        }
    }
