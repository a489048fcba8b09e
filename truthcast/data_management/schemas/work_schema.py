"""ParentWork schemas: the unit of ingestion that owns claims and verdicts.

ParentWork is a tagged union discriminated on ``kind``:
- PodcastWork: one uploaded recording, processed as a batch
- LiveSessionWork: one live stream, processed segment by segment

Both share status, owner, progress and aggregate stats, so the
verification session is written once against the common shape.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from truthcast.data_management.schemas.verdict_schema import Verdict, VerdictLabel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkStatus(str, Enum):
    """Verification session state machine.

    queued -> extracting -> verifying -> finalizing -> completed
    Any non-terminal state may move to failed. Statuses never move backward.
    """

    QUEUED = "queued"
    EXTRACTING = "extracting"
    VERIFYING = "verifying"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkStatus.COMPLETED, WorkStatus.FAILED)


class WorkStats(BaseModel):
    """Aggregate verdict statistics for one ParentWork.

    ``record`` updates the aggregates in O(1) per verdict so live sessions
    never re-scan their verdict list.
    """

    total_claims: int = 0
    flagged_claims: int = 0
    mean_confidence: float = 0.0
    label_counts: dict[str, int] = Field(
        default_factory=lambda: {label.value: 0 for label in VerdictLabel}
    )
    abandoned_claims: int = 0
    duration_ms: int = 0

    def record(self, verdict: Verdict) -> None:
        self.total_claims += 1
        if verdict.is_flagged:
            self.flagged_claims += 1
        self.mean_confidence += (verdict.confidence - self.mean_confidence) / self.total_claims
        label = VerdictLabel(verdict.label).value
        self.label_counts[label] = self.label_counts.get(label, 0) + 1

    @classmethod
    def from_verdicts(cls, verdicts: list[Verdict]) -> "WorkStats":
        stats = cls()
        for verdict in verdicts:
            stats.record(verdict)
        return stats


class ParentWorkBase(BaseModel):
    """Fields shared by every kind of ParentWork."""

    id: str = Field(default_factory=lambda: f"work-{uuid.uuid4().hex[:12]}")
    owner_id: str = Field(..., description="User that owns this work")
    title: str = Field(default="")
    status: WorkStatus = Field(default=WorkStatus.QUEUED)
    progress_pct: float = Field(default=0.0, ge=0.0, le=100.0)
    stats: WorkStats = Field(default_factory=WorkStats)
    error_message: Optional[str] = Field(
        default=None, description="Diagnostic message when status is failed"
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class PodcastWork(ParentWorkBase):
    """Uploaded recording processed as one batch."""

    kind: Literal["podcast"] = "podcast"
    audio_ref: Optional[str] = Field(
        default=None, description="Object storage reference handed to the transcriber"
    )


class LiveSessionWork(ParentWorkBase):
    """Live stream processed segment by segment until explicitly ended."""

    kind: Literal["live_session"] = "live_session"
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None


ParentWork = Annotated[
    Union[PodcastWork, LiveSessionWork],
    Field(discriminator="kind"),
]

parent_work_adapter: TypeAdapter = TypeAdapter(ParentWork)


class StatusReport(BaseModel):
    """Answer to get_status for the UI/API layer."""

    parent_work_id: str
    kind: str
    status: WorkStatus
    progress_pct: float = 0.0
    verdict_summary: WorkStats = Field(default_factory=WorkStats)
    error_message: Optional[str] = None


class OwnerSummary(BaseModel):
    """Aggregated verdict statistics across all works of one owner."""

    owner_id: str
    total_works: int = 0
    works_by_status: dict[str, int] = Field(default_factory=dict)
    total_claims: int = 0
    flagged_claims: int = 0
    mean_confidence: float = 0.0
    label_counts: dict[str, int] = Field(
        default_factory=lambda: {label.value: 0 for label in VerdictLabel}
    )

    def add(self, work: ParentWorkBase) -> None:
        """Fold one work's stats into the summary."""
        self.total_works += 1
        status = WorkStatus(work.status).value
        self.works_by_status[status] = self.works_by_status.get(status, 0) + 1

        stats = work.stats
        if stats.total_claims:
            combined = self.total_claims + stats.total_claims
            self.mean_confidence = (
                self.mean_confidence * self.total_claims
                + stats.mean_confidence * stats.total_claims
            ) / combined
            self.total_claims = combined
        self.flagged_claims += stats.flagged_claims
        for label, count in stats.label_counts.items():
            self.label_counts[label] = self.label_counts.get(label, 0) + count
