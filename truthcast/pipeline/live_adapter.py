"""Live loop adapter: drives a VerificationSession from streamed transcript units.

Each incoming unit is extracted synchronously in arrival order. Every new
qualifying claim becomes a tracked asyncio task bounded by the session's
worker semaphore, so on_segment returns without waiting for verification.
Aggregate stats are updated per resolved verdict and persisted.

end() stops intake, cancels checks that never acquired a worker, waits up
to the grace timeout for in-flight checks, abandons the rest and completes
the work.

Usage:
    loop = LiveVerificationLoop(session, grace_timeout=10.0)
    await loop.on_segment(unit)
    ...
    result = await loop.end()
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from truthcast.data_management.schemas import (
    ClaimCandidate,
    TranscriptUnit,
    Verdict,
    WorkStats,
    WorkStatus,
)
from truthcast.pipeline.verification_session import VerificationSession
from truthcast.utils.logging import get_structured_logger
from truthcast.verification.errors import (
    ExtractionFailure,
    PersistenceFailure,
    SessionClosed,
)

DEFAULT_GRACE_TIMEOUT = 10.0


@dataclass
class LiveSessionResult:
    """Outcome of an ended live session."""

    parent_work_id: str
    status: WorkStatus
    verdicts: list[Verdict] = field(default_factory=list)
    stats: WorkStats = field(default_factory=WorkStats)
    abandoned: list[ClaimCandidate] = field(default_factory=list)
    error_message: Optional[str] = None


class LiveVerificationLoop:
    """Feeds a live session's units into the verification pipeline."""

    def __init__(
        self,
        session: VerificationSession,
        grace_timeout: float = DEFAULT_GRACE_TIMEOUT,
    ) -> None:
        self.session = session
        self.grace_timeout = grace_timeout

        self._tasks: dict[str, asyncio.Task] = {}
        self._started: set[str] = set()
        self._claims: dict[str, ClaimCandidate] = {}
        self._seen: set[str] = set()
        self._verdicts: list[Verdict] = []
        self._stats = WorkStats()
        self._stats_lock = asyncio.Lock()
        self._closed = False
        self._result: Optional[LiveSessionResult] = None
        self._started_monotonic = time.monotonic()
        self._logger = get_structured_logger(
            "LiveVerificationLoop", parent_work_id=session.parent_work_id
        )

    @property
    def parent_work_id(self) -> str:
        return self.session.parent_work_id

    @property
    def status(self) -> WorkStatus:
        return self.session.status

    @property
    def progress_pct(self) -> float:
        return self.session.progress_pct

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stats(self) -> WorkStats:
        return self._stats.model_copy(deep=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def on_segment(self, unit: TranscriptUnit) -> list[ClaimCandidate]:
        """Accept one transcript unit and schedule checks for its new claims.

        Returns:
            Claims scheduled for verification from this unit.

        Raises:
            SessionClosed: If the session was ended or has failed.
        """
        if self._closed or self.session.status.is_terminal:
            raise SessionClosed(f"Live session {self.parent_work_id} is closed")

        await self.session.ensure_registered()
        if self.session.status == WorkStatus.QUEUED:
            await self.session.transition(WorkStatus.EXTRACTING)

        try:
            candidates = self.session.extract_unit(unit)
        except ExtractionFailure as e:
            self._logger.warning(
                "unit_skipped", start_offset_ms=unit.start_offset_ms, error=str(e)
            )
            candidates = []
        except Exception as e:
            await self._abort(f"{type(e).__name__}: {e}")
            raise

        if not self._closed and self.session.status == WorkStatus.EXTRACTING:
            await self.session.transition(WorkStatus.VERIFYING)

        scheduled = []
        for claim in candidates:
            if not self.session.qualifies(claim) or claim.claim_hash in self._seen:
                continue
            self._seen.add(claim.claim_hash)
            already = await self.session.persist(
                self.session.store.has_verdict, self.parent_work_id, claim.claim_hash
            )
            if already:
                continue
            if self._closed or self.session.status.is_terminal:
                # end() may have run while the lookup was pending
                self._logger.info(
                    "segment_dropped_after_end",
                    start_offset_ms=unit.start_offset_ms,
                    claim_id=claim.id,
                )
                break
            self._schedule(claim)
            scheduled.append(claim)

        self._logger.debug(
            "segment_processed",
            start_offset_ms=unit.start_offset_ms,
            candidates=len(candidates),
            scheduled=len(scheduled),
            pending=len(self._tasks),
        )
        return scheduled

    async def end(self, grace_timeout: Optional[float] = None) -> LiveSessionResult:
        """Stop intake, drain or abandon pending checks and complete the work.

        Calling end() again returns the first result.
        """
        if self._result is not None:
            return self._result
        self._closed = True
        grace = self.grace_timeout if grace_timeout is None else grace_timeout

        pending = list(self._tasks.items())
        queued = [(h, t) for h, t in pending if h not in self._started]
        in_flight = [(h, t) for h, t in pending if h in self._started]
        for _, task in queued:
            task.cancel()
        abandoned = [self._claims[h] for h, _ in queued]

        if in_flight:
            _, still_running = await asyncio.wait([t for _, t in in_flight], timeout=grace)
            for claim_hash, task in in_flight:
                if task in still_running:
                    task.cancel()
                    abandoned.append(self._claims[claim_hash])
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
        if queued:
            await asyncio.gather(*(t for _, t in queued), return_exceptions=True)

        for claim in abandoned:
            self._logger.warning(
                "claim_abandoned",
                claim_id=claim.id,
                origin_offset_ms=claim.origin_offset_ms,
            )

        async with self._stats_lock:
            self._stats.abandoned_claims = len(abandoned)
            self._stats.duration_ms = self._elapsed_ms()
            snapshot = self._stats.model_copy(deep=True)

        if not self.session.status.is_terminal:
            try:
                await self.session.ensure_registered()
                extra = {}
                if hasattr(self.session.work, "ended_at"):
                    extra["ended_at"] = datetime.now(timezone.utc)
                await self.session.transition(WorkStatus.FINALIZING, stats=snapshot)
                await self.session.transition(
                    WorkStatus.COMPLETED, progress_pct=100.0, stats=snapshot, **extra
                )
            except PersistenceFailure as e:
                await self.session.fail(f"Persistence unavailable: {e}")

        self._logger.info(
            "live_session_ended",
            status=self.session.status.value,
            verdicts=snapshot.total_claims,
            abandoned=len(abandoned),
            duration_ms=snapshot.duration_ms,
        )
        self._result = LiveSessionResult(
            parent_work_id=self.parent_work_id,
            status=self.session.status,
            verdicts=list(self._verdicts),
            stats=snapshot,
            abandoned=abandoned,
            error_message=self.session.work.error_message,
        )
        return self._result

    async def cancel(self) -> None:
        """Cancel every pending check and mark the work failed."""
        await self._abort("cancelled")

    # ── Internals ────────────────────────────────────────────────────────

    def _schedule(self, claim: ClaimCandidate) -> None:
        claim_hash = claim.claim_hash
        self._claims[claim_hash] = claim
        task = asyncio.create_task(self._check(claim), name=f"verify-{claim.id}")
        self._tasks[claim_hash] = task
        task.add_done_callback(lambda _t, h=claim_hash: self._tasks.pop(h, None))

    async def _check(self, claim: ClaimCandidate) -> Optional[Verdict]:
        try:
            verdict = await self.session.verify_claim(
                claim, on_start=lambda: self._started.add(claim.claim_hash)
            )
            await self._record(verdict)
            return verdict
        except PersistenceFailure as e:
            await self._abort(f"Persistence unavailable: {e}")
            return None

    async def _record(self, verdict: Verdict) -> None:
        async with self._stats_lock:
            self._verdicts.append(verdict)
            self._stats.record(verdict)
            self._stats.duration_ms = self._elapsed_ms()
            if self.session.status == WorkStatus.VERIFYING:
                await self.session.transition(
                    WorkStatus.VERIFYING, stats=self._stats.model_copy(deep=True)
                )

    async def _abort(self, message: str) -> None:
        self._closed = True
        current = asyncio.current_task()
        for task in list(self._tasks.values()):
            if task is not current:
                task.cancel()
        await self.session.fail(message)

    def _elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started_monotonic) * 1000)
