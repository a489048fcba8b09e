"""Batch verification session: one ParentWork, transcript in, verdicts out.

Orchestrates extractor -> source gateway -> verdict synthesizer -> store
for every qualifying claim of a transcript, moving the ParentWork through
queued -> extracting -> verifying -> finalizing -> completed (or failed).

Failure scope:
- ExtractionFailure skips one transcript unit
- any other extractor exception fails the session
- source or reasoning outages degrade one claim to an uncertain verdict
- PersistenceFailure is retried with exponential backoff (tenacity);
  exhaustion fails the session

run() never raises except CancelledError, after marking the work failed.

Usage:
    session = VerificationSession(
        work,
        extractor=HeuristicClaimExtractor(),
        gateway=gateway,
        synthesizer=VerdictSynthesizer(judge=LexicalStanceJudge()),
        store=store,
    )
    result = await session.run(transcript_units)
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from truthcast.data_management.schemas import (
    ClaimCandidate,
    ParentWorkBase,
    SourceType,
    TranscriptUnit,
    Verdict,
    WorkStats,
    WorkStatus,
)
from truthcast.data_management.verification_store import VerificationStore
from truthcast.pipeline.status import advance
from truthcast.utils.logging import get_correlation_id, get_structured_logger
from truthcast.verification.claim_extractor import ClaimExtractor
from truthcast.verification.errors import ExtractionFailure, PersistenceFailure
from truthcast.verification.source_gateway import SourceGateway
from truthcast.verification.verdict_synthesizer import VerdictSynthesizer

VerdictCallback = Callable[[Verdict], Awaitable[None]]

DEFAULT_IMPORTANCE_THRESHOLD = 6
DEFAULT_MAX_WORKERS = 4


@dataclass
class SessionResult:
    """Outcome of one batch run."""

    parent_work_id: str
    status: WorkStatus
    verdicts: list[Verdict] = field(default_factory=list)
    stats: WorkStats = field(default_factory=WorkStats)
    skipped_units: int = 0
    error_message: Optional[str] = None


class VerificationSession:
    """Drives one ParentWork through the verification state machine.

    Components are injected; the gateway is shared across sessions while
    the worker semaphore belongs to this session only.
    """

    def __init__(
        self,
        work: ParentWorkBase,
        *,
        extractor: ClaimExtractor,
        gateway: SourceGateway,
        synthesizer: VerdictSynthesizer,
        store: VerificationStore,
        importance_threshold: int = DEFAULT_IMPORTANCE_THRESHOLD,
        max_workers: int = DEFAULT_MAX_WORKERS,
        source_types: Optional[set[SourceType]] = None,
        source_limit: Optional[int] = None,
        persistence_attempts: int = 3,
        persistence_backoff: float = 0.5,
        verdict_callback: Optional[VerdictCallback] = None,
    ) -> None:
        """Initialize VerificationSession.

        Args:
            work: ParentWork this session owns. Saved to the store on first use
                if the store does not know it yet.
            extractor: Claim extractor.
            gateway: Shared source gateway.
            synthesizer: Verdict synthesizer.
            store: Persistence collaborator.
            importance_threshold: Minimum importance (1-10) for a claim to be checked.
            max_workers: Concurrent claim checks for this session.
            source_types: Source types to consult; None means all providers.
            source_limit: Maximum sources per claim; None uses the gateway default.
            persistence_attempts: Attempts per store write before failing.
            persistence_backoff: Base delay in seconds for retry backoff.
            verdict_callback: Awaited with each newly persisted verdict.
        """
        self.work = work
        self.extractor = extractor
        self.gateway = gateway
        self.synthesizer = synthesizer
        self.store = store
        self.importance_threshold = importance_threshold
        self.source_types = source_types
        self.source_limit = source_limit
        self.persistence_attempts = persistence_attempts
        self.persistence_backoff = persistence_backoff
        self.verdict_callback = verdict_callback

        self.status: WorkStatus = work.status
        self.progress_pct: float = work.progress_pct
        self.semaphore = asyncio.Semaphore(max_workers)
        self._registered = False
        self._logger = get_structured_logger(
            "VerificationSession",
            parent_work_id=work.id,
            correlation_id=get_correlation_id(),
        )

    @property
    def parent_work_id(self) -> str:
        return self.work.id

    # ── Batch entry point ────────────────────────────────────────────────

    async def run(self, transcript: list[TranscriptUnit]) -> SessionResult:
        """Verify every qualifying claim of a complete transcript.

        A work that is already completed or failed is not re-run: the
        persisted outcome is returned unchanged.
        """
        started = time.monotonic()
        skipped = 0
        try:
            await self.ensure_registered()
            if self.status.is_terminal:
                self._logger.info("session_already_terminal", status=self.status.value)
                return await self._existing_result()

            await self.transition(WorkStatus.EXTRACTING, progress_pct=0.0)
            candidates, skipped = self.extract(transcript)
            claims = await self.select_new(candidates)
            self._logger.info(
                "claims_selected",
                units=len(transcript),
                skipped_units=skipped,
                candidates=len(candidates),
                qualifying=len(claims),
            )

            if claims:
                await self.transition(WorkStatus.VERIFYING, progress_pct=0.0)
                await self._verify_all(claims)

            await self.transition(WorkStatus.FINALIZING)
            verdicts = await self.persist(self.store.list_verdicts, self.work.id)
            stats = WorkStats.from_verdicts(verdicts)
            stats.duration_ms = int((time.monotonic() - started) * 1000)
            await self.transition(WorkStatus.COMPLETED, progress_pct=100.0, stats=stats)

            self._logger.info(
                "session_completed",
                verdicts=stats.total_claims,
                flagged=stats.flagged_claims,
                duration_ms=stats.duration_ms,
            )
            return SessionResult(
                parent_work_id=self.work.id,
                status=self.status,
                verdicts=verdicts,
                stats=stats,
                skipped_units=skipped,
            )
        except asyncio.CancelledError:
            await self.fail("cancelled")
            raise
        except PersistenceFailure as e:
            message = f"Persistence unavailable after {self.persistence_attempts} attempts: {e}"
            await self.fail(message)
            return self._failed_result(message, skipped)
        except Exception as e:
            message = f"{type(e).__name__}: {e}"
            await self.fail(message)
            return self._failed_result(message, skipped)

    # ── Building blocks shared with the live loop ────────────────────────

    async def ensure_registered(self) -> None:
        """Save the work if the store has never seen it; adopt persisted status otherwise."""
        if self._registered:
            return
        persisted = await self.persist(self.store.load_parent_work, self.work.id)
        if persisted is None:
            await self.persist(self.store.save_parent_work, self.work)
        else:
            self.status = persisted.status
            self.progress_pct = persisted.progress_pct
            self.work.status = persisted.status
        self._registered = True

    def extract_unit(self, unit: TranscriptUnit) -> list[ClaimCandidate]:
        """Extract candidates from one unit.

        Raises:
            ExtractionFailure: Unit could not be processed; callers skip it.
        """
        return self.extractor.extract(unit.text, unit.start_offset_ms, unit.end_offset_ms)

    def extract(
        self, transcript: list[TranscriptUnit]
    ) -> tuple[list[ClaimCandidate], int]:
        """Extract candidates from all units in offset order.

        Returns:
            (candidates de-duplicated by claim hash, number of skipped units)
        """
        units = sorted(transcript, key=lambda u: (u.start_offset_ms, u.end_offset_ms))
        merged: dict[str, ClaimCandidate] = {}
        skipped = 0
        for unit in units:
            try:
                found = self.extract_unit(unit)
            except ExtractionFailure as e:
                skipped += 1
                self._logger.warning(
                    "unit_skipped",
                    start_offset_ms=unit.start_offset_ms,
                    error=str(e),
                )
                continue
            for candidate in found:
                existing = merged.get(candidate.claim_hash)
                if existing is None:
                    merged[candidate.claim_hash] = candidate
                elif candidate.importance > existing.importance:
                    merged[candidate.claim_hash] = existing.model_copy(
                        update={"importance": candidate.importance}
                    )
        return list(merged.values()), skipped

    def qualifies(self, claim: ClaimCandidate) -> bool:
        return claim.importance >= self.importance_threshold

    async def select_new(self, candidates: list[ClaimCandidate]) -> list[ClaimCandidate]:
        """Qualifying candidates with no persisted verdict for this work."""
        selected = []
        for claim in candidates:
            if not self.qualifies(claim):
                continue
            if await self.persist(self.store.has_verdict, self.work.id, claim.claim_hash):
                self._logger.debug("claim_already_verified", claim_id=claim.id)
                continue
            selected.append(claim)
        return selected

    async def verify_claim(
        self,
        claim: ClaimCandidate,
        on_start: Optional[Callable[[], None]] = None,
    ) -> Verdict:
        """Check one claim under this session's worker semaphore.

        Args:
            claim: Claim to check.
            on_start: Called once a worker slot has been acquired.

        Returns:
            The persisted verdict (the existing one if the claim was
            already verified for this work).

        Raises:
            PersistenceFailure: If saving the verdict failed after all retries.
        """
        async with self.semaphore:
            if on_start is not None:
                on_start()
            return await self._check(claim)

    async def transition(
        self,
        target: WorkStatus,
        progress_pct: Optional[float] = None,
        **fields: Any,
    ) -> None:
        """Validate and persist a status change.

        Raises:
            InvalidTransition: On a backward move or out of a terminal state.
            PersistenceFailure: If the status write failed after all retries.
        """
        new_status = advance(self.status, target)
        progress = self.progress_pct if progress_pct is None else progress_pct
        await self.persist(
            self.store.save_parent_work_status,
            self.work.id,
            new_status,
            progress,
            **fields,
        )
        if new_status != self.status:
            self._logger.info(
                "status_changed",
                previous=self.status.value,
                status=new_status.value,
                progress_pct=round(progress, 1),
            )
        self.status = new_status
        self.progress_pct = progress
        self.work.status = new_status
        self.work.progress_pct = progress

    async def fail(self, message: str) -> None:
        """Move to failed with a diagnostic. Never raises."""
        if self.status.is_terminal:
            return
        self._logger.error("session_failed", status=self.status.value, error=message)
        try:
            await self.transition(WorkStatus.FAILED, error_message=message)
        except Exception as e:
            # Store unreachable: keep the in-memory state consistent regardless
            self._logger.error("failure_not_persisted", error=str(e))
            self.status = WorkStatus.FAILED
            self.work.status = WorkStatus.FAILED
            self.work.error_message = message
        else:
            self.work.error_message = message

    async def persist(self, operation: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Run a store call, retrying PersistenceFailure with exponential backoff."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.persistence_attempts),
            wait=wait_exponential(multiplier=self.persistence_backoff, max=30),
            retry=retry_if_exception_type(PersistenceFailure),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                return await operation(*args, **kwargs)

    # ── Internals ────────────────────────────────────────────────────────

    async def _verify_all(self, claims: list[ClaimCandidate]) -> list[Verdict]:
        total = len(claims)
        completed = 0

        async def check_and_report(claim: ClaimCandidate) -> Verdict:
            nonlocal completed
            verdict = await self.verify_claim(claim)
            completed += 1
            await self.transition(WorkStatus.VERIFYING, progress_pct=100.0 * completed / total)
            return verdict

        results = await asyncio.gather(
            *[check_and_report(claim) for claim in claims],
            return_exceptions=True,
        )
        verdicts = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            verdicts.append(result)
        return verdicts

    async def _check(self, claim: ClaimCandidate) -> Verdict:
        log = self._logger.bind(claim_id=claim.id)
        try:
            sources = await self.gateway.search(
                claim.text, types=self.source_types, limit=self.source_limit
            )
        except Exception as e:
            log.warning("source_search_failed", error_type=type(e).__name__, error=str(e))
            sources = []

        verdict = await self.synthesizer.synthesize(claim, sources, self.work.id)
        stored = await self.persist(self.store.save_verdict, verdict)
        if not stored:
            log.info("verdict_deduplicated")
            existing = await self.persist(self.store.get_verdict, self.work.id, claim.claim_hash)
            return existing or verdict

        log.info(
            "claim_verified",
            label=verdict.label.value,
            confidence=verdict.confidence,
            sources=len(sources),
            flagged=verdict.is_flagged,
        )
        if self.verdict_callback is not None:
            try:
                await self.verdict_callback(verdict)
            except Exception as e:
                log.warning("verdict_callback_failed", error=str(e))
        return verdict

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self._logger.warning(
            "persistence_retry",
            attempt=retry_state.attempt_number,
            max_attempts=self.persistence_attempts,
            error=str(error),
        )

    async def _existing_result(self) -> SessionResult:
        verdicts = await self.persist(self.store.list_verdicts, self.work.id)
        persisted = await self.persist(self.store.load_parent_work, self.work.id)
        return SessionResult(
            parent_work_id=self.work.id,
            status=self.status,
            verdicts=verdicts,
            stats=persisted.stats if persisted else WorkStats.from_verdicts(verdicts),
            error_message=persisted.error_message if persisted else None,
        )

    def _failed_result(self, message: str, skipped: int) -> SessionResult:
        return SessionResult(
            parent_work_id=self.work.id,
            status=self.status,
            skipped_units=skipped,
            error_message=message,
        )
