"""Tests for the batch VerificationSession.

Tests cover:
- Happy path (status sequence, progress, stats, offsets, worker bound)
- Idempotence (re-run of a finished work, previously verified claims)
- Zero qualifying claims
- Degradation (provider outage, unusable unit)
- Failure (extractor crash, persistence exhaustion, retried writes, cancellation)
- Verdict callback
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from truthcast.data_management.schemas import (
    ClaimCandidate,
    PodcastWork,
    SourceType,
    TranscriptUnit,
    VerdictLabel,
    WorkStatus,
)
from truthcast.data_management.verification_store import VerificationStore
from truthcast.pipeline.verification_session import VerificationSession
from truthcast.verification.claim_extractor import HeuristicClaimExtractor
from truthcast.verification.errors import ExtractionFailure, PersistenceFailure
from truthcast.verification.search_providers import RawSearchResult, StaticSearchProvider
from truthcast.verification.source_gateway import SourceGateway
from truthcast.verification.stance_judge import LexicalStanceJudge
from truthcast.verification.verdict_synthesizer import VerdictSynthesizer
from truthcast.verification.errors import ProviderUnavailable


CLIMATE = "Global temperatures have risen by 1.1°C since pre-industrial times."
PARIS = "The Paris Agreement was signed in 2015 by 196 parties."


# ── Helpers ──────────────────────────────────────────────────────────────


class RecordingStore(VerificationStore):
    """In-memory store recording every status write."""

    def __init__(self) -> None:
        super().__init__()
        self.status_log: list[tuple[WorkStatus, float]] = []

    async def save_parent_work_status(self, parent_work_id, status, progress_pct, **kwargs):
        self.status_log.append((status, progress_pct))
        await super().save_parent_work_status(parent_work_id, status, progress_pct, **kwargs)

    def statuses(self) -> list[WorkStatus]:
        collapsed: list[WorkStatus] = []
        for status, _ in self.status_log:
            if not collapsed or collapsed[-1] != status:
                collapsed.append(status)
        return collapsed


class FlakyStore(RecordingStore):
    """Store whose verdict writes fail ``failures`` times before succeeding."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.save_attempts = 0

    async def save_verdict(self, verdict):
        self.save_attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceFailure("disk full")
        return await super().save_verdict(verdict)


class FlakyFileStore(VerificationStore):
    """File-backed store whose first verdict file writes fail."""

    def __init__(self, path, verdict_write_failures: int) -> None:
        super().__init__(persistence_path=str(path))
        self.verdict_write_failures = verdict_write_failures
        self._writing_verdict = False

    async def save_verdict(self, verdict):
        self._writing_verdict = True
        try:
            return await super().save_verdict(verdict)
        finally:
            self._writing_verdict = False

    def _save_to_file(self) -> None:
        if self._writing_verdict and self.verdict_write_failures > 0:
            self.verdict_write_failures -= 1
            raise PersistenceFailure("disk full")
        super()._save_to_file()


class PeakProvider(StaticSearchProvider):
    """Static provider recording the peak number of concurrent searches."""

    def __init__(self, delay: float) -> None:
        super().__init__("news", SourceType.NEWS, delay=delay)
        self.in_flight = 0
        self.peak = 0

    async def search(self, query, limit):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            return await super().search(query, limit)
        finally:
            self.in_flight -= 1


def _provider(**kwargs) -> StaticSearchProvider:
    results = [
        RawSearchResult(
            title="Climate data",
            url="https://www.reuters.com/climate",
            snippet="Data show global temperatures have risen 1.1°C since pre-industrial times.",
        ),
        RawSearchResult(
            title="Global temperature",
            url="https://www.nasa.gov/temperature",
            snippet="NASA measured that global temperatures have risen 1.1°C since pre-industrial times.",
        ),
    ]
    return StaticSearchProvider("news", SourceType.NEWS, results, **kwargs)


def _transcript() -> list[TranscriptUnit]:
    return [
        TranscriptUnit(text="Hello everyone and welcome back to the show.", start_offset_ms=0, end_offset_ms=5000),
        TranscriptUnit(text=CLIMATE, start_offset_ms=5000, end_offset_ms=10000),
        TranscriptUnit(text="I think that was a really fun conversation today.", start_offset_ms=10000, end_offset_ms=15000),
        TranscriptUnit(text=PARIS, start_offset_ms=15000, end_offset_ms=20000),
    ]


def _session(work, store, provider=None, extractor=None, **kwargs) -> VerificationSession:
    return VerificationSession(
        work,
        extractor=extractor or HeuristicClaimExtractor(),
        gateway=SourceGateway([provider or _provider()]),
        synthesizer=VerdictSynthesizer(LexicalStanceJudge()),
        store=store,
        persistence_backoff=0.0,
        **kwargs,
    )


@pytest.fixture
def work() -> PodcastWork:
    return PodcastWork(id="podcast-1", owner_id="user-1", title="Episode 1")


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


# ── Happy path ────────────────────────────────────────────────────────────


class TestRun:
    @pytest.mark.asyncio
    async def test_completes_with_verdicts(self, work, store):
        result = await _session(work, store).run(_transcript())

        assert result.status == WorkStatus.COMPLETED
        assert result.error_message is None
        assert {v.claim_text for v in result.verdicts} == {CLIMATE, PARIS}

        climate = next(v for v in result.verdicts if v.claim_text == CLIMATE)
        assert climate.label == VerdictLabel.VERIFIED
        assert climate.origin_offset_ms == 5000

        persisted = await store.load_parent_work("podcast-1")
        assert persisted.status == WorkStatus.COMPLETED
        assert persisted.progress_pct == 100.0
        assert persisted.stats.total_claims == 2
        assert result.stats.total_claims == 2

    @pytest.mark.asyncio
    async def test_status_sequence(self, work, store):
        await _session(work, store).run(_transcript())
        assert store.statuses() == [
            WorkStatus.EXTRACTING,
            WorkStatus.VERIFYING,
            WorkStatus.FINALIZING,
            WorkStatus.COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, work, store):
        await _session(work, store).run(_transcript())
        progress = [p for _, p in store.status_log]
        assert progress == sorted(progress)
        assert progress[-1] == 100.0
        assert 50.0 in progress

    @pytest.mark.asyncio
    async def test_importance_threshold_is_configurable(self, work, store):
        result = await _session(work, store, importance_threshold=1).run(_transcript())
        assert len(result.verdicts) == 4

    @pytest.mark.asyncio
    async def test_verdict_callback(self, work, store):
        callback = AsyncMock()
        await _session(work, store, verdict_callback=callback).run(_transcript())
        assert callback.await_count == 2

    @pytest.mark.asyncio
    async def test_worker_pool_bounds_concurrent_checks(self, work, store):
        provider = PeakProvider(delay=0.05)
        session = _session(work, store, provider=provider, max_workers=2, importance_threshold=1)

        result = await session.run(_transcript())

        assert result.status == WorkStatus.COMPLETED
        assert len(provider.calls) == 4
        assert provider.peak == 2
        assert len(await store.list_verdicts("podcast-1")) == 4

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_fail_session(self, work, store):
        callback = AsyncMock(side_effect=RuntimeError("websocket gone"))
        result = await _session(work, store, verdict_callback=callback).run(_transcript())
        assert result.status == WorkStatus.COMPLETED


# ── Idempotence ───────────────────────────────────────────────────────────


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_rerun_of_completed_work_adds_nothing(self, work, store):
        provider = _provider()
        await _session(work, store, provider=provider).run(_transcript())
        calls_after_first = len(provider.calls)

        again = PodcastWork(id="podcast-1", owner_id="user-1")
        result = await _session(again, store, provider=provider).run(_transcript())

        assert result.status == WorkStatus.COMPLETED
        assert len(await store.list_verdicts("podcast-1")) == 2
        assert len(provider.calls) == calls_after_first

    @pytest.mark.asyncio
    async def test_previously_verified_claim_skipped(self, work, store):
        provider = _provider()
        first = _session(work, store, provider=provider)
        await first.ensure_registered()
        claim = ClaimCandidate.from_text(CLIMATE, importance=9)
        await first.verify_claim(claim)
        provider.calls.clear()

        result = await _session(work, store, provider=provider).run(_transcript())

        assert result.status == WorkStatus.COMPLETED
        assert provider.calls == [PARIS]
        assert len(await store.list_verdicts("podcast-1")) == 2

    @pytest.mark.asyncio
    async def test_duplicate_claims_across_units_checked_once(self, work, store):
        provider = _provider()
        transcript = [
            TranscriptUnit(text=CLIMATE, start_offset_ms=0, end_offset_ms=4000),
            TranscriptUnit(text=CLIMATE.lower(), start_offset_ms=4000, end_offset_ms=8000),
        ]
        result = await _session(work, store, provider=provider).run(transcript)

        assert len(result.verdicts) == 1
        assert result.verdicts[0].origin_offset_ms == 0
        assert len(provider.calls) == 1


# ── Degradation ───────────────────────────────────────────────────────────


class TestDegradation:
    @pytest.mark.asyncio
    async def test_zero_qualifying_claims(self, work, store):
        provider = _provider()
        transcript = [
            TranscriptUnit(text="Hello everyone and welcome back to the show.", start_offset_ms=0, end_offset_ms=5000),
        ]
        result = await _session(work, store, provider=provider).run(transcript)

        assert result.status == WorkStatus.COMPLETED
        assert result.verdicts == []
        assert provider.calls == []
        assert store.statuses() == [
            WorkStatus.EXTRACTING,
            WorkStatus.FINALIZING,
            WorkStatus.COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_provider_outage_gives_uncertain_verdicts(self, work, store):
        provider = _provider(error=ProviderUnavailable("news", "HTTP error 503"))
        result = await _session(work, store, provider=provider).run(_transcript())

        assert result.status == WorkStatus.COMPLETED
        assert len(result.verdicts) == 2
        assert all(v.label == VerdictLabel.UNCERTAIN for v in result.verdicts)
        assert all(v.confidence == 0 for v in result.verdicts)

    @pytest.mark.asyncio
    async def test_unusable_unit_skipped(self, work, store):
        real = HeuristicClaimExtractor()

        def extract(text, start_offset_ms=0, end_offset_ms=None):
            if text == PARIS:
                raise ExtractionFailure("garbled unit")
            return real.extract(text, start_offset_ms, end_offset_ms)

        extractor = MagicMock()
        extractor.extract.side_effect = extract

        result = await _session(work, store, extractor=extractor).run(_transcript())

        assert result.status == WorkStatus.COMPLETED
        assert result.skipped_units == 1
        assert [v.claim_text for v in result.verdicts] == [CLIMATE]


# ── Failure ───────────────────────────────────────────────────────────────


class TestFailure:
    @pytest.mark.asyncio
    async def test_extractor_crash_fails_session(self, work, store):
        extractor = MagicMock()
        extractor.extract.side_effect = RuntimeError("model weights missing")

        result = await _session(work, store, extractor=extractor).run(_transcript())

        assert result.status == WorkStatus.FAILED
        assert "model weights missing" in result.error_message
        persisted = await store.load_parent_work("podcast-1")
        assert persisted.status == WorkStatus.FAILED
        assert "model weights missing" in persisted.error_message

    @pytest.mark.asyncio
    async def test_persistence_exhaustion_fails_session(self, work):
        store = FlakyStore(failures=100)
        transcript = [TranscriptUnit(text=CLIMATE, start_offset_ms=0, end_offset_ms=5000)]

        result = await _session(work, store, persistence_attempts=2).run(transcript)

        assert result.status == WorkStatus.FAILED
        assert "after 2 attempts" in result.error_message
        assert store.save_attempts == 2
        assert store.statuses()[-1] == WorkStatus.FAILED

    @pytest.mark.asyncio
    async def test_transient_persistence_failure_retried(self, work):
        store = FlakyStore(failures=1)
        transcript = [TranscriptUnit(text=CLIMATE, start_offset_ms=0, end_offset_ms=5000)]

        result = await _session(work, store, persistence_attempts=3).run(transcript)

        assert result.status == WorkStatus.COMPLETED
        assert len(await store.list_verdicts("podcast-1")) == 1

    @pytest.mark.asyncio
    async def test_retried_file_write_reports_verdict_once(self, work, tmp_path):
        store = FlakyFileStore(tmp_path / "verdicts.json", verdict_write_failures=1)
        callback = AsyncMock()
        transcript = [TranscriptUnit(text=CLIMATE, start_offset_ms=0, end_offset_ms=5000)]

        result = await _session(
            work, store, persistence_attempts=3, verdict_callback=callback
        ).run(transcript)

        assert result.status == WorkStatus.COMPLETED
        assert callback.await_count == 1
        reloaded = VerificationStore(persistence_path=str(tmp_path / "verdicts.json"))
        assert len(await reloaded.list_verdicts("podcast-1")) == 1

    @pytest.mark.asyncio
    async def test_failed_work_not_rerun(self, work, store):
        extractor = MagicMock()
        extractor.extract.side_effect = RuntimeError("crash")
        await _session(work, store, extractor=extractor).run(_transcript())

        result = await _session(work, store).run(_transcript())

        assert result.status == WorkStatus.FAILED
        assert await store.list_verdicts("podcast-1") == []

    @pytest.mark.asyncio
    async def test_cancellation_marks_failed(self, work, store):
        session = _session(work, store, provider=_provider(delay=5.0))
        task = asyncio.create_task(session.run(_transcript()))
        await asyncio.sleep(0.1)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        persisted = await store.load_parent_work("podcast-1")
        assert persisted.status == WorkStatus.FAILED
        assert persisted.error_message == "cancelled"
