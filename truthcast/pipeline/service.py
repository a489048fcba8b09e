"""Verification service: entry points for the API and worker layers.

One VerificationService per process. It owns the shared components (source
gateway, synthesizer, store) and one SessionHandle per active ParentWork:
- podcast works run as a batch task (transcribed first when no transcript
  is supplied)
- live session works are driven by submit_segment / end_live_session

Usage:
    service = build_service()
    handle = await service.start_verification(PodcastWork(owner_id="u1"), transcript)
    result = await handle.wait()
    report = await service.get_status(handle.parent_work_id)
"""

import asyncio
from typing import Optional, Protocol, Union, runtime_checkable

from truthcast.config.logging import configure_logging
from truthcast.config.prompts import STANCE_SYSTEM_PROMPT
from truthcast.config.settings import Settings
from truthcast.config.settings import settings as default_settings
from truthcast.data_management.schemas import (
    ClaimCandidate,
    OwnerSummary,
    ParentWorkBase,
    PodcastWork,
    SourceType,
    StatusReport,
    TranscriptUnit,
    Verdict,
    WorkStats,
    WorkStatus,
)
from truthcast.data_management.verification_store import VerificationStore
from truthcast.llm.gemini_client import GeminiClient
from truthcast.llm.rate_limiter import RateLimiter
from truthcast.pipeline.live_adapter import LiveSessionResult, LiveVerificationLoop
from truthcast.pipeline.verification_session import (
    SessionResult,
    VerdictCallback,
    VerificationSession,
)
from truthcast.utils.logging import configure_structured_logging, get_structured_logger
from truthcast.verification.claim_extractor import ClaimExtractor, HeuristicClaimExtractor
from truthcast.verification.credibility import CredibilityScorer
from truthcast.verification.errors import ExtractionFailure, WorkNotFound
from truthcast.verification.search_providers import (
    NewsApiProvider,
    SearchProvider,
    SerperProvider,
)
from truthcast.verification.source_gateway import SourceGateway
from truthcast.verification.stance_judge import (
    GeminiStanceJudge,
    LexicalStanceJudge,
    StanceJudge,
)
from truthcast.verification.verdict_synthesizer import VerdictSynthesizer

ADHOC_WORK_ID = "adhoc"


@runtime_checkable
class Transcriber(Protocol):
    """Speech-to-text collaborator for uploaded recordings."""

    async def transcribe(self, work: PodcastWork) -> list[TranscriptUnit]:
        ...


class SessionHandle:
    """Caller-facing handle on one running ParentWork.

    Batch works wrap an asyncio task; live works wrap a LiveVerificationLoop
    and resolve once the session is ended.
    """

    def __init__(
        self,
        session: VerificationSession,
        task: Optional[asyncio.Task] = None,
        live: Optional[LiveVerificationLoop] = None,
    ) -> None:
        self.session = session
        self.task = task
        self.live = live
        self._live_result: "asyncio.Future[LiveSessionResult]" = (
            asyncio.get_running_loop().create_future()
        )
        self._cancel_task: Optional[asyncio.Task] = None

    @property
    def parent_work_id(self) -> str:
        return self.session.parent_work_id

    @property
    def kind(self) -> str:
        return self.session.work.kind

    @property
    def is_live(self) -> bool:
        return self.live is not None

    @property
    def status(self) -> WorkStatus:
        return self.session.status

    @property
    def progress_pct(self) -> float:
        return self.session.progress_pct

    def done(self) -> bool:
        if self.task is not None:
            return self.task.done()
        return self._live_result.done()

    async def wait(self) -> Union[SessionResult, LiveSessionResult]:
        """Wait for the batch run, or for the live session to be ended."""
        if self.task is not None:
            return await self.task
        return await asyncio.shield(self._live_result)

    def cancel(self) -> None:
        """Cancel the run; the work is marked failed ("cancelled")."""
        if self.task is not None:
            self.task.cancel()
        elif self.live is not None and not self.done():
            self._cancel_task = asyncio.create_task(self.cancel_and_wait())

    def resolve(self, result: LiveSessionResult) -> None:
        if not self._live_result.done():
            self._live_result.set_result(result)

    async def cancel_and_wait(self) -> None:
        """Cancel the run and wait until the work is marked failed."""
        if self.task is not None:
            self.task.cancel()
            await asyncio.gather(self.task, return_exceptions=True)
            return
        if self.done():
            return
        await self.live.cancel()
        self.resolve(
            LiveSessionResult(
                parent_work_id=self.parent_work_id,
                status=self.session.status,
                stats=self.live.stats,
                error_message=self.session.work.error_message,
            )
        )


class VerificationService:
    """Starts, drives and reports on verification sessions."""

    def __init__(
        self,
        *,
        extractor: ClaimExtractor,
        gateway: SourceGateway,
        synthesizer: VerdictSynthesizer,
        store: VerificationStore,
        transcriber: Optional[Transcriber] = None,
        importance_threshold: int = 6,
        max_workers: int = 4,
        source_types: Optional[set[SourceType]] = None,
        source_limit: Optional[int] = None,
        persistence_attempts: int = 3,
        persistence_backoff: float = 0.5,
        live_grace_timeout: float = 10.0,
        verdict_callback: Optional[VerdictCallback] = None,
    ) -> None:
        self.extractor = extractor
        self.gateway = gateway
        self.synthesizer = synthesizer
        self.store = store
        self.transcriber = transcriber
        self.importance_threshold = importance_threshold
        self.max_workers = max_workers
        self.source_types = source_types
        self.source_limit = source_limit
        self.persistence_attempts = persistence_attempts
        self.persistence_backoff = persistence_backoff
        self.live_grace_timeout = live_grace_timeout
        self.verdict_callback = verdict_callback

        self._handles: dict[str, SessionHandle] = {}
        self._logger = get_structured_logger("VerificationService")

    async def start_verification(
        self,
        work: ParentWorkBase,
        transcript: Optional[list[TranscriptUnit]] = None,
    ) -> SessionHandle:
        """Start verifying a ParentWork.

        Podcast works run in a background task; live works return a handle
        that accepts segments via submit_segment. Starting a work that
        already has an active handle returns that handle.

        Raises:
            PersistenceFailure: If the work could not be registered.
        """
        existing = self._handles.get(work.id)
        if existing is not None and not existing.done():
            return existing

        session = self._new_session(work)
        await session.ensure_registered()

        if work.kind == "live_session":
            loop = LiveVerificationLoop(session, grace_timeout=self.live_grace_timeout)
            handle = SessionHandle(session, live=loop)
        else:
            task = asyncio.create_task(
                self._run_batch(session, transcript), name=f"session-{work.id}"
            )
            handle = SessionHandle(session, task=task)

        self._handles[work.id] = handle
        self._logger.info(
            "verification_started",
            parent_work_id=work.id,
            kind=work.kind,
            owner_id=work.owner_id,
        )
        return handle

    async def submit_segment(
        self, session_id: str, unit: TranscriptUnit
    ) -> list[ClaimCandidate]:
        """Push one transcript unit into a live session.

        Raises:
            WorkNotFound: No active live session with this id.
            SessionClosed: The session was ended.
        """
        handle = self._live_handle(session_id)
        return await handle.live.on_segment(unit)

    async def end_live_session(
        self, session_id: str, grace_timeout: Optional[float] = None
    ) -> LiveSessionResult:
        """End a live session and return its final result."""
        handle = self._live_handle(session_id)
        result = await handle.live.end(grace_timeout)
        handle.resolve(result)
        return result

    async def get_status(self, parent_work_id: str) -> StatusReport:
        """Current status, progress and verdict summary of a ParentWork.

        Raises:
            WorkNotFound: If neither a handle nor a stored record exists.
        """
        handle = self._handles.get(parent_work_id)
        if handle is not None and handle.is_live and not handle.done():
            work = handle.session.work
            return StatusReport(
                parent_work_id=parent_work_id,
                kind=work.kind,
                status=handle.status,
                progress_pct=handle.progress_pct,
                verdict_summary=handle.live.stats,
                error_message=work.error_message,
            )

        work = await self.store.load_parent_work(parent_work_id)
        if work is None and handle is not None:
            work = handle.session.work
        if work is None:
            raise WorkNotFound(parent_work_id)

        summary = work.stats
        if not work.status.is_terminal:
            summary = WorkStats.from_verdicts(await self.store.list_verdicts(parent_work_id))
        return StatusReport(
            parent_work_id=parent_work_id,
            kind=work.kind,
            status=work.status,
            progress_pct=work.progress_pct,
            verdict_summary=summary,
            error_message=work.error_message,
        )

    async def check_claim(self, text: str, context: str = "") -> Verdict:
        """Verify one ad-hoc claim without persisting it.

        Raises:
            ExtractionFailure: If the text is empty.
        """
        if not isinstance(text, str) or not text.strip():
            raise ExtractionFailure("Claim text is empty")
        claim = ClaimCandidate.from_text(text.strip(), importance=10, context=context)
        sources = await self.gateway.search(
            claim.text, types=self.source_types, limit=self.source_limit
        )
        verdict = await self.synthesizer.synthesize(claim, sources, ADHOC_WORK_ID)
        self._logger.info(
            "adhoc_claim_checked",
            claim_id=claim.id,
            label=verdict.label.value,
            confidence=verdict.confidence,
        )
        return verdict

    async def get_owner_summary(self, owner_id: str) -> OwnerSummary:
        """Aggregate verdict statistics across every work of one owner."""
        summary = OwnerSummary(owner_id=owner_id)
        for work in await self.store.list_parent_works(owner_id=owner_id):
            handle = self._handles.get(work.id)
            if handle is not None and handle.is_live and not handle.done():
                work.stats = handle.live.stats
            summary.add(work)
        return summary

    async def shutdown(self) -> None:
        """Cancel every active session and close provider connections."""
        active = [h for h in self._handles.values() if not h.done()]
        if active:
            await asyncio.gather(
                *(h.cancel_and_wait() for h in active), return_exceptions=True
            )
        await self.gateway.close()
        self._logger.info("service_shutdown", cancelled=len(active))

    def _new_session(self, work: ParentWorkBase) -> VerificationSession:
        return VerificationSession(
            work,
            extractor=self.extractor,
            gateway=self.gateway,
            synthesizer=self.synthesizer,
            store=self.store,
            importance_threshold=self.importance_threshold,
            max_workers=self.max_workers,
            source_types=self.source_types,
            source_limit=self.source_limit,
            persistence_attempts=self.persistence_attempts,
            persistence_backoff=self.persistence_backoff,
            verdict_callback=self.verdict_callback,
        )

    async def _run_batch(
        self,
        session: VerificationSession,
        transcript: Optional[list[TranscriptUnit]],
    ) -> SessionResult:
        if transcript is None:
            try:
                if self.transcriber is None:
                    raise RuntimeError("no transcript supplied and no transcriber configured")
                transcript = await self.transcriber.transcribe(session.work)
            except asyncio.CancelledError:
                await session.fail("cancelled")
                raise
            except Exception as e:
                message = f"Transcription failed: {e}"
                await session.fail(message)
                return SessionResult(
                    parent_work_id=session.parent_work_id,
                    status=session.status,
                    error_message=message,
                )
        return await session.run(transcript)

    def _live_handle(self, session_id: str) -> SessionHandle:
        handle = self._handles.get(session_id)
        if handle is None or not handle.is_live:
            raise WorkNotFound(session_id, f"No live session: {session_id}")
        return handle


def build_service(
    settings: Optional[Settings] = None,
    providers: Optional[list[SearchProvider]] = None,
    judge: Optional[StanceJudge] = None,
    transcriber: Optional[Transcriber] = None,
) -> VerificationService:
    """Wire a VerificationService from settings.

    Search providers are registered for every configured API key; the
    Gemini judge is used when GEMINI_API_KEY is set, the lexical judge
    otherwise.
    """
    settings = settings or default_settings

    configure_logging(settings.log_level, settings.log_format)
    configure_structured_logging(settings.log_level, settings.log_format)

    if providers is None:
        providers = []
        if settings.news_api_key:
            providers.append(NewsApiProvider(settings.news_api_key))
        if settings.serper_api_key:
            providers.extend(
                SerperProvider(settings.serper_api_key, source_type)
                for source_type in (SourceType.ACADEMIC, SourceType.GOVERNMENT)
            )

    if judge is None:
        if settings.gemini_api_key:
            client = GeminiClient(
                settings.gemini_api_key,
                model_name=settings.gemini_model,
                system_instruction=STANCE_SYSTEM_PROMPT,
                rate_limiter=RateLimiter(settings.max_rpm, settings.max_tpm),
            )
            judge = GeminiStanceJudge(client)
        else:
            judge = LexicalStanceJudge()

    gateway = SourceGateway(
        providers,
        scorer=CredibilityScorer(),
        provider_timeout=settings.provider_timeout_seconds,
        max_concurrency=settings.gateway_max_concurrency,
        default_limit=settings.source_limit,
    )
    return VerificationService(
        extractor=HeuristicClaimExtractor(),
        gateway=gateway,
        synthesizer=VerdictSynthesizer(judge, flag_threshold=settings.flag_confidence_threshold),
        store=VerificationStore(settings.verification_store_path),
        transcriber=transcriber,
        importance_threshold=settings.importance_threshold,
        max_workers=settings.session_max_workers,
        source_limit=settings.source_limit,
        persistence_attempts=settings.persistence_retry_attempts,
        persistence_backoff=settings.persistence_backoff_seconds,
        live_grace_timeout=settings.live_grace_timeout_seconds,
    )
