"""Tests for VerdictSynthesizer aggregation.

Tests cover:
- Agreeing high-credibility sources -> verified, high confidence
- High-credibility dispute outweighing a weak support -> disputed/partial, flagged
- Degradation (no sources, reasoning outage, irrelevant sources)
- Label rules (only disputes, mixed dominant, neutral only)
- Confidence properties (low-evidence cap, clamping)
- Explanation citations
"""

from unittest.mock import AsyncMock

import pytest

from truthcast.data_management.schemas import (
    ClaimCandidate,
    Source,
    SourceType,
    Stance,
    VerdictLabel,
)
from truthcast.verification.errors import SynthesisUnavailable
from truthcast.verification.stance_judge import StanceJudgement
from truthcast.verification.verdict_synthesizer import VerdictSynthesizer


CLAIM_TEXT = "Global temperatures have risen by 1.1°C since pre-industrial times."


# ── Helpers ──────────────────────────────────────────────────────────────


class ScriptedJudge:
    """Judge answering by excerpt; exceptions in the script are raised."""

    def __init__(self, answers: dict) -> None:
        self.answers = answers
        self.calls: list[str] = []

    async def judge(self, claim: str, excerpt: str) -> StanceJudgement:
        self.calls.append(excerpt)
        answer = self.answers[excerpt]
        if isinstance(answer, Exception):
            raise answer
        return answer


def _source(domain: str, credibility: int, excerpt: str) -> Source:
    return Source(
        id=f"src-{domain}",
        title=f"{domain} article",
        url=f"https://{domain}/article",
        domain=domain,
        source_type=SourceType.NEWS,
        credibility_score=credibility,
        relevance_score=80,
        excerpt=excerpt,
        provider="static",
    )


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def claim() -> ClaimCandidate:
    return ClaimCandidate.from_text(CLAIM_TEXT, importance=9, origin_offset_ms=5000)


# ── Scenarios ─────────────────────────────────────────────────────────────


class TestScenarios:
    @pytest.mark.asyncio
    async def test_two_credible_supports_verified(self, claim):
        judge = ScriptedJudge({
            "NOAA: warming of about 1.1C since 1880.": StanceJudgement(Stance.SUPPORTS, 90),
            "Reuters: planet 1.1C warmer than pre-industrial era.": StanceJudgement(Stance.SUPPORTS, 88),
        })
        sources = [
            _source("noaa.gov", 93, "NOAA: warming of about 1.1C since 1880."),
            _source("reuters.com", 95, "Reuters: planet 1.1C warmer than pre-industrial era."),
        ]
        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label == VerdictLabel.VERIFIED
        assert verdict.confidence >= 85
        assert verdict.is_flagged is False
        assert len(verdict.perspectives) == 2
        assert verdict.claim_id == claim.id
        assert verdict.parent_work_id == "podcast-1"
        assert verdict.origin_offset_ms == 5000

    @pytest.mark.asyncio
    async def test_credible_dispute_outweighs_weak_support(self, claim):
        judge = ScriptedJudge({
            "blog says yes": StanceJudgement(Stance.SUPPORTS, 80),
            "agency says no": StanceJudgement(Stance.DISPUTES, 90),
        })
        sources = [
            _source("someblog.net", 60, "blog says yes"),
            _source("nasa.gov", 95, "agency says no"),
        ]
        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label in {VerdictLabel.DISPUTED, VerdictLabel.PARTIAL}
        assert verdict.is_flagged is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("support_relevance", [20, 30, 50, 80])
    async def test_weak_support_never_makes_credible_dispute_false(self, claim, support_relevance):
        judge = ScriptedJudge({
            "blog says yes": StanceJudgement(Stance.SUPPORTS, support_relevance),
            "agency says no": StanceJudgement(Stance.DISPUTES, 90),
        })
        sources = [
            _source("someblog.net", 60, "blog says yes"),
            _source("nasa.gov", 95, "agency says no"),
        ]
        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label in {VerdictLabel.DISPUTED, VerdictLabel.PARTIAL}
        assert len(verdict.perspectives) == 2


# ── Degradation ───────────────────────────────────────────────────────────


class TestDegradation:
    @pytest.mark.asyncio
    async def test_no_sources_uncertain(self, claim):
        judge = AsyncMock()
        verdict = await VerdictSynthesizer(judge).synthesize(claim, [], "podcast-1")

        assert verdict.label == VerdictLabel.UNCERTAIN
        assert verdict.confidence == 0
        assert verdict.is_flagged is True
        judge.judge.assert_not_called()

    @pytest.mark.asyncio
    async def test_reasoning_unavailable_for_all_sources(self, claim):
        judge = AsyncMock()
        judge.judge.side_effect = SynthesisUnavailable("model offline")
        sources = [_source("reuters.com", 95, "a"), _source("bbc.com", 90, "b")]

        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label == VerdictLabel.UNCERTAIN
        assert verdict.confidence == 0
        assert "unavailable" in verdict.explanation
        assert judge.judge.await_count == 2

    @pytest.mark.asyncio
    async def test_one_judge_failure_drops_only_that_perspective(self, claim):
        judge = ScriptedJudge({
            "ok one": StanceJudgement(Stance.SUPPORTS, 90),
            "ok two": StanceJudgement(Stance.SUPPORTS, 85),
            "broken": SynthesisUnavailable("timeout"),
        })
        sources = [
            _source("reuters.com", 95, "ok one"),
            _source("apnews.com", 95, "ok two"),
            _source("bbc.com", 90, "broken"),
        ]
        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label == VerdictLabel.VERIFIED
        assert len(verdict.perspectives) == 2
        assert "could not be judged" in verdict.explanation

    @pytest.mark.asyncio
    async def test_unexpected_judge_error_never_raises(self, claim):
        judge = AsyncMock()
        judge.judge.side_effect = RuntimeError("boom")
        sources = [_source("reuters.com", 95, "a")]

        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label == VerdictLabel.UNCERTAIN
        assert verdict.confidence == 0

    @pytest.mark.asyncio
    async def test_irrelevant_sources_uncertain(self, claim):
        judge = ScriptedJudge({
            "off topic": StanceJudgement(Stance.SUPPORTS, 5),
            "also off topic": StanceJudgement(Stance.DISPUTES, 10),
        })
        sources = [_source("reuters.com", 95, "off topic"), _source("bbc.com", 90, "also off topic")]

        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label == VerdictLabel.UNCERTAIN
        assert verdict.confidence == 0
        assert len(verdict.perspectives) == 2


# ── Label rules ───────────────────────────────────────────────────────────


class TestLabels:
    @pytest.mark.asyncio
    async def test_only_disputes_false(self, claim):
        judge = ScriptedJudge({
            "no": StanceJudgement(Stance.DISPUTES, 90),
            "nope": StanceJudgement(Stance.DISPUTES, 85),
        })
        sources = [_source("reuters.com", 95, "no"), _source("apnews.com", 95, "nope")]

        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label == VerdictLabel.FALSE
        assert verdict.is_flagged is True

    @pytest.mark.asyncio
    async def test_mixed_dominant_partial(self, claim):
        judge = ScriptedJudge({
            "partly": StanceJudgement(Stance.MIXED, 90),
            "partly again": StanceJudgement(Stance.MIXED, 90),
            "weak yes": StanceJudgement(Stance.SUPPORTS, 30),
        })
        sources = [
            _source("reuters.com", 95, "partly"),
            _source("apnews.com", 95, "partly again"),
            _source("someblog.net", 50, "weak yes"),
        ]
        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label == VerdictLabel.PARTIAL

    @pytest.mark.asyncio
    async def test_neutral_only_uncertain(self, claim):
        judge = ScriptedJudge({
            "mentions topic": StanceJudgement(Stance.NEUTRAL, 70),
            "mentions topic too": StanceJudgement(Stance.NEUTRAL, 70),
        })
        sources = [
            _source("reuters.com", 95, "mentions topic"),
            _source("apnews.com", 95, "mentions topic too"),
        ]
        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label == VerdictLabel.UNCERTAIN
        assert verdict.confidence < 70

    @pytest.mark.parametrize(
        "support,dispute,mixed,expected",
        [
            (0.0, 0.0, 0.0, VerdictLabel.UNCERTAIN),
            (0.9, 0.0, 0.0, VerdictLabel.VERIFIED),
            (0.0, 0.9, 0.0, VerdictLabel.FALSE),
            (0.9, 0.1, 0.0, VerdictLabel.VERIFIED),
            (0.1, 0.9, 0.0, VerdictLabel.PARTIAL),
            (0.5, 0.5, 0.0, VerdictLabel.DISPUTED),
            (0.7, 0.3, 0.0, VerdictLabel.PARTIAL),
            (0.2, 0.2, 0.9, VerdictLabel.PARTIAL),
        ],
    )
    def test_label_rule(self, support, dispute, mixed, expected):
        assert VerdictSynthesizer._label(support, dispute, mixed) == expected


# ── Confidence properties ─────────────────────────────────────────────────


class TestConfidence:
    @pytest.mark.asyncio
    async def test_single_relevant_perspective_capped_below_50(self, claim):
        judge = ScriptedJudge({"yes": StanceJudgement(Stance.SUPPORTS, 100)})
        sources = [_source("reuters.com", 100, "yes")]

        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert verdict.label == VerdictLabel.VERIFIED
        assert verdict.confidence < 50
        assert verdict.is_flagged is True

    @pytest.mark.asyncio
    async def test_confidence_within_bounds(self, claim):
        answers = {f"e{i}": StanceJudgement(Stance.SUPPORTS, 100) for i in range(6)}
        sources = [_source(f"site{i}.gov", 100, f"e{i}") for i in range(6)]

        verdict = await VerdictSynthesizer(ScriptedJudge(answers)).synthesize(
            claim, sources, "podcast-1"
        )

        assert 0 <= verdict.confidence <= 100
        assert verdict.confidence == 100

    @pytest.mark.asyncio
    async def test_flag_threshold_is_configurable(self, claim):
        judge = ScriptedJudge({
            "a": StanceJudgement(Stance.SUPPORTS, 90),
            "b": StanceJudgement(Stance.SUPPORTS, 88),
        })
        sources = [_source("noaa.gov", 93, "a"), _source("reuters.com", 95, "b")]

        verdict = await VerdictSynthesizer(judge, flag_threshold=95).synthesize(
            claim, sources, "podcast-1"
        )

        assert verdict.label == VerdictLabel.VERIFIED
        assert verdict.is_flagged is True


# ── Explanation ───────────────────────────────────────────────────────────


class TestExplanation:
    @pytest.mark.asyncio
    async def test_cites_driving_perspectives(self, claim):
        judge = ScriptedJudge({
            "blog says yes": StanceJudgement(Stance.SUPPORTS, 80),
            "agency says no": StanceJudgement(Stance.DISPUTES, 90),
        })
        sources = [
            _source("someblog.net", 60, "blog says yes"),
            _source("nasa.gov", 95, "agency says no"),
        ]
        verdict = await VerdictSynthesizer(judge).synthesize(claim, sources, "podcast-1")

        assert "nasa.gov disputes" in verdict.explanation
        assert "agency says no" in verdict.explanation
        assert "credibility 95" in verdict.explanation
