"""Relevance- and credibility-weighted verdict synthesis.

Turns one claim plus its ranked sources into a Verdict. The stance judge
supplies one Perspective per source; aggregation is rule-based.

Aggregation:
- Perspectives below ``usable_relevance`` are ignored. None usable -> uncertain, 0.
- Weight w = relevance/100 x credibility/100, so a high-credibility,
  high-relevance dispute outweighs several weak supports.
- supports add w to support, disputes to dispute, mixed to the mixed bucket.

Label:
- no directional weight -> uncertain
- mixed weight dominant -> partial
- support only -> verified, dispute only -> false
- otherwise support ratio s/(s+d): >=0.8 verified, 0.35-0.65 disputed,
  else partial (any usable support rules out false)

Confidence (0-100):
    100 x (0.5 x agreement + 0.3 x mean credibility + 0.2 x min(1, n_relevant/3))
where agreement is the dominant share of weight (0 for uncertain). Fewer
than 2 relevant perspectives caps confidence at 49.

synthesize() never raises: collaborator outages degrade to uncertain, 0.

Usage:
    synthesizer = VerdictSynthesizer(judge=LexicalStanceJudge())
    verdict = await synthesizer.synthesize(claim, sources, parent_work_id="podcast-1")
"""

import asyncio
from typing import Optional

import structlog

from truthcast.data_management.schemas import (
    DEFAULT_FLAG_THRESHOLD,
    ClaimCandidate,
    Perspective,
    Source,
    Stance,
    Verdict,
    VerdictLabel,
    derive_flag,
)
from truthcast.verification.stance_judge import StanceJudge

USABLE_RELEVANCE = 20
RELEVANT_RELEVANCE = 50
MIN_RELEVANT_PERSPECTIVES = 2
LOW_EVIDENCE_CONFIDENCE_CAP = 49
MAX_CITED_PERSPECTIVES = 3

AGREEMENT_WEIGHT = 0.5
CREDIBILITY_WEIGHT = 0.3
COUNT_WEIGHT = 0.2


def uncertain_verdict(
    claim: ClaimCandidate,
    parent_work_id: str,
    explanation: str,
    perspectives: Optional[list[Perspective]] = None,
) -> Verdict:
    """Degraded verdict: label uncertain, confidence 0."""
    return Verdict(
        claim_id=claim.id,
        parent_work_id=parent_work_id,
        claim_text=claim.text,
        claim_hash=claim.claim_hash,
        origin_offset_ms=claim.origin_offset_ms,
        label=VerdictLabel.UNCERTAIN,
        confidence=0,
        explanation=explanation,
        perspectives=perspectives or [],
        is_flagged=True,
    )


class VerdictSynthesizer:
    """Aggregates per-source stances into one explainable Verdict."""

    def __init__(
        self,
        judge: StanceJudge,
        flag_threshold: int = DEFAULT_FLAG_THRESHOLD,
        usable_relevance: int = USABLE_RELEVANCE,
        relevant_relevance: int = RELEVANT_RELEVANCE,
    ) -> None:
        """Initialize VerdictSynthesizer.

        Args:
            judge: Reasoning collaborator returning stance + relevance.
            flag_threshold: Confidence below which verdicts are flagged.
            usable_relevance: Minimum relevance for a perspective to count.
            relevant_relevance: Relevance at which a perspective counts
                toward the evidence-count factor and the low-evidence cap.
        """
        self.judge = judge
        self.flag_threshold = flag_threshold
        self.usable_relevance = usable_relevance
        self.relevant_relevance = relevant_relevance
        self._logger = structlog.get_logger().bind(component="VerdictSynthesizer")

    async def synthesize(
        self,
        claim: ClaimCandidate,
        sources: list[Source],
        parent_work_id: str,
    ) -> Verdict:
        """Produce a Verdict for one claim. Never raises."""
        try:
            return await self._synthesize(claim, sources, parent_work_id)
        except Exception as e:
            self._logger.error(
                "synthesis_failed",
                claim_id=claim.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return uncertain_verdict(
                claim, parent_work_id, f"Verification could not be completed: {e}"
            )

    async def _synthesize(
        self,
        claim: ClaimCandidate,
        sources: list[Source],
        parent_work_id: str,
    ) -> Verdict:
        if not sources:
            return uncertain_verdict(
                claim, parent_work_id, "No sources were found for this claim."
            )

        results = await asyncio.gather(
            *[self._judge(claim, source) for source in sources],
            return_exceptions=True,
        )
        perspectives: list[Perspective] = []
        unavailable = 0
        for source, result in zip(sources, results):
            if isinstance(result, Perspective):
                perspectives.append(result)
                continue
            unavailable += 1
            self._logger.warning(
                "perspective_unavailable",
                claim_id=claim.id,
                source=source.domain,
                error_type=type(result).__name__,
                error=str(result),
            )

        if not perspectives:
            return uncertain_verdict(
                claim,
                parent_work_id,
                f"The reasoning service was unavailable for all {len(sources)} sources.",
            )

        usable = [p for p in perspectives if p.relevance_score >= self.usable_relevance]
        if not usable:
            return uncertain_verdict(
                claim,
                parent_work_id,
                f"None of the {len(perspectives)} consulted sources addressed the claim.",
                perspectives=perspectives,
            )

        support, dispute, mixed = self._weights(usable)
        label = self._label(support, dispute, mixed)
        confidence = self._confidence(label, usable, support, dispute, mixed)
        explanation = self._explain(label, confidence, usable, support, dispute, mixed, unavailable)

        verdict = Verdict(
            claim_id=claim.id,
            parent_work_id=parent_work_id,
            claim_text=claim.text,
            claim_hash=claim.claim_hash,
            origin_offset_ms=claim.origin_offset_ms,
            label=label,
            confidence=confidence,
            explanation=explanation,
            perspectives=perspectives,
            is_flagged=derive_flag(label, confidence, self.flag_threshold),
        )
        self._logger.info(
            "verdict_synthesized",
            claim_id=claim.id,
            label=label.value,
            confidence=verdict.confidence,
            perspectives=len(perspectives),
            usable=len(usable),
            flagged=verdict.is_flagged,
        )
        return verdict

    async def _judge(self, claim: ClaimCandidate, source: Source) -> Perspective:
        excerpt = source.excerpt or source.title
        judgement = await self.judge.judge(claim.text, excerpt)
        return Perspective(
            source_id=source.id,
            stance=judgement.stance,
            relevance_score=judgement.relevance_score,
            excerpt=excerpt,
            domain=source.domain,
            url=source.url,
            credibility_score=source.credibility_score,
        )

    @staticmethod
    def _weights(perspectives: list[Perspective]) -> tuple[float, float, float]:
        support = dispute = mixed = 0.0
        for p in perspectives:
            if p.stance == Stance.SUPPORTS:
                support += p.weight
            elif p.stance == Stance.DISPUTES:
                dispute += p.weight
            elif p.stance == Stance.MIXED:
                mixed += p.weight
        return support, dispute, mixed

    @staticmethod
    def _label(support: float, dispute: float, mixed: float) -> VerdictLabel:
        if support + dispute + mixed == 0:
            return VerdictLabel.UNCERTAIN
        if mixed > support + dispute:
            return VerdictLabel.PARTIAL
        if dispute == 0:
            return VerdictLabel.VERIFIED
        if support == 0:
            return VerdictLabel.FALSE

        ratio = support / (support + dispute)
        if ratio >= 0.8:
            return VerdictLabel.VERIFIED
        if 0.35 <= ratio <= 0.65:
            return VerdictLabel.DISPUTED
        return VerdictLabel.PARTIAL

    def _confidence(
        self,
        label: VerdictLabel,
        usable: list[Perspective],
        support: float,
        dispute: float,
        mixed: float,
    ) -> int:
        total = support + dispute + mixed
        agreement = 0.0
        if label != VerdictLabel.UNCERTAIN and total > 0:
            agreement = max(support, dispute, mixed) / total

        mean_credibility = sum(p.credibility_score for p in usable) / len(usable) / 100.0
        relevant = [p for p in usable if p.relevance_score >= self.relevant_relevance]
        count_factor = min(1.0, len(relevant) / 3.0)

        raw = 100.0 * (
            AGREEMENT_WEIGHT * agreement
            + CREDIBILITY_WEIGHT * mean_credibility
            + COUNT_WEIGHT * count_factor
        )
        if len(relevant) < MIN_RELEVANT_PERSPECTIVES:
            raw = min(raw, LOW_EVIDENCE_CONFIDENCE_CAP)
        return int(max(0, min(100, round(raw))))

    @staticmethod
    def _explain(
        label: VerdictLabel,
        confidence: int,
        usable: list[Perspective],
        support: float,
        dispute: float,
        mixed: float,
        unavailable: int,
    ) -> str:
        counts = {stance: 0 for stance in Stance}
        for p in usable:
            counts[p.stance] += 1

        driving_stances = {
            VerdictLabel.VERIFIED: {Stance.SUPPORTS},
            VerdictLabel.FALSE: {Stance.DISPUTES},
            VerdictLabel.DISPUTED: {Stance.SUPPORTS, Stance.DISPUTES},
            VerdictLabel.PARTIAL: {Stance.SUPPORTS, Stance.DISPUTES, Stance.MIXED},
            VerdictLabel.UNCERTAIN: {Stance.NEUTRAL},
        }[label]
        driving = sorted(
            (p for p in usable if p.stance in driving_stances),
            key=lambda p: p.weight,
            reverse=True,
        )[:MAX_CITED_PERSPECTIVES]

        parts = [
            f"{label.value.capitalize()} with {confidence}% confidence: "
            f"{counts[Stance.SUPPORTS]} supporting, {counts[Stance.DISPUTES]} disputing, "
            f"{counts[Stance.MIXED]} mixed and {counts[Stance.NEUTRAL]} neutral of "
            f"{len(usable)} usable perspectives "
            f"(weighted support {support:.2f}, dispute {dispute:.2f}, mixed {mixed:.2f})."
        ]
        if driving:
            citations = "; ".join(
                f'{p.domain} {p.stance.value} (relevance {p.relevance_score}, '
                f'credibility {p.credibility_score}): "{p.excerpt[:160]}"'
                for p in driving
            )
            parts.append(f"Driven by: {citations}.")
        if unavailable:
            parts.append(f"{unavailable} source(s) could not be judged.")
        return " ".join(parts)
