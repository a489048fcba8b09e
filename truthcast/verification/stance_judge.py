"""Stance judges: the reasoning collaborator behind the verdict synthesizer.

Capability: given a claim and one source excerpt, return a stance and a
relevance score. Judges raise SynthesisUnavailable when they cannot answer;
they never pick the final verdict label.

Judges:
- LexicalStanceJudge: offline, deterministic. Relevance from content-word
  overlap, stance from refutation/support cue lexicons and number agreement.
- GeminiStanceJudge: asks Gemini for a JSON judgment.

Usage:
    judge = LexicalStanceJudge()
    judgement = await judge.judge(claim_text, source.excerpt)
"""

import json
import re
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import structlog

from truthcast.config.prompts import STANCE_USER_PROMPT
from truthcast.data_management.schemas import Stance
from truthcast.llm.gemini_client import GeminiClient
from truthcast.verification.errors import SynthesisUnavailable
from truthcast.verification.source_gateway import content_tokens

REFUTATION_CUES = (
    "not true", "untrue", "false", "no evidence", "debunked", "incorrect",
    "inaccurate", "myth", "misleading", "hoax", "refuted", "disputed",
    "contrary to", "wrong", "fabricated", "baseless", "no basis",
)
SUPPORT_CUES = (
    "confirmed", "confirms", "according to", "data show", "data shows",
    "found that", "shows that", "accurate", "true", "correct", "verified",
    "consistent with", "evidence", "measured", "recorded", "reported",
)

_NUMBER = re.compile(r"\d+(?:[.,]\d+)?")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True)
class StanceJudgement:
    """Stance of one excerpt toward one claim."""

    stance: Stance
    relevance_score: int


@runtime_checkable
class StanceJudge(Protocol):
    async def judge(self, claim: str, excerpt: str) -> StanceJudgement:
        ...


class LexicalStanceJudge:
    """Deterministic stance judgment without network access.

    Relevance is the share of claim content words found in the excerpt.
    Stance:
    - below ``min_relevance``: neutral
    - refutation cue or conflicting numbers plus a support cue: mixed
    - refutation cue or conflicting numbers: disputes
    - support cue, or relevance >= ``support_relevance``: supports
    - otherwise neutral
    """

    def __init__(self, min_relevance: int = 20, support_relevance: int = 60) -> None:
        self.min_relevance = min_relevance
        self.support_relevance = support_relevance

    async def judge(self, claim: str, excerpt: str) -> StanceJudgement:
        claim_terms = content_tokens(claim)
        excerpt_terms = content_tokens(excerpt)
        if not claim_terms or not excerpt_terms:
            return StanceJudgement(Stance.NEUTRAL, 0)

        relevance = round(100 * len(claim_terms & excerpt_terms) / len(claim_terms))
        if relevance < self.min_relevance:
            return StanceJudgement(Stance.NEUTRAL, relevance)

        lowered = excerpt.lower()
        refutes = any(cue in lowered for cue in REFUTATION_CUES) or self._numbers_conflict(
            claim, excerpt
        )
        # "not true" must not count as support via "true"
        stripped = lowered
        for cue in REFUTATION_CUES:
            stripped = stripped.replace(cue, " ")
        supports = any(cue in stripped for cue in SUPPORT_CUES)

        if refutes and supports:
            stance = Stance.MIXED
        elif refutes:
            stance = Stance.DISPUTES
        elif supports or relevance >= self.support_relevance:
            stance = Stance.SUPPORTS
        else:
            stance = Stance.NEUTRAL
        return StanceJudgement(stance, relevance)

    @staticmethod
    def _numbers_conflict(claim: str, excerpt: str) -> bool:
        claim_numbers = {n.replace(",", ".") for n in _NUMBER.findall(claim)}
        excerpt_numbers = {n.replace(",", ".") for n in _NUMBER.findall(excerpt)}
        return bool(claim_numbers and excerpt_numbers and not claim_numbers & excerpt_numbers)


class GeminiStanceJudge:
    """Stance judgment by Gemini; any failure surfaces as SynthesisUnavailable."""

    def __init__(self, client: GeminiClient, max_excerpt_chars: int = 2000) -> None:
        self.client = client
        self.max_excerpt_chars = max_excerpt_chars
        self._logger = structlog.get_logger().bind(component="GeminiStanceJudge")

    async def judge(self, claim: str, excerpt: str) -> StanceJudgement:
        prompt = STANCE_USER_PROMPT.format(
            claim=claim, excerpt=excerpt[: self.max_excerpt_chars]
        )
        try:
            raw = await self.client.generate_json(prompt)
        except Exception as e:
            self._logger.warning("reasoning_unavailable", error=str(e))
            raise SynthesisUnavailable(f"Gemini stance judgment failed: {e}") from e
        return self.parse(raw)

    @staticmethod
    def parse(raw: str) -> StanceJudgement:
        """Parse the model's JSON answer.

        Raises:
            SynthesisUnavailable: If the answer is not a usable judgment.
        """
        match = _JSON_OBJECT.search(raw or "")
        if not match:
            raise SynthesisUnavailable("Stance response contained no JSON object")
        try:
            data = json.loads(match.group(0))
            stance = Stance(str(data.get("stance", "")).strip().lower())
            relevance = int(round(float(data.get("relevance_score", 0))))
        except (ValueError, TypeError) as e:
            raise SynthesisUnavailable(f"Unusable stance response: {e}") from e
        return StanceJudgement(stance, max(0, min(100, relevance)))
