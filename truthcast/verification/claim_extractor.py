"""Heuristic claim extraction from transcript text.

Splits text into sentence-like units, drops noise and rambling by length,
and scores each remaining unit for checkability:

| Signal                                  | Effect |
|-----------------------------------------|--------|
| base                                    | 5      |
| numbers                                 | +2     |
| units / percentages / currency          | +1     |
| dates, years, months                    | +1     |
| named entities (mid-sentence capitals)  | +1     |
| causal or comparative language          | +1     |
| first-person opinion ("I think")        | -2     |
| filler / greetings ("welcome back")     | -2     |
| hedges ("maybe", "probably")            | -1     |
| questions                               | -1     |

Scores are clamped to 1-10. This is a scorer, not a classifier: the
verification session applies the importance threshold. Any object with the
same ``extract`` signature (ClaimExtractor protocol) can replace it.
"""

import re
from typing import Optional, Protocol, runtime_checkable

from loguru import logger

from truthcast.data_management.schemas import ClaimCandidate
from truthcast.verification.errors import ExtractionFailure

# Terminal punctuation followed by whitespace, or line breaks. "1.1°C" stays intact.
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+|\n+")

NUMBER_PATTERN = re.compile(r"\d")
UNIT_PATTERN = re.compile(
    r"%|°|\bpercent\b|\bper ?cent\b|\bdegrees?\b|\bcelsius\b|\bfahrenheit\b|"
    r"\b(?:million|billion|trillion|thousand|hundred)\b|[$€£¥]|"
    r"\b(?:km|kg|mph|tons?|tonnes?|miles?|meters?|metres?)\b",
    re.IGNORECASE,
)
DATE_PATTERN = re.compile(
    r"\b(?:1[5-9]|20)\d{2}\b|\b\d{1,2}(?:st|nd|rd|th)\b|"
    r"\b(?:january|february|march|april|may|june|july|august|september|"
    r"october|november|december|decade|century)\b",
    re.IGNORECASE,
)
ENTITY_PATTERN = re.compile(r"(?<=\s)[A-Z][a-zA-Z]+")
CAUSAL_COMPARATIVE_PATTERN = re.compile(
    r"\b(?:because|caused?|causes|leads? to|led to|results? in|due to|therefore|"
    r"more than|less than|fewer than|higher|lower|larger|smaller|increased?|"
    r"decreased?|risen|rose|fell|fallen|doubled|tripled|since|compared|"
    r"most|least|largest|biggest|first|only|below|above)\b",
    re.IGNORECASE,
)
OPINION_PATTERN = re.compile(
    r"\b(?:i think|i believe|i feel|in my opinion|i guess|personally|"
    r"i reckon|we think|i love|i hate|my view)\b",
    re.IGNORECASE,
)
FILLER_PATTERN = re.compile(
    r"\b(?:welcome(?: back)? to|thanks? (?:you )?for (?:listening|watching|joining)|"
    r"hello everyone|let'?s (?:get started|dive in|talk about)|don'?t forget to|"
    r"subscribe|see you next)\b",
    re.IGNORECASE,
)
HEDGE_PATTERN = re.compile(
    r"\b(?:maybe|perhaps|probably|might|possibly|kind of|sort of)\b",
    re.IGNORECASE,
)

MIN_CLAIM_LENGTH = 20
MAX_CLAIM_LENGTH = 200
CONTEXT_CHARS = 300


@runtime_checkable
class ClaimExtractor(Protocol):
    """Pipeline contract for claim extraction."""

    def extract(
        self,
        text: str,
        start_offset_ms: int = 0,
        end_offset_ms: Optional[int] = None,
    ) -> list[ClaimCandidate]:
        ...


class HeuristicClaimExtractor:
    """
    Rule-based checkability scorer.

    Usage:
        extractor = HeuristicClaimExtractor()
        claims = extractor.extract(unit.text, unit.start_offset_ms, unit.end_offset_ms)

    Example:
        >>> extractor = HeuristicClaimExtractor()
        >>> [c.importance for c in extractor.extract(
        ...     "Global temperatures have risen by 1.1°C since pre-industrial times.")]
        [9]
    """

    def __init__(
        self,
        min_length: int = MIN_CLAIM_LENGTH,
        max_length: int = MAX_CLAIM_LENGTH,
    ):
        """
        Initialize extractor with length bounds.

        Args:
            min_length: Units shorter than this are noise (default 20)
            max_length: Units longer than this are rambling (default 200)
        """
        self.min_length = min_length
        self.max_length = max_length
        self._logger = logger.bind(component="HeuristicClaimExtractor")

    def extract(
        self,
        text: str,
        start_offset_ms: int = 0,
        end_offset_ms: Optional[int] = None,
    ) -> list[ClaimCandidate]:
        """
        Extract claim candidates in input order.

        Args:
            text: Transcript text for one unit or a whole transcript
            start_offset_ms: Audio offset where the text starts
            end_offset_ms: Audio offset where the text ends; offsets of
                individual sentences are interpolated when given

        Returns:
            Candidates in temporal order; near-duplicates merged keeping the
            highest importance

        Raises:
            ExtractionFailure: If text is not a string
        """
        if not isinstance(text, str):
            raise ExtractionFailure(f"Transcript text must be str, got {type(text).__name__}")

        sentences = self._segment(text)
        candidates: dict[str, ClaimCandidate] = {}

        for index, (sentence, position) in enumerate(sentences):
            if not self.min_length <= len(sentence) <= self.max_length:
                continue

            candidate = ClaimCandidate.from_text(
                sentence,
                importance=self.score(sentence),
                context=self._context(sentences, index),
                origin_offset_ms=self._offset(position, len(text), start_offset_ms, end_offset_ms),
            )
            existing = candidates.get(candidate.claim_hash)
            if existing is None:
                candidates[candidate.claim_hash] = candidate
            elif candidate.importance > existing.importance:
                # Keep the first position, raise its importance
                candidates[candidate.claim_hash] = existing.model_copy(
                    update={"importance": candidate.importance}
                )

        self._logger.debug(
            f"Extracted {len(candidates)} candidates from {len(sentences)} sentences"
        )
        return list(candidates.values())

    def score(self, sentence: str) -> int:
        """Checkability score 1-10 for one sentence."""
        score = 5
        if NUMBER_PATTERN.search(sentence):
            score += 2
        if UNIT_PATTERN.search(sentence):
            score += 1
        if DATE_PATTERN.search(sentence):
            score += 1
        if ENTITY_PATTERN.search(sentence):
            score += 1
        if CAUSAL_COMPARATIVE_PATTERN.search(sentence):
            score += 1
        if OPINION_PATTERN.search(sentence):
            score -= 2
        if FILLER_PATTERN.search(sentence):
            score -= 2
        if HEDGE_PATTERN.search(sentence):
            score -= 1
        if sentence.rstrip().endswith("?"):
            score -= 1
        return max(1, min(10, score))

    @staticmethod
    def _segment(text: str) -> list[tuple[str, int]]:
        """Split into (sentence, char position) pairs."""
        sentences = []
        cursor = 0
        for piece in SENTENCE_BOUNDARY.split(text):
            position = text.find(piece, cursor) if piece else cursor
            cursor = position + len(piece)
            sentence = " ".join(piece.split())
            if sentence:
                sentences.append((sentence, max(position, 0)))
        return sentences

    @staticmethod
    def _context(sentences: list[tuple[str, int]], index: int) -> str:
        window = sentences[max(0, index - 1): index + 2]
        return " ".join(s for s, _ in window)[:CONTEXT_CHARS]

    @staticmethod
    def _offset(
        position: int,
        text_length: int,
        start_offset_ms: int,
        end_offset_ms: Optional[int],
    ) -> int:
        if end_offset_ms is None or end_offset_ms <= start_offset_ms or text_length == 0:
            return start_offset_ms
        fraction = position / text_length
        return start_offset_ms + int(fraction * (end_offset_ms - start_offset_ms))
