"""Source and perspective schemas.

A Source is one normalized search result with a credibility score that
depends only on the domain/provider reputation tables. A Perspective is one
source's stance on one claim.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


def _clamp_score(value: float) -> int:
    return int(max(0, min(100, round(float(value)))))


class SourceType(str, Enum):
    """Provider category a source was retrieved from."""

    NEWS = "news"
    ACADEMIC = "academic"
    GOVERNMENT = "government"
    OTHER = "other"


class Stance(str, Enum):
    """Stance of one source toward one claim."""

    SUPPORTS = "supports"
    DISPUTES = "disputes"
    NEUTRAL = "neutral"
    MIXED = "mixed"


class Source(BaseModel):
    """Normalized search result with precomputed credibility."""

    id: str = Field(..., description="Stable id derived from the normalized URL")
    title: str = Field(default="", description="Result title")
    url: str = Field(..., description="Normalized result URL")
    domain: str = Field(..., description="Host without www. prefix")
    source_type: SourceType = Field(
        default=SourceType.OTHER, description="news, academic, government or other"
    )
    credibility_score: int = Field(
        ..., description="Reputation-table credibility (0-100)"
    )
    relevance_score: int = Field(
        default=0, description="Keyword overlap between query and result (0-100)"
    )
    excerpt: str = Field(default="", description="Snippet or description text")
    provider: str = Field(default="", description="Search provider that returned it")
    retrieved_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the result was retrieved",
    )

    @field_validator("credibility_score", "relevance_score", mode="before")
    @classmethod
    def clamp_scores(cls, value: float) -> int:
        return _clamp_score(value)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "src-3f9a1c2b7d4e",
                    "title": "Climate change: global temperature",
                    "url": "https://noaa.gov/climate/global-temperature",
                    "domain": "noaa.gov",
                    "source_type": "government",
                    "credibility_score": 93,
                    "relevance_score": 82,
                    "excerpt": "Earth's temperature has risen by about 1.1°C since 1880.",
                    "provider": "serper_government",
                }
            ]
        }
    }


class Perspective(BaseModel):
    """One source's stance on one claim, weighted by relevance."""

    source_id: str = Field(..., description="Id of the consulted Source")
    stance: Stance = Field(..., description="supports, disputes, neutral or mixed")
    relevance_score: int = Field(..., description="How directly the source addresses the claim (0-100)")
    excerpt: str = Field(default="", description="Excerpt the stance was judged on")
    domain: str = Field(default="", description="Source domain, for citation")
    url: str = Field(default="", description="Source URL, for citation")
    credibility_score: int = Field(default=0, description="Source credibility (0-100)")

    @field_validator("relevance_score", "credibility_score", mode="before")
    @classmethod
    def clamp_scores(cls, value: float) -> int:
        return _clamp_score(value)

    @property
    def weight(self) -> float:
        """Relevance x credibility weight used for stance aggregation."""
        return (self.relevance_score / 100.0) * (self.credibility_score / 100.0)
