"""Transcript unit schema.

A TranscriptUnit is one chunk of speech-to-text output: a few seconds of a
live stream or one sentence group of an uploaded recording. Units are
produced by the transcription collaborator and never mutated afterwards.
Within one ParentWork they are ordered by start offset.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class TranscriptUnit(BaseModel):
    """Immutable chunk of transcript text with its audio offsets."""

    text: str = Field(..., description="Transcribed text for this unit")
    start_offset_ms: int = Field(
        ..., ge=0, description="Offset of the unit start within the recording"
    )
    end_offset_ms: int = Field(
        ..., ge=0, description="Offset of the unit end within the recording"
    )
    source_confidence: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Transcription confidence reported by the speech-to-text collaborator",
    )
    speaker: Optional[str] = Field(
        default=None, description="Speaker label if diarization is available"
    )

    @model_validator(mode="after")
    def check_offsets(self) -> "TranscriptUnit":
        if self.end_offset_ms < self.start_offset_ms:
            raise ValueError("end_offset_ms must not precede start_offset_ms")
        return self

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "text": "Global temperatures have risen by 1.1°C since pre-industrial times.",
                    "start_offset_ms": 5000,
                    "end_offset_ms": 10000,
                    "source_confidence": 0.93,
                }
            ]
        },
    }
