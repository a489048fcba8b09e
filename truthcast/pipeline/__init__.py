"""Pipeline orchestration from transcript to persisted verdicts.

- VerificationSession: batch run over a complete transcript
- LiveVerificationLoop: segment-by-segment run for live sessions
- VerificationService: entry points and session handles
"""

from truthcast.pipeline.live_adapter import LiveSessionResult, LiveVerificationLoop
from truthcast.pipeline.service import (
    SessionHandle,
    Transcriber,
    VerificationService,
    build_service,
)
from truthcast.pipeline.status import advance, can_transition
from truthcast.pipeline.verification_session import SessionResult, VerificationSession

__all__ = [
    "LiveSessionResult",
    "LiveVerificationLoop",
    "SessionHandle",
    "Transcriber",
    "VerificationService",
    "build_service",
    "advance",
    "can_transition",
    "SessionResult",
    "VerificationSession",
]
