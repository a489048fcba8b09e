"""Error taxonomy for the claim verification pipeline.

Scope of each failure:
- ProviderUnavailable / ProviderTimeout: one source provider. Logged and
  excluded from ranking; the claim check continues with other providers.
- SynthesisUnavailable: one claim. Degrades to an ``uncertain`` verdict.
- ExtractionFailure: one transcript unit. Its candidates are skipped.
- PersistenceFailure: systemic. Retried with backoff; exhaustion fails the
  session.
"""

from typing import Optional


class TruthCastError(Exception):
    """Base class for pipeline errors."""


class ProviderError(TruthCastError):
    """A search provider could not return results."""

    def __init__(self, provider: str, message: str = "") -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}" if message else provider)


class ProviderUnavailable(ProviderError):
    """Provider is misconfigured, unreachable or returned an error response."""


class ProviderTimeout(ProviderError):
    """Provider did not answer within its timeout."""


class SynthesisUnavailable(TruthCastError):
    """The reasoning collaborator could not be reached."""


class ExtractionFailure(TruthCastError):
    """Claim extraction failed for one transcript unit."""


class PersistenceFailure(TruthCastError):
    """The persistence collaborator rejected or failed a write."""


class InvalidTransition(TruthCastError):
    """A ParentWork status change would move backward or leave a terminal state."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from {current} to {target}")


class SessionClosed(TruthCastError):
    """A live session received a segment after it was ended."""


class WorkNotFound(TruthCastError):
    """No ParentWork exists for the given id."""

    def __init__(self, work_id: str, message: Optional[str] = None) -> None:
        self.work_id = work_id
        super().__init__(message or f"ParentWork not found: {work_id}")
