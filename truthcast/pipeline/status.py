"""ParentWork status state machine.

    queued -> extracting -> verifying -> finalizing -> completed
       \\__________\\____________\\____________\\-----> failed

Forward skips are allowed (a batch with no qualifying claims goes from
extracting straight to finalizing). Re-entering the current non-terminal
state is a no-op. completed is only reachable from finalizing; failed from
any non-terminal state. Terminal states never change.
"""

from truthcast.data_management.schemas import WorkStatus
from truthcast.verification.errors import InvalidTransition

_ORDER = {
    WorkStatus.QUEUED: 0,
    WorkStatus.EXTRACTING: 1,
    WorkStatus.VERIFYING: 2,
    WorkStatus.FINALIZING: 3,
    WorkStatus.COMPLETED: 4,
}


def can_transition(current: WorkStatus, target: WorkStatus) -> bool:
    """Whether ``current -> target`` is a legal status change."""
    if current.is_terminal:
        return False
    if target == WorkStatus.FAILED:
        return True
    if target == WorkStatus.COMPLETED:
        return current == WorkStatus.FINALIZING
    return _ORDER[target] >= _ORDER[current]


def advance(current: WorkStatus, target: WorkStatus) -> WorkStatus:
    """Validate a status change and return the new status.

    Raises:
        InvalidTransition: If the change moves backward or leaves a terminal state.
    """
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value)
    return target
