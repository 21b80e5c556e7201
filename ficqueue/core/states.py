from enum import Enum
from typing import Dict, FrozenSet

from ficqueue.core.errors import InvalidTransitionError

# Reclaimed jobs carry this word in their failure reason.
STUCK_MARKER = "stuck"


class JobState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"
    NOTP = "nOTP"
    SERIES_DONE = "series-done"


class BatchKind(str, Enum):
    SINGLE = "single"
    COLLECTION = "collection"


ACTIVE_STATES: FrozenSet[JobState] = frozenset({JobState.PENDING, JobState.PROCESSING})

TERMINAL_STATES: FrozenSet[JobState] = frozenset(
    {JobState.DONE, JobState.ERROR, JobState.NOTP, JobState.SERIES_DONE}
)

# pending -> error is only taken by the stuck-job reclaim.
TRANSITIONS: Dict[JobState, FrozenSet[JobState]] = {
    JobState.PENDING: frozenset({JobState.PROCESSING, JobState.ERROR}),
    JobState.PROCESSING: frozenset(
        {JobState.DONE, JobState.SERIES_DONE, JobState.ERROR, JobState.NOTP}
    ),
    JobState.DONE: frozenset(),
    JobState.ERROR: frozenset(),
    JobState.NOTP: frozenset(),
    JobState.SERIES_DONE: frozenset(),
}


def can_transition(current: JobState, target: JobState) -> bool:
    """Return True if the transition table allows ``current -> target``."""
    return target in TRANSITIONS[JobState(current)]


def check_transition(current: JobState, target: JobState) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot move job from '{JobState(current).value}' to '{JobState(target).value}'"
        )
