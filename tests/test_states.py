import pytest

from ficqueue.core.errors import InvalidTransitionError
from ficqueue.core.states import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    JobState,
    can_transition,
    check_transition,
)


def test_state_values_match_stored_strings():
    assert JobState("nOTP") is JobState.NOTP
    assert JobState("series-done") is JobState.SERIES_DONE


def test_happy_path_transitions():
    assert can_transition(JobState.PENDING, JobState.PROCESSING)
    for target in (JobState.DONE, JobState.SERIES_DONE, JobState.ERROR, JobState.NOTP):
        assert can_transition(JobState.PROCESSING, target)


def test_reclaim_allows_pending_to_error():
    assert can_transition(JobState.PENDING, JobState.ERROR)


def test_terminal_states_have_no_exits():
    for terminal in TERMINAL_STATES:
        for target in JobState:
            assert not can_transition(terminal, target)


def test_pending_cannot_skip_to_done():
    with pytest.raises(InvalidTransitionError):
        check_transition(JobState.PENDING, JobState.DONE)


def test_active_and_terminal_partition_states():
    assert ACTIVE_STATES.isdisjoint(TERMINAL_STATES)
    assert ACTIVE_STATES | TERMINAL_STATES == set(JobState)
