"""Tests for the job state machine."""

import pytest

from modules.jobs.exceptions import InvalidTransitionError
from modules.jobs.models import JobState
from modules.jobs.state_machine import (
    CANCELLABLE_STATES,
    TERMINAL_STATES,
    TRANSITIONS,
    assert_transition,
    can_transition,
    is_terminal,
)


class TestTransitions:
    @pytest.mark.parametrize("from_state,to_state", [
        (JobState.CREATED, JobState.DEBITED),
        (JobState.CREATED, JobState.FAILED),
        (JobState.DEBITED, JobState.SUBMITTED),
        (JobState.DEBITED, JobState.FAILED),
        (JobState.SUBMITTED, JobState.SUCCEEDED),
        (JobState.SUBMITTED, JobState.FAILED),
    ])
    def test_allowed_edges(self, from_state, to_state):
        assert can_transition(from_state, to_state)
        assert_transition("job-1", from_state, to_state)

    @pytest.mark.parametrize("from_state,to_state", [
        (JobState.CREATED, JobState.SUBMITTED),
        (JobState.CREATED, JobState.SUCCEEDED),
        (JobState.DEBITED, JobState.SUCCEEDED),
        (JobState.SUBMITTED, JobState.DEBITED),
        (JobState.SUCCEEDED, JobState.FAILED),
        (JobState.FAILED, JobState.SUCCEEDED),
        (JobState.FAILED, JobState.FAILED),
    ])
    def test_rejected_edges(self, from_state, to_state):
        assert not can_transition(from_state, to_state)
        with pytest.raises(InvalidTransitionError) as exc_info:
            assert_transition("job-1", from_state, to_state)
        assert exc_info.value.details["from_state"] == from_state.value

    def test_terminal_states_have_no_exits(self):
        for state in TERMINAL_STATES:
            assert is_terminal(state)
            assert TRANSITIONS[state] == frozenset()

    def test_every_state_is_covered(self):
        assert set(TRANSITIONS) == set(JobState)

    def test_only_charged_in_flight_jobs_are_cancellable(self):
        assert CANCELLABLE_STATES == {JobState.DEBITED, JobState.SUBMITTED}
