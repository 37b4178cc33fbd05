"""
Job state machine.

    CREATED -> DEBITED -> SUBMITTED -> SUCCEEDED
       |          |           |
       +----------+-----------+-----> FAILED

SUCCEEDED and FAILED are terminal. Whether a FAILED job is owed a refund
is decided from the ledger, not from the edge it took.
"""

from .exceptions import InvalidTransitionError
from .models import JobState

TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.CREATED: frozenset({JobState.DEBITED, JobState.FAILED}),
    JobState.DEBITED: frozenset({JobState.SUBMITTED, JobState.FAILED}),
    JobState.SUBMITTED: frozenset({JobState.SUCCEEDED, JobState.FAILED}),
    JobState.SUCCEEDED: frozenset(),
    JobState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED})

# States a user may cancel from, and states that can still time out
CANCELLABLE_STATES = frozenset({JobState.DEBITED, JobState.SUBMITTED})
IN_FLIGHT_STATES = frozenset({JobState.CREATED, JobState.DEBITED, JobState.SUBMITTED})


def is_terminal(state: JobState) -> bool:
    return state in TERMINAL_STATES


def can_transition(from_state: JobState, to_state: JobState) -> bool:
    return to_state in TRANSITIONS[from_state]


def assert_transition(job_id: str, from_state: JobState, to_state: JobState) -> None:
    """Raise InvalidTransitionError unless from_state -> to_state is an edge."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(job_id, from_state.value, to_state.value)
