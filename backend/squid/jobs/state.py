"""
State transition validation for jobs.

Job lifecycle: STARTING → RUNNING → ENDED | ERRORED | STOPPED
A job may also fail or be stopped before it ever reaches RUNNING.

INVARIANT: Terminal job states (ENDED, ERRORED, STOPPED) are immutable.
Jobs are never retried; a failed stream is restarted as a new job.
"""

from typing import FrozenSet

from squid.errors import SquidError
from .models import JobStatus


TERMINAL_JOB_STATES: FrozenSet[JobStatus] = frozenset({
    JobStatus.ENDED,
    JobStatus.ERRORED,
    JobStatus.STOPPED,
})


# (from, to) edges out of non-terminal states
_ALLOWED = {
    # Start acknowledgement
    (JobStatus.STARTING, JobStatus.RUNNING),

    # Spawn failure, early exit or start timeout
    (JobStatus.STARTING, JobStatus.ERRORED),
    (JobStatus.STARTING, JobStatus.STOPPED),

    # Terminal states
    (JobStatus.RUNNING, JobStatus.ENDED),
    (JobStatus.RUNNING, JobStatus.ERRORED),
    (JobStatus.RUNNING, JobStatus.STOPPED),
}


class InvalidStateTransitionError(SquidError):
    """A job was moved along an edge the lifecycle does not allow."""

    def __init__(self, current_state: str, target_state: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid job state transition: {current_state} -> {target_state}"
        )


def can_transition_job(from_status: JobStatus, to_status: JobStatus) -> bool:
    """
    True if a job in from_status may move to to_status.

    Staying in the same state is always allowed; leaving a terminal
    state never is.
    """
    if from_status == to_status:
        return True
    if from_status in TERMINAL_JOB_STATES:
        return False
    return (from_status, to_status) in _ALLOWED


def validate_job_transition(from_status: JobStatus, to_status: JobStatus) -> None:
    """
    Raises:
        InvalidStateTransitionError: If the lifecycle forbids the move
    """
    if not can_transition_job(from_status, to_status):
        raise InvalidStateTransitionError(from_status.value, to_status.value)
