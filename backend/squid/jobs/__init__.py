"""
Jobs: models, lifecycle rules and the active job registry.

A job is one ffmpeg process streaming one source to one destination.
This package tracks jobs; it does not spawn processes (see squid.encoding).
"""

from .models import (
    EncodeOptions,
    Job,
    JobStatus,
    bitrate_kbps,
)
from .state import (
    InvalidStateTransitionError,
    TERMINAL_JOB_STATES,
    can_transition_job,
    validate_job_transition,
)
from .registry import JobRegistry

__all__ = [
    # Models
    "EncodeOptions",
    "Job",
    "JobStatus",
    "bitrate_kbps",
    # State validation
    "InvalidStateTransitionError",
    "TERMINAL_JOB_STATES",
    "can_transition_job",
    "validate_job_transition",
    # Registry
    "JobRegistry",
]
