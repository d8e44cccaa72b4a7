"""
Tests for the active job registry and job state rules.
"""

import pytest

from squid.errors import JobNotFoundError, ValidationError
from squid.jobs import (
    InvalidStateTransitionError,
    Job,
    JobRegistry,
    JobStatus,
    can_transition_job,
    validate_job_transition,
)


def _job(playlist_id=None):
    return Job(source_paths=["/media/a.mp4"], destination="rtmp://x/y", playlist_id=playlist_id)


class TestJobRegistry:

    def test_add_get_remove(self):
        registry = JobRegistry()
        job = _job()
        registry.add_job(job)

        assert registry.get_job(job.id) is job
        assert registry.get_job_or_raise(job.id) is job
        assert registry.count() == 1

        assert registry.remove_job(job.id) is job
        assert registry.get_job(job.id) is None
        assert registry.remove_job(job.id) is None

    def test_unknown_job(self):
        with pytest.raises(JobNotFoundError):
            JobRegistry().get_job_or_raise("missing")

    def test_duplicate_id_rejected(self):
        registry = JobRegistry()
        job = _job()
        registry.add_job(job)
        with pytest.raises(ValueError):
            registry.add_job(job)


class TestPlaylistSlots:

    def test_second_reservation_rejected(self):
        registry = JobRegistry()
        registry.reserve_playlist("p1")
        with pytest.raises(ValidationError):
            registry.reserve_playlist("p1")

    def test_job_takes_over_reservation(self):
        registry = JobRegistry()
        registry.reserve_playlist("p1")
        job = _job("p1")
        registry.add_job(job)

        assert registry.job_for_playlist("p1") is job
        # A bound slot is not released by release_playlist()
        registry.release_playlist("p1")
        assert registry.is_playlist_busy("p1")

        registry.remove_job(job.id)
        assert not registry.is_playlist_busy("p1")

    def test_second_job_for_playlist_rejected(self):
        registry = JobRegistry()
        registry.add_job(_job("p1"))
        with pytest.raises(ValidationError):
            registry.add_job(_job("p1"))
        assert registry.count() == 1

    def test_release_unbound_reservation(self):
        registry = JobRegistry()
        registry.reserve_playlist("p1")
        registry.release_playlist("p1")
        registry.reserve_playlist("p1")

    def test_independent_playlists(self):
        registry = JobRegistry()
        registry.add_job(_job("p1"))
        registry.add_job(_job("p2"))
        assert registry.count() == 2


class TestJobTransitions:

    @pytest.mark.parametrize("target", [JobStatus.RUNNING, JobStatus.ERRORED, JobStatus.STOPPED])
    def test_from_starting(self, target):
        assert can_transition_job(JobStatus.STARTING, target)

    def test_starting_cannot_end_naturally(self):
        assert not can_transition_job(JobStatus.STARTING, JobStatus.ENDED)

    @pytest.mark.parametrize("terminal", [JobStatus.ENDED, JobStatus.ERRORED, JobStatus.STOPPED])
    def test_terminal_states_are_immutable(self, terminal):
        with pytest.raises(InvalidStateTransitionError):
            validate_job_transition(terminal, JobStatus.RUNNING)
