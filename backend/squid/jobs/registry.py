"""
In-memory job registry.

The registry provides:
- Active job storage and retrieval by ID
- Listing all active jobs
- The one-job-per-playlist slot table

Only active jobs live here. A job is removed as soon as it reaches a
terminal state. Nothing is persisted across restarts.

The registry is owned by a single StreamEngine and is only touched from
the event loop thread, so none of its methods need locking.
"""

from typing import Dict, List, Optional

from squid.errors import JobNotFoundError, ValidationError
from .models import Job


class JobRegistry:
    """
    In-memory registry for active jobs.

    Playlist slots: a playlist id maps to the id of the job currently
    streaming it, or to None while a start for it is in flight. A second
    reservation for a held playlist is rejected.
    """

    def __init__(self):
        # job_id -> Job
        self._jobs: Dict[str, Job] = {}
        # playlist_id -> job_id (None while a start is in flight)
        self._playlist_slots: Dict[str, Optional[str]] = {}

    def add_job(self, job: Job) -> None:
        """
        Add a job to the registry.

        Binds the job to its playlist slot. A slot reserved with
        reserve_playlist() is taken over; a slot held by another job
        is a conflict.

        Raises:
            ValueError: If a job with the same ID already exists
            ValidationError: If the playlist already has an active job
        """
        if job.id in self._jobs:
            raise ValueError(f"Job with ID '{job.id}' already exists")

        if job.playlist_id is not None:
            holder = self._playlist_slots.get(job.playlist_id)
            if holder is not None and holder != job.id:
                raise ValidationError(
                    f"Playlist {job.playlist_id} already has an active job: {holder}"
                )
            self._playlist_slots[job.playlist_id] = job.id

        self._jobs[job.id] = job

    def get_job(self, job_id: str) -> Optional[Job]:
        """
        Retrieve a job by ID.

        Returns:
            The job if found, None otherwise
        """
        return self._jobs.get(job_id)

    def get_job_or_raise(self, job_id: str) -> Job:
        """
        Retrieve a job by ID, raising an exception if not found.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(self) -> List[Job]:
        """
        List all active jobs.

        Returns:
            List of jobs, ordered by creation time (oldest first)
        """
        return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def remove_job(self, job_id: str) -> Optional[Job]:
        """
        Remove a job and free its playlist slot.

        Idempotent: removing an unknown job returns None.
        """
        job = self._jobs.pop(job_id, None)
        if job is not None and job.playlist_id is not None:
            if self._playlist_slots.get(job.playlist_id) == job.id:
                del self._playlist_slots[job.playlist_id]
        return job

    # Playlist slots

    def reserve_playlist(self, playlist_id: str) -> None:
        """
        Claim the playlist slot before a start begins.

        Must be called before the first await of a start so that two
        concurrent starts for the same playlist cannot both pass.

        Raises:
            ValidationError: If the playlist already has an active or starting job
        """
        if playlist_id in self._playlist_slots:
            raise ValidationError(f"Playlist {playlist_id} is already streaming")
        self._playlist_slots[playlist_id] = None

    def release_playlist(self, playlist_id: str) -> None:
        """Drop a reservation that never got a job bound to it."""
        if playlist_id in self._playlist_slots and self._playlist_slots[playlist_id] is None:
            del self._playlist_slots[playlist_id]

    def job_for_playlist(self, playlist_id: str) -> Optional[Job]:
        """Return the active job streaming a playlist, if any."""
        job_id = self._playlist_slots.get(playlist_id)
        if job_id is None:
            return None
        return self._jobs.get(job_id)

    def is_playlist_busy(self, playlist_id: str) -> bool:
        return playlist_id in self._playlist_slots

    def count(self) -> int:
        return len(self._jobs)
