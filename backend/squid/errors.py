"""
Error hierarchy for the stream orchestration engine.

All errors inherit from SquidError for easy catching.
None of them is fatal to the service: a failing job or playlist is
reported and the engine keeps running.
"""

from typing import Optional


class SquidError(Exception):
    """Base exception for all engine failures."""
    pass


class ValidationError(SquidError):
    """
    Request rejected before any state changed.

    Raised for a missing destination, an empty playlist, an index out of
    range, or a playlist that is already streaming.
    """
    pass


class NotFoundError(SquidError):
    """Raised when an id does not match any known entity."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")


class JobNotFoundError(NotFoundError):
    """Raised when a job cannot be found in the registry."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("job", job_id)


class PlaylistNotFoundError(NotFoundError):
    """Raised when a playlist cannot be found in the store."""

    def __init__(self, playlist_id: str):
        self.playlist_id = playlist_id
        super().__init__("playlist", playlist_id)


class ProcessError(SquidError):
    """
    The ffmpeg process failed.

    Carries the raw stderr tail so operators can see what ffmpeg reported
    (bad destination, unreadable input, crash).
    """

    def __init__(self, job_id: str, reason: str, diagnostics: Optional[str] = None):
        self.job_id = job_id
        self.reason = reason
        self.diagnostics = diagnostics
        super().__init__(f"Job {job_id} failed: {reason}")


class ManifestIOError(SquidError):
    """Filesystem failure while writing a manifest or scanning a directory."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"I/O failure for {path}: {reason}")
