"""
Folder watch errors.

None of them stops the poller: a failing watch is logged and skipped
until the next tick.
"""

from squid.errors import NotFoundError, ValidationError


class WatchNotFoundError(NotFoundError):
    """No folder watch is bound to the playlist."""

    def __init__(self, playlist_id: str):
        self.playlist_id = playlist_id
        super().__init__("folder watch", playlist_id)


class FolderNotFoundError(NotFoundError):
    """Directory to scan or watch does not exist."""

    def __init__(self, directory: str):
        self.directory = directory
        super().__init__("folder", directory)


class InvalidFolderPathError(ValidationError):
    """Path exists but is not a readable directory."""
    pass
