"""
Folder watch registry.

In-memory storage for folder watches, keyed by playlist id.
"""

from pathlib import Path
from typing import Dict, List, Optional

from .errors import FolderNotFoundError, InvalidFolderPathError, WatchNotFoundError
from .models import FolderWatch


class WatchRegistry:
    """In-memory registry of folder watches, one per playlist."""

    def __init__(self):
        # playlist_id -> FolderWatch
        self._watches: Dict[str, FolderWatch] = {}

    def add_watch(self, watch: FolderWatch) -> Optional[FolderWatch]:
        """
        Register a folder watch, replacing any watch on the same playlist.

        Validates that the directory exists and is a directory.

        Returns:
            The replaced watch, if any

        Raises:
            FolderNotFoundError: If watch.directory does not exist
            InvalidFolderPathError: If watch.directory is not a directory
        """
        path = Path(watch.directory)
        if not path.exists():
            raise FolderNotFoundError(watch.directory)
        if not path.is_dir():
            raise InvalidFolderPathError(
                f"Watched path is not a directory: {watch.directory}"
            )

        previous = self._watches.get(watch.playlist_id)
        self._watches[watch.playlist_id] = watch
        return previous

    def get_watch(self, playlist_id: str) -> Optional[FolderWatch]:
        return self._watches.get(playlist_id)

    def get_watch_or_raise(self, playlist_id: str) -> FolderWatch:
        """
        Raises:
            WatchNotFoundError: If no watch is bound to playlist_id
        """
        watch = self.get_watch(playlist_id)
        if watch is None:
            raise WatchNotFoundError(playlist_id)
        return watch

    def list_watches(self) -> List[FolderWatch]:
        """All watches, oldest first."""
        return sorted(self._watches.values(), key=lambda w: w.created_at)

    def remove_watch(self, playlist_id: str) -> Optional[FolderWatch]:
        """
        Remove the watch bound to playlist_id.

        Does not raise if there is none (idempotent).
        """
        return self._watches.pop(playlist_id, None)

    def count(self) -> int:
        return len(self._watches)
