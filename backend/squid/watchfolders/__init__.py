"""
Folder watches: append newly discovered video files to playlists.
"""

from .errors import FolderNotFoundError, InvalidFolderPathError, WatchNotFoundError
from .models import FolderWatch, ScannedFile
from .poller import WatchPoller
from .registry import WatchRegistry
from .scanner import FileScanner

__all__ = [
    "FileScanner",
    "FolderNotFoundError",
    "FolderWatch",
    "InvalidFolderPathError",
    "ScannedFile",
    "WatchNotFoundError",
    "WatchPoller",
    "WatchRegistry",
]
