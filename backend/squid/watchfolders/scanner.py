"""
Filesystem scanner for folder watches and folder imports.

Walks a directory tree with an explicit worklist, so deep trees cannot
exhaust the interpreter stack, and stops descending at a fixed depth.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

from squid import config
from .errors import FolderNotFoundError, InvalidFolderPathError
from .models import ScannedFile

logger = logging.getLogger(__name__)


class FileScanner:
    """
    Filesystem scanner for video files.

    Scans directories for files matching a whitelist of extensions.
    Skips hidden files and directories, and symlinks unless asked to follow them.
    Entries are visited in sorted order within each directory.
    """

    def __init__(
        self,
        extensions: Optional[Iterable[str]] = None,
        skip_hidden: bool = True,
        follow_symlinks: bool = False,
        max_depth: Optional[int] = None,
    ):
        """
        Initialize file scanner.

        Args:
            extensions: Lowercase suffixes to accept (default: config.VIDEO_EXTENSIONS)
            skip_hidden: Skip files/dirs starting with '.' (default: True)
            follow_symlinks: Follow symbolic links (default: False for safety)
            max_depth: Deepest subdirectory level visited (default: config.SCAN_MAX_DEPTH)
        """
        self.extensions = frozenset(
            e.lower() for e in (extensions or config.VIDEO_EXTENSIONS)
        )
        self.skip_hidden = skip_hidden
        self.follow_symlinks = follow_symlinks
        self.max_depth = config.SCAN_MAX_DEPTH if max_depth is None else max_depth

    def scan(self, directory: str, recursive: bool = True) -> List[str]:
        """
        Scan a directory for video files.

        Returns:
            Absolute paths in discovery order

        Raises:
            FolderNotFoundError: If directory does not exist
            InvalidFolderPathError: If directory is not a directory
        """
        return [entry.path for entry in self.scan_entries(directory, recursive)]

    def scan_entries(
        self,
        directory: str,
        recursive: bool = True,
        min_size_bytes: int = 0,
    ) -> List[ScannedFile]:
        """
        Scan a directory and describe every matching file.

        Args:
            directory: Directory to scan
            recursive: Descend into subdirectories
            min_size_bytes: Skip files smaller than this

        Returns:
            Scanned files in discovery order. Files of a directory come
            before the contents of its subdirectories.
        """
        root = Path(os.path.abspath(directory))
        if not root.exists():
            raise FolderNotFoundError(str(root))
        if not root.is_dir():
            raise InvalidFolderPathError(f"Path is not a directory: {root}")

        found: List[ScannedFile] = []
        # (directory, depth) worklist; popped LIFO
        stack = [(root, 0)]

        while stack:
            current, depth = stack.pop()
            try:
                items = sorted(current.iterdir())
            except OSError as e:
                # Directory became inaccessible during scan
                logger.warning(f"[Scanner] Cannot read {current}: {e}")
                continue

            subdirs = []
            for item in items:
                if self.skip_hidden and item.name.startswith("."):
                    continue
                if item.is_symlink() and not self.follow_symlinks:
                    continue

                try:
                    if item.is_dir():
                        if recursive:
                            subdirs.append(item)
                        continue
                    if not item.is_file():
                        continue
                    if item.suffix.lower() not in self.extensions:
                        continue
                    size = item.stat().st_size
                except OSError as e:
                    logger.warning(f"[Scanner] Cannot stat {item}: {e}")
                    continue

                if size < min_size_bytes:
                    continue

                found.append(ScannedFile(
                    filename=item.name,
                    path=str(item),
                    size=size,
                    relative_path=str(item.relative_to(root)),
                ))

            if subdirs and depth >= self.max_depth:
                logger.warning(
                    f"[Scanner] Max depth {self.max_depth} reached at {current}, not descending"
                )
                continue

            # Reversed so the first sorted subdirectory is visited next
            for subdir in reversed(subdirs):
                stack.append((subdir, depth + 1))

        return found
