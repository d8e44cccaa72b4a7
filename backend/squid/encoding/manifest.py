"""
Seamless playlist manifests.

A manifest is an ffmpeg concat-demuxer list that lets one process read a
whole playlist gaplessly:

    file '/media/a.mp4'
    file '/media/it'\''s.mp4'

One manifest is written per job start and removed when the job ends,
errors or is stopped. Removal is idempotent.
"""

import logging
import os
from pathlib import Path
from typing import List

from squid.errors import ManifestIOError

logger = logging.getLogger(__name__)

MANIFEST_PREFIX = "rtmpsquid-"


def escape_path(path: str) -> str:
    """Escape single quotes for a quoted concat entry."""
    return path.replace("'", "'\\''")


def render_manifest(paths: List[str]) -> str:
    """Render manifest text for absolute paths in play order."""
    return "\n".join(
        f"file '{escape_path(os.path.abspath(path))}'" for path in paths
    ) + "\n"


def manifest_path_for(job_id: str, directory: str) -> Path:
    return Path(directory) / f"{MANIFEST_PREFIX}{job_id}.txt"


def write_manifest(job_id: str, paths: List[str], directory: str) -> Path:
    """
    Write a fresh manifest for a job.

    Args:
        job_id: Owning job; names the file
        paths: Media paths in final play order
        directory: Where to write (usually the system temp dir)

    Returns:
        Path to the written manifest

    Raises:
        ManifestIOError: If the file cannot be written
    """
    path = manifest_path_for(job_id, directory)
    try:
        path.write_text(render_manifest(paths), encoding="utf-8")
    except OSError as e:
        logger.error(f"[Manifest] Failed to write {path}: {e}")
        raise ManifestIOError(str(path), str(e)) from e

    logger.info(f"[Manifest] Wrote {len(paths)} entries to {path}")
    return path


def remove_manifest(path) -> bool:
    """
    Delete a manifest. Never raises.

    Returns:
        True if a file was removed, False if it was already gone or removal failed
    """
    if not path:
        return False
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"[Manifest] Failed to delete {path}: {e}")
        return False

    logger.info(f"[Manifest] Cleaned up {path}")
    return True
