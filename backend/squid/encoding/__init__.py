"""
Encoding: ffmpeg command building and process supervision.

Public API:
    EncodingJobController: start/stop/supervise one ffmpeg process per job
    build_ffmpeg_command: argv for one streaming job
    normalize_timestamp: seek offset normalization
    write_manifest / remove_manifest: seamless concat lists
    parse_progress_line: ffmpeg status line parsing
"""

from .command import build_ffmpeg_command, build_video_filter, find_ffmpeg
from .controller import EncodingJobController, spawn_ffmpeg
from .manifest import remove_manifest, render_manifest, write_manifest
from .progress import is_start_signal, iter_output_lines, parse_progress_line
from .timestamps import normalize_timestamp

__all__ = [
    # Controller
    "EncodingJobController",
    "spawn_ffmpeg",
    # Command
    "build_ffmpeg_command",
    "build_video_filter",
    "find_ffmpeg",
    # Manifest
    "remove_manifest",
    "render_manifest",
    "write_manifest",
    # Progress
    "is_start_signal",
    "iter_output_lines",
    "parse_progress_line",
    # Seek
    "normalize_timestamp",
]
