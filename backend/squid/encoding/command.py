"""
ffmpeg command construction for RTMP streaming.

Design rules:
- One command per job, built once before spawn
- -re is always present so throughput matches playback speed
- Codec parameters are fixed (H.264 + AAC in FLV); only rates vary
- The full command string is logged by the controller for audit
"""

import logging
import os
import shutil
from typing import List, Optional

from squid import config
from squid.jobs.models import EncodeOptions, bitrate_kbps
from .timestamps import normalize_timestamp

logger = logging.getLogger(__name__)

# GOP length in frames; also the minimum keyframe interval
GOP_SIZE = 50
AUDIO_SAMPLE_RATE = 44100

_COMMON_INSTALL_PATHS = [
    "/usr/local/bin/ffmpeg",
    "/usr/bin/ffmpeg",
    "/opt/homebrew/bin/ffmpeg",
]


def find_ffmpeg() -> Optional[str]:
    """Find the ffmpeg binary: explicit config, then PATH, then common install locations."""
    if config.FFMPEG_PATH:
        return config.FFMPEG_PATH

    ffmpeg_path = shutil.which("ffmpeg")
    if ffmpeg_path:
        return ffmpeg_path

    for path in _COMMON_INSTALL_PATHS:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path

    return None


def build_video_filter(options: EncodeOptions) -> Optional[str]:
    """
    Build the -vf chain for the requested frame size.

    Stretch fills the frame ignoring the source aspect ratio. Preserve
    scales down to fit and pads the remainder with black bars.
    """
    frame = options.frame_size()
    if frame is not None:
        width, height = frame
        if options.force_stretch:
            return f"scale={width}:{height}:force_original_aspect_ratio=ignore,setsar=1"
        return (
            f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:black,setsar=1"
        )

    if options.aspect_ratio:
        return f"setdar={options.aspect_ratio}"

    return None


def build_input_args(
    source: str,
    options: EncodeOptions,
    manifest: bool = False,
) -> List[str]:
    """
    Build input-side arguments.

    Args:
        source: Media file, or the concat manifest path when manifest=True
        options: Encode options
        manifest: Read source as an ffmpeg concat list
    """
    args: List[str] = []

    if manifest:
        args.extend(["-f", "concat", "-safe", "0"])

    seek = normalize_timestamp(options.start_time)
    if seek:
        logger.info(f"[FFmpeg] Start time requested: {options.start_time!r} -> {seek}")
        args.extend(["-ss", seek])

    # Looping only makes sense for a single file
    if options.loop and not manifest:
        args.extend(["-stream_loop", "-1"])

    args.append("-re")
    args.extend(["-i", source])
    return args


def build_output_args(destination: str, options: EncodeOptions) -> List[str]:
    """Build output-side arguments for an FLV/RTMP destination."""
    video_kbps = bitrate_kbps(options.bitrate)

    args: List[str] = []

    video_filter = build_video_filter(options)
    if video_filter:
        args.extend(["-vf", video_filter])

    args.extend([
        # Video
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-b:v", options.bitrate,
        "-maxrate", options.bitrate,
        "-bufsize", f"{video_kbps * 2}k",
        "-pix_fmt", "yuv420p",
        "-g", str(GOP_SIZE),
        "-keyint_min", str(GOP_SIZE),
        # Audio
        "-c:a", "aac",
        "-b:a", options.audio_bitrate,
        "-ar", str(AUDIO_SAMPLE_RATE),
        "-ac", str(options.audio_channels),
        "-strict", "-2",
        # Container
        "-f", "flv",
        destination,
    ])
    return args


def build_ffmpeg_command(
    source: str,
    destination: str,
    options: EncodeOptions,
    manifest: bool = False,
    ffmpeg_path: Optional[str] = None,
) -> List[str]:
    """
    Build the full ffmpeg argv for one job.

    Args:
        source: Media file path, or manifest path in seamless mode
        destination: Ingest URI (rtmp://...)
        options: Encode options
        manifest: True when source is a concat manifest
        ffmpeg_path: Binary to run (default: "ffmpeg")

    Returns:
        argv list suitable for create_subprocess_exec
    """
    cmd = [ffmpeg_path or "ffmpeg", "-hide_banner", "-nostdin"]
    cmd.extend(build_input_args(source, options, manifest=manifest))
    cmd.extend(build_output_args(destination, options))
    return cmd
