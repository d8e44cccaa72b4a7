"""
ffmpeg stderr parsing.

ffmpeg reports progress on stderr, rewriting one status line with
carriage returns:

    frame=  240 fps= 30 q=28.0 size=    1024kB time=00:00:08.00 bitrate=1048.6kbits/s speed=1.00x

Each status line is turned into a flat dict and relayed as-is. There is
no aggregation, smoothing or ETA: a live stream has no known end.

The first "Output #0" banner or status line is the signal that ffmpeg
opened the destination and is producing output.
"""

import re
from typing import AsyncIterator, Dict, Optional, Union

TIME_PATTERN = re.compile(r"time=\s*(-?[\d:.]+)")
FRAME_PATTERN = re.compile(r"frame=\s*(\d+)")
FPS_PATTERN = re.compile(r"fps=\s*([\d.]+)")
SIZE_PATTERN = re.compile(r"size=\s*(\d+)\s*(?:kB|KiB)")
BITRATE_PATTERN = re.compile(r"bitrate=\s*([\d.]+)\s*kbits/s")
SPEED_PATTERN = re.compile(r"speed=\s*([\d.]+)x")

OUTPUT_BANNER = "Output #0"
PRESS_Q_BANNER = "Press [q]"

_LINE_SPLIT = re.compile(rb"[\r\n]")
_READ_CHUNK = 4096


def _number(pattern: re.Pattern, line: str, cast) -> Optional[Union[int, float]]:
    match = pattern.search(line)
    if not match:
        return None
    try:
        return cast(match.group(1))
    except ValueError:
        return None


def parse_progress_line(line: str) -> Optional[Dict[str, object]]:
    """
    Parse one ffmpeg status line.

    Args:
        line: Single decoded stderr line

    Returns:
        Progress dict, or None if the line is not a status line
    """
    time_match = TIME_PATTERN.search(line)
    if not time_match or ("frame=" not in line and "size=" not in line):
        return None

    return {
        "frames": _number(FRAME_PATTERN, line, int),
        "current_fps": _number(FPS_PATTERN, line, float),
        "current_kbps": _number(BITRATE_PATTERN, line, float),
        "target_size": _number(SIZE_PATTERN, line, int),
        "timemark": time_match.group(1),
        "speed": _number(SPEED_PATTERN, line, float),
    }


def is_start_signal(line: str) -> bool:
    """True when a stderr line proves ffmpeg is producing output."""
    return (
        line.startswith(OUTPUT_BANNER)
        or line.startswith(PRESS_Q_BANNER)
        or parse_progress_line(line) is not None
    )


async def iter_output_lines(stream) -> AsyncIterator[str]:
    """
    Yield decoded lines from an ffmpeg stderr stream.

    Splits on both \\r and \\n so that rewritten status lines arrive one
    by one. Blank fragments are skipped.

    Args:
        stream: asyncio.StreamReader-like object with async read(n)
    """
    buffer = b""
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        buffer += chunk
        parts = _LINE_SPLIT.split(buffer)
        buffer = parts.pop()
        for part in parts:
            line = part.decode("utf-8", errors="replace").strip()
            if line:
                yield line

    tail = buffer.decode("utf-8", errors="replace").strip()
    if tail:
        yield tail
