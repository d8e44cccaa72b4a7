"""
Seek offset normalization.

ffmpeg accepts -ss in several shapes; operators type even more. Every
accepted input is normalized to zero-padded HH:MM:SS:

    "90"        -> "00:01:30"   (plain seconds)
    "5:30"      -> "00:05:30"   (MM:SS)
    "1:2:03"    -> rejected     (minutes and seconds need two digits)
    "01:02:03"  -> "01:02:03"   (HH:MM:SS)

Anything else is rejected with a warning and treated as "no seek".
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

SECONDS_PATTERN = re.compile(r"^\d+$")
MINUTES_SECONDS_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
HOURS_MINUTES_SECONDS_PATTERN = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")


def _pad(value) -> str:
    return str(int(value)).zfill(2)


def normalize_timestamp(timestamp: Optional[str]) -> Optional[str]:
    """
    Normalize a seek offset to HH:MM:SS.

    Args:
        timestamp: Raw operator input, may be None or blank

    Returns:
        Normalized "HH:MM:SS", or None when no seek should be applied
    """
    if timestamp is None:
        return None

    timestamp = str(timestamp).strip()
    if not timestamp:
        return None

    if SECONDS_PATTERN.match(timestamp):
        total = int(timestamp)
        hours, remainder = divmod(total, 3600)
        minutes, seconds = divmod(remainder, 60)
        return f"{_pad(hours)}:{_pad(minutes)}:{_pad(seconds)}"

    match = MINUTES_SECONDS_PATTERN.match(timestamp)
    if match:
        return f"00:{_pad(match.group(1))}:{_pad(match.group(2))}"

    match = HOURS_MINUTES_SECONDS_PATTERN.match(timestamp)
    if match:
        return ":".join(_pad(part) for part in match.groups())

    logger.warning(f"[Seek] Invalid timestamp format: {timestamp!r}, ignoring seek")
    return None
