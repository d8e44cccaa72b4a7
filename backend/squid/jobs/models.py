"""
Job and EncodeOptions data models.

A job is one supervised ffmpeg process pushing one source (a single file
or a seamless manifest of files) to one destination.

All models use Pydantic for validation.
State transitions are validated externally (see state.py).
"""

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# "3000k", "3M", "2500000"
BITRATE_PATTERN = re.compile(r"^(\d+)([kKmM]?)$")
RESOLUTION_PATTERN = re.compile(r"^(\d+)x(\d+)$")
# "16:9", "4/3", "2.35"
ASPECT_RATIO_PATTERN = re.compile(r"^\d+(?:\.\d+)?(?:[:/]\d+(?:\.\d+)?)?$")


class JobStatus(str, Enum):
    """
    Job lifecycle state.

    starting -> running -> ended | errored | stopped
    """

    STARTING = "starting"  # Process spawned, no output confirmed yet
    RUNNING = "running"  # ffmpeg confirmed it is producing output
    ENDED = "ended"  # Source exhausted, exit code 0
    ERRORED = "errored"  # ffmpeg reported a failure
    STOPPED = "stopped"  # Terminated on request


class EncodeOptions(BaseModel):
    """
    Encoding parameters for one job.

    Defaults match a 1080p RTMP ingest at 3 Mbps.
    """

    model_config = ConfigDict(extra="forbid")

    bitrate: str = "3000k"
    audio_bitrate: str = "192k"
    audio_channels: int = Field(default=2, ge=1, le=8)

    # "WIDTHxHEIGHT"; empty means keep source size
    resolution: Optional[str] = "1920x1080"
    # Display aspect ratio, only used when no resolution is set
    aspect_ratio: Optional[str] = None
    # True: fill the frame ignoring source aspect; False: letterbox/pillarbox
    force_stretch: bool = True

    # Seek offset, normalized to HH:MM:SS at command build time
    start_time: Optional[str] = None
    # Loop a single file forever (ignored for playlists)
    loop: bool = False
    # Stream a playlist as one job through a concat manifest
    seamless: bool = False

    @field_validator("bitrate", "audio_bitrate")
    @classmethod
    def validate_bitrate(cls, v: str) -> str:
        v = v.strip()
        if not BITRATE_PATTERN.match(v):
            raise ValueError(f"Invalid bitrate: {v!r} (expected e.g. '3000k')")
        return v

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip().lower()
        if not RESOLUTION_PATTERN.match(v):
            raise ValueError(f"Invalid resolution: {v!r} (expected WIDTHxHEIGHT)")
        return v

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not ASPECT_RATIO_PATTERN.match(v):
            raise ValueError(f"Invalid aspect ratio: {v!r} (expected e.g. '16:9')")
        return v

    def frame_size(self) -> Optional[tuple]:
        """Return (width, height) as strings, or None when no resolution is set."""
        if not self.resolution:
            return None
        match = RESOLUTION_PATTERN.match(self.resolution)
        return match.group(1), match.group(2)


def bitrate_kbps(value: str) -> int:
    """
    Convert a bitrate string to kbit/s.

    Args:
        value: "3000k", "3M" or plain bits per second

    Returns:
        Integer kbit/s
    """
    match = BITRATE_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid bitrate: {value!r}")
    amount, unit = int(match.group(1)), match.group(2).lower()
    if unit == "m":
        return amount * 1000
    if unit == "k":
        return amount
    return amount // 1000


class Job(BaseModel):
    """
    One streaming job.

    The process handle lives in the controller; this model is the
    observable state that the registry and the API expose.
    """

    model_config = ConfigDict(extra="forbid")

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # Source: one path, or several for a seamless manifest
    source_paths: List[str]
    seamless: bool = False
    manifest_path: Optional[str] = None

    destination: str
    options: EncodeOptions = Field(default_factory=EncodeOptions)

    # Owning playlist, if any
    playlist_id: Optional[str] = None
    display_name: str = ""

    # State
    status: JobStatus = JobStatus.STARTING
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Outcome
    failure_reason: Optional[str] = None

    def summary(self) -> dict:
        """Shape returned by list_active_jobs()."""
        return {
            "id": self.id,
            "display_name": self.display_name,
            "destination": self.destination,
            "started_at": (self.started_at or self.created_at).isoformat(),
            "status": self.status.value,
            "playlist_id": self.playlist_id,
            "seamless": self.seamless,
        }
