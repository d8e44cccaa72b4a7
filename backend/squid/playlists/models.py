"""
Playlist data models.

A playlist is a named, ordered list of media paths with a play cursor,
shuffle configuration and a bounded recency history.

All models use Pydantic with strict validation and no silent coercion.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from squid import config
from squid.jobs.models import EncodeOptions


class ShuffleMode(str, Enum):
    """How a playlist is reordered at shuffle and loop time."""

    NONE = "none"  # Keep the given order
    RANDOM = "random"  # Plain Fisher-Yates
    SMART = "smart"  # Fisher-Yates that keeps recently played files last


class Playlist(BaseModel):
    """
    Playlist state.

    INVARIANTS:
    - current_index is within [0, len(files)) while streaming, 0 when idle
    - len(recently_played) <= smart_shuffle_size, no duplicates
    - At most one active job (current_job_id) at a time
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    files: List[str] = Field(default_factory=list)
    current_index: int = 0

    shuffle_mode: ShuffleMode = ShuffleMode.SMART
    smart_shuffle_size: int = Field(default=config.DEFAULT_SMART_SHUFFLE_SIZE, ge=1)
    recently_played: List[str] = Field(default_factory=list)
    auto_loop: bool = False

    # Streaming binding
    streaming: bool = False
    destination: Optional[str] = None
    stream_options: Optional[EncodeOptions] = None
    current_job_id: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.now)

    def snapshot(self) -> Dict[str, Any]:
        """Full JSON-safe copy, used as event payload and API response."""
        return self.model_dump(mode="json")


class PlaylistUpdate(BaseModel):
    """
    Partial playlist update.

    Only user-editable fields; streaming state is owned by the engine.
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    files: Optional[List[str]] = None
    shuffle_mode: Optional[ShuffleMode] = None
    smart_shuffle_size: Optional[int] = Field(default=None, ge=1)
    auto_loop: Optional[bool] = None
