"""
Folder watch data models.

All models use Pydantic with strict validation and no silent coercion.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FolderWatch(BaseModel):
    """
    Folder watch binding.

    A folder watch appends newly discovered video files in a directory to
    one playlist. There is at most one watch per playlist.
    """

    model_config = ConfigDict(extra="forbid")

    playlist_id: str = Field(..., description="Playlist receiving discovered files")
    directory: str = Field(..., description="Absolute path to the watched directory")
    recursive: bool = Field(default=True, description="Whether to descend into subdirectories")
    last_check: Optional[datetime] = Field(
        default=None, description="Time of the most recent poll tick"
    )
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("directory")
    @classmethod
    def validate_absolute_path(cls, v: str) -> str:
        """Ensure path is absolute."""
        if not Path(v).is_absolute():
            raise ValueError(f"Watched directory must be absolute: {v}")
        return v

    def summary(self) -> dict:
        return {
            "playlist_id": self.playlist_id,
            "directory": self.directory,
            "recursive": self.recursive,
            "last_check": self.last_check.isoformat() if self.last_check else None,
        }


class ScannedFile(BaseModel):
    """One video file found by a directory scan."""

    model_config = ConfigDict(extra="forbid")

    filename: str
    path: str
    size: int = Field(..., ge=0, description="File size in bytes")
    relative_path: str
