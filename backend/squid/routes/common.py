"""
Shared helpers for the HTTP routes.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from fastapi.requests import HTTPConnection
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from squid.engine import StreamEngine
from squid.errors import NotFoundError, ProcessError, SquidError, ValidationError
from squid.jobs import EncodeOptions

logger = logging.getLogger(__name__)


def get_engine(connection: HTTPConnection) -> StreamEngine:
    return connection.app.state.engine


def http_error(e: SquidError) -> HTTPException:
    """Map an engine error onto the matching HTTP status."""
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ProcessError):
        return HTTPException(
            status_code=502,
            detail={"error": str(e), "diagnostics": e.diagnostics or ""},
        )
    logger.error(f"[API] Unhandled engine error: {e}")
    return HTTPException(status_code=500, detail=str(e))


def join_destination(rtmp_url: str, stream_key: Optional[str]) -> str:
    """Ingest URL with the stream key appended as the last path segment."""
    if not rtmp_url or not rtmp_url.strip():
        raise ValidationError("RTMP URL is required")
    rtmp_url = rtmp_url.strip()
    if stream_key:
        return f"{rtmp_url}/{stream_key.strip()}"
    return rtmp_url


class StreamOptionsRequest(BaseModel):
    """Encode options accepted by the streaming endpoints. Unset = default."""

    model_config = ConfigDict(extra="forbid")

    bitrate: Optional[str] = None
    audio_bitrate: Optional[str] = None
    audio_channels: Optional[int] = Field(default=None, ge=1, le=8)
    aspect_ratio: Optional[str] = None
    force_stretch: Optional[bool] = None
    resolution: Optional[str] = None
    start_time: Optional[str] = None

    def to_encode_options(self, **overrides) -> EncodeOptions:
        """
        Raises:
            ValidationError: If a value is malformed (bitrate, resolution)
        """
        values = {
            name: getattr(self, name)
            for name in StreamOptionsRequest.model_fields
            if getattr(self, name) is not None
        }
        values.update(overrides)
        try:
            return EncodeOptions(**values)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid stream options: {e}") from e
