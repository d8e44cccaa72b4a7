"""
Ad hoc stream endpoints and folder scanning.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from squid.engine import DEFAULT_MIN_SIZE_MB
from squid.errors import SquidError
from .common import StreamOptionsRequest, get_engine, http_error, join_destination

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["streams"])


class StreamStartRequest(StreamOptionsRequest):
    """Request body for a single-file stream."""

    file_path: str
    rtmp_url: str
    stream_key: Optional[str] = None
    loop: bool = False


class ScanFolderRequest(BaseModel):
    """Request body for a folder scan."""

    model_config = ConfigDict(extra="forbid")

    folder_path: str
    # Flat unless asked; watches and imports recurse by default
    recursive: bool = False
    min_size_mb: float = Field(default=DEFAULT_MIN_SIZE_MB, ge=0)


@router.post("/stream/start")
async def start_stream_endpoint(body: StreamStartRequest, request: Request):
    """
    Start streaming one file.

    Returns once ffmpeg is producing output.

    Raises:
        400: Missing file path or RTMP URL, invalid options
        404: File not found
        502: ffmpeg failed to start
    """
    engine = get_engine(request)
    try:
        destination = join_destination(body.rtmp_url, body.stream_key)
        options = body.to_encode_options(loop=body.loop)
        job_id = await engine.start_stream(body.file_path, destination, options)
    except SquidError as e:
        logger.error(f"[API] Failed to start stream for {body.file_path}: {e}")
        raise http_error(e)

    return {
        "success": True,
        "job_id": job_id,
        "message": "Stream started successfully",
    }


@router.post("/stream/stop/{job_id}")
async def stop_stream_endpoint(job_id: str, request: Request):
    engine = get_engine(request)
    try:
        await engine.stop_stream(job_id)
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "message": "Stream stopped successfully"}


@router.get("/streams")
async def list_streams_endpoint(request: Request):
    return get_engine(request).list_active_jobs()


@router.post("/scan-folder")
async def scan_folder_endpoint(body: ScanFolderRequest, request: Request):
    """
    List video files in a folder, skipping files below min_size_mb.

    Raises:
        400: Path is not a directory
        404: Folder not found
    """
    engine = get_engine(request)
    try:
        files = await engine.scan_folder(body.folder_path, body.recursive, body.min_size_mb)
    except SquidError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"[API] Failed to scan {body.folder_path}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to scan folder: {e}")

    return {
        "success": True,
        "folder_path": body.folder_path,
        "count": len(files),
        "files": [f.model_dump() for f in files],
        "min_size_mb": body.min_size_mb,
    }
