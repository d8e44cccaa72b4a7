"""
Playlist endpoints: CRUD, ordering, streaming and folder watches.

Every handler delegates to the StreamEngine on app.state and maps engine
errors to HTTP status codes (400 validation, 404 unknown id, 502 ffmpeg).
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from squid.engine import DEFAULT_MIN_SIZE_MB
from squid.errors import SquidError
from squid.playlists import ShuffleMode
from .common import StreamOptionsRequest, get_engine, http_error, join_destination

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/playlists", tags=["playlists"])


class CreatePlaylistRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = "New Playlist"
    files: List[str] = Field(default_factory=list)
    auto_loop: bool = False
    shuffle_mode: ShuffleMode = ShuffleMode.SMART
    smart_shuffle_size: Optional[int] = Field(default=None, ge=1)


class ImportFolderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    folder_path: str
    name: Optional[str] = None
    recursive: bool = True
    min_size_mb: float = Field(default=DEFAULT_MIN_SIZE_MB, ge=0)
    watch: bool = False
    auto_loop: bool = False
    shuffle_mode: ShuffleMode = ShuffleMode.SMART


class AddFileRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    file_path: str


class ReorderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    from_index: int
    to_index: int


class ShuffleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    shuffle_mode: Optional[ShuffleMode] = None
    smart_shuffle_size: Optional[int] = Field(default=None, ge=1)


class PlaylistStreamRequest(StreamOptionsRequest):
    """Request body for starting a playlist."""

    rtmp_url: str
    stream_key: Optional[str] = None
    seamless: bool = False


class WatchFolderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    folder_path: str
    recursive: bool = True


# ============================================================================
# CRUD
# ============================================================================

@router.post("")
async def create_playlist_endpoint(body: CreatePlaylistRequest, request: Request):
    engine = get_engine(request)
    try:
        playlist = engine.create_playlist(
            body.name,
            files=body.files,
            auto_loop=body.auto_loop,
            shuffle_mode=body.shuffle_mode,
            smart_shuffle_size=body.smart_shuffle_size,
        )
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "playlist_id": playlist.id, "playlist": playlist.snapshot()}


@router.post("/import")
async def import_folder_endpoint(body: ImportFolderRequest, request: Request):
    """
    Create a playlist from the video files in a folder.

    With watch=True the folder keeps feeding new files into the playlist.
    """
    engine = get_engine(request)
    try:
        playlist = await engine.import_folder(
            body.name or "",
            body.folder_path,
            recursive=body.recursive,
            min_size_mb=body.min_size_mb,
            watch=body.watch,
            auto_loop=body.auto_loop,
            shuffle_mode=body.shuffle_mode,
        )
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "playlist_id": playlist.id, "playlist": playlist.snapshot()}


@router.get("")
async def list_playlists_endpoint(request: Request):
    return [p.snapshot() for p in get_engine(request).list_playlists()]


@router.get("/{playlist_id}")
async def get_playlist_endpoint(playlist_id: str, request: Request):
    try:
        return get_engine(request).get_playlist(playlist_id).snapshot()
    except SquidError as e:
        raise http_error(e)


@router.put("/{playlist_id}")
async def update_playlist_endpoint(playlist_id: str, body: Dict[str, Any], request: Request):
    """
    Partial update of name, files, shuffle_mode, smart_shuffle_size, auto_loop.

    Unknown fields are rejected with 400.
    """
    try:
        playlist = get_engine(request).update_playlist(playlist_id, body)
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "playlist": playlist.snapshot()}


@router.delete("/{playlist_id}")
async def delete_playlist_endpoint(playlist_id: str, request: Request):
    try:
        await get_engine(request).delete_playlist(playlist_id)
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "message": "Playlist deleted"}


# ============================================================================
# Ordering
# ============================================================================

@router.post("/{playlist_id}/files")
async def add_file_endpoint(playlist_id: str, body: AddFileRequest, request: Request):
    try:
        playlist = get_engine(request).add_file(playlist_id, body.file_path)
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "playlist": playlist.snapshot()}


@router.delete("/{playlist_id}/files/{index}")
async def remove_file_endpoint(playlist_id: str, index: int, request: Request):
    try:
        playlist = get_engine(request).remove_file_at(playlist_id, index)
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "playlist": playlist.snapshot()}


@router.post("/{playlist_id}/reorder")
async def reorder_endpoint(playlist_id: str, body: ReorderRequest, request: Request):
    try:
        playlist = get_engine(request).reorder(playlist_id, body.from_index, body.to_index)
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "playlist": playlist.snapshot()}


@router.post("/{playlist_id}/shuffle")
async def shuffle_endpoint(playlist_id: str, request: Request, body: Optional[ShuffleRequest] = None):
    body = body or ShuffleRequest()
    try:
        playlist = get_engine(request).shuffle(
            playlist_id,
            mode=body.shuffle_mode,
            window_size=body.smart_shuffle_size,
        )
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "playlist": playlist.snapshot()}


# ============================================================================
# Streaming
# ============================================================================

@router.post("/{playlist_id}/stream")
async def start_playlist_endpoint(playlist_id: str, body: PlaylistStreamRequest, request: Request):
    """
    Start streaming a playlist.

    Returns once ffmpeg is producing output for the first file (or for
    the seamless manifest).

    Raises:
        400: Missing RTMP URL, empty playlist, already streaming
        404: Playlist not found
        502: ffmpeg failed to start
    """
    engine = get_engine(request)
    try:
        destination = join_destination(body.rtmp_url, body.stream_key)
        options = body.to_encode_options(seamless=body.seamless)
        result = await engine.start_playlist(playlist_id, destination, options)
    except SquidError as e:
        logger.error(f"[API] Failed to start playlist {playlist_id}: {e}")
        raise http_error(e)
    return {"success": True, **result}


@router.post("/{playlist_id}/stop")
async def stop_playlist_endpoint(playlist_id: str, request: Request):
    try:
        await get_engine(request).stop_playlist(playlist_id)
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "message": "Playlist stopped"}


# ============================================================================
# Folder watch
# ============================================================================

@router.post("/{playlist_id}/watch-folder")
async def enable_watch_endpoint(playlist_id: str, body: WatchFolderRequest, request: Request):
    try:
        watch = get_engine(request).enable_folder_watch(
            playlist_id, body.folder_path, body.recursive
        )
    except SquidError as e:
        raise http_error(e)
    return {"success": True, "message": "Folder watching enabled", "watch": watch.summary()}


@router.delete("/{playlist_id}/watch-folder")
async def disable_watch_endpoint(playlist_id: str, request: Request):
    get_engine(request).disable_folder_watch(playlist_id)
    return {"success": True, "message": "Folder watching disabled"}
