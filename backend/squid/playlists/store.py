"""
In-memory playlist store.

CRUD plus ordering operations. Every user-facing mutation publishes a
playlist.updated event carrying the full playlist snapshot.

Streaming state (streaming flag, cursor movement, bound destination) is
changed through the engine-facing methods at the bottom of the class;
those publish nothing, the engine reports them with its own events.

The store is owned by a single StreamEngine and only touched from the
event loop thread. Each method runs to completion without awaiting, so
mutations on one playlist are serialized.
"""

import logging
import random
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from squid import config
from squid.errors import PlaylistNotFoundError, ValidationError
from squid.events import EventBus, EventType
from squid.jobs.models import EncodeOptions
from .models import Playlist, PlaylistUpdate, ShuffleMode
from .shuffle import arrange_for_cycle, record_played, shuffle_files

logger = logging.getLogger(__name__)


class PlaylistStore:
    """
    In-memory registry for playlists.

    Args:
        event_bus: Bus that receives playlist.updated events
        rng: Random source for shuffles (default: fresh random.Random)
    """

    def __init__(self, event_bus: EventBus, rng: Optional[random.Random] = None):
        self._events = event_bus
        self._rng = rng or random.Random()
        # playlist_id -> Playlist
        self._playlists: Dict[str, Playlist] = {}

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(
        self,
        name: str,
        files: Optional[List[str]] = None,
        auto_loop: bool = False,
        shuffle_mode: ShuffleMode = ShuffleMode.SMART,
        smart_shuffle_size: Optional[int] = None,
    ) -> Playlist:
        """
        Create a playlist.

        Raises:
            ValidationError: If the window size is not positive
        """
        try:
            playlist = Playlist(
                name=name.strip() or "New Playlist",
                files=list(files or []),
                auto_loop=auto_loop,
                shuffle_mode=shuffle_mode,
                smart_shuffle_size=smart_shuffle_size or config.DEFAULT_SMART_SHUFFLE_SIZE,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid playlist: {e}") from e

        self._playlists[playlist.id] = playlist
        logger.info(f"[Playlist] Created '{playlist.name}' ({playlist.id}) with {len(playlist.files)} file(s)")
        self._publish_updated(playlist)
        return playlist

    def get(self, playlist_id: str) -> Optional[Playlist]:
        return self._playlists.get(playlist_id)

    def get_or_raise(self, playlist_id: str) -> Playlist:
        """
        Raises:
            PlaylistNotFoundError: If the playlist does not exist
        """
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            raise PlaylistNotFoundError(playlist_id)
        return playlist

    def list(self) -> List[Playlist]:
        """All playlists, oldest first."""
        return sorted(self._playlists.values(), key=lambda p: p.created_at)

    def exists(self, playlist_id: str) -> bool:
        return playlist_id in self._playlists

    def update(self, playlist_id: str, changes: Dict[str, Any]) -> Playlist:
        """
        Apply a partial update.

        Replacing files clamps the cursor. Shrinking the window trims the
        recency history from the oldest end.

        Raises:
            PlaylistNotFoundError: Unknown playlist
            ValidationError: Unknown or invalid fields
        """
        playlist = self.get_or_raise(playlist_id)
        try:
            update = PlaylistUpdate(**changes)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid playlist update: {e}") from e

        fields = update.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in fields:
            playlist.name = fields["name"]
        if "files" in fields:
            playlist.files = list(fields["files"])
            self._clamp_cursor(playlist)
        if "shuffle_mode" in fields:
            playlist.shuffle_mode = fields["shuffle_mode"]
        if "auto_loop" in fields:
            playlist.auto_loop = fields["auto_loop"]
        if "smart_shuffle_size" in fields:
            self._set_window(playlist, fields["smart_shuffle_size"])

        self._publish_updated(playlist)
        return playlist

    def delete(self, playlist_id: str) -> Playlist:
        """
        Remove a playlist. The caller stops any active job first.

        Raises:
            PlaylistNotFoundError: Unknown playlist
        """
        playlist = self.get_or_raise(playlist_id)
        del self._playlists[playlist_id]
        logger.info(f"[Playlist] Deleted '{playlist.name}' ({playlist_id})")
        return playlist

    # =========================================================================
    # Ordering
    # =========================================================================

    def add(self, playlist_id: str, path: str) -> Playlist:
        """Append one file."""
        return self.add_many(playlist_id, [path])

    def add_many(self, playlist_id: str, paths: List[str]) -> Playlist:
        """Append files in the given order, publishing one update."""
        playlist = self.get_or_raise(playlist_id)
        if not paths:
            return playlist
        for path in paths:
            if not path:
                raise ValidationError("File path is required")
        playlist.files.extend(paths)
        self._publish_updated(playlist)
        return playlist

    def remove_at(self, playlist_id: str, index: int) -> Playlist:
        """
        Remove the file at index.

        Raises:
            ValidationError: If index is out of range
        """
        playlist = self.get_or_raise(playlist_id)
        self._check_index(playlist, index)
        del playlist.files[index]
        self._clamp_cursor(playlist)
        self._publish_updated(playlist)
        return playlist

    def reorder(self, playlist_id: str, from_index: int, to_index: int) -> Playlist:
        """
        Move one file from from_index to to_index.

        This is a move, not a swap: [A, B, C, D] with 0 -> 2 gives [B, C, A, D].

        Raises:
            ValidationError: If either index is out of range
        """
        playlist = self.get_or_raise(playlist_id)
        self._check_index(playlist, from_index)
        self._check_index(playlist, to_index)
        moved = playlist.files.pop(from_index)
        playlist.files.insert(to_index, moved)
        self._publish_updated(playlist)
        return playlist

    def shuffle(
        self,
        playlist_id: str,
        mode: Optional[ShuffleMode] = None,
        window_size: Optional[int] = None,
    ) -> Playlist:
        """
        Shuffle on request. Resets the cursor to 0.

        Args:
            mode: New shuffle mode (default: keep configured mode)
            window_size: New recency window (default: keep configured size)
        """
        playlist = self.get_or_raise(playlist_id)
        if mode is not None:
            playlist.shuffle_mode = ShuffleMode(mode)
        if window_size is not None:
            self._set_window(playlist, window_size)

        playlist.files, playlist.recently_played = shuffle_files(
            playlist.files,
            playlist.shuffle_mode,
            playlist.recently_played,
            self._rng,
        )
        playlist.current_index = 0
        logger.info(f"[Playlist] Shuffled '{playlist.name}' ({playlist.shuffle_mode.value})")
        self._publish_updated(playlist)
        return playlist

    def arrange_for_cycle(self, playlist_id: str) -> Playlist:
        """Reorder for a new loop cycle using the configured mode. Cursor -> 0."""
        playlist = self.get_or_raise(playlist_id)
        playlist.files, playlist.recently_played = arrange_for_cycle(
            playlist.files,
            playlist.shuffle_mode,
            playlist.recently_played,
            self._rng,
        )
        playlist.current_index = 0
        self._publish_updated(playlist)
        return playlist

    def cycle_order(self, playlist_id: str) -> List[str]:
        """Order for a seamless manifest, without touching the playlist."""
        playlist = self.get_or_raise(playlist_id)
        order, _ = arrange_for_cycle(
            playlist.files,
            playlist.shuffle_mode,
            playlist.recently_played,
            self._rng,
        )
        return order

    # =========================================================================
    # Engine-facing state
    # =========================================================================

    def record_played(self, playlist_id: str, path: str) -> None:
        playlist = self.get_or_raise(playlist_id)
        playlist.recently_played = record_played(
            playlist.recently_played, path, playlist.smart_shuffle_size
        )

    def bind_stream(
        self,
        playlist_id: str,
        destination: str,
        options: EncodeOptions,
    ) -> Playlist:
        """Mark a playlist as streaming to destination, cursor at 0."""
        playlist = self.get_or_raise(playlist_id)
        playlist.streaming = True
        playlist.current_index = 0
        playlist.destination = destination
        playlist.stream_options = options
        return playlist

    def set_current_job(self, playlist_id: str, job_id: Optional[str]) -> None:
        playlist = self._playlists.get(playlist_id)
        if playlist is not None:
            playlist.current_job_id = job_id

    def advance_cursor(self, playlist_id: str) -> int:
        playlist = self.get_or_raise(playlist_id)
        playlist.current_index += 1
        return playlist.current_index

    def mark_idle(self, playlist_id: str) -> None:
        """streaming=False, cursor=0. Ignores playlists deleted meanwhile."""
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            return
        playlist.streaming = False
        playlist.current_index = 0
        playlist.current_job_id = None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _set_window(self, playlist: Playlist, window_size: int) -> None:
        if window_size < 1:
            raise ValidationError(f"Smart shuffle size must be positive: {window_size}")
        playlist.smart_shuffle_size = window_size
        while len(playlist.recently_played) > window_size:
            playlist.recently_played.pop(0)

    @staticmethod
    def _check_index(playlist: Playlist, index: int) -> None:
        if not 0 <= index < len(playlist.files):
            raise ValidationError(
                f"Index {index} out of range for playlist with {len(playlist.files)} file(s)"
            )

    @staticmethod
    def _clamp_cursor(playlist: Playlist) -> None:
        if playlist.current_index >= len(playlist.files):
            playlist.current_index = max(0, len(playlist.files) - 1)

    def _publish_updated(self, playlist: Playlist) -> None:
        self._events.publish(EventType.PLAYLIST_UPDATED, playlist.snapshot())
