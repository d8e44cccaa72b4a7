"""
Playlists: ordered file lists with cursor, shuffle and recency history.

Public API:
    Playlist: playlist state model
    PlaylistStore: in-memory CRUD and ordering
    ShuffleMode: none / random / smart
    plain_shuffle, smart_shuffle, record_played: shuffle engine
"""

from .models import Playlist, PlaylistUpdate, ShuffleMode
from .shuffle import (
    arrange_for_cycle,
    plain_shuffle,
    record_played,
    shuffle_files,
    smart_shuffle,
)
from .store import PlaylistStore

__all__ = [
    # Models
    "Playlist",
    "PlaylistUpdate",
    "ShuffleMode",
    # Shuffle engine
    "arrange_for_cycle",
    "plain_shuffle",
    "record_played",
    "shuffle_files",
    "smart_shuffle",
    # Store
    "PlaylistStore",
]
