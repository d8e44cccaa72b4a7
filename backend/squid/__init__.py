"""
RTMP Squid: stream local video files and playlists to RTMP ingest points.

Packages:
    jobs: job models, state machine and active job registry
    encoding: ffmpeg command building and process supervision
    playlists: playlist store and shuffle engine
    watchfolders: folder scanning and watch polling
    events: event bus
    routes: HTTP and WebSocket API
"""

__version__ = "0.1.0"
