"""
Runtime configuration for the RTMP Squid backend.

All settings are read once at import time from environment variables.
Nothing is persisted; restart the service to pick up new values.

Environment variables:
    SQUID_HOST                  Bind address for the HTTP server (default: 0.0.0.0)
    SQUID_PORT                  HTTP port (default: 3001)
    SQUID_LOG_LEVEL             Root log level (default: INFO)
    SQUID_CORS_ORIGINS          Comma-separated allowed origins (default: *)
    SQUID_FFMPEG_PATH           Explicit ffmpeg binary (default: PATH lookup)
    SQUID_TEMP_DIR              Directory for seamless manifests (default: system temp)
    SQUID_WATCH_INTERVAL        Folder watch poll interval in seconds (default: 30)
    SQUID_STOP_GRACE_SECONDS    SIGTERM -> SIGKILL escalation delay (default: 5)
    SQUID_START_TIMEOUT         Seconds to wait for ffmpeg to start streaming, 0 = wait forever (default: 30)
    SQUID_SMART_SHUFFLE_SIZE    Default recency window for new playlists (default: 50)
    SQUID_SCAN_MAX_DEPTH        Maximum directory depth for recursive scans (default: 32)
"""

import logging
import os
import tempfile
from typing import List

logger = logging.getLogger(__name__)

ENV_HOST = "SQUID_HOST"
ENV_PORT = "SQUID_PORT"
ENV_LOG_LEVEL = "SQUID_LOG_LEVEL"
ENV_CORS_ORIGINS = "SQUID_CORS_ORIGINS"
ENV_FFMPEG_PATH = "SQUID_FFMPEG_PATH"
ENV_TEMP_DIR = "SQUID_TEMP_DIR"
ENV_WATCH_INTERVAL = "SQUID_WATCH_INTERVAL"
ENV_STOP_GRACE_SECONDS = "SQUID_STOP_GRACE_SECONDS"
ENV_START_TIMEOUT = "SQUID_START_TIMEOUT"
ENV_SMART_SHUFFLE_SIZE = "SQUID_SMART_SHUFFLE_SIZE"
ENV_SCAN_MAX_DEPTH = "SQUID_SCAN_MAX_DEPTH"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


HOST: str = os.environ.get(ENV_HOST, "0.0.0.0").strip()
PORT: int = _env_int(ENV_PORT, 3001)
LOG_LEVEL: str = os.environ.get(ENV_LOG_LEVEL, "INFO").strip().upper()
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.environ.get(ENV_CORS_ORIGINS, "*").split(",")
    if origin.strip()
]

FFMPEG_PATH: str = os.environ.get(ENV_FFMPEG_PATH, "").strip()
TEMP_DIR: str = os.environ.get(ENV_TEMP_DIR, "").strip() or tempfile.gettempdir()

WATCH_INTERVAL_SECONDS: float = _env_float(ENV_WATCH_INTERVAL, 30.0)
STOP_GRACE_SECONDS: float = _env_float(ENV_STOP_GRACE_SECONDS, 5.0)
START_TIMEOUT_SECONDS: float = _env_float(ENV_START_TIMEOUT, 30.0)

DEFAULT_SMART_SHUFFLE_SIZE: int = _env_int(ENV_SMART_SHUFFLE_SIZE, 50)
SCAN_MAX_DEPTH: int = _env_int(ENV_SCAN_MAX_DEPTH, 32)

# Video container extensions picked up by folder scans and watches
VIDEO_EXTENSIONS = frozenset({
    ".mp4", ".avi", ".mov", ".mkv", ".flv", ".wmv",
    ".webm", ".m4v", ".mpg", ".mpeg", ".3gp",
})
