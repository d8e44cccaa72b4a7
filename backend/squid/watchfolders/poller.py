"""
Folder watch poller.

One background task for the whole process. Every tick it rescans each
watched directory and appends files that are not yet in the playlist.

Directory walks run in a worker thread. The diff and the append run back
on the event loop, so they never interleave with other playlist mutations.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from squid import config
from squid.events import EventBus, EventType
from squid.playlists import PlaylistStore
from .models import FolderWatch
from .registry import WatchRegistry
from .scanner import FileScanner

logger = logging.getLogger(__name__)


class WatchPoller:
    """
    Periodic sweep over all folder watches.

    Warn-and-continue semantics: a failing watch is logged and the sweep
    moves on to the next one.
    """

    def __init__(
        self,
        registry: WatchRegistry,
        store: PlaylistStore,
        event_bus: EventBus,
        scanner: Optional[FileScanner] = None,
        interval_seconds: Optional[float] = None,
    ):
        self._registry = registry
        self._store = store
        self._events = event_bus
        self._scanner = scanner or FileScanner()
        self._interval = (
            config.WATCH_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            logger.warning("[Watch] Poller already running")
            return
        logger.info(f"[Watch] Poller started, interval {self._interval:g}s")
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[Watch] Poller stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.exception(f"[Watch] Sweep failed: {e}")

    async def sweep(self) -> int:
        """
        Run one pass over every watch.

        Returns:
            Total number of files appended across all playlists
        """
        added = 0
        for watch in self._registry.list_watches():
            if not self._store.exists(watch.playlist_id):
                self._registry.remove_watch(watch.playlist_id)
                logger.info(f"[Watch] Pruned watch on {watch.directory}: playlist {watch.playlist_id} is gone")
                continue

            try:
                added += await self._check(watch)
            except Exception as e:
                logger.error(f"[Watch] Error watching {watch.directory} for playlist {watch.playlist_id}: {e}")
            finally:
                watch.last_check = datetime.now()
        return added

    async def _check(self, watch: FolderWatch) -> int:
        found = await asyncio.to_thread(
            self._scanner.scan, watch.directory, watch.recursive
        )

        # Back on the loop; the playlist may have been deleted during the scan
        playlist = self._store.get(watch.playlist_id)
        if playlist is None:
            return 0

        known = set(playlist.files)
        new_files: List[str] = [path for path in found if path not in known]
        if not new_files:
            return 0

        self._store.add_many(watch.playlist_id, new_files)
        logger.info(f"[Watch] Added {len(new_files)} new file(s) to playlist '{playlist.name}'")
        self._events.publish(EventType.PLAYLIST_NEW_FILES, {
            "playlist_id": watch.playlist_id,
            "count": len(new_files),
            "files": new_files,
        })
        return len(new_files)
