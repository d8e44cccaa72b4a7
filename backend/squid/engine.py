"""
Stream engine: the single entry point for jobs, playlists and folder watches.

The engine owns every registry (jobs, playlists, watches), the encoding
controller, the event bus and the folder watch poller. Routes and tests
talk to this facade only.

Concurrency model:
- Everything runs on one asyncio event loop; the engine is the only writer
- A playlist start claims the playlist slot before its first await, so at
  most one job per playlist exists even under concurrent start requests
- Playlist advancement runs from the controller's job-ended callback and
  schedules the next start as a tracked background task
- Folder scans run in a worker thread, their results are applied on the loop
"""

import asyncio
import logging
import os
import random
from typing import Any, Dict, List, Optional, Set

from squid.encoding import EncodingJobController
from squid.errors import (
    JobNotFoundError,
    NotFoundError,
    PlaylistNotFoundError,
    SquidError,
    ValidationError,
)
from squid.events import EventBus, EventType
from squid.jobs import EncodeOptions, Job, JobRegistry
from squid.playlists import Playlist, PlaylistStore, ShuffleMode
from squid.watchfolders import (
    FileScanner,
    FolderWatch,
    ScannedFile,
    WatchPoller,
    WatchRegistry,
)

logger = logging.getLogger(__name__)

# scan-folder default, small files are usually samples or broken encodes
DEFAULT_MIN_SIZE_MB = 3.0


class StreamEngine:
    """
    Stream orchestration engine.

    Coordinates:
    1. Ad hoc single-file streams
    2. Playlists, streamed file by file or seamlessly through one manifest
    3. Playlist advancement when a file finishes
    4. Folder watches feeding new files into playlists
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        spawn=None,
        ffmpeg_path: Optional[str] = None,
        temp_dir: Optional[str] = None,
        stop_grace_seconds: Optional[float] = None,
        start_timeout_seconds: Optional[float] = None,
        watch_interval_seconds: Optional[float] = None,
        scanner: Optional[FileScanner] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the engine and all owned components.

        Args:
            event_bus: Shared event bus (default: new EventBus)
            spawn: Process spawner passed to the controller (tests inject fakes)
            ffmpeg_path: Explicit ffmpeg binary
            temp_dir: Directory for seamless manifests
            stop_grace_seconds: SIGTERM -> SIGKILL escalation delay
            start_timeout_seconds: Max wait for ffmpeg to start streaming
            watch_interval_seconds: Folder watch poll interval
            scanner: Directory scanner for watches and imports
            rng: Random source for all shuffles
        """
        self.events = event_bus or EventBus()
        self.registry = JobRegistry()
        self.playlists = PlaylistStore(self.events, rng=rng)
        self.watches = WatchRegistry()
        self.scanner = scanner or FileScanner()

        self.controller = EncodingJobController(
            self.registry,
            self.events,
            spawn=spawn,
            ffmpeg_path=ffmpeg_path,
            temp_dir=temp_dir,
            stop_grace_seconds=stop_grace_seconds,
            start_timeout_seconds=start_timeout_seconds,
        )
        self.controller.on_job_ended = self._on_job_ended
        self.controller.on_job_failed = self._on_job_failed

        self.poller = WatchPoller(
            self.watches,
            self.playlists,
            self.events,
            scanner=self.scanner,
            interval_seconds=watch_interval_seconds,
        )

        # Background advancement starts
        self._tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start background services (folder watch poller)."""
        self.poller.start()

    async def shutdown(self) -> None:
        """Stop the poller, every stream, and pending advancement tasks."""
        await self.poller.stop()
        await self.stop_all_streams()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("[Engine] Shutdown complete")

    async def wait_idle(self) -> None:
        """Wait until no advancement start is pending."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # Ad hoc streams
    # =========================================================================

    async def start_stream(
        self,
        file_path: str,
        destination: str,
        options: Optional[EncodeOptions] = None,
    ) -> str:
        """
        Stream one file to destination.

        Returns:
            Job id

        Raises:
            ValidationError: Missing file path or destination
            NotFoundError: File does not exist
            ProcessError: ffmpeg failed to start
        """
        if not file_path:
            raise ValidationError("File path is required")
        if not destination or not destination.strip():
            raise ValidationError("Destination URI is required")
        if not os.path.isfile(file_path):
            raise NotFoundError("file", file_path)

        options = (options or EncodeOptions()).model_copy(update={"seamless": False})
        job = await self.controller.start([file_path], destination, options)
        return job.id

    async def stop_stream(self, job_id: str) -> None:
        """
        Stop a job. A playlist-bound job also marks its playlist idle.

        Raises:
            JobNotFoundError: If the job is not active
        """
        job = self.registry.get_job_or_raise(job_id)
        if job.playlist_id is not None:
            self._mark_idle(job.playlist_id)
        await self.controller.stop(job_id)

    def list_active_jobs(self) -> List[Dict[str, Any]]:
        return [job.summary() for job in self.registry.list_jobs()]

    async def stop_all_streams(self) -> None:
        for playlist in self.playlists.list():
            if playlist.streaming:
                self._mark_idle(playlist.id)
        await self.controller.stop_all()

    # =========================================================================
    # Playlist CRUD
    # =========================================================================

    def create_playlist(
        self,
        name: str,
        files: Optional[List[str]] = None,
        auto_loop: bool = False,
        shuffle_mode: ShuffleMode = ShuffleMode.SMART,
        smart_shuffle_size: Optional[int] = None,
    ) -> Playlist:
        return self.playlists.create(
            name,
            files=files,
            auto_loop=auto_loop,
            shuffle_mode=shuffle_mode,
            smart_shuffle_size=smart_shuffle_size,
        )

    def get_playlist(self, playlist_id: str) -> Playlist:
        return self.playlists.get_or_raise(playlist_id)

    def list_playlists(self) -> List[Playlist]:
        return self.playlists.list()

    def update_playlist(self, playlist_id: str, changes: Dict[str, Any]) -> Playlist:
        return self.playlists.update(playlist_id, changes)

    async def delete_playlist(self, playlist_id: str) -> None:
        """
        Delete a playlist, stopping its active job first.

        A folder watch bound to it is pruned on the next poller tick.
        """
        playlist = self.playlists.get_or_raise(playlist_id)
        if playlist.streaming or self.registry.is_playlist_busy(playlist_id):
            await self.stop_playlist(playlist_id)
        self.playlists.delete(playlist_id)

    def add_file(self, playlist_id: str, path: str) -> Playlist:
        return self.playlists.add(playlist_id, path)

    def remove_file_at(self, playlist_id: str, index: int) -> Playlist:
        return self.playlists.remove_at(playlist_id, index)

    def reorder(self, playlist_id: str, from_index: int, to_index: int) -> Playlist:
        return self.playlists.reorder(playlist_id, from_index, to_index)

    def shuffle(
        self,
        playlist_id: str,
        mode: Optional[ShuffleMode] = None,
        window_size: Optional[int] = None,
    ) -> Playlist:
        return self.playlists.shuffle(playlist_id, mode=mode, window_size=window_size)

    # =========================================================================
    # Playlist streaming
    # =========================================================================

    async def start_playlist(
        self,
        playlist_id: str,
        destination: str,
        options: Optional[EncodeOptions] = None,
    ) -> Dict[str, Any]:
        """
        Start streaming a playlist.

        With options.seamless the whole playlist becomes one job reading a
        concat manifest. Otherwise files are streamed one job at a time and
        the engine advances when each job ends.

        Returns:
            {"playlist_id", "job_id", "seamless"}

        Raises:
            PlaylistNotFoundError: Unknown playlist
            ValidationError: Empty playlist, missing destination, already streaming
            ProcessError: ffmpeg failed to start
        """
        playlist = self.playlists.get_or_raise(playlist_id)
        if not playlist.files:
            raise ValidationError("Playlist is empty")
        if not destination or not destination.strip():
            raise ValidationError("Destination URI is required")

        options = options or EncodeOptions()

        # Claimed before the first await
        self.registry.reserve_playlist(playlist_id)
        self.playlists.bind_stream(playlist_id, destination.strip(), options)

        try:
            if options.seamless:
                job = await self._launch_seamless(playlist)
            else:
                job = await self._launch_file(playlist_id, 0)
        except Exception:
            self.registry.release_playlist(playlist_id)
            self._mark_idle(playlist_id)
            raise

        # Stopped or deleted while ffmpeg was starting; the job is already gone
        current = self.playlists.get(playlist_id)
        if current is None:
            raise PlaylistNotFoundError(playlist_id)
        if not current.streaming:
            raise ValidationError("Playlist was stopped while starting")

        logger.info(
            f"[Playlist] Started '{playlist.name}' ({'seamless' if options.seamless else 'per-file'})"
        )
        result = {
            "playlist_id": playlist_id,
            "job_id": job.id,
            "seamless": options.seamless,
        }
        self.events.publish(EventType.PLAYLIST_STARTED, result)
        return result

    async def stop_playlist(self, playlist_id: str) -> None:
        """
        Stop a playlist and its active job. No advancement follows.

        Raises:
            PlaylistNotFoundError: Unknown playlist
        """
        self.playlists.get_or_raise(playlist_id)
        self._mark_idle(playlist_id)

        job = self.registry.job_for_playlist(playlist_id)
        if job is None:
            return
        try:
            await self.controller.stop(job.id)
        except JobNotFoundError:
            pass  # Closed on its own meanwhile
        logger.info(f"[Playlist] Stopped playlist {playlist_id}")

    async def _launch_file(self, playlist_id: str, index: int) -> Job:
        playlist = self.playlists.get_or_raise(playlist_id)
        path = playlist.files[index]
        options = playlist.stream_options.model_copy(
            update={"loop": False, "seamless": False}
        )

        job = await self.controller.start(
            [path],
            playlist.destination,
            options,
            playlist_id=playlist_id,
        )
        if await self._bind_job(playlist_id, job):
            self.playlists.record_played(playlist_id, path)
        return job

    async def _launch_seamless(self, playlist: Playlist) -> Job:
        order = self.playlists.cycle_order(playlist.id)
        job = await self.controller.start(
            order,
            playlist.destination,
            playlist.stream_options,
            playlist_id=playlist.id,
            display_name=f"{playlist.name} (seamless)",
            seamless=True,
        )
        await self._bind_job(playlist.id, job)
        return job

    async def _bind_job(self, playlist_id: str, job: Job) -> bool:
        """
        Attach a freshly started job to its playlist.

        Returns:
            False if the playlist was stopped or deleted while ffmpeg was
            starting; the job has been stopped in that case
        """
        playlist = self.playlists.get(playlist_id)
        if playlist is None or not playlist.streaming:
            logger.info(f"[Playlist] Playlist {playlist_id} stopped during start, stopping job {job.id}")
            try:
                await self.controller.stop(job.id)
            except JobNotFoundError:
                pass  # Already closed
            return False

        self.playlists.set_current_job(playlist_id, job.id)
        return True

    # =========================================================================
    # Advancement
    # =========================================================================

    def _on_job_ended(self, job: Job) -> None:
        """Natural end of a job: move a bound playlist forward."""
        if job.playlist_id is None:
            return
        playlist = self.playlists.get(job.playlist_id)
        if playlist is None or not playlist.streaming:
            return

        if job.seamless:
            self._complete(playlist)
            return

        self.playlists.record_played(playlist.id, job.source_paths[0])
        index = self.playlists.advance_cursor(playlist.id)

        if index < len(playlist.files):
            if not self._schedule_next(playlist, index):
                return
            self.events.publish(EventType.PLAYLIST_NEXT, {
                "playlist_id": playlist.id,
                "index": index,
                "file": os.path.basename(playlist.files[index]),
            })
        elif playlist.auto_loop and playlist.files:
            logger.info(f"[Playlist] '{playlist.name}' completed, reshuffling and restarting")
            self.playlists.arrange_for_cycle(playlist.id)
            if self._schedule_next(playlist, 0):
                self.events.publish(EventType.PLAYLIST_SHUFFLED, {"playlist_id": playlist.id})
        else:
            self._complete(playlist)

    def _on_job_failed(self, job: Job) -> None:
        if job.playlist_id is not None and self._mark_idle(job.playlist_id):
            logger.warning(f"[Playlist] Playlist {job.playlist_id} stopped after job failure: {job.failure_reason}")

    def _complete(self, playlist: Playlist) -> None:
        logger.info(f"[Playlist] '{playlist.name}' completed")
        self._mark_idle(playlist.id)
        self.events.publish(EventType.PLAYLIST_COMPLETED, {"playlist_id": playlist.id})

    def _schedule_next(self, playlist: Playlist, index: int) -> bool:
        try:
            # Synchronous, so nothing else can claim the playlist in between
            self.registry.reserve_playlist(playlist.id)
        except ValidationError as e:
            logger.error(f"[Playlist] Cannot advance '{playlist.name}': {e}")
            self._mark_idle(playlist.id)
            return False

        task = asyncio.ensure_future(self._advance_to(playlist.id, index))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _advance_to(self, playlist_id: str, index: int) -> None:
        # The reservation is handed to the job by add_job(); it is only
        # released here when no job took it over.
        playlist = self.playlists.get(playlist_id)
        if playlist is None or not playlist.streaming:
            self.registry.release_playlist(playlist_id)
            return

        try:
            await self._launch_file(playlist_id, index)
        except asyncio.CancelledError:
            self.registry.release_playlist(playlist_id)
            raise
        except SquidError as e:
            # Controller already published job.error for process failures
            logger.error(f"[Playlist] Failed to start file {index} of playlist {playlist_id}: {e}")
            self.registry.release_playlist(playlist_id)
            self._mark_idle(playlist_id)
        except Exception as e:
            logger.exception(f"[Playlist] Unexpected error advancing playlist {playlist_id}: {e}")
            self.registry.release_playlist(playlist_id)
            self._mark_idle(playlist_id)

    def _mark_idle(self, playlist_id: str) -> bool:
        """
        Mark a playlist idle and publish its snapshot.

        Returns:
            False if it was already idle or no longer exists
        """
        playlist = self.playlists.get(playlist_id)
        if playlist is None or not playlist.streaming:
            return False
        self.playlists.mark_idle(playlist_id)
        self.events.publish(EventType.PLAYLIST_UPDATED, playlist.snapshot())
        return True

    # =========================================================================
    # Folder watches and imports
    # =========================================================================

    def enable_folder_watch(
        self,
        playlist_id: str,
        directory: str,
        recursive: bool = True,
    ) -> FolderWatch:
        """
        Watch a directory and append new video files to a playlist.

        Replaces any existing watch on the playlist.

        Raises:
            PlaylistNotFoundError: Unknown playlist
            ValidationError: Missing directory, or path is not a directory
            NotFoundError: Directory does not exist
        """
        self.playlists.get_or_raise(playlist_id)
        if not directory:
            raise ValidationError("Folder path is required")

        watch = FolderWatch(
            playlist_id=playlist_id,
            directory=os.path.abspath(directory),
            recursive=recursive,
        )
        self.watches.add_watch(watch)
        logger.info(f"[Watch] Watching {watch.directory} for playlist {playlist_id} (recursive={recursive})")
        return watch

    def disable_folder_watch(self, playlist_id: str) -> bool:
        """Remove the watch on a playlist. Returns False if there was none."""
        removed = self.watches.remove_watch(playlist_id)
        if removed is not None:
            logger.info(f"[Watch] Stopped watching {removed.directory} for playlist {playlist_id}")
        return removed is not None

    async def scan_folder(
        self,
        directory: str,
        recursive: bool = True,
        min_size_mb: float = DEFAULT_MIN_SIZE_MB,
    ) -> List[ScannedFile]:
        """
        List video files in a directory.

        Raises:
            ValidationError: Missing directory, or path is not a directory
            NotFoundError: Directory does not exist
        """
        if not directory:
            raise ValidationError("Folder path is required")
        if min_size_mb < 0:
            raise ValidationError(f"Minimum size must not be negative: {min_size_mb}")

        min_size_bytes = int(min_size_mb * 1024 * 1024)
        return await asyncio.to_thread(
            self.scanner.scan_entries, directory, recursive, min_size_bytes
        )

    async def import_folder(
        self,
        name: str,
        directory: str,
        recursive: bool = True,
        min_size_mb: float = DEFAULT_MIN_SIZE_MB,
        watch: bool = False,
        auto_loop: bool = False,
        shuffle_mode: ShuffleMode = ShuffleMode.SMART,
    ) -> Playlist:
        """Create a playlist from a folder scan, optionally watching the folder."""
        entries = await self.scan_folder(directory, recursive, min_size_mb)
        playlist = self.create_playlist(
            name or os.path.basename(os.path.abspath(directory)),
            files=[entry.path for entry in entries],
            auto_loop=auto_loop,
            shuffle_mode=shuffle_mode,
        )
        logger.info(f"[Playlist] Imported {len(entries)} file(s) from {directory} into '{playlist.name}'")
        if watch:
            self.enable_folder_watch(playlist.id, directory, recursive)
        return playlist
