"""
Encoding job controller.

Builds, starts, supervises and terminates one ffmpeg process per job.

Design rules:
- One subprocess per job, spawned with asyncio (no polling)
- start() resolves only after ffmpeg confirms it is producing output
- Each job is a state machine: STARTING → RUNNING → ENDED | ERRORED | STOPPED
- Non-zero exit = ERRORED, never retried
- SIGTERM → SIGKILL escalation for stop, bounded by the stop grace period
- Every progress line is relayed to the event bus as-is
- Seamless manifests are deleted on every terminal path
"""

import asyncio
import logging
import os
import subprocess
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from squid import config
from squid.errors import JobNotFoundError, ProcessError, ValidationError
from squid.events import EventBus, EventType
from squid.jobs.models import EncodeOptions, Job, JobStatus
from squid.jobs.registry import JobRegistry
from squid.jobs.state import validate_job_transition
from .command import build_ffmpeg_command, find_ffmpeg
from .manifest import remove_manifest, write_manifest
from .progress import is_start_signal, iter_output_lines, parse_progress_line

logger = logging.getLogger(__name__)

# stderr lines kept for failure diagnostics
STDERR_TAIL_LINES = 20

Spawner = Callable[[List[str]], Awaitable]
JobCallback = Callable[[Job], None]


async def spawn_ffmpeg(cmd: List[str]):
    """Default spawner: ffmpeg with stderr piped, no stdin."""
    return await asyncio.create_subprocess_exec(
        *cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
    )


def _consume_exception(future: asyncio.Future) -> None:
    # Keeps asyncio quiet when nobody is left awaiting a failed start
    if not future.cancelled():
        future.exception()


@dataclass
class ActiveProcess:
    """Runtime handle for one supervised ffmpeg process."""

    job: Job
    process: object
    started: asyncio.Future
    done: asyncio.Future
    supervisor: Optional[asyncio.Task] = None
    stop_task: Optional[asyncio.Task] = None
    stop_requested: bool = False
    finalized: bool = False
    failure_reason: Optional[str] = None
    stderr_tail: Deque[str] = field(
        default_factory=lambda: deque(maxlen=STDERR_TAIL_LINES)
    )


class EncodingJobController:
    """
    Supervisor for ffmpeg streaming processes.

    Jobs are added to the JobRegistry when spawned and removed as soon as
    they reach a terminal state. Lifecycle outcomes are reported through
    the event bus and through two optional callbacks used by the playlist
    engine:

        on_job_ended(job)   natural end (exit code 0)
        on_job_failed(job)  ffmpeg reported a failure
    """

    def __init__(
        self,
        registry: JobRegistry,
        event_bus: EventBus,
        spawn: Optional[Spawner] = None,
        ffmpeg_path: Optional[str] = None,
        temp_dir: Optional[str] = None,
        stop_grace_seconds: Optional[float] = None,
        start_timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the controller.

        Args:
            registry: Active job registry
            event_bus: Event bus for lifecycle and progress events
            spawn: Coroutine that starts a process from argv (default: asyncio subprocess)
            ffmpeg_path: ffmpeg binary (default: discovered at first start)
            temp_dir: Directory for seamless manifests
            stop_grace_seconds: Delay before SIGKILL escalation
            start_timeout_seconds: Max wait for ffmpeg to start streaming, 0 = unbounded
        """
        self._registry = registry
        self._events = event_bus
        self._spawn = spawn or spawn_ffmpeg
        self._ffmpeg_path = ffmpeg_path
        self._temp_dir = temp_dir or config.TEMP_DIR
        self._stop_grace = (
            config.STOP_GRACE_SECONDS if stop_grace_seconds is None else stop_grace_seconds
        )
        self._start_timeout = (
            config.START_TIMEOUT_SECONDS if start_timeout_seconds is None else start_timeout_seconds
        )

        # job_id -> ActiveProcess
        self._active: Dict[str, ActiveProcess] = {}
        # job_id -> future resolved once the spawn attempt is over
        self._spawning: Dict[str, asyncio.Future] = {}

        self.on_job_ended: Optional[JobCallback] = None
        self.on_job_failed: Optional[JobCallback] = None

    # =========================================================================
    # Start
    # =========================================================================

    async def start(
        self,
        source_paths: List[str],
        destination: str,
        options: Optional[EncodeOptions] = None,
        playlist_id: Optional[str] = None,
        display_name: Optional[str] = None,
        seamless: bool = False,
    ) -> Job:
        """
        Start one streaming job and wait until ffmpeg is producing output.

        Args:
            source_paths: One file, or the ordered playlist when seamless
            destination: Ingest URI
            options: Encode options (default: EncodeOptions())
            playlist_id: Owning playlist, if any
            display_name: Name shown in job listings
            seamless: Stream all source_paths through a concat manifest

        Returns:
            The running Job

        Raises:
            ValidationError: Missing destination or sources
            ManifestIOError: Manifest could not be written
            ProcessError: ffmpeg could not be spawned, exited early or timed out
        """
        options = options or EncodeOptions()

        if not destination or not destination.strip():
            raise ValidationError("Destination URI is required")
        if not source_paths:
            raise ValidationError("No source files to stream")
        if not seamless and len(source_paths) != 1:
            raise ValidationError("Single-file mode takes exactly one source")

        job = Job(
            source_paths=list(source_paths),
            seamless=seamless,
            destination=destination.strip(),
            options=options,
            playlist_id=playlist_id,
            display_name=display_name or self._default_display_name(source_paths, seamless),
        )

        # Claims the playlist slot; raises on conflict before anything is spawned
        self._registry.add_job(job)

        loop = asyncio.get_running_loop()
        spawned = loop.create_future()
        self._spawning[job.id] = spawned
        try:
            try:
                if seamless:
                    job.manifest_path = str(
                        write_manifest(job.id, job.source_paths, self._temp_dir)
                    )
                    source = job.manifest_path
                else:
                    source = job.source_paths[0]

                cmd = build_ffmpeg_command(
                    source,
                    job.destination,
                    options,
                    manifest=seamless,
                    ffmpeg_path=self._resolve_ffmpeg(),
                )
                logger.info(f"[FFmpeg] Executing: {' '.join(cmd)}")
                process = await self._spawn(cmd)
            except OSError as e:
                logger.error(f"[FFmpeg] Failed to spawn ffmpeg for job {job.id}: {e}")
                self._abandon(job, f"Failed to spawn ffmpeg: {e}")
                raise ProcessError(job.id, f"Failed to spawn ffmpeg: {e}") from e
            except (Exception, asyncio.CancelledError) as e:
                self._abandon(job, str(e) or type(e).__name__)
                raise

            active = ActiveProcess(
                job=job,
                process=process,
                started=loop.create_future(),
                done=loop.create_future(),
            )
            active.started.add_done_callback(_consume_exception)
            self._active[job.id] = active
        finally:
            # Wakes stop() calls that arrived while ffmpeg was spawning
            del self._spawning[job.id]
            spawned.set_result(None)

        logger.info(f"[FFmpeg] Started PID {process.pid} for job {job.id}")
        active.supervisor = asyncio.create_task(self._supervise(active))

        try:
            if self._start_timeout and self._start_timeout > 0:
                await asyncio.wait_for(asyncio.shield(active.started), self._start_timeout)
            else:
                await asyncio.shield(active.started)
        except asyncio.TimeoutError:
            active.started.cancel()
            active.failure_reason = (
                f"ffmpeg produced no output within {self._start_timeout:g}s"
            )
            logger.error(f"[FFmpeg] Job {job.id}: {active.failure_reason}, killing PID {process.pid}")
            self._send_signal(active, "kill")
            await asyncio.shield(active.done)
            raise ProcessError(job.id, active.failure_reason, self._diagnostics(active))

        return job

    # =========================================================================
    # Stop
    # =========================================================================

    async def stop(self, job_id: str) -> None:
        """
        Stop a job: SIGTERM, then SIGKILL after the grace period.

        Concurrent stop calls for the same job share one termination. A job
        whose process is still spawning is stopped as soon as it exists.

        Raises:
            JobNotFoundError: If the job is not active
        """
        spawned = self._spawning.get(job_id)
        if spawned is not None:
            logger.info(f"[FFmpeg] Job {job_id} still spawning, stop deferred")
            await asyncio.shield(spawned)
            if job_id not in self._active:
                return  # Spawn failed; the job is already gone

        active = self._active.get(job_id)
        if active is None:
            raise JobNotFoundError(job_id)

        if active.stop_task is None:
            active.stop_task = asyncio.ensure_future(self._terminate(active))
        await asyncio.shield(active.stop_task)

    async def stop_all(self) -> None:
        """Stop every active job. Individual failures are logged."""
        job_ids = list(self._active.keys()) + list(self._spawning.keys())
        if not job_ids:
            return
        logger.info(f"[FFmpeg] Stopping {len(job_ids)} active job(s)")
        results = await asyncio.gather(
            *(self.stop(job_id) for job_id in job_ids),
            return_exceptions=True,
        )
        for job_id, result in zip(job_ids, results):
            if isinstance(result, JobNotFoundError):
                continue
            if isinstance(result, Exception):
                logger.error(f"[FFmpeg] Failed to stop job {job_id}: {result}")

    async def _terminate(self, active: ActiveProcess) -> None:
        active.stop_requested = True
        pid = active.process.pid

        logger.info(f"[FFmpeg] Sending SIGTERM to PID {pid}")
        self._send_signal(active, "terminate")

        try:
            await asyncio.wait_for(asyncio.shield(active.done), timeout=self._stop_grace)
        except asyncio.TimeoutError:
            logger.warning(f"[FFmpeg] PID {pid} did not terminate, sending SIGKILL")
            self._send_signal(active, "kill")
            self._finalize(active, JobStatus.STOPPED)

        logger.info(f"[FFmpeg] Job {active.job.id} stopped")

    def _send_signal(self, active: ActiveProcess, method: str) -> None:
        try:
            getattr(active.process, method)()
        except ProcessLookupError:
            pass  # Process already dead

    # =========================================================================
    # Supervision
    # =========================================================================

    async def _supervise(self, active: ActiveProcess) -> None:
        """Read ffmpeg stderr until exit, driving the job state machine."""
        job = active.job
        returncode: Optional[int] = None

        try:
            async for line in iter_output_lines(active.process.stderr):
                active.stderr_tail.append(line)

                if not active.started.done() and is_start_signal(line):
                    self._mark_running(active)

                progress = parse_progress_line(line)
                if progress is not None:
                    self._publish_progress(job, progress)
                else:
                    logger.debug(f"[FFmpeg] {job.id[:8]}: {line}")

            returncode = await active.process.wait()
            logger.info(f"[FFmpeg] PID {active.process.pid} exited with code {returncode}")
        except asyncio.CancelledError:
            self._send_signal(active, "kill")
            raise
        except Exception as e:
            logger.exception(f"[FFmpeg] Supervision failed for job {job.id}: {e}")
            active.failure_reason = f"Supervision failed: {e}"
            self._send_signal(active, "kill")
        finally:
            self._on_exit(active, returncode)

    def _mark_running(self, active: ActiveProcess) -> None:
        job = active.job
        validate_job_transition(job.status, JobStatus.RUNNING)
        job.status = JobStatus.RUNNING
        job.started_at = datetime.now()
        active.started.set_result(job.id)

        logger.info(f"[FFmpeg] Job {job.id} streaming to {job.destination}")
        self._events.publish(EventType.JOB_STARTED, {
            "job_id": job.id,
            "playlist_id": job.playlist_id,
            "display_name": job.display_name,
            "destination": job.destination,
            "seamless": job.seamless,
        })

    def _publish_progress(self, job: Job, progress: dict) -> None:
        payload = {"job_id": job.id}
        if job.playlist_id:
            payload["playlist_id"] = job.playlist_id
        payload.update(progress)
        self._events.publish(EventType.JOB_PROGRESS, payload)

    def _on_exit(self, active: ActiveProcess, returncode: Optional[int]) -> None:
        if active.finalized:
            return

        if active.stop_requested:
            status = JobStatus.STOPPED
        elif returncode == 0 and active.job.status == JobStatus.RUNNING:
            status = JobStatus.ENDED
        else:
            status = JobStatus.ERRORED
            if active.failure_reason is None:
                if returncode == 0:
                    active.failure_reason = "ffmpeg exited before streaming started"
                elif returncode is not None:
                    active.failure_reason = f"ffmpeg exited with code {returncode}"
                else:
                    active.failure_reason = "ffmpeg exited unexpectedly"

        self._finalize(active, status)

    def _finalize(self, active: ActiveProcess, status: JobStatus) -> None:
        """
        Move a job to its terminal state exactly once.

        Removes the manifest, drops the job from the registry, publishes the
        outcome and notifies the playlist engine.
        """
        if active.finalized:
            return
        active.finalized = True

        job = active.job
        remove_manifest(job.manifest_path)
        self._active.pop(job.id, None)
        self._registry.remove_job(job.id)

        validate_job_transition(job.status, status)
        job.status = status
        job.completed_at = datetime.now()

        if status == JobStatus.ERRORED:
            job.failure_reason = active.failure_reason
            diagnostics = self._diagnostics(active)
            logger.error(f"[FFmpeg] Job {job.id} failed: {job.failure_reason}")
            if diagnostics:
                logger.error(f"[FFmpeg] stderr:\n{diagnostics}")

            if not active.started.done():
                active.started.set_exception(
                    ProcessError(job.id, job.failure_reason, diagnostics)
                )

            self._events.publish(EventType.JOB_ERROR, {
                "job_id": job.id,
                "playlist_id": job.playlist_id,
                "error": job.failure_reason,
                "diagnostics": diagnostics,
            })
            self._notify(self.on_job_failed, job)

        elif status == JobStatus.STOPPED:
            if not active.started.done():
                active.started.set_exception(
                    ProcessError(job.id, "Stopped before streaming started")
                )
            self._events.publish(EventType.JOB_ENDED, {
                "job_id": job.id,
                "playlist_id": job.playlist_id,
                "status": status.value,
            })

        else:
            logger.info(f"[FFmpeg] Job {job.id} ended")
            self._events.publish(EventType.JOB_ENDED, {
                "job_id": job.id,
                "playlist_id": job.playlist_id,
                "status": status.value,
            })
            self._notify(self.on_job_ended, job)

        if not active.done.done():
            active.done.set_result(status)

    def _abandon(self, job: Job, reason: str) -> None:
        """Undo a start that failed before any process was supervised."""
        self._registry.remove_job(job.id)
        remove_manifest(job.manifest_path)
        job.status = JobStatus.ERRORED
        job.failure_reason = reason
        job.completed_at = datetime.now()
        self._events.publish(EventType.JOB_ERROR, {
            "job_id": job.id,
            "playlist_id": job.playlist_id,
            "error": reason,
            "diagnostics": "",
        })

    def _notify(self, callback: Optional[JobCallback], job: Job) -> None:
        if callback is None:
            return
        try:
            callback(job)
        except Exception:
            logger.exception(f"[FFmpeg] Lifecycle callback failed for job {job.id}")

    # =========================================================================
    # Queries
    # =========================================================================

    def is_active(self, job_id: str) -> bool:
        return job_id in self._active

    def active_job_ids(self) -> List[str]:
        return list(self._active.keys())

    async def wait_closed(self, job_id: str) -> Optional[JobStatus]:
        """Wait for an active job to reach its terminal state."""
        active = self._active.get(job_id)
        if active is None:
            return None
        return await asyncio.shield(active.done)

    def _resolve_ffmpeg(self) -> str:
        if self._ffmpeg_path is None:
            self._ffmpeg_path = find_ffmpeg() or "ffmpeg"
        return self._ffmpeg_path

    def _diagnostics(self, active: ActiveProcess) -> str:
        return "\n".join(active.stderr_tail)

    @staticmethod
    def _default_display_name(source_paths: List[str], seamless: bool) -> str:
        if seamless:
            return f"Seamless ({len(source_paths)} files)"
        return os.path.basename(source_paths[0])
