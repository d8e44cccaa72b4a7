"""
Pytest configuration and shared fakes for the backend test suite.

ffmpeg is never executed. Tests inject a FakeSpawner into the engine or
controller; each spawn returns a FakeProcess whose stderr and exit are
scripted by the test.
"""

import asyncio
import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from squid.events import EventBus  # noqa: E402

OUTPUT_BANNER = "Output #0, flv, to 'rtmp://ingest.example/live/key':"
PROGRESS_LINE = (
    "frame=  240 fps= 30 q=28.0 size=    1024kB time=00:00:08.00 "
    "bitrate=1048.6kbits/s speed=1.00x"
)


class FakeStderr:
    """StreamReader stand-in fed line by line by the test."""

    def __init__(self):
        self._chunks: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def feed(self, data: bytes) -> None:
        if not self._closed:
            self._chunks.put_nowait(data)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._chunks.put_nowait(b"")

    async def read(self, n: int = -1) -> bytes:
        return await self._chunks.get()


class FakeProcess:
    """
    asyncio.subprocess.Process stand-in.

    Args:
        pid: Fake process id
        ignore_sigterm: If True, terminate() is recorded but has no effect
        sigterm_code: Exit code reported after terminate()
    """

    def __init__(self, pid: int, ignore_sigterm: bool = False, sigterm_code: int = 255):
        self.pid = pid
        self.stderr = FakeStderr()
        self.returncode: Optional[int] = None
        self.ignore_sigterm = ignore_sigterm
        self.sigterm_code = sigterm_code
        self.signals: List[str] = []
        self._exited = asyncio.Event()

    def emit(self, line: str) -> None:
        self.stderr.feed(line.encode("utf-8") + b"\r")

    def finish(self, code: int = 0) -> None:
        if self.returncode is not None:
            return
        self.returncode = code
        self.stderr.close()
        self._exited.set()

    def terminate(self) -> None:
        self.signals.append("terminate")
        if not self.ignore_sigterm:
            self.finish(self.sigterm_code)

    def kill(self) -> None:
        self.signals.append("kill")
        self.finish(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


class FakeSpawner:
    """
    Records every spawned command and hands out FakeProcess objects.

    Args:
        auto_start: Emit the output banner right away so starts are acknowledged
        ignore_sigterm: Processes ignore SIGTERM (forces SIGKILL escalation)
        error: Exception raised instead of spawning
        on_spawn: Called with each new process to script its output

    Set ``gate`` to an asyncio.Event to hold spawns until it is set.
    """

    def __init__(
        self,
        auto_start: bool = True,
        ignore_sigterm: bool = False,
        error: Optional[Exception] = None,
        on_spawn: Optional[Callable[[FakeProcess], None]] = None,
    ):
        self.auto_start = auto_start
        self.ignore_sigterm = ignore_sigterm
        self.error = error
        self.on_spawn = on_spawn
        self.commands: List[List[str]] = []
        self.processes: List[FakeProcess] = []
        self.gate: Optional[asyncio.Event] = None

    async def __call__(self, cmd: List[str]) -> FakeProcess:
        self.commands.append(list(cmd))
        if self.error is not None:
            raise self.error
        if self.gate is not None:
            await self.gate.wait()
        process = FakeProcess(1000 + len(self.processes), ignore_sigterm=self.ignore_sigterm)
        if self.auto_start:
            process.emit(OUTPUT_BANNER)
        if self.on_spawn is not None:
            self.on_spawn(process)
        self.processes.append(process)
        return process

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


class EventRecorder:
    """Collects every published event."""

    def __init__(self, bus: EventBus):
        self.events = []
        bus.subscribe(self.events.append)

    def of_type(self, event_type) -> list:
        return [e for e in self.events if e.event_type == event_type]

    def types(self) -> List[str]:
        return [e.event_type.value for e in self.events]


@pytest.fixture
def media_files(tmp_path: Path) -> List[str]:
    """Three small placeholder video files."""
    paths = []
    for name in ("a.mp4", "b.mp4", "c.mp4"):
        path = tmp_path / name
        path.write_bytes(b"\x00" * 16)
        paths.append(str(path))
    return paths


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll predicate on the running loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.01)
