"""
Tests for ffmpeg stderr parsing.
"""

import asyncio

from squid.encoding.progress import is_start_signal, iter_output_lines, parse_progress_line

STATUS = (
    "frame=  240 fps= 30 q=28.0 size=    1024kB time=00:00:08.00 "
    "bitrate=1048.6kbits/s speed=1.00x"
)


class _Stream:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    async def read(self, n=-1):
        return self._chunks.pop(0) if self._chunks else b""


async def _collect(stream):
    return [line async for line in iter_output_lines(stream)]


class TestParseProgressLine:

    def test_status_line(self):
        progress = parse_progress_line(STATUS)
        assert progress == {
            "frames": 240,
            "current_fps": 30.0,
            "current_kbps": 1048.6,
            "target_size": 1024,
            "timemark": "00:00:08.00",
            "speed": 1.0,
        }

    def test_status_line_without_bitrate(self):
        progress = parse_progress_line("frame=    1 fps=0.0 q=0.0 size=       0kB time=00:00:00.00 bitrate=N/A speed=N/A")
        assert progress["frames"] == 1
        assert progress["current_kbps"] is None
        assert progress["speed"] is None

    def test_non_status_lines(self):
        assert parse_progress_line("Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'a.mp4':") is None
        assert parse_progress_line("  Duration: 00:01:00.00, start: 0.000000") is None

    def test_start_signal(self):
        assert is_start_signal("Output #0, flv, to 'rtmp://x/y':")
        assert is_start_signal(STATUS)
        assert is_start_signal("Press [q] to stop, [?] for help")
        assert not is_start_signal("Stream mapping:")


class TestIterOutputLines:

    def test_splits_carriage_returns_and_newlines(self):
        stream = _Stream([b"Stream mapping:\nframe=1 time=00:00:00.04\r", b"frame=2 time=00:00:00.08\r"])
        lines = asyncio.run(_collect(stream))
        assert lines == ["Stream mapping:", "frame=1 time=00:00:00.04", "frame=2 time=00:00:00.08"]

    def test_line_split_across_chunks(self):
        stream = _Stream([b"Output #", b"0, flv\nta", b"il"])
        assert asyncio.run(_collect(stream)) == ["Output #0, flv", "tail"]

    def test_invalid_utf8_is_replaced(self):
        stream = _Stream([b"bad \xff byte\n"])
        lines = asyncio.run(_collect(stream))
        assert len(lines) == 1
        assert lines[0].startswith("bad ")
