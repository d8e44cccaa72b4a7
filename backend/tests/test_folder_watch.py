"""
Tests for folder scanning, folder watches and folder imports.
"""

import asyncio
import os
import random
import shutil

import pytest

from squid.engine import StreamEngine
from squid.errors import PlaylistNotFoundError, ValidationError
from squid.events import EventBus, EventType
from squid.playlists import PlaylistStore, ShuffleMode
from squid.watchfolders import (
    FileScanner,
    FolderNotFoundError,
    FolderWatch,
    InvalidFolderPathError,
    WatchNotFoundError,
    WatchPoller,
    WatchRegistry,
)

from conftest import EventRecorder, FakeSpawner


def touch(path, size=16):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x00" * size)
    return str(path)


@pytest.fixture
def library(tmp_path):
    """
    library/
        b.mp4
        a.MKV
        notes.txt
        .hidden.mp4
        season1/
            ep1.mp4
            deep/
                ep2.webm
        .cache/
            skipped.mp4
    """
    root = tmp_path / "library"
    touch(root / "b.mp4")
    touch(root / "a.MKV")
    touch(root / "notes.txt")
    touch(root / ".hidden.mp4")
    touch(root / "season1" / "ep1.mp4")
    touch(root / "season1" / "deep" / "ep2.webm")
    touch(root / ".cache" / "skipped.mp4")
    return root


class TestFileScanner:

    def test_recursive_scan_order(self, library):
        found = FileScanner().scan(str(library))

        assert found == [
            str(library / "a.MKV"),
            str(library / "b.mp4"),
            str(library / "season1" / "ep1.mp4"),
            str(library / "season1" / "deep" / "ep2.webm"),
        ]

    def test_flat_scan(self, library):
        found = FileScanner().scan(str(library), recursive=False)

        assert found == [str(library / "a.MKV"), str(library / "b.mp4")]

    def test_hidden_entries_can_be_included(self, library):
        found = FileScanner(skip_hidden=False).scan(str(library))

        assert str(library / ".hidden.mp4") in found
        assert str(library / ".cache" / "skipped.mp4") in found

    def test_custom_extensions(self, library):
        found = FileScanner(extensions={".WEBM"}).scan(str(library))

        assert found == [str(library / "season1" / "deep" / "ep2.webm")]

    def test_entries_and_min_size(self, library):
        touch(library / "season1" / "big.mp4", size=4096)

        entries = FileScanner().scan_entries(str(library), min_size_bytes=1024)

        assert len(entries) == 1
        entry = entries[0]
        assert entry.filename == "big.mp4"
        assert entry.size == 4096
        assert entry.relative_path == os.path.join("season1", "big.mp4")

    def test_depth_bound(self, library):
        found = FileScanner(max_depth=1).scan(str(library))

        assert str(library / "season1" / "ep1.mp4") in found
        assert str(library / "season1" / "deep" / "ep2.webm") not in found

    def test_symlinks_not_followed(self, library, tmp_path):
        outside = tmp_path / "outside"
        touch(outside / "linked.mp4")
        os.symlink(outside, library / "link")

        assert not any("linked.mp4" in p for p in FileScanner().scan(str(library)))
        assert any(
            "linked.mp4" in p
            for p in FileScanner(follow_symlinks=True).scan(str(library))
        )

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FolderNotFoundError):
            FileScanner().scan(str(tmp_path / "nope"))

    def test_file_is_not_a_directory(self, library):
        with pytest.raises(InvalidFolderPathError):
            FileScanner().scan(str(library / "b.mp4"))


class TestWatchRegistry:

    def test_add_replaces_existing_watch(self, library):
        registry = WatchRegistry()
        first = FolderWatch(playlist_id="p1", directory=str(library))
        second = FolderWatch(playlist_id="p1", directory=str(library / "season1"))

        assert registry.add_watch(first) is None
        assert registry.add_watch(second) is first
        assert registry.count() == 1
        assert registry.get_watch("p1").directory == str(library / "season1")

    def test_add_requires_existing_directory(self, tmp_path):
        registry = WatchRegistry()

        with pytest.raises(FolderNotFoundError):
            registry.add_watch(FolderWatch(playlist_id="p1", directory=str(tmp_path / "nope")))
        assert registry.count() == 0

    def test_relative_directory_rejected(self):
        with pytest.raises(ValueError):
            FolderWatch(playlist_id="p1", directory="relative/path")

    def test_remove_is_idempotent(self, library):
        registry = WatchRegistry()
        registry.add_watch(FolderWatch(playlist_id="p1", directory=str(library)))

        assert registry.remove_watch("p1") is not None
        assert registry.remove_watch("p1") is None
        with pytest.raises(WatchNotFoundError):
            registry.get_watch_or_raise("p1")


class TestWatchPoller:

    @pytest.fixture
    def setup(self, library):
        bus = EventBus()
        recorder = EventRecorder(bus)
        store = PlaylistStore(bus, rng=random.Random(1))
        registry = WatchRegistry()
        poller = WatchPoller(registry, store, bus, interval_seconds=60)
        playlist = store.create("Shows", [str(library / "b.mp4")])
        registry.add_watch(FolderWatch(playlist_id=playlist.id, directory=str(library)))
        return poller, store, registry, recorder, playlist

    def test_sweep_appends_only_new_files(self, setup, library):
        poller, store, _, recorder, playlist = setup

        added = asyncio.run(poller.sweep())

        assert added == 3
        assert store.get(playlist.id).files == [
            str(library / "b.mp4"),
            str(library / "a.MKV"),
            str(library / "season1" / "ep1.mp4"),
            str(library / "season1" / "deep" / "ep2.webm"),
        ]
        discovered = recorder.of_type(EventType.PLAYLIST_NEW_FILES)
        assert len(discovered) == 1
        assert discovered[0].data["count"] == 3
        assert discovered[0].data["playlist_id"] == playlist.id

    def test_second_sweep_is_quiet(self, setup, library):
        poller, store, _, recorder, playlist = setup

        asyncio.run(poller.sweep())
        assert asyncio.run(poller.sweep()) == 0
        assert len(recorder.of_type(EventType.PLAYLIST_NEW_FILES)) == 1

        touch(library / "season1" / "ep3.mp4")
        assert asyncio.run(poller.sweep()) == 1
        assert store.get(playlist.id).files[-1] == str(library / "season1" / "ep3.mp4")

    def test_sweep_updates_last_check(self, setup):
        poller, _, registry, _, playlist = setup

        assert registry.get_watch(playlist.id).last_check is None
        asyncio.run(poller.sweep())
        assert registry.get_watch(playlist.id).last_check is not None

    def test_watch_pruned_when_playlist_deleted(self, setup):
        poller, store, registry, recorder, playlist = setup
        store.delete(playlist.id)

        assert asyncio.run(poller.sweep()) == 0
        assert registry.count() == 0
        assert not recorder.of_type(EventType.PLAYLIST_NEW_FILES)

    def test_vanished_folder_is_logged_not_raised(self, setup, library):
        poller, _, registry, _, playlist = setup
        shutil.rmtree(library)

        assert asyncio.run(poller.sweep()) == 0
        assert registry.get_watch(playlist.id).last_check is not None

    def test_start_and_stop(self, setup):
        poller = setup[0]

        async def scenario():
            poller.start()
            running = poller.running
            await poller.stop()
            return running

        assert asyncio.run(scenario()) is True
        assert poller.running is False


class TestEngineFolders:

    @pytest.fixture
    def engine(self, tmp_path):
        return StreamEngine(spawn=FakeSpawner(), ffmpeg_path="ffmpeg", temp_dir=str(tmp_path))

    def test_scan_folder_min_size(self, engine, library):
        touch(library / "movie.mp4", size=2 * 1024 * 1024)

        entries = asyncio.run(engine.scan_folder(str(library), min_size_mb=1))
        assert [e.filename for e in entries] == ["movie.mp4"]

        everything = asyncio.run(engine.scan_folder(str(library), min_size_mb=0))
        assert len(everything) == 5

    def test_scan_folder_rejects_bad_input(self, engine, tmp_path):
        with pytest.raises(ValidationError):
            asyncio.run(engine.scan_folder(""))
        with pytest.raises(ValidationError):
            asyncio.run(engine.scan_folder(str(tmp_path), min_size_mb=-1))
        with pytest.raises(FolderNotFoundError):
            asyncio.run(engine.scan_folder(str(tmp_path / "nope")))

    def test_import_folder(self, engine, library):
        playlist = asyncio.run(engine.import_folder(
            "",
            str(library),
            min_size_mb=0,
            watch=True,
            shuffle_mode=ShuffleMode.RANDOM,
        ))

        assert playlist.name == "library"
        assert len(playlist.files) == 4
        assert playlist.shuffle_mode == ShuffleMode.RANDOM
        assert engine.watches.get_watch(playlist.id).directory == str(library)

    def test_enable_and_disable_watch(self, engine, library):
        playlist = engine.create_playlist("Watched")

        watch = engine.enable_folder_watch(playlist.id, str(library), recursive=False)
        assert watch.recursive is False

        assert engine.disable_folder_watch(playlist.id) is True
        assert engine.disable_folder_watch(playlist.id) is False

    def test_watch_requires_playlist(self, engine, library):
        with pytest.raises(PlaylistNotFoundError):
            engine.enable_folder_watch("missing", str(library))
