"""
Tests for the playlist store: CRUD, ordering and update events.
"""

import random

import pytest

from squid.errors import PlaylistNotFoundError, ValidationError
from squid.events import EventBus, EventType
from squid.playlists import PlaylistStore, ShuffleMode

from conftest import EventRecorder


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def store(bus):
    return PlaylistStore(bus, rng=random.Random(7))


class TestCrud:

    def test_create_defaults(self, store):
        playlist = store.create("Evening", ["/a.mp4"])
        assert playlist.name == "Evening"
        assert playlist.files == ["/a.mp4"]
        assert playlist.current_index == 0
        assert playlist.shuffle_mode == ShuffleMode.SMART
        assert playlist.smart_shuffle_size == 50
        assert playlist.streaming is False
        assert store.get(playlist.id) is playlist

    def test_blank_name_gets_default(self, store):
        assert store.create("   ").name == "New Playlist"

    def test_unknown_playlist(self, store):
        assert store.get("missing") is None
        with pytest.raises(PlaylistNotFoundError):
            store.get_or_raise("missing")
        with pytest.raises(PlaylistNotFoundError):
            store.add("missing", "/a.mp4")

    def test_list_is_oldest_first(self, store):
        first = store.create("one")
        second = store.create("two")
        assert [p.id for p in store.list()] == [first.id, second.id]

    def test_delete(self, store):
        playlist = store.create("gone")
        store.delete(playlist.id)
        assert not store.exists(playlist.id)
        with pytest.raises(PlaylistNotFoundError):
            store.delete(playlist.id)


class TestOrdering:

    def test_reorder_is_a_move(self, store):
        playlist = store.create("p", ["A", "B", "C", "D"])
        store.reorder(playlist.id, 0, 2)
        assert playlist.files == ["B", "C", "A", "D"]

    def test_reorder_backwards(self, store):
        playlist = store.create("p", ["A", "B", "C", "D"])
        store.reorder(playlist.id, 3, 1)
        assert playlist.files == ["A", "D", "B", "C"]

    @pytest.mark.parametrize("from_index,to_index", [(-1, 0), (0, 4), (9, 1)])
    def test_reorder_out_of_range(self, store, from_index, to_index):
        playlist = store.create("p", ["A", "B", "C", "D"])
        with pytest.raises(ValidationError):
            store.reorder(playlist.id, from_index, to_index)
        assert playlist.files == ["A", "B", "C", "D"]

    def test_remove_clamps_cursor(self, store):
        playlist = store.create("p", ["A", "B", "C"])
        playlist.current_index = 2
        store.remove_at(playlist.id, 2)
        assert playlist.files == ["A", "B"]
        assert playlist.current_index == 1

    def test_remove_last_file_resets_cursor(self, store):
        playlist = store.create("p", ["A"])
        store.remove_at(playlist.id, 0)
        assert playlist.files == []
        assert playlist.current_index == 0

    def test_remove_out_of_range(self, store):
        playlist = store.create("p", ["A"])
        with pytest.raises(ValidationError):
            store.remove_at(playlist.id, 1)

    def test_add_appends(self, store):
        playlist = store.create("p", ["A"])
        store.add(playlist.id, "B")
        store.add_many(playlist.id, ["C", "D"])
        assert playlist.files == ["A", "B", "C", "D"]

    def test_shuffle_resets_cursor_and_sets_mode(self, store):
        playlist = store.create("p", [f"/{i}.mp4" for i in range(10)])
        playlist.current_index = 4
        store.shuffle(playlist.id, mode=ShuffleMode.RANDOM, window_size=3)
        assert playlist.current_index == 0
        assert playlist.shuffle_mode == ShuffleMode.RANDOM
        assert playlist.smart_shuffle_size == 3
        assert sorted(playlist.files) == sorted(f"/{i}.mp4" for i in range(10))


class TestUpdate:

    def test_partial_update(self, store):
        playlist = store.create("p", ["A"])
        store.update(playlist.id, {"name": "renamed", "auto_loop": True})
        assert playlist.name == "renamed"
        assert playlist.auto_loop is True
        assert playlist.files == ["A"]

    def test_unknown_field_rejected(self, store):
        playlist = store.create("p")
        with pytest.raises(ValidationError):
            store.update(playlist.id, {"streaming": True})
        assert playlist.streaming is False

    def test_replacing_files_clamps_cursor(self, store):
        playlist = store.create("p", ["A", "B", "C"])
        playlist.current_index = 2
        store.update(playlist.id, {"files": ["X"]})
        assert playlist.current_index == 0

    def test_shrinking_window_trims_history(self, store):
        playlist = store.create("p", ["A", "B", "C"])
        playlist.recently_played = ["A", "B", "C"]
        store.update(playlist.id, {"smart_shuffle_size": 2})
        assert playlist.recently_played == ["B", "C"]

    def test_invalid_window_rejected(self, store):
        playlist = store.create("p")
        with pytest.raises(ValidationError):
            store.update(playlist.id, {"smart_shuffle_size": 0})


class TestUpdateEvents:

    def test_every_mutation_emits_snapshot(self, store, recorder):
        playlist = store.create("p", ["A", "B"])
        store.add(playlist.id, "C")
        store.reorder(playlist.id, 0, 1)
        store.remove_at(playlist.id, 0)
        store.update(playlist.id, {"name": "q"})
        store.shuffle(playlist.id)

        updates = recorder.of_type(EventType.PLAYLIST_UPDATED)
        assert len(updates) == 6
        assert updates[-1].data["id"] == playlist.id
        assert updates[-1].data["name"] == "q"
        assert sorted(updates[-1].data["files"]) == sorted(playlist.files)

    def test_failed_mutation_emits_nothing(self, store, recorder):
        playlist = store.create("p", ["A"])
        before = len(recorder.events)
        with pytest.raises(ValidationError):
            store.remove_at(playlist.id, 5)
        assert len(recorder.events) == before
