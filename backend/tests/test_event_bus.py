"""
Tests for the in-process event bus.
"""

import asyncio

from squid.events import EventBus, EventType


def test_handlers_receive_events_in_order():
    bus = EventBus()
    seen = []
    bus.subscribe(lambda e: seen.append(("first", e.event_type)))
    bus.subscribe(lambda e: seen.append(("second", e.event_type)))

    bus.publish(EventType.PLAYLIST_UPDATED, {"id": "p1"})

    assert seen == [
        ("first", EventType.PLAYLIST_UPDATED),
        ("second", EventType.PLAYLIST_UPDATED),
    ]


def test_failing_handler_does_not_block_others():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("handler bug")

    bus.subscribe(broken)
    bus.subscribe(seen.append)

    event = bus.publish(EventType.JOB_STARTED, {"job_id": "j1"})

    assert seen == [event]


def test_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)

    unsubscribe()
    unsubscribe()
    bus.publish(EventType.JOB_ENDED)

    assert seen == []
    assert bus.subscriber_count == 0


def test_message_shape():
    bus = EventBus()
    event = bus.publish(EventType.PLAYLIST_NEW_FILES, {"playlist_id": "p1", "count": 2})

    message = event.to_message()

    assert message["event"] == "playlist.newFilesDiscovered"
    assert message["data"] == {"playlist_id": "p1", "count": 2}
    assert isinstance(message["timestamp"], str)


def test_full_queue_drops_events_for_that_consumer_only():
    async def scenario():
        bus = EventBus()
        slow = bus.open_queue(maxsize=1)
        fast = bus.open_queue(maxsize=10)

        bus.publish(EventType.JOB_PROGRESS, {"frames": 1})
        bus.publish(EventType.JOB_PROGRESS, {"frames": 2})

        return slow.qsize(), fast.qsize(), (await slow.get()).data["frames"]

    slow_size, fast_size, first = asyncio.run(scenario())

    assert slow_size == 1
    assert fast_size == 2
    assert first == 1


def test_closed_queue_receives_nothing():
    async def scenario():
        bus = EventBus()
        queue = bus.open_queue()
        bus.close_queue(queue)
        bus.publish(EventType.JOB_ENDED)
        return queue.qsize(), bus.subscriber_count

    assert asyncio.run(scenario()) == (0, 0)
