"""
Event bus for job and playlist lifecycle notifications.

Design rules:
- Fire-and-forget: publish() never raises and never blocks
- At-most-once delivery, no replay buffer
- Events published with no subscribers are dropped
- A failing subscriber is logged and skipped, others still receive the event
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Outbound event types."""

    JOB_STARTED = "job.started"
    JOB_PROGRESS = "job.progress"
    JOB_ENDED = "job.ended"
    JOB_ERROR = "job.error"

    PLAYLIST_UPDATED = "playlist.updated"
    PLAYLIST_STARTED = "playlist.started"
    PLAYLIST_NEXT = "playlist.next"
    PLAYLIST_COMPLETED = "playlist.completed"
    PLAYLIST_SHUFFLED = "playlist.shuffled"
    PLAYLIST_NEW_FILES = "playlist.newFilesDiscovered"


class Event(BaseModel):
    """Single published event."""

    model_config = ConfigDict(extra="forbid")

    event_type: EventType
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)

    def to_message(self) -> Dict[str, Any]:
        """Wire shape pushed to WebSocket clients."""
        return {
            "event": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


EventHandler = Callable[[Event], None]


class EventBus:
    """
    Fan-out of events to in-process handlers and async queues.

    Handlers are plain callables invoked synchronously in publish order.
    Queues serve consumers living on the event loop (WebSocket clients);
    a full queue drops the event for that consumer only.
    """

    def __init__(self, queue_size: int = 256):
        self._handlers: List[EventHandler] = []
        self._queues: List[asyncio.Queue] = []
        self._queue_size = queue_size

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """
        Register a handler for every event.

        Returns:
            Callable that removes the handler again
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def open_queue(self, maxsize: Optional[int] = None) -> asyncio.Queue:
        """Create a queue that receives every event published from now on."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or self._queue_size)
        self._queues.append(queue)
        return queue

    def close_queue(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers) + len(self._queues)

    def publish(self, event_type: EventType, data: Optional[Dict[str, Any]] = None) -> Event:
        """
        Publish an event to all current subscribers.

        Never raises. Delivery failures are logged per subscriber.

        Args:
            event_type: Type of event
            data: JSON-serializable payload

        Returns:
            The published Event
        """
        event = Event(event_type=event_type, data=data or {})

        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(f"[Events] Handler failed for {event_type.value}")

        for queue in list(self._queues):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.debug(f"[Events] Queue full, dropped {event_type.value}")

        return event
