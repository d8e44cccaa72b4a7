"""
Event bus: fan-out of job and playlist notifications to observers.
"""

from .bus import Event, EventBus, EventType

__all__ = [
    "Event",
    "EventBus",
    "EventType",
]
