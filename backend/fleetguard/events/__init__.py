"""
Шина событий и подписчики
"""
from .event_types import EventType, EventPayload
from .event_bus import EventBus

__all__ = [
    "EventType",
    "EventPayload",
    "EventBus"
]
