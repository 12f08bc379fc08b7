"""事件系统 - 用于解耦事件生产者和消费者"""

from .types import EventType, Event
from .bus import EventBus

__all__ = [
    "EventType",
    "Event",
    "EventBus",
]
