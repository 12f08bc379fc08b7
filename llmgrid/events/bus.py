"""事件总线实现"""

import logging
from typing import Awaitable, Callable, Dict, List

from .types import EventType, Event

logger = logging.getLogger(__name__)

# 事件处理器类型：接收 Event，返回 None
EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    """
    事件总线 - 解耦批处理任务和进度推送

    同一事件类型可以注册多个异步处理器。

    用法示例：
        bus = EventBus()

        async def on_row_done(event: Event):
            print(f"row {event.row} done: {event.data}")

        bus.on(EventType.ROW_DONE, on_row_done)
        await bus.emit(Event.row_done(column_id, 0, "结果"))
    """

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """
        注册事件处理器

        Args:
            event_type: 事件类型
            handler: 异步处理函数
        """
        self._handlers.setdefault(event_type, []).append(handler)

    def on_all(self, handler: EventHandler) -> None:
        """为所有事件类型注册同一个处理器"""
        for event_type in EventType:
            self.on(event_type, handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        """
        移除事件处理器

        Args:
            event_type: 事件类型
            handler: 要移除的处理函数
        """
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def off_all(self, handler: EventHandler) -> None:
        """从所有事件类型中移除处理器"""
        for event_type in EventType:
            self.off(event_type, handler)

    async def emit(self, event: Event) -> None:
        """
        发布事件

        按注册顺序依次调用所有处理器。某个处理器抛出异常时记录日志，
        不影响其他处理器，也不影响发布方。

        Args:
            event: 要发布的事件
        """
        for handler in list(self._handlers.get(event.type, [])):
            try:
                await handler(event)
            except Exception as e:
                logger.exception(
                    f"Event handler error: {getattr(handler, '__name__', handler)} "
                    f"for {event.type.value}: {e}"
                )

    def clear(self) -> None:
        """清除所有处理器"""
        self._handlers.clear()

    def has_handlers(self, event_type: EventType) -> bool:
        return bool(self._handlers.get(event_type))

    def __repr__(self) -> str:
        handler_counts = {
            et.value: len(handlers) for et, handlers in self._handlers.items()
        }
        return f"EventBus(handlers={handler_counts})"
