"""
Синхронная шина событий процесса
"""
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Union
from fleetguard.events.event_types import EventType, EventPayload
from fleetguard.logger import logger


EventHandler = Callable[[EventPayload], Any]


class EventBus:
    """
    Шина событий

    Обработчики вызываются синхронно в порядке подписки, каждый не более
    одного раза на публикацию. Исключение обработчика логируется и не
    мешает остальным обработчикам и публикующему коду.
    """

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        """
        Подписать обработчик на событие

        Args:
            event_type: Тип события
            handler: Функция, принимающая EventPayload
        """
        event_type = EventType(event_type)
        with self._lock:
            self._handlers[event_type].append(handler)
        logger.debug("Подписка на событие", extra={
            "event": event_type.value,
            "handler": getattr(handler, "__qualname__", repr(handler)),
            "event_type": "events",
            "event_category": "subscribe"
        })

    def unsubscribe(self, event_type: Union[EventType, str], handler: EventHandler) -> bool:
        """
        Отписать обработчик

        Returns:
            True, если обработчик был подписан
        """
        event_type = EventType(event_type)
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
        return False

    def publish(
        self,
        event_type: Union[EventType, str],
        data: Optional[Dict[str, Any]] = None,
        initiator: Optional[int] = None
    ) -> EventPayload:
        """
        Опубликовать событие

        Args:
            event_type: Тип события
            data: Данные события
            initiator: ID пользователя-инициатора (None для системных событий)

        Returns:
            Опубликованный EventPayload
        """
        payload = EventPayload(
            event_type=EventType(event_type),
            data=dict(data or {}),
            initiator=initiator
        )

        # Подписка во время доставки не влияет на текущую публикацию
        with self._lock:
            handlers = list(self._handlers.get(payload.event_type, []))

        for handler in handlers:
            try:
                handler(payload)
            except Exception as e:
                logger.error("Ошибка в обработчике события", extra={
                    "event": payload.event_type.value,
                    "handler": getattr(handler, "__qualname__", repr(handler)),
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "event_type": "events",
                    "event_category": "handler_error"
                }, exc_info=True)

        return payload

    def handler_count(self, event_type: Union[EventType, str]) -> int:
        with self._lock:
            return len(self._handlers.get(EventType(event_type), []))

    def clear(self) -> None:
        """
        Удалить все подписки
        """
        with self._lock:
            self._handlers.clear()
