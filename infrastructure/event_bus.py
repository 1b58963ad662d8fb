"""
In-process event bus

Services publish DomainEvent deltas after a write commits; subscribers
receive only the events they registered for (or every event with "*").
A failing handler is logged and does not affect other handlers or the
publisher.
"""
import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, List, Optional, Union

from domain.events import DomainEvent

logger = logging.getLogger(__name__)

WILDCARD = "*"

Handler = Callable[[DomainEvent], Union[None, Awaitable[None]]]


class EventBus:

    def __init__(self, history_size: int = 100):
        self._subscribers: Dict[str, List[Handler]] = {}
        self._history: Deque[DomainEvent] = deque(maxlen=history_size)

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            event_type: e.g. "reservation.created", or "*" for everything
            handler: sync or async callable receiving the event

        Returns:
            A callable that removes the subscription
        """
        handlers = self._subscribers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug("Handler %s subscribed to %s", getattr(handler, "__name__", handler), event_type)

        def unsubscribe() -> None:
            self.unsubscribe(event_type, handler)

        return unsubscribe

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: DomainEvent) -> None:
        self._history.append(event)
        handlers = [*self._subscribers.get(event.event_type, []), *self._subscribers.get(WILDCARD, [])]
        for handler in handlers:
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception(
                    "Event handler %s failed for %s",
                    getattr(handler, "__name__", handler), event.event_type,
                )

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[DomainEvent]:
        events = [e for e in self._history if event_type is None or e.event_type == event_type]
        return events[-limit:]

    def clear(self) -> None:
        self._subscribers.clear()
        self._history.clear()
