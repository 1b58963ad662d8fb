"""Interfaces of externally owned collaborators: notification sink, clock and timers"""
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from domain.enums import NotificationType


class NotificationSink(ABC):
    """Delivery channel for user-facing alerts (push, e-mail, ...)"""

    @abstractmethod
    async def send(
        self,
        user_ids: List[UUID],
        title: str,
        body: str,
        type: NotificationType,
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        pass


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware UTC time"""
        pass

    def today(self) -> date:
        return self.now().date()


class TimerHandle(ABC):
    """Token of a scheduled callback"""

    @abstractmethod
    def cancel(self) -> None:
        pass

    @abstractmethod
    def is_active(self) -> bool:
        pass


class TimerService(ABC):

    @abstractmethod
    def schedule(self, delay_seconds: float, callback: Callable[[], Awaitable[None]]) -> TimerHandle:
        """Run `callback` once after `delay_seconds` unless the handle is cancelled first"""
        pass
