"""Notification sink implementations"""
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel

from domain.enums import NotificationType
from domain.gateways import NotificationSink

logger = logging.getLogger(__name__)


class LoggingNotificationSink(NotificationSink):
    """Writes every alert to the log instead of a push/e-mail provider"""

    async def send(
        self,
        user_ids: List[UUID],
        title: str,
        body: str,
        type: NotificationType,
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        logger.info("Notify %s [%s] %s: %s", [str(u) for u in user_ids], type.value, title, body)


class SentMessage(BaseModel):
    user_ids: List[UUID]
    title: str
    body: str
    type: NotificationType
    data: Dict[str, Any] = {}


class InMemoryNotificationSink(NotificationSink):
    """Keeps delivered alerts in memory"""

    def __init__(self):
        self.sent: List[SentMessage] = []

    async def send(
        self,
        user_ids: List[UUID],
        title: str,
        body: str,
        type: NotificationType,
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        self.sent.append(SentMessage(user_ids=list(user_ids), title=title, body=body, type=type, data=data or {}))

    def sent_to(self, user_id: UUID) -> List[SentMessage]:
        return [m for m in self.sent if user_id in m.user_ids]


def build_notification_sink(name: str) -> NotificationSink:
    sinks = {
        "log": LoggingNotificationSink,
        "memory": InMemoryNotificationSink,
    }
    if name not in sinks:
        raise ValueError(f"Unknown notification sink '{name}'")
    return sinks[name]()
