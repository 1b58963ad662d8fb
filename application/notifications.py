"""Notification Dispatcher - best-effort fan-out of user-facing alerts"""
import logging
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from domain.auth import Actor
from domain.entities import Notification
from domain.enums import NotificationType, UserRole
from domain.exceptions import NotFoundError, UnauthorizedError
from domain.gateways import NotificationSink
from domain.repositories import NotificationRepository, UserRepository

logger = logging.getLogger(__name__)


class NotificationService:
    """Stores an inbox entry per recipient and hands the alert to the sink.

    Delivery is fire-and-forget: failures are logged and never propagate to
    the operation that triggered them.
    """

    def __init__(self, repository: NotificationRepository, users: UserRepository, sink: NotificationSink):
        self.repository = repository
        self.users = users
        self.sink = sink

    async def notify(
        self,
        user_ids: Iterable[UUID],
        title: str,
        body: str,
        type: NotificationType = NotificationType.SYSTEM,
        data: Optional[Dict[str, Any]] = None
    ) -> List[Notification]:
        recipients = list(dict.fromkeys(user_ids))
        if not recipients:
            return []

        payload = {k: str(v) for k, v in (data or {}).items()}
        stored: List[Notification] = []
        try:
            for user_id in recipients:
                notification = Notification(user_id=user_id, title=title, body=body, type=type, data=payload)
                stored.append(await self.repository.save(notification))
            await self.sink.send(recipients, title, body, type, payload)
        except Exception:
            logger.exception("Failed to deliver %s notification %r to %d recipient(s)", type.value, title, len(recipients))
        return stored

    async def notify_admins(
        self,
        title: str,
        body: str,
        type: NotificationType = NotificationType.SYSTEM,
        data: Optional[Dict[str, Any]] = None
    ) -> List[Notification]:
        try:
            admins = await self.users.find_by_role(UserRole.ADMIN)
        except Exception:
            logger.exception("Could not look up administrators for %r", title)
            return []
        return await self.notify([a.user_id for a in admins], title, body, type, data)

    async def list_notifications(self, user_id: UUID, unread_only: bool = False) -> List[Notification]:
        return await self.repository.find_by_user(user_id, unread_only=unread_only)

    async def unread_count(self, user_id: UUID) -> int:
        return len(await self.repository.find_by_user(user_id, unread_only=True))

    async def mark_as_read(self, notification_id: UUID, actor: Actor) -> Notification:
        notification = await self.repository.find_by_id(notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        if notification.user_id != actor.user_id and not actor.is_admin:
            raise UnauthorizedError(
                "Cannot modify another user's notification",
                notification_id=notification_id,
                user_id=actor.user_id,
            )
        if notification.read:
            return notification
        expected = notification.version
        notification.mark_read()
        return await self.repository.update(notification, expected)

    async def mark_all_as_read(self, actor: Actor) -> int:
        unread = await self.repository.find_by_user(actor.user_id, unread_only=True)
        for notification in unread:
            await self.mark_as_read(notification.notification_id, actor)
        return len(unread)
