"""Repair Request Workflow

Guests and staff report maintenance problems on a room; repairers pick the
work up and drive it to completion. Writes to a request happen under its
room lock, so the assignee check and the status change cannot interleave with
an administrator reassigning the request.
"""
import logging
from typing import List, Optional
from uuid import UUID

from application.notifications import NotificationService
from application.services import RoomService
from domain.auth import Actor
from domain.entities import RepairRequest
from domain.enums import NotificationType, RepairPriority, RepairStatus, RepairType, UserRole
from domain.events import (
    DomainEvent, REPAIR_REQUEST_CREATED, REPAIR_REQUEST_UPDATED, REPAIR_REQUEST_DELETED
)
from domain.exceptions import NotFoundError, StaleStateError, UnauthorizedError
from domain.gateways import Clock
from domain.repositories import RepairRequestRepository, UserRepository
from infrastructure.event_bus import EventBus
from infrastructure.locking import KeyedLock

logger = logging.getLogger(__name__)


class RepairRequestService:

    def __init__(
        self,
        repository: RepairRequestRepository,
        rooms: RoomService,
        users: UserRepository,
        notifications: NotificationService,
        clock: Clock,
        events: EventBus,
        room_locks: KeyedLock
    ):
        self.repository = repository
        self.rooms = rooms
        self.users = users
        self.notifications = notifications
        self.clock = clock
        self.events = events
        self.room_locks = room_locks

    async def create_request(
        self,
        actor: Actor,
        room_id: UUID,
        repair_type: RepairType,
        description: str,
        priority: RepairPriority = RepairPriority.MEDIUM,
        notes: Optional[str] = None
    ) -> RepairRequest:
        async with self.room_locks.hold(room_id):
            room = await self.rooms.require(room_id)
            request = RepairRequest.create(
                room_id=room_id,
                user_id=actor.user_id,
                repair_type=repair_type,
                description=description,
                priority=priority,
                notes=notes,
                at=self.clock.now(),
            )
            request = await self.repository.save(request)

        logger.info(
            "Repair request %s (%s, %s) reported for room %s",
            request.request_id, repair_type.value, priority.value, room.number,
        )
        await self.events.publish(DomainEvent(
            event_type=REPAIR_REQUEST_CREATED,
            aggregate_id=request.request_id,
            data={"room_id": room_id, "priority": priority.value},
        ))

        data = {"request_id": request.request_id, "room_id": room_id, "repair_type": repair_type.value}
        title = "New repair request"
        body = f"Room {room.number}: {request.description}"
        repairers = await self.users.find_by_role(UserRole.REPAIRER)
        if repairers:
            await self.notifications.notify(
                [r.user_id for r in repairers], title, body, NotificationType.REPAIR, data
            )
        else:
            await self.notifications.notify_admins(title, body, NotificationType.REPAIR, data)
        return request

    async def update_status(self, request_id: UUID, new_status: RepairStatus, actor: Actor) -> RepairRequest:
        """Move a request along its lifecycle; starting work claims an unassigned request"""
        if actor.role not in (UserRole.ADMIN, UserRole.REPAIRER):
            raise UnauthorizedError(
                "Only repairers and administrators can update repair requests",
                request_id=request_id,
                user_id=actor.user_id,
            )
        request = await self._require(request_id)

        async with self.room_locks.hold(request.room_id):
            request = await self._require(request_id)
            if (
                actor.role == UserRole.REPAIRER
                and request.assigned_to is not None
                and request.assigned_to != actor.user_id
            ):
                raise UnauthorizedError(
                    "Repair request is assigned to another repairer",
                    request_id=request_id,
                    user_id=actor.user_id,
                )
            expected = request.version
            request.transition(new_status, actor.user_id, self.clock.now())
            try:
                request = await self.repository.update(request, expected)
            except StaleStateError:
                (await self._require(request_id)).transition(new_status, actor.user_id, self.clock.now())
                raise

        logger.info("Repair request %s -> %s by %s", request_id, new_status.value, actor.user_id)
        await self.events.publish(DomainEvent(
            event_type=REPAIR_REQUEST_UPDATED,
            aggregate_id=request_id,
            data={"status": new_status.value, "room_id": request.room_id},
        ))
        room = await self.rooms.require(request.room_id)
        await self.notifications.notify(
            [request.user_id], "Repair status update",
            f"Room {room.number}: {new_status.value}", NotificationType.REPAIR,
            {"request_id": request_id, "room_id": request.room_id, "status": new_status.value}
        )
        return request

    async def assign_repairer(self, request_id: UUID, repairer_id: UUID, actor: Actor) -> RepairRequest:
        if not actor.is_admin:
            raise UnauthorizedError(
                "Only administrators can assign repairers",
                request_id=request_id,
                user_id=actor.user_id,
            )
        repairer = await self.users.find_by_id(repairer_id)
        if repairer is None or repairer.role != UserRole.REPAIRER:
            raise NotFoundError("Repairer", repairer_id)
        request = await self._require(request_id)

        async with self.room_locks.hold(request.room_id):
            request = await self._require(request_id)
            expected = request.version
            request.assign(repairer_id, self.clock.now())
            request = await self.repository.update(request, expected)

        logger.info("Repair request %s assigned to %s", request_id, repairer_id)
        await self.events.publish(DomainEvent(
            event_type=REPAIR_REQUEST_UPDATED,
            aggregate_id=request_id,
            data={"assigned_to": repairer_id, "room_id": request.room_id},
        ))
        room = await self.rooms.require(request.room_id)
        await self.notifications.notify(
            [repairer_id], "New repair task", f"You are assigned to a repair in room {room.number}",
            NotificationType.REPAIR, {"request_id": request_id, "room_id": request.room_id}
        )
        return request

    async def delete_request(self, request_id: UUID, actor: Actor) -> None:
        """Administrators may delete any request, reporters only their own"""
        request = await self._require(request_id)
        if not actor.is_admin and request.user_id != actor.user_id:
            raise UnauthorizedError(
                "Cannot delete another user's repair request",
                request_id=request_id,
                user_id=actor.user_id,
            )
        async with self.room_locks.hold(request.room_id):
            if not await self.repository.delete(request_id):
                raise NotFoundError("RepairRequest", request_id)

        logger.info("Repair request %s deleted by %s", request_id, actor.user_id)
        await self.events.publish(DomainEvent(
            event_type=REPAIR_REQUEST_DELETED,
            aggregate_id=request_id,
            data={"room_id": request.room_id},
        ))

    async def _require(self, request_id: UUID) -> RepairRequest:
        request = await self.repository.find_by_id(request_id)
        if request is None:
            raise NotFoundError("RepairRequest", request_id)
        return request

    async def get_request(self, request_id: UUID) -> RepairRequest:
        return await self._require(request_id)

    async def list_requests(
        self,
        status: Optional[RepairStatus] = None,
        room_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        assigned_to: Optional[UUID] = None
    ) -> List[RepairRequest]:
        return await self.repository.find_by(status=status, room_id=room_id, user_id=user_id, assigned_to=assigned_to)
