"""Device Control Coordinator - door lock and lights per room"""
import logging
from datetime import timedelta
from functools import partial
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from application.services import RoomService
from domain.auth import Actor
from domain.entities import Room
from domain.events import DomainEvent, DEVICE_ACTION
from domain.exceptions import AccessDeniedError
from domain.gateways import Clock, TimerHandle, TimerService
from domain.repositories import CleaningRequestRepository, ReservationRepository
from domain.value_objects import DeviceAction
from infrastructure.config import Settings
from infrastructure.event_bus import EventBus
from infrastructure.locking import KeyedLock

logger = logging.getLogger(__name__)


class DeviceControlService:
    """
    Door/light operations with access control and a de-bounced auto-lock.

    Each manual door action bumps the room's lock epoch. An auto-lock timer is
    bound to the epoch it was scheduled for, so only the latest unlock can
    re-lock the door; older timers are cancelled and would no-op anyway. The
    deadline is also persisted on the room so a lost timer is repaired on the
    next read.
    """

    def __init__(
        self,
        rooms: RoomService,
        reservations: ReservationRepository,
        cleaning_requests: CleaningRequestRepository,
        timers: TimerService,
        clock: Clock,
        events: EventBus,
        room_locks: KeyedLock,
        settings: Settings
    ):
        self.rooms = rooms
        self.reservations = reservations
        self.cleaning_requests = cleaning_requests
        self.timers = timers
        self.clock = clock
        self.events = events
        self.room_locks = room_locks
        self.settings = settings
        self._auto_locks: Dict[UUID, Tuple[int, TimerHandle]] = {}

    async def check_access(self, room_id: UUID, actor: Actor) -> bool:
        await self.rooms.require(room_id)
        if actor.is_admin:
            return True
        if actor.is_cleaner:
            assigned = await self.cleaning_requests.find_by(room_id=room_id, assigned_to=actor.user_id)
            return any(request.is_open() for request in assigned)
        active = await self.reservations.find_active_by_room(room_id)
        return any(reservation.user_id == actor.user_id for reservation in active)

    async def unlock_door(self, room_id: UUID, actor: Actor) -> Room:
        async with self.room_locks.hold(room_id):
            await self._require_access(room_id, actor, "unlock")
            room = await self.rooms.require(room_id)
            await self.rooms.expire_overdue_lock(room)
            room = await self.rooms.require(room_id)

            now = self.clock.now()
            delay = self.settings.auto_lock_delay_seconds
            deadline = None if actor.is_cleaner else now + timedelta(seconds=delay)
            expected = room.version
            action = room.unlock(str(actor.user_id), now, deadline)
            room = await self.rooms.write(room, expected)

            self._cancel_auto_lock(room_id)
            if deadline is not None:
                self._schedule_auto_lock(room_id, room.lock_epoch, delay)

        await self._publish(room, action)
        return room

    async def lock_door(self, room_id: UUID, actor: Actor) -> Room:
        async with self.room_locks.hold(room_id):
            await self._require_access(room_id, actor, "lock")
            room = await self.rooms.require(room_id)
            expected = room.version
            action = room.lock(str(actor.user_id), self.clock.now())
            room = await self.rooms.write(room, expected)
            self._cancel_auto_lock(room_id)

        await self._publish(room, action)
        return room

    async def toggle_light(self, room_id: UUID, actor: Actor) -> Room:
        async with self.room_locks.hold(room_id):
            await self._require_access(room_id, actor, "toggle_light")
            room = await self.rooms.require(room_id)
            expected = room.version
            action = room.toggle_light(str(actor.user_id), self.clock.now())
            room = await self.rooms.write(room, expected)

        await self._publish(room, action)
        return room

    async def get_device_log(self, room_id: UUID, actor: Actor) -> List[DeviceAction]:
        await self._require_access(room_id, actor, "view_log")
        room = await self.rooms.get_room(room_id)
        return list(room.door_actions)

    def pending_auto_lock(self, room_id: UUID) -> Optional[int]:
        """Epoch of the live auto-lock timer for a room, if any"""
        entry = self._auto_locks.get(room_id)
        if entry is None or not entry[1].is_active():
            return None
        return entry[0]

    def shutdown(self) -> None:
        for room_id in list(self._auto_locks):
            self._cancel_auto_lock(room_id)

    # ==================== INTERNALS ====================
    async def _require_access(self, room_id: UUID, actor: Actor, operation: str) -> None:
        if not await self.check_access(room_id, actor):
            logger.warning("Access denied: %s on room %s by %s", operation, room_id, actor.user_id)
            raise AccessDeniedError(
                "You do not have access to this room",
                room_id=room_id,
                user_id=actor.user_id,
                operation=operation,
            )

    def _schedule_auto_lock(self, room_id: UUID, epoch: int, delay: float) -> None:
        handle = self.timers.schedule(delay, partial(self._fire_auto_lock, room_id, epoch))
        self._auto_locks[room_id] = (epoch, handle)

    def _cancel_auto_lock(self, room_id: UUID) -> None:
        entry = self._auto_locks.pop(room_id, None)
        if entry is not None:
            entry[1].cancel()

    async def _fire_auto_lock(self, room_id: UUID, epoch: int) -> None:
        entry = self._auto_locks.get(room_id)
        if entry is not None and entry[0] == epoch:
            del self._auto_locks[room_id]
        await self.rooms.auto_lock(room_id, epoch)

    async def _publish(self, room: Room, action: DeviceAction) -> None:
        logger.info("Room %s: %s by %s", room.number, action.action.value, action.actor)
        await self.events.publish(DomainEvent(
            event_type=DEVICE_ACTION,
            aggregate_id=room.room_id,
            data={"action": action.action.value, "actor": action.actor, "type": action.type.value},
        ))
