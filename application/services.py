"""Application Services - Business use cases"""
import logging
from datetime import date
from typing import Callable, List, Optional, Set
from uuid import UUID

from application.cleaner_roster import CleanerRoster
from application.notifications import NotificationService
from domain.auth import Actor, UserInDB
from domain.entities import Room, Reservation, CleaningRequest
from domain.enums import (
    CleaningRequestStatus, CleaningRequestType, NotificationType, ReservationStatus, UserRole
)
from domain.events import (
    DomainEvent, ROOM_CREATED, ROOM_UPDATED, DEVICE_ACTION,
    RESERVATION_CREATED, RESERVATION_CANCELLED, RESERVATION_COMPLETED,
    CLEANING_REQUEST_CREATED, CLEANING_REQUEST_UPDATED
)
from domain.exceptions import (
    NotFoundError, NoActiveReservationError, RoleNotAllowedError, RoomOccupiedError,
    StaleStateError, UnauthorizedError
)
from domain.gateways import Clock
from domain.repositories import (
    RoomRepository, ReservationRepository, CleaningRequestRepository, UserRepository
)
from domain.value_objects import DateRange, DeviceAction, GuestSnapshot
from infrastructure.config import Settings
from infrastructure.event_bus import EventBus
from infrastructure.locking import KeyedLock

logger = logging.getLogger(__name__)

CLEANER_ROSTER_LOCK = "cleaner-roster"


class AvailabilityService:
    """Answers overlap questions against active reservations; no side effects"""

    def __init__(self, reservations: ReservationRepository, rooms: RoomRepository):
        self.reservations = reservations
        self.rooms = rooms

    async def is_occupied(self, room_id: UUID, check_in: date, check_out: date) -> bool:
        """True if an active reservation on the room overlaps [check_in, check_out)"""
        for reservation in await self.reservations.find_active_by_room(room_id):
            if reservation.overlaps(check_in, check_out):
                logger.debug(
                    "Room %s overlaps reservation %s [%s, %s)",
                    room_id, reservation.reservation_id, reservation.check_in, reservation.check_out,
                )
                return True
        return False

    async def covering_reservation(self, room_id: UUID, day: date, exclude: Optional[UUID] = None) -> Optional[Reservation]:
        """Active reservation whose stay includes `day`"""
        for reservation in await self.reservations.find_active_by_room(room_id):
            if reservation.reservation_id != exclude and reservation.covers(day):
                return reservation
        return None

    async def find_available_rooms(self, check_in: date, check_out: date) -> List[Room]:
        stay = DateRange.of(check_in, check_out)
        available = []
        for room in await self.rooms.find_all():
            if not await self.is_occupied(room.room_id, stay.check_in, stay.check_out):
                available.append(room)
        return sorted(available, key=lambda r: r.number)


class RoomService:
    """Room Registry: reads, conditional writes and reconciliation of room state"""

    def __init__(
        self,
        repository: RoomRepository,
        availability: AvailabilityService,
        users: UserRepository,
        clock: Clock,
        events: EventBus,
        room_locks: KeyedLock,
        settings: Settings
    ):
        self.repository = repository
        self.availability = availability
        self.users = users
        self.clock = clock
        self.events = events
        self.room_locks = room_locks
        self.settings = settings
        self._needs_reconciliation: Set[UUID] = set()

    async def create_room(self, actor: Actor, number: str, beds: int = 1, rooms: int = 1) -> Room:
        if not actor.is_admin:
            raise UnauthorizedError("Only administrators can provision rooms", user_id=actor.user_id)
        room = await self.repository.save(Room.create(number, beds, rooms))
        logger.info("Room %s provisioned as %s", room.number, room.room_id)
        await self.events.publish(DomainEvent(
            event_type=ROOM_CREATED, aggregate_id=room.room_id, data={"number": room.number}
        ))
        return room

    async def get_room(self, room_id: UUID) -> Room:
        """Read a room, applying an auto-lock whose deadline has already passed"""
        room = await self.require(room_id)
        if room.is_lock_overdue(self.clock.now()):
            async with self.room_locks.hold(room_id):
                room = await self.require(room_id)
                await self.expire_overdue_lock(room)
                room = await self.require(room_id)
        return room

    async def list_rooms(self) -> List[Room]:
        return sorted(await self.repository.find_all(), key=lambda r: r.number)

    async def list_occupied_rooms(self) -> List[Room]:
        return [r for r in await self.list_rooms() if r.is_occupied]

    async def get_current_guest(self, room_id: UUID) -> Optional[GuestSnapshot]:
        """Derived from the active reservation covering today; never stored on the room"""
        await self.require(room_id)
        reservation = await self.availability.covering_reservation(room_id, self.clock.today())
        if reservation is None:
            return None
        guest = await self.users.find_by_id(reservation.user_id)
        return GuestSnapshot(
            user_id=reservation.user_id,
            reservation_id=reservation.reservation_id,
            name=guest.full_name if guest else None,
            check_in=reservation.check_in,
            check_out=reservation.check_out,
        )

    # ==================== WRITES (caller holds the room lock) ====================
    async def require(self, room_id: UUID) -> Room:
        room = await self.repository.find_by_id(room_id)
        if room is None:
            raise NotFoundError("Room", room_id)
        return room

    async def write(self, room: Room, expected_version: int) -> Room:
        saved = await self.repository.update(room, expected_version)
        await self.events.publish(DomainEvent(
            event_type=ROOM_UPDATED,
            aggregate_id=room.room_id,
            data={
                "version": room.version,
                "is_occupied": room.is_occupied,
                "cleaning_status": room.cleaning_status.value,
                "door_status": room.door_status.value,
                "light_status": room.light_status.value,
            },
        ))
        return saved

    async def write_with_retry(self, room_id: UUID, mutate: Callable[[Room], None]) -> Optional[Room]:
        """
        Apply `mutate` to a fresh copy of the room and persist it, retrying
        lost or failed writes. Used for the second write after a committed
        reservation or cleaning transition; if every attempt fails the room is
        queued for reconciliation and None is returned.
        """
        attempts = self.settings.room_write_retries
        for attempt in range(1, attempts + 1):
            try:
                room = await self.require(room_id)
                expected = room.version
                mutate(room)
                return await self.write(room, expected)
            except NotFoundError:
                raise
            except StaleStateError:
                logger.warning("Room %s changed during write (attempt %d/%d)", room_id, attempt, attempts)
            except Exception:
                logger.exception("Room %s write failed (attempt %d/%d)", room_id, attempt, attempts)
        self._needs_reconciliation.add(room_id)
        logger.error("Room %s is out of sync with its reservations; queued for reconciliation", room_id)
        return None

    async def expire_overdue_lock(self, room: Room) -> Optional[DeviceAction]:
        """Lazily apply an auto-lock whose timer never fired"""
        if not room.is_lock_overdue(self.clock.now()):
            return None
        return await self._apply_auto_lock(room, room.lock_epoch)

    async def auto_lock(self, room_id: UUID, epoch: int) -> Optional[DeviceAction]:
        """Timer entry point: re-lock if the schedule for `epoch` is still current"""
        async with self.room_locks.hold(room_id):
            room = await self.repository.find_by_id(room_id)
            if room is None:
                logger.warning("Auto-lock fired for unknown room %s", room_id)
                return None
            return await self._apply_auto_lock(room, epoch)

    async def _apply_auto_lock(self, room: Room, epoch: int) -> Optional[DeviceAction]:
        expected = room.version
        action = room.auto_lock(epoch, self.clock.now())
        if action is None:
            return None
        await self.write(room, expected)
        logger.info("Room %s door auto-locked", room.number)
        await self.events.publish(DomainEvent(
            event_type=DEVICE_ACTION,
            aggregate_id=room.room_id,
            data={"action": action.action.value, "actor": action.actor, "type": action.type.value},
        ))
        return action

    # ==================== RECONCILIATION ====================
    async def reconcile_room(self, room_id: UUID) -> Room:
        """Recompute occupancy from reservations and expire overdue unlocks"""
        async with self.room_locks.hold(room_id):
            room = await self.require(room_id)
            await self.expire_overdue_lock(room)
            room = await self.require(room_id)
            covering = await self.availability.covering_reservation(room_id, self.clock.today())
            expected = room.version
            if room.set_occupancy(covering is not None, self.clock.now()):
                logger.info("Room %s occupancy reconciled to %s", room.number, room.is_occupied)
                room = await self.write(room, expected)
            self._needs_reconciliation.discard(room_id)
            return room

    async def reconcile_pending(self) -> List[Room]:
        reconciled = []
        for room_id in list(self._needs_reconciliation):
            reconciled.append(await self.reconcile_room(room_id))
        return reconciled

    def pending_reconciliation(self) -> Set[UUID]:
        return set(self._needs_reconciliation)


class ReservationService:
    """Reservation Lifecycle Manager"""

    def __init__(
        self,
        repository: ReservationRepository,
        rooms: RoomService,
        availability: AvailabilityService,
        notifications: NotificationService,
        clock: Clock,
        events: EventBus,
        room_locks: KeyedLock,
        settings: Settings
    ):
        self.repository = repository
        self.rooms = rooms
        self.availability = availability
        self.notifications = notifications
        self.clock = clock
        self.events = events
        self.room_locks = room_locks
        self.settings = settings

    async def create_reservation(self, actor: Actor, room_id: UUID, check_in: date, check_out: date) -> Reservation:
        """Book a room for [check_in, check_out)"""
        reservation = Reservation.create(
            user_id=actor.user_id, room_id=room_id, check_in=check_in, check_out=check_out
        )
        if actor.role in self.settings.booking_forbidden_roles:
            raise RoleNotAllowedError(
                f"Role '{actor.role.value}' is not allowed to book rooms",
                user_id=actor.user_id,
                role=actor.role.value,
            )

        # Availability check and write happen under the room's single-writer lock
        async with self.room_locks.hold(room_id):
            room = await self.rooms.require(room_id)
            if await self.availability.is_occupied(room_id, check_in, check_out):
                raise RoomOccupiedError(
                    f"Room {room.number} is already booked for these dates",
                    room_id=room_id,
                    check_in=check_in,
                    check_out=check_out,
                )
            reservation = await self.repository.save(reservation)
            await self.rooms.write_with_retry(room_id, lambda r: r.occupy(self.clock.now()))

        logger.info(
            "Reservation %s created for room %s [%s, %s)",
            reservation.reservation_id, room.number, check_in, check_out,
        )
        await self.events.publish(DomainEvent(
            event_type=RESERVATION_CREATED,
            aggregate_id=reservation.reservation_id,
            data={"room_id": room_id, "user_id": actor.user_id},
        ))
        data = {
            "reservation_id": reservation.reservation_id,
            "room_id": room_id,
            "check_in": check_in.isoformat(),
            "check_out": check_out.isoformat(),
        }
        await self.notifications.notify_admins(
            "New reservation", f"New reservation for room {room.number}", NotificationType.RESERVATION, data
        )
        await self.notifications.notify(
            [actor.user_id],
            "Reservation confirmed",
            f"Room {room.number} is booked from {check_in.isoformat()} to {check_out.isoformat()}",
            NotificationType.RESERVATION,
            data,
        )
        return reservation

    async def cancel_reservation(self, reservation_id: UUID, actor: Optional[Actor] = None) -> Reservation:
        reservation = await self._terminate(reservation_id, ReservationStatus.CANCELLED, actor)
        room = await self.rooms.require(reservation.room_id)
        data = {"reservation_id": reservation_id, "room_id": reservation.room_id}
        await self.notifications.notify(
            [reservation.user_id], "Reservation cancelled",
            f"Your reservation for room {room.number} was cancelled", NotificationType.RESERVATION, data
        )
        await self.notifications.notify_admins(
            "Reservation cancelled", f"Reservation for room {room.number} was cancelled",
            NotificationType.RESERVATION, data
        )
        return reservation

    async def complete_reservation(self, reservation_id: UUID, actor: Optional[Actor] = None) -> Reservation:
        reservation = await self._terminate(reservation_id, ReservationStatus.COMPLETED, actor)
        room = await self.rooms.require(reservation.room_id)
        await self.notifications.notify_admins(
            "Room needs cleaning", f"Guest checked out of room {room.number}",
            NotificationType.CLEANING, {"reservation_id": reservation_id, "room_id": reservation.room_id}
        )
        return reservation

    async def _terminate(self, reservation_id: UUID, target: ReservationStatus, actor: Optional[Actor]) -> Reservation:
        reservation = await self._require(reservation_id)
        if actor is not None and not actor.is_admin and reservation.user_id != actor.user_id:
            raise UnauthorizedError(
                "Only the guest or an administrator can change this reservation",
                reservation_id=reservation_id,
                user_id=actor.user_id,
            )

        async with self.room_locks.hold(reservation.room_id):
            reservation = await self._require(reservation_id)
            expected = reservation.version
            self._apply(reservation, target)
            try:
                reservation = await self.repository.update(reservation, expected)
            except StaleStateError:
                # Re-evaluate against the persisted state to report the real conflict
                self._apply(await self._require(reservation_id), target)
                raise

            still_occupied = await self.availability.covering_reservation(
                reservation.room_id, self.clock.today(), exclude=reservation_id
            ) is not None
            await self.rooms.write_with_retry(
                reservation.room_id, lambda r: r.release(still_occupied, self.clock.now())
            )

        event_type = RESERVATION_CANCELLED if target == ReservationStatus.CANCELLED else RESERVATION_COMPLETED
        logger.info("Reservation %s %s", reservation_id, target.value)
        await self.events.publish(DomainEvent(
            event_type=event_type,
            aggregate_id=reservation_id,
            data={"room_id": reservation.room_id, "user_id": reservation.user_id},
        ))
        return reservation

    def _apply(self, reservation: Reservation, target: ReservationStatus) -> None:
        if target == ReservationStatus.CANCELLED:
            reservation.cancel(self.clock.now())
        else:
            reservation.complete(self.clock.now())

    async def _require(self, reservation_id: UUID) -> Reservation:
        reservation = await self.repository.find_by_id(reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    async def get_reservation(self, reservation_id: UUID) -> Reservation:
        return await self._require(reservation_id)

    async def get_user_reservations(self, user_id: UUID) -> List[Reservation]:
        """Newest first"""
        reservations = await self.repository.find_by_user(user_id)
        return sorted(reservations, key=lambda r: r.created_at, reverse=True)

    async def get_room_reservations(self, room_id: UUID, active_only: bool = False) -> List[Reservation]:
        if active_only:
            reservations = await self.repository.find_active_by_room(room_id)
        else:
            reservations = await self.repository.find_by_room(room_id)
        return sorted(reservations, key=lambda r: r.check_in)

    async def find_active_reservation(self, room_id: UUID, user_id: UUID) -> Optional[Reservation]:
        for reservation in await self.repository.find_active_by_room(room_id):
            if reservation.user_id == user_id:
                return reservation
        return None


class CleaningRequestService:
    """Cleaning Request Workflow"""

    def __init__(
        self,
        repository: CleaningRequestRepository,
        reservations: ReservationRepository,
        rooms: RoomService,
        users: UserRepository,
        roster: CleanerRoster,
        notifications: NotificationService,
        clock: Clock,
        events: EventBus,
        room_locks: KeyedLock
    ):
        self.repository = repository
        self.reservations = reservations
        self.rooms = rooms
        self.users = users
        self.roster = roster
        self.notifications = notifications
        self.clock = clock
        self.events = events
        self.room_locks = room_locks

    async def create_request(
        self,
        room_id: UUID,
        user_id: UUID,
        reservation_id: UUID,
        request_type: CleaningRequestType = CleaningRequestType.REGULAR,
        notes: Optional[str] = None
    ) -> CleaningRequest:
        # The reservation check and the save share the room lock with cancel/complete
        async with self.room_locks.hold(room_id):
            reservation = await self.reservations.find_by_id(reservation_id)
            if (
                reservation is None
                or not reservation.is_active()
                or reservation.user_id != user_id
                or reservation.room_id != room_id
            ):
                raise NoActiveReservationError(
                    "No active reservation found for this room",
                    room_id=room_id,
                    user_id=user_id,
                    reservation_id=reservation_id,
                )
            room = await self.rooms.require(room_id)

            # Picking a cleaner and recording the assignment must not interleave
            async with self.room_locks.hold(CLEANER_ROSTER_LOCK):
                cleaner = await self.roster.first_available()
                request = CleaningRequest.create(
                    room_id=room_id,
                    user_id=user_id,
                    reservation_id=reservation_id,
                    request_type=request_type,
                    notes=notes,
                    assigned_to=cleaner.user_id if cleaner else None,
                    at=self.clock.now(),
                )
                request = await self.repository.save(request)
                if cleaner is not None:
                    self.roster.assign(cleaner.user_id, request.request_id)

        logger.info(
            "Cleaning request %s for room %s assigned to %s",
            request.request_id, room.number, cleaner.username if cleaner else "nobody",
        )
        await self.events.publish(DomainEvent(
            event_type=CLEANING_REQUEST_CREATED,
            aggregate_id=request.request_id,
            data={"room_id": room_id, "assigned_to": request.assigned_to},
        ))
        data = {"request_id": request.request_id, "room_id": room_id, "request_type": request_type.value}
        if cleaner is not None:
            await self.notifications.notify(
                [cleaner.user_id], "New cleaning task",
                f"You are assigned to clean room {room.number}", NotificationType.CLEANING, data
            )
        else:
            await self.notifications.notify_admins(
                "Cleaning request awaiting assignment",
                f"No cleaner is free for room {room.number}", NotificationType.CLEANING, data
            )
        return request

    async def update_status(self, request_id: UUID, new_status: CleaningRequestStatus, actor: Actor) -> CleaningRequest:
        if actor.role not in (UserRole.ADMIN, UserRole.CLEANER):
            raise UnauthorizedError(
                "Only cleaners and administrators can update cleaning requests",
                request_id=request_id,
                user_id=actor.user_id,
            )
        request = await self._require(request_id)

        async with self.room_locks.hold(request.room_id):
            request = await self._require(request_id)
            if actor.is_cleaner and request.assigned_to != actor.user_id:
                raise UnauthorizedError(
                    "Cleaning request is not assigned to this cleaner",
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

            if not request.is_open() and request.assigned_to is not None:
                self.roster.release(request.assigned_to, request.request_id)
            if new_status == CleaningRequestStatus.APPROVED:
                await self.rooms.write_with_retry(request.room_id, lambda r: r.start_cleaning(self.clock.now()))
            elif new_status == CleaningRequestStatus.COMPLETED:
                await self.rooms.write_with_retry(request.room_id, lambda r: r.finish_cleaning(self.clock.now()))

        logger.info("Cleaning request %s -> %s by %s", request_id, new_status.value, actor.user_id)
        await self.events.publish(DomainEvent(
            event_type=CLEANING_REQUEST_UPDATED,
            aggregate_id=request_id,
            data={"status": new_status.value, "room_id": request.room_id},
        ))
        room = await self.rooms.require(request.room_id)
        await self.notifications.notify(
            [request.user_id], "Cleaning status update",
            f"Room {room.number}: {new_status.value}", NotificationType.CLEANING,
            {"request_id": request_id, "room_id": request.room_id, "status": new_status.value}
        )
        return request

    async def assign_cleaner(self, request_id: UUID, cleaner_id: UUID, actor: Actor) -> CleaningRequest:
        """Administrator override of the automatic assignment"""
        if not actor.is_admin:
            raise UnauthorizedError(
                "Only administrators can assign cleaners",
                request_id=request_id,
                user_id=actor.user_id,
            )
        cleaner = await self.users.find_by_id(cleaner_id)
        if cleaner is None or cleaner.role != UserRole.CLEANER:
            raise NotFoundError("Cleaner", cleaner_id)
        request = await self._require(request_id)

        async with self.room_locks.hold(request.room_id):
            request = await self._require(request_id)
            previous = request.assigned_to
            expected = request.version
            request.assign(cleaner_id, self.clock.now())
            async with self.room_locks.hold(CLEANER_ROSTER_LOCK):
                request = await self.repository.update(request, expected)
                if previous is not None:
                    self.roster.release(previous, request_id)
                self.roster.assign(cleaner_id, request_id)

        logger.info("Cleaning request %s reassigned from %s to %s", request_id, previous, cleaner_id)
        await self.events.publish(DomainEvent(
            event_type=CLEANING_REQUEST_UPDATED,
            aggregate_id=request_id,
            data={"assigned_to": cleaner_id, "room_id": request.room_id},
        ))
        room = await self.rooms.require(request.room_id)
        await self.notifications.notify(
            [cleaner_id], "New cleaning task", f"You are assigned to clean room {room.number}",
            NotificationType.CLEANING, {"request_id": request_id, "room_id": request.room_id}
        )
        return request

    async def _require(self, request_id: UUID) -> CleaningRequest:
        request = await self.repository.find_by_id(request_id)
        if request is None:
            raise NotFoundError("CleaningRequest", request_id)
        return request

    async def get_request(self, request_id: UUID) -> CleaningRequest:
        return await self._require(request_id)

    async def list_requests(
        self,
        status: Optional[CleaningRequestStatus] = None,
        room_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        assigned_to: Optional[UUID] = None
    ) -> List[CleaningRequest]:
        return await self.repository.find_by(status=status, room_id=room_id, user_id=user_id, assigned_to=assigned_to)

    async def get_available_cleaners(self) -> List[UserInDB]:
        return await self.roster.available_cleaners()
