"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import Optional, List, Dict, Any

from domain.auth import SYSTEM_ACTOR
from domain.enums import (
    ReservationStatus, CleaningStatus, CleaningRequestStatus, CleaningRequestType,
    DoorStatus, LightStatus, DeviceActionType, ActionOrigin, NotificationType,
    RepairPriority, RepairStatus, RepairType
)
from domain.exceptions import (
    AlreadyCancelledError, InvalidStateError, InvalidTransitionError
)
from domain.value_objects import DateRange, DeviceAction, utc_now


class Room(BaseModel):
    """Room Aggregate Root Entity

    Long-lived aggregate holding occupancy, housekeeping and device state.
    Reservations and cleaning requests refer to it by id only.
    """

    # Identity
    room_id: UUID = Field(default_factory=uuid4)
    number: str
    beds: int = 1
    rooms: int = 1

    # Occupancy / housekeeping
    is_occupied: bool = False
    cleaning_status: CleaningStatus = CleaningStatus.CLEAN
    last_cleaned: Optional[datetime] = None

    # Devices
    door_status: DoorStatus = DoorStatus.LOCKED
    light_status: LightStatus = LightStatus.OFF
    door_actions: List[DeviceAction] = []
    lock_deadline: Optional[datetime] = None
    lock_epoch: int = 0

    # Metadata
    created_at: datetime = Field(default_factory=utc_now)
    modified_at: datetime = Field(default_factory=utc_now)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(number: str, beds: int = 1, rooms: int = 1) -> "Room":
        """Provision a clean, locked room with the lights off"""
        if not number or not number.strip():
            raise ValueError("Room number is required")
        if beds < 1 or rooms < 1:
            raise ValueError("Room must have at least one bed and one room")
        now = utc_now()
        return Room(number=number.strip(), beds=beds, rooms=rooms, last_cleaned=now)

    # ==================== OCCUPANCY ====================
    def occupy(self, at: datetime) -> None:
        self.is_occupied = True
        self._touch(at)

    def release(self, still_occupied: bool, at: datetime) -> None:
        """Free the room after a stay ends; it always needs cleaning afterwards"""
        self.is_occupied = still_occupied
        self.cleaning_status = CleaningStatus.NEEDS_CLEANING
        self._touch(at)

    def set_occupancy(self, occupied: bool, at: datetime) -> bool:
        """Apply a reconciled occupancy flag; returns True when it changed"""
        if self.is_occupied == occupied:
            return False
        self.is_occupied = occupied
        self._touch(at)
        return True

    # ==================== HOUSEKEEPING ====================
    def start_cleaning(self, at: datetime) -> None:
        self.cleaning_status = CleaningStatus.IN_PROGRESS
        self._touch(at)

    def finish_cleaning(self, at: datetime) -> None:
        self.cleaning_status = CleaningStatus.CLEAN
        self.last_cleaned = at
        self._touch(at)

    # ==================== DEVICES ====================
    def unlock(self, actor: str, at: datetime, relock_deadline: Optional[datetime] = None) -> DeviceAction:
        """Manually unlock; a new epoch invalidates any earlier auto-lock schedule"""
        self.door_status = DoorStatus.UNLOCKED
        self.lock_epoch += 1
        self.lock_deadline = relock_deadline
        return self._record(DeviceActionType.UNLOCK, actor, at, ActionOrigin.MANUAL)

    def lock(self, actor: str, at: datetime) -> DeviceAction:
        self.door_status = DoorStatus.LOCKED
        self.lock_epoch += 1
        self.lock_deadline = None
        return self._record(DeviceActionType.LOCK, actor, at, ActionOrigin.MANUAL)

    def auto_lock(self, epoch: int, at: datetime) -> Optional[DeviceAction]:
        """Re-lock on behalf of the system if the schedule for `epoch` is still current"""
        if self.door_status != DoorStatus.UNLOCKED or epoch != self.lock_epoch:
            return None
        self.door_status = DoorStatus.LOCKED
        self.lock_deadline = None
        return self._record(DeviceActionType.AUTO_LOCK, SYSTEM_ACTOR, at, ActionOrigin.AUTO)

    def is_lock_overdue(self, now: datetime) -> bool:
        return (
            self.door_status == DoorStatus.UNLOCKED
            and self.lock_deadline is not None
            and self.lock_deadline <= now
        )

    def toggle_light(self, actor: str, at: datetime) -> DeviceAction:
        if self.light_status == LightStatus.ON:
            self.light_status = LightStatus.OFF
            action = DeviceActionType.LIGHT_OFF
        else:
            self.light_status = LightStatus.ON
            action = DeviceActionType.LIGHT_ON
        return self._record(action, actor, at, ActionOrigin.MANUAL)

    # ==================== INTERNALS ====================
    def _record(self, action: DeviceActionType, actor: str, at: datetime, origin: ActionOrigin) -> DeviceAction:
        entry = DeviceAction(action=action, actor=actor, timestamp=at, type=origin)
        self.door_actions = [*self.door_actions, entry]
        self._touch(at)
        return entry

    def _touch(self, at: datetime) -> None:
        self.modified_at = at
        self.version += 1


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)

    # References to other aggregates
    user_id: UUID
    room_id: UUID

    check_in: date
    check_out: date
    status: ReservationStatus = ReservationStatus.ACTIVE

    # Metadata
    created_at: datetime = Field(default_factory=utc_now)
    modified_at: datetime = Field(default_factory=utc_now)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(user_id: UUID, room_id: UUID, check_in: date, check_out: date) -> "Reservation":
        """Create new active reservation; the stay must span at least one night"""
        stay = DateRange.of(check_in, check_out)
        return Reservation(
            user_id=user_id,
            room_id=room_id,
            check_in=stay.check_in,
            check_out=stay.check_out,
        )

    # ==================== STATE TRANSITION METHODS ====================
    def cancel(self, at: datetime) -> None:
        """Cancel reservation"""
        if self.status == ReservationStatus.CANCELLED:
            raise AlreadyCancelledError(
                "Reservation is already cancelled",
                reservation_id=self.reservation_id,
                transition="cancelled->cancelled",
            )
        if self.status == ReservationStatus.COMPLETED:
            raise InvalidStateError(
                "Cannot cancel a completed stay",
                reservation_id=self.reservation_id,
                transition="completed->cancelled",
            )
        self._transition(ReservationStatus.CANCELLED, at)

    def complete(self, at: datetime) -> None:
        """Check the guest out"""
        if self.status != ReservationStatus.ACTIVE:
            raise InvalidStateError(
                f"Cannot complete reservation with status {self.status.value}",
                reservation_id=self.reservation_id,
                transition=f"{self.status.value}->completed",
            )
        self._transition(ReservationStatus.COMPLETED, at)

    def _transition(self, status: ReservationStatus, at: datetime) -> None:
        self.status = status
        self.modified_at = at
        self.version += 1

    # ==================== QUERY METHODS ====================
    @property
    def stay(self) -> DateRange:
        return DateRange(check_in=self.check_in, check_out=self.check_out)

    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    def overlaps(self, check_in: date, check_out: date) -> bool:
        return self.is_active() and self.stay.overlaps(check_in, check_out)

    def covers(self, day: date) -> bool:
        return self.is_active() and self.stay.covers(day)


# pending -> {approved, rejected}, approved -> completed
CLEANING_TRANSITIONS: Dict[CleaningRequestStatus, frozenset] = {
    CleaningRequestStatus.PENDING: frozenset({CleaningRequestStatus.APPROVED, CleaningRequestStatus.REJECTED}),
    CleaningRequestStatus.APPROVED: frozenset({CleaningRequestStatus.COMPLETED}),
    CleaningRequestStatus.REJECTED: frozenset(),
    CleaningRequestStatus.COMPLETED: frozenset(),
}

OPEN_CLEANING_STATUSES = frozenset({CleaningRequestStatus.PENDING, CleaningRequestStatus.APPROVED})


class CleaningRequest(BaseModel):
    """Cleaning Request Aggregate Root Entity"""

    request_id: UUID = Field(default_factory=uuid4)
    room_id: UUID
    user_id: UUID
    reservation_id: UUID

    status: CleaningRequestStatus = CleaningRequestStatus.PENDING
    request_type: CleaningRequestType = CleaningRequestType.REGULAR
    notes: Optional[str] = None

    assigned_to: Optional[UUID] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[UUID] = None

    created_at: datetime = Field(default_factory=utc_now)
    modified_at: datetime = Field(default_factory=utc_now)
    version: int = 1

    class Config:
        from_attributes = True

    @staticmethod
    def create(
        room_id: UUID,
        user_id: UUID,
        reservation_id: UUID,
        request_type: CleaningRequestType,
        notes: Optional[str] = None,
        assigned_to: Optional[UUID] = None,
        at: Optional[datetime] = None
    ) -> "CleaningRequest":
        now = at or utc_now()
        return CleaningRequest(
            room_id=room_id,
            user_id=user_id,
            reservation_id=reservation_id,
            request_type=request_type,
            notes=notes,
            assigned_to=assigned_to,
            assigned_at=now if assigned_to else None,
            created_at=now,
            modified_at=now,
        )

    def transition(self, new_status: CleaningRequestStatus, actor_id: UUID, at: datetime) -> None:
        if new_status not in CLEANING_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Cannot move cleaning request from {self.status.value} to {new_status.value}",
                request_id=self.request_id,
                transition=f"{self.status.value}->{new_status.value}",
            )
        self.status = new_status
        if new_status == CleaningRequestStatus.COMPLETED:
            self.completed_at = at
            self.completed_by = actor_id
        self.modified_at = at
        self.version += 1

    def assign(self, cleaner_id: UUID, at: datetime) -> None:
        if not self.is_open():
            raise InvalidTransitionError(
                f"Cannot assign a cleaner to a {self.status.value} request",
                request_id=self.request_id,
                transition=f"{self.status.value}->assigned",
            )
        self.assigned_to = cleaner_id
        self.assigned_at = at
        self.modified_at = at
        self.version += 1

    def is_open(self) -> bool:
        return self.status in OPEN_CLEANING_STATUSES


# pending -> {in_progress, cancelled}, in_progress -> {completed, cancelled}
REPAIR_TRANSITIONS: Dict[RepairStatus, frozenset] = {
    RepairStatus.PENDING: frozenset({RepairStatus.IN_PROGRESS, RepairStatus.CANCELLED}),
    RepairStatus.IN_PROGRESS: frozenset({RepairStatus.COMPLETED, RepairStatus.CANCELLED}),
    RepairStatus.COMPLETED: frozenset(),
    RepairStatus.CANCELLED: frozenset(),
}

OPEN_REPAIR_STATUSES = frozenset({RepairStatus.PENDING, RepairStatus.IN_PROGRESS})


class RepairRequest(BaseModel):
    """Repair Request Aggregate Root Entity

    Maintenance work on a room, reported by a guest or staff member and
    carried out by a repairer. Starting the work claims an unassigned request.
    """

    request_id: UUID = Field(default_factory=uuid4)
    room_id: UUID
    user_id: UUID

    repair_type: RepairType = RepairType.OTHER
    description: str
    priority: RepairPriority = RepairPriority.MEDIUM
    status: RepairStatus = RepairStatus.PENDING
    notes: Optional[str] = None

    assigned_to: Optional[UUID] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[UUID] = None

    created_at: datetime = Field(default_factory=utc_now)
    modified_at: datetime = Field(default_factory=utc_now)
    version: int = 1

    class Config:
        from_attributes = True

    @staticmethod
    def create(
        room_id: UUID,
        user_id: UUID,
        repair_type: RepairType,
        description: str,
        priority: RepairPriority = RepairPriority.MEDIUM,
        notes: Optional[str] = None,
        at: Optional[datetime] = None
    ) -> "RepairRequest":
        if not description or not description.strip():
            raise ValueError("Repair description is required")
        now = at or utc_now()
        return RepairRequest(
            room_id=room_id,
            user_id=user_id,
            repair_type=repair_type,
            description=description.strip(),
            priority=priority,
            notes=notes,
            created_at=now,
            modified_at=now,
        )

    def transition(self, new_status: RepairStatus, actor_id: UUID, at: datetime) -> None:
        if new_status not in REPAIR_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Cannot move repair request from {self.status.value} to {new_status.value}",
                request_id=self.request_id,
                transition=f"{self.status.value}->{new_status.value}",
            )
        if new_status == RepairStatus.IN_PROGRESS and self.assigned_to is None:
            self.assigned_to = actor_id
            self.assigned_at = at
        if new_status == RepairStatus.COMPLETED:
            self.completed_at = at
            self.completed_by = actor_id
        self.status = new_status
        self.modified_at = at
        self.version += 1

    def assign(self, repairer_id: UUID, at: datetime) -> None:
        if not self.is_open():
            raise InvalidTransitionError(
                f"Cannot assign a repairer to a {self.status.value} request",
                request_id=self.request_id,
                transition=f"{self.status.value}->assigned",
            )
        self.assigned_to = repairer_id
        self.assigned_at = at
        self.modified_at = at
        self.version += 1

    def is_open(self) -> bool:
        return self.status in OPEN_REPAIR_STATUSES


class Notification(BaseModel):
    """In-app notification inbox entry"""

    notification_id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    title: str
    body: str
    type: NotificationType = NotificationType.SYSTEM
    data: Dict[str, Any] = {}
    read: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    version: int = 1

    class Config:
        from_attributes = True

    def mark_read(self) -> None:
        self.read = True
        self.version += 1
