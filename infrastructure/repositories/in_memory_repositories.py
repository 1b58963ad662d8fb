"""In-Memory Repository Implementations

Aggregates are stored and returned as deep copies so that a caller holding a
stale object can only publish it through the compare-and-swap `update`.
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Iterable, TypeVar, Generic
from uuid import UUID

from pydantic import BaseModel

from domain.repositories import (
    RoomRepository, ReservationRepository, CleaningRequestRepository,
    RepairRequestRepository, UserRepository, NotificationRepository
)
from domain.auth import UserInDB
from domain.entities import Room, Reservation, CleaningRequest, RepairRequest, Notification
from domain.enums import CleaningRequestStatus, RepairStatus, ReservationStatus, UserRole
from domain.exceptions import NotFoundError, StaleStateError

T = TypeVar("T", bound=BaseModel)


class _VersionedStore(ABC, Generic[T]):
    """Dict-backed storage with version checked writes"""

    entity_name = "Entity"

    def __init__(self):
        self._storage: Dict[UUID, T] = {}

    @abstractmethod
    def _key(self, entity: T) -> UUID:
        pass

    def _put(self, entity: T) -> T:
        self._storage[self._key(entity)] = entity.model_copy(deep=True)
        return entity

    def _get(self, key: UUID) -> Optional[T]:
        entity = self._storage.get(key)
        return entity.model_copy(deep=True) if entity is not None else None

    def _values(self) -> List[T]:
        return [entity.model_copy(deep=True) for entity in self._storage.values()]

    def _compare_and_swap(self, entity: T, expected_version: int) -> T:
        key = self._key(entity)
        current = self._storage.get(key)
        if current is None:
            raise NotFoundError(self.entity_name, key)
        if current.version != expected_version:
            raise StaleStateError(
                f"{self.entity_name} {key} was modified concurrently",
                entity_id=key,
                expected_version=expected_version,
                actual_version=current.version,
            )
        return self._put(entity)


class InMemoryRoomRepository(_VersionedStore[Room], RoomRepository):
    """In-memory implementation of RoomRepository"""

    entity_name = "Room"

    def _key(self, room: Room) -> UUID:
        return room.room_id

    async def save(self, room: Room) -> Room:
        return self._put(room)

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        return self._get(room_id)

    async def find_all(self) -> List[Room]:
        return self._values()

    async def update(self, room: Room, expected_version: int) -> Room:
        return self._compare_and_swap(room, expected_version)


class InMemoryReservationRepository(_VersionedStore[Reservation], ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    entity_name = "Reservation"

    def _key(self, reservation: Reservation) -> UUID:
        return reservation.reservation_id

    async def save(self, reservation: Reservation) -> Reservation:
        return self._put(reservation)

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        return self._get(reservation_id)

    async def find_by_user(self, user_id: UUID) -> List[Reservation]:
        return [r for r in self._values() if r.user_id == user_id]

    async def find_by_room(self, room_id: UUID) -> List[Reservation]:
        return [r for r in self._values() if r.room_id == room_id]

    async def find_active_by_room(self, room_id: UUID) -> List[Reservation]:
        return [
            r for r in self._values()
            if r.room_id == room_id and r.status == ReservationStatus.ACTIVE
        ]

    async def update(self, reservation: Reservation, expected_version: int) -> Reservation:
        return self._compare_and_swap(reservation, expected_version)


class InMemoryCleaningRequestRepository(_VersionedStore[CleaningRequest], CleaningRequestRepository):
    """In-memory implementation of CleaningRequestRepository"""

    entity_name = "CleaningRequest"

    def _key(self, request: CleaningRequest) -> UUID:
        return request.request_id

    async def save(self, request: CleaningRequest) -> CleaningRequest:
        return self._put(request)

    async def find_by_id(self, request_id: UUID) -> Optional[CleaningRequest]:
        return self._get(request_id)

    async def find_by(
        self,
        status: Optional[CleaningRequestStatus] = None,
        room_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        assigned_to: Optional[UUID] = None
    ) -> List[CleaningRequest]:
        results = []
        for request in self._values():
            if status is not None and request.status != status:
                continue
            if room_id is not None and request.room_id != room_id:
                continue
            if user_id is not None and request.user_id != user_id:
                continue
            if assigned_to is not None and request.assigned_to != assigned_to:
                continue
            results.append(request)
        return sorted(results, key=lambda r: r.created_at)

    async def find_by_statuses(self, statuses: Iterable[CleaningRequestStatus]) -> List[CleaningRequest]:
        wanted = set(statuses)
        return [r for r in self._values() if r.status in wanted]

    async def update(self, request: CleaningRequest, expected_version: int) -> CleaningRequest:
        return self._compare_and_swap(request, expected_version)


class InMemoryRepairRequestRepository(_VersionedStore[RepairRequest], RepairRequestRepository):
    """In-memory implementation of RepairRequestRepository"""

    entity_name = "RepairRequest"

    def _key(self, request: RepairRequest) -> UUID:
        return request.request_id

    async def save(self, request: RepairRequest) -> RepairRequest:
        return self._put(request)

    async def find_by_id(self, request_id: UUID) -> Optional[RepairRequest]:
        return self._get(request_id)

    async def find_by(
        self,
        status: Optional[RepairStatus] = None,
        room_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        assigned_to: Optional[UUID] = None
    ) -> List[RepairRequest]:
        results = [
            r for r in self._values()
            if (status is None or r.status == status)
            and (room_id is None or r.room_id == room_id)
            and (user_id is None or r.user_id == user_id)
            and (assigned_to is None or r.assigned_to == assigned_to)
        ]
        # Newest first
        return sorted(results, key=lambda r: r.created_at, reverse=True)

    async def update(self, request: RepairRequest, expected_version: int) -> RepairRequest:
        return self._compare_and_swap(request, expected_version)

    async def delete(self, request_id: UUID) -> bool:
        return self._storage.pop(request_id, None) is not None


class InMemoryUserRepository(UserRepository):
    """In-memory implementation of UserRepository"""

    def __init__(self):
        self._storage: Dict[UUID, UserInDB] = {}

    async def save(self, user: UserInDB) -> UserInDB:
        self._storage[user.user_id] = user
        return user

    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        return self._storage.get(user_id)

    async def find_by_username(self, username: str) -> Optional[UserInDB]:
        for user in self._storage.values():
            if user.username == username:
                return user
        return None

    async def find_by_role(self, role: UserRole) -> List[UserInDB]:
        return [u for u in self._storage.values() if u.role == role and not u.disabled]


class InMemoryNotificationRepository(_VersionedStore[Notification], NotificationRepository):
    """In-memory implementation of NotificationRepository"""

    entity_name = "Notification"

    def _key(self, notification: Notification) -> UUID:
        return notification.notification_id

    async def save(self, notification: Notification) -> Notification:
        return self._put(notification)

    async def find_by_id(self, notification_id: UUID) -> Optional[Notification]:
        return self._get(notification_id)

    async def find_by_user(self, user_id: UUID, unread_only: bool = False) -> List[Notification]:
        notifications = [
            n for n in self._values()
            if n.user_id == user_id and not (unread_only and n.read)
        ]
        return sorted(notifications, key=lambda n: n.created_at, reverse=True)

    async def update(self, notification: Notification, expected_version: int) -> Notification:
        return self._compare_and_swap(notification, expected_version)
