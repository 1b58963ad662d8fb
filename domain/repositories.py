"""Domain Repository Interfaces

Writes of existing aggregates are compare-and-swap: `update` takes the version
the caller read and raises StaleStateError when the stored version differs.
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Iterable
from uuid import UUID

from domain.auth import UserInDB
from domain.entities import Room, Reservation, CleaningRequest, RepairRequest, Notification
from domain.enums import CleaningRequestStatus, RepairStatus, UserRole


class RoomRepository(ABC):
    """Repository interface for Room Aggregate"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Room]:
        pass

    @abstractmethod
    async def update(self, room: Room, expected_version: int) -> Room:
        """Persist room if the stored version still equals expected_version"""
        pass


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def find_by_user(self, user_id: UUID) -> List[Reservation]:
        pass

    @abstractmethod
    async def find_by_room(self, room_id: UUID) -> List[Reservation]:
        pass

    @abstractmethod
    async def find_active_by_room(self, room_id: UUID) -> List[Reservation]:
        pass

    @abstractmethod
    async def update(self, reservation: Reservation, expected_version: int) -> Reservation:
        pass


class CleaningRequestRepository(ABC):
    """Repository interface for CleaningRequest Aggregate"""

    @abstractmethod
    async def save(self, request: CleaningRequest) -> CleaningRequest:
        pass

    @abstractmethod
    async def find_by_id(self, request_id: UUID) -> Optional[CleaningRequest]:
        pass

    @abstractmethod
    async def find_by(
        self,
        status: Optional[CleaningRequestStatus] = None,
        room_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        assigned_to: Optional[UUID] = None
    ) -> List[CleaningRequest]:
        """Narrow query; every given filter must match"""
        pass

    @abstractmethod
    async def find_by_statuses(self, statuses: Iterable[CleaningRequestStatus]) -> List[CleaningRequest]:
        pass

    @abstractmethod
    async def update(self, request: CleaningRequest, expected_version: int) -> CleaningRequest:
        pass


class RepairRequestRepository(ABC):
    """Repository interface for RepairRequest Aggregate"""

    @abstractmethod
    async def save(self, request: RepairRequest) -> RepairRequest:
        pass

    @abstractmethod
    async def find_by_id(self, request_id: UUID) -> Optional[RepairRequest]:
        pass

    @abstractmethod
    async def find_by(
        self,
        status: Optional[RepairStatus] = None,
        room_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        assigned_to: Optional[UUID] = None
    ) -> List[RepairRequest]:
        pass

    @abstractmethod
    async def update(self, request: RepairRequest, expected_version: int) -> RepairRequest:
        pass

    @abstractmethod
    async def delete(self, request_id: UUID) -> bool:
        pass


class UserRepository(ABC):
    """Repository interface for users supplied by the identity provider"""

    @abstractmethod
    async def save(self, user: UserInDB) -> UserInDB:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        pass

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[UserInDB]:
        pass

    @abstractmethod
    async def find_by_role(self, role: UserRole) -> List[UserInDB]:
        pass


class NotificationRepository(ABC):
    """Repository interface for the in-app notification inbox"""

    @abstractmethod
    async def save(self, notification: Notification) -> Notification:
        pass

    @abstractmethod
    async def find_by_id(self, notification_id: UUID) -> Optional[Notification]:
        pass

    @abstractmethod
    async def find_by_user(self, user_id: UUID, unread_only: bool = False) -> List[Notification]:
        pass

    @abstractmethod
    async def update(self, notification: Notification, expected_version: int) -> Notification:
        pass
