"""Wiring of repositories, collaborators and services into one engine instance"""
from typing import Optional

from application.cleaner_roster import CleanerRoster
from application.device_control import DeviceControlService
from application.notifications import NotificationService
from application.repairs import RepairRequestService
from application.services import (
    AvailabilityService, RoomService, ReservationService, CleaningRequestService
)
from domain.gateways import Clock, NotificationSink, TimerService
from infrastructure.config import Settings, get_settings
from infrastructure.event_bus import EventBus
from infrastructure.locking import KeyedLock
from infrastructure.notification_sinks import build_notification_sink
from infrastructure.repositories.in_memory_repositories import (
    InMemoryRoomRepository, InMemoryReservationRepository, InMemoryCleaningRequestRepository,
    InMemoryRepairRequestRepository, InMemoryUserRepository, InMemoryNotificationRepository
)
from infrastructure.timers import AsyncioTimerService, SystemClock


class HotelEngine:

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        timers: Optional[TimerService] = None,
        sink: Optional[NotificationSink] = None
    ):
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.timers = timers or AsyncioTimerService()
        self.sink = sink or build_notification_sink(self.settings.notification_sink)
        self.events = EventBus()
        self.room_locks = KeyedLock()

        # Repositories
        self.room_repo = InMemoryRoomRepository()
        self.reservation_repo = InMemoryReservationRepository()
        self.cleaning_repo = InMemoryCleaningRequestRepository()
        self.repair_repo = InMemoryRepairRequestRepository()
        self.user_repo = InMemoryUserRepository()
        self.notification_repo = InMemoryNotificationRepository()

        # Services
        self.notifications = NotificationService(self.notification_repo, self.user_repo, self.sink)
        self.availability = AvailabilityService(self.reservation_repo, self.room_repo)
        self.rooms = RoomService(
            self.room_repo, self.availability, self.user_repo,
            self.clock, self.events, self.room_locks, self.settings
        )
        self.reservations = ReservationService(
            self.reservation_repo, self.rooms, self.availability, self.notifications,
            self.clock, self.events, self.room_locks, self.settings
        )
        self.roster = CleanerRoster(self.user_repo, self.cleaning_repo)
        self.cleaning = CleaningRequestService(
            self.cleaning_repo, self.reservation_repo, self.rooms, self.user_repo, self.roster,
            self.notifications, self.clock, self.events, self.room_locks
        )
        self.repairs = RepairRequestService(
            self.repair_repo, self.rooms, self.user_repo, self.notifications,
            self.clock, self.events, self.room_locks
        )
        self.devices = DeviceControlService(
            self.rooms, self.reservation_repo, self.cleaning_repo, self.timers,
            self.clock, self.events, self.room_locks, self.settings
        )

    def shutdown(self) -> None:
        self.devices.shutdown()
