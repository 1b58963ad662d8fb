"""Domain Enums"""
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    CLEANER = "cleaner"
    REPAIRER = "repairer"
    USER = "user"


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class CleaningStatus(str, Enum):
    CLEAN = "clean"
    NEEDS_CLEANING = "needs_cleaning"
    IN_PROGRESS = "in_progress"


class CleaningRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class CleaningRequestType(str, Enum):
    REGULAR = "regular"
    URGENT = "urgent"


class RepairType(str, Enum):
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    FURNITURE = "furniture"
    OTHER = "other"


class RepairPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RepairStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DoorStatus(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class LightStatus(str, Enum):
    ON = "on"
    OFF = "off"


class DeviceActionType(str, Enum):
    UNLOCK = "unlock"
    LOCK = "lock"
    AUTO_LOCK = "auto_lock"
    LIGHT_ON = "light_on"
    LIGHT_OFF = "light_off"


class ActionOrigin(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class NotificationType(str, Enum):
    CLEANING = "cleaning"
    RESERVATION = "reservation"
    DEVICE = "device"
    REPAIR = "repair"
    SYSTEM = "system"
