"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from uuid import UUID
from typing import Any, Dict, Optional

from domain.enums import (
    CleaningRequestStatus, CleaningRequestType, RepairPriority, RepairStatus, RepairType, UserRole
)


# ============================================================================
# ROOM SCHEMAS
# ============================================================================

class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    number: str = Field(min_length=1)
    beds: int = Field(ge=1, default=1)
    rooms: int = Field(ge=1, default=1)


class DeviceActionResponse(BaseModel):
    """Door/light log entry DTO"""
    action: str
    actor: str
    timestamp: datetime
    type: str


class GuestSnapshotResponse(BaseModel):
    """Current guest DTO"""
    user_id: UUID
    reservation_id: UUID
    name: Optional[str] = None
    check_in: date
    check_out: date


class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    number: str
    beds: int
    rooms: int
    is_occupied: bool
    cleaning_status: str
    last_cleaned: Optional[datetime] = None
    door_status: str
    light_status: str
    lock_deadline: Optional[datetime] = None
    current_guest: Optional[GuestSnapshotResponse] = None
    version: int


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    room_id: UUID
    check_in: date
    check_out: date


class AvailabilityQueryResponse(BaseModel):
    """Availability check result DTO"""
    room_id: UUID
    check_in: date
    check_out: date
    available: bool


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    user_id: UUID
    room_id: UUID
    check_in: date
    check_out: date
    nights: int
    status: str
    created_at: datetime
    modified_at: datetime
    version: int


# ============================================================================
# CLEANING SCHEMAS
# ============================================================================

class CreateCleaningRequest(BaseModel):
    """Create cleaning request DTO"""
    room_id: UUID
    reservation_id: UUID
    request_type: CleaningRequestType = CleaningRequestType.REGULAR
    notes: Optional[str] = None


class UpdateCleaningStatusRequest(BaseModel):
    """Cleaning status transition DTO"""
    status: CleaningRequestStatus


class AssignCleanerRequest(BaseModel):
    """Admin assignment override DTO"""
    cleaner_id: UUID


class CleaningRequestResponse(BaseModel):
    """Cleaning request response DTO"""
    request_id: UUID
    room_id: UUID
    user_id: UUID
    reservation_id: UUID
    status: str
    request_type: str
    notes: Optional[str] = None
    assigned_to: Optional[UUID] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[UUID] = None
    created_at: datetime
    modified_at: datetime


# ============================================================================
# REPAIR SCHEMAS
# ============================================================================

class CreateRepairRequest(BaseModel):
    """Create repair request DTO"""
    room_id: UUID
    repair_type: RepairType = RepairType.OTHER
    description: str = Field(..., min_length=1)
    priority: RepairPriority = RepairPriority.MEDIUM
    notes: Optional[str] = None


class UpdateRepairStatusRequest(BaseModel):
    """Repair status transition DTO"""
    status: RepairStatus


class AssignRepairerRequest(BaseModel):
    repairer_id: UUID


class RepairRequestResponse(BaseModel):
    """Repair request response DTO"""
    request_id: UUID
    room_id: UUID
    user_id: UUID
    repair_type: str
    description: str
    priority: str
    status: str
    notes: Optional[str] = None
    assigned_to: Optional[UUID] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[UUID] = None
    created_at: datetime
    modified_at: datetime


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================

class NotificationResponse(BaseModel):
    """Notification response DTO"""
    notification_id: UUID
    title: str
    body: str
    type: str
    data: Dict[str, Any] = {}
    read: bool
    created_at: datetime


# ============================================================================
# ERROR SCHEMAS
# ============================================================================

class ErrorResponse(BaseModel):
    """Typed engine failure DTO"""
    code: str
    message: str
    context: Dict[str, str] = {}


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    disabled: bool
