from fastapi import FastAPI, HTTPException, Depends
from uuid import UUID
from datetime import date, timedelta
from typing import List, Optional
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Rooms
    CreateRoomRequest, RoomResponse, GuestSnapshotResponse, DeviceActionResponse,
    # Reservations
    CreateReservationRequest, ReservationResponse, AvailabilityQueryResponse,
    # Cleaning
    CreateCleaningRequest, UpdateCleaningStatusRequest, AssignCleanerRequest, CleaningRequestResponse,
    # Repairs
    CreateRepairRequest, UpdateRepairStatusRequest, AssignRepairerRequest, RepairRequestResponse,
    # Notifications
    NotificationResponse,
    # Auth
    Token, UserResponse
)

from api.dependencies import (
    get_engine, get_current_active_user, get_current_actor, get_user
)
from application.engine import HotelEngine
from infrastructure.security import verify_password, create_access_token
from infrastructure.config import get_settings
from infrastructure.logging_config import configure_logging
from domain.auth import Actor, User
from domain.enums import (
    CleaningRequestStatus, CleaningRequestType, CleaningStatus, RepairStatus, ReservationStatus, UserRole
)
from domain.exceptions import HotelOperationError
from domain.value_objects import DateRange

configure_logging(get_settings().log_level)

app = FastAPI(
    title="Hotel Operations API",
    description="Booking, housekeeping and in-room device control",
    version="1.0.0"
)

_STATUS_BY_CODE = {
    "NOT_FOUND": 404,
    "ACCESS_DENIED": 403,
    "UNAUTHORIZED": 403,
    "ROLE_NOT_ALLOWED": 403,
    "ROOM_OCCUPIED": 409,
    "ALREADY_CANCELLED": 409,
    "INVALID_STATE": 409,
    "INVALID_TRANSITION": 409,
    "STALE_STATE": 409,
    "INVALID_RANGE": 400,
    "NO_ACTIVE_RESERVATION": 400,
}


def _http_error(error: HotelOperationError) -> HTTPException:
    """Map a typed engine failure onto an HTTP error carrying its code and context"""
    return HTTPException(status_code=_STATUS_BY_CODE.get(error.code, 400), detail=error.to_dict())


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Administrator role required")

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Get all ReservationStatus enum values"""
    return {"values": [item.value for item in ReservationStatus]}

@app.get("/api/enums/cleaning-status", tags=["Enum Reference"])
async def get_cleaning_statuses():
    """Get room housekeeping states and cleaning request states"""
    return {
        "room": [item.value for item in CleaningStatus],
        "request": [item.value for item in CleaningRequestStatus],
        "request_types": [item.value for item in CleaningRequestType],
    }

@app.get("/api/enums/roles", tags=["Enum Reference"])
async def get_roles():
    """Get all UserRole enum values"""
    return {"values": [item.value for item in UserRole]}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    engine: HotelEngine = Depends(get_engine)
):
    user = await get_user(engine, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=get_settings().access_token_expire_minutes)
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value}, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.post("/api/rooms", response_model=RoomResponse, status_code=201, tags=["Rooms"])
async def create_room(
    request: CreateRoomRequest,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Provision a room (administrators only)"""
    try:
        room = await engine.rooms.create_room(actor, request.number, request.beds, request.rooms)
        return _room_to_response(room)
    except HotelOperationError as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/rooms", response_model=List[RoomResponse], tags=["Rooms"])
async def list_rooms(engine: HotelEngine = Depends(get_engine)):
    """Get all rooms ordered by number"""
    return [_room_to_response(room) for room in await engine.rooms.list_rooms()]

@app.get("/api/rooms/occupied", response_model=List[RoomResponse], tags=["Rooms"])
async def list_occupied_rooms(
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Get occupied rooms (staff view)"""
    if not actor.is_staff:
        raise HTTPException(status_code=403, detail="Staff role required")
    return [_room_to_response(room) for room in await engine.rooms.list_occupied_rooms()]

@app.get("/api/rooms/available", response_model=List[RoomResponse], tags=["Rooms"])
async def list_available_rooms(
    check_in: date,
    check_out: date,
    engine: HotelEngine = Depends(get_engine)
):
    """Get rooms free for the whole [check_in, check_out) interval"""
    try:
        rooms = await engine.availability.find_available_rooms(check_in, check_out)
        return [_room_to_response(room) for room in rooms]
    except HotelOperationError as e:
        raise _http_error(e)

@app.get("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def get_room(room_id: UUID, engine: HotelEngine = Depends(get_engine)):
    """Get room by ID with its derived current guest"""
    try:
        room = await engine.rooms.get_room(room_id)
        guest = await engine.rooms.get_current_guest(room_id)
        return _room_to_response(room, guest)
    except HotelOperationError as e:
        raise _http_error(e)

@app.get("/api/rooms/{room_id}/availability", response_model=AvailabilityQueryResponse, tags=["Rooms"])
async def check_room_availability(
    room_id: UUID,
    check_in: date,
    check_out: date,
    engine: HotelEngine = Depends(get_engine)
):
    """Check whether a room is free for [check_in, check_out)"""
    try:
        stay = DateRange.of(check_in, check_out)
        await engine.rooms.require(room_id)
        occupied = await engine.availability.is_occupied(room_id, stay.check_in, stay.check_out)
        return AvailabilityQueryResponse(room_id=room_id, check_in=check_in, check_out=check_out, available=not occupied)
    except HotelOperationError as e:
        raise _http_error(e)

@app.post("/api/rooms/{room_id}/reconcile", response_model=RoomResponse, tags=["Rooms"])
async def reconcile_room(
    room_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Recompute room occupancy and door state from authoritative records"""
    _require_admin(actor)
    try:
        room = await engine.rooms.reconcile_room(room_id)
        return _room_to_response(room)
    except HotelOperationError as e:
        raise _http_error(e)

@app.get("/api/rooms/{room_id}/reservations", response_model=List[ReservationResponse], tags=["Rooms"])
async def get_room_reservations(
    room_id: UUID,
    active_only: bool = False,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Get reservations for a room (administrators only)"""
    _require_admin(actor)
    reservations = await engine.reservations.get_room_reservations(room_id, active_only=active_only)
    return [_reservation_to_response(r) for r in reservations]

# ============================================================================
# DEVICE ENDPOINTS
# ============================================================================

@app.post("/api/rooms/{room_id}/door/unlock", response_model=RoomResponse, tags=["Devices"])
async def unlock_door(
    room_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Unlock the door; guests and admins get an automatic re-lock"""
    try:
        return _room_to_response(await engine.devices.unlock_door(room_id, actor))
    except HotelOperationError as e:
        raise _http_error(e)

@app.post("/api/rooms/{room_id}/door/lock", response_model=RoomResponse, tags=["Devices"])
async def lock_door(
    room_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Lock the door"""
    try:
        return _room_to_response(await engine.devices.lock_door(room_id, actor))
    except HotelOperationError as e:
        raise _http_error(e)

@app.post("/api/rooms/{room_id}/light/toggle", response_model=RoomResponse, tags=["Devices"])
async def toggle_light(
    room_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Switch the room lights"""
    try:
        return _room_to_response(await engine.devices.toggle_light(room_id, actor))
    except HotelOperationError as e:
        raise _http_error(e)

@app.get("/api/rooms/{room_id}/device-log", response_model=List[DeviceActionResponse], tags=["Devices"])
async def get_device_log(
    room_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Get the room's door/light action log"""
    try:
        actions = await engine.devices.get_device_log(room_id, actor)
        return [
            DeviceActionResponse(action=a.action.value, actor=a.actor, timestamp=a.timestamp, type=a.type.value)
            for a in actions
        ]
    except HotelOperationError as e:
        raise _http_error(e)

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Book a room for the acting user"""
    try:
        reservation = await engine.reservations.create_reservation(
            actor=actor,
            room_id=request.room_id,
            check_in=request.check_in,
            check_out=request.check_out
        )
        return _reservation_to_response(reservation)
    except HotelOperationError as e:
        raise _http_error(e)

@app.get("/api/reservations/me", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_my_reservations(
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Get the acting user's reservations, newest first"""
    reservations = await engine.reservations.get_user_reservations(actor.user_id)
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Get reservation by ID"""
    try:
        reservation = await engine.reservations.get_reservation(reservation_id)
    except HotelOperationError as e:
        raise _http_error(e)
    if reservation.user_id != actor.user_id and not actor.is_admin:
        raise HTTPException(status_code=403, detail="Not your reservation")
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
async def cancel_reservation(
    reservation_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Cancel an active reservation"""
    try:
        reservation = await engine.reservations.cancel_reservation(reservation_id, actor)
        return _reservation_to_response(reservation)
    except HotelOperationError as e:
        raise _http_error(e)

@app.post("/api/reservations/{reservation_id}/complete", response_model=ReservationResponse, tags=["Reservations"])
async def complete_reservation(
    reservation_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Check the guest out"""
    try:
        reservation = await engine.reservations.complete_reservation(reservation_id, actor)
        return _reservation_to_response(reservation)
    except HotelOperationError as e:
        raise _http_error(e)

# ============================================================================
# CLEANING ENDPOINTS
# ============================================================================

@app.post("/api/cleaning-requests", response_model=CleaningRequestResponse, status_code=201, tags=["Cleaning"])
async def create_cleaning_request(
    request: CreateCleaningRequest,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Request cleaning of the acting guest's room"""
    try:
        cleaning = await engine.cleaning.create_request(
            room_id=request.room_id,
            user_id=actor.user_id,
            reservation_id=request.reservation_id,
            request_type=request.request_type,
            notes=request.notes
        )
        return _cleaning_to_response(cleaning)
    except HotelOperationError as e:
        raise _http_error(e)

@app.get("/api/cleaning-requests", response_model=List[CleaningRequestResponse], tags=["Cleaning"])
async def list_cleaning_requests(
    status: Optional[CleaningRequestStatus] = None,
    room_id: Optional[UUID] = None,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Admins see everything, cleaners their assignments, guests their own requests"""
    if actor.is_admin:
        requests = await engine.cleaning.list_requests(status=status, room_id=room_id)
    elif actor.is_cleaner:
        requests = await engine.cleaning.list_requests(status=status, room_id=room_id, assigned_to=actor.user_id)
    else:
        requests = await engine.cleaning.list_requests(status=status, room_id=room_id, user_id=actor.user_id)
    return [_cleaning_to_response(r) for r in requests]

@app.get("/api/cleaning-requests/{request_id}", response_model=CleaningRequestResponse, tags=["Cleaning"])
async def get_cleaning_request(
    request_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Get cleaning request by ID"""
    try:
        cleaning = await engine.cleaning.get_request(request_id)
    except HotelOperationError as e:
        raise _http_error(e)
    if not actor.is_admin and actor.user_id not in (cleaning.user_id, cleaning.assigned_to):
        raise HTTPException(status_code=403, detail="Not your cleaning request")
    return _cleaning_to_response(cleaning)

@app.post("/api/cleaning-requests/{request_id}/status", response_model=CleaningRequestResponse, tags=["Cleaning"])
async def update_cleaning_status(
    request_id: UUID,
    request: UpdateCleaningStatusRequest,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Approve, reject or complete a cleaning request"""
    try:
        cleaning = await engine.cleaning.update_status(request_id, request.status, actor)
        return _cleaning_to_response(cleaning)
    except HotelOperationError as e:
        raise _http_error(e)

@app.post("/api/cleaning-requests/{request_id}/assign", response_model=CleaningRequestResponse, tags=["Cleaning"])
async def assign_cleaner(
    request_id: UUID,
    request: AssignCleanerRequest,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Override the automatic cleaner assignment (administrators only)"""
    try:
        cleaning = await engine.cleaning.assign_cleaner(request_id, request.cleaner_id, actor)
        return _cleaning_to_response(cleaning)
    except HotelOperationError as e:
        raise _http_error(e)

@app.get("/api/cleaners/available", response_model=List[UserResponse], tags=["Cleaning"])
async def get_available_cleaners(
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Get cleaners with no pending or approved request"""
    _require_admin(actor)
    return await engine.cleaning.get_available_cleaners()

# ============================================================================
# REPAIR ENDPOINTS
# ============================================================================

@app.post("/api/repair-requests", response_model=RepairRequestResponse, status_code=201, tags=["Repairs"])
async def create_repair_request(
    request: CreateRepairRequest,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Report a maintenance problem in a room"""
    try:
        repair = await engine.repairs.create_request(
            actor,
            room_id=request.room_id,
            repair_type=request.repair_type,
            description=request.description,
            priority=request.priority,
            notes=request.notes
        )
        return _repair_to_response(repair)
    except HotelOperationError as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/repair-requests", response_model=List[RepairRequestResponse], tags=["Repairs"])
async def list_repair_requests(
    status: Optional[RepairStatus] = None,
    room_id: Optional[UUID] = None,
    assigned_to: Optional[UUID] = None,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Admins and repairers see every request, guests only the ones they reported"""
    if actor.role in (UserRole.ADMIN, UserRole.REPAIRER):
        requests = await engine.repairs.list_requests(status=status, room_id=room_id, assigned_to=assigned_to)
    else:
        requests = await engine.repairs.list_requests(status=status, room_id=room_id, user_id=actor.user_id)
    return [_repair_to_response(r) for r in requests]

@app.get("/api/repair-requests/{request_id}", response_model=RepairRequestResponse, tags=["Repairs"])
async def get_repair_request(
    request_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    try:
        repair = await engine.repairs.get_request(request_id)
    except HotelOperationError as e:
        raise _http_error(e)
    if actor.role not in (UserRole.ADMIN, UserRole.REPAIRER) and actor.user_id != repair.user_id:
        raise HTTPException(status_code=403, detail="Not your repair request")
    return _repair_to_response(repair)

@app.post("/api/repair-requests/{request_id}/status", response_model=RepairRequestResponse, tags=["Repairs"])
async def update_repair_status(
    request_id: UUID,
    request: UpdateRepairStatusRequest,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Start, complete or cancel a repair"""
    try:
        repair = await engine.repairs.update_status(request_id, request.status, actor)
        return _repair_to_response(repair)
    except HotelOperationError as e:
        raise _http_error(e)

@app.post("/api/repair-requests/{request_id}/assign", response_model=RepairRequestResponse, tags=["Repairs"])
async def assign_repairer(
    request_id: UUID,
    request: AssignRepairerRequest,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Hand a repair to a specific repairer (administrators only)"""
    try:
        repair = await engine.repairs.assign_repairer(request_id, request.repairer_id, actor)
        return _repair_to_response(repair)
    except HotelOperationError as e:
        raise _http_error(e)

@app.delete("/api/repair-requests/{request_id}", status_code=204, tags=["Repairs"])
async def delete_repair_request(
    request_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    try:
        await engine.repairs.delete_request(request_id, actor)
    except HotelOperationError as e:
        raise _http_error(e)

# ============================================================================
# NOTIFICATION ENDPOINTS
# ============================================================================

@app.get("/api/notifications", response_model=List[NotificationResponse], tags=["Notifications"])
async def list_notifications(
    unread_only: bool = False,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Get the acting user's inbox, newest first"""
    notifications = await engine.notifications.list_notifications(actor.user_id, unread_only=unread_only)
    return [_notification_to_response(n) for n in notifications]

@app.post("/api/notifications/read-all", tags=["Notifications"])
async def mark_all_notifications_read(
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Mark every unread notification as read"""
    return {"marked": await engine.notifications.mark_all_as_read(actor)}

@app.post("/api/notifications/{notification_id}/read", response_model=NotificationResponse, tags=["Notifications"])
async def mark_notification_read(
    notification_id: UUID,
    engine: HotelEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor)
):
    """Mark one notification as read"""
    try:
        notification = await engine.notifications.mark_as_read(notification_id, actor)
        return _notification_to_response(notification)
    except HotelOperationError as e:
        raise _http_error(e)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _room_to_response(room, guest=None) -> RoomResponse:
    """Convert Room entity to RoomResponse"""
    return RoomResponse(
        room_id=room.room_id,
        number=room.number,
        beds=room.beds,
        rooms=room.rooms,
        is_occupied=room.is_occupied,
        cleaning_status=room.cleaning_status.value,
        last_cleaned=room.last_cleaned,
        door_status=room.door_status.value,
        light_status=room.light_status.value,
        lock_deadline=room.lock_deadline,
        current_guest=GuestSnapshotResponse(**guest.model_dump()) if guest else None,
        version=room.version
    )

def _reservation_to_response(reservation) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        user_id=reservation.user_id,
        room_id=reservation.room_id,
        check_in=reservation.check_in,
        check_out=reservation.check_out,
        nights=reservation.stay.nights(),
        status=reservation.status.value,
        created_at=reservation.created_at,
        modified_at=reservation.modified_at,
        version=reservation.version
    )

def _notification_to_response(notification) -> NotificationResponse:
    """Convert Notification entity to NotificationResponse"""
    return NotificationResponse(
        notification_id=notification.notification_id,
        title=notification.title,
        body=notification.body,
        type=notification.type.value,
        data=notification.data,
        read=notification.read,
        created_at=notification.created_at
    )

def _cleaning_to_response(request) -> CleaningRequestResponse:
    """Convert CleaningRequest entity to CleaningRequestResponse"""
    return CleaningRequestResponse(
        request_id=request.request_id,
        room_id=request.room_id,
        user_id=request.user_id,
        reservation_id=request.reservation_id,
        status=request.status.value,
        request_type=request.request_type.value,
        notes=request.notes,
        assigned_to=request.assigned_to,
        assigned_at=request.assigned_at,
        completed_at=request.completed_at,
        completed_by=request.completed_by,
        created_at=request.created_at,
        modified_at=request.modified_at
    )

def _repair_to_response(request) -> RepairRequestResponse:
    """Convert RepairRequest entity to RepairRequestResponse"""
    return RepairRequestResponse(
        request_id=request.request_id,
        room_id=request.room_id,
        user_id=request.user_id,
        repair_type=request.repair_type.value,
        description=request.description,
        priority=request.priority.value,
        status=request.status.value,
        notes=request.notes,
        assigned_to=request.assigned_to,
        assigned_at=request.assigned_at,
        completed_at=request.completed_at,
        completed_by=request.completed_by,
        created_at=request.created_at,
        modified_at=request.modified_at
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
