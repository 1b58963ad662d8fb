"""Domain Errors

Every failure the engine reports is a HotelOperationError subclass carrying a
stable `code` and the offending ids in `context`.
"""
from typing import Any, Dict, Optional


class HotelOperationError(ValueError):
    """Base class for typed engine failures"""

    code = "HOTEL_OPERATION_ERROR"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class InvalidRangeError(HotelOperationError):
    code = "INVALID_RANGE"


class RoleNotAllowedError(HotelOperationError):
    code = "ROLE_NOT_ALLOWED"


class NotFoundError(HotelOperationError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any, message: Optional[str] = None):
        super().__init__(message or f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)


class RoomOccupiedError(HotelOperationError):
    code = "ROOM_OCCUPIED"


class AlreadyCancelledError(HotelOperationError):
    code = "ALREADY_CANCELLED"


class InvalidStateError(HotelOperationError):
    code = "INVALID_STATE"


class NoActiveReservationError(HotelOperationError):
    code = "NO_ACTIVE_RESERVATION"


class InvalidTransitionError(HotelOperationError):
    code = "INVALID_TRANSITION"


class AccessDeniedError(HotelOperationError):
    code = "ACCESS_DENIED"


class UnauthorizedError(HotelOperationError):
    code = "UNAUTHORIZED"


class StaleStateError(HotelOperationError):
    """Raised by a compare-and-swap write whose expected version is outdated"""

    code = "STALE_STATE"
