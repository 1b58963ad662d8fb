"""Domain Events - deltas pushed to change subscribers"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict
from uuid import UUID, uuid4

from domain.value_objects import utc_now

ROOM_CREATED = "room.created"
ROOM_UPDATED = "room.updated"
RESERVATION_CREATED = "reservation.created"
RESERVATION_CANCELLED = "reservation.cancelled"
RESERVATION_COMPLETED = "reservation.completed"
CLEANING_REQUEST_CREATED = "cleaning_request.created"
CLEANING_REQUEST_UPDATED = "cleaning_request.updated"
REPAIR_REQUEST_CREATED = "repair_request.created"
REPAIR_REQUEST_UPDATED = "repair_request.updated"
REPAIR_REQUEST_DELETED = "repair_request.deleted"
DEVICE_ACTION = "device.action"


class DomainEvent(BaseModel):
    event_id: UUID = Field(default_factory=uuid4)
    event_type: str
    aggregate_id: UUID
    data: Dict[str, Any] = {}
    occurred_at: datetime = Field(default_factory=utc_now)

    class Config:
        frozen = True
