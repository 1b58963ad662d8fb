"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from domain.enums import ActionOrigin, DeviceActionType
from domain.exceptions import InvalidRangeError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DateRange(BaseModel):
    """Half-open stay interval [check_in, check_out)"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    @classmethod
    def of(cls, check_in: date, check_out: date) -> "DateRange":
        """Build a range, reporting an empty or inverted interval as InvalidRangeError"""
        if check_in >= check_out:
            raise InvalidRangeError(
                "Check-out date must be later than check-in date",
                check_in=check_in,
                check_out=check_out,
            )
        return cls(check_in=check_in, check_out=check_out)

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def overlaps(self, check_in: date, check_out: date) -> bool:
        """Strict overlap; touching endpoints do not overlap"""
        return self.check_in < check_out and self.check_out > check_in

    def covers(self, day: date) -> bool:
        return self.check_in <= day < self.check_out

    class Config:
        frozen = True


class GuestSnapshot(BaseModel):
    """Current guest of a room, derived from the covering reservation"""
    user_id: UUID
    reservation_id: UUID
    name: Optional[str] = None
    check_in: date
    check_out: date

    class Config:
        frozen = True


class DeviceAction(BaseModel):
    """Entry of a room's append-only door/light log"""
    action: DeviceActionType
    actor: str
    timestamp: datetime = Field(default_factory=utc_now)
    type: ActionOrigin = ActionOrigin.MANUAL

    class Config:
        frozen = True
