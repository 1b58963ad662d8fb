"""Domain Entities - Auth"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from typing import Optional

from domain.enums import UserRole

SYSTEM_ACTOR = "system"

STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.CLEANER, UserRole.REPAIRER})


class User(BaseModel):
    """User Entity"""
    user_id: UUID = Field(default_factory=uuid4)
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole = UserRole.USER
    disabled: bool = False

    class Config:
        from_attributes = True

    def as_actor(self) -> "Actor":
        return Actor(user_id=self.user_id, role=self.role)


class UserInDB(User):
    """User with hashed password for DB storage"""
    hashed_password: str


class Actor(BaseModel):
    """Already-authenticated caller of an engine operation"""
    user_id: UUID
    role: UserRole

    class Config:
        frozen = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_cleaner(self) -> bool:
        return self.role == UserRole.CLEANER

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
