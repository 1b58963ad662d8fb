"""Application settings, read from HOTEL_* environment variables or a .env file"""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.enums import UserRole


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HOTEL_", env_file=".env", extra="ignore")

    # Auth
    secret_key: str = "your-secret-key-keep-it-secret"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Booking
    booking_forbidden_roles: List[UserRole] = Field(
        default_factory=lambda: [UserRole.CLEANER, UserRole.REPAIRER]
    )
    room_write_retries: int = Field(default=3, ge=1)

    # Devices
    auto_lock_delay_seconds: float = Field(default=30.0, gt=0)

    # Ambient
    log_level: str = "INFO"
    notification_sink: str = "log"


@lru_cache
def get_settings() -> Settings:
    return Settings()
