"""API Dependencies - Engine instance, authentication and acting identity"""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from typing import Optional
from uuid import UUID

from application.engine import HotelEngine
from domain.auth import Actor, User, UserInDB
from domain.enums import UserRole
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

engine = HotelEngine()

# Mock identity provider
# In production, users come from the identity service
_fake_users_db = {
    "admin": {
        "username": "admin",
        "full_name": "Admin User",
        "email": "admin@example.com",
        "plain_password": "admin123",
        "role": UserRole.ADMIN,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174000"
    },
    "cleaner": {
        "username": "cleaner",
        "full_name": "Housekeeping Staff",
        "email": "cleaner@example.com",
        "plain_password": "cleaner123",
        "role": UserRole.CLEANER,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174001"
    },
    "repairer": {
        "username": "repairer",
        "full_name": "Maintenance Staff",
        "email": "repairer@example.com",
        "plain_password": "repairer123",
        "role": UserRole.REPAIRER,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174003"
    },
    "guest": {
        "username": "guest",
        "full_name": "Hotel Guest",
        "email": "guest@example.com",
        "plain_password": "guest123",
        "role": UserRole.USER,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174002"
    },
}

fake_users_db = _fake_users_db

# Cache for hashed passwords
_password_hash_cache = {}

def _get_hashed_password(username: str) -> str:
    """Lazily hash passwords on first access"""
    if username not in _password_hash_cache:
        user = _fake_users_db.get(username)
        if user and "plain_password" in user:
            _password_hash_cache[username] = get_password_hash(user["plain_password"])
    return _password_hash_cache.get(username, "")

def _to_user_in_db(username: str) -> UserInDB:
    user_dict = _fake_users_db[username].copy()
    user_dict["hashed_password"] = _get_hashed_password(username)
    del user_dict["plain_password"]
    user_dict["user_id"] = UUID(user_dict["user_id"])
    return UserInDB(**user_dict)

async def seed_users(target: HotelEngine) -> None:
    """Make every known account visible to the engine's user repository"""
    for username in _fake_users_db:
        if await target.user_repo.find_by_username(username) is None:
            await target.user_repo.save(_to_user_in_db(username))

async def get_engine() -> HotelEngine:
    await seed_users(engine)
    return engine

async def get_user(target: HotelEngine, username: str) -> Optional[UserInDB]:
    return await target.user_repo.find_by_username(username)

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    target: HotelEngine = Depends(get_engine)
) -> UserInDB:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except JWTError:
        raise credentials_exception

    user = await get_user(target, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user

async def get_current_active_user(current_user: UserInDB = Depends(get_current_user)) -> User:
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user

async def get_current_actor(current_user: User = Depends(get_current_active_user)) -> Actor:
    return current_user.as_actor()
