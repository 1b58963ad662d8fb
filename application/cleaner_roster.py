"""Derived view of which cleaners are free to take work"""
import logging
from typing import Dict, List, Optional, Set
from uuid import UUID

from domain.auth import UserInDB
from domain.entities import OPEN_CLEANING_STATUSES
from domain.enums import UserRole
from domain.repositories import CleaningRequestRepository, UserRepository

logger = logging.getLogger(__name__)


class CleanerRoster:
    """Tracks the open (pending/approved) requests held by each cleaner.

    Built once from the request store, then updated incrementally on every
    assignment and terminal transition instead of rescanning all requests.
    A cleaner is available iff they hold no open request.
    """

    def __init__(self, users: UserRepository, requests: CleaningRequestRepository):
        self.users = users
        self.requests = requests
        self._open: Dict[UUID, Set[UUID]] = {}
        self._loaded = False

    async def rebuild(self) -> None:
        self._open.clear()
        for request in await self.requests.find_by_statuses(OPEN_CLEANING_STATUSES):
            if request.assigned_to is not None:
                self._open.setdefault(request.assigned_to, set()).add(request.request_id)
        self._loaded = True
        logger.debug("Cleaner roster rebuilt: %d busy cleaner(s)", len(self._open))

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self.rebuild()

    async def available_cleaners(self) -> List[UserInDB]:
        """Free cleaners, in a stable order (by username)"""
        await self._ensure_loaded()
        cleaners = await self.users.find_by_role(UserRole.CLEANER)
        return [c for c in sorted(cleaners, key=lambda u: u.username) if not self._open.get(c.user_id)]

    async def first_available(self) -> Optional[UserInDB]:
        available = await self.available_cleaners()
        return available[0] if available else None

    async def is_available(self, cleaner_id: UUID) -> bool:
        await self._ensure_loaded()
        return not self._open.get(cleaner_id)

    def assign(self, cleaner_id: UUID, request_id: UUID) -> None:
        self._open.setdefault(cleaner_id, set()).add(request_id)

    def release(self, cleaner_id: UUID, request_id: UUID) -> None:
        held = self._open.get(cleaner_id)
        if not held:
            return
        held.discard(request_id)
        if not held:
            del self._open[cleaner_id]
