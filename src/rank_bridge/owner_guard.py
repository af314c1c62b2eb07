import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from .error_handler import UpstreamUnavailableError

if TYPE_CHECKING:
    from .groups_client import RobloxGroupsClient

lib_logger = logging.getLogger("rank_bridge")


class OwnerGuard:
    """
    Remembers the group owner so the bridge never changes their role.

    Loading is best-effort. Until the owner is known the guard simply
    never matches.
    """

    def __init__(self, client: "RobloxGroupsClient"):
        self._client = client
        self._owner_user_id: Optional[int] = None
        self._load_lock = asyncio.Lock()

    @property
    def owner_user_id(self) -> Optional[int]:
        return self._owner_user_id

    async def ensure_loaded(self):
        if self._owner_user_id is not None:
            return
        async with self._load_lock:
            if self._owner_user_id is not None:
                return
            try:
                self._owner_user_id = await self._client.get_owner_user_id()
            except (UpstreamUnavailableError, ValueError, TypeError) as e:
                lib_logger.warning(f"Could not load group owner: {e}")

    def is_protected(self, user_id: int) -> bool:
        return self._owner_user_id is not None and user_id == self._owner_user_id

    def invalidate(self):
        self._owner_user_id = None
