import asyncio
import logging
from typing import TYPE_CHECKING, Dict, Optional

from .groups_client import RoleId

if TYPE_CHECKING:
    from .groups_client import RobloxGroupsClient

lib_logger = logging.getLogger("rank_bridge")


class RoleDirectory:
    """
    Process-scoped cache of rank number -> Roblox role id for one group.

    Roles are matched by their numeric rank only; role names are ignored.
    The mapping is replaced wholesale on every load, so readers see either
    the previous snapshot or the new one, never a mix.
    """

    def __init__(self, client: "RobloxGroupsClient"):
        self._client = client
        self._rank_to_role_id: Dict[int, RoleId] = {}
        self._load_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rank_to_role_id)

    @property
    def is_loaded(self) -> bool:
        return bool(self._rank_to_role_id)

    async def ensure_loaded(self):
        """Loads the role list only if the cache is still empty."""
        if self.is_loaded:
            return
        async with self._load_lock:
            if not self.is_loaded:
                await self._load()

    async def refresh(self):
        """Fetches the role list and replaces the cache unconditionally."""
        async with self._load_lock:
            await self._load()

    async def _load(self):
        # A failed fetch raises before the swap, leaving the old mapping intact
        roles = await self._client.list_roles()
        mapping: Dict[int, RoleId] = {}
        for role in roles:
            rank = role.get("rank")
            role_id = role.get("id")
            if rank is None or role_id is None:
                continue
            mapping[int(rank)] = role_id
        self._rank_to_role_id = mapping
        lib_logger.info(
            f"Loaded {len(mapping)} roles for group {self._client.group_id}."
        )

    def lookup(self, rank_key: int) -> Optional[RoleId]:
        return self._rank_to_role_id.get(rank_key)

    def invalidate(self):
        self._rank_to_role_id = {}
