import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from .config import BridgeSettings
from .error_handler import UpstreamUnavailableError
from .groups_client import RobloxGroupsClient
from .membership import MembershipSynchronizer
from .owner_guard import OwnerGuard
from .retry import RetryExecutor, RetryPolicy
from .role_directory import RoleDirectory
from .tier_table import TierTable

lib_logger = logging.getLogger("rank_bridge")


class BridgeContext:
    """
    Everything the promotion pipeline shares across requests for one group:
    the tier table, the role and owner caches, and the synchronizer.

    One instance lives for the life of the process. Tests build their own.
    """

    def __init__(
        self,
        client: RobloxGroupsClient,
        tier_table: TierTable,
        retry_executor: RetryExecutor,
    ):
        self.client = client
        self.tier_table = tier_table
        self.role_directory = RoleDirectory(client)
        self.owner_guard = OwnerGuard(client)
        self.synchronizer = MembershipSynchronizer(client, retry_executor)

    @classmethod
    def from_settings(
        cls,
        settings: BridgeSettings,
        http_client: httpx.AsyncClient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "BridgeContext":
        client = RobloxGroupsClient(
            group_id=settings.group_id,
            api_key=settings.api_key,
            http_client=http_client,
            groups_api_base=settings.groups_api_base,
            cloud_api_base=settings.cloud_api_base,
        )
        tier_table = TierTable(settings.tiers, max_managed_rank=settings.max_managed_rank)
        policy = RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
        )
        return cls(client, tier_table, RetryExecutor(policy, sleep=sleep))

    async def ensure_loaded(self):
        """Lazy init: roles must load, the owner is best-effort."""
        await self.role_directory.ensure_loaded()
        await self.owner_guard.ensure_loaded()

    async def preload(self) -> bool:
        """Eagerly loads roles and owner at startup. Failures are retried lazily later."""
        try:
            await self.role_directory.refresh()
        except UpstreamUnavailableError as e:
            lib_logger.warning(f"Preload failed (will retry on first request): {e}")
            return False
        await self.owner_guard.ensure_loaded()
        if self.owner_guard.owner_user_id is None:
            lib_logger.info("Preloaded roles; group owner not known yet.")
        else:
            lib_logger.info("Preloaded roles + owner OK")
        return True

    def invalidate(self):
        """Forgets cached roles and owner; the next request reloads them."""
        self.role_directory.invalidate()
        self.owner_guard.invalidate()
