import asyncio
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import TYPE_CHECKING, AsyncIterator, Dict, Optional

from .failure_logger import log_failure
from .groups_client import RoleId
from .retry import RetryExecutor

if TYPE_CHECKING:
    from .groups_client import RobloxGroupsClient

lib_logger = logging.getLogger("rank_bridge")


class SyncResult(str, Enum):
    APPLIED = "Applied"
    ALREADY_CORRECT = "AlreadyCorrect"


class UserLocks:
    """
    One asyncio.Lock per user id, created on demand.

    A lock is dropped once nobody holds or waits for it, so the table only
    ever contains users with requests in flight.
    """

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._users[user_id] = self._users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[user_id] -= 1
            if self._users[user_id] == 0:
                del self._users[user_id]
                del self._locks[user_id]


class MembershipSynchronizer:
    """
    Brings one user's group role in line with a target role.

    The current role is read first and the write is skipped when it already
    matches. Writes go through the RetryExecutor.
    """

    def __init__(self, client: "RobloxGroupsClient", retry_executor: RetryExecutor):
        self._client = client
        self._retry_executor = retry_executor
        self._user_locks = UserLocks()

    def user_lock(self, user_id: int):
        """Per-user mutual exclusion scope for the read-compare-write sequence."""
        return self._user_locks.hold(user_id)

    async def current_role(self, user_id: int) -> Optional[RoleId]:
        return await self._client.get_user_role_id(user_id)

    async def sync(self, user_id: int, target_role_id: RoleId) -> SyncResult:
        current_role_id = await self.current_role(user_id)
        if current_role_id is not None and str(current_role_id) == str(target_role_id):
            lib_logger.debug(f"User {user_id} already holds role {target_role_id}.")
            return SyncResult.ALREADY_CORRECT

        def _log_attempt_failure(attempt, response):
            log_failure(
                api_key=self._client.api_key,
                group_id=self._client.group_id,
                user_id=user_id,
                role_id=target_role_id,
                attempt=attempt,
                response=response,
            )

        await self._retry_executor.execute(
            lambda: self._client.set_member_role(user_id, target_role_id),
            on_failure=_log_attempt_failure,
        )
        lib_logger.info(
            f"User {user_id} moved from role {current_role_id} to {target_role_id}."
        )
        return SyncResult.APPLIED
