import hmac
import logging
import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .context import BridgeContext
from .error_handler import BridgeError, UpstreamError, UpstreamUnavailableError
from .membership import SyncResult
from .outcome import Applied, ErrorKind, Failed, PromotionOutcome, SkipReason, Skipped

lib_logger = logging.getLogger("rank_bridge")


class PromotionRequest(BaseModel):
    """
    Inbound progression update, as sent by the game server.

    Fields are deliberately loose; the pipeline checks them in a fixed order
    so that an unauthenticated or not-yet-loaded request is rejected before
    its payload is looked at.
    """

    user_id: Any = Field(default=None, alias="userId")
    xp: Any = None
    loaded: Any = None
    secret: Any = None

    model_config = ConfigDict(extra="allow")


def _parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_user_id(value: Any) -> Optional[int]:
    """A positive integer user id, or None if `value` is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        try:
            user_id = int(value.strip())
            return user_id if user_id > 0 else None
        except ValueError:
            pass
    number = _parse_number(value)
    if number is None or number <= 0 or not number.is_integer():
        return None
    return int(number)


def parse_xp(value: Any) -> Optional[float]:
    """A non-negative finite XP value, or None if `value` is not one."""
    number = _parse_number(value)
    if number is None or number < 0:
        return None
    return number


class PromotionPipeline:
    """
    Decides and applies the group role for one progression update.

    `submit` never raises: every result, including unexpected faults, comes
    back as a PromotionOutcome.
    """

    def __init__(self, context: BridgeContext, shared_secret: str):
        self.context = context
        self._shared_secret = shared_secret or ""

    def _is_authorized(self, secret: Any) -> bool:
        if not self._shared_secret or not isinstance(secret, str):
            return False
        return hmac.compare_digest(secret.encode("utf-8"), self._shared_secret.encode("utf-8"))

    async def submit(self, request: PromotionRequest) -> PromotionOutcome:
        try:
            return await self._run(request)
        except BridgeError as e:
            lib_logger.error(f"Promotion failed with {e.kind}: {e.detail}")
            return Failed(ErrorKind(e.kind), e.detail)
        except Exception as e:
            lib_logger.exception(f"Unexpected error while processing promotion: {e}")
            return Failed(ErrorKind.INTERNAL_ERROR, str(e) or type(e).__name__)

    async def _run(self, request: PromotionRequest) -> PromotionOutcome:
        if not self._is_authorized(request.secret):
            return Failed(ErrorKind.UNAUTHORIZED, "Invalid secret")

        # An XP value that has not finished loading would resolve to the lowest tier
        if request.loaded is not True:
            return Skipped(SkipReason.NOT_LOADED)

        user_id = parse_user_id(request.user_id)
        if user_id is None:
            return Failed(ErrorKind.BAD_INPUT, "Bad userId")
        xp = parse_xp(request.xp)
        if xp is None:
            return Failed(ErrorKind.BAD_INPUT, "Bad xp")

        context = self.context
        await context.ensure_loaded()

        if context.owner_guard.is_protected(user_id):
            lib_logger.info(f"Skipping group owner {user_id}.")
            return Skipped(SkipReason.GROUP_OWNER)

        synchronizer = context.synchronizer
        async with synchronizer.user_lock(user_id):
            rank_key = context.tier_table.resolve_rank(xp)
            role_id = context.role_directory.lookup(rank_key)
            if role_id is None:
                lib_logger.error(
                    f"No role with rank {rank_key} in group {context.client.group_id}."
                )
                return Failed(
                    ErrorKind.ROLE_NOT_FOUND,
                    "Role not found for target rank number",
                    rank_key=rank_key,
                )

            try:
                result = await synchronizer.sync(user_id, role_id)
            except UpstreamUnavailableError as e:
                lib_logger.error(f"Could not read current role of user {user_id}: {e}")
                return Failed(ErrorKind.UPSTREAM_UNAVAILABLE, e.detail, rank_key=rank_key)
            except UpstreamError as e:
                lib_logger.error(f"Promotion of user {user_id} to rank {rank_key} failed: {e}")
                return Failed(ErrorKind.UPSTREAM_ERROR, e.detail, rank_key=rank_key)

        if result is SyncResult.ALREADY_CORRECT:
            return Skipped(SkipReason.ALREADY_CORRECT, rank_key=rank_key)
        return Applied(rank_key)
