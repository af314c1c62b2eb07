import json
import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from .error_handler import UpstreamUnavailableError, response_detail

lib_logger = logging.getLogger("rank_bridge")

RoleId = Union[int, str]


class RobloxGroupsClient:
    """
    Thin wrapper over the Roblox Groups (read) and Open Cloud (write) APIs for
    a single group.

    Reads raise UpstreamUnavailableError on any failure. The membership write
    returns the raw response so the caller can decide whether to retry.
    """

    def __init__(
        self,
        group_id: str,
        api_key: str,
        http_client: httpx.AsyncClient,
        groups_api_base: str = "https://groups.roblox.com",
        cloud_api_base: str = "https://apis.roblox.com",
    ):
        self.group_id = str(group_id).strip()
        self.api_key = api_key
        self.http_client = http_client
        self.groups_api_base = groups_api_base.rstrip("/")
        self.cloud_api_base = cloud_api_base.rstrip("/")

    async def _get_json(self, url: str) -> Any:
        try:
            response = await self.http_client.get(url)
        except httpx.RequestError as e:
            raise UpstreamUnavailableError(f"Request to {url} failed: {e}") from e

        if not response.is_success:
            raise UpstreamUnavailableError(
                response_detail(response), status_code=response.status_code
            )
        if not response.text:
            return None
        try:
            return response.json()
        except json.JSONDecodeError:
            lib_logger.warning(f"Non-JSON body from {url}; treating as empty.")
            return None

    async def get_group_info(self) -> Dict[str, Any]:
        data = await self._get_json(f"{self.groups_api_base}/v1/groups/{self.group_id}")
        return data if isinstance(data, dict) else {}

    async def get_owner_user_id(self) -> Optional[int]:
        """The group owner's user id, or None for an ownerless group."""
        info = await self.get_group_info()
        owner = info.get("owner")
        if not isinstance(owner, dict):
            return None
        user_id = owner.get("userId")
        return int(user_id) if user_id else None

    async def list_roles(self) -> List[Dict[str, Any]]:
        """The group's roles as `{id, name, rank}` entries."""
        data = await self._get_json(
            f"{self.groups_api_base}/v1/groups/{self.group_id}/roles"
        )
        if not isinstance(data, dict):
            return []
        return list(data.get("roles") or [])

    async def get_user_role_id(self, user_id: int) -> Optional[RoleId]:
        """The user's role id in this group, or None when they are not a member."""
        data = await self._get_json(
            f"{self.groups_api_base}/v2/users/{user_id}/groups/roles"
        )
        if not isinstance(data, dict):
            return None
        for entry in data.get("data") or []:
            group = entry.get("group") or {}
            if str(group.get("id")) == self.group_id:
                role = entry.get("role") or {}
                return role.get("id")
        return None

    async def set_member_role(self, user_id: int, role_id: RoleId) -> httpx.Response:
        """Issues the membership PATCH. Does not raise on a non-success status."""
        url = f"{self.cloud_api_base}/cloud/v2/groups/{self.group_id}/memberships/{user_id}"
        payload = {"role": f"groups/{self.group_id}/roles/{role_id}"}
        return await self.http_client.patch(
            url,
            headers={
                "x-api-key": self.api_key,
                "Content-Type": "application/json",
            },
            content=json.dumps(payload),
        )
